"""Daemon-mode glue: detach from the invoking process and serve."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from shelltunnel.server.acceptor import AcceptorError, ShellTunnelServer, remove_stale_socket

if TYPE_CHECKING:
    from shelltunnel.config.settings import DaemonConfig

logger = logging.getLogger(__name__)


def daemonize() -> bool:
    """Fork into the background.

    Returns:
        True in the detached child, False in the invoking process.
    """
    if os.fork() != 0:
        return False
    # Leave the invoking terminal's session so its hangup does not reach us
    os.setsid()
    return True


def build_server(config: DaemonConfig) -> ShellTunnelServer:
    return ShellTunnelServer(
        socket_path=config.socket_path,
        backlog=config.backlog,
        socket_mode=config.socket_mode,
        poll_interval=config.poll_interval,
        read_size=config.read_size,
        reap_timeout=config.reap_timeout,
    )


def run_daemon(config: DaemonConfig, detach: bool = True) -> int:
    """Remove a stale socket, detach and serve shell sessions.

    Returns:
        Exit status for the calling process: 0 for the invoking process
        once the daemon is detached, 1 in the daemon when the listener
        cannot be set up or stops on an accept failure.
    """
    try:
        remove_stale_socket(config.socket_path)
    except (AcceptorError, OSError) as e:
        logger.error("%s", e)
        return 1

    if detach and not daemonize():
        return 0

    logger.info("Daemon started (pid=%d)", os.getpid())
    server = build_server(config)
    try:
        server.serve_forever()
    except AcceptorError as e:
        logger.error("Daemon stopped: %s", e)
        return 1
