"""Daemon side: socket acceptor and per-connection shell workers."""

from shelltunnel.server.acceptor import (
    AcceptorError,
    ShellTunnelServer,
    remove_stale_socket,
)
from shelltunnel.server.daemon import daemonize, run_daemon

__all__ = [
    "AcceptorError",
    "ShellTunnelServer",
    "daemonize",
    "remove_stale_socket",
    "run_daemon",
]
