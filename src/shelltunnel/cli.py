"""Command-line interface for shelltunnel.

One executable, two modes::

    shell-tunnel --daemon
    shell-tunnel --client [--echo]

Invoked without a mode it prints usage and exits with status 1.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shell-tunnel",
        description="Tunnel an interactive shell through a UNIX socket",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--daemon",
        action="store_true",
        help="Detach and serve shell sessions on the socket",
    )
    mode.add_argument(
        "--client",
        action="store_true",
        help="Connect the current terminal to a shell session",
    )
    parser.add_argument(
        "--echo",
        action="store_true",
        help="Keep local echo on in client mode (off by default; the shell echoes)",
    )
    parser.add_argument(
        "-s", "--socket",
        type=str,
        default=None,
        help="Socket path (default: from configuration)",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/shell-tunnel.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the shell-tunnel CLI."""
    parser = build_parser()
    args, extra = parser.parse_known_args(argv)

    if not (args.daemon or args.client):
        parser.print_usage(sys.stdout)
        return 1

    from shelltunnel.config.settings import load_settings
    from shelltunnel.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if extra:
        logger.warning("Ignoring unrecognised arguments: %s", " ".join(extra))

    if args.daemon:
        from shelltunnel.server.daemon import run_daemon

        if args.socket:
            settings.daemon.socket_path = args.socket
        logger.info("Starting daemon on %s", settings.daemon.socket_path)
        return run_daemon(settings.daemon)

    from shelltunnel.client.proxy import run_client

    if args.socket:
        settings.client.socket_path = args.socket
    if args.echo:
        settings.client.local_echo = True
    logger.debug("Connecting to %s", settings.client.socket_path)
    return run_client(settings.client)


if __name__ == "__main__":
    sys.exit(main())
