"""Client proxy: project the local terminal onto a remote shell.

Connects to the daemon's socket, puts the local terminal into raw mode
and relays bytes between the terminal and the socket until the session
ends. The terminal settings are restored on every exit path.
"""

from __future__ import annotations

import logging
import os
import socket
from typing import TYPE_CHECKING

from shelltunnel.domain.models import RelayResult
from shelltunnel.relay.interchange import DEFAULT_POLL_INTERVAL, DEFAULT_READ_SIZE, byte_interchange
from shelltunnel.session.platform import DEFAULT_SOCKET_PATH
from shelltunnel.terminal.raw_mode import RawTerminal

if TYPE_CHECKING:
    from shelltunnel.config.settings import ClientConfig

logger = logging.getLogger(__name__)


class ClientConnectError(Exception):
    """Raised when the daemon's socket cannot be reached."""


class ClientProxy:
    """Relays a local terminal to a shell session behind a UNIX socket.

    Usage::

        proxy = ClientProxy("/tmp/shell-tunnel-socket")
        proxy.connect()
        result = proxy.run()
    """

    def __init__(
        self,
        socket_path: str = DEFAULT_SOCKET_PATH,
        local_echo: bool = False,
        stdin_fd: int = 0,
        stdout_fd: int = 1,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        read_size: int = DEFAULT_READ_SIZE,
    ) -> None:
        self._socket_path = str(socket_path)
        self._local_echo = local_echo
        self._stdin_fd = stdin_fd
        self._stdout_fd = stdout_fd
        self._poll_interval = poll_interval
        self._read_size = read_size
        self._sock: socket.socket | None = None

    @property
    def is_connected(self) -> bool:
        return self._sock is not None

    def connect(self) -> None:
        """Connect to the daemon. Leaves the terminal untouched on failure."""
        if self._sock is not None:
            return
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(self._socket_path)
        except OSError as e:
            sock.close()
            logger.error("could not connect to socket %s: %s", self._socket_path, e)
            raise ClientConnectError(
                f"could not connect to socket {self._socket_path}: {e}"
            ) from e
        self._sock = sock
        logger.debug("Connected to %s", self._socket_path)

    def run(self) -> RelayResult:
        """Run the interactive session until either side ends it.

        Returns:
            How the relay ended.
        """
        self.connect()
        try:
            with RawTerminal(self._stdin_fd, local_echo=self._local_echo):
                result = byte_interchange(
                    self._stdin_fd,
                    self._stdout_fd,
                    self._sock,
                    self._sock,
                    poll_interval=self._poll_interval,
                    read_size=self._read_size,
                )
        finally:
            self.close()
        logger.debug("Client session finished: %s", result.describe())
        return result

    def close(self) -> None:
        """Shut down both directions of the connection and close it."""
        if self._sock is None:
            return
        sock, self._sock = self._sock, None
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Peer already gone
            pass
        sock.close()


def run_client(config: ClientConfig, stdout_fd: int = 1) -> int:
    """Run one client session from configuration.

    Returns:
        0 after a session, 1 when the daemon could not be reached.
    """
    proxy = ClientProxy(
        socket_path=config.socket_path,
        local_echo=config.local_echo,
        stdout_fd=stdout_fd,
        poll_interval=config.poll_interval,
        read_size=config.read_size,
    )
    status = 0
    try:
        proxy.run()
    except ClientConnectError:
        status = 1
    finally:
        # Start the caller's prompt on a fresh line
        os.write(stdout_fd, b"\n")
    return status
