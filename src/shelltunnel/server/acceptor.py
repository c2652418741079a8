"""UNIX socket acceptor for shell sessions.

Binds the rendezvous socket, opens it to every local user, and forks
one worker process per accepted connection. The worker runs a shell
session and exits; the listening process goes straight back to
accepting.

Trust is delegated to local access control on the socket path. The
daemon itself performs no authentication.
"""

from __future__ import annotations

import logging
import os
import signal
import socket
import stat
from types import TracebackType
from typing import NoReturn, Sequence

from shelltunnel.relay.interchange import DEFAULT_POLL_INTERVAL, DEFAULT_READ_SIZE
from shelltunnel.session.platform import DEFAULT_SOCKET_PATH, PtyPlatform
from shelltunnel.session.spawner import DEFAULT_REAP_TIMEOUT, SessionError, spawn_shell

logger = logging.getLogger(__name__)

DEFAULT_BACKLOG = 1
DEFAULT_SOCKET_MODE = 0o666
# Seconds to wait when checking whether a daemon still listens on a socket
LIVENESS_TIMEOUT = 1.0


class AcceptorError(Exception):
    """Raised when the listening socket cannot be set up or accept fails."""


def _is_listening(path: str) -> bool:
    """Whether a process accepts connections on the socket at ``path``."""
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.settimeout(LIVENESS_TIMEOUT)
    try:
        sock.connect(path)
    except (ConnectionRefusedError, FileNotFoundError):
        return False
    except (BlockingIOError, TimeoutError):
        # Backlog full: somebody is listening, just busy
        return True
    except OSError as e:
        raise AcceptorError(f"could not check socket {path}: {e}") from e
    finally:
        sock.close()
    return True


def remove_stale_socket(path: str) -> bool:
    """Remove a socket entry left behind by a previous run.

    A socket is stale when connecting to it is refused. One that accepts
    the connection belongs to a running daemon and is left alone.

    Returns:
        True if an entry was removed, False if there was none.

    Raises:
        AcceptorError: If the path exists but is not a socket, or if a
            live daemon is listening on it.
    """
    try:
        mode = os.lstat(path).st_mode
    except FileNotFoundError:
        return False
    if not stat.S_ISSOCK(mode):
        raise AcceptorError(f"{path} exists and is not a socket, refusing to remove it")
    if _is_listening(path):
        raise AcceptorError(f"another daemon is already listening on {path}")
    try:
        os.unlink(path)
    except FileNotFoundError:
        return False
    logger.info("Removed stale socket %s", path)
    return True


class ShellTunnelServer:
    """Serves shell sessions from a single UNIX socket.

    Usage::

        with ShellTunnelServer("/tmp/shell-tunnel-socket") as server:
            server.serve_forever()
    """

    def __init__(
        self,
        socket_path: str = DEFAULT_SOCKET_PATH,
        backlog: int = DEFAULT_BACKLOG,
        socket_mode: int = DEFAULT_SOCKET_MODE,
        shell_argv: Sequence[str] | None = None,
        platform: PtyPlatform | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        read_size: int = DEFAULT_READ_SIZE,
        reap_timeout: float = DEFAULT_REAP_TIMEOUT,
    ) -> None:
        self._socket_path = str(socket_path)
        self._backlog = backlog
        self._socket_mode = socket_mode
        self._shell_argv = shell_argv
        self._platform = platform
        self._poll_interval = poll_interval
        self._read_size = read_size
        self._reap_timeout = reap_timeout
        self._sock: socket.socket | None = None
        self._owns_path = False
        self._sessions_started = 0

    @property
    def socket_path(self) -> str:
        return self._socket_path

    @property
    def is_listening(self) -> bool:
        return self._sock is not None

    @property
    def sessions_started(self) -> int:
        """Number of workers forked by this process."""
        return self._sessions_started

    def bind(self) -> None:
        """Bind, listen and open the socket to all local users.

        Raises:
            AcceptorError: If any step fails, e.g. another instance
                already listens on the path.
        """
        if self._sock is not None:
            return

        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.bind(self._socket_path)
        except OSError as e:
            sock.close()
            logger.error("could not bind to socket %s: %s", self._socket_path, e)
            raise AcceptorError(f"could not bind to socket {self._socket_path}: {e}") from e

        self._sock = sock
        self._owns_path = True
        try:
            sock.listen(self._backlog)
            os.chmod(self._socket_path, self._socket_mode)
        except OSError as e:
            logger.error("could not set up socket %s: %s", self._socket_path, e)
            self.close()
            raise AcceptorError(f"could not set up socket {self._socket_path}: {e}") from e

        logger.info(
            "Listening on %s (backlog=%d, mode=%o)",
            self._socket_path, self._backlog, self._socket_mode,
        )

    def serve_forever(self) -> NoReturn:
        """Accept connections until accepting fails.

        Each connection is handed to a forked worker. Finished workers
        are reaped automatically.

        Raises:
            AcceptorError: When bind or accept fails. The socket is
                closed and its path removed before raising.
        """
        self.bind()
        signal.signal(signal.SIGCHLD, signal.SIG_IGN)
        try:
            while True:
                try:
                    conn, _ = self._sock.accept()
                except OSError as e:
                    logger.error("could not accept connection: %s", e)
                    raise AcceptorError(f"could not accept connection: {e}") from e
                self._dispatch(conn)
        finally:
            self.close()

    def _dispatch(self, conn: socket.socket) -> None:
        try:
            pid = os.fork()
        except OSError as e:
            logger.error("could not fork worker process: %s", e)
            conn.close()
            return

        if pid == 0:
            self._run_worker(conn)

        self._sessions_started += 1
        conn.close()
        logger.info("Accepted connection, worker pid=%d", pid)

    def _run_worker(self, conn: socket.socket) -> NoReturn:
        """Body of a forked worker. Never returns into the accept loop."""
        status = 0
        try:
            self._release_listener()
            signal.signal(signal.SIGCHLD, signal.SIG_DFL)
            spawn_shell(
                conn,
                shell_argv=self._shell_argv,
                platform=self._platform,
                poll_interval=self._poll_interval,
                read_size=self._read_size,
                reap_timeout=self._reap_timeout,
            )
        except SessionError as e:
            logger.error("Session aborted: %s", e)
            status = 1
        except Exception:
            logger.exception("Unexpected error in session worker")
            status = 1
        finally:
            conn.close()
            os._exit(status)

    def _release_listener(self) -> None:
        """Close the listening socket without removing its path."""
        if self._sock is not None:
            self._sock.close()
            self._sock = None
        self._owns_path = False

    def close(self) -> None:
        """Stop listening and remove the socket path if this instance made it."""
        owned = self._owns_path
        self._release_listener()
        if owned:
            try:
                os.unlink(self._socket_path)
            except FileNotFoundError:
                pass
            logger.info("Stopped listening on %s", self._socket_path)

    def __enter__(self) -> ShellTunnelServer:
        self.bind()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
