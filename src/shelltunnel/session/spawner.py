"""Shell session spawner.

Gives one channel connection a working interactive shell: allocates a
pseudo-terminal pair, starts the shell on the slave side as its
controlling terminal, and relays bytes between the connection and the
master side until either end goes away.
"""

from __future__ import annotations

import logging
import os
import signal
import time
from typing import NoReturn, Sequence

from shelltunnel.domain.models import RelayResult
from shelltunnel.relay.interchange import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_READ_SIZE,
    Descriptor,
    byte_interchange,
)
from shelltunnel.session.platform import DEFAULT_SHELL_ARGV, PtyPlatform, default_platform

logger = logging.getLogger(__name__)

# Seconds to wait for the shell to exit after its terminal hung up
DEFAULT_REAP_TIMEOUT = 2.0


class SessionError(Exception):
    """Raised when a shell session cannot be set up."""


class ShellSession:
    """One shell process attached to its own pseudo-terminal.

    The master side is owned by this object; the slave side belongs to
    the shell process only. Nothing is shared with other sessions.

    Usage::

        session = ShellSession()
        session.start()
        try:
            result = session.relay(conn)
        finally:
            session.close()
    """

    def __init__(
        self,
        shell_argv: Sequence[str] | None = None,
        platform: PtyPlatform | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        read_size: int = DEFAULT_READ_SIZE,
        reap_timeout: float = DEFAULT_REAP_TIMEOUT,
    ) -> None:
        self._argv = tuple(shell_argv or DEFAULT_SHELL_ARGV)
        self._platform = platform or default_platform()
        self._poll_interval = poll_interval
        self._read_size = read_size
        self._reap_timeout = reap_timeout
        self._master_fd: int | None = None
        self._pid: int | None = None
        self._exit_code: int | None = None

    @property
    def argv(self) -> tuple[str, ...]:
        return self._argv

    @property
    def pid(self) -> int | None:
        return self._pid

    @property
    def master_fd(self) -> int | None:
        return self._master_fd

    @property
    def exit_code(self) -> int | None:
        """Exit status of the shell, once it has been reaped."""
        return self._exit_code

    @property
    def is_running(self) -> bool:
        return self._pid is not None

    def start(self) -> None:
        """Allocate the pty pair and start the shell on its slave side.

        Raises:
            SessionError: If the pty pair or the process cannot be created.
        """
        if self._pid is not None:
            raise SessionError("Session already started")

        try:
            master_fd, slave_fd = self._platform.open_pair()
        except OSError as e:
            logger.error("could not open pseudo terminal: %s", e)
            raise SessionError(f"could not open pseudo terminal: {e}") from e

        try:
            pid = os.fork()
        except OSError as e:
            os.close(master_fd)
            os.close(slave_fd)
            logger.error("could not fork shell process: %s", e)
            raise SessionError(f"could not fork shell process: {e}") from e

        if pid == 0:
            # Child process
            os.close(master_fd)
            self._exec_child(slave_fd)

        # Parent process
        os.close(slave_fd)
        self._master_fd = master_fd
        self._pid = pid
        logger.info("Started shell %s (pid=%d)", " ".join(self._argv), pid)

    def _exec_child(self, slave_fd: int) -> NoReturn:
        """Become a session leader on the pty slave and exec the shell."""
        try:
            os.setsid()
            os.dup2(slave_fd, 0)
            os.dup2(slave_fd, 1)
            os.dup2(slave_fd, 2)
            self._platform.make_controlling_terminal(slave_fd)
            if slave_fd > 2:
                os.close(slave_fd)
            # Ignored dispositions survive exec; the shell expects defaults
            signal.signal(signal.SIGPIPE, signal.SIG_DFL)
            signal.signal(signal.SIGCHLD, signal.SIG_DFL)
            self._platform.exec_shell(self._argv)
        except OSError as e:
            logger.error("could not start shell %s: %s", self._argv[0], e)
        finally:
            os._exit(1)

    def relay(self, conn: Descriptor) -> RelayResult:
        """Relay between ``conn`` and the pty master until either side ends."""
        if self._master_fd is None:
            raise SessionError("Session is not started")
        return byte_interchange(
            conn,
            conn,
            self._master_fd,
            self._master_fd,
            poll_interval=self._poll_interval,
            read_size=self._read_size,
        )

    def close(self) -> int | None:
        """Release the pty master and reap the shell.

        Closing the master hangs up the shell's terminal. A shell that
        does not exit within the reap timeout is killed.

        Returns:
            The shell's exit code, or None if it was reaped elsewhere.
        """
        if self._master_fd is not None:
            try:
                os.close(self._master_fd)
            except OSError:
                pass
            self._master_fd = None

        if self._pid is not None:
            self._exit_code = self._reap(self._pid)
            logger.info("Shell pid=%d ended (code=%s)", self._pid, self._exit_code)
            self._pid = None
        return self._exit_code

    def _reap(self, pid: int) -> int | None:
        deadline = time.monotonic() + self._reap_timeout
        try:
            while True:
                done, status = os.waitpid(pid, os.WNOHANG)
                if done:
                    return os.waitstatus_to_exitcode(status)
                if time.monotonic() >= deadline:
                    break
                time.sleep(0.05)

            logger.warning("Shell pid=%d ignored hangup, killing it", pid)
            try:
                os.kill(pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
            _, status = os.waitpid(pid, 0)
            return os.waitstatus_to_exitcode(status)
        except ChildProcessError:
            return None


def spawn_shell(
    conn: Descriptor,
    shell_argv: Sequence[str] | None = None,
    platform: PtyPlatform | None = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    read_size: int = DEFAULT_READ_SIZE,
    reap_timeout: float = DEFAULT_REAP_TIMEOUT,
) -> RelayResult:
    """Run a complete shell session over ``conn``.

    Raises:
        SessionError: If the session could not be set up. The connection
            is left open for the caller to close.
    """
    session = ShellSession(
        shell_argv=shell_argv,
        platform=platform,
        poll_interval=poll_interval,
        read_size=read_size,
        reap_timeout=reap_timeout,
    )
    session.start()
    try:
        result = session.relay(conn)
    finally:
        session.close()
    logger.info("Session finished: %s", result.describe())
    return result
