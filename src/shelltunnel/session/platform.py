"""Platform adaptation for pseudo-terminal sessions.

Allocating a pty pair, making a pty slave the controlling terminal of
the calling process and replacing the process image are OS-specific.
They live behind :class:`PtyPlatform` so the session code above stays
platform-neutral.

The rendezvous socket path and the shell command line are selected per
platform here and are not configurable by connecting clients.
"""

from __future__ import annotations

import fcntl
import logging
import os
import sys
import termios
from abc import ABC, abstractmethod
from typing import NoReturn, Sequence

logger = logging.getLogger(__name__)

IS_ANDROID = sys.platform == "android" or hasattr(sys, "getandroidapilevel")

if IS_ANDROID:
    DEFAULT_SOCKET_PATH = "/data/misc/shell-tunnel-socket"
    DEFAULT_SHELL_ARGV: tuple[str, ...] = ("/system/bin/sh", "-i")
else:
    DEFAULT_SOCKET_PATH = "/tmp/shell-tunnel-socket"
    DEFAULT_SHELL_ARGV = ("/bin/bash", "-i")


class PtyPlatform(ABC):
    """OS primitives needed to run a shell on a pseudo-terminal."""

    @abstractmethod
    def open_pair(self) -> tuple[int, int]:
        """Allocate a pty pair.

        Returns:
            ``(master_fd, slave_fd)``.

        Raises:
            OSError: If no pseudo-terminal is available.
        """
        ...

    @abstractmethod
    def make_controlling_terminal(self, fd: int) -> None:
        """Make the terminal behind ``fd`` the caller's controlling terminal.

        The caller must already be a session leader without a
        controlling terminal.
        """
        ...

    @abstractmethod
    def exec_shell(self, argv: Sequence[str]) -> NoReturn:
        """Replace the current process image with ``argv``."""
        ...


class PosixPtyPlatform(PtyPlatform):
    """Linux / BSD / Android implementation on top of ``os`` and ``ioctl``."""

    def open_pair(self) -> tuple[int, int]:
        return os.openpty()

    def make_controlling_terminal(self, fd: int) -> None:
        fcntl.ioctl(fd, termios.TIOCSCTTY, 0)

    def exec_shell(self, argv: Sequence[str]) -> NoReturn:
        os.execvp(argv[0], list(argv))


def default_platform() -> PtyPlatform:
    return PosixPtyPlatform()
