"""Raw-mode switching for the client's own terminal.

The client must pass every keystroke straight through to the remote
shell, so canonical line buffering is turned off for the duration of a
session. Local echo is turned off too unless asked for, because the
remote shell echoes what it receives.
"""

from __future__ import annotations

import logging
import sys
import termios
from types import TracebackType

logger = logging.getLogger(__name__)

# Index of the local-mode flags in a termios attribute list
LFLAG = 3


class RawTerminal:
    """Snapshot a terminal's settings, switch to raw, restore on exit.

    The snapshot belongs to this instance and is restored exactly once,
    whichever way the ``with`` block is left::

        with RawTerminal(sys.stdin.fileno(), local_echo=False):
            relay(...)
    """

    def __init__(self, fd: int | None = None, local_echo: bool = False) -> None:
        self._fd = sys.stdin.fileno() if fd is None else fd
        self._local_echo = local_echo
        self._snapshot: list | None = None

    @property
    def fd(self) -> int:
        return self._fd

    @property
    def local_echo(self) -> bool:
        return self._local_echo

    @property
    def is_raw(self) -> bool:
        return self._snapshot is not None

    @property
    def snapshot(self) -> list | None:
        """Settings captured before raw mode was applied."""
        return self._snapshot

    @staticmethod
    def raw_lflag(lflag: int, local_echo: bool) -> int:
        """Local-mode flags with canonical input (and maybe echo) disabled."""
        mask = termios.ICANON
        if not local_echo:
            mask |= termios.ECHO
        return lflag & ~mask

    def enter(self) -> None:
        """Capture the current settings and apply raw mode."""
        if self._snapshot is not None:
            return
        try:
            snapshot = termios.tcgetattr(self._fd)
        except termios.error as e:
            logger.warning("fd %d is not a terminal, leaving it untouched: %s", self._fd, e)
            return

        new_state = list(snapshot)
        new_state[LFLAG] = self.raw_lflag(snapshot[LFLAG], self._local_echo)
        termios.tcsetattr(self._fd, termios.TCSADRAIN, new_state)
        self._snapshot = snapshot
        logger.debug("Terminal fd %d switched to raw (local_echo=%s)", self._fd, self._local_echo)

    def restore(self) -> None:
        """Put the captured settings back. Safe to call more than once."""
        snapshot, self._snapshot = self._snapshot, None
        if snapshot is None:
            return
        termios.tcsetattr(self._fd, termios.TCSADRAIN, snapshot)
        logger.debug("Terminal fd %d restored", self._fd)

    def __enter__(self) -> RawTerminal:
        self.enter()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.restore()
