"""Tests for the raw-mode terminal controller (real pseudo-terminals)."""

from __future__ import annotations

import os
import termios
from typing import Iterator
from unittest.mock import patch

import pytest

from shelltunnel.terminal.raw_mode import LFLAG, RawTerminal


@pytest.fixture
def tty_fd() -> Iterator[int]:
    """The slave side of a fresh pty, standing in for the user's terminal."""
    master, slave = os.openpty()
    yield slave
    os.close(slave)
    os.close(master)


class TestRawLflag:
    def test_echo_disabled_by_default(self) -> None:
        """Raw flags should clear ICANON and ECHO and keep the rest."""
        lflag = termios.ICANON | termios.ECHO | termios.ISIG
        raw = RawTerminal.raw_lflag(lflag, local_echo=False)
        assert not raw & termios.ICANON
        assert not raw & termios.ECHO
        assert raw & termios.ISIG

    def test_local_echo_keeps_echo(self) -> None:
        """Local echo should keep ECHO while clearing ICANON."""
        lflag = termios.ICANON | termios.ECHO
        raw = RawTerminal.raw_lflag(lflag, local_echo=True)
        assert not raw & termios.ICANON
        assert raw & termios.ECHO


class TestRawTerminal:
    def test_applies_raw_mode_and_restores(self, tty_fd: int) -> None:
        """RawTerminal should change only local flags and restore them."""
        before = termios.tcgetattr(tty_fd)

        with RawTerminal(tty_fd) as term:
            assert term.is_raw
            during = termios.tcgetattr(tty_fd)
            assert not during[LFLAG] & termios.ICANON
            assert not during[LFLAG] & termios.ECHO
            # Only the local flags change
            assert during[:LFLAG] == before[:LFLAG]

        assert not term.is_raw
        assert termios.tcgetattr(tty_fd) == before

    def test_local_echo_flag_is_honoured(self, tty_fd: int) -> None:
        """RawTerminal should keep ECHO when local echo is requested."""
        with RawTerminal(tty_fd, local_echo=True):
            during = termios.tcgetattr(tty_fd)
            assert not during[LFLAG] & termios.ICANON
            assert during[LFLAG] & termios.ECHO

    def test_restores_on_exception(self, tty_fd: int) -> None:
        """The terminal should be restored when the body raises."""
        before = termios.tcgetattr(tty_fd)

        with pytest.raises(RuntimeError):
            with RawTerminal(tty_fd):
                raise RuntimeError("relay blew up")

        assert termios.tcgetattr(tty_fd) == before

    def test_restore_happens_once(self, tty_fd: int) -> None:
        """A second restore should not touch the terminal."""
        term = RawTerminal(tty_fd)
        term.enter()
        term.restore()
        with patch("shelltunnel.terminal.raw_mode.termios.tcsetattr") as tcsetattr:
            term.restore()
        tcsetattr.assert_not_called()

    def test_snapshot_is_per_instance(self, tty_fd: int) -> None:
        """Each RawTerminal should own its snapshot."""
        first = RawTerminal(tty_fd)
        second = RawTerminal(tty_fd)
        with first:
            assert first.snapshot is not None
            assert second.snapshot is None

    def test_non_terminal_is_left_alone(self) -> None:
        """A non-terminal descriptor should be skipped, not fail."""
        r, w = os.pipe()
        try:
            with RawTerminal(r) as term:
                assert not term.is_raw
        finally:
            os.close(r)
            os.close(w)
