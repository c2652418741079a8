"""Shared test fixtures for the shelltunnel test suite.

Provides short socket paths, pipe bookkeeping, a forked daemon running
a stub shell, and a helper for reading relayed output with a deadline.
"""

from __future__ import annotations

import os
import select
import shutil
import signal
import socket
import tempfile
import time
from pathlib import Path
from typing import Callable, Iterator, NamedTuple

import pytest

from shelltunnel.server.acceptor import ShellTunnelServer


def _fileno(obj: int | socket.socket) -> int:
    return obj if isinstance(obj, int) else obj.fileno()


def _read_until(source: int | socket.socket, needle: bytes, timeout: float = 10.0) -> bytes:
    """Read from ``source`` until ``needle`` shows up, EOF, or timeout."""
    fd = _fileno(source)
    buf = b""
    deadline = time.monotonic() + timeout
    while needle not in buf:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        readable, _, _ = select.select([fd], [], [], remaining)
        if not readable:
            break
        try:
            chunk = os.read(fd, 4096)
        except OSError:
            break
        if not chunk:
            break
        buf += chunk
    return buf


def _wait_for_exit(pid: int, timeout: float = 10.0) -> int | None:
    """Wait for a child process, returning its exit code or None on timeout."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        done, status = os.waitpid(pid, os.WNOHANG)
        if done:
            return os.waitstatus_to_exitcode(status)
        time.sleep(0.05)
    return None


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


@pytest.fixture
def short_tmp_dir() -> Iterator[Path]:
    """A temporary directory with a short path (AF_UNIX paths are limited)."""
    path = tempfile.mkdtemp(prefix="st-", dir="/tmp")
    yield Path(path)
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def socket_path(short_tmp_dir: Path) -> str:
    return str(short_tmp_dir / "sock")


# ---------------------------------------------------------------------------
# Descriptor helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def make_pipe() -> Iterator[Callable[[], tuple[int, int]]]:
    """Create pipes that are closed at teardown if the test did not."""
    fds: list[int] = []

    def _make() -> tuple[int, int]:
        r, w = os.pipe()
        fds.extend((r, w))
        return r, w

    yield _make
    for fd in fds:
        try:
            os.close(fd)
        except OSError:
            pass


@pytest.fixture
def read_until() -> Callable[..., bytes]:
    return _read_until


@pytest.fixture
def wait_for_exit() -> Callable[..., int | None]:
    return _wait_for_exit


# ---------------------------------------------------------------------------
# Forked daemon
# ---------------------------------------------------------------------------


class ServedDaemon(NamedTuple):
    """A daemon started by the `serve` fixture and its process id."""

    server: ShellTunnelServer
    pid: int


@pytest.fixture
def serve(socket_path: str) -> Iterator[Callable[..., ServedDaemon]]:
    """Start a ShellTunnelServer in a forked process.

    The socket is bound in the test process before forking, so clients
    can connect as soon as the factory returns. The child is terminated
    and the socket removed at teardown.
    """
    started: list[tuple[ShellTunnelServer, int]] = []

    def _serve(shell_argv: list[str], **kwargs) -> ServedDaemon:
        kwargs.setdefault("backlog", 4)
        kwargs.setdefault("poll_interval", 0.2)
        kwargs.setdefault("reap_timeout", 0.5)
        server = ShellTunnelServer(socket_path, shell_argv=shell_argv, **kwargs)
        server.bind()
        pid = os.fork()
        if pid == 0:
            try:
                server.serve_forever()
            finally:
                os._exit(1)
        started.append((server, pid))
        return ServedDaemon(server, pid)

    yield _serve
    for server, pid in started:
        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            pass
        os.waitpid(pid, 0)
        server.close()


@pytest.fixture
def connect(socket_path: str) -> Iterator[Callable[[], socket.socket]]:
    """Open client connections to the socket, closed at teardown."""
    clients: list[socket.socket] = []

    def _connect() -> socket.socket:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.connect(socket_path)
        clients.append(sock)
        return sock

    yield _connect
    for sock in clients:
        sock.close()
