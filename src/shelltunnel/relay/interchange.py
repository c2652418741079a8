"""Bidirectional byte relay between two descriptor pairs.

::

    in_a  --\\ /-- in_b
             X
    out_a <-/ \\-> out_b

Bytes read from ``in_a`` are written to ``out_b`` and bytes read from
``in_b`` are written to ``out_a``. The relay knows nothing about
terminals, sockets or processes; it only needs file descriptors.
"""

from __future__ import annotations

import errno
import logging
import os
import select
from typing import Callable, Protocol, Union

from shelltunnel.domain.models import RelayOutcome, RelayResult, RelaySide, RelayStage

logger = logging.getLogger(__name__)

# Idle wake-up interval of the readiness wait (seconds)
DEFAULT_POLL_INTERVAL = 5.0
# Maximum bytes moved per readiness event and direction
DEFAULT_READ_SIZE = 1024


class HasFileno(Protocol):
    def fileno(self) -> int: ...


Descriptor = Union[int, HasFileno]


def _fileno(obj: Descriptor) -> int:
    return obj if isinstance(obj, int) else obj.fileno()


def _read(fd: int, size: int) -> bytes:
    try:
        return os.read(fd, size)
    except OSError as e:
        # Linux reports a pty master whose slave side is gone as EIO
        if e.errno == errno.EIO:
            return b""
        raise


class _Direction:
    """One relay path and the chunk it still owes its sink."""

    def __init__(self, src: int, dst: int, side: RelaySide) -> None:
        self.src = src
        self.dst = dst
        self.side = side
        self.pending = memoryview(b"")
        self.total = 0

    def flush(self) -> None:
        """Write as much of the pending chunk as the sink accepts right now.

        Raises:
            OSError: If the write fails or makes no progress.
        """
        while self.pending:
            try:
                written = os.write(self.dst, self.pending)
            except BlockingIOError:
                return
            if written == 0:
                raise OSError(errno.EIO, "write made no progress")
            self.pending = self.pending[written:]
            self.total += written


def _restore_blocking(saved: dict[int, bool]) -> None:
    for fd, blocking in saved.items():
        try:
            os.set_blocking(fd, blocking)
        except OSError as e:
            logger.debug("Could not restore blocking mode of fd %d: %s", fd, e)


def byte_interchange(
    in_a: Descriptor,
    out_a: Descriptor,
    in_b: Descriptor,
    out_b: Descriptor,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    read_size: int = DEFAULT_READ_SIZE,
) -> RelayResult:
    """Relay bytes in both directions until either path ends.

    End-of-stream on either read source, or an error on any read or
    write, stops both directions. The idle timeout only re-arms the
    readiness wait; it never ends the relay.

    All four descriptors are switched to non-blocking mode for the
    duration of the call and put back the way they were afterwards, so
    the relay only ever waits inside ``select``. A path whose sink is
    full holds at most one read chunk and stops reading its source until
    the chunk is written; the other path keeps flowing meanwhile.

    Args:
        in_a: Read source of path ``a``.
        out_a: Write sink of path ``b``.
        in_b: Read source of path ``b``.
        out_b: Write sink of path ``a``.
        poll_interval: Seconds to wait for readiness before re-polling.
        read_size: Maximum bytes transferred per readiness event.

    Returns:
        The terminating condition and the byte totals of each direction.
    """
    fd_in_a, fd_out_a = _fileno(in_a), _fileno(out_a)
    fd_in_b, fd_out_b = _fileno(in_b), _fileno(out_b)

    directions = (
        _Direction(fd_in_a, fd_out_b, RelaySide.A),
        _Direction(fd_in_b, fd_out_a, RelaySide.B),
    )

    def finish(
        outcome: RelayOutcome,
        side: RelaySide | None,
        stage: RelayStage | None = None,
        error: str | None = None,
    ) -> RelayResult:
        result = RelayResult(
            outcome=outcome,
            side=side,
            stage=stage,
            error=error,
            bytes_a_to_b=directions[0].total,
            bytes_b_to_a=directions[1].total,
        )
        if result.is_eof:
            logger.debug("Relay finished: %s", result.describe())
        else:
            logger.warning("Relay failed: %s", result.describe())
        return result

    logger.debug(
        "Relay started: a=(%d -> %d) b=(%d -> %d)",
        fd_in_a, fd_out_b, fd_in_b, fd_out_a,
    )

    saved: dict[int, bool] = {}
    try:
        for d in directions:
            for fd, stage in ((d.src, RelayStage.READ), (d.dst, RelayStage.WRITE)):
                if fd in saved:
                    continue
                try:
                    saved[fd] = os.get_blocking(fd)
                    os.set_blocking(fd, False)
                except OSError as e:
                    return finish(RelayOutcome.ERROR, d.side, stage, str(e))
        return _pump(directions, poll_interval, read_size, finish)
    finally:
        _restore_blocking(saved)


def _pump(
    directions: tuple[_Direction, _Direction],
    poll_interval: float,
    read_size: int,
    finish: Callable[..., RelayResult],
) -> RelayResult:
    while True:
        rlist = [d.src for d in directions if not d.pending]
        wlist = [d.dst for d in directions if d.pending]
        try:
            readable, writable, _ = select.select(rlist, wlist, [], poll_interval)
        except (OSError, ValueError) as e:
            return finish(RelayOutcome.ERROR, None, None, str(e))

        if not readable and not writable:
            logger.debug("Relay idle for %.1fs", poll_interval)
            continue

        for d in directions:
            if d.pending:
                if d.dst not in writable:
                    continue
            else:
                if d.src not in readable:
                    continue
                try:
                    data = _read(d.src, read_size)
                except BlockingIOError:
                    continue
                except OSError as e:
                    return finish(RelayOutcome.ERROR, d.side, RelayStage.READ, str(e))
                if not data:
                    return finish(RelayOutcome.EOF, d.side)
                d.pending = memoryview(data)

            try:
                d.flush()
            except OSError as e:
                return finish(RelayOutcome.ERROR, d.side, RelayStage.WRITE, str(e))
