"""Core domain models for the shelltunnel system.

The relay engine is the only component that reports structured results:
it tells its caller which path ended the session and why. Everything
else in the system is descriptors and processes.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class RelayOutcome(str, enum.Enum):
    """Why a relay stopped."""

    EOF = "eof"  # A read source reported end-of-stream
    ERROR = "error"  # A read or write failed


class RelaySide(str, enum.Enum):
    """Which of the two relay paths hit the terminating condition.

    Path ``a`` reads ``in_a`` and writes ``out_b``; path ``b`` reads
    ``in_b`` and writes ``out_a``.
    """

    A = "a"
    B = "b"


class RelayStage(str, enum.Enum):
    """Which half of a path failed."""

    READ = "read"
    WRITE = "write"


# ---------------------------------------------------------------------------
# Relay result
# ---------------------------------------------------------------------------


class RelayResult(BaseModel):
    """Terminating condition of one byte interchange run."""

    model_config = ConfigDict(frozen=True)

    outcome: RelayOutcome = Field(description="EOF or error")
    side: RelaySide | None = Field(
        default=None,
        description="Path that ended the relay (unset when no single path is at fault)",
    )
    stage: RelayStage | None = Field(
        default=None, description="Failing half of the path (errors only)"
    )
    error: str | None = Field(default=None, description="Error message (errors only)")
    bytes_a_to_b: int = Field(default=0, ge=0, description="Bytes relayed from in_a to out_b")
    bytes_b_to_a: int = Field(default=0, ge=0, description="Bytes relayed from in_b to out_a")

    @property
    def is_eof(self) -> bool:
        return self.outcome == RelayOutcome.EOF

    def describe(self) -> str:
        """One-line human-readable summary for log messages."""
        where = f" on side {self.side.value}" if self.side else ""
        if self.is_eof:
            return f"end of stream{where}"
        stage = self.stage.value if self.stage else "io"
        return f"{stage} error{where}: {self.error}"
