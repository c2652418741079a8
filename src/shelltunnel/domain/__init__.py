"""Domain models for shelltunnel.

Value objects describing how a byte relay ended. All models use
Pydantic v2 for validation and serialization.
"""

from shelltunnel.domain.models import (
    RelayOutcome,
    RelayResult,
    RelaySide,
    RelayStage,
)

__all__ = [
    "RelayOutcome",
    "RelayResult",
    "RelaySide",
    "RelayStage",
]
