"""
Schema definitions for Tapedeck.

This module defines the Pydantic models that flow between the recorder,
the playback matcher and the cassette store:
- CapturedCall: One intercepted call and its (transformed) return value
- Cassette: The ordered calls of one recording session
- CassetteOptions: Which cassette to use and how to store it

Arg keys and return values are opaque to Tapedeck, so they are typed as Any
and kept exactly as the recorder produced them.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================


class SessionMode(str, Enum):
    """Mode of an active cassette session."""

    RECORDING = "recording"
    REPLAYING = "replaying"


class OrderScope(str, Enum):
    """
    Which recorded calls must be replayed in their relative recorded order.

    GLOBAL: all calls, regardless of target or arguments
    TARGET: all calls to the same target
    KEY: all calls sharing target and arg key (the only scope implemented)
    """

    GLOBAL = "global"
    TARGET = "target"
    KEY = "key"


# =============================================================================
# Cassette Models
# =============================================================================


class CapturedCall(BaseModel):
    """
    A single call captured while recording.

    Attributes:
        target_id: Fully qualified name of the intercepted target
        arg_key: Comparable key derived from the canonical arguments
        return_value: The return value after the spec's return transformer
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    target_id: str = Field(..., min_length=1)
    arg_key: Any = None
    return_value: Any = None


class Cassette(BaseModel):
    """
    The calls captured by one recording session, in the order they happened.

    Attributes:
        calls: Captured calls in recording order
        recorded_at: When the recording session started (UTC)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    calls: list[CapturedCall] = Field(default_factory=list)
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def calls_to(self, target_id: str) -> list[CapturedCall]:
        """Calls recorded for one target, in recording order."""
        return [call for call in self.calls if call.target_id == target_id]


class CassetteOptions(BaseModel):
    """
    Resolved cassette data for a cassette-scoped run.

    Attributes:
        name: Name the store knows the cassette by
        serialization: Store-specific settings, passed through untouched
        accumulate: Record new calls on top of an existing cassette
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    serialization: dict[str, Any] = Field(default_factory=dict)
    accumulate: bool = False
