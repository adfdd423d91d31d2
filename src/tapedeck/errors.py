"""
Exception hierarchy for Tapedeck.

All Tapedeck exceptions inherit from TapedeckError, allowing callers to catch
all Tapedeck-specific exceptions with a single except clause.

Exception Categories:
    - InvalidSpecsError: Interception specs are malformed
    - AmbiguousSessionStateError: Recording and playback sessions overlap
    - ExhaustedCassetteError: Playback ran out of recorded calls
    - InvalidCassetteNameError: Cassette data does not name a cassette
    - StorageError: The cassette store could not serve a request

None of these are retried. A record/replay mismatch means the code under test
behaved differently from the recording, and that has to surface.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Spec errors: 1xxx
ERROR_SPECS_INVALID = 1001
ERROR_TARGET_NOT_FOUND = 1002

# Session errors: 2xxx
ERROR_SESSION_AMBIGUOUS = 2001

# Playback errors: 3xxx
ERROR_PLAYBACK_EXHAUSTED = 3001
ERROR_PLAYBACK_ORDER_SCOPE = 3002

# Cassette errors: 4xxx
ERROR_CASSETTE_INVALID_NAME = 4001
ERROR_CASSETTE_NOT_FOUND = 4002


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class TapedeckError(Exception):
    """
    Base exception for all Tapedeck errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Spec Errors
# =============================================================================


@dataclass
class InvalidSpecsError(TapedeckError):
    """
    Raised when the specs given to a session cannot be compiled.

    Reported before any target is wrapped.

    Attributes:
        specs: repr of the offending value
        index: Position of the bad spec in the collection (if applicable)
        reason: What was wrong with it
    """

    specs: str = ""
    index: int | None = None
    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            if self.reason:
                self.message = f"Invalid interception specs: {self.reason}"
            else:
                self.message = (
                    f"Expected a collection of interception specs, got {self.specs}"
                )
        if self.code == 0:
            self.code = ERROR_SPECS_INVALID
        self.context.update({
            "specs": self.specs,
            "index": self.index,
            "reason": self.reason,
        })


@dataclass
class TargetNotFoundError(InvalidSpecsError):
    """Raised when a spec names a target that is not registered."""

    target: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Target not found: {self.target}"
        if self.code == 0:
            self.code = ERROR_TARGET_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Decorate the function with @interceptable or pass the Target itself"
        super().__post_init__()
        self.context["target"] = self.target


# =============================================================================
# Session Errors
# =============================================================================


@dataclass
class AmbiguousSessionStateError(TapedeckError):
    """
    Raised when the current session mode is queried while sessions in
    different modes are active at the same time.

    Attributes:
        modes: The distinct modes that were registered
    """

    modes: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Tapedeck is in multiple states ({', '.join(self.modes)}); "
                "are you running several tests concurrently?"
            )
        if self.code == 0:
            self.code = ERROR_SESSION_AMBIGUOUS
        if not self.suggestion:
            self.suggestion = "Do not overlap recording and playback sessions"
        self.context["modes"] = self.modes


# =============================================================================
# Playback Errors
# =============================================================================


@dataclass
class PlaybackError(TapedeckError):
    """Base class for errors raised while answering calls from a cassette."""


@dataclass
class ExhaustedCassetteError(PlaybackError):
    """
    Raised when playback sees a call with no recorded entry left.

    Attributes:
        target_id: Fully qualified name of the called target
        arg_key: The arg key that found no remaining entry
    """

    target_id: str = ""
    arg_key: Any = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"No more recorded calls to {self.target_id}!"
        if self.code == 0:
            self.code = ERROR_PLAYBACK_EXHAUSTED
        if not self.suggestion:
            self.suggestion = "Delete the cassette to re-record, or record with accumulate=True"
        self.context.update({
            "target_id": self.target_id,
            "arg_key": self.arg_key,
        })


@dataclass
class UnsupportedOrderScopeError(PlaybackError):
    """Raised when a matcher is requested for an order scope that is not implemented."""

    order_scope: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unsupported order scope: {self.order_scope}"
        if self.code == 0:
            self.code = ERROR_PLAYBACK_ORDER_SCOPE
        if not self.suggestion:
            self.suggestion = "Use the 'key' order scope"
        self.context["order_scope"] = self.order_scope


# =============================================================================
# Cassette Errors
# =============================================================================


@dataclass
class InvalidCassetteNameError(TapedeckError):
    """Raised when cassette data is neither a string nor an enum member."""

    invalid: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"No valid cassette name given: {self.invalid}"
        if self.code == 0:
            self.code = ERROR_CASSETTE_INVALID_NAME
        if not self.suggestion:
            self.suggestion = "Pass a string, an Enum member, or a mapping with a 'name' key"
        self.context["invalid"] = self.invalid


@dataclass
class StorageError(TapedeckError):
    """
    Base class for cassette store errors.

    Attributes:
        operation: The store operation that failed (e.g., "read", "write")
        name: Name of the cassette involved
    """

    operation: str = ""
    name: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "operation": self.operation,
            "name": self.name,
        })


@dataclass
class CassetteNotFoundError(StorageError):
    """Raised when a store is asked to read a cassette it does not have."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cassette not found: {self.name}"
        if self.code == 0:
            self.code = ERROR_CASSETTE_NOT_FOUND
        if not self.operation:
            self.operation = "read"
        super().__post_init__()
