"""
Session state for Tapedeck.

Two pieces of state live here:

- The session table: a process-wide record of which cassette sessions are
  active and in what mode. Shared code asks it "am I recording or replaying?".
  Several sessions in the same mode may overlap (parallel recordings on
  different threads); a recording overlapping a playback is a usage error
  and querying the mode then raises AmbiguousSessionStateError.
- The recording flag: whether a call reaching a recording wrapper should be
  captured. It is a ContextVar so that suppressing nested captures in one
  thread never affects another thread. It defaults to enabled, so work handed
  to fresh threads during a recording (e.g. server handlers) is captured.

The session table is advisory. No lock is held while a session body runs.
"""

import threading
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator

from tapedeck.errors import AmbiguousSessionStateError
from tapedeck.schema import SessionMode

_RECORDING: ContextVar[bool] = ContextVar("tapedeck_recording", default=True)


def is_recording() -> bool:
    """Whether calls in the current execution context should be captured."""
    return _RECORDING.get()


@contextmanager
def recording_enabled(flag: bool) -> Generator[None, None, None]:
    """Set the recording flag for the current context within the block."""
    token = _RECORDING.set(flag)
    try:
        yield
    finally:
        _RECORDING.reset(token)


class SessionStateTracker:
    """
    Table of active sessions keyed by an opaque token.

    Usage:
        tracker = SessionStateTracker()
        with tracker.session_state(SessionMode.RECORDING):
            assert tracker.current_state() == SessionMode.RECORDING
        assert tracker.current_state() is None
    """

    def __init__(self) -> None:
        self._states: dict[object, SessionMode] = {}
        self._lock = threading.Lock()

    def enter_state(self, token: object, mode: SessionMode) -> None:
        """Register a session under token."""
        with self._lock:
            self._states[token] = mode

    def exit_state(self, token: object) -> None:
        """Remove a session. Unknown tokens are ignored."""
        with self._lock:
            self._states.pop(token, None)

    def current_state(self) -> SessionMode | None:
        """
        Mode shared by all active sessions.

        Returns:
            None when no session is active, otherwise the single active mode

        Raises:
            AmbiguousSessionStateError: If sessions in different modes are active
        """
        with self._lock:
            modes = set(self._states.values())

        if not modes:
            return None
        if len(modes) == 1:
            return modes.pop()
        raise AmbiguousSessionStateError(
            modes=sorted(mode.value for mode in modes),
        )

    def active_sessions(self) -> int:
        """Number of sessions currently registered."""
        with self._lock:
            return len(self._states)

    @contextmanager
    def session_state(self, mode: SessionMode) -> Generator[object, None, None]:
        """Register a session for the duration of the block."""
        token = object()
        self.enter_state(token, mode)
        try:
            yield token
        finally:
            self.exit_state(token)


# Process-wide tracker used by the session entry points
default_tracker = SessionStateTracker()


def cassette_state() -> SessionMode | None:
    """
    While inside a cassette session, returns RECORDING or REPLAYING.
    Otherwise returns None.

    Raises:
        AmbiguousSessionStateError: If recording and playback sessions overlap
    """
    return default_tracker.current_state()
