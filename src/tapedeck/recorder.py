"""
Recording sessions.

record() runs a body with every spec's target wrapped so that intercepted
calls execute for real and their results are captured, in order, into a
Cassette.

While a recorded call executes, recording is switched off in that call's
execution context. Calls to other intercepted targets made while computing
the result are implementation details of the outer call and are not captured
on their own; replaying the outer call never executes them.

Each recording session marks its execution context with its Recorder for
the targets it wraps. When sessions on different threads wrap the same
target, a call is captured into the session of the context that made it,
whichever wrapper it went through. Threads started without a copy of that
context capture into the session whose wrapper is currently installed.
"""

import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any, Callable, Generator

import structlog

from tapedeck.schema import CapturedCall, Cassette, SessionMode
from tapedeck.specs import InterceptionSpec, compile_specs
from tapedeck.state import SessionStateTracker, default_tracker, is_recording, recording_enabled
from tapedeck.targets import Target
from tapedeck.wrapper import build_wrapper, install_wrappers

logger = structlog.get_logger(__name__)

# Target -> Recorder of the innermost recording session in this context that wraps it.
_RECORDERS: ContextVar[dict[Target, "Recorder"]] = ContextVar("tapedeck_recorders", default={})


class Recorder:
    """
    Thread-safe, append-only sequence of captured calls.

    Attributes:
        recorded_at: When this recording started (UTC)
    """

    def __init__(self, seed: Cassette | None = None) -> None:
        """
        Args:
            seed: Existing cassette whose calls are kept ahead of new ones
        """
        self._calls: list[CapturedCall] = list(seed.calls) if seed is not None else []
        self._lock = threading.Lock()
        self.recorded_at = datetime.now(UTC)

    def capture(self, call: CapturedCall) -> None:
        """Append a call; the append order is the replay order."""
        with self._lock:
            self._calls.append(call)

    @property
    def calls(self) -> list[CapturedCall]:
        with self._lock:
            return list(self._calls)

    def cassette(self) -> Cassette:
        """Snapshot the captured calls as a Cassette."""
        return Cassette(calls=self.calls, recorded_at=self.recorded_at)

    @contextmanager
    def active(self, specs: list[InterceptionSpec]) -> Generator["Recorder", None, None]:
        """Capture calls to the specs' targets made from the current context into this recorder."""
        recorders = dict(_RECORDERS.get())
        recorders.update((spec.target, self) for spec in specs)
        token = _RECORDERS.set(recorders)
        try:
            yield self
        finally:
            _RECORDERS.reset(token)

    def wrap(self, spec: InterceptionSpec, original: Callable[..., Any]) -> Callable[..., Any]:
        """Build a recording wrapper for one spec."""

        def intercept(args_star: tuple[Any, ...], original: Callable[..., Any]) -> Any:
            recorder = _RECORDERS.get().get(spec.target, self)
            with recording_enabled(False):
                result = spec.return_transformer(original(*args_star))
            recorder.capture(
                CapturedCall(
                    target_id=spec.target_id,
                    arg_key=spec.arg_key_fn(*args_star),
                    return_value=result,
                )
            )
            logger.debug("call_recorded", target_id=spec.target_id)
            return result

        return build_wrapper(spec, original, intercept, active=is_recording)


def record(
    specs: Any,
    body: Callable[[], Any],
    seed: Cassette | None = None,
    tracker: SessionStateTracker | None = None,
) -> tuple[Any, Cassette]:
    """
    Run body with the specs' targets recorded.

    Sessions overlapping on the same target from different threads each
    capture their own context's calls. Targets are still restored in the
    order the sessions finish, so a session that outlives one started after
    it can lose its wrapper early; keep such sessions nested in time.

    Args:
        specs: Interception specs (compiled or not)
        body: Zero-argument callable to run
        seed: Cassette to accumulate onto
        tracker: Session table to register in (defaults to the process-wide one)

    Returns:
        (body result, recorded cassette)

    Raises:
        InvalidSpecsError: If specs are invalid (before anything is wrapped)
    """
    compiled = compile_specs(specs)
    if tracker is None:
        tracker = default_tracker

    recorder = Recorder(seed)
    with recording_enabled(True), recorder.active(compiled):
        with tracker.session_state(SessionMode.RECORDING), install_wrappers(compiled, recorder.wrap):
            result = body()

    return result, recorder.cassette()
