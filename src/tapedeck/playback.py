"""
Playback sessions.

A Playbacker answers "what did this call return when it was recorded?" by
consuming a cassette's calls in order. playback() runs a body with every
spec's target wrapped so that intercepted calls are answered by the
Playbacker instead of the real implementation.

Order scopes decide which calls must come back in their relative recorded
order:

    global   all calls come back in the order they were recorded
    target   calls to the same target come back in recorded order
    key      only calls sharing target and arg key keep their order

Only the key scope is implemented. It lets calls with different arguments
interleave freely, which is what concurrent code and unordered iteration
need, while repeated identical calls still replay in recorded order.
"""

import threading
from collections import defaultdict, deque
from collections.abc import Hashable, Mapping, Set
from typing import Any, Callable

import structlog

from tapedeck.errors import ExhaustedCassetteError, UnsupportedOrderScopeError
from tapedeck.schema import CapturedCall, Cassette, OrderScope, SessionMode
from tapedeck.specs import InterceptionSpec, compile_specs
from tapedeck.state import SessionStateTracker, default_tracker
from tapedeck.wrapper import build_wrapper, install_wrappers

logger = structlog.get_logger(__name__)


def freeze_key(key: Any) -> Hashable:
    """
    Normalize an arg key to a hashable value.

    Lists and tuples become tagged tuples, mappings and sets become tagged
    frozensets, recursively. Other values are tagged with their type, so
    1, 1.0 and True stay distinct keys and {"a": 1} never meets {("a", 1)}.
    A key that went through a store as a list matches the tuple produced
    when the call is replayed.

    Raises:
        TypeError: If the key contains an unhashable value of another type
    """
    if isinstance(key, (list, tuple)):
        return ("seq", tuple(freeze_key(item) for item in key))
    if isinstance(key, Mapping):
        return ("map", frozenset((freeze_key(k), freeze_key(v)) for k, v in key.items()))
    if isinstance(key, Set):
        return ("set", frozenset(freeze_key(item) for item in key))
    try:
        hash(key)
    except TypeError as e:
        msg = f"Arg key {key!r} is not hashable; supply an arg_key_fn returning a comparable value"
        raise TypeError(msg) from e
    return (type(key), key)


def _comparable(key: Any) -> Any:
    # Keys that cannot be frozen are matched by ==; only sequence types are unified.
    if isinstance(key, (list, tuple)):
        return tuple(_comparable(item) for item in key)
    if isinstance(key, Mapping):
        return {k: _comparable(v) for k, v in key.items()}
    return key


class Playbacker:
    """
    Stateful lookup of recorded return values, scoped per (target, arg key).

    Each lookup consumes the oldest remaining call recorded for its key.
    Hashable keys are bucketed by their frozen form. Keys that cannot be
    hashed (plain dataclasses, pydantic models) fall back to a linear scan
    comparing with ==.

    Usage:
        lookup = Playbacker(cassette)
        value = lookup("mymodule.fetch_rate", ("EUR",))
    """

    def __init__(self, cassette: Cassette) -> None:
        self._queues: dict[tuple[str, Hashable], deque[CapturedCall]] = defaultdict(deque)
        self._unhashable: list[tuple[str, Any, deque[CapturedCall]]] = []
        for call in cassette.calls:
            self._queue_for(call.target_id, call.arg_key, create=True).append(call)
        self._lock = threading.Lock()

    def _queue_for(
        self, target_id: str, arg_key: Any, create: bool = False
    ) -> deque[CapturedCall] | None:
        try:
            frozen = freeze_key(arg_key)
        except TypeError:
            comparable = _comparable(arg_key)
            for queued_target, queued_key, queue in self._unhashable:
                if queued_target == target_id and queued_key == comparable:
                    return queue
            if not create:
                return None
            queue = deque()
            self._unhashable.append((target_id, comparable, queue))
            return queue

        if create:
            return self._queues[(target_id, frozen)]
        return self._queues.get((target_id, frozen))

    def __call__(self, target_id: str, arg_key: Any) -> Any:
        """
        Return the next recorded value for this call.

        Raises:
            ExhaustedCassetteError: If no recorded call is left for the key
        """
        with self._lock:
            queue = self._queue_for(target_id, arg_key)
            call = queue.popleft() if queue else None

        if call is None:
            logger.warning("cassette_exhausted", target_id=target_id, arg_key=repr(arg_key))
            raise ExhaustedCassetteError(target_id=target_id, arg_key=arg_key)

        logger.debug("call_replayed", target_id=target_id)
        return call.return_value

    def remaining(self) -> int:
        """Number of recorded calls not yet replayed."""
        with self._lock:
            return sum(len(queue) for queue in self._queues.values()) + sum(
                len(queue) for _, _, queue in self._unhashable
            )

    def remaining_for(self, target_id: str, arg_key: Any) -> int:
        """Number of recorded calls left for one (target, arg key)."""
        with self._lock:
            queue = self._queue_for(target_id, arg_key)
            return len(queue) if queue else 0


def build_matcher(
    cassette: Cassette,
    order_scope: OrderScope | str = OrderScope.KEY,
) -> Playbacker:
    """
    Build the lookup function for a cassette.

    Raises:
        UnsupportedOrderScopeError: For scopes other than key
    """
    try:
        scope = OrderScope(order_scope)
    except ValueError:
        raise UnsupportedOrderScopeError(order_scope=str(order_scope)) from None

    if scope is not OrderScope.KEY:
        raise UnsupportedOrderScopeError(order_scope=scope.value)
    return Playbacker(cassette)


def playback(
    specs: Any,
    cassette: Cassette,
    body: Callable[[], Any],
    order_scope: OrderScope | str = OrderScope.KEY,
    tracker: SessionStateTracker | None = None,
) -> Any:
    """
    Run body with the specs' targets answered from cassette.

    Calls that fail a spec's recordable predicate have no cassette entries
    and go to the real implementation.

    Returns:
        The body's result

    Raises:
        InvalidSpecsError: If specs are invalid (before anything is wrapped)
        ExhaustedCassetteError: From the call site that ran out of recordings
    """
    compiled = compile_specs(specs)
    lookup = build_matcher(cassette, order_scope)
    if tracker is None:
        tracker = default_tracker

    def wrap(spec: InterceptionSpec, original: Callable[..., Any]) -> Callable[..., Any]:
        def intercept(args_star: tuple[Any, ...], original: Callable[..., Any]) -> Any:
            return lookup(spec.target_id, spec.arg_key_fn(*args_star))

        return build_wrapper(spec, original, intercept)

    with tracker.session_state(SessionMode.REPLAYING):
        with install_wrappers(compiled, wrap):
            return body()
