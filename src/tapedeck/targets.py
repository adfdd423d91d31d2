"""
Interceptable call targets for Tapedeck.

Tapedeck never rebinds module globals. Code under test calls a Target, a
small reference cell that forwards to its current implementation, and a
session swaps that implementation for the session's lifetime.

Design:
    - Target: callable indirection with install/restore/override
    - TargetRegistry: lookup of targets by fully qualified name
    - Single global registry (default_registry) for convenience
    - Support for multiple registries for testing/isolation

Usage:
    from tapedeck.targets import interceptable

    @interceptable()
    def fetch_rate(currency: str) -> float:
        ...

    fetch_rate("EUR")           # calls the real function
    fetch_rate.target_id        # "mymodule.fetch_rate"

    class RatesClient:
        @interceptable()
        def fetch(self, currency: str) -> float:
            ...

    RatesClient().fetch("EUR")  # methods bind self as the first argument
"""

import functools
import threading
import types
from contextlib import contextmanager
from typing import Any, Callable, Generator, Iterator

from tapedeck.errors import TargetNotFoundError


def qualified_name(func: Callable[..., Any]) -> str:
    """Return the module-qualified name of a callable."""
    module = getattr(func, "__module__", None) or "<unknown>"
    name = getattr(func, "__qualname__", None) or getattr(func, "__name__", None)
    if name is None:
        name = repr(func)
    return f"{module}.{name}"


class Target:
    """
    A callable whose implementation can be swapped for the duration of a session.

    Calling a Target calls its current implementation. The function metadata
    (__name__, __doc__, __module__, __qualname__, __wrapped__) is copied from
    the original so introspection behaves as for the plain function.

    Attributes:
        target_id: Stable identifier used in match keys and diagnostics
        original: The callable the target was created with
    """

    def __init__(self, func: Callable[..., Any], target_id: str | None = None) -> None:
        if not callable(func):
            msg = f"Cannot intercept non-callable {func!r}"
            raise TypeError(msg)
        functools.update_wrapper(self, func)
        self.target_id = target_id or qualified_name(func)
        self.original = func
        self._impl = func
        self._lock = threading.Lock()

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._impl(*args, **kwargs)

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        # Decorated methods bind like plain functions; self becomes the first argument.
        if instance is None:
            return self
        return types.MethodType(self, instance)

    @property
    def impl(self) -> Callable[..., Any]:
        """The implementation calls are currently forwarded to."""
        return self._impl

    def install(self, impl: Callable[..., Any]) -> Callable[..., Any]:
        """
        Forward calls to impl.

        Returns:
            The implementation that was active before, for restore()
        """
        with self._lock:
            previous = self._impl
            self._impl = impl
        return previous

    def restore(self, previous: Callable[..., Any]) -> None:
        """Put back an implementation returned by install()."""
        with self._lock:
            self._impl = previous

    @contextmanager
    def override(self, impl: Callable[..., Any]) -> Generator[Callable[..., Any], None, None]:
        """Install impl for the duration of the block, restoring on every exit path."""
        previous = self.install(impl)
        try:
            yield previous
        finally:
            self.restore(previous)

    @property
    def is_overridden(self) -> bool:
        return self._impl is not self.original

    def __repr__(self) -> str:
        return f"<Target: {self.target_id}>"


class TargetRegistry:
    """
    Registry for looking up targets by name.

    Attributes:
        _targets: Internal mapping of target ids to targets
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._targets: dict[str, Target] = {}
        self._lock = threading.Lock()

    def register(self, target: Target) -> None:
        """
        Register a target under its target_id.

        Re-registering a name replaces the previous target.

        Raises:
            ValueError: If target is None or has an empty id
        """
        if target is None:
            msg = "Cannot register None as a target"
            raise ValueError(msg)
        if not target.target_id:
            msg = "Target must have a non-empty target_id"
            raise ValueError(msg)

        with self._lock:
            self._targets[target.target_id] = target

    def get(self, name: str) -> Target:
        """
        Look up a target by name.

        Raises:
            TargetNotFoundError: If no target with that name is registered
        """
        target = self._targets.get(name)
        if target is None:
            raise TargetNotFoundError(target=name)
        return target

    def get_optional(self, name: str) -> Target | None:
        """Look up a target by name, returning None if not found."""
        return self._targets.get(name)

    def has(self, name: str) -> bool:
        return name in self._targets

    def unregister(self, name: str) -> bool:
        """
        Remove a target from the registry.

        Returns:
            True if the target was removed, False if it wasn't registered
        """
        with self._lock:
            return self._targets.pop(name, None) is not None

    def clear(self) -> None:
        """Remove all targets from the registry."""
        with self._lock:
            self._targets.clear()

    def list_targets(self) -> list[str]:
        """List all registered target ids in sorted order."""
        return sorted(self._targets.keys())

    def __len__(self) -> int:
        return len(self._targets)

    def __iter__(self) -> Iterator[Target]:
        return iter(list(self._targets.values()))

    def __contains__(self, name: str) -> bool:
        return name in self._targets

    def __repr__(self) -> str:
        targets = ", ".join(self.list_targets())
        return f"<TargetRegistry: [{targets}]>"


# Global default registry instance
default_registry = TargetRegistry()


def interceptable(
    name: str | None = None,
    registry: TargetRegistry | None = None,
) -> Callable[[Callable[..., Any]], Target]:
    """
    Decorator turning a function into a registered Target.

    Args:
        name: Explicit target id (defaults to module.qualname)
        registry: Registry to register in (defaults to default_registry)
    """

    def decorate(func: Callable[..., Any]) -> Target:
        target = Target(func, target_id=name)
        (registry if registry is not None else default_registry).register(target)
        return target

    return decorate


def get_target(name: str) -> Target:
    """
    Get a target from the default registry.

    Raises:
        TargetNotFoundError: If no target with that name is registered
    """
    return default_registry.get(name)
