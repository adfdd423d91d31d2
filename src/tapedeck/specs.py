"""
Interception specs and their compiler.

A spec says how to intercept one target:

    {
        "target": fetch_rate,              # a Target, or its registered name
        "arg_transformer": ...,            # (*args, **kwargs) -> tuple
        "arg_key_fn": ...,                 # (*args_star) -> comparable key
        "recordable": ...,                 # (*args_star) -> bool
        "return_transformer": ...,         # (value) -> value to store
    }

Only "target" is required. compile_specs() validates a collection of specs
once per session and fills in the defaults, so the wrappers never have to
check for missing strategies.
"""

import inspect
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Callable

from tapedeck.errors import InvalidSpecsError
from tapedeck.targets import Target, TargetRegistry, default_registry

SPEC_KEYS = frozenset({
    "target",
    "arg_transformer",
    "arg_key_fn",
    "recordable",
    "return_transformer",
})


@dataclass(frozen=True)
class InterceptionSpec:
    """
    How to intercept one target.

    Attributes:
        target: The target to wrap
        arg_transformer: Maps raw call arguments to the canonical argument tuple
        arg_key_fn: Maps canonical arguments to the key stored in the cassette
        recordable: Calls for which this returns False are not intercepted
        return_transformer: Applied to real return values before they are recorded
    """

    target: Target
    arg_transformer: Callable[..., tuple[Any, ...]] | None = None
    arg_key_fn: Callable[..., Any] | None = None
    recordable: Callable[..., bool] | None = None
    return_transformer: Callable[[Any], Any] | None = None

    @property
    def target_id(self) -> str:
        return self.target.target_id

    @property
    def is_compiled(self) -> bool:
        return None not in (
            self.arg_transformer,
            self.arg_key_fn,
            self.recordable,
            self.return_transformer,
        )


# =============================================================================
# Defaults
# =============================================================================


def args_as_key(*args: Any) -> tuple[Any, ...]:
    return args


def always_recordable(*args: Any) -> bool:
    return True


def identity(value: Any) -> Any:
    return value


def positional_arguments(target: Target) -> Callable[..., tuple[Any, ...]]:
    """
    Build the default arg transformer for a target.

    Positional calls pass through as a tuple. Keyword arguments are bound to
    their positional parameters using the target's signature, so f(1, b=2)
    and f(1, 2) share a key. Keyword-only parameters cannot be expressed
    positionally and need a custom arg_transformer.
    """
    try:
        signature: inspect.Signature | None = inspect.signature(target.impl)
    except (TypeError, ValueError):
        signature = None

    def transform(*args: Any, **kwargs: Any) -> tuple[Any, ...]:
        if not kwargs:
            return args
        if signature is None:
            msg = f"{target.target_id} has no signature to bind keyword arguments; supply an arg_transformer"
            raise TypeError(msg)
        bound = signature.bind(*args, **kwargs)
        if bound.kwargs:
            msg = (
                f"{target.target_id} received keyword-only arguments "
                f"{sorted(bound.kwargs)}; supply an arg_transformer"
            )
            raise TypeError(msg)
        return bound.args

    return transform


# =============================================================================
# Compiler
# =============================================================================


def _resolve_target(value: Any, index: int, registry: TargetRegistry) -> Target:
    if isinstance(value, Target):
        return value
    if isinstance(value, str):
        return registry.get(value)
    raise InvalidSpecsError(
        specs=repr(value),
        index=index,
        reason=f"spec {index} target must be a Target or a registered name, got {type(value).__name__}",
    )


def _compile_one(alleged: Any, index: int, registry: TargetRegistry) -> InterceptionSpec:
    if isinstance(alleged, InterceptionSpec):
        if alleged.is_compiled:
            return alleged
        fields = {
            "target": alleged.target,
            "arg_transformer": alleged.arg_transformer,
            "arg_key_fn": alleged.arg_key_fn,
            "recordable": alleged.recordable,
            "return_transformer": alleged.return_transformer,
        }
    elif isinstance(alleged, Mapping):
        fields = dict(alleged)
    else:
        raise InvalidSpecsError(
            specs=repr(alleged),
            index=index,
            reason=f"spec {index} is a {type(alleged).__name__}, not a mapping",
        )

    unknown = set(fields) - SPEC_KEYS
    if unknown:
        raise InvalidSpecsError(
            specs=repr(alleged),
            index=index,
            reason=f"spec {index} has unknown keys {sorted(unknown)}",
        )
    if fields.get("target") is None:
        raise InvalidSpecsError(
            specs=repr(alleged),
            index=index,
            reason=f"spec {index} has no target",
        )

    target = _resolve_target(fields["target"], index, registry)

    for key in SPEC_KEYS - {"target"}:
        strategy = fields.get(key)
        if strategy is not None and not callable(strategy):
            raise InvalidSpecsError(
                specs=repr(alleged),
                index=index,
                reason=f"spec {index} {key} is not callable",
            )

    return InterceptionSpec(
        target=target,
        arg_transformer=fields.get("arg_transformer") or positional_arguments(target),
        arg_key_fn=fields.get("arg_key_fn") or args_as_key,
        recordable=fields.get("recordable") or always_recordable,
        return_transformer=fields.get("return_transformer") or identity,
    )


def compile_specs(
    specs: Any,
    registry: TargetRegistry | None = None,
) -> list[InterceptionSpec]:
    """
    Validate a collection of specs and fill in their defaults.

    Args:
        specs: Iterable of mappings or InterceptionSpec instances
        registry: Registry used to resolve targets given by name

    Returns:
        Compiled specs, in input order

    Raises:
        InvalidSpecsError: If specs is not such a collection
        TargetNotFoundError: If a named target is not registered
    """
    if registry is None:
        registry = default_registry

    # Strings and mappings are iterable but are not collections of specs
    if isinstance(specs, (str, bytes, Mapping)) or not isinstance(specs, Iterable):
        raise InvalidSpecsError(specs=repr(specs))

    return [_compile_one(spec, index, registry) for index, spec in enumerate(specs)]
