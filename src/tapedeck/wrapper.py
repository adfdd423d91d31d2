"""
Interception wrappers.

build_wrapper() produces the callable a session installs on a target. It
canonicalizes the arguments, decides whether the call is intercepted, and
hands intercepted calls to the session (recorder or playback matcher).
install_wrappers() installs one wrapper per spec and guarantees the
targets are restored when the session ends, however it ends.
"""

import functools
from contextlib import ExitStack, contextmanager
from typing import Any, Callable, Generator

from tapedeck.specs import InterceptionSpec

# (args_star, original) -> result
Interceptor = Callable[[tuple[Any, ...], Callable[..., Any]], Any]


def _always_active() -> bool:
    return True


def build_wrapper(
    spec: InterceptionSpec,
    original: Callable[..., Any],
    intercept: Interceptor,
    active: Callable[[], bool] = _always_active,
) -> Callable[..., Any]:
    """
    Build the replacement for one target.

    Args:
        spec: Compiled spec for the target
        original: Implementation the wrapper falls back to
        intercept: Called with the canonical arguments for intercepted calls
        active: Whether interception is currently enabled

    Returns:
        A callable with original's metadata
    """

    @functools.wraps(original)
    def wrapped(*args: Any, **kwargs: Any) -> Any:
        args_star = spec.arg_transformer(*args, **kwargs)
        if not (active() and spec.recordable(*args_star)):
            return original(*args_star)
        return intercept(args_star, original)

    return wrapped


@contextmanager
def install_wrappers(
    specs: list[InterceptionSpec],
    make_wrapper: Callable[[InterceptionSpec, Callable[..., Any]], Callable[..., Any]],
) -> Generator[None, None, None]:
    """
    Install a wrapper on every spec's target for the duration of the block.

    All wrappers are built from the targets' current implementations before
    any is installed. Targets are restored in reverse order on exit.
    """
    wrappers = [(spec, make_wrapper(spec, spec.target.impl)) for spec in specs]
    with ExitStack() as stack:
        for spec, wrapper in wrappers:
            stack.enter_context(spec.target.override(wrapper))
        yield
