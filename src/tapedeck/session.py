"""
Session entry points for Tapedeck.

    start_recording(specs, body)            -> (result, cassette)
    start_playback(specs, cassette, body)   -> result
    with_cassette(cassette_data, specs, body, store=...)

with_cassette() is the cassette-scoped run: it records when the store has
no cassette under the name, replays when it has one, and records on top of
the existing cassette when accumulating.

Example:
    from tapedeck import interceptable, with_cassette

    @interceptable()
    def fetch_rate(currency):
        return http_get(f"/rates/{currency}")

    def test_pricing():
        total = with_cassette("pricing", [{"target": fetch_rate}], compute_total)
        assert total == 42
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable

import structlog
from rich.console import Console

from tapedeck.config import TapedeckConfig
from tapedeck.errors import InvalidCassetteNameError
from tapedeck.playback import playback
from tapedeck.recorder import record
from tapedeck.report import print_cassette_summary
from tapedeck.schema import Cassette, CassetteOptions, OrderScope
from tapedeck.specs import compile_specs
from tapedeck.state import SessionStateTracker
from tapedeck.store import CassetteStore, default_store

logger = structlog.get_logger(__name__)

console = Console()


def start_recording(
    specs: Any,
    body: Callable[[], Any],
    seed: Cassette | None = None,
    *,
    tracker: SessionStateTracker | None = None,
) -> tuple[Any, Cassette]:
    """
    Record the calls body makes to the specs' targets.

    Args:
        specs: Interception specs
        body: Zero-argument callable to run
        seed: Existing cassette to append new calls to

    Returns:
        (body result, cassette)
    """
    compiled = compile_specs(specs)
    logger.info(
        "recording_started",
        targets=[spec.target_id for spec in compiled],
        seeded_calls=len(seed.calls) if seed is not None else 0,
    )
    result, cassette = record(compiled, body, seed, tracker=tracker)
    logger.info("recording_finished", calls=len(cassette.calls))
    return result, cassette


def start_playback(
    specs: Any,
    cassette: Cassette,
    body: Callable[[], Any],
    *,
    order_scope: OrderScope | str = OrderScope.KEY,
    tracker: SessionStateTracker | None = None,
) -> Any:
    """
    Run body with the specs' targets answered from cassette.

    Returns:
        The body's result
    """
    compiled = compile_specs(specs)
    logger.info(
        "playback_started",
        targets=[spec.target_id for spec in compiled],
        calls=len(cassette.calls),
    )
    result = playback(compiled, cassette, body, order_scope=order_scope, tracker=tracker)
    logger.info("playback_finished")
    return result


def _cassette_name(value: Any) -> str:
    if isinstance(value, Enum):
        return value.value if isinstance(value.value, str) else value.name
    if isinstance(value, str):
        return str(value)
    raise InvalidCassetteNameError(invalid=repr(value))


def resolve_cassette_options(
    cassette_data: Any,
    config: TapedeckConfig | None = None,
) -> CassetteOptions:
    """
    Turn cassette data into CassetteOptions.

    Cassette data is either a name (str or Enum member) or a mapping with
    "name", "serialization" and "accumulate" keys.

    Raises:
        InvalidCassetteNameError: If no valid name is given
    """
    if config is None:
        config = TapedeckConfig()

    if isinstance(cassette_data, Mapping):
        if cassette_data.get("name") is None:
            raise InvalidCassetteNameError(invalid=repr(cassette_data))
        name = _cassette_name(cassette_data["name"])
        serialization = dict(cassette_data.get("serialization") or {})
        accumulate = bool(cassette_data.get("accumulate", config.accumulate))
    else:
        name = _cassette_name(cassette_data)
        serialization = {}
        accumulate = config.accumulate

    if not name:
        raise InvalidCassetteNameError(invalid=repr(cassette_data))

    return CassetteOptions(name=name, serialization=serialization, accumulate=accumulate)


def with_cassette(
    cassette_data: Any,
    specs: Any,
    body: Callable[[], Any],
    *,
    store: CassetteStore | None = None,
    config: TapedeckConfig | None = None,
    tracker: SessionStateTracker | None = None,
) -> Any:
    """
    Run body against a named cassette, recording or replaying as appropriate.

    Args:
        cassette_data: Cassette name, or mapping with name/serialization/accumulate
        specs: Interception specs
        body: Zero-argument callable to run
        store: Cassette store (defaults to default_store)
        config: Settings (defaults to TapedeckConfig())

    Returns:
        The body's result

    Raises:
        InvalidSpecsError: If specs are invalid
        InvalidCassetteNameError: If cassette_data names no cassette
    """
    compiled = compile_specs(specs)
    if config is None:
        config = TapedeckConfig()
    options = resolve_cassette_options(cassette_data, config)
    if store is None:
        store = default_store

    name = options.name

    def say(message: str) -> None:
        if config.verbose:
            console.print(f"[dim]{message}[/dim]")

    exists = store.exists(name)
    if exists and not options.accumulate:
        say(f"Running with existing {name} cassette...")
        cassette = store.read(name, options.serialization)
        return start_playback(
            compiled, cassette, body, order_scope=config.order_scope, tracker=tracker
        )

    if exists:
        seed = store.read(name, options.serialization)
        say(f"Recording accumulating {name} cassette...")
    else:
        seed = None
        say(f"Recording new {name} cassette...")

    result, cassette = start_recording(compiled, body, seed, tracker=tracker)
    say("Serializing...")
    store.write(name, cassette, options.serialization)
    if config.verbose:
        print_cassette_summary(cassette, name=name, console=console)
    return result
