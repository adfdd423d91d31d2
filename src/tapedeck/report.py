"""
Console summaries of cassettes, rendered with Rich.
"""

from collections import Counter
from typing import Any

from rich.console import Console
from rich.table import Table

from tapedeck.playback import freeze_key
from tapedeck.schema import Cassette


def _key_identity(arg_key: Any) -> Any:
    try:
        return freeze_key(arg_key)
    except TypeError:
        return repr(arg_key)


def summarize_cassette(cassette: Cassette) -> dict[str, Any]:
    """
    Count recorded calls per target.

    Returns:
        Dictionary with:
            - total_calls: Number of recorded calls
            - recorded_at: ISO timestamp of the recording
            - targets: {target_id: {"calls": n, "distinct_keys": m}}, in
              first-recorded order
    """
    calls = Counter(call.target_id for call in cassette.calls)
    keys: dict[str, set[Any]] = {}
    for call in cassette.calls:
        keys.setdefault(call.target_id, set()).add(_key_identity(call.arg_key))

    return {
        "total_calls": len(cassette.calls),
        "recorded_at": cassette.recorded_at.isoformat(),
        "targets": {
            target_id: {"calls": calls[target_id], "distinct_keys": len(keys[target_id])}
            for target_id in keys
        },
    }


def print_cassette_summary(
    cassette: Cassette,
    name: str | None = None,
    console: Console | None = None,
) -> None:
    """Print a table of recorded calls per target."""
    if console is None:
        console = Console()

    summary = summarize_cassette(cassette)

    title = f"Cassette {name}" if name else "Cassette"
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Target", style="cyan")
    table.add_column("Calls", justify="right")
    table.add_column("Distinct keys", justify="right")

    for target_id, counts in summary["targets"].items():
        table.add_row(target_id, str(counts["calls"]), str(counts["distinct_keys"]))

    console.print(table)
    console.print(
        f"[dim]Total: {summary['total_calls']} | Recorded: {summary['recorded_at']}[/dim]"
    )
