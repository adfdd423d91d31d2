"""
Tapedeck - Record/replay test doubles for arbitrary function boundaries.

Tapedeck records what designated functions returned during one run of your
code and answers the same calls from that recording on later runs, without
executing the real logic. It is the HTTP-cassette idea applied to any
function: I/O, randomness, external services.

It provides:
- Explicit interception targets (no monkeypatching of module globals)
- Recording with suppression of nested, implementation-detail calls
- Order-aware playback matching per (target, arg key)
- Detection of overlapping recording and playback sessions

Example usage:
    from tapedeck import interceptable, with_cassette

    @interceptable()
    def roll_die() -> int:
        return random.randint(1, 6)

    with_cassette("dice", [{"target": roll_die}], lambda: roll_die() + roll_die())
"""

from tapedeck.config import TapedeckConfig, load_config, load_config_from_string
from tapedeck.errors import (
    AmbiguousSessionStateError,
    CassetteNotFoundError,
    ExhaustedCassetteError,
    InvalidCassetteNameError,
    InvalidSpecsError,
    TapedeckError,
    TargetNotFoundError,
    UnsupportedOrderScopeError,
)
from tapedeck.playback import Playbacker, build_matcher
from tapedeck.recorder import Recorder
from tapedeck.schema import CapturedCall, Cassette, CassetteOptions, OrderScope, SessionMode
from tapedeck.session import start_playback, start_recording, with_cassette
from tapedeck.specs import InterceptionSpec, compile_specs
from tapedeck.state import cassette_state, default_tracker
from tapedeck.store import CassetteStore, MemoryCassetteStore, default_store
from tapedeck.targets import Target, TargetRegistry, get_target, interceptable

__version__ = "0.1.0"
__author__ = "Tapedeck Contributors"

__all__ = [
    "__version__",
    "__author__",
    "AmbiguousSessionStateError",
    "CapturedCall",
    "Cassette",
    "CassetteNotFoundError",
    "CassetteOptions",
    "CassetteStore",
    "ExhaustedCassetteError",
    "InterceptionSpec",
    "InvalidCassetteNameError",
    "InvalidSpecsError",
    "MemoryCassetteStore",
    "OrderScope",
    "Playbacker",
    "Recorder",
    "SessionMode",
    "TapedeckConfig",
    "TapedeckError",
    "Target",
    "TargetNotFoundError",
    "TargetRegistry",
    "UnsupportedOrderScopeError",
    "build_matcher",
    "cassette_state",
    "compile_specs",
    "default_store",
    "default_tracker",
    "get_target",
    "interceptable",
    "load_config",
    "load_config_from_string",
    "start_playback",
    "start_recording",
    "with_cassette",
]
