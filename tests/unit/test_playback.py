"""
Unit tests for the playback matcher and playback sessions.

Tests cover:
- Arg key freezing
- Per-key FIFO ordering and interleaving
- Exhaustion on exactly the first unrecorded call
- Order scope selection
- Atomic consumption under concurrency
- Bypass, restoration and session registration
"""

import threading
from dataclasses import dataclass
from typing import Any

import pytest

from tapedeck.errors import ExhaustedCassetteError, InvalidSpecsError, UnsupportedOrderScopeError
from tapedeck.playback import Playbacker, build_matcher, freeze_key, playback
from tapedeck.schema import CapturedCall, Cassette, OrderScope, SessionMode
from tapedeck.state import SessionStateTracker
from tapedeck.targets import Target


def unreachable(*args: Any) -> Any:
    raise AssertionError("real implementation called during playback")


class TestFreezeKey:
    """Tests for freeze_key()."""

    def test_scalars_tagged_with_type(self) -> None:
        assert freeze_key("a") == (str, "a")
        assert freeze_key(None) == (type(None), None)

    def test_list_and_tuple_match(self) -> None:
        assert freeze_key(["a", 1]) == freeze_key(("a", 1))

    def test_nested_containers(self) -> None:
        key = freeze_key(({"q": ["x", "y"]}, {1, 2}))
        hash(key)
        assert key == freeze_key([{"q": ("x", "y")}, frozenset({2, 1})])

    def test_dict_order_irrelevant(self) -> None:
        assert freeze_key({"a": 1, "b": 2}) == freeze_key({"b": 2, "a": 1})

    def test_mapping_and_set_of_pairs_differ(self) -> None:
        assert freeze_key({"a": 1}) != freeze_key({("a", 1)})
        assert freeze_key({"a": 1}) != freeze_key((("a", 1),))

    @pytest.mark.parametrize("other", [1.0, True])
    def test_equal_numbers_of_different_types_differ(self, other: Any) -> None:
        assert freeze_key(1) != freeze_key(other)
        assert freeze_key((1,)) != freeze_key((other,))

    def test_unhashable_object_rejected(self) -> None:
        class Opaque:
            __hash__ = None  # type: ignore[assignment]

        with pytest.raises(TypeError, match="arg_key_fn"):
            freeze_key((Opaque(),))


@dataclass
class Query:
    city: str
    days: int = 1


class TestPlaybacker:
    """Tests for the per-key matcher."""

    def test_per_key_fifo(self, sample_cassette: Cassette) -> None:
        lookup = Playbacker(sample_cassette)
        assert lookup("tests.f", ("a",)) == 1
        assert lookup("tests.f", ("a",)) == 2

    def test_interleaving_across_keys(self, sample_cassette: Cassette) -> None:
        lookup = Playbacker(sample_cassette)
        assert lookup("tests.f", ("a",)) == 1
        assert lookup("tests.f", ("b",)) == 3
        assert lookup("tests.f", ("a",)) == 2

    def test_exhaustion_on_first_extra_call(self, sample_cassette: Cassette) -> None:
        lookup = Playbacker(sample_cassette)
        lookup("tests.f", ("a",))
        lookup("tests.f", ("a",))
        with pytest.raises(ExhaustedCassetteError) as exc_info:
            lookup("tests.f", ("a",))
        assert exc_info.value.target_id == "tests.f"
        assert exc_info.value.arg_key == ("a",)

    def test_unknown_key_exhausted(self, sample_cassette: Cassette) -> None:
        lookup = Playbacker(sample_cassette)
        with pytest.raises(ExhaustedCassetteError):
            lookup("tests.f", ("zzz",))

    def test_target_is_part_of_key(self, sample_cassette: Cassette) -> None:
        lookup = Playbacker(sample_cassette)
        with pytest.raises(ExhaustedCassetteError):
            lookup("tests.g", ("a",))

    def test_stored_list_key_matches_tuple(self) -> None:
        cassette = Cassette(
            calls=[CapturedCall(target_id="tests.f", arg_key=["a", 1], return_value="ok")]
        )
        assert Playbacker(cassette)("tests.f", ("a", 1)) == "ok"

    def test_unhashable_keys_matched_by_equality(self) -> None:
        cassette = Cassette(
            calls=[
                CapturedCall(target_id="tests.f", arg_key=(Query("oslo"),), return_value=1),
                CapturedCall(target_id="tests.f", arg_key=("plain",), return_value=2),
                CapturedCall(target_id="tests.f", arg_key=(Query("oslo"),), return_value=3),
                CapturedCall(target_id="tests.f", arg_key=[Query("rome")], return_value=4),
            ]
        )
        lookup = Playbacker(cassette)

        assert lookup.remaining() == 4
        assert lookup("tests.f", (Query("rome"),)) == 4
        assert lookup("tests.f", (Query("oslo"),)) == 1
        assert lookup("tests.f", ("plain",)) == 2
        assert lookup.remaining_for("tests.f", (Query("oslo"),)) == 1
        assert lookup("tests.f", (Query("oslo"),)) == 3
        with pytest.raises(ExhaustedCassetteError):
            lookup("tests.f", (Query("oslo"),))

    def test_unhashable_key_scoped_by_target(self) -> None:
        cassette = Cassette(
            calls=[CapturedCall(target_id="tests.f", arg_key=(Query("oslo"),), return_value=1)]
        )
        with pytest.raises(ExhaustedCassetteError):
            Playbacker(cassette)("tests.g", (Query("oslo"),))

    def test_remaining(self, sample_cassette: Cassette) -> None:
        lookup = Playbacker(sample_cassette)
        assert lookup.remaining() == 3
        assert lookup.remaining_for("tests.f", ("a",)) == 2
        lookup("tests.f", ("a",))
        assert lookup.remaining() == 2
        assert lookup.remaining_for("tests.f", ("a",)) == 1
        assert lookup.remaining_for("tests.f", ("zzz",)) == 0

    def test_concurrent_lookups_never_share_an_entry(self) -> None:
        cassette = Cassette(
            calls=[
                CapturedCall(target_id="tests.f", arg_key=(), return_value=i)
                for i in range(100)
            ]
        )
        lookup = Playbacker(cassette)
        results: list[int] = []
        results_lock = threading.Lock()

        def consume() -> None:
            for _ in range(25):
                value = lookup("tests.f", ())
                with results_lock:
                    results.append(value)

        threads = [threading.Thread(target=consume) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert sorted(results) == list(range(100))


class TestBuildMatcher:
    """Tests for build_matcher()."""

    def test_key_scope(self, sample_cassette: Cassette) -> None:
        assert isinstance(build_matcher(sample_cassette, OrderScope.KEY), Playbacker)
        assert isinstance(build_matcher(sample_cassette, "key"), Playbacker)

    @pytest.mark.parametrize("scope", [OrderScope.GLOBAL, OrderScope.TARGET, "target"])
    def test_unimplemented_scopes(self, sample_cassette: Cassette, scope: Any) -> None:
        with pytest.raises(UnsupportedOrderScopeError):
            build_matcher(sample_cassette, scope)

    def test_unknown_scope(self, sample_cassette: Cassette) -> None:
        with pytest.raises(UnsupportedOrderScopeError) as exc_info:
            build_matcher(sample_cassette, "sometimes")
        assert exc_info.value.order_scope == "sometimes"


class TestPlayback:
    """Tests for playback()."""

    def test_answers_from_cassette(
        self, sample_cassette: Cassette, tracker: SessionStateTracker
    ) -> None:
        f = Target(unreachable, target_id="tests.f")

        result = playback(
            [{"target": f}],
            sample_cassette,
            lambda: [f("a"), f("b"), f("a")],
            tracker=tracker,
        )

        assert result == [1, 3, 2]

    def test_exhaustion_propagates_and_restores(
        self, sample_cassette: Cassette, tracker: SessionStateTracker
    ) -> None:
        f = Target(unreachable, target_id="tests.f")

        with pytest.raises(ExhaustedCassetteError):
            playback(
                [{"target": f}],
                sample_cassette,
                lambda: [f("b"), f("b")],
                tracker=tracker,
            )

        assert f.impl is unreachable
        assert tracker.active_sessions() == 0

    def test_non_recordable_calls_use_real_impl(self, tracker: SessionStateTracker) -> None:
        f = Target(lambda name: f"real {name}", target_id="tests.f")
        cassette = Cassette(
            calls=[CapturedCall(target_id="tests.f", arg_key=("a",), return_value="recorded a")]
        )

        result = playback(
            [{"target": f, "recordable": lambda name: name == "a"}],
            cassette,
            lambda: (f("a"), f("live")),
            tracker=tracker,
        )

        assert result == ("recorded a", "real live")

    def test_stored_values_returned_unchanged(self, tracker: SessionStateTracker) -> None:
        stored = {"body": "ok"}
        f = Target(unreachable, target_id="tests.f")
        cassette = Cassette(calls=[CapturedCall(target_id="tests.f", arg_key=(), return_value=stored)])

        result = playback(
            [{"target": f, "return_transformer": lambda r: "transformed"}],
            cassette,
            f,
            tracker=tracker,
        )

        assert result == {"body": "ok"}

    def test_session_registered_during_body(
        self, sample_cassette: Cassette, tracker: SessionStateTracker
    ) -> None:
        seen: list[Any] = []

        playback([], sample_cassette, lambda: seen.append(tracker.current_state()), tracker=tracker)

        assert seen == [SessionMode.REPLAYING]
        assert tracker.current_state() is None

    def test_invalid_specs_rejected_before_wrapping(
        self, sample_cassette: Cassette, tracker: SessionStateTracker
    ) -> None:
        ran: list[bool] = []

        with pytest.raises(InvalidSpecsError):
            playback("not-a-collection", sample_cassette, lambda: ran.append(True), tracker=tracker)

        assert ran == []
