"""
Pytest configuration and fixtures for Tapedeck tests.

This module provides shared fixtures used across unit and integration tests.
Every test gets its own session tracker, store and registry so that tests
never observe each other's sessions or cassettes.
"""

import itertools
from typing import Any, Callable

import pytest

from tapedeck.schema import CapturedCall, Cassette
from tapedeck.state import SessionStateTracker
from tapedeck.store import MemoryCassetteStore
from tapedeck.targets import Target, TargetRegistry


@pytest.fixture
def tracker() -> SessionStateTracker:
    """A session table private to the test."""
    return SessionStateTracker()


@pytest.fixture
def store() -> MemoryCassetteStore:
    """An empty in-memory cassette store."""
    return MemoryCassetteStore()


@pytest.fixture
def registry() -> TargetRegistry:
    """An empty target registry."""
    return TargetRegistry()


@pytest.fixture
def make_ticker() -> Callable[[str], tuple[Target, list[tuple[Any, ...]]]]:
    """
    Factory for stateful fake services.

    A ticker returns 1, 2, 3, ... on successive calls whatever its arguments,
    so replayed values show exactly which recorded call answered. The second
    element is the list of argument tuples the real function received.
    """

    def make(target_id: str) -> tuple[Target, list[tuple[Any, ...]]]:
        counter = itertools.count(1)
        calls: list[tuple[Any, ...]] = []

        def tick(*args: Any) -> int:
            calls.append(args)
            return next(counter)

        return Target(tick, target_id=target_id), calls

    return make


@pytest.fixture
def sample_cassette() -> Cassette:
    """f(a) -> 1, f(a) -> 2, f(b) -> 3 recorded in that order."""
    return Cassette(
        calls=[
            CapturedCall(target_id="tests.f", arg_key=("a",), return_value=1),
            CapturedCall(target_id="tests.f", arg_key=("a",), return_value=2),
            CapturedCall(target_id="tests.f", arg_key=("b",), return_value=3),
        ]
    )
