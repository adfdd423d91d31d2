"""
Cassette store interface for Tapedeck.

Tapedeck does not decide how cassettes are persisted. with_cassette() only
ever calls the three operations of CassetteStore; the serialization settings
from the cassette data are passed through untouched.

MemoryCassetteStore keeps cassettes in a dict. It backs the default store and
the test suite, and is a reference for writing durable stores.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any

from tapedeck.errors import CassetteNotFoundError
from tapedeck.schema import Cassette


class CassetteStore(ABC):
    """
    Where cassettes live between a recording and its playbacks.

    Subclasses must implement exists(), read() and write().
    """

    @abstractmethod
    def exists(self, name: str) -> bool:
        """Whether a cassette with this name has been written."""
        ...

    @abstractmethod
    def read(self, name: str, serialization: dict[str, Any] | None = None) -> Cassette:
        """
        Load a cassette.

        Raises:
            CassetteNotFoundError: If no cassette has this name
        """
        ...

    @abstractmethod
    def write(
        self,
        name: str,
        cassette: Cassette,
        serialization: dict[str, Any] | None = None,
    ) -> None:
        """Persist a cassette, replacing any previous one with the same name."""
        ...


class MemoryCassetteStore(CassetteStore):
    """In-process store. Serialization settings are ignored."""

    def __init__(self) -> None:
        self._cassettes: dict[str, Cassette] = {}
        self._lock = threading.Lock()

    def exists(self, name: str) -> bool:
        with self._lock:
            return name in self._cassettes

    def read(self, name: str, serialization: dict[str, Any] | None = None) -> Cassette:
        with self._lock:
            cassette = self._cassettes.get(name)
        if cassette is None:
            raise CassetteNotFoundError(name=name)
        return cassette

    def write(
        self,
        name: str,
        cassette: Cassette,
        serialization: dict[str, Any] | None = None,
    ) -> None:
        with self._lock:
            self._cassettes[name] = cassette

    def delete(self, name: str) -> bool:
        """Forget a cassette. Returns False if it was not stored."""
        with self._lock:
            return self._cassettes.pop(name, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._cassettes.clear()

    def names(self) -> list[str]:
        """Stored cassette names in sorted order."""
        with self._lock:
            return sorted(self._cassettes)

    def __len__(self) -> int:
        return len(self._cassettes)

    def __contains__(self, name: str) -> bool:
        return self.exists(name)

    def __repr__(self) -> str:
        return f"<MemoryCassetteStore: [{', '.join(self.names())}]>"


# Store used by with_cassette() when none is given
default_store = MemoryCassetteStore()
