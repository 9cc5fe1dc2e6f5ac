"""
Type protocols for composable, extensible architecture.

Protocols allow dependency injection and multiple implementations.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

from typing import Any, Callable, List, Protocol, runtime_checkable

from .models import ScoredResult, Session

#: Answers "does this path exist?" -- injected into path decoding so it can be
#: unit-tested without touching the filesystem.
ExistenceOracle = Callable[[str], bool]


@runtime_checkable
class SessionSource(Protocol):
    """Protocol for anything that can produce a fresh session catalog."""

    def load_all(self) -> List[Session]:
        """Load every known session."""
        ...


@runtime_checkable
class Searchable(Protocol):
    """Protocol for ranked session search."""

    def search(self, query: str) -> List[ScoredResult]:
        """Search sessions for the words in query."""
        ...


@runtime_checkable
class Formatter(Protocol):
    """Protocol for output formatting."""

    def format(self, data: Any) -> str:
        """Format data for output."""
        ...

    def format_many(self, items: List[Any]) -> str:
        """Format multiple items."""
        ...
