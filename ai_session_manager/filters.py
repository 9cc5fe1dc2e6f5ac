"""
Composable filter implementations for session list views.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

from pathlib import Path
from typing import Callable, List, Optional

from .models import Session, SessionStatus
from .paths import encode_project_path


class SessionFilter:
    """Composable session filter; all predicates are ANDed."""

    def __init__(self):
        """Initialize filter."""
        self._predicates: List[Callable[[Session], bool]] = []

    def promoted_only(self) -> "SessionFilter":
        """Keep sessions with promotion metadata."""
        self._predicates.append(lambda s: s.promoted is not None)
        return self

    def by_status(self, status: SessionStatus) -> "SessionFilter":
        """Filter by promoted status. Never-promoted sessions have no status."""
        wanted = SessionStatus.parse(status)

        def predicate(s: Session) -> bool:
            return s.status == wanted

        self._predicates.append(predicate)
        return self

    def by_project(self, project: str) -> "SessionFilter":
        """Filter by case-insensitive substring of the project path."""

        def predicate(s: Session) -> bool:
            return project.lower() in s.project_path.lower()

        self._predicates.append(predicate)
        return self

    def by_cwd(self, cwd: str) -> "SessionFilter":
        """Keep sessions recorded for the working directory ``cwd``.

        Matches either the encoded project directory holding the log or the
        decoded project path.
        """
        encoded = encode_project_path(cwd)

        def predicate(s: Session) -> bool:
            if s.project_path == cwd:
                return True
            return bool(s.full_path) and Path(s.full_path).parent.name == encoded

        self._predicates.append(predicate)
        return self

    def by_tag(self, tag: str) -> "SessionFilter":
        """Filter by promoted tag (case-insensitive exact match)."""

        def predicate(s: Session) -> bool:
            if s.promoted is None:
                return False
            return any(t.lower() == tag.lower() for t in s.promoted.tags)

        self._predicates.append(predicate)
        return self

    def exclude_sidechains(self) -> "SessionFilter":
        """Drop side conversations."""
        self._predicates.append(lambda s: not s.is_sidechain)
        return self

    def custom(self, predicate: Callable[[Session], bool]) -> "SessionFilter":
        """Add custom filter predicate."""
        self._predicates.append(predicate)
        return self

    def apply(self, sessions: List[Session]) -> List[Session]:
        """Apply all filters to session list."""
        result = sessions
        for predicate in self._predicates:
            result = [s for s in result if predicate(s)]
        return result

    def __call__(self, sessions: List[Session]) -> List[Session]:
        """Support callable interface."""
        return self.apply(sessions)


def newest_first(sessions: List[Session], limit: Optional[int] = None) -> List[Session]:
    """Sort by modified descending, optionally keeping only the first ``limit``."""
    ordered = sorted(sessions, key=lambda s: s.modified, reverse=True)
    return ordered[:limit] if limit else ordered
