"""
Core session catalog - merges indexes, raw logs, and promotion metadata.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import json
import logging
import os
from pathlib import Path
from typing import Iterator, List, Optional, Set, Tuple

from .extractors import METADATA_SCAN_RECORDS, LogMetadataExtractor, looks_like_error
from .models import Note, PromotedMetadata, ScoredResult, Session, SessionsIndex, SessionStatus
from .paths import decode_project_dir
from .search import DEFAULT_SEARCH_LIMIT, SearchEngine
from .store import STORE_FILENAME, PromotedStoreFile
from .types import ExistenceOracle

logger = logging.getLogger(__name__)

#: Per-project index file written by Claude Code.
INDEX_FILENAME = "sessions-index.json"

#: Display name used when a session has no usable name, summary, or prompt.
UNTITLED = "(untitled session)"


class SessionNotFoundError(ValueError):
    """No session matches the given reference."""


class AmbiguousSessionError(ValueError):
    """A session reference matches more than one session."""


class SessionCatalog:
    """Unified view of every session under ``<claude_dir>/projects``."""

    def __init__(
        self,
        claude_dir: Path,
        store: Optional[PromotedStoreFile] = None,
        exists: ExistenceOracle = os.path.isdir,
        metadata_scan_records: int = METADATA_SCAN_RECORDS,
        projects_dir: Optional[Path] = None,
    ):
        """Initialize catalog.

        Args:
            claude_dir: Claude config directory (default location: ~/.claude).
                        Holds projects/ and the promoted store file.
            store: Promoted store to use. Default: <claude_dir>/sessions-manager.json,
                   loaded once here.
            exists: Existence oracle for project directory name decoding
            metadata_scan_records: Lines parsed per unindexed log before tail counting
            projects_dir: Override for <claude_dir>/projects
        """
        self.claude_dir = Path(claude_dir)
        self.projects_dir = Path(projects_dir) if projects_dir else self.claude_dir / "projects"
        if store is None:
            store = PromotedStoreFile(self.claude_dir / STORE_FILENAME)
            store.load()
        self.store_file = store
        self.exists = exists
        self.extractor = LogMetadataExtractor(metadata_scan_records)

    # ── Private discovery helpers ────────────────────────────────────────────

    def _iter_project_dirs(self) -> Iterator[Tuple[Path, str]]:
        """Yield (project_dir, decoded_project_path) for each project subdirectory.

        Handles missing directory gracefully.
        """
        if not self.projects_dir.is_dir():
            return
        try:
            project_dirs = sorted(p for p in self.projects_dir.iterdir() if p.is_dir())
        except OSError as exc:
            logger.warning("Cannot list projects directory %s: %s", self.projects_dir, exc)
            return
        for project_dir in project_dirs:
            yield project_dir, decode_project_dir(project_dir.name, self.exists)

    def _load_index(self, project_dir: Path, project_path: str) -> List[Session]:
        """Read a project's sessions-index.json. Missing or corrupt index → []."""
        index_file = project_dir / INDEX_FILENAME
        if not index_file.is_file():
            return []
        try:
            with open(index_file, encoding="utf-8") as f:
                index = SessionsIndex.from_dict(json.load(f))
        except (json.JSONDecodeError, ValueError, TypeError, OSError) as exc:
            logger.warning("Skipping unreadable index %s: %s", index_file, exc)
            return []
        for session in index.entries:
            # The recorded projectPath is the last cwd; the directory name is authoritative.
            session.project_path = project_path
            if not session.full_path:
                session.full_path = str(project_dir / f"{session.session_id}.jsonl")
        return index.entries

    def _scan_unindexed(self, project_dir: Path, project_path: str, indexed: Set[str]) -> List[Session]:
        """Extract metadata from every *.jsonl log not already covered by the index."""
        sessions: List[Session] = []
        try:
            log_files = sorted(project_dir.glob("*.jsonl"))
        except OSError as exc:
            logger.warning("Cannot list logs in %s: %s", project_dir, exc)
            return sessions
        for log_file in log_files:
            session_id = log_file.stem
            if session_id in indexed or not log_file.is_file():
                continue
            session = self.extractor.extract(log_file, session_id, project_path)
            if session is not None:
                sessions.append(session)
        return sessions

    def _overlay(self, session: Session) -> Session:
        session.promoted = self.store_file.store.sessions.get(session.session_id)
        return session

    def _get_or_create(self, session_id: str) -> PromotedMetadata:
        sessions = self.store_file.store.sessions
        if session_id not in sessions:
            sessions[session_id] = PromotedMetadata()
        return sessions[session_id]

    # ── End private helpers ───────────────────────────────────────────────────

    def load_all(self) -> List[Session]:
        """Load every session: index entries first, then unindexed raw logs.

        Returns:
            Sessions in discovery order (consumers re-sort). Never raises for
            missing directories or corrupt files; those contribute nothing.
        """
        all_sessions: List[Session] = []
        for project_dir, project_path in self._iter_project_dirs():
            indexed_sessions = self._load_index(project_dir, project_path)
            indexed = {s.session_id for s in indexed_sessions}
            discovered = self._scan_unindexed(project_dir, project_path, indexed)
            for session in indexed_sessions + discovered:
                all_sessions.append(self._overlay(session))
            logger.debug(
                "%s: %d indexed, %d discovered", project_dir.name, len(indexed_sessions), len(discovered)
            )
        return all_sessions

    def get_promoted(self) -> List[Session]:
        """Sessions that carry promotion metadata (orphaned promotions are omitted)."""
        return [s for s in self.load_all() if s.promoted is not None]

    def find_session(self, ref: str, sessions: Optional[List[Session]] = None) -> Session:
        """Resolve a session reference: exact id, unique id prefix, or promoted name.

        Args:
            ref: Full id, id prefix (e.g. 'ab841016'), or promoted name (case-insensitive)
            sessions: Sessions to search. None = load_all().

        Raises:
            SessionNotFoundError: If nothing matches.
            AmbiguousSessionError: If a prefix or name matches several sessions.
        """
        if sessions is None:
            sessions = self.load_all()
        exact = [s for s in sessions if s.session_id == ref]
        if exact:
            return exact[0]
        for matches in (
            [s for s in sessions if ref and s.session_id.startswith(ref)],
            [s for s in sessions if s.promoted and s.promoted.name and s.promoted.name.lower() == ref.lower()],
        ):
            ids = sorted({s.session_id for s in matches})
            if len(ids) == 1:
                return matches[0]
            if len(ids) > 1:
                candidates = ", ".join(i[:16] for i in ids)
                raise AmbiguousSessionError(
                    f"Ambiguous session {ref!r} matches {len(ids)} sessions: {candidates}"
                )
        raise SessionNotFoundError(f"No session found matching: {ref!r}")

    def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> List[ScoredResult]:
        """Ranked multi-word search across metadata and conversation content."""
        return SearchEngine(self, limit=limit).search(query)

    # ── Mutators (each rewrites the store file) ──────────────────────────────

    def promote(
        self,
        session_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[List[str]] = None,
        status: Optional[SessionStatus] = None,
    ) -> PromotedMetadata:
        """Create or update promotion metadata. Fields passed as None are left unchanged.

        Raises:
            OSError: If the store file cannot be written.
        """
        metadata = self._get_or_create(session_id)
        if name is not None:
            metadata.name = name
        if description is not None:
            metadata.description = description
        if tags is not None:
            metadata.tags = list(tags)
        if status is not None:
            metadata.status = SessionStatus.parse(status)
        self.store_file.save()
        return metadata

    def add_note(self, session_id: str, text: str) -> PromotedMetadata:
        """Append a note, promoting the session if needed."""
        metadata = self._get_or_create(session_id)
        metadata.notes.append(Note(text=text))
        self.store_file.save()
        return metadata

    def set_status(self, session_id: str, status: SessionStatus) -> PromotedMetadata:
        """Set the workflow status, promoting the session if needed."""
        metadata = self._get_or_create(session_id)
        metadata.status = SessionStatus.parse(status)
        self.store_file.save()
        return metadata

    def archive(self, session_id: str) -> PromotedMetadata:
        """Shortcut for set_status(session_id, ARCHIVED)."""
        return self.set_status(session_id, SessionStatus.ARCHIVED)

    def demote(self, session_id: str) -> bool:
        """Remove all promotion metadata for a session.

        Returns:
            True if an entry was removed; False (and no write) if none existed.
        """
        if session_id not in self.store_file.store.sessions:
            return False
        del self.store_file.store.sessions[session_id]
        self.store_file.save()
        return True

    @staticmethod
    def get_display_name(session: Session) -> str:
        """Promoted name, else summary, else first prompt, skipping captured API errors."""
        if session.promoted and session.promoted.name:
            return session.promoted.name
        for candidate in (session.summary, session.first_prompt):
            if candidate and candidate.strip() and not looks_like_error(candidate):
                return candidate
        return UNTITLED
