"""
Data models for the session catalog - using modern Python patterns.

Includes dataclasses, enums, and structured types for type safety.
The promoted store is serialized with camelCase keys; index entries written by
Claude Code are read case-insensitively.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import datetime
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

#: Sentinel for sessions with no usable timestamp; sorts before everything else.
EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


def utc_now() -> datetime.datetime:
    """Current time as a tz-aware UTC datetime."""
    return datetime.datetime.now(tz=datetime.timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime.datetime]:
    """Parse an ISO-8601 string or epoch-milliseconds number into a UTC datetime.

    Accepts a trailing ``Z`` ("2026-01-24T10:00:00.000Z"). Naive values are assumed UTC.

    Returns:
        tz-aware datetime, or None if value is empty or unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.datetime.fromtimestamp(value / 1000.0, tz=datetime.timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime.datetime]) -> Optional[str]:
    """Serialize a datetime as ISO-8601 with a ``Z`` suffix (UTC)."""
    if value is None:
        return None
    iso = value.astimezone(datetime.timezone.utc).isoformat()
    return iso.replace("+00:00", "Z")


def _lower_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of data with lowercased keys for case-insensitive lookup."""
    return {str(k).lower(): v for k, v in data.items()}


class MessageType(str, Enum):
    """Log record types that count as conversation messages."""

    USER = "user"
    ASSISTANT = "assistant"


#: Raw ``type`` values of conversation records (tuple: safe for unhashable input).
MESSAGE_TYPES = tuple(t.value for t in MessageType)


class SessionStatus(str, Enum):
    """Workflow status of a promoted session."""

    ACTIVE = "Active"
    BLOCKED = "Blocked"
    COMPLETED = "Completed"
    ARCHIVED = "Archived"

    @classmethod
    def parse(cls, value: Any) -> "SessionStatus":
        """Parse a status name (case-insensitive) or legacy integer ordinal.

        Raises:
            ValueError: If value names no known status.
        """
        if isinstance(value, SessionStatus):
            return value
        members = list(cls)
        if isinstance(value, int) and not isinstance(value, bool):
            if 0 <= value < len(members):
                return members[value]
            raise ValueError(f"Unknown session status ordinal: {value}")
        text = str(value).strip()
        if text.isdigit():
            return cls.parse(int(text))
        for member in members:
            if member.value.lower() == text.lower() or member.name.lower() == text.lower():
                return member
        choices = ", ".join(m.value for m in members)
        raise ValueError(f"Unknown session status {value!r} (expected one of: {choices})")


@dataclass(frozen=True)
class Note:
    """Immutable free-text note attached to a promoted session."""

    text: str
    created_at: datetime.datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {"text": self.text, "createdAt": format_timestamp(self.created_at)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Note":
        d = _lower_keys(data)
        return cls(
            text=str(d.get("text") or ""),
            created_at=parse_timestamp(d.get("createdat")) or EPOCH,
        )


@dataclass
class PromotedMetadata:
    """User-curated overlay for one session.

    Attributes:
        name: Optional display name (wins over summary/first prompt)
        description: Optional longer description
        tags: Free-text tags in insertion order (duplicates allowed)
        status: Workflow status (default Active)
        notes: Append-only list of notes
        promoted_at: When the session was first promoted
    """

    name: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    status: SessionStatus = SessionStatus.ACTIVE
    notes: List[Note] = field(default_factory=list)
    promoted_at: datetime.datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        """Convert to camelCase dictionary for the persisted store."""
        return {
            "name": self.name,
            "description": self.description,
            "tags": list(self.tags),
            "status": self.status.value,
            "notes": [n.to_dict() for n in self.notes],
            "promotedAt": format_timestamp(self.promoted_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PromotedMetadata":
        """Build from a store dictionary. Keys are matched case-insensitively.

        Raises:
            ValueError: If status is not a known value.
        """
        d = _lower_keys(data)
        status_raw = d.get("status")
        return cls(
            name=d.get("name"),
            description=d.get("description"),
            tags=[str(t) for t in (d.get("tags") or [])],
            status=SessionStatus.parse(status_raw) if status_raw is not None else SessionStatus.ACTIVE,
            notes=[Note.from_dict(n) for n in (d.get("notes") or []) if isinstance(n, dict)],
            promoted_at=parse_timestamp(d.get("promotedat")) or EPOCH,
        )


@dataclass
class Session:
    """One conversation log, as read from an index entry or a raw log scan.

    Attributes:
        session_id: Unique session identifier (the log file stem)
        full_path: Absolute path to the JSONL log
        file_mtime: Log file modification time, epoch milliseconds
        first_prompt: First user prompt, truncated for display
        summary: Summary line (defaults to first prompt)
        message_count: Number of user + assistant records
        created: Earliest timestamp seen
        modified: Latest timestamp seen
        git_branch: Branch recorded in the log ("" when unknown)
        project_path: Decoded project directory path
        is_sidechain: True if the log is a side conversation
        promoted: Promotion overlay for this catalog load, if any
    """

    session_id: str
    full_path: str = ""
    file_mtime: int = 0
    first_prompt: str = ""
    summary: str = ""
    message_count: int = 0
    created: datetime.datetime = EPOCH
    modified: datetime.datetime = EPOCH
    git_branch: str = ""
    project_path: str = ""
    is_sidechain: bool = False
    promoted: Optional[PromotedMetadata] = None

    @property
    def is_promoted(self) -> bool:
        return self.promoted is not None

    @property
    def status(self) -> Optional[SessionStatus]:
        """Promoted status, or None for sessions that were never promoted."""
        return self.promoted.status if self.promoted else None

    @property
    def short_id(self) -> str:
        return self.session_id[:8]

    @classmethod
    def from_index_entry(cls, data: Dict[str, Any]) -> "Session":
        """Deserialize one ``sessions-index.json`` entry.

        Raises:
            ValueError: If the entry has no session id.
        """
        d = _lower_keys(data)
        session_id = d.get("sessionid")
        if not session_id or not isinstance(session_id, str):
            raise ValueError("index entry has no sessionId")
        file_mtime = d.get("filemtime") or 0
        if not isinstance(file_mtime, (int, float)) or isinstance(file_mtime, bool):
            file_mtime = 0
        created = parse_timestamp(d.get("created"))
        modified = parse_timestamp(d.get("modified")) or parse_timestamp(file_mtime or None)
        first_prompt = str(d.get("firstprompt") or "")
        return cls(
            session_id=session_id,
            full_path=str(d.get("fullpath") or ""),
            file_mtime=int(file_mtime),
            first_prompt=first_prompt,
            summary=str(d.get("summary") or first_prompt),
            message_count=int(d.get("messagecount") or 0),
            created=created or modified or EPOCH,
            modified=modified or created or EPOCH,
            git_branch=str(d.get("gitbranch") or ""),
            project_path=str(d.get("projectpath") or ""),
            is_sidechain=bool(d.get("issidechain", False)),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for CLI serialization."""
        return {
            "session_id": self.session_id,
            "full_path": self.full_path,
            "project_path": self.project_path,
            "git_branch": self.git_branch,
            "created": format_timestamp(self.created),
            "modified": format_timestamp(self.modified),
            "message_count": self.message_count,
            "first_prompt": self.first_prompt,
            "summary": self.summary,
            "is_sidechain": self.is_sidechain,
            "promoted": self.promoted.to_dict() if self.promoted else None,
        }


@dataclass
class SessionsIndex:
    """Per-project ``sessions-index.json`` produced by Claude Code (read-only)."""

    version: int = 0
    entries: List[Session] = field(default_factory=list)
    original_path: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionsIndex":
        """Deserialize an index, skipping individual malformed entries.

        Raises:
            ValueError: If data is not an index object.
        """
        if not isinstance(data, dict):
            raise ValueError("sessions index must be a JSON object")
        d = _lower_keys(data)
        raw_entries = d.get("entries") or []
        if not isinstance(raw_entries, list):
            raise ValueError("sessions index 'entries' must be a list")
        entries: List[Session] = []
        for raw in raw_entries:
            if not isinstance(raw, dict):
                continue
            try:
                entries.append(Session.from_index_entry(raw))
            except (ValueError, TypeError):
                continue
        version = d.get("version") or 0
        return cls(
            version=version if isinstance(version, int) else 0,
            entries=entries,
            original_path=str(d.get("originalpath") or ""),
        )


@dataclass
class PromotedStore:
    """Persisted mapping of session id -> PromotedMetadata."""

    version: int = 1
    sessions: Dict[str, PromotedMetadata] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "sessions": {sid: meta.to_dict() for sid, meta in self.sessions.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PromotedStore":
        """Deserialize the store, skipping individual malformed entries.

        Raises:
            ValueError: If data is not a store object.
        """
        if not isinstance(data, dict):
            raise ValueError("promoted store must be a JSON object")
        d = _lower_keys(data)
        raw_sessions = d.get("sessions") or {}
        if not isinstance(raw_sessions, dict):
            raise ValueError("promoted store 'sessions' must be an object")
        sessions: Dict[str, PromotedMetadata] = {}
        for sid, meta in raw_sessions.items():
            if not isinstance(meta, dict):
                logger.warning("Skipping promoted entry %s: not an object", sid)
                continue
            try:
                sessions[str(sid)] = PromotedMetadata.from_dict(meta)
            except (ValueError, TypeError) as exc:
                logger.warning("Skipping promoted entry %s: %s", sid, exc)
        version = d.get("version")
        return cls(version=version if isinstance(version, int) else 1, sessions=sessions)


@dataclass
class ScoredResult:
    """One search hit: a session plus how well it matched the query."""

    session: Session
    match_count: int
    total_words: int
    match_preview: str = ""
    matched_words: List[str] = field(default_factory=list)

    @property
    def match_ratio(self) -> str:
        return f"{self.match_count}/{self.total_words}"

    def to_dict(self) -> dict:
        d = self.session.to_dict()
        d.update({
            "match_count": self.match_count,
            "total_words": self.total_words,
            "match_preview": self.match_preview,
            "matched_words": list(self.matched_words),
        })
        return d
