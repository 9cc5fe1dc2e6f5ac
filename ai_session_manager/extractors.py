"""
Extraction strategies for session JSONL logs.

Two extractors live here:

- Content extraction: turn one raw log line into the human-authored text it
  carries, dropping tool calls, thinking blocks, and captured API errors.
- Metadata extraction: derive a Session summary (first prompt, branch,
  timestamps, message count) from a log without parsing all of it. Only the
  first ``max_parsed_records`` lines are parsed as JSON; the rest of the file is
  scanned with a substring test to keep the message count accurate.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import datetime
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

try:
    from orjson import loads as _json_loads
except ImportError:
    from json import loads as _json_loads  # type: ignore[assignment]

from .models import MESSAGE_TYPES, Session, parse_timestamp

logger = logging.getLogger(__name__)

#: Lines parsed as JSON before falling back to substring counting.
METADATA_SCAN_RECORDS = 50

#: Display budget for the first prompt.
FIRST_PROMPT_MAX_CHARS = 200

#: Prefixes that mark captured error payloads rather than conversation text.
_ERROR_PREFIXES = ("API Error:", '{"type":"error"')

#: Raw-line markers for user/assistant records (json and orjson spacing).
_MESSAGE_MARKERS = (
    '"type":"user"',
    '"type": "user"',
    '"type":"assistant"',
    '"type": "assistant"',
)


def looks_like_error(text: str) -> bool:
    """Return True if text is an API error capture rather than real content."""
    stripped = text.lstrip()
    if stripped.lower().startswith("error:"):
        return True
    return stripped.startswith(_ERROR_PREFIXES)


def truncate(text: str, limit: int) -> str:
    """Truncate to at most ``limit`` chars, ending with '...' when cut."""
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


@dataclass(frozen=True)
class TextContent:
    """Message content given as a plain string."""

    text: str

    def searchable_text(self) -> str:
        return "" if looks_like_error(self.text) else self.text


@dataclass(frozen=True)
class BlockContent:
    """Message content given as a list of typed blocks.

    Only ``text`` blocks contribute; tool_use, tool_result, thinking, and
    image blocks carry no human-authored text.
    """

    blocks: Tuple[Dict[str, Any], ...]

    def searchable_text(self) -> str:
        parts: List[str] = []
        for block in self.blocks:
            if block.get("type") != "text":
                continue
            text = block.get("text")
            if not isinstance(text, str) or looks_like_error(text):
                continue
            parts.append(text)
        return " ".join(parts)


MessageContent = Union[TextContent, BlockContent]


def parse_content(raw: Any) -> Optional[MessageContent]:
    """Classify a ``message.content`` value. Returns None for unsupported shapes."""
    if isinstance(raw, str):
        return TextContent(raw)
    if isinstance(raw, list):
        return BlockContent(tuple(b for b in raw if isinstance(b, dict)))
    return None


def extract_record_text(data: Dict[str, Any]) -> Optional[str]:
    """Extract human-authored text from an already-parsed log record.

    Returns:
        The text, or None if the record is not a user/assistant message, has no
        message content, or only carries tool/thinking/error payloads.
    """
    if data.get("type") not in MESSAGE_TYPES:
        return None
    message = data.get("message")
    if not isinstance(message, dict) or "content" not in message:
        return None
    content = parse_content(message["content"])
    if content is None:
        return None
    return content.searchable_text() or None


def extract_text(line: str) -> Optional[str]:
    """Extract human-authored text from one raw JSONL line (None if there is none)."""
    try:
        data = _json_loads(line)
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    return extract_record_text(data)


def _has_message_marker(line: str) -> bool:
    return any(marker in line for marker in _MESSAGE_MARKERS)


def _file_times(stat) -> Tuple[datetime.datetime, datetime.datetime]:
    """(created, modified) from a stat result; st_birthtime where the OS has it."""
    birth = getattr(stat, "st_birthtime", None) or stat.st_ctime
    created = datetime.datetime.fromtimestamp(birth, tz=datetime.timezone.utc)
    modified = datetime.datetime.fromtimestamp(stat.st_mtime, tz=datetime.timezone.utc)
    return created, modified


class LogMetadataExtractor:
    """Build Session objects from raw JSONL logs using a two-tier scan."""

    def __init__(self, max_parsed_records: int = METADATA_SCAN_RECORDS):
        """Initialize extractor.

        Args:
            max_parsed_records: Lines parsed as JSON before switching to the
                                cheap substring count for the rest of the file.
        """
        self.max_parsed_records = max_parsed_records

    def extract(  # noqa: C901
        self,
        log_path: Path,
        session_id: str,
        fallback_project_path: str,
    ) -> Optional[Session]:
        """Extract session metadata from a log file.

        Args:
            log_path: Path to the session JSONL file
            session_id: Identifier to give the session (normally the file stem)
            fallback_project_path: Project path used when no record carries a cwd

        Returns:
            Session, or None if the file cannot be read. A readable log with no
            user/assistant records also yields None: it has nothing to list or
            search, so callers treat it like an unreadable one.
        """
        git_branch = ""
        cwd = ""
        is_sidechain = False
        first_prompt = ""
        created: Optional[datetime.datetime] = None
        modified: Optional[datetime.datetime] = None
        message_count = 0

        try:
            stat = log_path.stat()
            with open(log_path, encoding="utf-8", errors="replace") as f:
                for line_no, line in enumerate(f):
                    if line_no >= self.max_parsed_records:
                        if _has_message_marker(line):
                            message_count += 1
                        continue
                    try:
                        data = _json_loads(line)
                    except (json.JSONDecodeError, ValueError):
                        continue
                    if not isinstance(data, dict):
                        continue
                    msg_type = data.get("type")
                    if msg_type not in MESSAGE_TYPES:
                        continue
                    message_count += 1

                    branch = data.get("gitBranch")
                    if not git_branch and isinstance(branch, str) and branch:
                        git_branch = branch
                    record_cwd = data.get("cwd")
                    if not cwd and isinstance(record_cwd, str) and record_cwd:
                        cwd = record_cwd
                    if data.get("isSidechain") is True:
                        is_sidechain = True

                    ts = parse_timestamp(data.get("timestamp"))
                    if ts is not None:
                        if created is None or ts < created:
                            created = ts
                        if modified is None or ts > modified:
                            modified = ts

                    if msg_type == "user" and not first_prompt:
                        text = extract_record_text(data)
                        if text:
                            first_prompt = truncate(text.strip(), FIRST_PROMPT_MAX_CHARS)
        except OSError as exc:
            logger.debug("Skipping unreadable log %s: %s", log_path, exc)
            return None

        if message_count == 0:
            logger.debug("Skipping log with no user/assistant records: %s", log_path)
            return None

        fs_created, fs_modified = _file_times(stat)
        return Session(
            session_id=session_id,
            full_path=str(log_path),
            file_mtime=int(stat.st_mtime * 1000),
            first_prompt=first_prompt,
            summary=first_prompt,
            message_count=message_count,
            created=created or fs_created,
            modified=modified or fs_modified,
            git_branch=git_branch,
            project_path=cwd or fallback_project_path,
            is_sidechain=is_sidechain,
        )
