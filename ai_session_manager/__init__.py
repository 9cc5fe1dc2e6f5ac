"""
AI Session Manager - index, search, and curate Claude Code sessions.

A composable library with a thin CLI layer. It reconciles each project's
sessions-index.json with unindexed JSONL logs, and decodes project directory
names back to real paths. It ranks multi-word searches across metadata and
conversation text, and keeps user-curated promotion metadata (names, tags,
status, notes) in one store file.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0

Example usage as library:
    from ai_session_manager import SessionCatalog

    catalog = SessionCatalog(Path.home() / ".claude")
    for result in catalog.search("oauth bug"):
        print(result.match_ratio, catalog.get_display_name(result.session))
    catalog.promote(result.session.session_id, name="OAuth fix", tags=["auth"])
"""

try:
    from importlib.metadata import version
    __version__ = version("ai-session-manager")
except Exception:
    __version__ = "1.0.0"

__author__ = "Andrew Hundt"

from .engine import AmbiguousSessionError, SessionCatalog, SessionNotFoundError
from .extractors import (
    METADATA_SCAN_RECORDS,
    BlockContent,
    LogMetadataExtractor,
    TextContent,
    extract_text,
    looks_like_error,
    parse_content,
)
from .filters import SessionFilter, newest_first
from .formatters import CsvFormatter, JsonFormatter, PlainFormatter, ResultFormatter, TableFormatter
from .models import (
    MessageType,
    Note,
    PromotedMetadata,
    PromotedStore,
    ScoredResult,
    Session,
    SessionsIndex,
    SessionStatus,
)
from .paths import decode_project_dir, encode_project_path
from .search import SearchEngine, extract_excerpt, tokenize_query
from .store import PromotedStoreFile
from .types import ExistenceOracle, Formatter, Searchable, SessionSource

__all__ = [
    "AmbiguousSessionError",
    "BlockContent",
    "CsvFormatter",
    "ExistenceOracle",
    "Formatter",
    "JsonFormatter",
    "LogMetadataExtractor",
    "METADATA_SCAN_RECORDS",
    "MessageType",
    "Note",
    "PlainFormatter",
    "PromotedMetadata",
    "PromotedStore",
    "PromotedStoreFile",
    "ResultFormatter",
    "ScoredResult",
    "SearchEngine",
    "Searchable",
    "Session",
    "SessionCatalog",
    "SessionFilter",
    "SessionNotFoundError",
    "SessionSource",
    "SessionStatus",
    "SessionsIndex",
    "TableFormatter",
    "TextContent",
    "decode_project_dir",
    "encode_project_path",
    "extract_excerpt",
    "extract_text",
    "looks_like_error",
    "newest_first",
    "parse_content",
    "tokenize_query",
]
