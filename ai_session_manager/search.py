"""
Ranked multi-word session search.

Each query word is matched independently: first against session metadata
(promoted name, summary, first prompt), then against conversation text for the
words still unmatched. Sessions are ranked by how many words matched, newest
first among equals.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import logging
import re
from typing import List, Optional, Sequence, Tuple

from .extractors import extract_text, truncate
from .models import ScoredResult, Session
from .types import SessionSource

logger = logging.getLogger(__name__)

#: Default number of results returned by a search.
DEFAULT_SEARCH_LIMIT = 10

#: Excerpts kept per session for the match preview.
MAX_EXCERPTS = 2

EXCERPT_RADIUS = 60
EXCERPT_MAX_CHARS = 120
PREVIEW_MAX_CHARS = 150


def tokenize_query(query: str) -> List[str]:
    """Lowercase and whitespace-split query into distinct words (first occurrence order)."""
    return list(dict.fromkeys(query.lower().split()))


def extract_excerpt(
    text: str,
    word: str,
    radius: int = EXCERPT_RADIUS,
    max_chars: int = EXCERPT_MAX_CHARS,
) -> str:
    """Return a readable window of text around the first occurrence of word.

    The window spans ``radius`` chars on each side of the match, widened outward
    to the nearest whitespace so words are not cut. Internal whitespace is
    collapsed and the result truncated to ``max_chars``.

    Returns:
        Excerpt string, or "" if word does not occur in text.
    """
    match = re.search(re.escape(word), text, re.IGNORECASE)
    if match is None:
        return ""
    start = max(0, match.start() - radius)
    end = min(len(text), match.end() + radius)
    while start > 0 and not text[start - 1].isspace():
        start -= 1
    while end < len(text) and not text[end].isspace():
        end += 1
    return truncate(" ".join(text[start:end].split()), max_chars)


def _metadata_fields(session: Session) -> List[str]:
    fields = [session.summary, session.first_prompt]
    if session.promoted and session.promoted.name:
        fields.insert(0, session.promoted.name)
    return [f.lower() for f in fields if f]


def _line_may_contain(line_lower: str, words: Sequence[str]) -> bool:
    """Raw-line pre-filter. Only trusted for words JSON never escapes."""
    for word in words:
        if not word.isascii() or '"' in word or "\\" in word:
            return True
        if word in line_lower:
            return True
    return False


class SearchEngine:
    """Score and rank sessions against a free-text query."""

    def __init__(self, source: Optional[SessionSource] = None, limit: int = DEFAULT_SEARCH_LIMIT):
        """Initialize engine.

        Args:
            source: Catalog to load sessions from when search() is not given any
            limit: Maximum number of results returned
        """
        self.source = source
        self.limit = limit

    def search(self, query: str, sessions: Optional[List[Session]] = None) -> List[ScoredResult]:
        """Search sessions for the words in query.

        Args:
            query: Free text; split on whitespace, case-insensitive
            sessions: Sessions to search. None = load from the source catalog.

        Returns:
            At most ``limit`` results sorted by (match_count, modified) descending.
            Empty query returns [].
        """
        words = tokenize_query(query)
        if not words:
            return []
        if sessions is None:
            if self.source is None:
                raise ValueError("SearchEngine needs a session source or an explicit session list")
            sessions = self.source.load_all()

        results: List[ScoredResult] = []
        for session in sessions:
            result = self.score_session(session, words)
            if result is not None:
                results.append(result)

        results.sort(key=lambda r: (r.match_count, r.session.modified), reverse=True)
        return results[: self.limit]

    def score_session(self, session: Session, words: List[str]) -> Optional[ScoredResult]:
        """Match each word against metadata, then conversation content.

        Returns:
            ScoredResult, or None if no word matched anywhere.
        """
        fields = _metadata_fields(session)
        matched = {w for w in words if any(w in f for f in fields)}

        excerpts: List[str] = []
        unmatched = [w for w in words if w not in matched]
        if unmatched:
            for word, excerpt in self._search_content(session.full_path, unmatched):
                matched.add(word)
                if excerpt and len(excerpts) < MAX_EXCERPTS:
                    excerpts.append(excerpt)

        if not matched:
            return None

        preview = " ... ".join(excerpts) if excerpts else truncate(session.summary, PREVIEW_MAX_CHARS)
        return ScoredResult(
            session=session,
            match_count=len(matched),
            total_words=len(words),
            match_preview=preview,
            matched_words=[w for w in words if w in matched],
        )

    @staticmethod
    def _search_content(path: str, words: List[str]) -> List[Tuple[str, str]]:
        """Stream a log and find the first line containing each word.

        Returns:
            (word, excerpt) pairs in first-match order. Stops reading as soon as
            every word has matched. Unreadable files yield [].
        """
        found: List[Tuple[str, str]] = []
        if not path or not words:
            return found
        remaining = list(words)
        try:
            with open(path, encoding="utf-8", errors="replace") as f:
                for line in f:
                    if not _line_may_contain(line.lower(), remaining):
                        continue
                    text = extract_text(line)
                    if not text:
                        continue
                    text_lower = text.lower()
                    for word in list(remaining):
                        if word in text_lower:
                            found.append((word, extract_excerpt(text, word)))
                            remaining.remove(word)
                    if not remaining:
                        break
        except OSError as exc:
            logger.debug("Skipping content search for %s: %s", path, exc)
        return found
