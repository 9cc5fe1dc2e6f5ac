"""
Output formatters with multiple output types.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import csv
import datetime
import io
import json
import os
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Union

from .engine import SessionCatalog
from .models import ScoredResult, Session, SessionStatus, utc_now

try:
    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    HAS_RICH = True
except ImportError:
    HAS_RICH = False

#: Rich style per promoted status.
STATUS_STYLES = {
    SessionStatus.ACTIVE: "green",
    SessionStatus.BLOCKED: "red",
    SessionStatus.COMPLETED: "grey50",
    SessionStatus.ARCHIVED: "dim",
}


def time_ago(value: datetime.datetime, now: Optional[datetime.datetime] = None) -> str:
    """Compact relative time: 'just now', '5m ago', '3h ago', '2d ago', '1w ago', '4mo ago', '1y ago'."""
    seconds = ((now or utc_now()) - value).total_seconds()
    minutes = seconds / 60
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{int(minutes)}m ago"
    hours = minutes / 60
    if hours < 24:
        return f"{int(hours)}h ago"
    days = hours / 24
    if days < 7:
        return f"{int(days)}d ago"
    if days < 30:
        return f"{int(days / 7)}w ago"
    if days < 365:
        return f"{int(days / 30)}mo ago"
    return f"{int(days / 365)}y ago"


def _clip(text: str, limit: int) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[: limit - 1] + "…"


def _project_name(session: Session) -> str:
    return os.path.basename(session.project_path.rstrip("/")) or session.project_path


def _unwrap(item: Union[Session, ScoredResult]) -> Session:
    return item.session if isinstance(item, ScoredResult) else item


class ResultFormatter(ABC):
    """Base formatter protocol."""

    @abstractmethod
    def format(self, data: Any) -> str:
        """Format data for output."""
        pass

    @abstractmethod
    def format_many(self, items: List[Any]) -> str:
        """Format multiple items."""
        pass


class TableFormatter(ResultFormatter):
    """Format sessions or search results as a table using Rich."""

    def __init__(self, title: str = "Sessions"):
        """Initialize with title."""
        self.title = title
        if not HAS_RICH:
            raise ImportError("Rich library required for table formatting")

    def format(self, data: Union[Session, ScoredResult]) -> str:
        """Format single session as aligned key/value lines."""
        session = _unwrap(data)
        lines = [
            f"Session:       {session.session_id}",
            f"Name:          {SessionCatalog.get_display_name(session)}",
            f"Project:       {session.project_path}",
            f"Branch:        {session.git_branch or '-'}",
            f"Messages:      {session.message_count}",
            f"Modified:      {session.modified:%Y-%m-%d %H:%M}",
            f"Status:        {session.status.value if session.status else '-'}",
        ]
        if isinstance(data, ScoredResult):
            lines.append(f"Match:         {data.match_ratio}  {data.match_preview}")
        return "\n".join(lines)

    def format_many(self, items: List[Union[Session, ScoredResult]]) -> str:
        """Format multiple sessions (or search results) as table."""
        scored = bool(items) and isinstance(items[0], ScoredResult)
        table = Table(title=self.title)
        table.add_column("ID", style="cyan", no_wrap=True)
        if scored:
            table.add_column("Match", justify="right", style="magenta")
        table.add_column("Name/Summary")
        table.add_column("Project", style="blue")
        table.add_column("Modified", style="dim")
        table.add_column("Messages", justify="right")
        table.add_column("Status")

        for item in items:
            session = _unwrap(item)
            status = session.status
            status_cell = f"[{STATUS_STYLES[status]}]{status.value}[/]" if status else "-"
            row = [session.short_id]
            if scored:
                row.append(item.match_ratio)
            row += [
                escape(_clip(SessionCatalog.get_display_name(session), 50)),
                escape(_project_name(session)),
                time_ago(session.modified),
                str(session.message_count),
                status_cell,
            ]
            table.add_row(*row)

        console = Console()
        with console.capture() as capture:
            console.print(table)
        return capture.get()


class JsonFormatter(ResultFormatter):
    """Format results as JSON."""

    def format(self, data: Union[Session, ScoredResult]) -> str:
        """Format single item."""
        return json.dumps(data.to_dict(), indent=2)

    def format_many(self, items: List[Union[Session, ScoredResult]]) -> str:
        """Format multiple items as JSON array."""
        return json.dumps([item.to_dict() for item in items], indent=2)


_CSV_HEADER = [
    "session_id", "name", "project_path", "git_branch", "modified", "message_count", "status",
    "match_count", "match_preview",
]


def _to_csv_row(item: Union[Session, ScoredResult]) -> list:
    session = _unwrap(item)
    scored = isinstance(item, ScoredResult)
    return [
        session.session_id,
        SessionCatalog.get_display_name(session),
        session.project_path,
        session.git_branch,
        session.to_dict()["modified"] or "",
        session.message_count,
        session.status.value if session.status else "",
        item.match_count if scored else "",
        item.match_preview if scored else "",
    ]


class CsvFormatter(ResultFormatter):
    """Format results as RFC 4180-compliant CSV (fields properly quoted)."""

    def format(self, data: Union[Session, ScoredResult]) -> str:
        """Format single item as CSV with header."""
        return self.format_many([data])

    def format_many(self, items: List[Union[Session, ScoredResult]]) -> str:
        """Format multiple items as CSV with header."""
        buf = io.StringIO()
        writer = csv.writer(buf)
        writer.writerow(_CSV_HEADER)
        for item in items:
            writer.writerow(_to_csv_row(item))
        return buf.getvalue()


class PlainFormatter(ResultFormatter):
    """Simple plain text formatter: one line per item."""

    def format(self, data: Any) -> str:
        """Format single item."""
        if isinstance(data, ScoredResult):
            s = data.session
            return f"{s.session_id}  [{data.match_ratio}]  {SessionCatalog.get_display_name(s)}  - {data.match_preview}"
        if isinstance(data, Session):
            return f"{data.session_id}  {SessionCatalog.get_display_name(data)}  ({_project_name(data)}, {data.message_count} msgs)"
        return str(data)

    def format_many(self, items: List[Any]) -> str:
        """Format multiple items."""
        return "\n".join(self.format(item) for item in items)


def get_formatter(format_type: str, title: str = "Sessions") -> ResultFormatter:
    """Factory function to get formatter by type."""
    formatters = {
        "table": TableFormatter,
        "json": JsonFormatter,
        "csv": CsvFormatter,
        "plain": PlainFormatter,
    }

    formatter_class = formatters.get(format_type.lower())
    if not formatter_class:
        raise ValueError(f"Unknown format: {format_type}")

    try:
        return formatter_class(title)
    except TypeError:
        return formatter_class()
