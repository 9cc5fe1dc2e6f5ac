"""
Project directory name encoding and decoding.

Claude Code stores each project's logs under ``~/.claude/projects/<encoded>/``,
where ``<encoded>`` is the working directory with every non-alphanumeric
character replaced by ``-``. The encoding is lossy: a hyphen in the real path
is indistinguishable from a path separator, so decoding probes the filesystem
(through an injected existence oracle) to find the most likely original path.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import os
import re
from typing import List

from .types import ExistenceOracle

#: Character that replaces path separators in encoded directory names.
DELIMITER = "-"
SEPARATOR = "/"

_ENCODE_RE = re.compile(r"[^a-zA-Z0-9-]")


def encode_project_path(path: str) -> str:
    """Convert an absolute working directory path to its projects/ directory name.

    Matches Claude Code's own encoding: replace /[^a-zA-Z0-9-]/g with '-'.

    Examples:
        /Users/alice/proj1            → -Users-alice-proj1
        /Users/me/my_project          → -Users-me-my-project
        /var/www/my.site.com/public   → -var-www-my-site-com-public
    """
    return _ENCODE_RE.sub(DELIMITER, path)


def decode_project_dir(encoded: str, exists: ExistenceOracle = os.path.isdir) -> str:
    """Reconstruct the real path for an encoded project directory name.

    Greedy longest-match: at each position, join successive segments with '-' and
    keep the longest candidate for which ``exists(accumulated + '/' + candidate)``
    is true. When no candidate exists, the remaining segments become one final
    component, so decoding always terminates with a non-empty result.

    Two different real paths can encode to the same name; the longest existing
    prefix wins.

    Args:
        encoded: Directory name, e.g. "-Users-alice-my-project"
        exists:  Oracle answering whether a path exists (default: os.path.isdir)

    Returns:
        Decoded absolute path, or ``encoded`` unchanged if it has no leading '-'.
    """
    if not encoded or not encoded.startswith(DELIMITER):
        return encoded

    segments: List[str] = encoded[len(DELIMITER):].split(DELIMITER)
    accumulated = ""
    start = 0

    while start < len(segments):
        best_end = -1
        for end in range(start, len(segments)):
            candidate = DELIMITER.join(segments[start:end + 1])
            if exists(accumulated + SEPARATOR + candidate):
                best_end = end
        if best_end < 0:
            accumulated += SEPARATOR + DELIMITER.join(segments[start:])
            break
        accumulated += SEPARATOR + DELIMITER.join(segments[start:best_end + 1])
        start = best_end + 1

    return accumulated
