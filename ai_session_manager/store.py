"""
Persistence for promoted-session metadata.

The store is a single pretty-printed JSON file rewritten in full after every
mutation. Reads degrade to an empty store; write failures propagate so a
lost edit is never hidden from the caller.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import json
import logging
from pathlib import Path

from .models import PromotedStore

logger = logging.getLogger(__name__)

#: File name of the store inside the Claude config directory.
STORE_FILENAME = "sessions-manager.json"


class PromotedStoreFile:
    """Owns the on-disk promoted store and its in-memory copy."""

    def __init__(self, path: Path):
        """Initialize with the store file path. Nothing is read until load()."""
        self.path = Path(path)
        self.store = PromotedStore()

    def load(self) -> PromotedStore:
        """Read the store file, replacing the in-memory copy.

        A missing, unreadable, or corrupt file yields an empty store.
        """
        if not self.path.exists():
            self.store = PromotedStore()
            return self.store
        try:
            with open(self.path, encoding="utf-8") as f:
                self.store = PromotedStore.from_dict(json.load(f))
        except (json.JSONDecodeError, ValueError, TypeError, OSError) as exc:
            logger.warning("Could not load promoted store %s: %s", self.path, exc)
            self.store = PromotedStore()
        return self.store

    def save(self) -> None:
        """Rewrite the whole store file.

        Raises:
            OSError: If the file cannot be written.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.store.to_dict(), indent=2) + "\n", encoding="utf-8")
        logger.debug("Saved %d promoted sessions to %s", len(self.store.sessions), self.path)
