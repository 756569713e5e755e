"""JSON-file store for the persisted set of parsed feeds."""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from feed_ingest.core.entities import Album, ParsedFeed, create_slug, utc_now
from feed_ingest.core.errors import StoreError
from feed_ingest.core.interfaces import ResultStore

logger = logging.getLogger(__name__)


def _atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.parent / f".{path.name}.{os.getpid()}.tmp"
    tmp.write_text(text, encoding="utf-8")
    tmp.replace(path)


class ParsedFeedStore(ResultStore):
    """Result set keyed by feed id.

    Readers see either the previous set or the new one in full: the in-memory
    mapping is swapped in a single assignment and the file is written to a
    temporary sibling and renamed over the original.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path
        self._entries: dict[str, ParsedFeed] = {}

    def load(self) -> int:
        """Load the persisted result set. A missing file means an empty set."""
        if self.path is None or not self.path.exists():
            self._entries = {}
            return 0

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            entries = [ParsedFeed.from_dict(item) for item in data.get("feeds", [])]
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise StoreError(self.path, str(e)) from e

        self._entries = {entry.feed_id: entry for entry in entries}
        logger.info("Loaded %d parsed feeds from %s", len(entries), self.path)
        return len(entries)

    def replace_all(self, entries: list[ParsedFeed]) -> None:
        replacement = {entry.feed_id: entry for entry in entries}
        self._write(replacement)
        self._entries = replacement
        logger.info("Stored %d parsed feeds", len(replacement))

    def upsert(self, entry: ParsedFeed) -> None:
        replacement = dict(self._entries)
        replacement[entry.feed_id] = entry
        self._write(replacement)
        self._entries = replacement

    def list_all(self) -> list[ParsedFeed]:
        return list(self._entries.values())

    def get_by_feed_id(self, feed_id: str) -> Optional[ParsedFeed]:
        return self._entries.get(feed_id)

    def find_album(self, slug_or_title: str) -> Optional[Album]:
        """Look up an album by title slug, or by exact title ignoring case."""
        wanted = slug_or_title.strip()
        wanted_slug = create_slug(wanted)

        for entry in self._entries.values():
            album = entry.album
            if album is None:
                continue
            if album.slug == wanted_slug or album.title.lower() == wanted.lower():
                return album
        return None

    def _write(self, entries: dict[str, ParsedFeed]) -> None:
        if self.path is None:
            return

        document = {
            "feeds": [entry.to_dict() for entry in entries.values()],
            "lastUpdated": utc_now().isoformat(),
        }
        try:
            _atomic_write_text(self.path, json.dumps(document, indent=2, ensure_ascii=False))
        except OSError as e:
            raise StoreError(self.path, str(e)) from e
