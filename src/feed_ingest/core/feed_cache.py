"""Per-URL cache of the latest normalized feed results."""

import hashlib
import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import yaml

from feed_ingest.core.entities import (
    CachedResult,
    CacheEntry,
    CacheStats,
    FeedStage,
    ParseFailure,
    result_from_dict,
    result_to_dict,
    utc_now,
)

logger = logging.getLogger(__name__)


class FeedCache:
    """Key-value store of feed results keyed by feed URL.

    Entries live in memory; when a storage directory is given, ``load`` reads
    one YAML artifact per URL and ``flush`` writes them back. The cache never
    fetches anything itself.
    """

    def __init__(
        self,
        storage_dir: Optional[Path] = None,
        default_ttl: int = 1800,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.storage_dir = storage_dir
        self.default_ttl = default_ttl
        self._clock = clock or utc_now
        self._entries: dict[str, CacheEntry] = {}

    def get(self, url: str) -> Optional[CacheEntry]:
        """Return the entry for a URL, flagged stale when past its TTL."""
        entry = self._entries.get(url)
        if entry is None:
            return None

        stale = self._clock() >= entry.expires_at
        return replace(entry, stale=stale)

    def put(self, url: str, result: CachedResult, ttl: Optional[int] = None) -> CacheEntry:
        """Replace the entry for a URL wholesale."""
        entry = CacheEntry(
            feed_url=url,
            result=result,
            fetched_at=self._clock(),
            ttl_seconds=self.default_ttl if ttl is None else ttl,
        )
        self._entries[url] = entry
        logger.debug("Cached result for %s", url)
        return entry

    def record_failure(self, url: str, error: str, stage: FeedStage = FeedStage.FAILED) -> None:
        """Store a failure marker unless a successful result is already cached."""
        existing = self._entries.get(url)
        if existing is not None and not existing.is_failure:
            logger.info("Keeping previous result for %s after failure: %s", url, error)
            return
        self.put(url, ParseFailure(error=error, stage=stage))

    def invalidate(self, url: Optional[str] = None) -> int:
        """Drop one URL's entry, or every entry when url is None.

        Returns:
            Number of entries removed
        """
        if url is not None:
            removed = 1 if self._entries.pop(url, None) is not None else 0
            artifact_path = self._get_artifact_path(url)
            if artifact_path is not None and artifact_path.exists():
                artifact_path.unlink()
            logger.info("Cleared cache for %s", url)
            return removed

        removed = len(self._entries)
        self._entries.clear()
        if self.storage_dir is not None and self.storage_dir.exists():
            for artifact_path in self.storage_dir.glob("*.yaml"):
                artifact_path.unlink()
        logger.info("Cleared all cache entries (%d)", removed)
        return removed

    def stats(self) -> CacheStats:
        """Get statistics about cached entries."""
        if not self._entries:
            return CacheStats(entry_count=0, oldest_entry=None, newest_entry=None)

        fetched = [entry.fetched_at for entry in self._entries.values()]
        now = self._clock()
        stale_count = sum(1 for entry in self._entries.values() if now >= entry.expires_at)

        return CacheStats(
            entry_count=len(self._entries),
            oldest_entry=min(fetched),
            newest_entry=max(fetched),
            stale_count=stale_count,
        )

    def load(self) -> int:
        """Load persisted entries from the storage directory.

        Returns:
            Number of entries loaded
        """
        if self.storage_dir is None or not self.storage_dir.exists():
            return 0

        loaded = 0
        for artifact_path in sorted(self.storage_dir.glob("*.yaml")):
            try:
                with open(artifact_path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f)

                entry = CacheEntry(
                    feed_url=data["url"],
                    result=result_from_dict(data["result"]),
                    fetched_at=datetime.fromisoformat(data["fetched_at"]),
                    ttl_seconds=int(data.get("ttl_seconds", self.default_ttl)),
                )
            except (OSError, yaml.YAMLError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable cache artifact %s: %s", artifact_path, e)
                continue

            self._entries[entry.feed_url] = entry
            loaded += 1

        logger.info("Loaded %d cache entries from %s", loaded, self.storage_dir)
        return loaded

    def flush(self) -> int:
        """Write every entry to the storage directory.

        Returns:
            Number of entries written
        """
        if self.storage_dir is None:
            return 0

        self.storage_dir.mkdir(parents=True, exist_ok=True)

        for url, entry in self._entries.items():
            artifact = {
                "url": url,
                "fetched_at": entry.fetched_at.isoformat(),
                "ttl_seconds": entry.ttl_seconds,
                "result": result_to_dict(entry.result),
            }
            artifact_path = self._get_artifact_path(url)
            with open(artifact_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(artifact, f, allow_unicode=True, default_flow_style=False, sort_keys=False)

        return len(self._entries)

    def _get_artifact_path(self, url: str) -> Optional[Path]:
        """Get path for a URL's artifact file."""
        if self.storage_dir is None:
            return None
        url_hash = hashlib.md5(url.encode()).hexdigest()
        return self.storage_dir / f"{url_hash}.yaml"
