"""Registry of known feeds, persisted as a JSON document."""

import hashlib
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

from feed_ingest.core.entities import FeedDescriptor, FeedStatus, FeedType, create_slug, utc_now
from feed_ingest.core.errors import DuplicateFeedError, FeedNotFoundError, StoreError

logger = logging.getLogger(__name__)

REGISTRY_VERSION = 1


def make_feed_id(url: str, title: str = "") -> str:
    """Stable id for a new feed: the title slug, else a hash of the URL."""
    slug = create_slug(title) if title else ""
    return slug or f"feed-{hashlib.md5(url.encode()).hexdigest()[:10]}"


class FeedRegistry:
    """Declarative list of feeds with filtered, priority-ordered views."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path
        self._feeds: list[FeedDescriptor] = []

    def load(self) -> int:
        """Load descriptors from disk. A missing file means an empty registry."""
        if self.path is None or not self.path.exists():
            self._feeds = []
            return 0

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            feeds = [FeedDescriptor.from_dict(item) for item in data.get("feeds", [])]
        except (OSError, json.JSONDecodeError, KeyError, ValueError) as e:
            raise StoreError(self.path, str(e)) from e

        self._feeds = feeds
        logger.info("Loaded %d feeds from %s", len(feeds), self.path)
        return len(feeds)

    def save(self) -> None:
        """Persist the full registry."""
        if self.path is None:
            return

        document = {
            "feeds": [feed.to_dict() for feed in self._feeds],
            "lastUpdated": utc_now().isoformat(),
            "version": REGISTRY_VERSION,
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            raise StoreError(self.path, str(e)) from e

    def all(self) -> list[FeedDescriptor]:
        return list(self._feeds)

    def get(self, feed_id: str) -> Optional[FeedDescriptor]:
        return next((feed for feed in self._feeds if feed.id == feed_id), None)

    def list_active(self, feed_type: Optional[FeedType] = None) -> list[FeedDescriptor]:
        """Active feeds ordered by priority, then insertion order."""
        active = [
            feed for feed in self._feeds
            if feed.is_active and (feed_type is None or feed.type == feed_type)
        ]
        # sorted() is stable, so insertion order holds within a priority
        return sorted(active, key=lambda feed: feed.priority.rank)

    def snapshot(self) -> tuple[FeedDescriptor, ...]:
        """Frozen view of the active feeds for one run."""
        return tuple(replace(feed) for feed in self.list_active())

    def add(self, descriptor: FeedDescriptor) -> FeedDescriptor:
        """Register a feed.

        Raises:
            DuplicateFeedError: if the id exists or an active feed has the same URL
        """
        for feed in self._feeds:
            if feed.id == descriptor.id:
                raise DuplicateFeedError(descriptor.original_url, feed.id)
            if feed.is_active and feed.original_url == descriptor.original_url:
                raise DuplicateFeedError(descriptor.original_url, feed.id)

        self._feeds.append(descriptor)
        self.save()
        logger.info("Added feed %s (%s)", descriptor.id, descriptor.original_url)
        return descriptor

    def remove(self, feed_id: str) -> FeedDescriptor:
        """Remove a feed by id."""
        descriptor = self.get(feed_id)
        if descriptor is None:
            raise FeedNotFoundError(feed_id)

        self._feeds = [feed for feed in self._feeds if feed.id != feed_id]
        self.save()
        logger.info("Removed feed %s", feed_id)
        return descriptor

    def set_status(self, feed_id: str, status: FeedStatus) -> FeedDescriptor:
        """Activate or deactivate a feed."""
        descriptor = self.get(feed_id)
        if descriptor is None:
            raise FeedNotFoundError(feed_id)

        if status == FeedStatus.ACTIVE and not descriptor.is_active:
            for feed in self._feeds:
                if feed.is_active and feed.original_url == descriptor.original_url:
                    raise DuplicateFeedError(descriptor.original_url, feed.id)

        descriptor.status = status
        descriptor.last_updated = utc_now()
        self.save()
        return descriptor
