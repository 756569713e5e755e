"""Persistent stores for pipeline output."""

from feed_ingest.adapters.storage.parsed_feed_store import ParsedFeedStore

__all__ = ["ParsedFeedStore"]
