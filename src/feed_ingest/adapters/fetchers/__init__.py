"""Document fetchers."""

from feed_ingest.adapters.fetchers.http_fetcher import HttpFeedFetcher

__all__ = ["HttpFeedFetcher"]
