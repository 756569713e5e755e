"""Core domain layer."""

from feed_ingest.core.entities import (
    Album,
    CacheEntry,
    CacheStats,
    FeedDescriptor,
    FeedFailure,
    FeedIssue,
    FeedOutcome,
    FeedPriority,
    FeedResult,
    FeedSource,
    FeedStage,
    FeedStatus,
    FeedSuccess,
    FeedType,
    Owner,
    ParsedFeed,
    ParseFailure,
    ParseReport,
    ParseReportBuilder,
    Publisher,
    PublisherRef,
    Track,
    ValueRecipient,
    ValueSplit,
)
from feed_ingest.core.errors import (
    DuplicateFeedError,
    FeedIngestError,
    FeedNotFoundError,
    FetchError,
    MalformedDocumentError,
    NormalizationError,
    StoreError,
)
from feed_ingest.core.feed_cache import FeedCache
from feed_ingest.core.feed_registry import FeedRegistry
from feed_ingest.core.interfaces import FeedFetcher, ResultStore

__all__ = [
    "Album",
    "Track",
    "ValueSplit",
    "ValueRecipient",
    "Owner",
    "Publisher",
    "PublisherRef",
    "FeedDescriptor",
    "FeedType",
    "FeedPriority",
    "FeedStatus",
    "FeedSource",
    "FeedStage",
    "FeedResult",
    "FeedSuccess",
    "FeedFailure",
    "FeedOutcome",
    "FeedIssue",
    "ParseFailure",
    "ParseReport",
    "ParseReportBuilder",
    "ParsedFeed",
    "CacheEntry",
    "CacheStats",
    "FeedIngestError",
    "FetchError",
    "MalformedDocumentError",
    "NormalizationError",
    "DuplicateFeedError",
    "FeedNotFoundError",
    "StoreError",
    "FeedFetcher",
    "ResultStore",
    "FeedCache",
    "FeedRegistry",
]
