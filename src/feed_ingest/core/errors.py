"""Exception taxonomy for the ingestion pipeline."""

from pathlib import Path
from typing import Optional


class FeedIngestError(Exception):
    """Base class for all pipeline errors."""


class FetchError(FeedIngestError):
    """Feed could not be retrieved (transport, timeout or HTTP status)."""

    def __init__(self, url: str, cause: str, status_code: Optional[int] = None) -> None:
        self.url = url
        self.cause = cause
        self.status_code = status_code
        super().__init__(f"Failed to fetch {url}: {cause}")


class MalformedDocumentError(FeedIngestError):
    """Response body is not recoverable as XML."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Malformed feed document: {reason}")


class NormalizationError(FeedIngestError):
    """Document parsed but has no usable feed structure."""

    def __init__(self, feed_id: str, reason: str) -> None:
        self.feed_id = feed_id
        self.reason = reason
        super().__init__(f"Cannot normalize feed {feed_id}: {reason}")


class DuplicateFeedError(FeedIngestError):
    """Feed URL (or id) is already registered."""

    def __init__(self, url: str, existing_id: str) -> None:
        self.url = url
        self.existing_id = existing_id
        super().__init__(f"Feed {url} is already registered as {existing_id}")


class FeedNotFoundError(FeedIngestError):
    """No feed with the given id exists in the registry."""

    def __init__(self, feed_id: str) -> None:
        self.feed_id = feed_id
        super().__init__(f"Feed not found: {feed_id}")


class StoreError(FeedIngestError):
    """Persisted state could not be read or written."""

    def __init__(self, path: Path, cause: str) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Store error at {path}: {cause}")
