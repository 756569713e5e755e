"""Core interfaces for adapters."""

from abc import ABC, abstractmethod
from typing import Optional, Union

from feed_ingest.core.entities import ParsedFeed


class FeedFetcher(ABC):
    """Interface for retrieving raw feed documents."""

    @abstractmethod
    async def fetch(self, url: str) -> Union[str, bytes]:
        """Fetch the raw feed document."""
        pass


class ResultStore(ABC):
    """Interface for the persisted set of parsed feeds."""

    @abstractmethod
    def replace_all(self, entries: list[ParsedFeed]) -> None:
        """Atomically replace the whole result set."""
        pass

    @abstractmethod
    def upsert(self, entry: ParsedFeed) -> None:
        """Replace or add the entry for one feed."""
        pass

    @abstractmethod
    def list_all(self) -> list[ParsedFeed]:
        """Return every stored entry."""
        pass

    @abstractmethod
    def get_by_feed_id(self, feed_id: str) -> Optional[ParsedFeed]:
        """Return the entry for a feed, if any."""
        pass
