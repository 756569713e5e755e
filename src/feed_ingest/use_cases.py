"""Business logic use cases."""

import asyncio
import logging
import time
from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from feed_ingest.adapters.normalizers import FeedNormalizer
from feed_ingest.adapters.xml.document import parse_document
from feed_ingest.core import (
    CacheStats,
    FeedCache,
    FeedDescriptor,
    FeedFailure,
    FeedFetcher,
    FeedIngestError,
    FeedNotFoundError,
    FeedOutcome,
    FeedPriority,
    FeedRegistry,
    FeedResult,
    FeedSource,
    FeedStage,
    FeedSuccess,
    FeedType,
    ParsedFeed,
    ParseReport,
    ParseReportBuilder,
    ResultStore,
)
from feed_ingest.core.entities import PodrollItem, utc_now
from feed_ingest.core.feed_registry import make_feed_id

logger = logging.getLogger(__name__)


class FeedIngestionService:
    """Runs the fetch → extract → normalize pipeline over registered feeds.

    Each feed is processed in isolation and ends as a ``FeedSuccess`` or a
    ``FeedFailure`` value; nothing raised inside one feed's pipeline reaches
    ``run_all``. Only persisting the result set can fail a batch run.
    """

    def __init__(
        self,
        registry: FeedRegistry,
        fetcher: FeedFetcher,
        normalizer: FeedNormalizer,
        cache: FeedCache,
        store: ResultStore,
        max_concurrency: int = 5,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.registry = registry
        self.fetcher = fetcher
        self.normalizer = normalizer
        self.cache = cache
        self.store = store
        self.max_concurrency = max_concurrency
        self._clock = clock or utc_now
        self._cancelled = False
        self.feed_stages: dict[str, FeedStage] = {}

    async def run_all(self, force_refresh: bool = False) -> ParseReport:
        """Process every active feed and replace the persisted result set.

        Args:
            force_refresh: Fetch every feed even when a fresh cache entry exists

        Returns:
            Finalized report of the run

        Raises:
            StoreError: if the result set cannot be written
        """
        started = time.perf_counter()
        self._cancelled = False

        # The run works on a copy; registry edits mid-run do not affect it
        descriptors = self.registry.snapshot()
        order = {descriptor.id: index for index, descriptor in enumerate(descriptors)}
        self.feed_stages = {descriptor.id: FeedStage.PENDING for descriptor in descriptors}

        logger.info("Starting run over %d active feeds", len(descriptors))

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def worker(descriptor: FeedDescriptor) -> Optional[FeedOutcome]:
            async with semaphore:
                if self._cancelled:
                    self.feed_stages[descriptor.id] = FeedStage.SKIPPED
                    return None
                return await self._process_feed(descriptor, force_refresh)

        builder = ParseReportBuilder()
        entries: list[ParsedFeed] = []

        tasks = [asyncio.create_task(worker(descriptor)) for descriptor in descriptors]
        for next_done in asyncio.as_completed(tasks):
            outcome = await next_done
            if outcome is None:
                builder.skip()
                continue

            builder.add(outcome)
            entry = self._entry_for(outcome)
            if entry is not None:
                entries.append(entry)

        entries.sort(key=lambda entry: order.get(entry.feed_id, len(order)))
        self.store.replace_all(entries)

        report = builder.build(parse_time_ms=int((time.perf_counter() - started) * 1000))
        logger.info(
            "Run finished: %d/%d feeds parsed, %d failed, %d skipped in %d ms",
            report.successful_parses,
            report.total_feeds,
            report.failed_parses,
            report.skipped_feeds,
            report.parse_time_ms,
        )
        return report

    async def run_one(self, feed_id: str, force_refresh: bool = True) -> FeedResult:
        """Process a single registered feed, whatever its status.

        Raises:
            FeedNotFoundError: if no feed has this id
            FetchError, MalformedDocumentError, NormalizationError: when the
                corresponding stage fails
        """
        descriptor = self.registry.get(feed_id)
        if descriptor is None:
            raise FeedNotFoundError(feed_id)

        outcome = await self._process_feed(replace(descriptor), force_refresh)
        if isinstance(outcome, FeedFailure):
            if outcome.exception is not None:
                raise outcome.exception
            raise FeedIngestError(outcome.error)

        self.store.upsert(self._success_entry(outcome))
        return outcome.result

    async def discover_podroll(
        self,
        feed_id: Optional[str] = None,
        max_depth: int = 2,
        priority: FeedPriority = FeedPriority.EXTENDED,
    ) -> list[FeedDescriptor]:
        """Register album feeds recommended through podroll elements.

        Starts from the stored albums (or only the one for ``feed_id``) and
        follows podroll links breadth-first. Each unknown URL is fetched once
        and registered only if it parses as an album. Feeds one hop away are
        marked ``podroll``, deeper ones ``recursive``; both record the URL of
        the stored album the walk started from.

        Args:
            feed_id: Only walk the podroll of this stored feed
            max_depth: Number of podroll hops to follow
            priority: Priority given to registered feeds

        Returns:
            Descriptors added to the registry, in discovery order

        Raises:
            FeedNotFoundError: if feed_id has no stored result
        """
        if feed_id is not None:
            entry = self.store.get_by_feed_id(feed_id)
            if entry is None:
                raise FeedNotFoundError(feed_id)
            roots = [entry]
        else:
            roots = self.store.list_all()

        known = {feed.original_url for feed in self.registry.all()}
        queue: deque[tuple[PodrollItem, int, str]] = deque()
        for entry in roots:
            if entry.album is not None:
                queue.extend((item, 1, entry.feed_url) for item in entry.album.podroll)

        added: list[FeedDescriptor] = []
        while queue:
            item, depth, root_url = queue.popleft()
            if item.url in known:
                continue
            known.add(item.url)

            try:
                raw = await self.fetcher.fetch(item.url)
                album = self.normalizer.normalize_album(
                    parse_document(raw), make_feed_id(item.url), item.url
                )
            except FeedIngestError as e:
                logger.warning("Skipping podroll feed %s: %s", item.url, e)
                continue

            new_id = make_feed_id(item.url, album.title)
            if self.registry.get(new_id) is not None:
                new_id = make_feed_id(item.url)

            descriptor = FeedDescriptor(
                id=new_id,
                original_url=item.url,
                type=FeedType.ALBUM,
                priority=priority,
                title=album.title,
                source=FeedSource.PODROLL if depth == 1 else FeedSource.RECURSIVE,
                discovered_from=root_url,
            )
            self.registry.add(descriptor)
            added.append(descriptor)
            logger.info("Discovered %s via podroll of %s", item.url, root_url)

            if depth < max_depth:
                queue.extend((nested, depth + 1, root_url) for nested in album.podroll)

        return added

    def cancel(self) -> None:
        """Stop dispatching feeds; in-flight feeds finish, the rest are skipped."""
        self._cancelled = True
        logger.info("Cancellation requested")

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def clear_cache(self, url: Optional[str] = None) -> int:
        return self.cache.invalidate(url)

    async def _process_feed(self, descriptor: FeedDescriptor, force_refresh: bool) -> FeedOutcome:
        url = descriptor.original_url

        if not force_refresh:
            cached = self.cache.get(url)
            if cached is not None and not cached.stale and not cached.is_failure:
                logger.debug("Cache hit for %s", url)
                self.feed_stages[descriptor.id] = FeedStage.SUCCEEDED
                return FeedSuccess(descriptor=descriptor, result=cached.result, from_cache=True)

        stage = FeedStage.PENDING
        warnings: list[str] = []
        try:
            stage = self._advance(descriptor, FeedStage.FETCHING)
            raw = await self.fetcher.fetch(url)

            stage = self._advance(descriptor, FeedStage.EXTRACTING)
            document = parse_document(raw)

            stage = self._advance(descriptor, FeedStage.NORMALIZING)
            result = self.normalizer.normalize(document, descriptor, warnings)
        except FeedIngestError as e:
            return self._fail(descriptor, stage, e)
        except Exception as e:
            logger.exception("Unexpected error while processing feed %s", descriptor.id)
            return self._fail(descriptor, stage, e)

        self.cache.put(url, result)
        self._advance(descriptor, FeedStage.SUCCEEDED)
        return FeedSuccess(descriptor=descriptor, result=result, warnings=tuple(warnings))

    def _advance(self, descriptor: FeedDescriptor, stage: FeedStage) -> FeedStage:
        self.feed_stages[descriptor.id] = stage
        return stage

    def _fail(self, descriptor: FeedDescriptor, stage: FeedStage, error: Exception) -> FeedFailure:
        message = str(error) or error.__class__.__name__
        logger.warning("Feed %s failed while %s: %s", descriptor.id, stage.value, message)
        self.cache.record_failure(descriptor.original_url, message, stage)
        self._advance(descriptor, FeedStage.FAILED)
        return FeedFailure(
            descriptor=descriptor,
            error=message,
            failed_stage=stage,
            exception=error,
        )

    def _entry_for(self, outcome: FeedOutcome) -> Optional[ParsedFeed]:
        """Result-set entry for an outcome; failures fall back to the last good result."""
        if isinstance(outcome, FeedSuccess):
            return self._success_entry(outcome)

        descriptor = outcome.descriptor
        cached = self.cache.get(descriptor.original_url)
        if cached is not None and not cached.is_failure:
            logger.info("Keeping stale result for feed %s", descriptor.id)
            return ParsedFeed(
                feed_id=descriptor.id,
                feed_url=descriptor.original_url,
                type=descriptor.type,
                result=cached.result,
                last_parsed=cached.fetched_at,
                parse_status="stale",
            )

        previous = self.store.get_by_feed_id(descriptor.id)
        if previous is not None:
            logger.info("Keeping stored result for feed %s", descriptor.id)
            return replace(previous, parse_status="stale")
        return None

    def _success_entry(self, outcome: FeedSuccess) -> ParsedFeed:
        descriptor = outcome.descriptor
        last_parsed = self._clock()
        if outcome.from_cache:
            previous = self.store.get_by_feed_id(descriptor.id)
            if previous is not None and previous.result == outcome.result:
                last_parsed = previous.last_parsed

        return ParsedFeed(
            feed_id=descriptor.id,
            feed_url=descriptor.original_url,
            type=descriptor.type,
            result=outcome.result,
            last_parsed=last_parsed,
        )
