"""Tests for use cases."""

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
from unittest.mock import AsyncMock, Mock

import pytest

from feed_ingest.adapters.normalizers import FeedNormalizer
from feed_ingest.adapters.storage import ParsedFeedStore
from feed_ingest.core import (
    Album,
    FeedCache,
    FeedDescriptor,
    FeedNotFoundError,
    FeedPriority,
    FeedRegistry,
    FeedSource,
    FeedStage,
    FeedStatus,
    FeedType,
    FetchError,
    MalformedDocumentError,
    StoreError,
)
from feed_ingest.use_cases import FeedIngestionService

ATOM_FEED = '<feed xmlns="http://www.w3.org/2005/Atom"><title>Atom</title></feed>'
HTML_PAGE = "<html><body><h1>Service Unavailable</h1></body></html>"


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def url_for(feed_id: str) -> str:
    return f"https://example.com/{feed_id}.xml"


def make_feed(
    feed_id: str,
    feed_type: FeedType = FeedType.ALBUM,
    status: FeedStatus = FeedStatus.ACTIVE,
) -> FeedDescriptor:
    return FeedDescriptor(
        id=feed_id,
        original_url=url_for(feed_id),
        type=feed_type,
        priority=FeedPriority.CORE,
        status=status,
    )


def make_service(
    responses: dict,
    feeds: list[FeedDescriptor],
    cache: Optional[FeedCache] = None,
    max_concurrency: int = 5,
) -> tuple[FeedIngestionService, AsyncMock]:
    """Build a service whose fetcher answers from a URL -> body/exception map."""
    registry = FeedRegistry()
    for feed in feeds:
        registry.add(feed)

    def respond(url: str) -> str:
        response = responses[url]
        if isinstance(response, Exception):
            raise response
        return response

    mock_fetcher = AsyncMock()
    mock_fetcher.fetch.side_effect = respond

    service = FeedIngestionService(
        registry=registry,
        fetcher=mock_fetcher,
        normalizer=FeedNormalizer(),
        cache=cache or FeedCache(clock=FakeClock()),
        store=ParsedFeedStore(),
        max_concurrency=max_concurrency,
    )
    return service, mock_fetcher


@pytest.mark.asyncio
async def test_run_all_isolates_failures(album_feed_xml: str, publisher_feed_xml: str) -> None:
    """Test that one bad feed never aborts the batch."""
    responses = {
        url_for("good"): album_feed_xml,
        url_for("missing"): FetchError(url_for("missing"), "HTTP 404", status_code=404),
        url_for("broken"): HTML_PAGE,
        url_for("atom"): ATOM_FEED,
        url_for("label"): publisher_feed_xml,
    }
    feeds = [
        make_feed("good"),
        make_feed("missing"),
        make_feed("broken"),
        make_feed("atom"),
        make_feed("label", FeedType.PUBLISHER),
    ]
    service, mock_fetcher = make_service(responses, feeds)

    report = await service.run_all()

    assert mock_fetcher.fetch.await_count == 5
    assert report.total_feeds == 5
    assert report.successful_parses == 2
    assert report.failed_parses == 3
    assert report.successful_parses + report.failed_parses == report.total_feeds
    assert report.albums_found == 1
    assert report.publishers_found == 1
    assert report.total_tracks == 2
    assert report.podroll_feeds == 1
    assert report.funding_feeds == 1
    assert report.total_duration_seconds == 315
    assert report.parse_time_ms >= 0

    assert {issue.feed_id for issue in report.errors} == {"missing", "broken", "atom"}
    assert [issue.feed_id for issue in report.warnings] == ["good"]

    assert [entry.feed_id for entry in service.store.list_all()] == ["good", "label"]
    assert service.feed_stages == {
        "good": FeedStage.SUCCEEDED,
        "missing": FeedStage.FAILED,
        "broken": FeedStage.FAILED,
        "atom": FeedStage.FAILED,
        "label": FeedStage.SUCCEEDED,
    }


@pytest.mark.asyncio
async def test_failure_records_stage(album_feed_xml: str) -> None:
    responses = {url_for("broken"): HTML_PAGE, url_for("boom"): RuntimeError("boom")}
    service, _ = make_service(responses, [make_feed("broken"), make_feed("boom")])

    report = await service.run_all()

    assert report.failed_parses == 2
    messages = {issue.feed_id: issue.message for issue in report.errors}
    assert "HTML page" in messages["broken"]
    assert messages["boom"] == "boom"

    failure = service.cache.get(url_for("broken"))
    assert failure.is_failure
    assert failure.result.stage == FeedStage.EXTRACTING


@pytest.mark.asyncio
async def test_404_keeps_previously_cached_album(album_feed_xml: str) -> None:
    """Test that a failing feed keeps its last good album queryable."""
    clock = FakeClock()
    cache = FeedCache(default_ttl=60, clock=clock)
    responses = {url_for("album"): album_feed_xml}
    service, _ = make_service(responses, [make_feed("album")], cache=cache)

    await service.run_all()
    previous = service.store.get_by_feed_id("album").album

    clock.advance(minutes=5)
    responses[url_for("album")] = FetchError(url_for("album"), "HTTP 404", status_code=404)

    report = await service.run_all()

    assert report.total_feeds == 1
    assert report.successful_parses == 0
    assert report.failed_parses == 1
    assert report.errors[0].feed_id == "album"
    assert "HTTP 404" in report.errors[0].message

    assert cache.get(url_for("album")).result == previous
    entry = service.store.get_by_feed_id("album")
    assert entry.album == previous
    assert entry.parse_status == "stale"


@pytest.mark.asyncio
async def test_run_all_is_idempotent(album_feed_xml: str) -> None:
    """Test that re-running with unchanged content yields the same albums."""
    service, _ = make_service({url_for("album"): album_feed_xml}, [make_feed("album")])

    await service.run_all(force_refresh=True)
    first = [entry.result for entry in service.store.list_all()]

    await service.run_all(force_refresh=True)
    second = [entry.result for entry in service.store.list_all()]

    assert first == second
    assert len(second) == 1
    assert len(second[0].tracks) == 2


@pytest.mark.asyncio
async def test_fresh_cache_entry_skips_fetch(album_feed_xml: str) -> None:
    service, mock_fetcher = make_service({url_for("album"): album_feed_xml}, [make_feed("album")])

    await service.run_all()
    report = await service.run_all()

    assert mock_fetcher.fetch.await_count == 1
    assert report.cache_hits == 1
    assert report.successful_parses == 1
    assert report.total_tracks == 2

    await service.run_all(force_refresh=True)
    assert mock_fetcher.fetch.await_count == 2


@pytest.mark.asyncio
async def test_dropped_track_scenario(album_feed_xml: str) -> None:
    """Test that a feed with one item lacking audio yields tracks 1 and 2."""
    service, _ = make_service({url_for("album"): album_feed_xml}, [make_feed("album")])

    report = await service.run_all()
    album = service.store.get_by_feed_id("album").album

    assert report.successful_parses == 1
    assert [t.track_number for t in album.tracks] == [1, 2]
    assert [t.title for t in album.tracks] == ["Track One", "Track Three"]
    assert len(report.warnings) == 1
    assert "Track Two" in report.warnings[0].message


@pytest.mark.asyncio
async def test_inactive_feeds_are_not_processed(album_feed_xml: str) -> None:
    feeds = [make_feed("on"), make_feed("off", status=FeedStatus.INACTIVE)]
    responses = {url_for("on"): album_feed_xml, url_for("off"): album_feed_xml}
    service, mock_fetcher = make_service(responses, feeds)

    report = await service.run_all()

    assert report.total_feeds == 1
    mock_fetcher.fetch.assert_awaited_once_with(url_for("on"))


@pytest.mark.asyncio
async def test_registry_changes_mid_run_do_not_affect_run(album_feed_xml: str) -> None:
    """Test that the run works on the snapshot taken at its start."""
    responses = {url_for("a"): album_feed_xml, url_for("late"): album_feed_xml}
    service, mock_fetcher = make_service(responses, [make_feed("a")])

    def respond(url: str) -> str:
        if service.registry.get("late") is None:
            service.registry.add(make_feed("late"))
        return responses[url]

    mock_fetcher.fetch.side_effect = respond

    report = await service.run_all()

    assert report.total_feeds == 1
    mock_fetcher.fetch.assert_awaited_once_with(url_for("a"))


@pytest.mark.asyncio
async def test_cancel_skips_unstarted_feeds(album_feed_xml: str) -> None:
    """Test that cancelling stops dispatching and marks the rest skipped."""
    feeds = [make_feed("a"), make_feed("b"), make_feed("c")]
    responses = {url_for(f.id): album_feed_xml for f in feeds}
    service, mock_fetcher = make_service(responses, feeds, max_concurrency=1)

    def respond(url: str) -> str:
        service.cancel()
        return responses[url]

    mock_fetcher.fetch.side_effect = respond

    report = await service.run_all()

    assert mock_fetcher.fetch.await_count == 1
    assert report.total_feeds == 1
    assert report.successful_parses == 1
    assert report.skipped_feeds == 2
    assert sorted(service.feed_stages.values()) == sorted(
        [FeedStage.SUCCEEDED, FeedStage.SKIPPED, FeedStage.SKIPPED]
    )


@pytest.mark.asyncio
async def test_store_failure_fails_the_run(album_feed_xml: str) -> None:
    service, _ = make_service({url_for("album"): album_feed_xml}, [make_feed("album")])
    service.store = Mock()
    service.store.replace_all.side_effect = StoreError(Path("parsed-feeds.json"), "disk full")

    with pytest.raises(StoreError):
        await service.run_all()


@pytest.mark.asyncio
async def test_run_one(album_feed_xml: str) -> None:
    """Test single-feed parsing, including inactive feeds."""
    feeds = [make_feed("other"), make_feed("album", status=FeedStatus.INACTIVE)]
    responses = {url_for("other"): album_feed_xml, url_for("album"): album_feed_xml}
    service, _ = make_service(responses, feeds)
    await service.run_all()

    result = await service.run_one("album")

    assert isinstance(result, Album)
    assert result.feed_id == "album"
    assert service.store.get_by_feed_id("album").album == result
    assert service.store.get_by_feed_id("other") is not None
    assert service.cache.get(url_for("album")).result == result


@pytest.mark.asyncio
async def test_run_one_raises_stage_errors(album_feed_xml: str) -> None:
    responses = {
        url_for("missing"): FetchError(url_for("missing"), "HTTP 404", status_code=404),
        url_for("broken"): "",
    }
    service, _ = make_service(responses, [make_feed("missing"), make_feed("broken")])

    with pytest.raises(FetchError):
        await service.run_one("missing")

    with pytest.raises(MalformedDocumentError):
        await service.run_one("broken")

    with pytest.raises(FeedNotFoundError):
        await service.run_one("unknown")

    assert service.store.list_all() == []


@pytest.mark.asyncio
async def test_max_concurrency_caps_in_flight_fetches(album_feed_xml: str) -> None:
    feeds = [make_feed(f"album-{index}") for index in range(5)]
    service, mock_fetcher = make_service({}, feeds, max_concurrency=2)
    in_flight = 0
    peak = 0

    async def respond(url: str) -> str:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0)
        in_flight -= 1
        return album_feed_xml

    mock_fetcher.fetch.side_effect = respond

    report = await service.run_all()

    assert report.successful_parses == 5
    assert peak == 2


def podroll_responses(album_feed_xml: str) -> dict:
    """Album -> Other Album -> Third Album, chained through podroll links."""
    other = album_feed_xml.replace("Stay Awhile", "Other Album").replace(
        "https://example.com/other.xml", url_for("third")
    )
    third = album_feed_xml.replace("Stay Awhile", "Third Album").replace(
        "https://example.com/other.xml", url_for("fourth")
    )
    return {url_for("album"): album_feed_xml, url_for("other"): other, url_for("third"): third}


@pytest.mark.asyncio
async def test_discover_podroll_follows_links(album_feed_xml: str) -> None:
    """Test that podroll feeds are registered with their origin."""
    service, mock_fetcher = make_service(podroll_responses(album_feed_xml), [make_feed("album")])
    await service.run_all()

    added = await service.discover_podroll()

    assert [feed.id for feed in added] == ["other-album", "third-album"]
    assert [feed.source for feed in added] == [FeedSource.PODROLL, FeedSource.RECURSIVE]
    assert {feed.discovered_from for feed in added} == {url_for("album")}
    assert all(feed.priority == FeedPriority.EXTENDED for feed in added)
    assert service.registry.get("other-album").original_url == url_for("other")
    fetched = [call.args[0] for call in mock_fetcher.fetch.await_args_list]
    assert url_for("fourth") not in fetched

    assert await service.discover_podroll() == []


@pytest.mark.asyncio
async def test_discover_podroll_depth_and_failures(album_feed_xml: str) -> None:
    service, _ = make_service(podroll_responses(album_feed_xml), [make_feed("album")])
    await service.run_all()

    added = await service.discover_podroll(feed_id="album", max_depth=1)

    assert [feed.id for feed in added] == ["other-album"]

    responses = podroll_responses(album_feed_xml)
    responses[url_for("third")] = FetchError(url_for("third"), "HTTP 404", status_code=404)
    service, _ = make_service(responses, [make_feed("album")])
    await service.run_all()

    added = await service.discover_podroll(max_depth=2)

    assert [feed.id for feed in added] == ["other-album"]
    assert service.registry.get("third-album") is None

    with pytest.raises(FeedNotFoundError):
        await service.discover_podroll(feed_id="unknown")


def test_cache_admin() -> None:
    service, _ = make_service({}, [])
    album = Album(title="A", artist="B", description="", cover_art_url="x", feed_id="a")
    service.cache.put(url_for("a"), album)
    service.cache.put(url_for("b"), album)

    assert service.cache_stats().entry_count == 2
    assert service.clear_cache(url_for("a")) == 1
    assert service.cache_stats().entry_count == 1
    assert service.clear_cache() == 1


def test_max_concurrency_must_be_positive() -> None:
    with pytest.raises(ValueError):
        FeedIngestionService(
            registry=FeedRegistry(),
            fetcher=AsyncMock(),
            normalizer=FeedNormalizer(),
            cache=FeedCache(),
            store=ParsedFeedStore(),
            max_concurrency=0,
        )
