"""CLI entry point for feed ingestion."""

import asyncio
import json
from dataclasses import dataclass
from typing import Optional

import typer

from feed_ingest.adapters.fetchers import HttpFeedFetcher
from feed_ingest.adapters.normalizers import FeedNormalizer
from feed_ingest.adapters.storage import ParsedFeedStore
from feed_ingest.config import Settings, get_settings
from feed_ingest.core import (
    Album,
    FeedCache,
    FeedDescriptor,
    FeedIngestError,
    FeedPriority,
    FeedRegistry,
    FeedSource,
    FeedStatus,
    FeedType,
    ParseReport,
)
from feed_ingest.core.feed_registry import make_feed_id
from feed_ingest.logger import parse_level, setup_logging
from feed_ingest.use_cases import FeedIngestionService

cli = typer.Typer(help="Fetch, parse and cache podcast-namespace music feeds.")
feeds_cli = typer.Typer(help="Manage the feed registry.")
cache_cli = typer.Typer(help="Inspect and clear the feed cache.")
cli.add_typer(feeds_cli, name="feeds")
cli.add_typer(cache_cli, name="cache")


@dataclass
class Runtime:
    """Stores and service built once per invocation."""
    settings: Settings
    registry: FeedRegistry
    cache: FeedCache
    store: ParsedFeedStore
    service: FeedIngestionService


def build_runtime(verbose: bool = False) -> Runtime:
    settings = get_settings()
    setup_logging("feed_ingest", settings.paths.log_file, verbose, parse_level(settings.log_level))

    registry = FeedRegistry(settings.feeds_file)
    registry.load()

    cache = FeedCache(
        storage_dir=settings.cache_dir if settings.cache.enabled else None,
        default_ttl=settings.cache.ttl_seconds,
    )
    cache.load()

    store = ParsedFeedStore(settings.parsed_feeds_file)
    store.load()

    service = FeedIngestionService(
        registry=registry,
        fetcher=HttpFeedFetcher(
            timeout=settings.fetch.timeout_seconds,
            user_agent=settings.fetch.user_agent,
            follow_redirects=settings.fetch.follow_redirects,
        ),
        normalizer=FeedNormalizer(settings.normalizer.placeholder_cover_template),
        cache=cache,
        store=store,
        max_concurrency=settings.fetch.max_concurrency,
    )
    return Runtime(settings, registry, cache, store, service)


def _fail(error: Exception) -> None:
    print(f"❌ {error}")
    raise typer.Exit(code=1)


def print_report(report: ParseReport) -> None:
    print("\n" + "=" * 70)
    print("📊 PARSE REPORT")
    print("=" * 70)
    print(f"  • Feeds processed: {report.total_feeds}")
    print(f"  • ✓ Successful: {report.successful_parses}")
    print(f"  • ✗ Failed: {report.failed_parses}")
    if report.skipped_feeds:
        print(f"  • ⏭️  Skipped: {report.skipped_feeds}")
    print(f"  • 💿 Albums: {report.albums_found}")
    print(f"  • 🏢 Publishers: {report.publishers_found}")
    print(f"  • 🎵 Tracks: {report.total_tracks}")
    print(f"  • ⏱️  Total duration: {report.total_duration_seconds // 60} min")
    print(f"  • 🔗 Feeds with podroll: {report.podroll_feeds}")
    print(f"  • 💰 Feeds with funding: {report.funding_feeds}")
    print(f"  • 📦 Cache hits: {report.cache_hits}")
    print(f"  • Parse time: {report.parse_time_ms} ms")

    if report.errors:
        print(f"\n❌ Errors ({len(report.errors)}):")
        for issue in report.errors:
            print(f"  └─ {issue.feed_id}: {issue.message}")

    if report.warnings:
        print(f"\n⚠️  Warnings ({len(report.warnings)}):")
        for issue in report.warnings:
            print(f"  └─ {issue.feed_id}: {issue.message}")


@cli.command("parse-all")
def parse_all(
    force: bool = typer.Option(False, "--force", "-f", help="Ignore fresh cache entries"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to the console"),
    json_output: bool = typer.Option(False, "--json", help="Print the report as JSON"),
) -> None:
    """Parse every active feed and replace the stored result set."""
    runtime = build_runtime(verbose)
    force_refresh = force or not runtime.settings.cache.enabled

    if not json_output:
        print("\n" + "=" * 70)
        print("🎶 FEED INGEST - parsing all active feeds")
        print("=" * 70)
        print(f"  • Active feeds: {len(runtime.registry.list_active())}")
        print(f"  • Concurrency: {runtime.settings.fetch.max_concurrency}")
        print(f"  • Force refresh: {'✓' if force_refresh else '✗'}")

    try:
        report = asyncio.run(runtime.service.run_all(force_refresh=force_refresh))
    except FeedIngestError as e:
        _fail(e)
    finally:
        runtime.cache.flush()

    if json_output:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
        return

    print_report(report)
    print(f"\n✅ Results saved to {runtime.settings.parsed_feeds_file}")


@cli.command("parse-one")
def parse_one(
    feed_id: str = typer.Argument(..., help="Id of a registered feed"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to the console"),
) -> None:
    """Parse a single feed and update its stored result."""
    runtime = build_runtime(verbose)

    try:
        result = asyncio.run(runtime.service.run_one(feed_id))
    except FeedIngestError as e:
        _fail(e)
    finally:
        runtime.cache.flush()

    if isinstance(result, Album):
        print(f"💿 {result.title} - {result.artist}")
        for track in result.tracks:
            print(f"  {track.track_number:>3}. {track.title} ({track.duration_seconds}s)")
    else:
        print(f"🏢 {result.title}: {len(result.albums)} album feeds")
        for item in result.albums:
            print(f"  • {item.title or item.feed_url}")


@feeds_cli.command("list")
def list_feeds(
    feed_type: Optional[FeedType] = typer.Option(None, "--type", help="Only feeds of this type"),
    all_feeds: bool = typer.Option(False, "--all", help="Include inactive feeds"),
) -> None:
    """List registered feeds in processing order."""
    runtime = build_runtime()
    if all_feeds:
        feeds = [f for f in runtime.registry.all() if feed_type is None or f.type == feed_type]
    else:
        feeds = runtime.registry.list_active(feed_type)

    if not feeds:
        print("No feeds registered")
        return

    for feed in feeds:
        marker = "✓" if feed.is_active else "✗"
        print(f"{marker} [{feed.priority.value}] {feed.id} ({feed.type.value}) {feed.original_url}")


@feeds_cli.command("add")
def add_feed(
    url: str = typer.Argument(..., help="Feed URL"),
    feed_type: FeedType = typer.Option(FeedType.ALBUM, "--type", help="album or publisher"),
    priority: FeedPriority = typer.Option(FeedPriority.EXTENDED, "--priority"),
    feed_id: Optional[str] = typer.Option(None, "--id", help="Explicit feed id"),
    title: str = typer.Option("", "--title", help="Display title"),
) -> None:
    """Register a feed."""
    runtime = build_runtime()
    descriptor = FeedDescriptor(
        id=feed_id or make_feed_id(url, title),
        original_url=url,
        type=feed_type,
        priority=priority,
        title=title,
        source=FeedSource.MANUAL,
    )
    try:
        runtime.registry.add(descriptor)
    except FeedIngestError as e:
        _fail(e)
    print(f"✓ Added {descriptor.id}")


@feeds_cli.command("remove")
def remove_feed(feed_id: str = typer.Argument(..., help="Id of a registered feed")) -> None:
    """Remove a feed from the registry."""
    runtime = build_runtime()
    try:
        runtime.registry.remove(feed_id)
    except FeedIngestError as e:
        _fail(e)
    print(f"✓ Removed {feed_id}")


def _set_status(feed_id: str, status: FeedStatus) -> None:
    runtime = build_runtime()
    try:
        runtime.registry.set_status(feed_id, status)
    except FeedIngestError as e:
        _fail(e)
    print(f"✓ {feed_id} is now {status.value}")


@feeds_cli.command("activate")
def activate_feed(feed_id: str = typer.Argument(..., help="Id of a registered feed")) -> None:
    """Include a feed in batch runs again."""
    _set_status(feed_id, FeedStatus.ACTIVE)


@feeds_cli.command("deactivate")
def deactivate_feed(feed_id: str = typer.Argument(..., help="Id of a registered feed")) -> None:
    """Exclude a feed from batch runs without removing it."""
    _set_status(feed_id, FeedStatus.INACTIVE)


@feeds_cli.command("discover")
def discover_feeds(
    feed_id: Optional[str] = typer.Option(None, "--feed-id", help="Only follow this feed's podroll"),
    depth: int = typer.Option(2, "--depth", min=1, help="Podroll hops to follow"),
    priority: FeedPriority = typer.Option(FeedPriority.EXTENDED, "--priority"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to the console"),
) -> None:
    """Register album feeds found in the podroll of stored albums."""
    runtime = build_runtime(verbose)
    try:
        added = asyncio.run(
            runtime.service.discover_podroll(feed_id=feed_id, max_depth=depth, priority=priority)
        )
    except FeedIngestError as e:
        _fail(e)

    if not added:
        print("No new feeds found")
        return

    print(f"🔗 Discovered {len(added)} feeds")
    for feed in added:
        print(f"  • {feed.id} ({feed.source.value}) {feed.original_url}")


@cache_cli.command("stats")
def cache_stats() -> None:
    """Show cache statistics."""
    runtime = build_runtime()
    stats = runtime.service.cache_stats()
    print(f"📦 Entries: {stats.entry_count}")
    print(f"  • Stale: {stats.stale_count}")
    if stats.oldest_entry:
        print(f"  • Oldest: {stats.oldest_entry.isoformat()}")
    if stats.newest_entry:
        print(f"  • Newest: {stats.newest_entry.isoformat()}")


@cache_cli.command("clear")
def clear_cache(url: Optional[str] = typer.Option(None, "--url", help="Only clear this feed URL")) -> None:
    """Clear all cache entries, or the entry for one URL."""
    runtime = build_runtime()
    removed = runtime.service.clear_cache(url)
    print(f"✓ Cleared {removed} cache entries")


@cli.command("albums")
def list_albums(
    feed_id: Optional[str] = typer.Option(None, "--feed-id", help="Show one feed's stored result"),
    slug: Optional[str] = typer.Option(None, "--slug", help="Find an album by title or slug"),
) -> None:
    """Show stored parse results."""
    runtime = build_runtime()

    if slug:
        album = runtime.store.find_album(slug)
        if album is None:
            _fail(FeedIngestError(f"Album not found: {slug}"))
        print(json.dumps(album.to_dict(), indent=2, ensure_ascii=False))
        return

    if feed_id:
        entry = runtime.store.get_by_feed_id(feed_id)
        if entry is None:
            _fail(FeedIngestError(f"No stored result for feed: {feed_id}"))
        print(json.dumps(entry.to_dict(), indent=2, ensure_ascii=False))
        return

    for entry in runtime.store.list_all():
        album = entry.album
        status = "⚠️ " if entry.parse_status == "stale" else ""
        if album is not None:
            print(f"{status}💿 {album.title} - {album.artist} ({len(album.tracks)} tracks)")
        else:
            print(f"{status}🏢 {entry.result.title} ({entry.feed_id})")


def app() -> None:
    """CLI entry point."""
    cli()


if __name__ == "__main__":
    app()
