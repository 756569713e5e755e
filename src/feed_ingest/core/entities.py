"""Core domain entities."""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional, Union


class FeedType(str, Enum):
    """Kind of feed a descriptor points at."""

    ALBUM = "album"
    PUBLISHER = "publisher"


class FeedPriority(str, Enum):
    """Processing priority of a registered feed."""

    CORE = "core"
    EXTENDED = "extended"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    FeedPriority.CORE: 0,
    FeedPriority.EXTENDED: 1,
    FeedPriority.LOW: 2,
}


class FeedStatus(str, Enum):
    """Activation status of a registered feed."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class FeedSource(str, Enum):
    """How a feed ended up in the registry."""

    MANUAL = "manual"
    PODROLL = "podroll"
    RECURSIVE = "recursive"


class ValueType(str, Enum):
    LIGHTNING = "lightning"


class ValueMethod(str, Enum):
    KEYSEND = "keysend"
    LNADDRESS = "lnaddress"


class RecipientType(str, Enum):
    NODE = "node"
    LNADDRESS = "lnaddress"


class FeedStage(str, Enum):
    """Processing state of a single feed within a run."""

    PENDING = "pending"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    NORMALIZING = "normalizing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def create_slug(text: str) -> str:
    """Create a URL-friendly slug from text."""
    slug = text.lower()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


@dataclass
class FeedDescriptor:
    """Registry entry describing one known feed."""

    id: str
    original_url: str
    type: FeedType
    priority: FeedPriority = FeedPriority.EXTENDED
    status: FeedStatus = FeedStatus.ACTIVE
    title: str = ""
    added_at: datetime = field(default_factory=utc_now)
    last_updated: datetime = field(default_factory=utc_now)
    source: Optional[FeedSource] = None
    discovered_from: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Feed id cannot be empty")
        if not self.original_url:
            raise ValueError("Feed URL cannot be empty")

    @property
    def is_active(self) -> bool:
        return self.status == FeedStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "originalUrl": self.original_url,
            "type": self.type.value,
            "title": self.title,
            "priority": self.priority.value,
            "status": self.status.value,
            "addedAt": self.added_at.isoformat(),
            "lastUpdated": self.last_updated.isoformat(),
        }
        if self.source is not None:
            data["source"] = self.source.value
        if self.discovered_from:
            data["discoveredFrom"] = self.discovered_from
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeedDescriptor":
        return cls(
            id=data["id"],
            original_url=data["originalUrl"],
            type=FeedType(data.get("type", "album")),
            priority=FeedPriority(data.get("priority", "extended")),
            status=FeedStatus(data.get("status", "active")),
            title=data.get("title", ""),
            added_at=_parse_datetime(data.get("addedAt")) or utc_now(),
            last_updated=_parse_datetime(data.get("lastUpdated")) or utc_now(),
            source=FeedSource(data["source"]) if data.get("source") else None,
            discovered_from=data.get("discoveredFrom"),
        )


@dataclass(frozen=True)
class ValueRecipient:
    """One payee of a value-split declaration."""

    type: RecipientType
    address: str
    split: int
    name: Optional[str] = None
    fee: bool = False
    custom_key: Optional[str] = None
    custom_value: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type.value,
            "address": self.address,
            "split": self.split,
            "fee": self.fee,
        }
        if self.name:
            data["name"] = self.name
        if self.custom_key:
            data["customKey"] = self.custom_key
        if self.custom_value:
            data["customValue"] = self.custom_value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ValueRecipient":
        return cls(
            type=RecipientType(data["type"]),
            address=data["address"],
            split=int(data["split"]),
            name=data.get("name"),
            fee=bool(data.get("fee", False)),
            custom_key=data.get("customKey"),
            custom_value=data.get("customValue"),
        )


@dataclass(frozen=True)
class ValueSplit:
    """Declared Lightning payment split. Splits are kept as declared."""

    type: ValueType
    method: ValueMethod
    recipients: tuple[ValueRecipient, ...]
    suggested: Optional[str] = None

    @property
    def split_total(self) -> int:
        return sum(recipient.split for recipient in self.recipients)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type.value,
            "method": self.method.value,
            "recipients": [recipient.to_dict() for recipient in self.recipients],
        }
        if self.suggested:
            data["suggested"] = self.suggested
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ValueSplit":
        return cls(
            type=ValueType(data["type"]),
            method=ValueMethod(data["method"]),
            recipients=tuple(ValueRecipient.from_dict(r) for r in data.get("recipients", [])),
            suggested=data.get("suggested"),
        )


def _value_from_dict(data: Optional[dict[str, Any]]) -> Optional[ValueSplit]:
    return ValueSplit.from_dict(data) if data else None


@dataclass(frozen=True)
class Track:
    """One playable item of an album."""

    title: str
    audio_url: str
    track_number: int
    duration_seconds: int = 0
    value: Optional[ValueSplit] = None
    guid: Optional[str] = None
    image_url: Optional[str] = None
    explicit: bool = False
    podcast_guid: Optional[str] = None
    subtitle: Optional[str] = None
    summary: Optional[str] = None
    keywords: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "durationSeconds": self.duration_seconds,
            "audioUrl": self.audio_url,
            "trackNumber": self.track_number,
            "value": self.value.to_dict() if self.value else None,
            "guid": self.guid,
            "podcastGuid": self.podcast_guid,
            "imageUrl": self.image_url,
            "explicit": self.explicit,
            "subtitle": self.subtitle,
            "summary": self.summary,
            "keywords": list(self.keywords),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Track":
        return cls(
            title=data["title"],
            audio_url=data["audioUrl"],
            track_number=int(data["trackNumber"]),
            duration_seconds=int(data.get("durationSeconds", 0)),
            value=_value_from_dict(data.get("value")),
            guid=data.get("guid"),
            image_url=data.get("imageUrl"),
            explicit=bool(data.get("explicit", False)),
            podcast_guid=data.get("podcastGuid"),
            subtitle=data.get("subtitle"),
            summary=data.get("summary"),
            keywords=tuple(data.get("keywords") or ()),
        )


@dataclass(frozen=True)
class PublisherRef:
    """Unresolved pointer from an album to its publisher feed."""

    feed_url: str
    feed_guid: Optional[str] = None
    medium: str = "publisher"

    def to_dict(self) -> dict[str, Any]:
        return {"feedUrl": self.feed_url, "feedGuid": self.feed_guid, "medium": self.medium}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PublisherRef":
        return cls(
            feed_url=data["feedUrl"],
            feed_guid=data.get("feedGuid"),
            medium=data.get("medium", "publisher"),
        )


@dataclass(frozen=True)
class PodrollItem:
    """Related feed recommended by a channel."""

    url: str
    title: Optional[str] = None
    feed_guid: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "title": self.title, "feedGuid": self.feed_guid}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PodrollItem":
        return cls(url=data["url"], title=data.get("title"), feed_guid=data.get("feedGuid"))


@dataclass(frozen=True)
class Funding:
    url: str
    message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "message": self.message}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Funding":
        return cls(url=data["url"], message=data.get("message"))


@dataclass(frozen=True)
class Owner:
    """Contact declared in a channel's itunes:owner block."""

    name: Optional[str] = None
    email: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "email": self.email}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Owner":
        return cls(name=data.get("name"), email=data.get("email"))


@dataclass(frozen=True)
class Album:
    """Normalized content of one album feed."""

    title: str
    artist: str
    description: str
    cover_art_url: str
    feed_id: str
    tracks: tuple[Track, ...] = ()
    release_date: Optional[date] = None
    value: Optional[ValueSplit] = None
    publisher: Optional[PublisherRef] = None
    feed_url: str = ""
    feed_guid: Optional[str] = None
    link: Optional[str] = None
    language: Optional[str] = None
    explicit: bool = False
    podroll: tuple[PodrollItem, ...] = ()
    funding: tuple[Funding, ...] = ()
    subtitle: Optional[str] = None
    summary: Optional[str] = None
    keywords: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    copyright: Optional[str] = None
    owner: Optional[Owner] = None

    def value_for(self, track: Track) -> Optional[ValueSplit]:
        """Effective value split for a track: its own, else the album's."""
        return track.value or self.value

    @property
    def total_duration_seconds(self) -> int:
        return sum(track.duration_seconds for track in self.tracks)

    @property
    def slug(self) -> str:
        return create_slug(self.title)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "artist": self.artist,
            "description": self.description,
            "coverArtUrl": self.cover_art_url,
            "releaseDate": self.release_date.isoformat() if self.release_date else None,
            "tracks": [track.to_dict() for track in self.tracks],
            "value": self.value.to_dict() if self.value else None,
            "publisher": self.publisher.to_dict() if self.publisher else None,
            "feedId": self.feed_id,
            "feedUrl": self.feed_url,
            "feedGuid": self.feed_guid,
            "link": self.link,
            "language": self.language,
            "explicit": self.explicit,
            "podroll": [item.to_dict() for item in self.podroll],
            "funding": [item.to_dict() for item in self.funding],
            "subtitle": self.subtitle,
            "summary": self.summary,
            "keywords": list(self.keywords),
            "categories": list(self.categories),
            "copyright": self.copyright,
            "owner": self.owner.to_dict() if self.owner else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Album":
        release_date = data.get("releaseDate")
        return cls(
            title=data["title"],
            artist=data.get("artist", ""),
            description=data.get("description", ""),
            cover_art_url=data.get("coverArtUrl", ""),
            feed_id=data["feedId"],
            tracks=tuple(Track.from_dict(t) for t in data.get("tracks", [])),
            release_date=date.fromisoformat(release_date) if release_date else None,
            value=_value_from_dict(data.get("value")),
            publisher=PublisherRef.from_dict(data["publisher"]) if data.get("publisher") else None,
            feed_url=data.get("feedUrl", ""),
            feed_guid=data.get("feedGuid"),
            link=data.get("link"),
            language=data.get("language"),
            explicit=bool(data.get("explicit", False)),
            podroll=tuple(PodrollItem.from_dict(p) for p in data.get("podroll", [])),
            funding=tuple(Funding.from_dict(f) for f in data.get("funding", [])),
            subtitle=data.get("subtitle"),
            summary=data.get("summary"),
            keywords=tuple(data.get("keywords") or ()),
            categories=tuple(data.get("categories") or ()),
            copyright=data.get("copyright"),
            owner=Owner.from_dict(data["owner"]) if data.get("owner") else None,
        )


@dataclass(frozen=True)
class PublisherItem:
    """Album feed listed by a publisher feed."""

    feed_url: str
    feed_guid: Optional[str] = None
    medium: str = "music"
    title: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "feedUrl": self.feed_url,
            "feedGuid": self.feed_guid,
            "medium": self.medium,
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PublisherItem":
        return cls(
            feed_url=data["feedUrl"],
            feed_guid=data.get("feedGuid"),
            medium=data.get("medium", "music"),
            title=data.get("title"),
        )


@dataclass(frozen=True)
class Publisher:
    """Normalized content of one publisher (artist/label) feed."""

    title: str
    artist: str
    description: str
    cover_art_url: str
    feed_id: str
    albums: tuple[PublisherItem, ...] = ()
    feed_url: str = ""
    feed_guid: Optional[str] = None
    value: Optional[ValueSplit] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "artist": self.artist,
            "description": self.description,
            "coverArtUrl": self.cover_art_url,
            "feedId": self.feed_id,
            "feedUrl": self.feed_url,
            "feedGuid": self.feed_guid,
            "albums": [item.to_dict() for item in self.albums],
            "value": self.value.to_dict() if self.value else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Publisher":
        return cls(
            title=data["title"],
            artist=data.get("artist", ""),
            description=data.get("description", ""),
            cover_art_url=data.get("coverArtUrl", ""),
            feed_id=data["feedId"],
            albums=tuple(PublisherItem.from_dict(a) for a in data.get("albums", [])),
            feed_url=data.get("feedUrl", ""),
            feed_guid=data.get("feedGuid"),
            value=_value_from_dict(data.get("value")),
        )


@dataclass(frozen=True)
class ParseFailure:
    """Cached marker for a feed that has never parsed successfully."""

    error: str
    stage: FeedStage = FeedStage.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error, "stage": self.stage.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ParseFailure":
        return cls(error=data["error"], stage=FeedStage(data.get("stage", "failed")))


FeedResult = Union[Album, Publisher]
CachedResult = Union[Album, Publisher, ParseFailure]


def result_to_dict(result: CachedResult) -> dict[str, Any]:
    """Wrap a result with its kind so it can be restored later."""
    if isinstance(result, Album):
        return {"album": result.to_dict()}
    if isinstance(result, Publisher):
        return {"publisher": result.to_dict()}
    return {"failure": result.to_dict()}


def result_from_dict(data: dict[str, Any]) -> CachedResult:
    if "album" in data:
        return Album.from_dict(data["album"])
    if "publisher" in data:
        return Publisher.from_dict(data["publisher"])
    if "failure" in data:
        return ParseFailure.from_dict(data["failure"])
    raise ValueError(f"Unknown result payload: {sorted(data)}")


@dataclass(frozen=True)
class CacheEntry:
    """Latest result known for a feed URL."""

    feed_url: str
    result: CachedResult
    fetched_at: datetime
    ttl_seconds: int
    stale: bool = False

    @property
    def expires_at(self) -> datetime:
        return self.fetched_at + timedelta(seconds=self.ttl_seconds)

    @property
    def is_failure(self) -> bool:
        return isinstance(self.result, ParseFailure)


@dataclass(frozen=True)
class FeedIssue:
    """Error or warning attributed to one feed."""

    feed_id: str
    message: str

    def to_dict(self, key: str = "error") -> dict[str, str]:
        return {"feedId": self.feed_id, key: self.message}


@dataclass(frozen=True)
class FeedSuccess:
    """Outcome of a feed pipeline that produced a result."""

    descriptor: FeedDescriptor
    result: FeedResult
    warnings: tuple[str, ...] = ()
    from_cache: bool = False


@dataclass(frozen=True)
class FeedFailure:
    """Outcome of a feed pipeline that failed at some stage."""

    descriptor: FeedDescriptor
    error: str
    failed_stage: FeedStage
    exception: Optional[Exception] = None


FeedOutcome = Union[FeedSuccess, FeedFailure]


@dataclass(frozen=True)
class ParseReport:
    """Summary of one batch run."""

    total_feeds: int
    successful_parses: int
    failed_parses: int
    albums_found: int
    publishers_found: int
    total_tracks: int
    parse_time_ms: int
    errors: tuple[FeedIssue, ...] = ()
    warnings: tuple[FeedIssue, ...] = ()
    podroll_feeds: int = 0
    funding_feeds: int = 0
    total_duration_seconds: int = 0
    cache_hits: int = 0
    skipped_feeds: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalFeeds": self.total_feeds,
            "successfulParses": self.successful_parses,
            "failedParses": self.failed_parses,
            "albumsFound": self.albums_found,
            "publishersFound": self.publishers_found,
            "totalTracks": self.total_tracks,
            "parseTimeMs": self.parse_time_ms,
            "errors": [issue.to_dict("error") for issue in self.errors],
            "warnings": [issue.to_dict("warning") for issue in self.warnings],
            "podRollFeeds": self.podroll_feeds,
            "fundingFeeds": self.funding_feeds,
            "totalDurationSeconds": self.total_duration_seconds,
            "cacheHits": self.cache_hits,
            "skippedFeeds": self.skipped_feeds,
        }


@dataclass
class ParseReportBuilder:
    """Mutable accumulator used while a run is in flight."""

    total_feeds: int = 0
    successful_parses: int = 0
    failed_parses: int = 0
    albums_found: int = 0
    publishers_found: int = 0
    total_tracks: int = 0
    podroll_feeds: int = 0
    funding_feeds: int = 0
    total_duration_seconds: int = 0
    cache_hits: int = 0
    skipped_feeds: int = 0
    errors: list[FeedIssue] = field(default_factory=list)
    warnings: list[FeedIssue] = field(default_factory=list)

    def add(self, outcome: FeedOutcome) -> None:
        feed_id = outcome.descriptor.id
        self.total_feeds += 1

        if isinstance(outcome, FeedFailure):
            self.failed_parses += 1
            self.errors.append(FeedIssue(feed_id, outcome.error))
            return

        self.successful_parses += 1
        if outcome.from_cache:
            self.cache_hits += 1
        self.warnings.extend(FeedIssue(feed_id, w) for w in outcome.warnings)

        result = outcome.result
        if isinstance(result, Album):
            self.albums_found += 1
            self.total_tracks += len(result.tracks)
            self.total_duration_seconds += result.total_duration_seconds
            if result.podroll:
                self.podroll_feeds += 1
            if result.funding:
                self.funding_feeds += 1
        else:
            self.publishers_found += 1

    def skip(self) -> None:
        self.skipped_feeds += 1

    def build(self, parse_time_ms: int) -> ParseReport:
        return ParseReport(
            total_feeds=self.total_feeds,
            successful_parses=self.successful_parses,
            failed_parses=self.failed_parses,
            albums_found=self.albums_found,
            publishers_found=self.publishers_found,
            total_tracks=self.total_tracks,
            parse_time_ms=parse_time_ms,
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
            podroll_feeds=self.podroll_feeds,
            funding_feeds=self.funding_feeds,
            total_duration_seconds=self.total_duration_seconds,
            cache_hits=self.cache_hits,
            skipped_feeds=self.skipped_feeds,
        )


@dataclass(frozen=True)
class CacheStats:
    entry_count: int
    oldest_entry: Optional[datetime]
    newest_entry: Optional[datetime]
    stale_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "entryCount": self.entry_count,
            "oldestEntry": self.oldest_entry.isoformat() if self.oldest_entry else None,
            "newestEntry": self.newest_entry.isoformat() if self.newest_entry else None,
            "staleCount": self.stale_count,
        }


@dataclass(frozen=True)
class ParsedFeed:
    """Persisted result-set entry for one feed."""

    feed_id: str
    feed_url: str
    type: FeedType
    result: FeedResult
    last_parsed: datetime
    parse_status: str = "success"

    @property
    def album(self) -> Optional[Album]:
        return self.result if isinstance(self.result, Album) else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "feedId": self.feed_id,
            "feedUrl": self.feed_url,
            "type": self.type.value,
            "parseStatus": self.parse_status,
            "lastParsed": self.last_parsed.isoformat(),
            "parsedData": result_to_dict(self.result),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ParsedFeed":
        result = result_from_dict(data["parsedData"])
        if isinstance(result, ParseFailure):
            raise ValueError(f"Parsed feed {data.get('feedId')} holds a failure marker")
        return cls(
            feed_id=data["feedId"],
            feed_url=data.get("feedUrl", ""),
            type=FeedType(data.get("type", "album")),
            result=result,
            last_parsed=datetime.fromisoformat(data["lastParsed"]),
            parse_status=data.get("parseStatus", "success"),
        )
