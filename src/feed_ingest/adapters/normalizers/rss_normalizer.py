"""Normalizer turning podcast-namespace RSS documents into albums and publishers."""

import logging
from typing import Optional

from feed_ingest.adapters.normalizers import fields
from feed_ingest.adapters.xml.document import FeedDocument, XmlElement
from feed_ingest.core.entities import (
    Album,
    FeedDescriptor,
    FeedResult,
    FeedType,
    Funding,
    Owner,
    PodrollItem,
    Publisher,
    PublisherItem,
    PublisherRef,
    RecipientType,
    Track,
    ValueMethod,
    ValueRecipient,
    ValueSplit,
    ValueType,
)
from feed_ingest.core.errors import NormalizationError

logger = logging.getLogger(__name__)


def _warn(warnings: Optional[list[str]], message: str) -> None:
    logger.warning(message)
    if warnings is not None:
        warnings.append(message)


def _first_text(element: XmlElement, *names: str) -> Optional[str]:
    """Text of the first direct child, among the given names, that has any."""
    for name in names:
        for child in element.all(name, recursive=False):
            text = child.text()
            if text:
                return text
    return None


def _clean_text(element: XmlElement, name: str) -> Optional[str]:
    return fields.clean_html(element.child_text(name)) or None


class FeedNormalizer:
    """Build Album and Publisher values from parsed feed documents.

    Only a missing ``channel`` element is fatal. Every other gap resolves to a
    default or to absence, and anything dropped along the way is reported
    through the ``warnings`` collector.
    """

    def __init__(self, placeholder_template: str = fields.DEFAULT_PLACEHOLDER_TEMPLATE) -> None:
        self.placeholder_template = placeholder_template

    def normalize(
        self,
        document: FeedDocument,
        descriptor: FeedDescriptor,
        warnings: Optional[list[str]] = None,
    ) -> FeedResult:
        """Normalize a document according to the descriptor's feed type."""
        if descriptor.type == FeedType.PUBLISHER:
            return self.normalize_publisher(
                document, descriptor.id, descriptor.original_url, warnings
            )
        return self.normalize_album(document, descriptor.id, descriptor.original_url, warnings)

    def normalize_album(
        self,
        document: FeedDocument,
        feed_id: str,
        feed_url: str = "",
        warnings: Optional[list[str]] = None,
    ) -> Album:
        """Normalize an album feed.

        Args:
            document: Parsed feed document
            feed_id: Id of the owning feed descriptor
            feed_url: URL the document was fetched from
            warnings: Collector for non-fatal observations (dropped tracks,
                value blocks that were ignored, split sums other than 100)

        Raises:
            NormalizationError: if the document has no channel element
        """
        channel = self._channel(document, feed_id)

        title = channel.child_text("title") or fields.DEFAULT_TITLE
        context = f"album '{title}'"

        return Album(
            title=title,
            artist=fields.first_match(fields.ARTIST_RULES, channel) or fields.DEFAULT_ARTIST,
            description=self._description(channel),
            cover_art_url=self._cover_art(channel, title),
            feed_id=feed_id,
            tracks=self._tracks(channel, context, warnings),
            release_date=fields.parse_release_date(_first_text(channel, "pubDate", "lastBuildDate")),
            value=self._value(channel, context, warnings),
            publisher=self._publisher_ref(channel),
            feed_url=feed_url,
            feed_guid=fields.podcast_guid(channel) or channel.child_text("guid"),
            link=_first_text(channel, "link"),
            language=channel.child_text("language"),
            explicit=fields.parse_explicit(channel.child_text("explicit")),
            podroll=self._podroll(channel),
            funding=self._funding(channel),
            subtitle=_clean_text(channel, "subtitle"),
            summary=_clean_text(channel, "summary"),
            keywords=fields.parse_keywords(channel.child_text("keywords")),
            categories=fields.category_names(channel),
            copyright=channel.child_text("copyright"),
            owner=self._owner(channel),
        )

    def normalize_publisher(
        self,
        document: FeedDocument,
        feed_id: str,
        feed_url: str = "",
        warnings: Optional[list[str]] = None,
    ) -> Publisher:
        """Normalize a publisher feed listing the albums it releases."""
        channel = self._channel(document, feed_id)

        title = channel.child_text("title") or fields.DEFAULT_TITLE
        context = f"publisher '{title}'"

        albums: list[PublisherItem] = []
        for remote_item in channel.all("remoteItem", recursive=False):
            if (remote_item.attr("medium") or "").lower() != "music":
                continue
            album_url = remote_item.attr("feedUrl")
            if not album_url:
                logger.debug("Skipping %s remote item without feedUrl", context)
                continue
            albums.append(PublisherItem(
                feed_url=album_url,
                feed_guid=remote_item.attr("feedGuid"),
                title=remote_item.attr("title") or remote_item.text() or None,
            ))

        return Publisher(
            title=title,
            artist=fields.first_match(fields.ARTIST_RULES, channel) or title,
            description=self._description(channel),
            cover_art_url=self._cover_art(channel, title),
            feed_id=feed_id,
            albums=tuple(albums),
            feed_url=feed_url,
            feed_guid=channel.child_text("guid"),
            value=self._value(channel, context, warnings),
        )

    def _channel(self, document: FeedDocument, feed_id: str) -> XmlElement:
        channel = document.channel()
        if channel is None:
            raise NormalizationError(feed_id, "no channel element found")
        return channel

    def _description(self, element: XmlElement) -> str:
        return fields.clean_html(_first_text(element, "description", "summary"))

    def _cover_art(self, channel: XmlElement, title: str) -> str:
        url = fields.first_match(fields.COVER_ART_RULES, channel, accept=fields.is_safe_image_url)
        if url:
            return url
        logger.debug("No usable cover art for '%s', using placeholder", title)
        return fields.placeholder_cover_art(title, self.placeholder_template)

    def _value(
        self,
        element: XmlElement,
        context: str,
        warnings: Optional[list[str]],
    ) -> Optional[ValueSplit]:
        """Parse the value block directly under an element, if any."""
        value_element = element.first("value", recursive=False)
        if value_element is None:
            return None

        try:
            value_type = ValueType((value_element.attr("type") or "").lower())
            method = ValueMethod((value_element.attr("method") or "").lower())
        except ValueError:
            _warn(warnings, (
                f"Ignored value block for {context}: unsupported type "
                f"'{value_element.attr('type')}' or method '{value_element.attr('method')}'"
            ))
            return None

        recipients: list[ValueRecipient] = []
        for recipient in value_element.all("valueRecipient"):
            address = recipient.attr("address")
            split = fields.parse_split(recipient.attr("split"))
            try:
                recipient_type = RecipientType((recipient.attr("type") or "").lower())
            except ValueError:
                recipient_type = None
            if recipient_type is None or not address or split is None or split <= 0:
                logger.debug("Skipping invalid value recipient for %s", context)
                continue
            recipients.append(ValueRecipient(
                type=recipient_type,
                address=address,
                split=split,
                name=recipient.attr("name"),
                fee=(recipient.attr("fee") or "").lower() == "true",
                custom_key=recipient.attr("customKey"),
                custom_value=recipient.attr("customValue"),
            ))

        if not recipients:
            _warn(warnings, f"Ignored value block for {context}: no valid recipients")
            return None

        value = ValueSplit(
            type=value_type,
            method=method,
            recipients=tuple(recipients),
            suggested=value_element.attr("suggested"),
        )
        # Declared splits are kept verbatim
        if value.split_total != 100:
            _warn(warnings, f"Value splits for {context} sum to {value.split_total}, not 100")
        return value

    def _tracks(
        self,
        channel: XmlElement,
        context: str,
        warnings: Optional[list[str]],
    ) -> tuple[Track, ...]:
        retained: list[tuple[XmlElement, str, str, Optional[int]]] = []

        for position, item in enumerate(channel.all("item", recursive=False), start=1):
            item_title = item.child_text("title") or f"Track {position}"
            audio_url = fields.first_match(fields.AUDIO_URL_RULES, item)
            if not audio_url:
                _warn(warnings, f"Dropped track '{item_title}' from {context}: no audio URL")
                continue
            episode = fields.parse_episode(item.child_text("episode"))
            retained.append((item, item_title, audio_url, episode))

        # Explicit numbering only counts when every retained item has it
        explicit_numbers = bool(retained) and all(episode is not None for *_, episode in retained)

        tracks = []
        for index, (item, item_title, audio_url, episode) in enumerate(retained, start=1):
            tracks.append(Track(
                title=item_title,
                audio_url=audio_url,
                track_number=episode if explicit_numbers else index,
                duration_seconds=fields.parse_duration(item.child_text("duration")) or 0,
                value=self._value(item, f"track '{item_title}'", warnings),
                guid=fields.item_guid(item),
                image_url=self._track_image(item),
                explicit=fields.parse_explicit(item.child_text("explicit")),
                podcast_guid=fields.podcast_guid(item),
                subtitle=_clean_text(item, "subtitle"),
                summary=_clean_text(item, "summary"),
                keywords=fields.parse_keywords(item.child_text("keywords")),
            ))
        return tuple(tracks)

    def _track_image(self, item: XmlElement) -> Optional[str]:
        for element in item.all("image", recursive=False):
            href = element.attr("href") or element.attr("url")
            if fields.is_safe_image_url(href):
                return href
        return None

    def _publisher_ref(self, channel: XmlElement) -> Optional[PublisherRef]:
        candidates: list[XmlElement] = []
        publisher = channel.first("publisher", recursive=False)
        if publisher is not None:
            candidates.extend(publisher.all("remoteItem"))
        candidates.extend(channel.all("remoteItem", recursive=False))

        for remote_item in candidates:
            if (remote_item.attr("medium") or "").lower() != "publisher":
                continue
            publisher_url = remote_item.attr("feedUrl")
            if publisher_url:
                return PublisherRef(feed_url=publisher_url, feed_guid=remote_item.attr("feedGuid"))
        return None

    def _podroll(self, channel: XmlElement) -> tuple[PodrollItem, ...]:
        items = []
        for podroll in channel.all("podroll", recursive=False):
            for remote_item in podroll.all("remoteItem"):
                url = remote_item.attr("feedUrl")
                if not url:
                    continue
                items.append(PodrollItem(
                    url=url,
                    title=remote_item.attr("title") or remote_item.text() or None,
                    feed_guid=remote_item.attr("feedGuid"),
                ))
        return tuple(items)

    def _owner(self, channel: XmlElement) -> Optional[Owner]:
        element = channel.first("owner", recursive=False)
        if element is None:
            return None
        name, email = element.child_text("name"), element.child_text("email")
        return Owner(name=name, email=email) if name or email else None

    def _funding(self, channel: XmlElement) -> tuple[Funding, ...]:
        funding = []
        for element in channel.all("funding", recursive=False):
            url = element.attr("url")
            if url:
                funding.append(Funding(url=url, message=element.text() or None))
        return tuple(funding)
