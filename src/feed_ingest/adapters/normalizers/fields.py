"""Field-level extraction rules shared by the feed normalizers.

Every field that feeds disagree about is resolved through an ordered list of
small rules; the first rule that yields a value wins. Each rule takes one
``XmlElement`` and returns a string or None, so it can be exercised alone.
"""

import re
from datetime import date, datetime
from email.utils import parsedate_to_datetime
from typing import Callable, Optional
from urllib.parse import quote_plus, urlparse

from bs4 import BeautifulSoup

from feed_ingest.adapters.xml.document import XmlElement
from feed_ingest.core.entities import create_slug

Rule = Callable[[XmlElement], Optional[str]]

DEFAULT_TITLE = "Unknown Album"
DEFAULT_ARTIST = "Unknown Artist"
DEFAULT_PLACEHOLDER_TEMPLATE = "https://placehold.co/600x600?text={title}"

_NUMBER = re.compile(r"^\d+(?:\.\d+)?$")
_AUDIO_EXTENSION = re.compile(r"\.(?:mp3|m4a|aac|ogg|oga|opus|wav|flac)(?:[?#].*)?$", re.IGNORECASE)
_EXPLICIT_VALUES = {"true", "yes", "explicit"}


def parse_duration(value: Optional[str]) -> Optional[int]:
    """Parse a duration into whole seconds.

    Accepts ``HH:MM:SS``, ``MM:SS``, bare seconds and decimal seconds.

    Args:
        value: Raw duration text from the feed

    Returns:
        Seconds, or None if the value is missing or unparseable
    """
    if not value:
        return None

    text = value.strip()
    if not text:
        return None

    parts = text.split(":")
    if len(parts) > 3 or not all(_NUMBER.match(part) for part in parts):
        return None

    seconds = 0.0
    for part in parts:
        seconds = seconds * 60 + float(part)
    return int(round(seconds))


def parse_split(value: Optional[str]) -> Optional[int]:
    """Parse a value-recipient split percentage as declared."""
    if not value or not _NUMBER.match(value.strip()):
        return None
    return int(float(value.strip()))


def parse_episode(value: Optional[str]) -> Optional[int]:
    if not value or not value.strip().isdigit():
        return None
    number = int(value.strip())
    return number if number > 0 else None


def parse_explicit(value: Optional[str]) -> bool:
    return bool(value) and value.strip().lower() in _EXPLICIT_VALUES


def parse_release_date(value: Optional[str]) -> Optional[date]:
    """Parse an RFC 822 date (RSS ``pubDate``), falling back to ISO 8601."""
    if not value or not value.strip():
        return None

    text = value.strip()
    try:
        return parsedate_to_datetime(text).date()
    except (TypeError, ValueError, IndexError):
        pass

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def clean_html(text: Optional[str]) -> str:
    """Strip markup and decode entities, collapsing whitespace."""
    if not text:
        return ""
    if "<" in text or "&" in text:
        text = BeautifulSoup(text, "html.parser").get_text(" ")
    return " ".join(text.split())


def parse_keywords(value: Optional[str]) -> tuple[str, ...]:
    """Split an ``itunes:keywords`` list on commas."""
    if not value:
        return ()
    return tuple(keyword.strip() for keyword in value.split(",") if keyword.strip())


def is_safe_image_url(url: Optional[str]) -> bool:
    """Only absolute http(s) URLs are usable as artwork."""
    if not url:
        return False
    parsed = urlparse(url.strip())
    return parsed.scheme.lower() in ("http", "https") and bool(parsed.netloc)


def is_audio_url(url: Optional[str]) -> bool:
    if not url:
        return False
    return bool(_AUDIO_EXTENSION.search(urlparse(url).path))


def placeholder_cover_art(title: str, template: str = DEFAULT_PLACEHOLDER_TEMPLATE) -> str:
    """Generated artwork URL for albums that declare none."""
    title = title or DEFAULT_TITLE
    return template.format(title=quote_plus(title), slug=create_slug(title) or "album")


def first_match(
    rules: list[Rule],
    element: XmlElement,
    accept: Optional[Callable[[str], bool]] = None,
) -> Optional[str]:
    """Run rules in order and return the first accepted, non-empty value."""
    for rule in rules:
        value = rule(element)
        if value and (accept is None or accept(value)):
            return value
    return None


# Cover art rules, applied to the channel element


def podcast_image(channel: XmlElement) -> Optional[str]:
    element = channel.first("image", prefix="podcast", recursive=False)
    return element.attr("href") if element else None


def itunes_image_href(channel: XmlElement) -> Optional[str]:
    # Matches itunes:image and the bare <image href="..."> some feeds emit
    for element in channel.all("image", recursive=False):
        href = element.attr("href")
        if href:
            return href
    return None


def rss_image_url(channel: XmlElement) -> Optional[str]:
    for element in channel.all("image", recursive=False):
        url = element.child_text("url")
        if url:
            return url
    return None


def first_item_image(channel: XmlElement) -> Optional[str]:
    item = channel.first("item", recursive=False)
    if item is None:
        return None
    for element in item.all("image", recursive=False):
        href = element.attr("href") or element.attr("url")
        if href:
            return href
    return None


COVER_ART_RULES: list[Rule] = [podcast_image, itunes_image_href, rss_image_url, first_item_image]


# Artist rules, applied to the channel element


def itunes_author(channel: XmlElement) -> Optional[str]:
    return channel.child_text("author", prefix="itunes")


def any_author(channel: XmlElement) -> Optional[str]:
    return channel.child_text("author")


def artist_from_title(channel: XmlElement) -> Optional[str]:
    """Artist half of an "Artist - Album" style title."""
    title = channel.child_text("title")
    if not title or " - " not in title:
        return None
    return title.split(" - ", 1)[0].strip() or None


ARTIST_RULES: list[Rule] = [itunes_author, any_author, artist_from_title]


# Audio URL rules, applied to an item element


def enclosure_url(item: XmlElement) -> Optional[str]:
    element = item.first("enclosure", recursive=False)
    return element.attr("url") if element else None


def media_content_url(item: XmlElement) -> Optional[str]:
    # media:content; the prefix is often undeclared, so match on local name
    for element in item.all("content"):
        url = element.attr("url")
        if url:
            return url
    return None


def audio_link(item: XmlElement) -> Optional[str]:
    link = item.child_text("link")
    return link if is_audio_url(link) else None


AUDIO_URL_RULES: list[Rule] = [enclosure_url, media_content_url, audio_link]


# Identity and classification rules


def item_guid(item: XmlElement) -> Optional[str]:
    """Plain RSS ``guid``, ignoring ``podcast:guid`` siblings."""
    for element in item.all("guid", recursive=False):
        if element.prefix is None and element.text():
            return element.text()
    return None


def podcast_guid(element: XmlElement) -> Optional[str]:
    return element.child_text("guid", prefix="podcast")


def category_names(channel: XmlElement) -> tuple[str, ...]:
    """``itunes:category@text`` values, subcategories after their parent."""
    names: list[str] = []
    for category in channel.all("category", recursive=False):
        for element in [category, *category.all("category")]:
            name = element.attr("text")
            if name and name not in names:
                names.append(name)
    return tuple(names)
