"""Permissive XML document model for real-world podcast feeds.

Feeds in the wild declare namespaces inconsistently (``itunes:image`` with no
``xmlns:itunes``, bare ``image`` where ``itunes:image`` was meant), leave
ampersands unescaped and mix encodings. Parsing goes through BeautifulSoup's
lxml XML builder, which runs in recover mode, and every lookup matches on the
local element name so prefix variance does not matter unless a prefix is
asked for explicitly.
"""

import re
from typing import Callable, Optional, Union

from bs4 import BeautifulSoup, Tag

from feed_ingest.core.errors import MalformedDocumentError

# "&" that does not start a character or entity reference
_BARE_AMPERSAND = re.compile(r"&(?!(?:[A-Za-z][A-Za-z0-9]*|#[0-9]+|#[xX][0-9A-Fa-f]+);)")
_BARE_AMPERSAND_BYTES = re.compile(rb"&(?!(?:[A-Za-z][A-Za-z0-9]*|#[0-9]+|#[xX][0-9A-Fa-f]+);)")
_CDATA = re.compile(r"(<!\[CDATA\[.*?\]\]>)", re.DOTALL)
_CDATA_BYTES = re.compile(rb"(<!\[CDATA\[.*?\]\]>)", re.DOTALL)
_XML_DECLARATION_ENCODING = re.compile(r"^(<\?xml[^>]*?encoding=[\"'])[^\"']+", re.IGNORECASE)


def split_name(tag: Tag) -> tuple[Optional[str], str]:
    """Return (prefix, local name) for a tag, declared namespace or not."""
    name = tag.name or ""
    prefix = tag.prefix or None
    if ":" in name:
        head, _, local = name.partition(":")
        return prefix or head, local
    return prefix, name


def _matcher(name: str, prefix: Optional[str]) -> Callable[[Tag], bool]:
    wanted = name.lower()
    wanted_prefix = prefix.lower() if prefix else None

    def match(tag: Tag) -> bool:
        tag_prefix, local = split_name(tag)
        if local.lower() != wanted:
            return False
        if wanted_prefix is None:
            return True
        return (tag_prefix or "").lower() == wanted_prefix

    return match


class XmlElement:
    """Read-only view over one element."""

    def __init__(self, tag: Tag) -> None:
        self._tag = tag

    def __repr__(self) -> str:
        return f"XmlElement({self.qualified_name!r})"

    @property
    def local_name(self) -> str:
        return split_name(self._tag)[1]

    @property
    def prefix(self) -> Optional[str]:
        return split_name(self._tag)[0]

    @property
    def qualified_name(self) -> str:
        prefix, local = split_name(self._tag)
        return f"{prefix}:{local}" if prefix else local

    def first(
        self, name: str, prefix: Optional[str] = None, recursive: bool = True
    ) -> Optional["XmlElement"]:
        """First descendant (or child) with the given local name."""
        tag = self._tag.find(_matcher(name, prefix), recursive=recursive)
        return XmlElement(tag) if tag is not None else None

    def all(
        self, name: str, prefix: Optional[str] = None, recursive: bool = True
    ) -> list["XmlElement"]:
        """All descendants (or children) with the given local name, in document order."""
        return [
            XmlElement(tag)
            for tag in self._tag.find_all(_matcher(name, prefix), recursive=recursive)
        ]

    def attr(self, name: str) -> Optional[str]:
        """Trimmed attribute value, None when missing or blank."""
        value = self._tag.get(name)
        if value is None:
            # Attribute names are case-insensitive in practice (feedURL vs feedUrl)
            lowered = name.lower()
            value = next(
                (v for key, v in self._tag.attrs.items() if key.lower() == lowered),
                None,
            )
        if value is None:
            return None
        if isinstance(value, list):
            value = " ".join(value)
        value = value.strip()
        return value or None

    def text(self) -> str:
        """Text content with surrounding whitespace trimmed."""
        return self._tag.get_text().strip()

    def child_text(
        self, name: str, prefix: Optional[str] = None, recursive: bool = False
    ) -> Optional[str]:
        """Trimmed text of the first matching element, None when missing or blank."""
        element = self.first(name, prefix=prefix, recursive=recursive)
        if element is None:
            return None
        return element.text() or None


class FeedDocument:
    """Parsed feed document."""

    def __init__(self, soup: BeautifulSoup, root: Tag) -> None:
        self._soup = soup
        self.root = XmlElement(root)

    def first(self, name: str, prefix: Optional[str] = None) -> Optional[XmlElement]:
        if _matcher(name, prefix)(self.root._tag):
            return self.root
        return self.root.first(name, prefix=prefix)

    def all(self, name: str, prefix: Optional[str] = None) -> list[XmlElement]:
        matches = self.root.all(name, prefix=prefix)
        if _matcher(name, prefix)(self.root._tag):
            matches.insert(0, self.root)
        return matches

    def channel(self) -> Optional[XmlElement]:
        return self.first("channel")


def _escape_ampersands(data, pattern, cdata, replacement):
    # CDATA content is literal, so only the markup between sections is touched
    parts = cdata.split(data)
    return parts[0][:0].join(
        part if index % 2 else pattern.sub(replacement, part)
        for index, part in enumerate(parts)
    )


def _prepare(raw: Union[str, bytes]) -> tuple[bytes, Optional[str]]:
    """Escape bare ampersands and settle the encoding handed to the parser."""
    if isinstance(raw, bytes):
        data = raw.lstrip(b"\xef\xbb\xbf \t\r\n")
        return _escape_ampersands(data, _BARE_AMPERSAND_BYTES, _CDATA_BYTES, b"&amp;"), None

    text = raw.lstrip("\ufeff \t\r\n")
    text = _escape_ampersands(text, _BARE_AMPERSAND, _CDATA, "&amp;")
    # Already decoded: the declared encoding no longer applies
    text = _XML_DECLARATION_ENCODING.sub(r"\1utf-8", text)
    return text.encode("utf-8"), "utf-8"


def parse_document(raw: Union[str, bytes]) -> FeedDocument:
    """Parse raw feed XML permissively.

    Raises:
        MalformedDocumentError: if the input cannot be recovered as XML at all
    """
    if raw is None or not raw.strip():
        raise MalformedDocumentError("empty response")

    marker = b"<" if isinstance(raw, bytes) else "<"
    if marker not in raw:
        raise MalformedDocumentError("response contains no markup")

    data, encoding = _prepare(raw)
    soup = BeautifulSoup(data, "xml", from_encoding=encoding)

    root = soup.find(True)
    if root is None:
        raise MalformedDocumentError("no XML elements found")

    _, root_name = split_name(root)
    if root_name.lower() == "html":
        raise MalformedDocumentError("received an HTML page instead of a feed")

    return FeedDocument(soup, root)
