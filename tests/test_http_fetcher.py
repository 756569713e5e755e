"""Tests for the HTTP feed fetcher."""

from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from feed_ingest.adapters.fetchers import HttpFeedFetcher
from feed_ingest.adapters.normalizers import FeedNormalizer
from feed_ingest.adapters.xml.document import parse_document
from feed_ingest.core import FetchError

FEED_URL = "https://example.com/feed.xml"


@pytest.mark.asyncio
async def test_fetch_success() -> None:
    """Test fetching a feed document."""
    fetcher = HttpFeedFetcher(timeout=5.0, user_agent="test-agent")

    with patch("httpx.AsyncClient") as mock_client:
        mock_response = Mock(status_code=200, content=b"<rss/>")
        mock_get = AsyncMock(return_value=mock_response)
        mock_client.return_value.__aenter__.return_value.get = mock_get

        body = await fetcher.fetch(FEED_URL)

        assert body == b"<rss/>"
        assert mock_get.call_args.args[0] == FEED_URL

        client_kwargs = mock_client.call_args.kwargs
        assert client_kwargs["timeout"] == 5.0
        assert client_kwargs["follow_redirects"] is True
        assert client_kwargs["headers"]["User-Agent"] == "test-agent"


@pytest.mark.asyncio
async def test_fetch_http_error_status() -> None:
    """Test that a non-2xx response becomes a FetchError."""
    fetcher = HttpFeedFetcher()

    with patch("httpx.AsyncClient") as mock_client:
        mock_response = Mock(status_code=404, text="Not Found")
        mock_client.return_value.__aenter__.return_value.get = AsyncMock(return_value=mock_response)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(FEED_URL)

    assert exc_info.value.url == FEED_URL
    assert exc_info.value.status_code == 404
    assert "HTTP 404" in str(exc_info.value)


@pytest.mark.asyncio
async def test_fetch_timeout() -> None:
    fetcher = HttpFeedFetcher(timeout=2.0)

    with patch("httpx.AsyncClient") as mock_client:
        mock_client.return_value.__aenter__.return_value.get = AsyncMock(
            side_effect=httpx.ReadTimeout("read timed out")
        )

        with pytest.raises(FetchError, match="timed out after 2s"):
            await fetcher.fetch(FEED_URL)


@pytest.mark.asyncio
async def test_fetch_transport_error() -> None:
    fetcher = HttpFeedFetcher()

    with patch("httpx.AsyncClient") as mock_client:
        mock_client.return_value.__aenter__.return_value.get = AsyncMock(
            side_effect=httpx.ConnectError("name resolution failed")
        )

        with pytest.raises(FetchError, match="name resolution failed") as exc_info:
            await fetcher.fetch(FEED_URL)

    assert exc_info.value.status_code is None
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["ftp://example.com/feed.xml", "/relative/feed.xml", "example.com/feed.xml"])
async def test_fetch_rejects_non_http_urls(url: str) -> None:
    fetcher = HttpFeedFetcher()

    with patch("httpx.AsyncClient") as mock_client:
        with pytest.raises(FetchError, match="absolute http"):
            await fetcher.fetch(url)

        assert not mock_client.called


@pytest.mark.asyncio
async def test_fetch_keeps_declared_encoding() -> None:
    """Test that a Latin-1 feed served without a charset header decodes correctly."""
    body = (
        '<?xml version="1.0" encoding="ISO-8859-1"?>'
        "<rss><channel><title>Caf\xe9 Del Mar</title>"
        '<item><title>Ol\xe9</title><enclosure url="https://example.com/1.mp3"/></item>'
        "</channel></rss>"
    ).encode("iso-8859-1")
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, content=body, headers={"Content-Type": "application/rss+xml"})
    )
    real_client = httpx.AsyncClient

    with patch("httpx.AsyncClient", side_effect=lambda **kwargs: real_client(transport=transport, **kwargs)):
        raw = await HttpFeedFetcher().fetch(FEED_URL)

    album = FeedNormalizer().normalize_album(parse_document(raw), "cafe")

    assert raw == body
    assert album.title == "Café Del Mar"
    assert album.tracks[0].title == "Olé"
