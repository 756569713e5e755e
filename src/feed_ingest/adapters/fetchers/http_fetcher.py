"""HTTP document fetcher for feed XML."""

import logging
from urllib.parse import urlparse

import httpx

from feed_ingest.core.errors import FetchError
from feed_ingest.core.interfaces import FeedFetcher

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "feed-ingest/0.1 (+podcast-namespace feed parser)"


class HttpFeedFetcher(FeedFetcher):
    """Fetch raw feed documents over HTTP(S).

    One attempt per call with a bounded timeout. Retrying and caching are left
    to the caller.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        follow_redirects: bool = True,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self.follow_redirects = follow_redirects

    async def fetch(self, url: str) -> bytes:
        """Fetch the raw feed document as undecoded bytes.

        The XML engine reads the encoding from the BOM or the XML declaration.

        Raises:
            FetchError: for non-HTTP URLs, transport failures, timeouts and
                non-2xx responses
        """
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise FetchError(url, "URL must be an absolute http(s) URL")

        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/rss+xml, application/xml, text/xml, */*",
        }

        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=self.follow_redirects,
            headers=headers,
        ) as client:
            try:
                response = await client.get(url)
            except httpx.TimeoutException as e:
                raise FetchError(url, f"timed out after {self.timeout:g}s") from e
            except httpx.RequestError as e:
                raise FetchError(url, str(e) or e.__class__.__name__) from e

        if not 200 <= response.status_code < 300:
            raise FetchError(url, f"HTTP {response.status_code}", status_code=response.status_code)

        logger.debug("Fetched %s (HTTP %d)", url, response.status_code)
        return response.content
