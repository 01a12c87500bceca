import httpx
import asyncio
import logging
from typing import Dict, Optional

from sitecrawler.config import settings
from sitecrawler.exceptions import FetchError

logger = logging.getLogger(__name__)


def default_headers(user_agent: str) -> Dict[str, str]:
    """Identifying headers sent with every request so site owners can recognize (and block) the crawler."""
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Cache-Control": "no-cache",
    }


class PageFetcher:
    """
    Fetches a single page as HTML with a hard timeout.
    Redirects are followed; failures are never retried here.
    """
    def __init__(
        self,
        user_agent: str = settings.CRAWLER_USER_AGENT,
        request_timeout: float = settings.CRAWLER_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.client = httpx.AsyncClient(
            headers=default_headers(self.user_agent),
            timeout=self.request_timeout,
            follow_redirects=True,
            transport=transport,
        )

    async def fetch_html(self, url: str) -> str:
        """
        Returns the response body of an HTML page.
        Raises FetchError on timeouts, transport errors, non-2xx statuses
        and non-HTML content types.
        """
        try:
            # httpx timeouts apply per phase; wait_for bounds the whole request including the body
            response = await asyncio.wait_for(self.client.get(url), self.request_timeout)
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise FetchError(f"Timed out after {self.request_timeout}s fetching {url}", url) from e
        except httpx.RequestError as e:
            raise FetchError(f"Request error fetching {url}: {e}", url) from e

        logger.debug(f"Response status {response.status_code} for {url}")

        if not response.is_success:
            raise FetchError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                url,
                status_code=response.status_code,
            )

        content_type = response.headers.get("content-type", "")
        if "text/html" not in content_type.lower():
            raise FetchError(
                f"Not HTML content: {content_type or 'missing content-type'}",
                url,
                status_code=response.status_code,
            )

        html = response.text
        logger.info(f"Fetched {len(html)} characters from {url}")
        return html

    async def aclose(self):
        await self.client.aclose()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def __aenter__(self):
        return self
