"""Client for a ScrapingBee-compatible rendering proxy.

The proxy fetches a target URL on our behalf (optionally through premium
residential IPs) and returns the raw HTML. JavaScript rendering is never
requested by the listing scraper; only the detail-page scraper escalates.
"""

from typing import Optional

import httpx
import structlog

from pricewatch.config import settings
from pricewatch.core.exceptions import ProxyCreditsExhausted, TransientFetchError
from pricewatch.scrapers.utils.retry import http_retry

logger = structlog.get_logger(__name__)

CREDITS_EXHAUSTED_STATUSES = (402, 429)


class RenderingProxyClient:
    """Fetches HTML pages through the rendering proxy."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = settings.SCRAPING_API_KEY if api_key is None else api_key
        self.base_url = base_url or settings.SCRAPING_API_BASE_URL
        self.http_client = http_client
        self.timeout = timeout or settings.SCRAPER_TIMEOUT_SECONDS

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def fetch_html(self, url: str, render_js: bool = False, premium_proxy: bool = False) -> str:
        """Fetch ``url`` through the proxy and return its HTML.

        Raises:
            ProxyCreditsExhausted: Proxy answered 402/429
            TransientFetchError: Any other failure after retries
        """
        params = {
            "api_key": self.api_key,
            "url": url,
            "render_js": "true" if render_js else "false",
        }
        if premium_proxy:
            params["premium_proxy"] = "true"

        try:
            response = await self._request(params)
        except httpx.HTTPError as e:
            raise TransientFetchError(url, str(e)) from e

        if response.status_code in CREDITS_EXHAUSTED_STATUSES:
            raise ProxyCreditsExhausted(url, "rendering proxy credits exhausted", response.status_code)
        if response.status_code >= 400:
            raise TransientFetchError(url, f"HTTP {response.status_code}", response.status_code)

        logger.debug("proxy_fetch_ok", url=url, premium_proxy=premium_proxy, size=len(response.text))
        return response.text

    @http_retry
    async def _request(self, params: dict) -> httpx.Response:
        if self.http_client is not None:
            response = await self.http_client.get(self.base_url, params=params)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.base_url, params=params)
        if response.status_code >= 500:
            response.raise_for_status()
        return response
