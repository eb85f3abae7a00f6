"""Retry utilities with exponential backoff for HTTP requests."""

import logging

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pricewatch.config import settings


def _is_server_error(exc: BaseException) -> bool:
    """5xx responses are worth retrying; 4xx (including 402/429 from the proxy) are not."""
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code >= 500


# Reusable retry decorator for HTTP requests (httpx)
http_retry = retry(
    stop=stop_after_attempt(settings.SCRAPER_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=(
        retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException))
        | retry_if_exception(_is_server_error)
    ),
    before_sleep=before_sleep_log(logging.getLogger(__name__), logging.WARNING),
    reraise=True,
)
