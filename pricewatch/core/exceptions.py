"""Custom exception classes for the application."""

from typing import List, Optional


class PriceWatchException(Exception):
    """Base exception for all PriceWatch errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(PriceWatchException):
    """Raised when a requested resource is not found (or belongs to another store)."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class ScraperError(PriceWatchException):
    """Raised when a scraper encounters an error."""

    def __init__(self, strategy: str, message: str):
        self.strategy = strategy
        super().__init__(f"Scraper error for {strategy}: {message}")


class TransientFetchError(ScraperError):
    """A single page or item could not be fetched. The run continues without it."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__("fetch", f"{url}: {message}")


class ProxyCreditsExhausted(TransientFetchError):
    """The rendering proxy refused the request for lack of credits (HTTP 402/429)."""


class BotBlockedError(TransientFetchError):
    """The target answered with a bot-detection or captcha wall."""


class ValidationError(PriceWatchException):
    """Malformed payload or cross-tenant reference."""

    def __init__(self, message: str, errors: Optional[List[dict]] = None):
        self.errors = errors or []
        super().__init__(message)


class PersistenceError(PriceWatchException):
    """A critical write could not be persisted."""
