"""Scraper utilities for rate limiting, proxy fetching, and data normalization."""

from .rate_limiter import DomainRateLimiter, TokenBucket
from .user_agents import browser_headers, get_random_user_agent, USER_AGENTS
from .normalizer import (
    ParsedPrice,
    PriceNormalizer,
    absolute_url,
    clean_text,
    extract_domain,
    looks_like_price,
    normalize_url,
    parse_price,
)
from .rendering_proxy import RenderingProxyClient
from .retry import http_retry


__all__ = [
    # Rate limiting
    "DomainRateLimiter",
    "TokenBucket",
    # User agents
    "browser_headers",
    "get_random_user_agent",
    "USER_AGENTS",
    # Normalization
    "ParsedPrice",
    "PriceNormalizer",
    "absolute_url",
    "clean_text",
    "extract_domain",
    "looks_like_price",
    "normalize_url",
    "parse_price",
    # Fetching
    "RenderingProxyClient",
    "http_retry",
]
