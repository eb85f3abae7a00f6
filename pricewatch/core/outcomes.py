"""Terminal, non-exceptional run outcomes.

Quota and cooldown limits, and empty scrapes, end a run normally. They are
reported to the caller as a reason code plus a human-readable message rather
than raised.
"""

from enum import Enum


class OutcomeReason(str, Enum):
    QUOTA_EXHAUSTED = "quota_exhausted"
    NO_PRODUCTS_FOUND = "no_products_found"
    NO_VALID_PRODUCTS = "no_valid_products"
    NO_PRODUCTS_STAGED = "no_products_staged"
    UNEXPECTED_ERROR = "unexpected_error"
    SYNC_NOT_AVAILABLE = "sync_not_available"
    DAILY_LIMIT_REACHED = "daily_limit_reached"
    COOLDOWN_NOT_ELAPSED = "cooldown_not_elapsed"


REASON_MESSAGES = {
    OutcomeReason.QUOTA_EXHAUSTED: "Discovery quota exhausted",
    OutcomeReason.NO_PRODUCTS_FOUND: "No products found",
    OutcomeReason.NO_VALID_PRODUCTS: "No valid products found",
    OutcomeReason.NO_PRODUCTS_STAGED: "No products could be saved",
    OutcomeReason.UNEXPECTED_ERROR: "Discovery failed unexpectedly",
    OutcomeReason.SYNC_NOT_AVAILABLE: "Sync is not available on your current plan",
    OutcomeReason.DAILY_LIMIT_REACHED: "Daily sync limit reached",
    OutcomeReason.COOLDOWN_NOT_ELAPSED: "Sync cooldown has not elapsed",
}
