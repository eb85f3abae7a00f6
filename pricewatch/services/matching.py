"""Fuzzy matching of seller products against competitor listings.

Scores are integers in [0, 100]: a Dice coefficient over normalized word
tokens, lifted to at least 90 when both sides carry the same SKU.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Generic, List, Optional, Sequence, Set, TypeVar

from pricewatch.config import settings

SKU_MATCH_SCORE = 90

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

P = TypeVar("P")
C = TypeVar("C")


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, fold accents, replace every non-alphanumeric run with one space."""
    if not text:
        return ""
    folded = unicodedata.normalize("NFKD", text)
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return _NON_ALNUM.sub(" ", folded.lower()).strip()


def tokenize(text: Optional[str]) -> Set[str]:
    normalized = normalize_text(text)
    return set(normalized.split()) if normalized else set()


def token_similarity(a: Optional[str], b: Optional[str]) -> int:
    """100 * 2|A∩B| / (|A| + |B|) over token sets, rounded half up; 0 if either is empty."""
    tokens_a = tokenize(a)
    tokens_b = tokenize(b)
    if not tokens_a or not tokens_b:
        return 0
    overlap = len(tokens_a & tokens_b)
    return int(100 * 2 * overlap / (len(tokens_a) + len(tokens_b)) + 0.5)


def skus_match(a: Optional[str], b: Optional[str]) -> bool:
    left = (a or "").strip().lower()
    right = (b or "").strip().lower()
    return bool(left) and left == right


def compute_similarity(
    seller_name: Optional[str],
    competitor_name: Optional[str],
    seller_sku: Optional[str] = None,
    competitor_sku: Optional[str] = None,
) -> int:
    score = token_similarity(seller_name, competitor_name)
    if skus_match(seller_sku, competitor_sku):
        score = max(score, SKU_MATCH_SCORE)
    return score


@dataclass
class MatchResult(Generic[P, C]):
    seller_product: P
    competitor_item: C
    score: int


def find_best_matches(
    seller_products: Sequence[P],
    competitor_items: Sequence[C],
    min_score: Optional[int] = None,
) -> List[MatchResult[P, C]]:
    """Pick the best seller product for each competitor item.

    Both sides need ``name`` and ``sku`` attributes. Ties keep the first
    seller product seen. Pairs scoring below ``min_score`` are dropped.
    """
    threshold = settings.MATCH_MIN_SCORE if min_score is None else min_score
    results: List[MatchResult[P, C]] = []

    for item in competitor_items:
        best: Optional[P] = None
        best_score = -1
        for product in seller_products:
            score = compute_similarity(
                getattr(product, "name", None),
                getattr(item, "name", None),
                getattr(product, "sku", None),
                getattr(item, "sku", None),
            )
            if score > best_score:
                best, best_score = product, score
        if best is not None and best_score >= threshold:
            results.append(MatchResult(seller_product=best, competitor_item=item, score=best_score))

    return results
