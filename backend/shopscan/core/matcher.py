"""
Match scraped retailer listings against a canonical product.

There is no shared key between a listing and the product, so relevance is
decided on title text alone:
  gate    brand substring OR >= 50% of name words present
  score   +40 brand, up to +40 word ratio, +20 full name verbatim (cap 100)
"""

import math
import re
from typing import List, Optional, Sequence

from shopscan.core.errors import PreconditionViolation
from shopscan.schemas.offers import ComparisonResult, MatchResult, RetailerListing
from shopscan.schemas.products import CanonicalProduct

MIN_WORD_MATCH_RATIO = 0.5
DEFAULT_MIN_CONFIDENCE = 20


def name_words(name: str) -> List[str]:
    """Lowercased name tokens longer than 2 characters."""
    return [w for w in (name or "").lower().split() if len(w) > 2]


def _word_match_ratio(title_lower: str, words: List[str]) -> float:
    if not words:
        return 0.0
    matching = [w for w in words if w in title_lower]
    return len(matching) / len(words)


def _brand_match(title_lower: str, product: CanonicalProduct) -> bool:
    brand = (product.brand or "").strip().lower()
    return bool(brand) and brand in title_lower


def check_product(product: CanonicalProduct) -> None:
    if not (product.name or "").strip() and not (product.brand or "").strip():
        raise PreconditionViolation("Cannot match listings against a product with neither name nor brand")


def is_relevant_match(title: str, product: CanonicalProduct) -> bool:
    title_lower = (title or "").lower()
    if _brand_match(title_lower, product):
        return True
    return _word_match_ratio(title_lower, name_words(product.name)) >= MIN_WORD_MATCH_RATIO


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def calculate_match_confidence(title: str, product: CanonicalProduct) -> int:
    title_lower = (title or "").lower()
    name_lower = (product.name or "").strip().lower()

    confidence = 0.0
    if _brand_match(title_lower, product):
        confidence += 40
    confidence += _word_match_ratio(title_lower, name_words(product.name)) * 40
    if name_lower and name_lower in title_lower:
        confidence += 20

    return min(_round_half_up(confidence), 100)


def match_listings(
    product: CanonicalProduct,
    listings: Sequence[RetailerListing],
    max_results: Optional[int] = None,
    reference_price: Optional[float] = None,
    min_confidence: int = DEFAULT_MIN_CONFIDENCE,
) -> ComparisonResult:
    """
    Gate, score, rank (cheapest first, then higher confidence) and only then
    truncate to max_results.

    reference_price defaults to the product's suggested price; savings are 0
    when no accepted listing beats it.
    """
    check_product(product)

    scored: List[MatchResult] = []
    for listing in listings:
        if not is_relevant_match(listing.title, product):
            continue
        confidence = calculate_match_confidence(listing.title, product)
        scored.append(
            MatchResult(listing=listing, confidence=confidence, accepted=confidence >= min_confidence)
        )

    ranked = sorted(
        (m for m in scored if m.accepted),
        key=lambda m: (m.listing.price, -m.confidence, m.listing.retailer_name, m.listing.title, m.listing.url or ""),
    )
    if max_results is not None:
        ranked = ranked[: max(0, int(max_results))]

    if reference_price is None and product.suggested_price is not None:
        reference_price = product.suggested_price.current

    best_price = ranked[0].listing.price if ranked else None
    savings = 0.0
    savings_percentage = 0
    if best_price is not None and reference_price and best_price < reference_price:
        savings = round(reference_price - best_price, 2)
        savings_percentage = _round_half_up(savings / reference_price * 100)

    return ComparisonResult(
        matches=ranked,
        best_price=best_price,
        reference_price=reference_price,
        savings=savings,
        savings_percentage=savings_percentage,
    )


def build_search_query(product: CanonicalProduct) -> str:
    """brand + name + first identifier, punctuation stripped."""
    parts = []
    if product.brand:
        parts.append(product.brand)
    if product.name:
        parts.append(product.name)
    if product.identifiers:
        parts.append(product.identifiers[0].value)

    query = " ".join(parts)
    query = re.sub(r"[^\w\s]", " ", query)
    return re.sub(r"\s+", " ", query).strip()
