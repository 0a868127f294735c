from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class RetailerInfo:
    key: str
    name: str
    base_url: str
    search_url: str


# Retailers we know how to search. Which scraper handles each is decided in scrapers.build_scrapers().
RETAILERS: Dict[str, RetailerInfo] = {
    "amazon": RetailerInfo("amazon", "Amazon", "https://www.amazon.com", "https://www.amazon.com/s"),
    "walmart": RetailerInfo("walmart", "Walmart", "https://www.walmart.com", "https://www.walmart.com/search"),
    "target": RetailerInfo("target", "Target", "https://www.target.com", "https://www.target.com/s"),
    "bestbuy": RetailerInfo("bestbuy", "Best Buy", "https://www.bestbuy.com", "https://www.bestbuy.com/site/searchpage.jsp"),
}


def normalize_retailer_name(source: Optional[str]) -> Optional[str]:
    """
    Normalize store/source strings from shopping results so:
      - "Walmart.com", "WALMART", "Walmart - Seller" => "Walmart"
      - "BestBuy.com", "Best Buy" => "Best Buy"
      - "Amazon.com - Seller" => "Amazon"
    Unknown stores keep their (trimmed) name.
    """
    if not source:
        return source

    s = source.strip()

    # Remove obvious suffixes
    s = re.sub(r"\.(com|net|org)\b", "", s, flags=re.IGNORECASE)

    # Collapse whitespace
    s = re.sub(r"\s+", " ", s).strip()

    low = s.lower()
    compact = low.replace(" ", "")

    for info in RETAILERS.values():
        if info.name.lower().replace(" ", "") in compact:
            return info.name

    return s


def parse_price_value(price: Optional[str]) -> Optional[float]:
    """
    Converts strings like "$599.99", "From $499.99", "$1,402.58" to float.
    Returns None if not parseable.
    """
    if price is None:
        return None
    if isinstance(price, (int, float)):
        return float(price)
    m = re.search(r"(\d[\d,]*\.?\d*)", str(price))
    if not m:
        return None
    try:
        return float(m.group(1).replace(",", ""))
    except ValueError:
        return None


def absolute_url(base_url: str, link: Optional[str]) -> Optional[str]:
    if not link:
        return None
    if link.startswith("http://") or link.startswith("https://"):
        return link
    return f"{base_url.rstrip('/')}/{link.lstrip('/')}"
