"""
Retailer scrapers: one implementation per retailer page format.

The engine only sees the RetailerScraper protocol; which implementation
serves which retailer is configuration (see build_scrapers).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx
from bs4 import BeautifulSoup
from pydantic import ValidationError

from shopscan.core.config import Settings
from shopscan.core.errors import SourceError
from shopscan.core.http import BROWSER_HEADERS, get_with_retry
from shopscan.core.retailers import RETAILERS, RetailerInfo, absolute_url, normalize_retailer_name, parse_price_value
from shopscan.core.serpapi import shopping_search
from shopscan.schemas.offers import RetailerListing

logger = logging.getLogger(__name__)

DEFAULT_MAX_LISTINGS = 20


@runtime_checkable
class RetailerScraper(Protocol):
    key: str
    name: str

    async def fetch_listings(self, query: str, timeout: float) -> List[RetailerListing]:
        ...


def _listing(**fields: Any) -> Optional[RetailerListing]:
    try:
        return RetailerListing(**fields)
    except ValidationError as e:
        logger.debug("Dropping unusable listing %s: %s", fields.get("title"), e)
        return None


class HtmlSearchScraper:
    """Fetches the retailer's own search page; subclasses implement parse()."""

    query_param = "q"

    def __init__(
        self,
        info: RetailerInfo,
        max_listings: int = DEFAULT_MAX_LISTINGS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.info = info
        self.key = info.key
        self.name = info.name
        self.max_listings = max_listings
        self._transport = transport

    async def fetch_listings(self, query: str, timeout: float) -> List[RetailerListing]:
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport, follow_redirects=True) as client:
                r = await get_with_retry(
                    client,
                    self.info.search_url,
                    params={self.query_param: query},
                    headers=BROWSER_HEADERS,
                )
        except httpx.HTTPError as e:
            raise SourceError(self.key, str(e) or e.__class__.__name__) from e

        if r.status_code != 200:
            raise SourceError(self.key, f"HTTP {r.status_code}", status_code=r.status_code)

        listings = self.parse(r.text)
        logger.debug("%s returned %d listings for %r", self.name, len(listings), query)
        return listings[: self.max_listings]

    def parse(self, html: str) -> List[RetailerListing]:
        raise NotImplementedError


class AmazonScraper(HtmlSearchScraper):
    query_param = "k"

    def parse(self, html: str) -> List[RetailerListing]:
        soup = BeautifulSoup(html, "html.parser")
        out: List[RetailerListing] = []

        for item in soup.select('[data-component-type="s-search-result"]'):
            title_el = item.select_one("h2 a span") or item.select_one("h2 span")
            whole_el = item.select_one(".a-price-whole")
            if not title_el or not whole_el:
                continue

            whole = "".join(c for c in whole_el.get_text() if c.isdigit())
            fraction_el = item.select_one(".a-price-fraction")
            fraction = "".join(c for c in fraction_el.get_text() if c.isdigit()) if fraction_el else ""
            if not whole:
                continue

            link_el = item.select_one("h2 a")
            img_el = item.select_one("img")
            listing = _listing(
                retailer_name=self.name,
                title=title_el.get_text(strip=True),
                price=float(f"{whole}.{fraction or '00'}"),
                currency="USD",
                url=absolute_url(self.info.base_url, link_el.get("href") if link_el else None),
                image_url=img_el.get("src") if img_el else None,
            )
            if listing:
                out.append(listing)

        return out


class WalmartScraper(HtmlSearchScraper):
    query_param = "q"

    def parse(self, html: str) -> List[RetailerListing]:
        soup = BeautifulSoup(html, "html.parser")
        out: List[RetailerListing] = []

        for title_el in soup.select('[data-automation-id="product-title"]'):
            container = title_el.find_parent(attrs={"data-testid": "item-stack"}) or title_el.parent
            price_el = container.select_one('[itemprop="price"]') if container else None
            if price_el is None:
                continue

            price = parse_price_value(price_el.get("content") or price_el.get_text())
            link_el = container.select_one("a")
            img_el = container.select_one("img")
            listing = _listing(
                retailer_name=self.name,
                title=title_el.get_text(strip=True),
                price=price,
                currency="USD",
                url=absolute_url(self.info.base_url, link_el.get("href") if link_el else None),
                image_url=img_el.get("src") if img_el else None,
            )
            if listing:
                out.append(listing)

        return out


class SerpApiShoppingScraper:
    """
    Google Shopping (via SerpApi) restricted to one retailer.
    Used for retailers whose own pages are rendered client-side.
    """

    def __init__(
        self,
        info: RetailerInfo,
        api_key: str = "",
        max_listings: int = DEFAULT_MAX_LISTINGS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.info = info
        self.key = info.key
        self.name = info.name
        self.api_key = api_key
        self.max_listings = max_listings
        self._transport = transport

    async def fetch_listings(self, query: str, timeout: float) -> List[RetailerListing]:
        try:
            results = await shopping_search(
                q=f"{query} {self.name}",
                num=max(20, self.max_listings * 3),
                timeout=timeout,
                api_key=self.api_key or None,
                transport=self._transport,
            )
        except httpx.HTTPError as e:
            raise SourceError(self.key, str(e) or e.__class__.__name__) from e

        out: List[RetailerListing] = []
        for r in results:
            if normalize_retailer_name(r.get("source")) != self.name:
                continue
            listing = self._to_listing(r)
            if listing:
                out.append(listing)
        return out[: self.max_listings]

    def _to_listing(self, r: Dict[str, Any]) -> Optional[RetailerListing]:
        price = None
        for k in ("extracted_price", "price_extracted"):
            v = r.get(k)
            if isinstance(v, (int, float)):
                price = float(v)
                break
        if price is None:
            price = parse_price_value(r.get("price"))

        link = None
        for k in ("link", "product_link", "merchant_link"):
            v = r.get(k)
            if isinstance(v, str) and v.strip():
                link = v.strip()
                break

        return _listing(
            retailer_name=self.name,
            title=r.get("title") or "",
            price=price,
            currency="USD",
            url=link,
            image_url=r.get("thumbnail"),
        )


HTML_SCRAPERS = {
    "amazon": AmazonScraper,
    "walmart": WalmartScraper,
}


def build_scrapers(
    cfg: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, RetailerScraper]:
    """
    ENABLED_RETAILERS get a page scraper when one exists; SERPAPI_RETAILERS
    (and enabled retailers without a page scraper) go through SerpApi when a key is set.
    """
    scrapers: Dict[str, RetailerScraper] = {}

    for key in cfg.ENABLED_RETAILERS:
        info = RETAILERS.get(key)
        if info is None:
            logger.warning("Unknown retailer %r in ENABLED_RETAILERS; ignored", key)
            continue
        cls = HTML_SCRAPERS.get(key)
        if cls is not None:
            scrapers[key] = cls(info, transport=transport)

    serp_keys = list(cfg.SERPAPI_RETAILERS) + [k for k in cfg.ENABLED_RETAILERS if k not in scrapers]
    for key in serp_keys:
        info = RETAILERS.get(key)
        if info is None or key in scrapers:
            continue
        if not cfg.SERPAPI_API_KEY:
            logger.info("SERPAPI_API_KEY not set; retailer %s disabled", key)
            continue
        scrapers[key] = SerpApiShoppingScraper(info, api_key=cfg.SERPAPI_API_KEY, transport=transport)

    return scrapers
