"""
External product databases queried by identifier.

Each adapter returns a SourceRecord, None when the database has no entry,
or raises SourceError when the call itself failed.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx

from shopscan.core.config import Settings
from shopscan.core.errors import SourceError
from shopscan.core.http import get_with_retry, redact_key
from shopscan.schemas.products import ImageRef, ProductIdentifier, SourceRecord, SuggestedPrice

logger = logging.getLogger(__name__)


@runtime_checkable
class SourceAdapter(Protocol):
    source_tag: str
    priority: int
    enabled: bool

    async def query(self, identifier: str, timeout: float) -> Optional[SourceRecord]:
        ...


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


class HttpSourceAdapter:
    """Shared httpx plumbing; subclasses implement _fetch()."""

    source_tag = "unknown"

    def __init__(
        self,
        base_url: str,
        priority: int = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.priority = priority
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def query(self, identifier: str, timeout: float) -> Optional[SourceRecord]:
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport, follow_redirects=True) as client:
                record = await self._fetch(client, identifier)
        except httpx.HTTPError as e:
            raise SourceError(self.source_tag, redact_key(str(e)) or e.__class__.__name__) from e
        except ValueError as e:
            # Invalid JSON body
            raise SourceError(self.source_tag, f"unparseable response: {e}") from e

        if record is None or record.is_empty():
            return None
        return record

    async def _fetch(self, client: httpx.AsyncClient, identifier: str) -> Optional[SourceRecord]:
        raise NotImplementedError

    def _check_status(self, r: httpx.Response) -> bool:
        """True when the body should be parsed, False for a plain 'not listed'."""
        if r.status_code == 404:
            return False
        if r.status_code >= 400:
            raise SourceError(self.source_tag, f"HTTP {r.status_code}", status_code=r.status_code)
        return True


class UpcItemDbAdapter(HttpSourceAdapter):
    source_tag = "upc_database"

    async def _fetch(self, client: httpx.AsyncClient, identifier: str) -> Optional[SourceRecord]:
        r = await get_with_retry(client, self.base_url, params={"upc": identifier})
        if not self._check_status(r):
            return None

        data = r.json()
        items = data.get("items") or []
        if data.get("code") != "OK" or not items:
            return None

        item = items[0]
        images = item.get("images") or []
        identifiers = []
        if _clean(item.get("upc")):
            identifiers.append(ProductIdentifier(type="upc", value=_clean(item["upc"])))
        if _clean(item.get("ean")):
            identifiers.append(ProductIdentifier(type="ean", value=_clean(item["ean"])))

        return SourceRecord(
            source_tag=self.source_tag,
            name=_clean(item.get("title")),
            brand=_clean(item.get("brand")),
            category=_clean(item.get("category")),
            description=_clean(item.get("description")),
            images=[ImageRef(url=images[0], is_primary=True)] if images else [],
            identifiers=identifiers,
        )


class OpenFoodFactsAdapter(HttpSourceAdapter):
    source_tag = "open_food_facts"

    async def _fetch(self, client: httpx.AsyncClient, identifier: str) -> Optional[SourceRecord]:
        url = f"{self.base_url.rstrip('/')}/{identifier}.json"
        r = await get_with_retry(client, url)
        if not self._check_status(r):
            return None

        data = r.json()
        product = data.get("product")
        if data.get("status") != 1 or not product:
            return None

        image_url = _clean(product.get("image_url"))
        code = _clean(product.get("code"))

        return SourceRecord(
            source_tag=self.source_tag,
            name=_clean(product.get("product_name")) or _clean(product.get("product_name_en")),
            brand=_clean(product.get("brands")),
            category=_clean(product.get("categories")),
            description=_clean(product.get("ingredients_text_en")),
            images=[ImageRef(url=image_url, is_primary=True)] if image_url else [],
            identifiers=[ProductIdentifier(type="barcode", value=code)] if code else [],
        )


def extract_price_from_stores(stores: Optional[List[Dict[str, Any]]]) -> Optional[SuggestedPrice]:
    """First store with a parseable price wins."""
    for store in stores or []:
        raw = store.get("price") or store.get("store_price")
        if raw in (None, ""):
            continue
        try:
            current = float(str(raw).replace(",", "").strip())
        except ValueError:
            continue
        return SuggestedPrice(
            current=current,
            currency=_clean(store.get("currency")) or "USD",
            store=_clean(store.get("store_name") or store.get("name")),
        )
    return None


class BarcodeLookupAdapter(HttpSourceAdapter):
    source_tag = "barcode_lookup"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        priority: int = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url, priority=priority, transport=transport)
        self.api_key = api_key

    @property
    def enabled(self) -> bool:
        return bool(self.base_url and self.api_key)

    async def _fetch(self, client: httpx.AsyncClient, identifier: str) -> Optional[SourceRecord]:
        r = await get_with_retry(
            client,
            self.base_url,
            params={"formatted": "y", "code": identifier, "key": self.api_key},
        )
        if not self._check_status(r):
            return None

        products = r.json().get("products") or []
        if not products:
            return None

        product = products[0]
        number = _clean(product.get("barcode_number"))

        return SourceRecord(
            source_tag=self.source_tag,
            name=_clean(product.get("title")),
            brand=_clean(product.get("brand")),
            category=_clean(product.get("category")),
            description=_clean(product.get("description")),
            images=[ImageRef(url=u, is_primary=False) for u in (product.get("images") or []) if _clean(u)],
            identifiers=[ProductIdentifier(type="upc", value=number)] if number else [],
            suggested_price=extract_price_from_stores(product.get("stores")),
        )


def build_source_adapters(
    cfg: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[SourceAdapter]:
    """
    Registry of product databases, ranked by cfg.SOURCE_PRIORITY.
    Disabled adapters (e.g. Barcode Lookup without a key) are still returned;
    fan-out skips them.
    """
    adapters: List[HttpSourceAdapter] = [
        UpcItemDbAdapter(cfg.UPC_DATABASE_URL, transport=transport),
        OpenFoodFactsAdapter(cfg.OPEN_FOOD_FACTS_URL, transport=transport),
        BarcodeLookupAdapter(cfg.BARCODE_LOOKUP_API_URL, cfg.BARCODE_LOOKUP_API_KEY, transport=transport),
    ]

    rank = {tag: i for i, tag in enumerate(cfg.SOURCE_PRIORITY)}
    for a in adapters:
        a.priority = rank.get(a.source_tag, len(rank))
        if not a.enabled:
            logger.info("Source %s is not configured; it will be skipped", a.source_tag)

    adapters.sort(key=lambda a: (a.priority, a.source_tag))
    return adapters
