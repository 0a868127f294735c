"""
Source adapter tests. Upstream HTTP is served by httpx.MockTransport.
"""

import httpx
import pytest

from shopscan.core.config import Settings
from shopscan.core.errors import SourceError
from shopscan.core.sources import (
    BarcodeLookupAdapter,
    OpenFoodFactsAdapter,
    UpcItemDbAdapter,
    build_source_adapters,
    extract_price_from_stores,
)

UPC = "012345678905"


def _transport(handler):
    return httpx.MockTransport(handler)


class TestUpcItemDb:
    @pytest.mark.asyncio
    async def test_maps_first_item(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["upc"] == UPC
            return httpx.Response(
                200,
                json={
                    "code": "OK",
                    "items": [
                        {
                            "title": "Acme Widget",
                            "brand": "Acme",
                            "category": "Tools",
                            "description": "A widget",
                            "images": ["https://img/1.jpg", "https://img/2.jpg"],
                            "upc": UPC,
                            "ean": "0" + UPC,
                        }
                    ],
                },
            )

        adapter = UpcItemDbAdapter("https://upc.test/lookup", transport=_transport(handler))
        record = await adapter.query(UPC, timeout=1)

        assert record.source_tag == "upc_database"
        assert record.name == "Acme Widget"
        assert [(i.url, i.is_primary) for i in record.images] == [("https://img/1.jpg", True)]
        assert {(i.type, i.value) for i in record.identifiers} == {("upc", UPC), ("ean", "0" + UPC)}

    @pytest.mark.asyncio
    async def test_no_items_is_not_found(self):
        adapter = UpcItemDbAdapter(
            "https://upc.test/lookup",
            transport=_transport(lambda r: httpx.Response(200, json={"code": "OK", "items": []})),
        )
        assert await adapter.query(UPC, timeout=1) is None

    @pytest.mark.asyncio
    async def test_server_error_raises_source_error(self):
        adapter = UpcItemDbAdapter(
            "https://upc.test/lookup",
            transport=_transport(lambda r: httpx.Response(500, text="oops")),
        )
        with pytest.raises(SourceError) as exc:
            await adapter.query(UPC, timeout=1)
        assert exc.value.status_code == 500

    @pytest.mark.asyncio
    async def test_network_error_raises_source_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        adapter = UpcItemDbAdapter("https://upc.test/lookup", transport=_transport(handler))
        with pytest.raises(SourceError):
            await adapter.query(UPC, timeout=1)


class TestOpenFoodFacts:
    @pytest.mark.asyncio
    async def test_maps_product(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith(f"/{UPC}.json")
            return httpx.Response(
                200,
                json={
                    "status": 1,
                    "product": {
                        "product_name": "",
                        "product_name_en": "Choco Bar",
                        "brands": "Choco Co",
                        "categories": "Snacks",
                        "ingredients_text_en": "cocoa, sugar",
                        "image_url": "https://img/off.jpg",
                        "code": UPC,
                    },
                },
            )

        adapter = OpenFoodFactsAdapter("https://off.test/api/v0/product", transport=_transport(handler))
        record = await adapter.query(UPC, timeout=1)

        assert record.name == "Choco Bar"
        assert record.brand == "Choco Co"
        assert record.description == "cocoa, sugar"
        assert record.images[0].is_primary is True
        assert record.identifiers[0].type == "barcode"

    @pytest.mark.asyncio
    async def test_status_zero_is_not_found(self):
        adapter = OpenFoodFactsAdapter(
            "https://off.test/api/v0/product",
            transport=_transport(lambda r: httpx.Response(200, json={"status": 0})),
        )
        assert await adapter.query(UPC, timeout=1) is None

    @pytest.mark.asyncio
    async def test_404_is_not_found(self):
        adapter = OpenFoodFactsAdapter(
            "https://off.test/api/v0/product",
            transport=_transport(lambda r: httpx.Response(404)),
        )
        assert await adapter.query(UPC, timeout=1) is None


class TestBarcodeLookup:
    def test_disabled_without_key(self):
        assert BarcodeLookupAdapter("https://bl.test", "").enabled is False
        assert BarcodeLookupAdapter("", "key").enabled is False
        assert BarcodeLookupAdapter("https://bl.test", "key").enabled is True

    @pytest.mark.asyncio
    async def test_maps_product_and_price(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["key"] == "secret"
            return httpx.Response(
                200,
                json={
                    "products": [
                        {
                            "title": "Widget",
                            "barcode_number": UPC,
                            "images": ["https://img/a.jpg", "https://img/b.jpg"],
                            "stores": [{"store_name": "NoPrice"}, {"store_name": "Walmart", "price": "4.99"}],
                        }
                    ]
                },
            )

        adapter = BarcodeLookupAdapter("https://bl.test", "secret", transport=_transport(handler))
        record = await adapter.query(UPC, timeout=1)

        assert all(not i.is_primary for i in record.images)
        assert record.suggested_price.current == 4.99
        assert record.suggested_price.store == "Walmart"


def test_extract_price_from_stores_skips_unparseable():
    price = extract_price_from_stores([{"price": "n/a"}, {"price": "1,299.00", "store_name": "Best Buy"}])
    assert price.current == 1299.0
    assert extract_price_from_stores([]) is None


def test_build_source_adapters_follows_priority():
    cfg = Settings(SOURCE_PRIORITY=["open_food_facts", "upc_database", "barcode_lookup"])
    adapters = build_source_adapters(cfg)

    assert [a.source_tag for a in adapters] == ["open_food_facts", "upc_database", "barcode_lookup"]
    assert [a.priority for a in adapters] == [0, 1, 2]
