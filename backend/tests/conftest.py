"""Shared test fixtures."""

import asyncio
from typing import List, Optional

import pytest

from shopscan.core.errors import SourceError
from shopscan.schemas.offers import RetailerListing
from shopscan.schemas.products import CanonicalProduct, SourceRecord


class FakeAdapter:
    """In-memory SourceAdapter: returns a record, None, raises, or hangs."""

    def __init__(
        self,
        source_tag: str,
        record: Optional[SourceRecord] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        priority: int = 0,
        enabled: bool = True,
    ):
        self.source_tag = source_tag
        self.record = record
        self.error = error
        self.delay = delay
        self.priority = priority
        self.enabled = enabled
        self.calls: List[str] = []

    async def query(self, identifier: str, timeout: float) -> Optional[SourceRecord]:
        self.calls.append(identifier)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.record


class FakeScraper:
    def __init__(self, key: str, listings: Optional[List[RetailerListing]] = None, error: Optional[Exception] = None):
        self.key = key
        self.name = key.title()
        self.listings = listings or []
        self.error = error
        self.queries: List[str] = []

    async def fetch_listings(self, query: str, timeout: float) -> List[RetailerListing]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.listings)


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def failing_error():
    return SourceError("broken", "connection refused")


@pytest.fixture
def headphones():
    return CanonicalProduct(
        name="WH-1000XM4 Wireless Noise Cancelling Headphones",
        brand="Sony",
        category="Electronics",
    )


def listing(title: str, price: float, retailer: str = "Amazon") -> RetailerListing:
    return RetailerListing(retailer_name=retailer, title=title, price=price)
