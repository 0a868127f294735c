"""
ShopScanEngine: the capabilities the HTTP layer (or any other caller) uses.

  extract_identifiers   OCR text -> ranked candidates (pure)
  resolve_product       identifier -> CanonicalProduct (governed fan-out + merge)
  scan_text/scan_image  extraction followed by resolution
  compare_prices        governed fan-out to retailer scrapers + match_listings
  match_listings        pure scoring/ranking of caller-supplied listings
  analyze_trend         pure price-history analysis
  admit                 outbound rate governor
"""

import logging
from datetime import datetime
from functools import partial
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from shopscan.core import identifiers, matcher, trends
from shopscan.core.config import Settings, settings
from shopscan.core.errors import InvalidIdentifierError, NotFoundError, ProductNotFoundError, RateLimitedError
from shopscan.core.fanout import gather_settled, resolve_product
from shopscan.core.gemini import detect_text
from shopscan.core.rate_governor import BARCODE_SCAN, PRICE_COMPARISON, RateGovernor
from shopscan.core.scrapers import RetailerScraper
from shopscan.core.sources import SourceAdapter
from shopscan.schemas.identify import IdentifierCandidate, ScanResponse
from shopscan.schemas.offers import ComparisonResult, RetailerListing
from shopscan.schemas.products import CanonicalProduct
from shopscan.schemas.trends import PriceHistoryEntry, TrendReport

logger = logging.getLogger(__name__)

OcrFn = Callable[[bytes, str], Awaitable[str]]


class ShopScanEngine:
    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        scrapers: Dict[str, RetailerScraper],
        governor: RateGovernor,
        cfg: Settings = settings,
        ocr: OcrFn = detect_text,
    ):
        self.adapters = list(adapters)
        self.scrapers = dict(scrapers)
        self.governor = governor
        self.cfg = cfg
        self._ocr = ocr

    # --- rate governor -------------------------------------------------

    def admit(self, caller_key: Optional[str], capability_key: str) -> bool:
        return self.governor.admit(caller_key, capability_key)

    def _govern(self, caller_key: Optional[str], capability_key: str) -> None:
        if not self.governor.admit(caller_key, capability_key):
            retry_after = self.governor.retry_after_seconds(caller_key, capability_key)
            logger.info("Rate limited %s on %s (retry in %ss)", caller_key, capability_key, retry_after)
            raise RateLimitedError(capability_key, caller_key or "default", retry_after)

    # --- identification ------------------------------------------------

    def extract_identifiers(self, text: Optional[str]) -> List[IdentifierCandidate]:
        return identifiers.extract_identifiers(text)

    def normalize_identifier(self, identifier: Optional[str]) -> str:
        """The form of identifier that is validated and sent to the sources."""
        return identifiers.normalize_identifier(identifier)

    async def resolve_product(
        self,
        identifier: str,
        caller_key: Optional[str] = None,
        source_priority: Optional[Sequence[str]] = None,
    ) -> CanonicalProduct:
        """
        Raises:
            InvalidIdentifierError: not a plausible product code
            RateLimitedError: caller exceeded the barcode_scan window
            ProductNotFoundError: no source knows the code
        """
        code = self.normalize_identifier(identifier)
        if not identifiers.is_valid_identifier(code):
            raise InvalidIdentifierError(identifier)

        self._govern(caller_key, BARCODE_SCAN)
        return await resolve_product(
            code,
            self.adapters,
            source_priority=source_priority or self.cfg.SOURCE_PRIORITY,
            per_source_timeout=self.cfg.SOURCE_TIMEOUT_SECONDS,
            overall_deadline=self.cfg.LOOKUP_DEADLINE_SECONDS,
        )

    async def scan_text(self, text: str, caller_key: Optional[str] = None) -> ScanResponse:
        """
        Extract candidates, then resolve the best one.
        An unknown product is not an error here: product is None.
        """
        candidates = self.extract_identifiers(text)
        if not candidates:
            raise NotFoundError("No barcode patterns found")

        primary = candidates[0]
        product = None
        try:
            product = await self.resolve_product(primary.value, caller_key=caller_key)
        except ProductNotFoundError as e:
            logger.info("%s", e.message)

        return ScanResponse(
            identifier=primary.value,
            confidence=primary.confidence,
            alternative_identifiers=candidates[1:],
            product=product,
            sources=len(product.contributing_sources) if product else 0,
            raw_text=text,
        )

    async def scan_image(
        self,
        image_bytes: bytes,
        mime_type: str = "image/png",
        caller_key: Optional[str] = None,
    ) -> ScanResponse:
        text = await self._ocr(image_bytes, mime_type)
        return await self.scan_text(text, caller_key=caller_key)

    # --- price comparison ----------------------------------------------

    async def fetch_listings(
        self,
        product: CanonicalProduct,
        retailers: Optional[Sequence[str]] = None,
    ) -> Tuple[List[RetailerListing], List[str], int]:
        """
        Query every selected scraper concurrently.
        Returns (listings, failed retailer keys, number of retailers searched).
        """
        keys = list(retailers) if retailers else list(self.scrapers)
        selected = {k: self.scrapers[k] for k in keys if k in self.scrapers}
        for k in keys:
            if k not in selected:
                logger.warning("Retailer %r is not available; skipped", k)

        query = matcher.build_search_query(product)
        timeout = self.cfg.SCRAPER_TIMEOUT_SECONDS
        outcomes = await gather_settled(
            {k: partial(s.fetch_listings, query, timeout) for k, s in selected.items()},
            per_task_timeout=timeout,
            overall_deadline=self.cfg.COMPARE_DEADLINE_SECONDS,
        )

        listings: List[RetailerListing] = []
        failed: List[str] = []
        for outcome in outcomes:
            if outcome.ok:
                listings.extend(outcome.value or [])
            else:
                logger.warning("Retailer %s failed: %s", outcome.key, outcome.error)
                failed.append(outcome.key)
        return listings, sorted(failed), len(selected)

    def match_listings(
        self,
        product: CanonicalProduct,
        listings: Sequence[RetailerListing],
        max_results: Optional[int] = None,
        reference_price: Optional[float] = None,
    ) -> ComparisonResult:
        return matcher.match_listings(
            product,
            listings,
            max_results=max_results,
            reference_price=reference_price,
            min_confidence=self.cfg.MATCH_MIN_CONFIDENCE,
        )

    async def compare_prices(
        self,
        product: CanonicalProduct,
        caller_key: Optional[str] = None,
        retailers: Optional[Sequence[str]] = None,
        max_results: Optional[int] = None,
        reference_price: Optional[float] = None,
    ) -> ComparisonResult:
        matcher.check_product(product)
        self._govern(caller_key, PRICE_COMPARISON)

        listings, failed, searched = await self.fetch_listings(product, retailers)
        result = self.match_listings(
            product,
            listings,
            max_results=max_results or self.cfg.MAX_COMPARISON_RESULTS,
            reference_price=reference_price,
        )
        result.searched_retailers = searched
        result.failed_retailers = failed
        return result

    # --- trends ------------------------------------------------------------

    def analyze_trend(
        self,
        history: Sequence[PriceHistoryEntry],
        window_days: int = 30,
        now: Optional[datetime] = None,
    ) -> TrendReport:
        return trends.analyze_trend(history, window_days, now=now)
