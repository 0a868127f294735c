from fastapi import APIRouter, Depends

from shopscan.api.deps import get_caller_key, get_engine, http_error
from shopscan.core.engine import ShopScanEngine
from shopscan.core.errors import ShopScanError
from shopscan.schemas.offers import CompareRequest, ComparisonResult, MatchRequest

router = APIRouter(prefix="/v1", tags=["offers"])


@router.post("/compare", response_model=ComparisonResult)
async def compare(
    body: CompareRequest,
    engine: ShopScanEngine = Depends(get_engine),
    caller_key: str = Depends(get_caller_key),
):
    """
    Searches the configured retailers for the product and returns matching
    listings sorted by best (lowest) price first.
    """
    try:
        return await engine.compare_prices(
            body.product,
            caller_key=caller_key,
            retailers=body.retailers,
            max_results=body.max_results,
            reference_price=body.reference_price,
        )
    except ShopScanError as e:
        raise http_error(e)


@router.post("/match", response_model=ComparisonResult)
def match(
    body: MatchRequest,
    engine: ShopScanEngine = Depends(get_engine),
):
    """Scores and ranks listings the caller already has (no outbound calls)."""
    try:
        return engine.match_listings(
            body.product,
            body.listings,
            max_results=body.max_results,
            reference_price=body.reference_price,
        )
    except ShopScanError as e:
        raise http_error(e)
