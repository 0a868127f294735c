from typing import List

from fastapi import APIRouter, Depends

from shopscan.api.deps import get_engine
from shopscan.core.engine import ShopScanEngine
from shopscan.core.trends import find_deals, rank_trending
from shopscan.schemas.trends import DealEntry, DealsRequest, TrendingProduct, TrendingRequest, TrendReport, TrendRequest

router = APIRouter(prefix="/v1", tags=["trends"])


@router.post("/trend", response_model=TrendReport)
def trend(body: TrendRequest, engine: ShopScanEngine = Depends(get_engine)):
    return engine.analyze_trend(body.history, window_days=body.days)


@router.post("/trending", response_model=List[TrendingProduct])
def trending(body: TrendingRequest):
    return rank_trending(body.histories, window_days=body.days, direction=body.direction, limit=body.limit)


@router.post("/deals", response_model=List[DealEntry])
def deals(body: DealsRequest):
    return find_deals(body.products, min_savings_percentage=body.min_savings, limit=body.limit)
