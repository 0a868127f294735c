from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class Trend(str, Enum):
    INSUFFICIENT_DATA = "insufficient_data"
    STABLE = "stable"
    INCREASING = "increasing"
    DECREASING = "decreasing"


class TrendDirection(str, Enum):
    DECREASING = "decreasing"   # biggest drops first
    INCREASING = "increasing"   # biggest rises first


class PriceHistoryEntry(BaseModel):
    price: float = Field(gt=0)
    observed_at: datetime
    source: str = "manual"


class TrendReport(BaseModel):
    trend: Trend
    change_percentage: Optional[float] = None
    lowest_price: Optional[float] = None
    highest_price: Optional[float] = None
    average_price: Optional[float] = None
    points: int = 0


class TrendingProduct(BaseModel):
    product_id: str
    first_price: float
    last_price: float
    price_change: float              # fraction, e.g. -0.2
    price_change_percentage: int     # rounded, e.g. -20


class DealMetrics(BaseModel):
    current_price: float
    original_price: float
    savings_amount: float
    savings_percentage: int


class PricedProduct(BaseModel):
    product_id: str
    current_price: float = Field(gt=0)
    original_price: Optional[float] = None


class DealEntry(BaseModel):
    product_id: str
    metrics: DealMetrics


class TrendRequest(BaseModel):
    history: List[PriceHistoryEntry]
    days: int = Field(default=30, ge=1)


class TrendingRequest(BaseModel):
    histories: Dict[str, List[PriceHistoryEntry]]
    direction: TrendDirection = TrendDirection.DECREASING
    days: int = Field(default=7, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


class DealsRequest(BaseModel):
    products: List[PricedProduct]
    min_savings: float = Field(default=10, ge=0)
    limit: int = Field(default=20, ge=1, le=100)
