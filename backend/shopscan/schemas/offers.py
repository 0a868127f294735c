from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from shopscan.schemas.identify import clamp_score
from shopscan.schemas.products import CanonicalProduct


class RetailerListing(BaseModel):
    retailer_name: str
    title: str
    price: float = Field(gt=0)
    currency: str = "USD"
    url: Optional[str] = None
    image_url: Optional[str] = None


class MatchResult(BaseModel):
    listing: RetailerListing
    confidence: int
    accepted: bool

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> int:
        return clamp_score(v)


class ComparisonResult(BaseModel):
    matches: List[MatchResult]
    best_price: Optional[float] = None
    reference_price: Optional[float] = None
    savings: float = 0.0
    savings_percentage: int = 0
    searched_retailers: int = 0
    failed_retailers: List[str] = Field(default_factory=list)


class CompareRequest(BaseModel):
    product: CanonicalProduct
    retailers: Optional[List[str]] = None   # None -> every configured retailer
    max_results: Optional[int] = Field(default=None, ge=1, le=50)
    reference_price: Optional[float] = Field(default=None, gt=0)


class MatchRequest(BaseModel):
    product: CanonicalProduct
    listings: List[RetailerListing]
    max_results: Optional[int] = Field(default=None, ge=1, le=50)
    reference_price: Optional[float] = Field(default=None, gt=0)
