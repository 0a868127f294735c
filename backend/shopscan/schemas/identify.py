from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from shopscan.schemas.products import CanonicalProduct


def clamp_score(value: Any) -> int:
    """Confidence/score fields are integers clamped to [0, 100]."""
    return max(0, min(100, int(round(float(value)))))


class IdentifierFormat(str, Enum):
    EAN8 = "EAN8"
    UPC_A = "UPC_A"
    EAN13 = "EAN13"
    ALPHANUMERIC = "ALPHANUMERIC"
    UNKNOWN = "UNKNOWN"


class IdentifierCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    format: IdentifierFormat
    confidence: int

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> int:
        return clamp_score(v)


class IdentifiersRequest(BaseModel):
    text: str


class IdentifiersResponse(BaseModel):
    candidates: List[IdentifierCandidate]
    primary: Optional[IdentifierCandidate] = None


class ScanResponse(BaseModel):
    identifier: str
    confidence: int
    alternative_identifiers: List[IdentifierCandidate]
    product: Optional[CanonicalProduct] = None
    sources: int = 0
    raw_text: Optional[str] = None
