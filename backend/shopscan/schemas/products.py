from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageRef(BaseModel):
    url: str
    is_primary: bool = False


class ProductIdentifier(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str   # e.g. "upc", "ean", "barcode"
    value: str


class SuggestedPrice(BaseModel):
    current: float
    currency: str = "USD"
    store: Optional[str] = None


class SourceRecord(BaseModel):
    """
    Raw, partially-populated description from ONE external product database.
    Every field except source_tag may be missing.
    """
    source_tag: str
    name: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    images: List[ImageRef] = Field(default_factory=list)
    identifiers: List[ProductIdentifier] = Field(default_factory=list)
    suggested_price: Optional[SuggestedPrice] = None

    def is_empty(self) -> bool:
        return not any(
            (
                (self.name or "").strip(),
                (self.brand or "").strip(),
                (self.category or "").strip(),
                (self.description or "").strip(),
                self.images,
                self.identifiers,
                self.suggested_price is not None,
            )
        )


class CanonicalProduct(BaseModel):
    name: str = ""
    brand: str = ""
    category: str = ""
    description: str = ""
    images: List[ImageRef] = Field(default_factory=list)
    identifiers: List[ProductIdentifier] = Field(default_factory=list)
    suggested_price: Optional[SuggestedPrice] = None
    contributing_sources: List[str] = Field(default_factory=list)


class LookupResponse(BaseModel):
    identifier: str
    product: CanonicalProduct
    sources: int
