from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from shopscan.api.deps import get_caller_key, get_engine, http_error
from shopscan.core.engine import ShopScanEngine
from shopscan.core.errors import ShopScanError
from shopscan.schemas.identify import IdentifiersRequest, IdentifiersResponse, ScanResponse
from shopscan.schemas.products import LookupResponse

router = APIRouter(prefix="/v1", tags=["identify"])


@router.post("/scan", response_model=ScanResponse)
async def scan(
    image: UploadFile = File(...),
    engine: ShopScanEngine = Depends(get_engine),
    caller_key: str = Depends(get_caller_key),
):
    """
    Photo of a barcode -> OCR -> candidate codes -> merged product lookup.
    product is null when the code was read but no database knows it.
    """
    img_bytes = await image.read()
    if not img_bytes:
        raise HTTPException(status_code=400, detail={"error": "empty_image", "message": "Image is required"})

    try:
        return await engine.scan_image(img_bytes, mime_type=image.content_type or "image/png", caller_key=caller_key)
    except ShopScanError as e:
        raise http_error(e)


@router.post("/identifiers", response_model=IdentifiersResponse)
def identifiers(
    body: IdentifiersRequest,
    engine: ShopScanEngine = Depends(get_engine),
):
    # No candidates is a normal, empty result
    candidates = engine.extract_identifiers(body.text)
    return IdentifiersResponse(candidates=candidates, primary=candidates[0] if candidates else None)


@router.get("/lookup/{code}", response_model=LookupResponse)
async def lookup(
    code: str,
    engine: ShopScanEngine = Depends(get_engine),
    caller_key: str = Depends(get_caller_key),
):
    try:
        identifier = engine.normalize_identifier(code)
        product = await engine.resolve_product(identifier, caller_key=caller_key)
    except ShopScanError as e:
        raise http_error(e)

    return LookupResponse(identifier=identifier, product=product, sources=len(product.contributing_sources))
