from functools import lru_cache

from fastapi import HTTPException, Request

from shopscan.core.config import settings
from shopscan.core.engine import ShopScanEngine
from shopscan.core.errors import (
    GeminiRateLimitError,
    GeminiRequestError,
    InvalidIdentifierError,
    NotFoundError,
    PreconditionViolation,
    RateLimitedError,
    ShopScanError,
)
from shopscan.core.rate_governor import DEFAULT_CALLER, build_rate_governor
from shopscan.core.scrapers import build_scrapers
from shopscan.core.sources import build_source_adapters


@lru_cache
def get_engine() -> ShopScanEngine:
    """One engine per process: the rate governor's counters live here."""
    return ShopScanEngine(
        adapters=build_source_adapters(settings),
        scrapers=build_scrapers(settings),
        governor=build_rate_governor(settings),
        cfg=settings,
    )


def get_caller_key(request: Request) -> str:
    return request.client.host if request.client else DEFAULT_CALLER


def http_error(e: ShopScanError) -> HTTPException:
    """Map engine errors to HTTP responses."""
    if isinstance(e, (RateLimitedError, GeminiRateLimitError)):
        # Return 429 (NOT 404), and include Retry-After when we have it.
        headers = {}
        if e.retry_after_seconds is not None:
            headers["Retry-After"] = str(e.retry_after_seconds)
        detail = {
            "error": "rate_limited",
            "message": e.message,
            "retry_after_seconds": e.retry_after_seconds,
        }
        return HTTPException(status_code=429, detail=detail, headers=headers)

    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail={"error": "not_found", "message": e.message})

    if isinstance(e, InvalidIdentifierError):
        return HTTPException(status_code=400, detail={"error": "invalid_identifier", "message": e.message})

    if isinstance(e, GeminiRequestError):
        # Non-429 Gemini errors become 422 (bad upstream / config / parse)
        return HTTPException(
            status_code=422,
            detail={"error": "gemini_error", "message": e.message, "status_code": e.status_code, "body": e.body},
        )

    if isinstance(e, PreconditionViolation):
        return HTTPException(status_code=422, detail={"error": "invalid_request", "message": e.message})

    return HTTPException(status_code=502, detail={"error": "upstream_error", "message": e.message})
