"""
SerpApi Google Shopping client. Returns the raw shopping_results entries;
turning them into RetailerListings is the scraper's job.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from shopscan.core.config import settings
from shopscan.core.errors import SourceError
from shopscan.core.http import get_with_retry, redact_key

logger = logging.getLogger(__name__)

SERPAPI_BASE = "https://serpapi.com/search.json"
SOURCE = "serpapi"
MAX_NUM = 100


def _api_key(explicit: Optional[str]) -> str:
    key = (explicit or settings.SERPAPI_API_KEY or "").strip()
    if not key:
        raise SourceError(SOURCE, "SERPAPI_API_KEY is not set")
    return key


def build_params(q: str, api_key: str, gl: str = "us", hl: str = "en", num: int = 20) -> Dict[str, Any]:
    return {
        "engine": "google_shopping",
        "q": q,
        "api_key": api_key,
        "gl": gl,
        "hl": hl,
        "num": max(1, min(int(num), MAX_NUM)),
    }


async def shopping_search(
    q: str,
    gl: str = "us",
    hl: str = "en",
    num: int = 20,
    timeout: float = 10.0,
    api_key: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[Dict[str, Any]]:
    """
    Google Shopping results for q.

    Raises:
        SourceError: missing key, HTTP error status or an error payload
        httpx.HTTPError: transport failure (callers wrap it)
    """
    params = build_params(q, _api_key(api_key), gl=gl, hl=hl, num=num)

    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        r = await get_with_retry(client, SERPAPI_BASE, params=params)

    if r.status_code >= 400:
        raise SourceError(SOURCE, f"HTTP {r.status_code}: {redact_key(r.text)[:500]}", r.status_code)
    try:
        data = r.json()
    except ValueError as e:
        raise SourceError(SOURCE, f"unparseable response: {e}") from e

    if isinstance(data, dict) and data.get("error"):
        raise SourceError(SOURCE, f"error payload: {data['error']}")

    results = data.get("shopping_results") or []
    logger.debug("SerpApi returned %d shopping results for %r", len(results), q)
    return results
