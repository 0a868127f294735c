import asyncio
import random
import re
from typing import Any, Dict, Optional

import httpx

from shopscan.core.config import settings

RETRY_STATUS_CODES = (429, 503)

BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


def redact_key(s: str) -> str:
    """
    Redact 'key=...' / 'api_key=...' in URLs or text so we never leak API keys in logs/responses.
    """
    if not s:
        return s
    return re.sub(r"((?:api_)?key=)([^&\s]+)", r"\1REDACTED", s)


def retry_after_seconds(resp: httpx.Response) -> Optional[int]:
    value = resp.headers.get("retry-after")
    if not value:
        return None
    try:
        return max(0, int(float(value)))
    except (ValueError, OverflowError):
        return None


async def sleep_for_retry(resp: httpx.Response, attempt: int, max_backoff: Optional[float] = None) -> None:
    """
    Respect Retry-After header when present; otherwise exponential backoff with jitter.
    """
    cap = settings.HTTP_MAX_BACKOFF_SECONDS if max_backoff is None else max_backoff

    wait = retry_after_seconds(resp)
    if wait is not None:
        await asyncio.sleep(max(0.5, min(float(wait), cap)))
        return

    base = min(cap, (2 ** attempt))
    jitter = random.uniform(0.0, 0.5)
    await asyncio.sleep(base + jitter)


async def get_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    max_retries: Optional[int] = None,
) -> httpx.Response:
    """
    GET with retries for 429/503.
    """
    retries = settings.HTTP_MAX_RETRIES if max_retries is None else max_retries
    resp: Optional[httpx.Response] = None

    for attempt in range(retries + 1):
        resp = await client.get(url, params=params, headers=headers)
        if resp.status_code in RETRY_STATUS_CODES and attempt < retries:
            await sleep_for_retry(resp, attempt)
            continue
        return resp

    return resp  # type: ignore[return-value]


async def post_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Dict[str, Any],
    json_payload: Dict[str, Any],
    max_retries: Optional[int] = None,
) -> httpx.Response:
    """
    POST with retries for 429/503.
    """
    retries = settings.HTTP_MAX_RETRIES if max_retries is None else max_retries
    resp: Optional[httpx.Response] = None

    for attempt in range(retries + 1):
        resp = await client.post(url, params=params, json=json_payload)
        if resp.status_code in RETRY_STATUS_CODES and attempt < retries:
            await sleep_for_retry(resp, attempt)
            continue
        return resp

    return resp  # type: ignore[return-value]
