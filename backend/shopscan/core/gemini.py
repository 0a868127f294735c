import base64
import json
import os
from typing import Any, Dict, Optional

import httpx

from shopscan.core.config import settings
from shopscan.core.errors import GeminiRateLimitError, GeminiRequestError, NoTextDetectedError
from shopscan.core.http import get_with_retry, post_with_retry, redact_key, retry_after_seconds

# Service endpoint for Gemini API (v1beta)
API_BASE = "https://generativelanguage.googleapis.com/v1beta"

# Retry behavior for 429/503
MAX_RETRIES = int(os.environ.get("GEMINI_MAX_RETRIES", "3"))

OCR_PROMPT = (
    "You are an OCR engine for product packaging.\n"
    "Transcribe ALL visible text exactly as printed, including every barcode number "
    "and product code, preserving digits and uppercase letters.\n"
    "Return ONLY valid JSON matching the provided schema. No markdown. No extra text.\n"
)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("utf-8")


def _ocr_schema() -> Dict[str, Any]:
    """
    JSON Schema for Gemini Structured Output.
    """
    return {
        "type": "object",
        "properties": {"text": {"type": "string"}},
        "required": ["text"],
        "additionalProperties": False,
    }


def _raise_for_gemini(r: httpx.Response, what: str) -> None:
    if r.status_code < 400:
        return
    safe_body = redact_key(r.text)[:2000]
    if r.status_code == 429:
        raise GeminiRateLimitError(
            f"Gemini {what} rate limited",
            retry_after_seconds=retry_after_seconds(r),
            body=safe_body,
        )
    raise GeminiRequestError(f"Gemini {what} failed: {r.status_code}", status_code=r.status_code, body=safe_body)


async def _list_models(client: httpx.AsyncClient, api_key: str) -> Dict[str, Any]:
    """
    Calls GET /v1beta/models (ListModels).
    """
    r = await get_with_retry(client, f"{API_BASE}/models", params={"key": api_key}, max_retries=MAX_RETRIES)
    _raise_for_gemini(r, "ListModels")
    return r.json()


def _pick_model_from_list(models_payload: Dict[str, Any]) -> str:
    """
    Picks a model name (e.g. 'models/xxx') that supports generateContent.
    Flash models are preferred.
    """
    models = models_payload.get("models", []) or []

    def supports_generate(m: Dict[str, Any]) -> bool:
        methods = m.get("supportedGenerationMethods") or []
        return any(str(x).lower() == "generatecontent" for x in methods)

    candidates = [m for m in models if supports_generate(m)]
    if not candidates:
        raise GeminiRequestError("No models found that support generateContent (ListModels returned none)")

    flash = [m for m in candidates if "flash" in (m.get("name", "").lower())]
    chosen = (flash[0] if flash else candidates[0]).get("name")
    if not chosen:
        raise GeminiRequestError("ListModels returned a model entry without a name")
    return chosen


def _normalize_model(name: str) -> str:
    if not name:
        return ""
    return name if name.startswith("models/") else f"models/{name}"


async def _resolve_model_name(client: httpx.AsyncClient, api_key: str) -> str:
    """
    Use GEMINI_MODEL when configured, otherwise pick one from ListModels.
    """
    configured = _normalize_model((settings.GEMINI_MODEL or os.environ.get("GEMINI_MODEL", "")).strip())
    if configured:
        return configured
    return _pick_model_from_list(await _list_models(client, api_key))


def _extract_text(data: Dict[str, Any]) -> str:
    try:
        raw = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        raise GeminiRequestError(f"Unexpected Gemini response shape; raw={json.dumps(data)[:2000]}")

    try:
        obj = json.loads(raw)
    except ValueError:
        # Model ignored structured output; treat the whole reply as the transcription
        return str(raw)
    if isinstance(obj, dict):
        return str(obj.get("text") or "")
    return str(raw)


async def detect_text(
    image_bytes: bytes,
    mime_type: str = "image/png",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """
    Sends an image to Gemini and returns the transcribed text.

    - Uses Structured Output (response_mime_type + response_json_schema)
    - Auto-resolves a model via ListModels if GEMINI_MODEL is not set, and once more on 404
    - Retries 429/503 with backoff
    - Redacts API key from any raised errors

    Raises:
        NoTextDetectedError: image contained no readable text
        GeminiRateLimitError: still 429 after retries
        GeminiRequestError: any other upstream failure
    """
    api_key = (settings.GEMINI_API_KEY or "").strip()
    if not api_key:
        raise GeminiRequestError("GEMINI_API_KEY is not set")

    payload = {
        "contents": [
            {
                "role": "user",
                "parts": [
                    {"text": OCR_PROMPT},
                    {"inline_data": {"mime_type": mime_type, "data": _b64(image_bytes)}},
                ],
            }
        ],
        "generationConfig": {
            "response_mime_type": "application/json",
            "response_json_schema": _ocr_schema(),
            "temperature": 0,
        },
    }

    try:
        async with httpx.AsyncClient(timeout=60, transport=transport) as client:
            model_name = await _resolve_model_name(client, api_key)
            url = f"{API_BASE}/{model_name}:generateContent"
            r = await post_with_retry(client, url, params={"key": api_key}, json_payload=payload, max_retries=MAX_RETRIES)

            # Configured model may be retired; fall back to ListModels once
            if r.status_code == 404:
                model_name = _pick_model_from_list(await _list_models(client, api_key))
                url = f"{API_BASE}/{model_name}:generateContent"
                r = await post_with_retry(client, url, params={"key": api_key}, json_payload=payload, max_retries=MAX_RETRIES)

            _raise_for_gemini(r, "generateContent")
            data = r.json()
    except httpx.HTTPError as e:
        raise GeminiRequestError(f"Gemini request error: {redact_key(str(e))}") from e

    text = _extract_text(data).strip()
    if not text:
        raise NoTextDetectedError()
    return text
