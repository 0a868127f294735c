"""
Barcode / product-code extraction from noisy OCR text.

Patterns are scanned in priority order:
  1) 12-14 contiguous digits (UPC-A / EAN-13 / GTIN-14)
  2) exactly 8 digits (EAN-8)
  3) 6+ uppercase alphanumerics (generic codes)
"""

import re
from typing import List, Optional

from shopscan.schemas.identify import IdentifierCandidate, IdentifierFormat

BARCODE_PATTERNS = [
    re.compile(r"\b\d{12,14}\b", re.ASCII),
    re.compile(r"\b\d{8}\b", re.ASCII),
    re.compile(r"\b[0-9A-Z]{6,}\b", re.ASCII),
]

VALID_IDENTIFIER_PATTERNS = [
    re.compile(r"^\d{8}$", re.ASCII),        # EAN-8
    re.compile(r"^\d{12}$", re.ASCII),       # UPC-A
    re.compile(r"^\d{13}$", re.ASCII),       # EAN-13
    re.compile(r"^[0-9A-Z]{6,}$"), # General alphanumeric
]

_ALPHANUMERIC_CODE = re.compile(r"^[0-9A-Z]{6,}$")
_ALPHANUMERIC = re.compile(r"^[0-9A-Z]+$")
_DIGITS = re.compile(r"[0-9]+")


def is_ascii_digits(code: str) -> bool:
    """0-9 only; str.isdigit() also accepts full-width and other Unicode digits."""
    return bool(_DIGITS.fullmatch(code))


def validate_checksum(code: str) -> bool:
    """
    Modulo-10 check: the last digit is the check digit, the remaining digits
    are weighted 1, 3, 1, 3, ... from the leftmost one.
    check = (10 - sum % 10) % 10
    """
    if not code or not is_ascii_digits(code) or len(code) < 2:
        return False

    digits = [int(c) for c in code]
    check_digit = digits.pop()

    total = 0
    for i, d in enumerate(digits):
        total += d * (1 if i % 2 == 0 else 3)

    return (10 - (total % 10)) % 10 == check_digit


def calculate_confidence(code: Optional[str]) -> int:
    if not code:
        return 0

    confidence = 0
    n = len(code)

    # Length-based
    if n in (12, 13):
        confidence += 40
    elif n == 8:
        confidence += 35
    elif n >= 6:
        confidence += 20

    # Character class
    if is_ascii_digits(code):
        confidence += 30
    elif _ALPHANUMERIC.match(code):
        confidence += 20

    if n in (12, 13) and validate_checksum(code):
        confidence += 30

    return min(confidence, 100)


def classify_format(code: str) -> IdentifierFormat:
    n = len(code)
    if n == 8:
        return IdentifierFormat.EAN8
    if n == 12:
        return IdentifierFormat.UPC_A
    if n == 13:
        return IdentifierFormat.EAN13
    if _ALPHANUMERIC_CODE.match(code):
        return IdentifierFormat.ALPHANUMERIC
    return IdentifierFormat.UNKNOWN


def normalize_identifier(code: Optional[str]) -> str:
    """Remove whitespace and uppercase."""
    if not code:
        return ""
    return re.sub(r"\s", "", str(code)).upper()


def is_valid_identifier(code: Optional[str]) -> bool:
    """Pure format predicate; independent of confidence scoring."""
    if not code or not isinstance(code, str):
        return False
    cleaned = normalize_identifier(code)
    return any(p.match(cleaned) for p in VALID_IDENTIFIER_PATTERNS)


def extract_identifiers(text: Optional[str]) -> List[IdentifierCandidate]:
    """
    Returns candidates sorted by descending length, then descending confidence.
    Zero matches is a normal outcome: returns [].
    """
    if not text:
        return []

    found: List[str] = []
    seen = set()
    for pattern in BARCODE_PATTERNS:
        for m in pattern.findall(text):
            if m not in seen:
                seen.add(m)
                found.append(m)

    candidates = [
        IdentifierCandidate(
            value=code,
            format=classify_format(code),
            confidence=calculate_confidence(code),
        )
        for code in found
    ]
    candidates.sort(key=lambda c: (-len(c.value), -c.confidence))
    return candidates
