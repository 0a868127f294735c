from typing import Optional


class ShopScanError(Exception):
    """Base class for every error raised by the engine."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ShopScanError):
    """Recoverable: nothing recognized / nothing found. Maps to 404."""


class ProductNotFoundError(NotFoundError):
    def __init__(self, identifier: str, message: Optional[str] = None):
        super().__init__(message or f"Product not found in any database: {identifier}")
        self.identifier = identifier


class NoTextDetectedError(NotFoundError):
    def __init__(self, message: str = "No text detected in image"):
        super().__init__(message)


class RateLimitedError(ShopScanError):
    """
    Recoverable: the caller should try again later.
    Not a NotFoundError: "try again later" and "does not exist" stay distinct.
    """

    def __init__(
        self,
        capability: str,
        caller_key: str,
        retry_after_seconds: Optional[int] = None,
    ):
        super().__init__(f"Rate limit exceeded for '{capability}'. Please try again later.")
        self.capability = capability
        self.caller_key = caller_key
        self.retry_after_seconds = retry_after_seconds


class PreconditionViolation(ShopScanError, ValueError):
    """Programming error in the caller (e.g. merging zero records)."""


class SourceError(ShopScanError):
    """A single upstream source/scraper failed. Absorbed by fan-out."""

    def __init__(self, source: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.status_code = status_code


class GeminiRequestError(ShopScanError):
    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class GeminiRateLimitError(GeminiRequestError):
    def __init__(self, message: str, retry_after_seconds: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message, status_code=429, body=body)
        self.retry_after_seconds = retry_after_seconds


class InvalidIdentifierError(ShopScanError, ValueError):
    """Caller submitted something that is not a plausible product code. Maps to 400."""

    def __init__(self, identifier: str):
        super().__init__(f"Invalid barcode format: {identifier!r}")
        self.identifier = identifier
