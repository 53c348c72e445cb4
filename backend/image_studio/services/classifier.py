"""Error classifier: maps raw provider failures to user-facing categories.

Structured fields on ``google.genai.errors.APIError`` (``status``/``code``)
decide the category whenever present. Substring matching on the message
applies only to errors without them. Provider text is human-readable and may
be localized, so it is fragile.
"""
from typing import Optional

from image_studio.core.errors import (
    QuotaExhaustedError,
    RateLimitedError,
    StudioError,
    TransportFailureError,
)

RESOURCE_EXHAUSTED_STATUS = "RESOURCE_EXHAUSTED"
TOO_MANY_REQUESTS = 429

QUOTA_PHRASES = ("resource_exhausted", "resource exhausted", "quota")
RATE_LIMIT_PHRASES = ("rate limit", "rate-limit", "ratelimit", "too many requests", "try again later")


def _status_of(exc: BaseException) -> Optional[str]:
    status = getattr(exc, "status", None)
    return status.upper() if isinstance(status, str) else None


def _code_of(exc: BaseException) -> Optional[int]:
    code = getattr(exc, "code", None)
    if isinstance(code, int):
        return code
    # httpx.HTTPStatusError carries the status on its response.
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    return status_code if isinstance(status_code, int) else None


def _message_of(exc: BaseException) -> str:
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc)


def classify_error(exc: BaseException) -> StudioError:
    """Return the StudioError that best describes ``exc``.

    StudioErrors pass through unchanged. The raw provider text is kept on the
    returned error's ``detail``.
    """
    if isinstance(exc, StudioError):
        return exc

    raw = _message_of(exc)
    status = _status_of(exc)
    code = _code_of(exc)

    if status is not None or code is not None:
        # Structured fields decide; the message text is not consulted.
        if status == RESOURCE_EXHAUSTED_STATUS:
            return QuotaExhaustedError(detail=raw)
        if code == TOO_MANY_REQUESTS:
            return RateLimitedError(detail=raw)
        return TransportFailureError(detail=raw or type(exc).__name__)

    lowered = raw.lower()
    if any(phrase in lowered for phrase in QUOTA_PHRASES):
        return QuotaExhaustedError(detail=raw)
    if any(phrase in lowered for phrase in RATE_LIMIT_PHRASES):
        return RateLimitedError(detail=raw)

    return TransportFailureError(detail=raw or type(exc).__name__)
