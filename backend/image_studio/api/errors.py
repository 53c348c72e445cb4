"""Conversion of StudioError into HTTP responses."""
import math
from typing import Optional

from fastapi import HTTPException

from image_studio.core.errors import ErrorKind, StudioError

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.validation: 422,
    ErrorKind.quota_exhausted: 429,
    ErrorKind.rate_limited: 429,
    ErrorKind.generation_failed: 502,
    ErrorKind.empty_result: 502,
    ErrorKind.invalid_response_format: 502,
    ErrorKind.timeout: 504,
    ErrorKind.transport_failure: 503,
    ErrorKind.not_found: 404,
}


def to_http_exception(exc: StudioError, retry_after: Optional[float] = None) -> HTTPException:
    """Map a StudioError to an HTTPException with a ``{kind, message}`` detail."""
    headers = None
    if retry_after is not None:
        headers = {"Retry-After": str(math.ceil(retry_after))}
    return HTTPException(
        status_code=STATUS_BY_KIND.get(exc.kind, 500),
        detail=exc.to_dict(),
        headers=headers,
    )
