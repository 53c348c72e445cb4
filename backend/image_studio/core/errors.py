"""Error taxonomy shared by the request builder, orchestrator, poller and API."""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """User-facing failure categories."""

    validation = "validation"
    quota_exhausted = "quota_exhausted"
    rate_limited = "rate_limited"
    generation_failed = "generation_failed"
    empty_result = "empty_result"
    transport_failure = "transport_failure"
    timeout = "timeout"
    invalid_response_format = "invalid_response_format"
    not_found = "not_found"


class StudioError(Exception):
    """Base class for every failure surfaced to callers.

    Attributes:
        kind: Category used by the API layer to choose a status code.
        message: Human-readable message safe to show to the user.
        detail: Raw provider text, when the provider returned any.
    """

    kind: ErrorKind = ErrorKind.transport_failure
    default_message = "The request to the image provider failed."

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> dict:
        payload: dict = {"kind": self.kind.value, "message": self.message}
        if self.detail:
            payload["detail"] = self.detail
        return payload


class InputValidationError(StudioError):
    """Required input missing; raised before any provider call."""

    kind = ErrorKind.validation
    default_message = "The request is missing a required input."


class QuotaExhaustedError(StudioError):
    """Account-level quota is used up. Callers should ask for other credentials."""

    kind = ErrorKind.quota_exhausted
    default_message = (
        "The provider quota for this API key is exhausted. "
        "Replace the API key or wait until the quota resets."
    )


class RateLimitedError(StudioError):
    """Transient provider throttle."""

    kind = ErrorKind.rate_limited
    default_message = "The provider is rate limiting requests. Please wait and try again."


class GenerationFailedError(StudioError):
    """The call succeeded but produced no usable output."""

    kind = ErrorKind.generation_failed
    default_message = (
        "The AI couldn't generate a valid result for this request. "
        "Please try adjusting your prompt or images."
    )


class EmptyResultError(GenerationFailedError):
    """A video job finished without any generated asset."""

    kind = ErrorKind.empty_result
    default_message = (
        "The video job finished without a result. "
        "The request may have been filtered by the provider's safety policy."
    )


class TransportFailureError(StudioError):
    """Network or HTTP-level failure."""

    kind = ErrorKind.transport_failure
    default_message = "Could not reach the image provider. Please try again later."


class JobTimeoutError(StudioError):
    """A video job did not finish within the polling ceiling."""

    kind = ErrorKind.timeout
    default_message = "The video job did not finish in time."


class InvalidResponseFormatError(StudioError):
    """A structured JSON response could not be parsed."""

    kind = ErrorKind.invalid_response_format
    default_message = "invalid suggestion format"


class PresetNotFoundError(StudioError):
    """No character preset with the requested id."""

    kind = ErrorKind.not_found
    default_message = "Character preset not found."
