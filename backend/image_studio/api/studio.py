"""Studio operations API router."""
import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from image_studio.api.errors import to_http_exception
from image_studio.core.errors import RateLimitedError, StudioError
from image_studio.models.studio import (
    QUALITY_BEARING,
    AnyOperationRequest,
    AnyOperationResult,
    OperationResult,
)
from image_studio.services.classifier import classify_error
from image_studio.services.cooldown import CooldownGate
from image_studio.services.preferences import PreferencesStore
from image_studio.services.studio import StudioService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/studio", tags=["studio"])


def get_studio_service(request: Request) -> StudioService:
    """FastAPI dependency: retrieve StudioService from app.state.

    Returns HTTP 503 if the service was not initialized at startup.
    """
    svc: StudioService | None = getattr(request.app.state, "studio_service", None)
    if svc is None:
        raise HTTPException(
            status_code=503,
            detail="Image provider unavailable. Service not initialized.",
        )
    return svc


def get_preferences(request: Request) -> PreferencesStore:
    prefs: PreferencesStore | None = getattr(request.app.state, "preferences", None)
    if prefs is None:
        raise HTTPException(status_code=503, detail="Preferences store not initialized.")
    return prefs


def get_cooldown_gate(request: Request) -> CooldownGate:
    gate: CooldownGate | None = getattr(request.app.state, "cooldown_gate", None)
    if gate is None:
        gate = CooldownGate()
        request.app.state.cooldown_gate = gate
    return gate


@router.post("/operations", response_model=AnyOperationResult)
async def run_operation(
    body: Annotated[AnyOperationRequest, Body(discriminator="kind")],
    service: StudioService = Depends(get_studio_service),
    preferences: PreferencesStore = Depends(get_preferences),
    cooldown: CooldownGate = Depends(get_cooldown_gate),
) -> OperationResult:
    """Run one generate / edit / swap / magic / analyze / video / suggest operation.

    Requests that omit ``quality`` use the persisted quality tier.

    Raises:
        HTTPException 429: Cooling down after a rate limit, or quota exhausted.
        HTTPException 422: Missing required input.
        HTTPException 502/503/504: Provider failure (see api.errors).
    """
    remaining = cooldown.remaining()
    if remaining > 0:
        raise to_http_exception(
            RateLimitedError(
                f"Too many requests. Please wait {remaining:.0f} seconds before trying again."
            ),
            retry_after=remaining,
        )

    if isinstance(body, QUALITY_BEARING) and body.quality is None:
        body = body.model_copy(update={"quality": preferences.get_quality()})

    try:
        return await service.run(body)
    except Exception as exc:
        error = exc if isinstance(exc, StudioError) else classify_error(exc)
        logger.error(
            "run_operation failed",
            exc_info=not isinstance(exc, StudioError),
            extra={
                "service": "StudioRouter",
                "error_type": type(exc).__name__,
                "error_kind": error.kind.value,
            },
        )
        if isinstance(error, RateLimitedError):
            cooldown.trigger()
            raise to_http_exception(error, retry_after=cooldown.window_seconds) from exc
        raise to_http_exception(error) from exc
