"""Preferences API router: quality tier, API key override and character presets."""
import logging

from fastapi import APIRouter, Depends, Request, Response

from image_studio.api.errors import to_http_exception
from image_studio.api.studio import get_preferences
from image_studio.core.config import get_settings
from image_studio.core.errors import PresetNotFoundError
from image_studio.models.studio import (
    ApiKeySetting,
    CharacterPreset,
    PresetCreate,
    PresetUpdate,
    QualitySetting,
)
from image_studio.services.preferences import PreferencesStore
from image_studio.services.provider import provider_from_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["preferences"])


def _refresh_provider(request: Request, preferences: PreferencesStore) -> None:
    """Rebuild the provider client with the current credential override."""
    service = getattr(request.app.state, "studio_service", None)
    if service is None:
        return
    service.replace_provider(provider_from_settings(get_settings(), preferences.get_api_key()))


@router.get("/settings/quality", response_model=QualitySetting)
async def get_quality(preferences: PreferencesStore = Depends(get_preferences)) -> QualitySetting:
    return QualitySetting(quality=preferences.get_quality())


@router.put("/settings/quality", response_model=QualitySetting)
async def set_quality(
    body: QualitySetting,
    preferences: PreferencesStore = Depends(get_preferences),
) -> QualitySetting:
    preferences.set_quality(body.quality)
    logger.info("Quality tier set to %s", body.quality.value)
    return QualitySetting(quality=preferences.get_quality())


@router.put("/settings/api-key", status_code=204)
async def set_api_key(
    body: ApiKeySetting,
    request: Request,
    preferences: PreferencesStore = Depends(get_preferences),
) -> Response:
    """Save a user-supplied API key, replacing the configured one.

    Used when the provider reports the quota of the current key is exhausted.
    """
    preferences.set_api_key(body.api_key)
    _refresh_provider(request, preferences)
    return Response(status_code=204)


@router.delete("/settings/api-key", status_code=204)
async def clear_api_key(
    request: Request,
    preferences: PreferencesStore = Depends(get_preferences),
) -> Response:
    preferences.clear_api_key()
    _refresh_provider(request, preferences)
    return Response(status_code=204)


@router.get("/presets", response_model=list[CharacterPreset])
async def list_presets(
    preferences: PreferencesStore = Depends(get_preferences),
) -> list[CharacterPreset]:
    return preferences.list_presets()


@router.post("/presets", response_model=CharacterPreset, status_code=201)
async def create_preset(
    body: PresetCreate,
    preferences: PreferencesStore = Depends(get_preferences),
) -> CharacterPreset:
    return preferences.add_preset(body)


@router.get("/presets/{preset_id}", response_model=CharacterPreset)
async def get_preset(
    preset_id: str,
    preferences: PreferencesStore = Depends(get_preferences),
) -> CharacterPreset:
    try:
        return preferences.get_preset(preset_id)
    except PresetNotFoundError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/presets/{preset_id}", response_model=CharacterPreset)
async def update_preset(
    preset_id: str,
    body: PresetUpdate,
    preferences: PreferencesStore = Depends(get_preferences),
) -> CharacterPreset:
    try:
        return preferences.update_preset(preset_id, body)
    except PresetNotFoundError as exc:
        raise to_http_exception(exc) from exc


@router.delete("/presets/{preset_id}", status_code=204)
async def delete_preset(
    preset_id: str,
    preferences: PreferencesStore = Depends(get_preferences),
) -> Response:
    try:
        preferences.remove_preset(preset_id)
    except PresetNotFoundError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=204)
