"""Session preferences: quality tier, character presets and API key override.

Persistence goes through a small key-value interface so callers never touch
the storage mechanism. Every write replaces the stored value (last write wins).
"""
import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Any, Optional, Protocol

from pydantic import TypeAdapter, ValidationError

from image_studio.core.errors import PresetNotFoundError
from image_studio.models.studio import CharacterPreset, OutputQuality, PresetCreate, PresetUpdate

logger = logging.getLogger(__name__)

QUALITY_KEY = "ai-output-quality"
PRESETS_KEY = "ai-character-presets"
API_KEY_KEY = "ai-api-key"

_PRESET_LIST = TypeAdapter(list[CharacterPreset])


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def put(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store, used when no file is configured."""

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def put(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Key-value store backed by one JSON file.

    The file is loaded once at construction; every write rewrites the whole
    file. A missing or unreadable file starts an empty store.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.error(
                "Failed to load preferences from %s: %s",
                self.path,
                exc,
                extra={"service": "JsonFileStore", "error_type": type(exc).__name__},
            )
            return {}
        if not isinstance(data, dict):
            logger.error("Preferences file %s is not a JSON object; ignoring it", self.path)
            return {}
        return data

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self._data, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(self.path)

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._flush()

    def delete(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()


class PreferencesStore:
    """Typed access to the persisted preferences."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    # --- quality tier ---

    def get_quality(self) -> OutputQuality:
        """Return the saved tier, or standard when unset or unrecognised."""
        raw = self.store.get(QUALITY_KEY)
        try:
            return OutputQuality(raw) if raw is not None else OutputQuality.standard
        except ValueError:
            logger.warning("Ignoring unknown stored quality tier: %r", raw)
            return OutputQuality.standard

    def set_quality(self, quality: OutputQuality) -> None:
        self.store.put(QUALITY_KEY, OutputQuality(quality).value)

    # --- character presets ---

    def list_presets(self) -> list[CharacterPreset]:
        raw = self.store.get(PRESETS_KEY)
        if raw is None:
            return []
        try:
            return _PRESET_LIST.validate_python(raw)
        except ValidationError as exc:
            logger.error(
                "Stored character presets are corrupt; clearing them",
                extra={"service": "PreferencesStore", "error_type": type(exc).__name__},
            )
            self.store.delete(PRESETS_KEY)
            return []

    def _save_presets(self, presets: list[CharacterPreset]) -> None:
        self.store.put(PRESETS_KEY, _PRESET_LIST.dump_python(presets, mode="json", by_alias=True))

    def get_preset(self, preset_id: str) -> CharacterPreset:
        for preset in self.list_presets():
            if preset.id == preset_id:
                return preset
        raise PresetNotFoundError(detail=preset_id)

    def add_preset(self, data: PresetCreate) -> CharacterPreset:
        presets = self.list_presets()
        existing = {p.id for p in presets}
        preset_id = f"preset_{uuid.uuid4().hex}"
        while preset_id in existing:
            preset_id = f"preset_{uuid.uuid4().hex}"
        preset = CharacterPreset(
            id=preset_id, name=data.name, images=data.images, prompt=data.prompt
        )
        self._save_presets([*presets, preset])
        logger.info("Saved character preset %s (%s)", preset.id, preset.name)
        return preset

    def update_preset(self, preset_id: str, changes: PresetUpdate) -> CharacterPreset:
        presets = self.list_presets()
        for index, preset in enumerate(presets):
            if preset.id == preset_id:
                updated = CharacterPreset.model_validate(
                    {**preset.model_dump(), **changes.model_dump(exclude_none=True)}
                )
                presets[index] = updated
                self._save_presets(presets)
                return updated
        raise PresetNotFoundError(detail=preset_id)

    def remove_preset(self, preset_id: str) -> None:
        presets = self.list_presets()
        remaining = [p for p in presets if p.id != preset_id]
        if len(remaining) == len(presets):
            raise PresetNotFoundError(detail=preset_id)
        self._save_presets(remaining)
        logger.info("Removed character preset %s", preset_id)

    # --- API key override ---

    def get_api_key(self) -> Optional[str]:
        value = self.store.get(API_KEY_KEY)
        return value if isinstance(value, str) and value else None

    def set_api_key(self, api_key: str) -> None:
        self.store.put(API_KEY_KEY, api_key.strip())

    def clear_api_key(self) -> None:
        self.store.delete(API_KEY_KEY)
