"""Tests for configuration management."""
import pytest


def test_settings_loads_credentials_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Settings should load GEMINI_API_KEY and Vertex AI settings from env."""
    monkeypatch.setenv("GEMINI_API_KEY", "my-key")
    monkeypatch.setenv("USE_VERTEX_AI", "true")
    monkeypatch.setenv("GCP_PROJECT_ID", "my-project")
    monkeypatch.setenv("VERTEX_AI_LOCATION", "europe-west4")

    from image_studio.core.config import Settings
    settings = Settings(_env_file=None)

    assert settings.gemini_api_key == "my-key"
    assert settings.use_vertex_ai is True
    assert settings.gcp_project_id == "my-project"
    assert settings.vertex_ai_location == "europe-west4"


def test_settings_has_default_values() -> None:
    """Settings should provide sensible defaults for optional fields."""
    from image_studio.core.config import Settings
    settings = Settings(_env_file=None)

    assert settings.app_name == "image-studio"
    assert settings.backend_port == 8000
    assert settings.frontend_port == 3000
    assert settings.backend_host == "localhost"
    assert settings.use_vertex_ai is False


def test_settings_rate_limit_defaults() -> None:
    """Variation delay, poll interval/ceiling and cooldown use the fixed defaults."""
    from image_studio.core.config import Settings
    settings = Settings(_env_file=None)

    assert settings.variation_delay_seconds == 30
    assert settings.poll_interval_seconds == 10
    assert settings.max_poll_attempts == 30
    assert settings.rate_limit_cooldown_seconds == 60


def test_settings_model_defaults() -> None:
    from image_studio.core.config import Settings
    settings = Settings(_env_file=None)

    assert settings.image_generation_model == "imagen-4.0-generate-001"
    assert settings.image_edit_model == "gemini-2.5-flash-image-preview"
    assert settings.text_model == "gemini-2.5-flash"
    assert settings.video_model.startswith("veo-")


def test_settings_rejects_invalid_port(monkeypatch: pytest.MonkeyPatch) -> None:
    """A non-numeric port is a configuration error."""
    monkeypatch.setenv("BACKEND_PORT", "not-a-port")

    from pydantic import ValidationError
    from image_studio.core.config import Settings

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_get_settings_is_cached() -> None:
    from image_studio.core.config import get_settings
    assert get_settings() is get_settings()
