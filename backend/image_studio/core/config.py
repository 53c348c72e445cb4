"""Configuration management using pydantic-settings."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Provider credentials. Either an API key or Vertex AI project/location.
    gemini_api_key: str = ""
    use_vertex_ai: bool = False
    gcp_project_id: str = ""
    vertex_ai_location: str = "us-central1"

    # Model identifiers per call shape
    image_generation_model: str = "imagen-4.0-generate-001"
    image_edit_model: str = "gemini-2.5-flash-image-preview"
    text_model: str = "gemini-2.5-flash"
    video_model: str = "veo-2.0-generate-001"

    # Rate-limit spacing and video polling
    variation_delay_seconds: float = 30.0
    poll_interval_seconds: float = 10.0
    max_poll_attempts: int = 30
    rate_limit_cooldown_seconds: float = 60.0

    # Local storage
    preferences_path: str = "data/preferences.json"
    videos_dir: str = "data/videos"

    # Application settings
    app_name: str = "image-studio"

    # Server settings
    backend_host: str = "localhost"
    backend_port: int = 8000
    frontend_port: int = 3000


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
