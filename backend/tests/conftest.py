"""Shared test fixtures and configuration."""
import base64
from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from image_studio.models.studio import ImageData
from image_studio.services.provider import InlineImage

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR-fake-png"
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00\x10JFIF-fake-jpeg"


def b64(payload: bytes) -> str:
    return base64.b64encode(payload).decode("ascii")


def make_png(tag: bytes = b"") -> ImageData:
    return ImageData(base64=b64(PNG_BYTES + tag), mime_type="image/png")


def make_jpeg(tag: bytes = b"") -> ImageData:
    return ImageData(base64=b64(JPEG_BYTES + tag), mime_type="image/jpeg")


def make_operation(done: Optional[bool] = False, videos: Optional[list] = None, error: Any = None) -> SimpleNamespace:
    """Stand-in for google.genai GenerateVideosOperation."""
    response = None
    if done:
        response = SimpleNamespace(generated_videos=videos if videos is not None else [])
    return SimpleNamespace(name="operations/test-op", done=done, error=error, response=response)


def make_video(uri: str = "https://example.com/video.mp4", video_bytes: Optional[bytes] = None) -> SimpleNamespace:
    return SimpleNamespace(video=SimpleNamespace(uri=uri, video_bytes=video_bytes, mime_type="video/mp4"))


@pytest.fixture(autouse=True)
def set_required_env_vars(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory) -> None:
    """Point credentials and local storage at test values for all tests."""
    data_dir = tmp_path_factory.getbasetemp() / "data"
    monkeypatch.setenv("GEMINI_API_KEY", "test-api-key")
    monkeypatch.setenv("PREFERENCES_PATH", str(data_dir / "preferences.json"))
    monkeypatch.setenv("VIDEOS_DIR", str(data_dir / "videos"))


@pytest.fixture
def png_image() -> ImageData:
    return make_png()


@pytest.fixture
def jpeg_image() -> ImageData:
    return make_jpeg()


@pytest.fixture
def fake_provider() -> MagicMock:
    """Provider double with every call shape as an AsyncMock."""
    provider = MagicMock()
    provider.api_key = "test-api-key"
    provider.use_vertex_ai = False
    provider.generate_images = AsyncMock(return_value=[b64(JPEG_BYTES)])
    provider.generate_image = AsyncMock(return_value=InlineImage(b64(PNG_BYTES), "image/png"))
    provider.generate_text = AsyncMock(return_value="a detailed prompt")
    provider.generate_json = AsyncMock(return_value='{"suggestions": ["a", "b", "c"]}')
    provider.submit_video = AsyncMock(return_value=make_operation(done=False))
    provider.refresh_video = AsyncMock(return_value=make_operation(done=True, videos=[make_video()]))
    provider.download_video = AsyncMock(return_value=b"mp4-bytes")
    return provider


class FakeClock:
    """Records sleeps instead of waiting; also serves as a monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
