"""Tests for GeminiProvider and response parsing helpers."""
import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from google.genai import types

from conftest import JPEG_BYTES, PNG_BYTES, make_png
from image_studio.core.config import Settings
from image_studio.core.errors import (
    GenerationFailedError,
    InvalidResponseFormatError,
    TransportFailureError,
)
from image_studio.models.provider import CallShape, ImageSegment, ProviderCall, TextSegment
from image_studio.models.studio import AspectRatio
from image_studio.services import provider as provider_module
from image_studio.services.provider import (
    GeminiProvider,
    extract_image,
    parse_suggestions,
    provider_from_settings,
)


def _content_response(*parts: types.Part) -> types.GenerateContentResponse:
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=types.Content(role="model", parts=list(parts)))]
    )


def _image_part(data: bytes = PNG_BYTES, mime_type: str = "image/png") -> types.Part:
    return types.Part(inline_data=types.Blob(data=data, mime_type=mime_type))


@pytest.fixture
def provider() -> GeminiProvider:
    gemini = GeminiProvider(api_key="test-api-key")
    gemini._client = MagicMock()
    return gemini


class TestParseSuggestions:
    def test_plain_json(self) -> None:
        assert parse_suggestions('{"suggestions": ["a", "b", "c"]}') == ["a", "b", "c"]

    def test_fenced_block(self) -> None:
        """JSON wrapped in a fenced code block is accepted."""
        text = '```json\n{"suggestions": ["one", "two", "three"]}\n```'
        assert parse_suggestions(text) == ["one", "two", "three"]

    def test_bare_fence(self) -> None:
        assert parse_suggestions('```\n{"suggestions": ["x"]}\n```') == ["x"]

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "not json at all",
            '{"ideas": ["a"]}',
            '{"suggestions": "a"}',
            '{"suggestions": [1, 2]}',
            '["a", "b"]',
        ],
    )
    def test_malformed_raises_invalid_format(self, text: str) -> None:
        """Anything but a list of strings under "suggestions" is rejected."""
        with pytest.raises(InvalidResponseFormatError):
            parse_suggestions(text)


class TestExtractImage:
    def test_returns_first_inline_image(self) -> None:
        """The first inline image is returned with its mime type."""
        response = _content_response(
            types.Part(text="Here you go"), _image_part(PNG_BYTES), _image_part(JPEG_BYTES)
        )
        image = extract_image(response)
        assert base64.b64decode(image.data) == PNG_BYTES
        assert image.mime_type == "image/png"

    def test_keeps_provider_mime_type(self) -> None:
        """The mime type reported by the provider is kept."""
        response = _content_response(_image_part(JPEG_BYTES, mime_type="image/jpeg"))
        image = extract_image(response)
        assert base64.b64decode(image.data) == JPEG_BYTES
        assert image.mime_type == "image/jpeg"

    def test_text_only_reply_is_generation_failure_with_text(self) -> None:
        """A text-only reply fails generation and keeps the text as detail."""
        response = _content_response(types.Part(text="I can't generate that image."))
        with pytest.raises(GenerationFailedError) as exc_info:
            extract_image(response)
        assert exc_info.value.detail == "I can't generate that image."

    def test_blocked_prompt_reports_reason(self) -> None:
        """A blocked prompt reports the block reason."""
        response = types.GenerateContentResponse(
            candidates=[],
            prompt_feedback=types.GenerateContentResponsePromptFeedback(
                block_reason=types.BlockedReason.SAFETY
            ),
        )
        with pytest.raises(GenerationFailedError) as exc_info:
            extract_image(response)
        assert "SAFETY" in exc_info.value.detail

    def test_no_candidates_without_reason(self) -> None:
        with pytest.raises(GenerationFailedError) as exc_info:
            extract_image(types.GenerateContentResponse(candidates=[]))
        assert exc_info.value.detail is None


class TestGeminiProviderCalls:
    async def test_generate_images(self, provider: GeminiProvider) -> None:
        """Image generation passes count and ratio and decodes every image."""
        provider._client.aio.models.generate_images = AsyncMock(
            return_value=types.GenerateImagesResponse(
                generated_images=[
                    types.GeneratedImage(image=types.Image(image_bytes=JPEG_BYTES)),
                    types.GeneratedImage(image=types.Image(image_bytes=JPEG_BYTES + b"2")),
                ]
            )
        )
        call = ProviderCall(
            shape=CallShape.image_generation,
            model="gen-model",
            prompt="a fox",
            number_of_images=2,
            aspect_ratio=AspectRatio.landscape,
        )
        images = await provider.generate_images(call)

        assert [base64.b64decode(i) for i in images] == [JPEG_BYTES, JPEG_BYTES + b"2"]
        kwargs = provider._client.aio.models.generate_images.call_args.kwargs
        assert kwargs["model"] == "gen-model"
        assert kwargs["prompt"] == "a fox"
        assert kwargs["config"].number_of_images == 2
        assert kwargs["config"].aspect_ratio == "4:3"

    async def test_generate_images_empty_is_failure(self, provider: GeminiProvider) -> None:
        provider._client.aio.models.generate_images = AsyncMock(
            return_value=types.GenerateImagesResponse(generated_images=[])
        )
        call = ProviderCall(shape=CallShape.image_generation, model="m", prompt="p")
        with pytest.raises(GenerationFailedError):
            await provider.generate_images(call)

    async def test_generate_image_sends_ordered_parts(self, provider: GeminiProvider) -> None:
        """Segments become text and inline-data parts in order."""
        provider._client.aio.models.generate_content = AsyncMock(
            return_value=_content_response(_image_part())
        )
        image = make_png(b"x")
        call = ProviderCall(
            shape=CallShape.multimodal_edit,
            model="edit-model",
            parts=[TextSegment(text="IMAGE 1:"), ImageSegment(image=image), TextSegment(text="go")],
        )
        result = await provider.generate_image(call)

        assert base64.b64decode(result.data) == PNG_BYTES
        assert result.mime_type == "image/png"
        kwargs = provider._client.aio.models.generate_content.call_args.kwargs
        contents = kwargs["contents"]
        assert contents[0].text == "IMAGE 1:"
        assert contents[1].inline_data.data == image.to_bytes()
        assert contents[1].inline_data.mime_type == "image/png"
        assert contents[2].text == "go"
        assert "IMAGE" in kwargs["config"].response_modalities

    async def test_generate_text(self, provider: GeminiProvider) -> None:
        provider._client.aio.models.generate_content = AsyncMock(
            return_value=_content_response(types.Part(text="  a cinematic portrait  "))
        )
        call = ProviderCall(shape=CallShape.text, model="text-model", parts=[TextSegment(text="describe")])
        assert await provider.generate_text(call) == "a cinematic portrait"

    async def test_generate_text_empty_is_failure(self, provider: GeminiProvider) -> None:
        provider._client.aio.models.generate_content = AsyncMock(
            return_value=_content_response(types.Part(text="   "))
        )
        call = ProviderCall(shape=CallShape.text, model="text-model", parts=[TextSegment(text="x")])
        with pytest.raises(GenerationFailedError):
            await provider.generate_text(call)

    async def test_generate_json_requests_schema(self, provider: GeminiProvider) -> None:
        """Structured calls request JSON output."""
        provider._client.aio.models.generate_content = AsyncMock(
            return_value=_content_response(types.Part(text='{"suggestions": ["a"]}'))
        )
        call = ProviderCall(shape=CallShape.structured_json, model="text-model", parts=[TextSegment(text="x")])
        assert await provider.generate_json(call) == '{"suggestions": ["a"]}'
        config = provider._client.aio.models.generate_content.call_args.kwargs["config"]
        assert config.response_mime_type == "application/json"

    async def test_submit_video_with_seed_image(self, provider: GeminiProvider) -> None:
        """Video submission sends the seed image and asks for one video."""
        operation = SimpleNamespace(name="operations/1", done=False)
        provider._client.aio.models.generate_videos = AsyncMock(return_value=operation)
        image = make_png()
        call = ProviderCall(
            shape=CallShape.video_job,
            model="video-model",
            prompt="waves",
            aspect_ratio=AspectRatio.widescreen,
            image=image,
        )
        assert await provider.submit_video(call) is operation
        kwargs = provider._client.aio.models.generate_videos.call_args.kwargs
        assert kwargs["image"].image_bytes == image.to_bytes()
        assert kwargs["config"].aspect_ratio == "16:9"
        assert kwargs["config"].number_of_videos == 1

    async def test_refresh_video(self, provider: GeminiProvider) -> None:
        refreshed = SimpleNamespace(done=True)
        provider._client.aio.operations.get = AsyncMock(return_value=refreshed)
        assert await provider.refresh_video(SimpleNamespace(done=False)) is refreshed


class TestDownloadVideo:
    async def test_inline_bytes(self, provider: GeminiProvider) -> None:
        """Inline video bytes are used without a download."""
        video = SimpleNamespace(video_bytes=b"inline-mp4", uri=None)
        assert await provider.download_video(video) == b"inline-mp4"

    async def test_authenticated_download(
        self, provider: GeminiProvider, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Remote videos are fetched with the API key header."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"remote-mp4")

        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            provider_module.httpx,
            "AsyncClient",
            lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
        )
        video = SimpleNamespace(video_bytes=None, uri="https://example.com/files/v.mp4")

        assert await provider.download_video(video) == b"remote-mp4"
        assert seen[0].headers["x-goog-api-key"] == "test-api-key"

    async def test_http_error_propagates(
        self, provider: GeminiProvider, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """HTTP errors propagate for the classifier."""
        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            provider_module.httpx,
            "AsyncClient",
            lambda **kwargs: real_client(
                transport=httpx.MockTransport(lambda request: httpx.Response(429)), **kwargs
            ),
        )
        video = SimpleNamespace(video_bytes=None, uri="https://example.com/files/v.mp4")
        with pytest.raises(httpx.HTTPStatusError):
            await provider.download_video(video)

    @pytest.mark.parametrize("uri", [None, "", "gs://bucket/v.mp4"])
    async def test_undownloadable_uri(self, provider: GeminiProvider, uri) -> None:
        """Missing or non-HTTP URIs are transport failures."""
        video = SimpleNamespace(video_bytes=None, uri=uri)
        with pytest.raises(TransportFailureError):
            await provider.download_video(video)


class TestProviderFromSettings:
    def test_user_key_wins(self) -> None:
        """A user-supplied key overrides the configured one."""
        built = provider_from_settings(Settings(gemini_api_key="env-key"), api_key="user-key")
        assert built.api_key == "user-key"

    def test_falls_back_to_settings_key(self) -> None:
        built = provider_from_settings(Settings(gemini_api_key="env-key"))
        assert built.api_key == "env-key"
        assert built.use_vertex_ai is False

    def test_client_is_lazy(self) -> None:
        """No SDK client is created until first use."""
        built = provider_from_settings(Settings(gemini_api_key=""))
        assert built._client is None
