"""Gemini provider client wrapping the google-genai SDK."""
import base64
import json
import logging
import re
from typing import Any, NamedTuple, Optional

import httpx
from google import genai
from google.genai import types
from pydantic import ValidationError

from image_studio.core.errors import (
    GenerationFailedError,
    InvalidResponseFormatError,
    TransportFailureError,
)
from image_studio.models.provider import ImageSegment, ProviderCall, TextSegment
from image_studio.models.studio import SuggestionPayload

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"^\s*```(?:json|JSON)?\s*\n?(?P<body>.*?)\n?\s*```\s*$", re.DOTALL)

DOWNLOAD_TIMEOUT_SECONDS = 300.0


def parse_suggestions(text: Optional[str]) -> list[str]:
    """Parse a structured suggestion response.

    Tolerates the JSON being wrapped in a fenced code block.

    Raises:
        InvalidResponseFormatError: When the text is not JSON of the form
            ``{"suggestions": [str, ...]}``.
    """
    if not text:
        raise InvalidResponseFormatError(detail="empty response")
    match = _FENCED_BLOCK.match(text)
    body = match.group("body") if match else text
    try:
        payload = SuggestionPayload.model_validate(json.loads(body))
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.error("Failed to parse suggestions: %.200s", text)
        raise InvalidResponseFormatError(detail=str(exc)) from exc
    return payload.suggestions


def _to_parts(call: ProviderCall) -> list[types.Part]:
    parts: list[types.Part] = []
    for segment in call.parts:
        if isinstance(segment, TextSegment):
            parts.append(types.Part(text=segment.text))
        elif isinstance(segment, ImageSegment):
            parts.append(
                types.Part(
                    inline_data=types.Blob(
                        data=segment.image.to_bytes(), mime_type=segment.image.mime_type
                    )
                )
            )
    return parts


def _response_text(response: Any) -> str:
    texts: list[str] = []
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            text = getattr(part, "text", None)
            if text:
                texts.append(text)
    return " ".join(t.strip() for t in texts if t.strip())


class InlineImage(NamedTuple):
    """A base64 image returned inline by a content call."""

    data: str
    mime_type: str


def extract_image(response: Any) -> InlineImage:
    """Return the first inline image of a content response, with its mime type.

    Raises:
        GenerationFailedError: When no part carries inline data. The provider's
            accompanying text (or block reason) is attached as ``detail``.
    """
    candidates = getattr(response, "candidates", None) or []
    if candidates and candidates[0].content is not None:
        for part in candidates[0].content.parts or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                return InlineImage(
                    data=base64.b64encode(bytes(inline.data)).decode("ascii"),
                    mime_type=inline.mime_type or "image/png",
                )

    explanation = _response_text(response)
    if not explanation:
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None)
        if block_reason:
            explanation = f"Request blocked: {getattr(block_reason, 'value', block_reason)}"
    raise GenerationFailedError(detail=explanation or None)


class GeminiProvider:
    """Async client for the four provider call shapes.

    The genai client is created lazily so that constructing the provider
    never needs credentials.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        use_vertex_ai: bool = False,
        project_id: Optional[str] = None,
        location: Optional[str] = None,
    ) -> None:
        self.api_key = api_key
        self.use_vertex_ai = use_vertex_ai
        self.project_id = project_id
        self.location = location
        self._client: Optional[genai.Client] = None

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if self.use_vertex_ai:
                self._client = genai.Client(
                    vertexai=True, project=self.project_id, location=self.location
                )
            else:
                self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate_images(self, call: ProviderCall) -> list[str]:
        """Image-generation call; returns base64 images (count from the call)."""
        response = await self.client.aio.models.generate_images(
            model=call.model,
            prompt=call.prompt,
            config=types.GenerateImagesConfig(
                number_of_images=call.number_of_images,
                aspect_ratio=call.aspect_ratio.value if call.aspect_ratio else None,
                output_mime_type="image/jpeg",
            ),
        )
        images = [
            base64.b64encode(generated.image.image_bytes).decode("ascii")
            for generated in response.generated_images or []
            if generated.image is not None and generated.image.image_bytes
        ]
        if not images:
            raise GenerationFailedError(detail="The provider returned no images.")
        return images

    async def generate_image(self, call: ProviderCall) -> InlineImage:
        """Multimodal-edit call; returns exactly one inline image."""
        response = await self.client.aio.models.generate_content(
            model=call.model,
            contents=_to_parts(call),
            config=types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
        )
        return extract_image(response)

    async def generate_text(self, call: ProviderCall) -> str:
        response = await self.client.aio.models.generate_content(
            model=call.model,
            contents=_to_parts(call),
        )
        text = (response.text or "").strip()
        if not text:
            raise GenerationFailedError(detail="The provider returned no text.")
        return text

    async def generate_json(self, call: ProviderCall) -> str:
        """Structured-JSON call constrained to the suggestion schema; returns raw text."""
        response = await self.client.aio.models.generate_content(
            model=call.model,
            contents=_to_parts(call),
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=SuggestionPayload,
            ),
        )
        return response.text or ""

    async def submit_video(self, call: ProviderCall) -> types.GenerateVideosOperation:
        """Submit an async video job and return its operation handle."""
        image = None
        if call.image is not None:
            image = types.Image(image_bytes=call.image.to_bytes(), mime_type=call.image.mime_type)
        return await self.client.aio.models.generate_videos(
            model=call.model,
            prompt=call.prompt,
            image=image,
            config=types.GenerateVideosConfig(
                number_of_videos=1,
                aspect_ratio=call.aspect_ratio.value if call.aspect_ratio else None,
            ),
        )

    async def refresh_video(
        self, operation: types.GenerateVideosOperation
    ) -> types.GenerateVideosOperation:
        return await self.client.aio.operations.get(operation)

    async def download_video(self, video: types.Video) -> bytes:
        """Fetch a generated video's bytes (inline, or authenticated download)."""
        if video.video_bytes:
            return bytes(video.video_bytes)
        if not video.uri or not video.uri.startswith(("http://", "https://")):
            raise TransportFailureError(detail=f"Video has no downloadable URI: {video.uri!r}")

        headers = {"x-goog-api-key": self.api_key} if self.api_key else {}
        async with httpx.AsyncClient(
            follow_redirects=True, timeout=DOWNLOAD_TIMEOUT_SECONDS
        ) as http:
            response = await http.get(video.uri, headers=headers)
            response.raise_for_status()
            return response.content


def provider_from_settings(settings: Any, api_key: Optional[str] = None) -> GeminiProvider:
    """Build a provider from Settings, preferring a user-supplied API key."""
    return GeminiProvider(
        api_key=api_key or settings.gemini_api_key or None,
        use_vertex_ai=settings.use_vertex_ai,
        project_id=settings.gcp_project_id or None,
        location=settings.vertex_ai_location,
    )
