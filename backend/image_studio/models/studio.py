"""Studio operation, result and preset data models."""
import binascii
import re
from base64 import b64decode, b64encode
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class StudioModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OutputQuality(str, Enum):
    """Descriptive quality tier appended to prompts."""

    standard = "standard"
    high = "high"
    maximum = "maximum"


class AspectRatio(str, Enum):
    square = "1:1"
    portrait = "3:4"
    landscape = "4:3"
    story = "9:16"
    widescreen = "16:9"


class MagicAction(str, Enum):
    """One-click image transformations."""

    upscale = "upscale"
    remove_background = "remove-background"
    color_correct = "color-correct"
    remove_object = "remove-object"
    change_background = "change-background"
    beautify_portrait = "beautify-portrait"


class OperationKind(str, Enum):
    generate = "generate"
    edit = "edit"
    swap = "swap"
    magic = "magic"
    analyze = "analyze"
    video = "video"
    suggest = "suggest"


_DATA_URL = re.compile(r"^data:(?P<mime>[^;,]+);base64,(?P<data>.*)$", re.DOTALL)

# mime type -> predicate over the first bytes of the decoded payload
_SIGNATURES = {
    "image/png": lambda head: head.startswith(b"\x89PNG\r\n\x1a\n"),
    "image/jpeg": lambda head: head.startswith(b"\xff\xd8\xff"),
    "image/gif": lambda head: head.startswith((b"GIF87a", b"GIF89a")),
    "image/webp": lambda head: head[:4] == b"RIFF" and head[8:12] == b"WEBP",
}

_MIME_ALIASES = {"image/jpg": "image/jpeg", "image/pjpeg": "image/jpeg"}


def sniff_mime_type(payload: bytes) -> Optional[str]:
    """Return the mime type implied by the payload's magic bytes, if recognised."""
    head = payload[:16]
    for mime_type, matches in _SIGNATURES.items():
        if matches(head):
            return mime_type
    return None


class ImageData(StudioModel):
    """An in-memory image payload (base64 + mime type).

    Accepts either the two fields or a single ``data:`` URL passed as
    ``base64``/``dataUrl``, which is what browsers produce from a file input.
    """

    base64: str = Field(..., min_length=1)
    mime_type: str = Field(..., min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _split_data_url(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        raw = data.get("dataUrl") or data.get("data_url") or data.get("base64")
        if isinstance(raw, str):
            match = _DATA_URL.match(raw.strip())
            if match:
                data = {k: v for k, v in data.items() if k not in ("dataUrl", "data_url")}
                data["base64"] = match.group("data")
                if not data.get("mimeType") and not data.get("mime_type"):
                    data["mimeType"] = match.group("mime")
        return data

    @field_validator("mime_type")
    @classmethod
    def _check_mime_type(cls, value: str) -> str:
        value = value.strip().lower()
        value = _MIME_ALIASES.get(value, value)
        if not value.startswith("image/"):
            raise ValueError(f"mime type must be an image type, got {value!r}")
        return value

    @model_validator(mode="after")
    def _check_payload(self) -> "ImageData":
        try:
            payload = b64decode(self.base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("base64 payload is not valid base64") from exc
        if not payload:
            raise ValueError("base64 payload is empty")
        sniffed = sniff_mime_type(payload)
        if sniffed is not None and sniffed != self.mime_type:
            raise ValueError(
                f"mime type {self.mime_type!r} does not match payload ({sniffed})"
            )
        return self

    @classmethod
    def from_bytes(cls, payload: bytes, mime_type: Optional[str] = None) -> "ImageData":
        """Build from raw bytes, sniffing the mime type when not given."""
        mime = mime_type or sniff_mime_type(payload) or "image/png"
        return cls(base64=b64encode(payload).decode("ascii"), mime_type=mime)

    def to_bytes(self) -> bytes:
        return b64decode(self.base64)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

# Image inputs are optional here so that missing inputs are reported by the
# request builder as InputValidationError, before any provider call.


class GenerateRequest(StudioModel):
    kind: Literal["generate"] = "generate"
    prompt: str = ""
    aspect_ratio: AspectRatio = AspectRatio.square
    number_of_images: int = Field(4, ge=1, le=4)
    quality: Optional[OutputQuality] = None


class EditRequest(StudioModel):
    kind: Literal["edit"] = "edit"
    prompt: str = ""
    aspect_ratio: AspectRatio = AspectRatio.square
    character_images: list[ImageData] = Field(default_factory=list)
    product_image: Optional[ImageData] = None
    background_image: Optional[ImageData] = None
    number_of_variations: int = Field(1, ge=1, le=4)
    quality: Optional[OutputQuality] = None


class SwapRequest(StudioModel):
    kind: Literal["swap"] = "swap"
    prompt: str = ""
    source_face_image: Optional[ImageData] = None
    target_image: Optional[ImageData] = None
    number_of_variations: int = Field(1, ge=1, le=4)
    quality: Optional[OutputQuality] = None


class MagicRequest(StudioModel):
    kind: Literal["magic"] = "magic"
    action: MagicAction
    image: Optional[ImageData] = None
    prompt: str = ""
    quality: Optional[OutputQuality] = None


class AnalyzeRequest(StudioModel):
    kind: Literal["analyze"] = "analyze"
    image: Optional[ImageData] = None


class VideoRequest(StudioModel):
    kind: Literal["video"] = "video"
    prompt: str = ""
    aspect_ratio: AspectRatio = AspectRatio.widescreen
    image: Optional[ImageData] = None


class SuggestRequest(StudioModel):
    kind: Literal["suggest"] = "suggest"
    prompt: str = ""
    images: list[ImageData] = Field(default_factory=list)


AnyOperationRequest = Union[
    GenerateRequest,
    EditRequest,
    SwapRequest,
    MagicRequest,
    AnalyzeRequest,
    VideoRequest,
    SuggestRequest,
]

OperationRequest = Annotated[AnyOperationRequest, Field(discriminator="kind")]

QUALITY_BEARING = (GenerateRequest, EditRequest, SwapRequest, MagicRequest)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ImagesResult(StudioModel):
    """One or more base64-encoded images, in call order."""

    kind: Literal["images"] = "images"
    images: list[str]
    mime_type: str = "image/png"


class TextResult(StudioModel):
    kind: Literal["text"] = "text"
    text: str


class SuggestionsResult(StudioModel):
    kind: Literal["suggestions"] = "suggestions"
    suggestions: list[str]


class VideoResult(StudioModel):
    """Playable handle to a downloaded video (URL path under /videos)."""

    kind: Literal["video"] = "video"
    video_path: str
    mime_type: str = "video/mp4"


AnyOperationResult = Union[ImagesResult, TextResult, SuggestionsResult, VideoResult]

OperationResult = Annotated[AnyOperationResult, Field(discriminator="kind")]


class SuggestionPayload(BaseModel):
    """Schema the structured-JSON call is constrained to."""

    suggestions: list[str]


# ---------------------------------------------------------------------------
# Character presets
# ---------------------------------------------------------------------------


class CharacterPreset(StudioModel):
    """A named bundle of reference images and a prompt fragment."""

    id: str
    name: str = Field(..., min_length=1)
    images: list[ImageData] = Field(default_factory=list)
    prompt: str = ""


class PresetCreate(StudioModel):
    name: str = Field(..., min_length=1, max_length=100)
    images: list[ImageData] = Field(..., min_length=1)
    prompt: str = ""


class PresetUpdate(StudioModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    images: Optional[list[ImageData]] = Field(None, min_length=1)
    prompt: Optional[str] = None


class QualitySetting(StudioModel):
    quality: OutputQuality


class ApiKeySetting(StudioModel):
    api_key: str = Field(..., min_length=1)
