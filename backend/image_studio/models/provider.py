"""Provider-neutral call payloads produced by the request builder."""
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from image_studio.models.studio import AspectRatio, ImageData


class CallShape(str, Enum):
    """The four provider call shapes, plus plain text for analysis."""

    image_generation = "image_generation"
    multimodal_edit = "multimodal_edit"
    text = "text"
    structured_json = "structured_json"
    video_job = "video_job"


class TextSegment(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageSegment(BaseModel):
    type: Literal["image"] = "image"
    image: ImageData


Segment = Union[TextSegment, ImageSegment]


class ProviderCall(BaseModel):
    """Everything the provider client needs to issue one call.

    ``parts`` is the ordered list of instruction and inline-image segments for
    content calls. Image-generation and video-job calls use ``prompt`` instead
    (plus ``image`` as the optional video seed).
    """

    shape: CallShape
    model: str
    parts: list[Segment] = Field(default_factory=list)
    prompt: str = ""
    number_of_images: int = 1
    aspect_ratio: Optional[AspectRatio] = None
    image: Optional[ImageData] = None

    @property
    def text_segments(self) -> list[str]:
        return [p.text for p in self.parts if isinstance(p, TextSegment)]

    @property
    def image_segments(self) -> list[ImageData]:
        return [p.image for p in self.parts if isinstance(p, ImageSegment)]
