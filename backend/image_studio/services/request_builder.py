"""Request builder: turns an operation request into a provider call payload."""
import logging
from typing import Optional

from image_studio.core.errors import InputValidationError
from image_studio.models.provider import CallShape, ImageSegment, ProviderCall, Segment, TextSegment
from image_studio.models.studio import (
    AnalyzeRequest,
    AspectRatio,
    EditRequest,
    GenerateRequest,
    ImageData,
    MagicAction,
    MagicRequest,
    OperationRequest,
    OutputQuality,
    SuggestRequest,
    SwapRequest,
    VideoRequest,
)

logger = logging.getLogger(__name__)

QUALITY_SUFFIXES: dict[OutputQuality, str] = {
    OutputQuality.standard: "",
    OutputQuality.high: ", 4K resolution, high detail, professional photography, sharp focus",
    OutputQuality.maximum: (
        ", 8K resolution, ultra-detailed, photorealistic, cinematic lighting, masterpiece"
    ),
}

CONSISTENCY_INSTRUCTION = (
    "INSTRUCTION: You are an AI expert at character consistency. "
    "The following images are references of a character. It is critically important "
    "that the character's face, hair, body shape, and unique identifying features are "
    "perfectly preserved and accurately recreated with high fidelity in the output image. "
    "Do not change the character's appearance under any circumstances."
)

ANALYZE_INSTRUCTION = (
    "You are an expert prompt engineer. Analyze the following image in detail. "
    "Generate a descriptive, high-quality prompt that could be used by an AI image "
    "generator to recreate a similar image. Describe the subject, their clothing, the "
    "setting, the lighting, the atmosphere, and the artistic style (e.g., photorealistic, "
    "anime, etc.). Be concise but comprehensive."
)

# {prompt} is substituted for the actions that take a user description.
MAGIC_INSTRUCTIONS: dict[MagicAction, str] = {
    MagicAction.upscale: (
        "Upscale this image to a higher resolution, enhance details, and improve overall "
        "quality. Make the image sharper and clearer."
    ),
    MagicAction.remove_background: (
        "Perfectly remove the background of this image, leaving only the main subject. "
        "The output should have a transparent background."
    ),
    MagicAction.color_correct: (
        "Automatically correct the colors, contrast, and brightness of this image to make "
        "it look more vibrant, professional, and balanced."
    ),
    MagicAction.remove_object: (
        'Carefully remove the object described as "{prompt}" from this image. Inpaint the '
        "area where the object was removed so that it blends seamlessly and realistically "
        "with the surrounding background. The final result should look natural, as if the "
        "object was never there."
    ),
    MagicAction.change_background: (
        "INSTRUCTION: You are a professional photo editor. Your task is to perform a "
        "background replacement. 1. Identify the primary subject(s) in the provided image. "
        "2. Isolate the subject(s) perfectly. Do not alter the subject(s) in any way; their "
        "appearance, color, and form must remain identical. 3. Completely remove the "
        "original background. 4. Generate a new, photorealistic background based on this "
        'description: "{prompt}". 5. Integrate the subject(s) seamlessly into the new '
        "background. The lighting, shadows, reflections, and perspective on the subject(s) "
        "must be adjusted to match the new environment. The final image must look like a "
        "single, cohesive photograph."
    ),
    MagicAction.beautify_portrait: (
        "Perform a professional portrait retouch on this image. Subtly smooth the skin "
        "while retaining natural texture, brighten the eyes, gently whiten the teeth if "
        "visible, and enhance the overall lighting to be more flattering. The result should "
        'be a natural, beautified portrait, not an artificial or "plastic" look.'
    ),
}

PROMPT_REQUIRED_ACTIONS = frozenset({MagicAction.remove_object, MagicAction.change_background})

SINGLE_IMAGE_DIRECTIVE = "Generate exactly one image."


def quality_suffix(quality: Optional[OutputQuality]) -> str:
    """Return the descriptive suffix for a quality tier ('' for standard)."""
    return QUALITY_SUFFIXES[quality or OutputQuality.standard]


def _quality_description(quality: Optional[OutputQuality]) -> str:
    return quality_suffix(quality).lstrip(", ") or "standard quality"


def _is_blank(text: Optional[str]) -> bool:
    return text is None or not text.strip()


def _labeled(label: str, image: ImageData) -> list[Segment]:
    return [TextSegment(text=label), ImageSegment(image=image)]


class RequestBuilder:
    """Builds provider calls for every operation kind.

    Pure and synchronous: raises InputValidationError for missing inputs and
    never touches the network.
    """

    def __init__(
        self,
        image_generation_model: str = "imagen-4.0-generate-001",
        image_edit_model: str = "gemini-2.5-flash-image-preview",
        text_model: str = "gemini-2.5-flash",
        video_model: str = "veo-2.0-generate-001",
    ) -> None:
        self.image_generation_model = image_generation_model
        self.image_edit_model = image_edit_model
        self.text_model = text_model
        self.video_model = video_model

    def build(self, request: OperationRequest) -> ProviderCall:
        """Dispatch on the request kind."""
        call = self._dispatch(request)
        logger.debug(
            "Built %s call: model=%s parts=%d", call.shape.value, call.model, len(call.parts)
        )
        return call

    def _dispatch(self, request: OperationRequest) -> ProviderCall:
        if isinstance(request, GenerateRequest):
            return self.build_generate(request)
        if isinstance(request, EditRequest):
            return self.build_edit(request)
        if isinstance(request, SwapRequest):
            return self.build_swap(request)
        if isinstance(request, MagicRequest):
            return self.build_magic(request)
        if isinstance(request, AnalyzeRequest):
            return self.build_analyze(request)
        if isinstance(request, VideoRequest):
            return self.build_video(request)
        if isinstance(request, SuggestRequest):
            return self.build_suggest(request)
        raise InputValidationError(f"Unsupported operation: {type(request).__name__}")

    def build_generate(self, request: GenerateRequest) -> ProviderCall:
        if _is_blank(request.prompt):
            raise InputValidationError("A prompt is required to generate images.")
        prompt = f"{request.prompt.strip()}{quality_suffix(request.quality)}"
        return ProviderCall(
            shape=CallShape.image_generation,
            model=self.image_generation_model,
            parts=[TextSegment(text=prompt)],
            prompt=prompt,
            number_of_images=request.number_of_images,
            aspect_ratio=request.aspect_ratio,
        )

    def build_edit(self, request: EditRequest) -> ProviderCall:
        """Build a character-consistent edit.

        Segment order: consistency instruction, each character image, optional
        product image, optional background image, then the scene instruction.
        """
        if not request.character_images:
            raise InputValidationError("At least one character image is required.")
        if _is_blank(request.prompt):
            raise InputValidationError("A scene prompt is required to edit images.")

        parts: list[Segment] = [TextSegment(text=CONSISTENCY_INSTRUCTION)]
        for index, image in enumerate(request.character_images, start=1):
            parts.extend(_labeled(f"CHARACTER IMAGE {index}:", image))
        if request.product_image is not None:
            parts.extend(
                _labeled(
                    "PRODUCT IMAGE: The following image is a product to be integrated "
                    "into the scene.",
                    request.product_image,
                )
            )
        if request.background_image is not None:
            parts.extend(
                _labeled(
                    "BACKGROUND IMAGE: The following image is the background the "
                    "character must be placed in.",
                    request.background_image,
                )
            )
        parts.append(TextSegment(text=self._edit_instruction(request)))

        return ProviderCall(
            shape=CallShape.multimodal_edit,
            model=self.image_edit_model,
            parts=parts,
            aspect_ratio=request.aspect_ratio,
        )

    def _edit_instruction(self, request: EditRequest) -> str:
        lines = [
            f"SCENE PROMPT: {request.prompt.strip()}.",
            f"ASPECT RATIO: The output image must have an aspect ratio of "
            f"{request.aspect_ratio.value}.",
            "ART DIRECTION:",
            "- Character Realism: Create a photorealistic image. The character must be "
            "realistically scaled and proportioned relative to the background. Pay close "
            "attention to perspective, depth, and correct lighting/shadows so the final "
            "composition is believable.",
        ]
        if request.product_image is not None:
            lines.append(
                "- Product Integration: Seamlessly integrate the provided product into the "
                "scene. The character should interact with it naturally. The product's "
                "lighting, shadows, and reflections must match the environment."
            )
        if request.background_image is not None:
            lines.append(
                "- Background: Use the provided background image as the setting. Keep its "
                "layout and lighting and place the character into it at a correct scale."
            )
        lines.append(
            "QUALITY: The final image must be of exceptional quality, reflecting these "
            f"characteristics: {_quality_description(request.quality)}."
        )
        lines.append(SINGLE_IMAGE_DIRECTIVE)
        return "\n".join(lines)

    def build_swap(self, request: SwapRequest) -> ProviderCall:
        if request.source_face_image is None:
            raise InputValidationError("A source face image is required for face swap.")
        if request.target_image is None:
            raise InputValidationError("A target image is required for face swap.")

        instruction = (
            "INSTRUCTION: Take the face from IMAGE 1 and expertly blend it onto the person "
            "in IMAGE 2. Preserve every attribute of IMAGE 2 except the face: background, "
            "lighting, pose, clothing, hair, and body must stay exactly as they are. The "
            "final image should look realistic and seamless. The output must be of high "
            "quality, reflecting these characteristics: "
            f"{_quality_description(request.quality)}."
        )
        if not _is_blank(request.prompt):
            instruction += f" Additional user instructions: {request.prompt.strip()}."
        instruction += f" {SINGLE_IMAGE_DIRECTIVE}"

        parts: list[Segment] = [
            *_labeled("IMAGE 1: This is the source face.", request.source_face_image),
            *_labeled(
                "IMAGE 2: This is the target image where the face should be placed.",
                request.target_image,
            ),
            TextSegment(text=instruction),
        ]
        return ProviderCall(
            shape=CallShape.multimodal_edit,
            model=self.image_edit_model,
            parts=parts,
        )

    def build_magic(self, request: MagicRequest) -> ProviderCall:
        if request.image is None:
            raise InputValidationError("An image is required for magic actions.")
        if request.action in PROMPT_REQUIRED_ACTIONS and _is_blank(request.prompt):
            raise InputValidationError(
                f"The '{request.action.value}' action requires a description."
            )

        instruction = MAGIC_INSTRUCTIONS[request.action].format(prompt=request.prompt.strip())
        instruction += (
            " The final output must be of high quality, reflecting these characteristics: "
            f"{_quality_description(request.quality)}."
        )
        return ProviderCall(
            shape=CallShape.multimodal_edit,
            model=self.image_edit_model,
            parts=[
                *_labeled("IMAGE: This is the image to transform.", request.image),
                TextSegment(text=instruction),
            ],
        )

    def build_analyze(self, request: AnalyzeRequest) -> ProviderCall:
        if request.image is None:
            raise InputValidationError("An image is required for analysis.")
        return ProviderCall(
            shape=CallShape.text,
            model=self.text_model,
            parts=[
                TextSegment(text=ANALYZE_INSTRUCTION),
                *_labeled("IMAGE:", request.image),
            ],
        )

    def build_video(self, request: VideoRequest) -> ProviderCall:
        if _is_blank(request.prompt):
            raise InputValidationError("A prompt is required to generate a video.")
        return ProviderCall(
            shape=CallShape.video_job,
            model=self.video_model,
            prompt=request.prompt.strip(),
            number_of_images=1,
            aspect_ratio=request.aspect_ratio or AspectRatio.widescreen,
            image=request.image,
        )

    def build_suggest(self, request: SuggestRequest) -> ProviderCall:
        if _is_blank(request.prompt):
            raise InputValidationError("A prompt is required to get suggestions.")

        parts: list[Segment] = []
        for index, image in enumerate(request.images, start=1):
            parts.extend(_labeled(f"REFERENCE IMAGE {index}:", image))
        parts.append(
            TextSegment(
                text=(
                    "You are a creative director. Based on the idea below"
                    f"{' and the reference images above' if request.images else ''}, "
                    "suggest 3 to 5 distinct, vivid prompts for an AI image or video "
                    "generator. Each suggestion must be a single self-contained prompt. "
                    'Respond with a JSON object of the form {"suggestions": ["..."]}.\n'
                    f"IDEA: {request.prompt.strip()}"
                )
            )
        )
        return ProviderCall(
            shape=CallShape.structured_json,
            model=self.text_model,
            parts=parts,
        )
