"""StudioService: runs one user-initiated operation end to end."""
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from image_studio.core.logging import setup_logging
from image_studio.models.provider import ProviderCall
from image_studio.models.studio import (
    AnalyzeRequest,
    EditRequest,
    GenerateRequest,
    ImagesResult,
    MagicRequest,
    OperationRequest,
    OperationResult,
    SuggestionsResult,
    SuggestRequest,
    SwapRequest,
    TextResult,
    VideoRequest,
)
from image_studio.services.classifier import classify_error
from image_studio.services.orchestrator import VariationOrchestrator
from image_studio.services.poller import VideoJobPoller
from image_studio.services.provider import InlineImage, parse_suggestions
from image_studio.services.request_builder import RequestBuilder

logger = setup_logging("studio")

T = TypeVar("T")


def _images_result(images: list[InlineImage]) -> ImagesResult:
    """Collect inline images; the result carries the first image's mime type."""
    mime_type = images[0].mime_type
    if any(image.mime_type != mime_type for image in images):
        logger.warning(
            "Variations returned mixed mime types: %s",
            sorted({image.mime_type for image in images}),
        )
    return ImagesResult(images=[image.data for image in images], mime_type=mime_type)


class StudioService:
    """Orchestrates a single studio operation.

    Responsibilities:
    1. Build the provider call (validation errors surface before any I/O)
    2. Pick the execution strategy for the operation kind:
       - generate: one call, the provider returns several images natively
       - edit / swap: VariationOrchestrator, one call per variation
       - magic / analyze / suggest: one call
       - video: VideoJobPoller
    3. Classify every provider failure before it leaves the service
    """

    def __init__(
        self,
        provider: Any,
        builder: Optional[RequestBuilder] = None,
        orchestrator: Optional[VariationOrchestrator] = None,
        poller: Optional[VideoJobPoller] = None,
    ) -> None:
        self.provider = provider
        self.builder = builder or RequestBuilder()
        self.orchestrator = orchestrator or VariationOrchestrator()
        self.poller = poller or VideoJobPoller(provider=provider)

    def replace_provider(self, provider: Any) -> None:
        """Swap the provider client, e.g. after the user enters another API key."""
        self.provider = provider
        self.poller.provider = provider
        logger.info("Provider client replaced")

    async def run(self, request: OperationRequest) -> OperationResult:
        """Run ``request`` and return a result whose shape matches its kind.

        Raises:
            StudioError: InputValidationError before any call, or the classified
                provider failure. Multi-variation batches never return partially.
        """
        call = self.builder.build(request)
        started = time.perf_counter()
        result = await self._execute(request, call)
        logger.info(
            "Operation %s finished in %.2fs", request.kind, time.perf_counter() - started
        )
        return result

    async def _execute(self, request: OperationRequest, call: ProviderCall) -> OperationResult:
        if isinstance(request, GenerateRequest):
            images = await self._single(self.provider.generate_images, call)
            return ImagesResult(images=images, mime_type="image/jpeg")

        if isinstance(request, (EditRequest, SwapRequest)):
            images = await self.orchestrator.run(
                lambda: self.provider.generate_image(call), request.number_of_variations
            )
            return _images_result(images)

        if isinstance(request, MagicRequest):
            image = await self._single(self.provider.generate_image, call)
            return _images_result([image])

        if isinstance(request, AnalyzeRequest):
            text = await self._single(self.provider.generate_text, call)
            return TextResult(text=text)

        if isinstance(request, SuggestRequest):
            raw = await self._single(self.provider.generate_json, call)
            return SuggestionsResult(suggestions=parse_suggestions(raw))

        if isinstance(request, VideoRequest):
            return await self.poller.run(call)

        raise TypeError(f"Unsupported request: {type(request).__name__}")

    async def _single(self, method: Callable[[ProviderCall], Awaitable[T]], call: ProviderCall) -> T:
        try:
            return await method(call)
        except Exception as exc:
            error = classify_error(exc)
            logger.error(
                "Provider call failed: %s: %s",
                type(exc).__name__,
                exc,
                extra={
                    "service": "StudioService",
                    "error_type": type(exc).__name__,
                    "error_kind": error.kind.value,
                },
            )
            if error is exc:
                raise
            raise error from exc
