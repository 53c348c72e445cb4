"""Long-running video job poller."""
import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from image_studio.core.errors import (
    EmptyResultError,
    GenerationFailedError,
    JobTimeoutError,
    TransportFailureError,
)
from image_studio.models.provider import ProviderCall
from image_studio.models.studio import VideoResult
from image_studio.services.classifier import classify_error
from image_studio.services.orchestrator import Sleep

logger = logging.getLogger(__name__)


def _operation_error(operation: Any) -> Optional[str]:
    error = getattr(operation, "error", None)
    if not error:
        return None
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)


def _generated_videos(operation: Any) -> list:
    response = getattr(operation, "response", None) or getattr(operation, "result", None)
    return list(getattr(response, "generated_videos", None) or [])


class VideoJobPoller:
    """Drives a video job from submission to a saved, playable file.

    Protocol: submit, then up to ``max_attempts`` times wait ``interval_seconds``
    and refresh the job. No completion by then raises JobTimeoutError.
    """

    def __init__(
        self,
        provider: Any,
        videos_dir: Optional[Path] = None,
        interval_seconds: float = 10.0,
        max_attempts: int = 30,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.videos_dir = Path(videos_dir) if videos_dir is not None else Path("data/videos")
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self._sleep = sleep

    async def run(self, call: ProviderCall) -> VideoResult:
        """Submit the job described by ``call`` and block until it finishes.

        Returns:
            VideoResult pointing at the saved video under ``/videos``.

        Raises:
            JobTimeoutError: Job still running after ``max_attempts`` polls.
            EmptyResultError: Job finished without any video.
            StudioError: Any classified provider failure.
        """
        try:
            return await self._run(call)
        except Exception as exc:
            error = classify_error(exc)
            logger.error(
                "Video job failed: %s: %s",
                type(exc).__name__,
                exc,
                extra={
                    "service": "VideoJobPoller",
                    "error_type": type(exc).__name__,
                    "error_kind": error.kind.value,
                },
            )
            if error is exc:
                raise
            raise error from exc

    async def _run(self, call: ProviderCall) -> VideoResult:
        operation = await self.provider.submit_video(call)
        logger.info("Video job submitted: %s", getattr(operation, "name", "<unnamed>"))

        polls = 0
        while not operation.done:
            if polls >= self.max_attempts:
                raise JobTimeoutError(
                    f"The video job did not finish within "
                    f"{self.max_attempts * self.interval_seconds:.0f} seconds."
                )
            await self._sleep(self.interval_seconds)
            operation = await self.provider.refresh_video(operation)
            polls += 1
            logger.debug("Video job poll %d/%d: done=%s", polls, self.max_attempts, operation.done)

        error_text = _operation_error(operation)
        if error_text:
            # The job ran; a non-throttling error means the provider rejected it.
            error = classify_error(RuntimeError(error_text))
            if isinstance(error, TransportFailureError):
                raise GenerationFailedError(detail=error_text)
            raise error

        videos = _generated_videos(operation)
        if not videos or videos[0].video is None:
            raise EmptyResultError()

        payload = await self.provider.download_video(videos[0].video)
        path = await self._save_video(payload)
        logger.info("Video job finished after %d polls: %s", polls, path)
        return VideoResult(video_path=path)

    async def _save_video(self, payload: bytes) -> str:
        """Save video bytes as video_{YYYYMMDDHHMMSSffffff}.mp4 and return its URL path."""
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S%f")
        filename = f"video_{timestamp}.mp4"
        await asyncio.to_thread(self._write_file, self.videos_dir / filename, payload)
        # URL path served by the FastAPI /videos static mount
        return f"/videos/{filename}"

    @staticmethod
    def _write_file(path: Path, payload: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)

