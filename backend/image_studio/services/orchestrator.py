"""Variation orchestrator: N sequential single-image calls, spaced out."""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from image_studio.services.classifier import classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class VariationOrchestrator:
    """Runs one provider call per requested variation.

    Calls are strictly sequential with a fixed delay between them, since the
    provider's rate limit is account-wide. The batch is all-or-nothing: the
    first failure discards collected results and is re-raised classified.
    """

    def __init__(self, delay_seconds: float = 30.0, sleep: Sleep = asyncio.sleep) -> None:
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    async def run(self, call: Callable[[], Awaitable[T]], count: int) -> list[T]:
        """Issue ``call`` ``count`` times and return the results in issue order.

        Args:
            call: Zero-argument coroutine factory issuing one provider call.
            count: Number of variations (>= 1).

        Returns:
            Exactly ``count`` results.

        Raises:
            StudioError: Classified failure of the first call that failed.
        """
        if count < 1:
            raise ValueError(f"count must be >= 1, got {count}")

        results: list[T] = []
        for index in range(count):
            logger.info("Variation %d/%d: calling provider", index + 1, count)
            try:
                results.append(await call())
            except Exception as exc:
                error = classify_error(exc)
                logger.error(
                    "Variation %d/%d failed: %s: %s",
                    index + 1,
                    count,
                    type(exc).__name__,
                    exc,
                    extra={
                        "service": "VariationOrchestrator",
                        "error_type": type(exc).__name__,
                        "error_kind": error.kind.value,
                    },
                )
                if error is exc:
                    raise
                raise error from exc
            if index < count - 1:
                logger.debug("Waiting %.1fs before next variation", self.delay_seconds)
                await self._sleep(self.delay_seconds)

        return results
