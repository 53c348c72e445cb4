"""Submission cooldown after a provider rate-limit response."""
import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


class CooldownGate:
    """Blocks new submissions for a fixed window after a rate limit.

    The gate never retries anything itself; it only tells the caller how long
    to wait.
    """

    def __init__(self, window_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._until = 0.0

    def trigger(self) -> None:
        self._until = self._clock() + self.window_seconds
        logger.warning("Rate limited: submissions paused for %.0fs", self.window_seconds)

    def remaining(self) -> float:
        """Seconds left in the current window (0 when open)."""
        return max(0.0, self._until - self._clock())

    @property
    def is_cooling_down(self) -> bool:
        return self.remaining() > 0
