"""
Rate Limiter - fixed-window action ceilings.

The per-minute window is the primary throttle; an optional per-hour window caps
sustained use. A window resets once more than its length has elapsed since it
started. Rejection happens before dispatch, so a counter never exceeds its ceiling.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from common import constants

logger = logging.getLogger(__name__)


@dataclass
class RateLimitWindow:
    """Counter plus the timestamp the window started at."""
    ceiling: int
    length: float
    count: int = 0
    started_at: float = 0.0

    def roll(self, now: float) -> None:
        if now - self.started_at > self.length:
            self.count = 0
            self.started_at = now

    @property
    def exhausted(self) -> bool:
        return self.count >= self.ceiling


class RateLimiter:
    """Fixed-window limiter owned by one Execution Engine instance."""

    def __init__(
        self,
        max_per_minute: int = constants.MAX_ACTIONS_PER_MINUTE,
        max_per_hour: Optional[int] = constants.MAX_ACTIONS_PER_HOUR,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._clock = clock
        now = clock()
        self.minute = RateLimitWindow(ceiling=max_per_minute, length=constants.RATE_WINDOW_SECS, started_at=now)
        self.hour = (
            RateLimitWindow(ceiling=max_per_hour, length=constants.HOURLY_WINDOW_SECS, started_at=now)
            if max_per_hour else None
        )

    def try_acquire(self) -> bool:
        """
        Count one attempted action.

        Returns:
            True if the action may run, False if a ceiling is reached (nothing is counted then)
        """
        now = self._clock()
        windows = [w for w in (self.minute, self.hour) if w is not None]
        for window in windows:
            window.roll(now)

        for window in windows:
            if window.exhausted:
                logger.warning(
                    f"Rate limit reached: {window.count}/{window.ceiling} actions in {int(window.length)}s window"
                )
                return False

        for window in windows:
            window.count += 1
        return True

    def remaining(self) -> int:
        """Actions still allowed in the current minute window."""
        self.minute.roll(self._clock())
        return max(0, self.minute.ceiling - self.minute.count)
