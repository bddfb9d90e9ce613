import logging
import threading
import time
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, Optional

from ..errors import RateLimitError

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


def _utc_today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


class RateLimiter:
    """
    Sliding one-minute window plus a per-day cap.

    The lock is held across the wait, so concurrent callers are admitted one
    at a time in arrival order.
    """

    def __init__(
        self,
        requests_per_minute: int,
        max_daily_requests: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], str] = _utc_today,
    ):
        self.requests_per_minute = requests_per_minute
        self.max_daily_requests = max_daily_requests
        self._clock = clock
        self._sleep = sleep
        self._today = today

        self._lock = threading.Lock()
        self._request_times: Deque[float] = deque()
        self._daily_count = 0
        self._day: Optional[str] = None

    def _prune(self, now: float):
        while self._request_times and self._request_times[0] <= now - WINDOW_SECONDS:
            self._request_times.popleft()

    def wait_for_slot(self):
        """Block until a request may be sent. Raises RateLimitError once the daily cap is hit."""
        with self._lock:
            today = self._today()
            if today != self._day:
                self._day = today
                self._daily_count = 0

            if self._daily_count >= self.max_daily_requests:
                raise RateLimitError(
                    f"Daily request limit ({self.max_daily_requests}) reached",
                    details={"daily_count": self._daily_count, "day": today},
                )

            now = self._clock()
            self._prune(now)
            if len(self._request_times) >= self.requests_per_minute:
                wait = self._request_times[0] + WINDOW_SECONDS - now
                if wait > 0:
                    logger.info(f"Rate limit: waiting {wait:.0f}s...")
                    self._sleep(wait)
                now = self._clock()
                self._prune(now)

            self._request_times.append(now)
            self._daily_count += 1

    def stats(self) -> Dict[str, int]:
        with self._lock:
            now = self._clock()
            recent = sum(1 for t in self._request_times if t > now - WINDOW_SECONDS)
            return {"requests_in_last_minute": recent, "daily_count": self._daily_count}
