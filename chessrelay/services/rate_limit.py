"""Sliding-window request limits per caller."""

import logging
import time
from collections import defaultdict, deque
from typing import Callable

from chessrelay.core.config import RateLimit
from chessrelay.core.exceptions import RateLimitedError

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Remembers the timestamps of recent requests for every (bucket, caller) pair.
    ----
    A request is allowed while fewer than `max_requests` earlier requests fall inside the window.
    Rejected requests are not recorded, so a caller that backs off recovers after one window.
    """

    def __init__(
        self,
        limits: dict[str, RateLimit],
        now: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limits = limits
        self.now = now
        self._hits: dict[tuple[str, str], deque[float]] = defaultdict(deque)

    def check(self, bucket: str, caller: str) -> None:
        """Record one request or raise RateLimitedError if the caller is over budget."""
        limit = self.limits[bucket]
        now = self.now()
        hits = self._hits[(bucket, caller)]

        # Prune requests that left the window
        while hits and now - hits[0] >= limit.window_seconds:
            hits.popleft()

        if len(hits) >= limit.max_requests:
            logger.warning("Rate limit %r exceeded by %s", bucket, caller)
            raise RateLimitedError("Too many requests. Please slow down.")
        hits.append(now)

    def prune(self) -> None:
        """Drop callers that have no request left inside their window."""
        now = self.now()
        for (bucket, caller), hits in list(self._hits.items()):
            window = self.limits[bucket].window_seconds
            if not hits or now - hits[-1] >= window:
                del self._hits[(bucket, caller)]
