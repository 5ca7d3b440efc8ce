"""
Fixed-interval rate limiter

Spaces out successive calls so that at least `min_interval` seconds pass
between them. Calls are strictly sequential; the limiter never runs work
concurrently, it only sleeps.
"""

import time
import logging

logger = logging.getLogger(__name__)


class RateLimiter:
    """Enforce a minimum delay between successive operations"""

    def __init__(self, min_interval: float = 0.2):
        self.min_interval = max(0.0, min_interval)
        self._last_call = None
        self.waits = 0

    def wait(self):
        """Block until the next operation is allowed, then mark it as started"""
        now = time.monotonic()
        if self._last_call is not None and self.min_interval > 0:
            wait_time = self.min_interval - (now - self._last_call)
            if wait_time > 0:
                self.waits += 1
                logger.debug(f"Rate limiter sleeping {wait_time:.3f}s")
                time.sleep(wait_time)
        self._last_call = time.monotonic()
