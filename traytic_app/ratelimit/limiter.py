"""
Per-site admission control for the public collect endpoint.

Fixed window, in memory, per process:
- At most `max_requests` admits per site per window.
- A window starts on the first admit after the previous one expired, so a
  burst straddling a boundary can see up to 2x the nominal rate.
- Not shared between processes; N instances allow N x the limit.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


logger = logging.getLogger(__name__)


@dataclass
class WindowEntry:
    count: int
    expires_at: float


class FixedWindowRateLimiter:
    """
    Fixed-window rate limiter keyed by site id.

    Owns its background sweep task; construct one per process and inject it
    where needed (tests construct their own with a fake clock).
    """

    def __init__(
        self,
        max_requests: int = 200,
        window_seconds: float = 60,
        sweep_interval_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._entries: Dict[str, WindowEntry] = {}
        self._lock = threading.Lock()
        self._sweep_task: Optional[asyncio.Task] = None

    def admit(self, site_id: str) -> bool:
        """
        Count one request for a site.

        Returns:
            True if the request is within the site's limit
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(site_id)
            if entry is None or now > entry.expires_at:
                self._entries[site_id] = WindowEntry(count=1, expires_at=now + self.window_seconds)
                return True
            if entry.count >= self.max_requests:
                return False
            entry.count += 1
            return True

    def sweep(self) -> int:
        """Remove expired windows. Returns the number of entries removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def _sweep_forever(self):
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            removed = self.sweep()
            if removed:
                logger.debug("Rate limiter swept %d expired entries", removed)

    def start(self):
        """Start the periodic sweep on the running event loop"""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_forever())

    async def stop(self):
        """Cancel the sweep task"""
        if self._sweep_task is None:
            return
        self._sweep_task.cancel()
        try:
            await self._sweep_task
        except asyncio.CancelledError:
            pass
        self._sweep_task = None
