"""
Rate Limiter — fixed-window request counting per client IP for public endpoints.

Counters live in process memory, so each worker limits on its own. Expired
windows are dropped as requests arrive and the number of tracked clients is
capped, so a scan from many addresses cannot grow the table without bound.
"""
import logging
import threading
import time
from typing import Dict, List, Optional, Tuple

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

DEFAULT_MAX_CLIENTS = 10_000


class FixedWindowLimiter:
    """Allows ``requests`` hits per key in each ``window``-second window."""

    def __init__(self, requests: int, window: int, max_clients: int = DEFAULT_MAX_CLIENTS):
        self.requests = requests
        self.window = window
        self.max_clients = max_clients
        self._windows: Dict[str, Tuple[float, int]] = {}   # key -> (window_start, count)
        self._last_prune = 0.0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    def hit(self, key: str, now: Optional[float] = None) -> Optional[int]:
        """Count one request for ``key``.

        Returns None when the request is allowed, otherwise the seconds until
        the key's window resets.
        """
        now = time.monotonic() if now is None else now
        with self._lock:
            self._prune(now)

            start, count = self._windows.get(key, (now, 0))
            if now - start >= self.window:
                start, count = now, 0
            if count >= self.requests:
                return max(1, int(self.window - (now - start)))

            if key not in self._windows and len(self._windows) >= self.max_clients:
                self._evict_oldest()
            self._windows[key] = (start, count + 1)
            return None

    def _prune(self, now: float) -> None:
        if now - self._last_prune < self.window and len(self._windows) < self.max_clients:
            return
        self._last_prune = now
        expired = [k for k, (start, _) in self._windows.items() if now - start >= self.window]
        for k in expired:
            del self._windows[k]

    def _evict_oldest(self) -> None:
        # still full after pruning: forget the client whose window started first
        oldest = min(self._windows, key=lambda k: self._windows[k][0])
        del self._windows[oldest]
        logger.warning("Rate limiter full (%d clients); dropped the oldest window", self.max_clients)

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()
            self._last_prune = 0.0


_limiters: List[FixedWindowLimiter] = []


def rate_limit(requests: int, window: int, scope: str = "default", max_clients: int = DEFAULT_MAX_CLIENTS):
    """
    Dependency for rate limiting by client IP.
    Example: Depends(rate_limit(requests=5, window=60, scope="verify"))
    """
    limiter = FixedWindowLimiter(requests, window, max_clients)
    _limiters.append(limiter)

    def dependency(request: Request) -> bool:
        ip = request.client.host if request.client else "unknown"
        retry_after = limiter.hit(ip)
        if retry_after is not None:
            logger.info("Rate limit hit on %s for %s", scope, ip)
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
                headers={"Retry-After": str(retry_after)},
            )
        return True

    return dependency


def reset_rate_limits() -> None:
    """Clear every limiter's counters."""
    for limiter in _limiters:
        limiter.clear()
