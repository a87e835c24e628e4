"""Fixed-window per-client rate limiting behind an injectable store."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

logger = logging.getLogger("phonepixie.ratelimit")


@dataclass
class RateLimitWindow:
    """Mutable counter for one client key inside the current window."""
    client_key: str
    count: int
    window_start: float
    limit: int
    window_sec: float
    last_seen: float

    @property
    def reset_at(self) -> float:
        return self.window_start + self.window_sec


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of one check; rendered as X-RateLimit-* headers."""
    allowed: bool
    limit: int
    remaining: int
    reset_at: int

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


class RateLimitStore(Protocol):
    """Counter backend; must apply check-and-increment atomically per key."""

    def check(self, client_key: str) -> RateLimitDecision:
        ...


class InMemoryRateLimitStore:
    """Process-local fixed-window counters guarded by a single mutex."""

    def __init__(
        self,
        limit: int = 20,
        window_sec: float = 60.0,
        ttl_sec: float = 600.0,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """Purpose: Configure limits and the inactivity eviction TTL.
        Inputs/Outputs: Inputs are the per-window limit, window length, TTL, and an
            optional clock (defaults to time.time); no return value.
        Side Effects / State: Creates an empty window map and its lock.
        Dependencies: threading.Lock.
        Failure Modes: None.
        If Removed: The orchestrator has no abuse guard.
        Testing Notes: Inject a fake clock to step across window boundaries.
        """
        # All window state lives behind one lock.
        self._limit = max(1, limit)
        self._window_sec = window_sec
        self._ttl_sec = ttl_sec
        self._clock = clock or time.time
        self._windows: Dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()
        self._last_sweep = self._clock()

    def check(self, client_key: str) -> RateLimitDecision:
        """Purpose: Count one request for a client and decide if it may proceed.
        Inputs/Outputs: Input is the client key; output is the decision with limit,
            remaining (never negative), and the window reset time in epoch seconds.
        Side Effects / State: Creates, resets, or increments the client's window;
            occasionally evicts idle windows.
        Dependencies: The injected clock.
        Failure Modes: None. A refused request does not consume capacity.
        If Removed: Requests are never throttled.
        Testing Notes: limit requests pass; the next one in the window is refused.
        """
        # Reset only when the window has fully elapsed, then check before counting.
        with self._lock:
            now = self._clock()
            self._sweep(now)
            window = self._windows.get(client_key)
            if window is None or now >= window.reset_at:
                window = RateLimitWindow(
                    client_key=client_key,
                    count=0,
                    window_start=now,
                    limit=self._limit,
                    window_sec=self._window_sec,
                    last_seen=now,
                )
                self._windows[client_key] = window
            window.last_seen = now
            allowed = window.count < window.limit
            if allowed:
                window.count += 1
            decision = RateLimitDecision(
                allowed=allowed,
                limit=window.limit,
                remaining=max(0, window.limit - window.count),
                reset_at=int(window.reset_at),
            )
        if not allowed:
            logger.warning("rate limited client=%s reset_at=%s", client_key, decision.reset_at)
        return decision

    def _sweep(self, now: float) -> None:
        # Caller holds the lock; runs at most once per TTL.
        if now - self._last_sweep < self._ttl_sec:
            return
        self._last_sweep = now
        expired = [key for key, window in self._windows.items() if now - window.last_seen >= self._ttl_sec]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug("evicted idle windows count=%s", len(expired))

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


def client_key_from(forwarded_for: Optional[str], peer_host: Optional[str]) -> str:
    """First X-Forwarded-For address, else the socket peer, else "anonymous"."""
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return peer_host or "anonymous"
