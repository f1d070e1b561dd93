# ─────────────────────────────────────────────────────────────────────────────
# Rate Windows — fixed-window request counters per client key
# ─────────────────────────────────────────────────────────────────────────────
# A window lives from its first hit until reset_at; the first hit at or after
# reset_at starts a fresh one. Counting is fixed-window, so a client can land
# up to 2 × max_requests inside any 60 s span that straddles a boundary.
#
# Thread-safe: sync routes run in a thread pool, so hit() holds a lock across
# the reset → increment → compare sequence.
#
# Bounded (probabilistically): each hit has a sweep_probability chance of
# deleting windows whose reset_at is more than two window lengths in the past.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import math
import random
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class RateWindow:
    """Request count for one key within one fixed window."""

    count: int
    reset_at: float

    def expired(self, now: float) -> bool:
        return now >= self.reset_at


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of recording one hit."""

    allowed: bool
    count: int
    reset_at: float
    retry_after: int  # whole seconds until reset_at, rounded up


class RateWindowStore(Protocol):
    """Storage for rate windows. Swap in a shared store for multi-process deployments."""

    def hit(self, key: str) -> RateLimitDecision: ...

    def get(self, key: str) -> RateWindow | None: ...

    def sweep(self) -> int: ...

    def __len__(self) -> int: ...


class InMemoryRateWindowStore:
    """Process-local rate window registry."""

    def __init__(
        self,
        window_seconds: float = 60.0,
        max_requests: int = 100,
        sweep_probability: float = 0.01,
        clock: Callable[[], float] = time.monotonic,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._sweep_probability = sweep_probability
        self._clock = clock
        self._rand = rand
        self._windows: dict[str, RateWindow] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> RateLimitDecision:
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or window.expired(now):
                window = RateWindow(count=0, reset_at=now + self.window_seconds)
                self._windows[key] = window

            window.count += 1
            decision = RateLimitDecision(
                allowed=window.count <= self.max_requests,
                count=window.count,
                reset_at=window.reset_at,
                retry_after=max(0, math.ceil(window.reset_at - now)),
            )

            if self._rand() < self._sweep_probability:
                self._sweep_locked(now)

        return decision

    def get(self, key: str) -> RateWindow | None:
        with self._lock:
            window = self._windows.get(key)
            return None if window is None else RateWindow(window.count, window.reset_at)

    def sweep(self) -> int:
        """Delete stale windows now. Returns how many were removed."""
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        cutoff = now - 2 * self.window_seconds
        stale = [key for key, window in self._windows.items() if window.reset_at < cutoff]
        for key in stale:
            del self._windows[key]
        if stale:
            logger.debug("rate_windows_swept", removed=len(stale), remaining=len(self._windows))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
