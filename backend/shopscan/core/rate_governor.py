"""
Outbound rate governor: a sliding-window counter per (capability, caller).

Each capability ("barcode_scan", "price_comparison", ...) has its own limit.
State is in-process and best-effort; it does not survive a restart.
"""

import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Mapping, Optional, Tuple

from shopscan.core.config import Settings
from shopscan.core.errors import PreconditionViolation

DEFAULT_CALLER = "default"

BARCODE_SCAN = "barcode_scan"
PRICE_COMPARISON = "price_comparison"


@dataclass(frozen=True)
class RateLimit:
    max_requests: int
    window_ms: int


def _now_ms() -> float:
    return time.monotonic() * 1000.0


class RateGovernor:
    def __init__(
        self,
        limits: Mapping[str, RateLimit],
        clock: Callable[[], float] = _now_ms,
    ):
        """
        Args:
            limits: capability key -> RateLimit
            clock: returns the current time in milliseconds
        """
        self._limits: Dict[str, RateLimit] = dict(limits)
        self._clock = clock
        self._requests: Dict[Tuple[str, str], Deque[float]] = {}
        self._lock = threading.Lock()
        # Stale keys are swept at most once per shortest window
        self._sweep_interval_ms = min((lim.window_ms for lim in self._limits.values()), default=0)
        self._last_sweep: Optional[float] = None

    def tracked_keys(self) -> int:
        """Number of (capability, caller) keys currently tracked."""
        with self._lock:
            return len(self._requests)

    def _limit_for(self, capability_key: str) -> RateLimit:
        try:
            return self._limits[capability_key]
        except KeyError:
            raise PreconditionViolation(f"No rate limit configured for capability '{capability_key}'")

    def _prune(self, timestamps: Deque[float], now: float, window_ms: int) -> None:
        while timestamps and now - timestamps[0] >= window_ms:
            timestamps.popleft()

    def _sweep(self, now: float) -> None:
        if self._last_sweep is not None and now - self._last_sweep < self._sweep_interval_ms:
            return
        self._last_sweep = now
        stale = [
            key
            for key, timestamps in self._requests.items()
            if not timestamps or now - timestamps[-1] >= self._limits[key[0]].window_ms
        ]
        for key in stale:
            del self._requests[key]

    def admit(self, caller_key: Optional[str], capability_key: str) -> bool:
        """
        Record one operation for caller_key and return True, or return False
        (recording nothing) when the window is already full.
        """
        limit = self._limit_for(capability_key)
        key = (capability_key, caller_key or DEFAULT_CALLER)

        with self._lock:
            now = self._clock()
            self._sweep(now)
            timestamps = self._requests.setdefault(key, deque())
            self._prune(timestamps, now, limit.window_ms)

            if len(timestamps) >= limit.max_requests:
                return False

            timestamps.append(now)
            return True

    def retry_after_seconds(self, caller_key: Optional[str], capability_key: str) -> int:
        """Seconds until the oldest recorded operation leaves the window (0 if admissible now)."""
        limit = self._limit_for(capability_key)
        key = (capability_key, caller_key or DEFAULT_CALLER)

        with self._lock:
            now = self._clock()
            timestamps = self._requests.get(key)
            if not timestamps:
                return 0
            self._prune(timestamps, now, limit.window_ms)
            if not timestamps:
                del self._requests[key]
                return 0
            if len(timestamps) < limit.max_requests:
                return 0
            remaining_ms = limit.window_ms - (now - timestamps[0])
            return max(1, math.ceil(remaining_ms / 1000.0))

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()


def build_rate_governor(cfg: Settings, clock: Callable[[], float] = _now_ms) -> RateGovernor:
    return RateGovernor(
        {
            BARCODE_SCAN: RateLimit(cfg.BARCODE_SCAN_MAX_REQUESTS, cfg.BARCODE_SCAN_WINDOW_MS),
            PRICE_COMPARISON: RateLimit(cfg.PRICE_COMPARISON_MAX_REQUESTS, cfg.PRICE_COMPARISON_WINDOW_MS),
        },
        clock=clock,
    )
