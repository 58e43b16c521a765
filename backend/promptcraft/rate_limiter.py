from __future__ import annotations

import logging
import math
import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional, Tuple

from .client_identity import UNKNOWN_CLIENT
from .config import Settings

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass(frozen=True)
class RateLimitConfig:
    """Window parameters for the admission gate, fixed at startup."""

    window_ms: int
    max_per_window: int
    max_keys: int = 10_000
    fail_open: bool = True

    def __post_init__(self) -> None:
        if self.window_ms <= 0:
            raise ValueError("window_ms must be positive.")
        if self.max_per_window <= 0:
            raise ValueError("max_per_window must be positive.")
        if self.max_keys <= 0:
            raise ValueError("max_keys must be positive.")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimitConfig":
        return cls(
            window_ms=settings.rate_limit_window_ms,
            max_per_window=settings.rate_limit_max,
            max_keys=settings.rate_limit_max_keys,
            fail_open=settings.rate_limit_fail_open,
        )


@dataclass
class Bucket:
    count: int
    reset_at: float


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int

    def headers(self) -> Dict[str, str]:
        headers = {
            "x-ratelimit-limit": str(self.limit),
            "x-ratelimit-remaining": str(self.remaining),
            "x-ratelimit-reset": str(self.reset_seconds),
        }
        if not self.allowed:
            headers["retry-after"] = str(self.reset_seconds)
        return headers


class BucketStore:
    """Fixed-window counters per client key.

    Buckets live in an ``OrderedDict`` kept in ``reset_at`` order: a bucket
    moves to the end whenever it starts a new window. That lets every
    admission drop expired buckets from the front and, when the map grows
    past ``max_keys``, evict the bucket closest to expiry.
    All access goes through one lock, so check-and-increment is atomic.
    """

    def __init__(self, config: RateLimitConfig) -> None:
        self._config = config
        self._buckets: "OrderedDict[str, Bucket]" = OrderedDict()
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def admit(self, key: str, now: float) -> bool:
        with self._lock:
            return self._admit(key, now)

    def remaining(self, key: str) -> int:
        with self._lock:
            return self._remaining(key)

    def reset_in_ms(self, key: str, now: float) -> int:
        with self._lock:
            return self._reset_in_ms(key, now)

    def admit_with_metadata(self, key: str, now: float) -> Tuple[bool, int, int]:
        """Admit and read ``(allowed, remaining, reset_in_ms)`` under one lock."""
        with self._lock:
            allowed = self._admit(key, now)
            return allowed, self._remaining(key), self._reset_in_ms(key, now)

    def bucket(self, key: str) -> Optional[Bucket]:
        with self._lock:
            bucket = self._buckets.get(key)
            return Bucket(bucket.count, bucket.reset_at) if bucket else None

    def _admit(self, key: str, now: float) -> bool:
        self._sweep(now)
        bucket = self._buckets.get(key)
        if bucket is None or now > bucket.reset_at:
            self._buckets[key] = Bucket(count=1, reset_at=now + self._config.window_ms)
            self._buckets.move_to_end(key)
            self._evict_overflow()
            return True
        if bucket.count >= self._config.max_per_window:
            return False
        bucket.count += 1
        return True

    def _remaining(self, key: str) -> int:
        bucket = self._buckets.get(key)
        if bucket is None:
            return max(0, self._config.max_per_window - 1)
        return max(0, self._config.max_per_window - bucket.count)

    def _reset_in_ms(self, key: str, now: float) -> int:
        bucket = self._buckets.get(key)
        if bucket is None:
            return self._config.window_ms
        return max(0, math.ceil(bucket.reset_at - now))

    def _sweep(self, now: float) -> None:
        while self._buckets:
            key, oldest = next(iter(self._buckets.items()))
            if now <= oldest.reset_at:
                break
            del self._buckets[key]

    def _evict_overflow(self) -> None:
        while len(self._buckets) > self._config.max_keys:
            key, _ = self._buckets.popitem(last=False)
            logger.warning("Rate limit store full (%d keys); evicted %s", self._config.max_keys, key)


class AdmissionGate:
    """Entry point used by request handlers to admit or defer a client."""

    def __init__(
        self,
        config: RateLimitConfig,
        clock: Clock = monotonic_ms,
        store: BucketStore | None = None,
    ) -> None:
        self.config = config
        self._clock = clock
        self._store = store if store is not None else BucketStore(config)

    @property
    def limit(self) -> int:
        return self.config.max_per_window

    def is_allowed(self, key: str | None) -> bool:
        return self._store.admit(key or UNKNOWN_CLIENT, self._clock())

    def headers(self, key: str | None) -> Dict[str, int]:
        """A saturated key always reports at least one second until reset."""
        key = key or UNKNOWN_CLIENT
        now = self._clock()
        remaining = self._store.remaining(key)
        reset_seconds = math.ceil(self._store.reset_in_ms(key, now) / 1000)
        if remaining == 0:
            reset_seconds = max(1, reset_seconds)
        return {
            "limit": self.limit,
            "remaining": remaining,
            "reset_seconds": reset_seconds,
        }

    def check(self, key: str | None) -> AdmissionDecision:
        """Admit ``key`` and return the decision with its metadata in one step.

        An internal failure is logged and resolved by ``config.fail_open``
        rather than raised into the request path.
        """
        key = key or UNKNOWN_CLIENT
        try:
            allowed, remaining, reset_ms = self._store.admit_with_metadata(key, self._clock())
        except Exception:
            logger.exception(
                "Admission gate failed for %s; failing %s",
                key,
                "open" if self.config.fail_open else "closed",
            )
            return self._fallback_decision()

        reset_seconds = math.ceil(reset_ms / 1000)
        if not allowed:
            reset_seconds = max(1, reset_seconds)
            logger.info("Rate limited %s (resets in %ds)", key, reset_seconds)
        return AdmissionDecision(
            allowed=allowed,
            limit=self.limit,
            remaining=remaining,
            reset_seconds=reset_seconds,
        )

    def _fallback_decision(self) -> AdmissionDecision:
        window_seconds = max(1, math.ceil(self.config.window_ms / 1000))
        if self.config.fail_open:
            return AdmissionDecision(
                allowed=True,
                limit=self.limit,
                remaining=max(0, self.limit - 1),
                reset_seconds=window_seconds,
            )
        return AdmissionDecision(
            allowed=False,
            limit=self.limit,
            remaining=0,
            reset_seconds=window_seconds,
        )
