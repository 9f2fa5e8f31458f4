from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from podleader.models import RetryContext


@runtime_checkable
class RetryStrategy(Protocol):
    """Protocol for pacing repeated acquisition attempts."""

    def next_delay_s(self, ctx: RetryContext) -> float | None:
        """Return seconds to wait before re-reading the lock, or None to give up."""
        ...


@dataclass(frozen=True, slots=True)
class FixedInterval:
    """Constant delay between attempts, retried forever."""

    interval_s: float = 1.0

    def next_delay_s(self, ctx: RetryContext) -> float:
        return max(self.interval_s, 0.0)


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Exponential back-off: min(base * multiplier^(attempt-1), max_s)."""

    base_s: float = 1.0
    max_s: float = 30.0
    multiplier: float = 2.0

    def next_delay_s(self, ctx: RetryContext) -> float:
        exponent = max(ctx.attempt - 1, 0)
        return max(min(self.base_s * self.multiplier**exponent, self.max_s), 0.0)


@dataclass(slots=True)
class DecorrelatedJitter:
    """AWS-style decorrelated jitter: min(max_s, uniform(base_s, prev_delay * 3))."""

    base_s: float = 1.0
    max_s: float = 30.0
    _rng: random.Random = field(default_factory=random.Random)
    _prev_delay: float | None = field(default=None, init=False)

    def next_delay_s(self, ctx: RetryContext) -> float:
        prev = self._prev_delay if self._prev_delay is not None else self.base_s
        delay = min(self.max_s, self._rng.uniform(self.base_s, prev * 3))
        self._prev_delay = delay
        return delay


@dataclass(frozen=True, slots=True)
class LimitedAttempts:
    """Wraps another strategy and gives up once max_attempts creates have conflicted."""

    inner: RetryStrategy
    max_attempts: int

    def next_delay_s(self, ctx: RetryContext) -> float | None:
        if ctx.attempt >= self.max_attempts:
            return None
        return self.inner.next_delay_s(ctx)
