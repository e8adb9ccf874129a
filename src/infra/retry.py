from __future__ import annotations

import random

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)


class _FixedWithFractionalJitter(wait_fixed):
    """Wait ``base * (1 + uniform(jitter))`` seconds, clamped to ``[0, max_wait]``."""

    def __init__(self, base: float, max_wait: float, jitter: tuple[float, float]) -> None:
        super().__init__(base)
        self._base = float(base)
        self._max = float(max_wait)
        self._jitter = jitter

    def __call__(self, retry_state: object) -> float:
        low, high = self._jitter
        factor = 1.0 + random.uniform(low, high)
        return max(0.0, min(self._base * factor, self._max))


def bounded_retry(
    *,
    max_attempts: int = 3,
    wait_seconds: float = 0.05,
    max_wait: float = 1.0,
    jitter_range: tuple[float, float] = (-0.2, 0.2),
    retry_on: type[Exception] | tuple[type[Exception], ...] = Exception,
) -> AsyncRetrying:
    """Build an ``AsyncRetrying`` controller with a fixed, jittered wait.

    Concurrent writers that collide on the same key tend to retry in lock-step;
    the jitter spreads them apart. The last exception is re-raised once
    ``max_attempts`` is reached.

    Usage::

        async for attempt in bounded_retry(max_attempts=3, retry_on=ConflictError):
            with attempt:
                await do_work()
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=_FixedWithFractionalJitter(wait_seconds, max_wait, jitter_range),
        retry=retry_if_exception_type(retry_on),
        reraise=True,
    )


__all__ = ["bounded_retry"]
