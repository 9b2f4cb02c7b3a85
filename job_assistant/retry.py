"""Retry helpers: the blocking decorator, an async retry policy and the failure streak."""
from __future__ import annotations

import asyncio
import functools
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Tuple, Type

logger = logging.getLogger(__name__)


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
) -> Callable:
    """Decorator: retries a blocking function with exponential backoff."""

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_exc: BaseException | None = None
            for attempt in range(1, max_attempts + 1):
                try:
                    return fn(*args, **kwargs)
                except retryable as exc:
                    last_exc = exc
                    if attempt == max_attempts:
                        logger.error(
                            "%s failed after %d attempts: %s",
                            fn.__qualname__,
                            max_attempts,
                            exc,
                        )
                        raise
                    delay = min(
                        base_delay * (backoff_factor ** (attempt - 1)), max_delay
                    )
                    if jitter:
                        delay *= 0.5 + random.random()
                    logger.warning(
                        "%s attempt %d/%d failed (%s), retrying in %.1fs",
                        fn.__qualname__,
                        attempt,
                        max_attempts,
                        exc,
                        delay,
                    )
                    time.sleep(delay)
            raise last_exc  # type: ignore[misc]

        return wrapper

    return decorator


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try, and how long to wait after each failed attempt.

    ``backoff_schedule[i]`` is the pause after attempt ``i + 1``; attempts past
    the end of the schedule reuse its last value.
    """

    max_attempts: int = 3
    backoff_schedule: Tuple[float, ...] = ()

    @classmethod
    def linear(cls, max_attempts: int, step: float) -> "RetryPolicy":
        return cls(max_attempts, tuple(step * i for i in range(1, max_attempts)))

    @classmethod
    def exponential(
        cls,
        max_attempts: int,
        base_delay: float,
        factor: float = 2.0,
        max_delay: float = 30.0,
    ) -> "RetryPolicy":
        schedule = tuple(
            min(base_delay * factor ** (i - 1), max_delay) for i in range(1, max_attempts)
        )
        return cls(max_attempts, schedule)

    def delay_for(self, attempt: int) -> float:
        if not self.backoff_schedule:
            return 0.0
        index = min(max(attempt, 1), len(self.backoff_schedule)) - 1
        return self.backoff_schedule[index]

    async def run(
        self,
        fn: Callable[..., Awaitable[Any]],
        *args: Any,
        retryable: Tuple[Type[BaseException], ...] = (Exception,),
        label: str = "",
        **kwargs: Any,
    ) -> Any:
        """Await ``fn`` until it succeeds or attempts run out; re-raises the last error."""
        name = label or getattr(fn, "__qualname__", repr(fn))
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await fn(*args, **kwargs)
            except retryable as exc:
                if attempt >= self.max_attempts:
                    logger.warning("%s gave up after %d attempt(s): %s", name, attempt, exc)
                    raise
                delay = self.delay_for(attempt)
                logger.debug(
                    "%s attempt %d/%d failed (%s), retrying in %.1fs",
                    name, attempt, self.max_attempts, exc, delay,
                )
                await asyncio.sleep(delay)
        raise RuntimeError("RetryPolicy.run needs max_attempts >= 1")


@dataclass
class FailureStreak:
    """Counts consecutive failures; past ``threshold`` a cooldown is due and the count resets."""

    threshold: int = 3
    cooldown: float = 5.0
    count: int = 0

    def record_success(self) -> None:
        self.count = 0

    def record_failure(self) -> bool:
        self.count += 1
        if self.count > self.threshold:
            self.count = 0
            return True
        return False
