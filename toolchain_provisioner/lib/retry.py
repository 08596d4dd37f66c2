from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 2.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True


class RetryPolicy:
    """Bounded retry with exponential backoff.

    delay = base_delay * exponential_base ** attempt, capped at max_delay,
    optionally scaled into [0.5, 1.0) by jitter.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or RetryConfig()
        self.sleep = sleep

    def execute(
        self,
        func: Callable[[], T],
        *,
        retryable: Callable[[Exception], bool],
        on_retry: Optional[Callable[[Exception, int, float], None]] = None,
    ) -> T:
        attempts = max(1, int(self.config.max_attempts))
        for attempt in range(attempts):
            try:
                return func()
            except Exception as e:
                if not retryable(e) or attempt == attempts - 1:
                    raise
                delay = self.delay_for(attempt)
                if on_retry:
                    on_retry(e, attempt + 1, delay)
                logger.warning(
                    "Attempt %d/%d failed (%s); retrying in %.1fs",
                    attempt + 1,
                    attempts,
                    e,
                    delay,
                )
                self.sleep(delay)
        raise RuntimeError("unreachable")

    def delay_for(self, attempt: int) -> float:
        delay = self.config.base_delay * (self.config.exponential_base**attempt)
        delay = min(delay, self.config.max_delay)
        if self.config.jitter:
            delay = delay * (0.5 + random.random() * 0.5)
        return delay
