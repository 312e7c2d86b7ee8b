"""
Retry Policy - exponential backoff for failed webhook processing.

    delay = initial_delay * backoff_multiplier ** (attempt - 1)

capped at max_delay. With the defaults the delays after attempts 1..4 are
60s, 120s, 240s and 480s; the fifth failed attempt is terminal.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import timedelta

from payhook.core.config import settings


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    initial_delay: float = 60.0  # seconds
    max_delay: float = 3600.0  # seconds
    backoff_multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay <= 0 or self.max_delay <= 0:
            raise ValueError("delays must be positive")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be at least 1")

    @classmethod
    def from_settings(cls) -> RetryPolicy:
        return cls(
            max_attempts=settings.WEBHOOK_MAX_ATTEMPTS,
            initial_delay=settings.WEBHOOK_INITIAL_DELAY_SECONDS,
            max_delay=settings.WEBHOOK_MAX_DELAY_SECONDS,
            backoff_multiplier=settings.WEBHOOK_BACKOFF_MULTIPLIER,
        )

    def delay_seconds(self, attempt: int) -> float:
        """
        Delay before the retry that follows the given 1-based attempt.

        Exponents past the point where the cap is reached are never
        computed, so a huge attempt number cannot overflow.
        """
        exponent = max(attempt, 1) - 1
        if self.backoff_multiplier == 1 or self.initial_delay >= self.max_delay:
            return min(self.initial_delay, self.max_delay)

        if exponent >= math.log(self.max_delay / self.initial_delay, self.backoff_multiplier):
            return self.max_delay
        return min(self.initial_delay * self.backoff_multiplier ** exponent, self.max_delay)

    def delay_for(self, attempt: int) -> timedelta:
        return timedelta(seconds=self.delay_seconds(attempt))

    def is_exhausted(self, attempts: int) -> bool:
        return attempts >= self.max_attempts
