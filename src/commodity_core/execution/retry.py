"""Retry policy for failed queue items."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from commodity_core.config.schema import RetryConfig


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts an execution gets and how long to wait between them.

    ``backoff_s[n - 1]`` is the delay before attempt ``n + 1``; the last
    entry repeats once the schedule runs out.
    """

    max_attempts: int = 3
    backoff_s: tuple[float, ...] = (30.0, 120.0, 600.0)

    @classmethod
    def from_config(cls, config: RetryConfig) -> RetryPolicy:
        return cls(max_attempts=config.max_attempts, backoff_s=tuple(config.backoff_s))

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts

    def delay(self, attempt: int) -> timedelta:
        if not self.backoff_s:
            return timedelta(0)
        idx = min(max(attempt, 1), len(self.backoff_s)) - 1
        return timedelta(seconds=self.backoff_s[idx])
