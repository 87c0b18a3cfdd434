from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class RetryBudget:
    max_retries: int
    interval_seconds: float
    attempts: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_retries

    def consume(self) -> None:
        self.attempts += 1
