"""Retry settings for order persistence."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Exponential backoff: 1 s, 2 s, 4 s, … capped at `backoff_max`."""
    attempts: int = 3
    backoff_initial: float = 1.0
    backoff_factor: float = 2.0
    backoff_max: float = 30.0

    def delay(self, attempt: int) -> float:
        """Sleep after failed attempt number `attempt` (1-based)."""
        return min(self.backoff_max, self.backoff_initial * self.backoff_factor ** (attempt - 1))


__all__ = ("RetryPolicy",)
