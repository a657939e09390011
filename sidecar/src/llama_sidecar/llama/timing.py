"""Timing breakdown and token-rate helpers for inference runs."""
from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = ["TimingRecord", "estimate_tokens", "tokens_per_second"]

# Runs of word characters and single punctuation marks each count as one
# token. This approximates, and does not reproduce, any model tokenizer.
_TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]")


def estimate_tokens(text: str) -> int:
    return len(_TOKEN_PATTERN.findall(text))


def tokens_per_second(tokens: int, seconds: float) -> float:
    if seconds <= 0:
        return 0.0
    return tokens / seconds


@dataclass(frozen=True)
class TimingRecord:
    """Timestamps (monotonic seconds) observed for one process."""

    started_at: float
    ended_at: float
    first_output_at: float | None = None
    last_output_at: float | None = None

    @property
    def total_time(self) -> float:
        return max(0.0, self.ended_at - self.started_at)

    @property
    def setup_time(self) -> float:
        if self.first_output_at is None:
            return self.total_time
        return max(0.0, self.first_output_at - self.started_at)

    @property
    def generation_time(self) -> float:
        if self.first_output_at is None or self.last_output_at is None:
            return 0.0
        return max(0.0, self.last_output_at - self.first_output_at)
