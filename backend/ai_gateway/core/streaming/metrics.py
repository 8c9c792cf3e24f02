"""
Throughput metrics for streamed chat responses.

Token counts here are estimates: whitespace-separated words times 1.3.
No tokenizer is involved, so figures are only comparable with each other.
"""

import math
from dataclasses import dataclass
from typing import Optional

TOKENS_PER_WORD_ESTIMATE = 1.3


def estimate_tokens(text: str) -> int:
    """Estimated token count of text (word count x 1.3, rounded up)."""
    return math.ceil(len(text.split()) * TOKENS_PER_WORD_ESTIMATE)


def tokens_per_second(tokens: int, seconds: float) -> float:
    """Rate rounded to two decimals; zero when either side is non-positive."""
    if tokens <= 0 or seconds <= 0:
        return 0.0
    return round(tokens / seconds, 2)


def format_duration(seconds: float) -> str:
    return f"{max(seconds, 0.0):.2f}"


@dataclass
class FragmentMetrics:
    tokens: int
    duration: str
    mean_tokens_per_second: float
    current_tokens_per_second: float

    def to_dict(self) -> dict:
        return {
            "tokens": self.tokens,
            "duration": self.duration,
            "meanTokensPerSecond": self.mean_tokens_per_second,
            "currentTokensPerSecond": self.current_tokens_per_second,
        }


@dataclass
class ChatStreamSession:
    """
    Rate-tracking state of one streaming chat request.

    Owned by a single relay generator and discarded with it.
    """

    started_at: float
    accumulated: str = ""
    first_fragment_at: Optional[float] = None
    previous_fragment_at: Optional[float] = None
    previous_tokens: int = 0

    def add_fragment(self, text: str, now: float) -> FragmentMetrics:
        """Record a fragment and return the metrics to emit with it."""
        self.accumulated += text
        if self.first_fragment_at is None:
            self.first_fragment_at = now
            self.previous_fragment_at = now

        tokens = estimate_tokens(self.accumulated)
        elapsed = now - self.first_fragment_at

        chunk_seconds = now - self.previous_fragment_at
        new_tokens = tokens - self.previous_tokens
        current_rate = tokens_per_second(new_tokens, chunk_seconds)

        self.previous_fragment_at = now
        self.previous_tokens = tokens

        return FragmentMetrics(
            tokens=tokens,
            duration=format_duration(elapsed),
            mean_tokens_per_second=tokens_per_second(tokens, elapsed),
            current_tokens_per_second=current_rate,
        )

    def final_metrics(self, now: float, eval_count: Optional[int] = None) -> dict:
        """Summary over the whole request, preferring the upstream token count."""
        tokens = eval_count or estimate_tokens(self.accumulated)
        duration = now - self.started_at
        return {
            "tokens": tokens,
            "duration": format_duration(duration),
            "meanTokensPerSecond": tokens_per_second(tokens, duration),
        }
