"""Constants for relevance evaluation.

Relevance values weigh an existing reward; the limits below bound what the
evaluator accepts and requests from the relevance scoring service.
"""

from typing import Final

DEFAULT_RELEVANCE: Final[float] = 1.0
"""Relevance used when neither a fixed multiplier nor a service score exists.

Business rule: a comment the service failed to score keeps its full reward
rather than being zeroed out.
"""

DEFAULT_OPENAI_MODEL: Final[str] = "gpt-4o-2024-08-06"
"""Model used for relevance scoring when the configuration names none."""

MAX_RESPONSE_TOKENS: Final[int] = 16384
"""Hard ceiling for the output token budget requested from the service."""

DUMMY_RELEVANCE: Final[float] = 0.5
"""Placeholder score used to build the sizing response for token estimation."""

MIN_RELEVANCE: Final[float] = 0.0
MAX_RELEVANCE: Final[float] = 1.0
