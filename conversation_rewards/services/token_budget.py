"""Utilities for bounding response token budgets."""

from __future__ import annotations

from math import ceil
from typing import Final

from conversation_rewards.domain.evaluation_constants import MAX_RESPONSE_TOKENS

RESPONSE_CHAR_PER_TOKEN: Final[int] = 1
"""Every token spans at least one character, so response sizing never undercounts."""


def cap_response_tokens(expected_response: str, limit: int = MAX_RESPONSE_TOKENS) -> int:
    """Return the output budget for a response shaped like ``expected_response``.

    Example:
        >>> cap_response_tokens('{"1": 0.5}')
        10
        >>> cap_response_tokens("x" * 50_000)
        16384
    """

    if limit <= 0:
        raise ValueError("token limit must be positive")
    needed = max(1, ceil(len(expected_response) / RESPONSE_CHAR_PER_TOKEN))
    return min(needed, limit)


__all__ = [
    "RESPONSE_CHAR_PER_TOKEN",
    "cap_response_tokens",
]
