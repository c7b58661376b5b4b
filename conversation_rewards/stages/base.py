"""Shared stage variants."""

from __future__ import annotations

from typing import Any, cast

from conversation_rewards.config.logging_config import get_logger
from conversation_rewards.domain.models import ActivitySnapshot, Result

logger = cast(Any, get_logger(__name__))


class DisabledStage:
    """Stand-in for a stage whose configuration did not validate.

    Transforming through it leaves the result untouched.
    """

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason

    @property
    def enabled(self) -> bool:
        return False

    async def transform(self, snapshot: ActivitySnapshot, result: Result) -> Result:
        logger.warning("disabled_stage_invoked", stage=self.name, reason=self.reason)
        return result

    def __repr__(self) -> str:
        return f"DisabledStage(name={self.name!r}, reason={self.reason!r})"
