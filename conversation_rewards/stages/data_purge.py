"""Data purge stage.

Turns raw comment bodies into scorable single-line text and seeds each known
contributor's comment list.
"""

from __future__ import annotations

from typing import Any, cast

from conversation_rewards.config.incentives import (
    DataPurgeConfig,
    validate_data_purge_config,
)
from conversation_rewards.config.logging_config import get_logger
from conversation_rewards.domain.exceptions import ConfigurationError
from conversation_rewards.domain.models import ActivitySnapshot, Result, ScoredComment
from conversation_rewards.services.comment_purger import purge_comment_body
from conversation_rewards.stages.base import DisabledStage

logger = cast(Any, get_logger(__name__))


class DataPurgeStage:
    """Removes quoted text and bot commands from comments."""

    name = "data_purge"

    def __init__(self, config: DataPurgeConfig) -> None:
        self._configuration = config

    @property
    def enabled(self) -> bool:
        return True

    async def transform(self, snapshot: ActivitySnapshot, result: Result) -> Result:
        """Append one purged comment per scorable raw comment.

        Comments without body or author, or whose author is not a key of
        ``result``, are skipped.
        """
        kept = 0
        skipped = 0
        for comment in snapshot.comments:
            if not comment.body or not comment.author_login:
                skipped += 1
                continue
            record = result.get(comment.author_login)
            if record is None:
                skipped += 1
                continue

            content = purge_comment_body(comment.body)
            if not content:
                skipped += 1
                continue

            record.comments.append(
                ScoredComment(
                    id=comment.id,
                    content=content,
                    url=comment.url,
                    type=comment.origin_type,
                )
            )
            kept += 1

        logger.info("data_purge_complete", comments_kept=kept, comments_skipped=skipped)
        return result


def build_data_purge_stage(raw_config: Any) -> DataPurgeStage | DisabledStage:
    """Build the stage, or a disabled stand-in if ``raw_config`` is invalid."""
    try:
        config = validate_data_purge_config(raw_config)
    except ConfigurationError as e:
        logger.warning("data_purge_stage_disabled", error=str(e))
        return DisabledStage(DataPurgeStage.name, str(e))
    return DataPurgeStage(config)


__all__ = ["DataPurgeStage", "build_data_purge_stage"]
