"""Reward pipeline orchestration.

Stages run in a fixed order over one ``(snapshot, result)`` pair. The purge
stage must precede the evaluator, which scores purged content rather than
raw bodies.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, cast

from conversation_rewards.config.logging_config import get_logger, setup_logging
from conversation_rewards.config.settings import Settings, get_settings
from conversation_rewards.domain.exceptions import ConversationRewardsError
from conversation_rewards.domain.models import ActivitySnapshot, Result
from conversation_rewards.domain.protocols import (
    PipelineStage,
    RelevanceScorerProtocol,
)
from conversation_rewards.observability.run_context import pipeline_run_scope
from conversation_rewards.stages.content_evaluator import (
    build_content_evaluator_stage,
)
from conversation_rewards.stages.data_purge import build_data_purge_stage

logger = cast(Any, get_logger(__name__))


class RewardsPipeline:
    """Runs enabled stages in order, threading the result through them."""

    def __init__(self, stages: Sequence[PipelineStage]) -> None:
        self.stages = list(stages)

    @property
    def enabled_stages(self) -> list[str]:
        return [stage.name for stage in self.stages if stage.enabled]

    async def run(
        self,
        snapshot: ActivitySnapshot,
        result: Result,
        *,
        correlation_id: str | None = None,
    ) -> Result:
        """Execute the pipeline.

        Raises:
            ConversationRewardsError: If a stage fails; the run is aborted
        """
        with pipeline_run_scope(
            correlation_id, issue_comment_count=len(snapshot.comments)
        ):
            logger.info(
                "pipeline_run_started",
                stages=self.enabled_stages,
                contributor_count=len(result),
            )

            for stage in self.stages:
                if not stage.enabled:
                    logger.warning("pipeline_stage_skipped", stage=stage.name)
                    continue

                logger.debug("pipeline_stage_started", stage=stage.name)
                try:
                    result = await stage.transform(snapshot, result)
                except ConversationRewardsError as e:
                    logger.error(
                        "pipeline_run_failed",
                        stage=stage.name,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    raise
                logger.debug("pipeline_stage_finished", stage=stage.name)

            logger.info("pipeline_run_finished", contributor_count=len(result))

        return result


def build_pipeline(
    settings: Settings, *, scorer: RelevanceScorerProtocol | None = None
) -> RewardsPipeline:
    """Compose the pipeline from settings.

    Args:
        settings: Application settings holding the ``incentives`` blocks
        scorer: Relevance scorer to use instead of the OpenAI one
    """
    api_key = (
        settings.openai_api_key.get_secret_value() if settings.openai_api_key else None
    )
    return RewardsPipeline(
        [
            build_data_purge_stage(settings.data_purge),
            build_content_evaluator_stage(
                settings.content_evaluator, scorer=scorer, api_key=api_key
            ),
        ]
    )


async def run_rewards_pipeline(
    snapshot: ActivitySnapshot,
    result: Result,
    *,
    settings: Settings | None = None,
    scorer: RelevanceScorerProtocol | None = None,
    correlation_id: str | None = None,
) -> Result:
    """Build the pipeline from settings and run it once.

    Without explicit ``settings`` the global ones are loaded and logging is
    configured from their ``logging`` block.
    """
    if settings is None:
        settings = get_settings()
        setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

    pipeline = build_pipeline(settings, scorer=scorer)
    return await pipeline.run(snapshot, result, correlation_id=correlation_id)


__all__ = [
    "RewardsPipeline",
    "build_pipeline",
    "run_rewards_pipeline",
]
