"""Content evaluator stage.

Weighs every purged comment by its relevance to the issue specification and
rescales the comment reward accordingly. Relevance comes from, in order:

1. a fixed multiplier configured for the comment's role combination,
2. the score returned by the relevance scoring service,
3. ``DEFAULT_RELEVANCE``.

Rewards are multiplied as ``Decimal`` values, once per comment.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Mapping, Sequence
from decimal import Decimal
from types import MappingProxyType
from typing import Any, cast

from conversation_rewards.adapters.llm_client import OpenAIRelevanceScorer
from conversation_rewards.config.incentives import (
    ContentEvaluatorConfig,
    MultiplierEntry,
    validate_content_evaluator_config,
)
from conversation_rewards.config.logging_config import get_logger
from conversation_rewards.domain.comment_types import (
    encode_role,
    encode_roles,
    unknown_role_parts,
)
from conversation_rewards.domain.evaluation_constants import DEFAULT_RELEVANCE
from conversation_rewards.domain.exceptions import ConfigurationError
from conversation_rewards.domain.models import (
    ActivitySnapshot,
    CommentForEvaluation,
    CommentScore,
    Result,
    ScoredComment,
    to_decimal,
)
from conversation_rewards.domain.protocols import RelevanceScorerProtocol
from conversation_rewards.stages.base import DisabledStage

logger = cast(Any, get_logger(__name__))

RelevanceUpdate = tuple[ScoredComment, Decimal]


def build_fixed_relevances(multipliers: Sequence[MultiplierEntry]) -> dict[int, float]:
    """Compile multiplier entries into a table keyed by encoded role bitmask.

    Later entries win when two entries encode to the same key.
    """
    table: dict[int, float] = {}
    for entry in multipliers:
        for role in entry.role:
            unknown = unknown_role_parts(role)
            if unknown:
                logger.warning("multiplier_unknown_role", role=role, unknown=unknown)
        table[encode_roles(entry.role)] = entry.relevance
    return table


def flatten_comments(result: Result) -> list[CommentForEvaluation]:
    """Every purged comment of every contributor, in comment id order."""
    corpus = [
        CommentForEvaluation(id=comment.id, comment=comment.content, author=login)
        for login, record in result.items()
        for comment in record.comments
    ]
    corpus.sort(key=lambda item: item.id)
    return corpus


def is_evaluated(comment: ScoredComment) -> bool:
    return comment.score is not None and comment.score.relevance is not None


def apply_relevance(comment: ScoredComment, relevance: Decimal) -> None:
    """Store ``relevance`` and scale the existing reward by it."""
    previous = comment.score or CommentScore()
    comment.score = previous.model_copy(
        update={"relevance": relevance, "reward": previous.reward * relevance}
    )


class ContentEvaluatorStage:
    """Evaluates and rates comments."""

    name = "content_evaluator"

    def __init__(
        self, config: ContentEvaluatorConfig, scorer: RelevanceScorerProtocol
    ) -> None:
        self._configuration = config
        self._scorer = scorer
        self._fixed_relevances: Mapping[int, float] = MappingProxyType(
            build_fixed_relevances(config.multipliers)
        )

    @property
    def enabled(self) -> bool:
        return True

    @property
    def fixed_relevances(self) -> Mapping[int, float]:
        return self._fixed_relevances

    async def transform(self, snapshot: ActivitySnapshot, result: Result) -> Result:
        """Score every contributor concurrently, then write all relevances.

        Nothing is written if any contributor's evaluation fails.

        Raises:
            LLMAPIError: If the relevance service call fails
            ValidationError: If the service response cannot be decoded
        """
        specification = snapshot.specification_text
        if not specification:
            logger.info("content_evaluator_skipped", reason="empty specification")
            return result

        all_comments = flatten_comments(result)
        tasks = [
            asyncio.create_task(
                self._evaluate_contributor(
                    login, record.comments, specification, all_comments
                )
            )
            for login, record in result.items()
            if record.comments
        ]
        try:
            updates = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        evaluated = 0
        for contributor_updates in updates:
            for comment, relevance in contributor_updates:
                apply_relevance(comment, relevance)
                evaluated += 1

        logger.info(
            "content_evaluation_complete",
            contributors=len(tasks),
            comments_evaluated=evaluated,
        )
        return result

    async def _evaluate_contributor(
        self,
        login: str,
        comments: Sequence[ScoredComment],
        specification: str,
        all_comments: Sequence[CommentForEvaluation],
    ) -> list[RelevanceUpdate]:
        pending = [comment for comment in comments if not is_evaluated(comment)]
        # Comments with a fixed multiplier never reach the scoring service
        to_evaluate = [
            CommentForEvaluation(id=comment.id, comment=comment.content, author=login)
            for comment in pending
            if encode_role(comment.type) not in self._fixed_relevances
        ]

        relevances_by_ai: dict[int, float] = {}
        if to_evaluate:
            relevances_by_ai = await self._scorer.evaluate(
                specification, all_comments, to_evaluate
            )

        if len(relevances_by_ai) != len(to_evaluate):
            logger.error(
                "relevance_count_mismatch",
                contributor=login,
                requested=len(to_evaluate),
                received=len(relevances_by_ai),
                fallback_relevance=DEFAULT_RELEVANCE,
            )

        return [
            (comment, to_decimal(self._resolve_relevance(comment, relevances_by_ai)))
            for comment in pending
        ]

    def _resolve_relevance(
        self, comment: ScoredComment, relevances_by_ai: Mapping[int, float]
    ) -> float:
        role_key = encode_role(comment.type)
        if role_key in self._fixed_relevances:
            return self._fixed_relevances[role_key]

        score = relevances_by_ai.get(comment.id)
        if isinstance(score, int | float) and math.isfinite(score):
            return score
        return DEFAULT_RELEVANCE


def build_content_evaluator_stage(
    raw_config: Any,
    *,
    scorer: RelevanceScorerProtocol | None = None,
    api_key: str | None = None,
) -> ContentEvaluatorStage | DisabledStage:
    """Build the stage, or a disabled stand-in.

    The stage is disabled when ``raw_config`` is invalid, or when no scorer is
    injected and no API key is available to build the OpenAI one.
    """
    try:
        config = validate_content_evaluator_config(raw_config)
    except ConfigurationError as e:
        logger.warning("content_evaluator_stage_disabled", error=str(e))
        return DisabledStage(ContentEvaluatorStage.name, str(e))

    if scorer is None:
        if not api_key:
            reason = "OPENAI_API_KEY is not set"
            logger.warning("content_evaluator_stage_disabled", error=reason)
            return DisabledStage(ContentEvaluatorStage.name, reason)
        scorer = OpenAIRelevanceScorer.from_config(config.open_ai, api_key)

    return ContentEvaluatorStage(config, scorer)


__all__ = [
    "ContentEvaluatorStage",
    "apply_relevance",
    "build_content_evaluator_stage",
    "build_fixed_relevances",
    "flatten_comments",
]
