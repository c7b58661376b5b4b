"""Protocol definitions for dependency inversion.

These abstract interfaces define contracts that stages and adapters must implement.
"""

from collections.abc import Sequence
from typing import Protocol

from conversation_rewards.domain.models import (
    ActivitySnapshot,
    CommentForEvaluation,
    Result,
)


class PipelineStage(Protocol):
    """A unit of the reward pipeline."""

    name: str

    @property
    def enabled(self) -> bool:
        """Whether the stage was built from a valid configuration."""
        ...

    async def transform(self, snapshot: ActivitySnapshot, result: Result) -> Result:
        """Mutate ``result`` in place from ``snapshot`` and return it.

        Raises:
            ConversationRewardsError: On fatal failures for this run
        """
        ...


class RelevanceScorerProtocol(Protocol):
    """Natural-language relevance scoring service."""

    async def evaluate(
        self,
        specification: str,
        all_comments: Sequence[CommentForEvaluation],
        comments_to_evaluate: Sequence[CommentForEvaluation],
    ) -> dict[int, float]:
        """Score each comment under evaluation against the whole thread.

        Args:
            specification: Issue specification text
            all_comments: Every purged comment of the thread, for context
            comments_to_evaluate: Comments that need a score

        Returns:
            Mapping of comment id to relevance in [0, 1]

        Raises:
            LLMAPIError: On API communication errors
            ValidationError: On response decoding or validation failure
        """
        ...
