"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

import pytest

from conversation_rewards.domain.models import (
    ActivitySnapshot,
    CommentForEvaluation,
    CommentScore,
    ContributorRecord,
    RawComment,
    Result,
    ScoredComment,
)


class StubLogger:
    """Collects structured log calls for assertions."""

    def __init__(self) -> None:
        self.debug_calls: list[tuple[str, dict[str, Any]]] = []
        self.info_calls: list[tuple[str, dict[str, Any]]] = []
        self.warning_calls: list[tuple[str, dict[str, Any]]] = []
        self.error_calls: list[tuple[str, dict[str, Any]]] = []

    def debug(self, event: str, **kwargs: Any) -> None:
        self.debug_calls.append((event, kwargs))

    def info(self, event: str, **kwargs: Any) -> None:
        self.info_calls.append((event, kwargs))

    def warning(self, event: str, **kwargs: Any) -> None:
        self.warning_calls.append((event, kwargs))

    def error(self, event: str, **kwargs: Any) -> None:
        self.error_calls.append((event, kwargs))


class FakeRelevanceScorer:
    """In-memory relevance scorer recording every call."""

    def __init__(
        self,
        scores: dict[int, float] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.scores = scores or {}
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def evaluate(
        self,
        specification: str,
        all_comments: Sequence[CommentForEvaluation],
        comments_to_evaluate: Sequence[CommentForEvaluation],
    ) -> dict[int, float]:
        self.calls.append(
            {
                "specification": specification,
                "all_comments": list(all_comments),
                "comments_to_evaluate": list(comments_to_evaluate),
            }
        )
        if self.error is not None:
            raise self.error
        requested = {comment.id for comment in comments_to_evaluate}
        return {
            comment_id: score
            for comment_id, score in self.scores.items()
            if comment_id in requested
        }


@pytest.fixture
def stub_logger() -> StubLogger:
    return StubLogger()


@pytest.fixture
def sample_snapshot() -> ActivitySnapshot:
    """Issue thread with quoted text, a bot command and an unknown author."""
    return ActivitySnapshot(
        specification_text="Add dark mode to the settings page.",
        comments=(
            RawComment(
                id=101,
                author_login="alice",
                body="I can take this.\r\nWill start with the theme provider.",
                url="https://github.com/org/repo/issues/1#issuecomment-101",
                origin_type="ISSUE_ASSIGNEE",
            ),
            RawComment(
                id=102,
                author_login="bob",
                body="> I can take this.\nSounds good, ping me for review.",
                url="https://github.com/org/repo/issues/1#issuecomment-102",
                origin_type="ISSUE_COLLABORATOR",
            ),
            RawComment(
                id=103,
                author_login="alice",
                body="/start",
                url="https://github.com/org/repo/issues/1#issuecomment-103",
                origin_type="ISSUE_ASSIGNEE",
            ),
            RawComment(
                id=104,
                author_login="mallory",
                body="First!",
                url="https://github.com/org/repo/issues/1#issuecomment-104",
                origin_type="ISSUE_CONTRIBUTOR",
            ),
            RawComment(
                id=105,
                author_login=None,
                body="ghost comment",
                url="https://github.com/org/repo/issues/1#issuecomment-105",
                origin_type="ISSUE_CONTRIBUTOR",
            ),
        ),
    )


@pytest.fixture
def empty_result() -> Result:
    return {"alice": ContributorRecord(), "bob": ContributorRecord()}


def make_comment(
    comment_id: int,
    comment_type: str,
    reward: str | None = None,
    content: str = "content",
) -> ScoredComment:
    """Build a purged comment with an optional pre-existing reward."""
    return ScoredComment(
        id=comment_id,
        content=content,
        url=f"https://github.com/org/repo/issues/1#issuecomment-{comment_id}",
        type=comment_type,
        score=CommentScore(reward=Decimal(reward)) if reward is not None else None,
    )
