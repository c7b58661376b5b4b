"""Domain models for conversation rewards.

All models use Pydantic v2 for validation and serialization. Rewards and
relevances are held as ``Decimal`` so repeated multiplications never pick up
binary floating point drift.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, TypeAlias

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    ConfigDict,
    Field,
    RootModel,
    field_validator,
)

from conversation_rewards.domain.evaluation_constants import (
    MAX_RELEVANCE,
    MIN_RELEVANCE,
)


def to_decimal(value: Any) -> Decimal:
    """Convert a number to ``Decimal`` through its shortest string form.

    Floats are converted from ``str(value)`` so that ``0.1`` becomes
    ``Decimal("0.1")`` and not its binary expansion.

    Example:
        >>> to_decimal(0.1) * to_decimal(3)
        Decimal('0.3')
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("booleans are not numeric rewards")
    if isinstance(value, int | float | str):
        return Decimal(str(value))
    raise TypeError(f"cannot convert {type(value).__name__} to Decimal")


class RawComment(BaseModel):
    """A comment as collected from the issue or pull request thread.

    Accepts both snake_case names and the code-hosting payload shape
    (``user.login``, ``html_url``, ``type``).
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    author_login: str | None = Field(
        default=None,
        validation_alias=AliasChoices("author_login", AliasPath("user", "login")),
    )
    body: str | None = None
    url: str = Field(default="", validation_alias=AliasChoices("url", "html_url"))
    origin_type: str = Field(
        default="", validation_alias=AliasChoices("origin_type", "type")
    )


class ActivitySnapshot(BaseModel):
    """Read-only bundle of the thread: specification text and all comments."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    specification_text: str | None = Field(
        default=None,
        validation_alias=AliasChoices("specification_text", AliasPath("self", "body")),
    )
    comments: tuple[RawComment, ...] = Field(
        default=(), validation_alias=AliasChoices("comments", "allComments")
    )

    @field_validator("comments", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return () if value is None else value


class CommentScore(BaseModel):
    """Score attached to a comment by the reward stages."""

    model_config = ConfigDict(extra="allow")

    reward: Decimal = Decimal(0)
    relevance: Decimal | None = None

    @field_validator("reward", "relevance", mode="before")
    @classmethod
    def _exact_decimal(cls, value: Any) -> Any:
        if value is None or isinstance(value, Decimal):
            return value
        if isinstance(value, int | float):
            return to_decimal(value)
        return value


class ScoredComment(BaseModel):
    """A purged comment owned by a contributor."""

    id: int
    content: str
    url: str
    type: str
    score: CommentScore | None = None


class ContributorRecord(BaseModel):
    """Everything the pipeline accumulates for one contributor.

    Stages outside the relevance core may attach their own fields.
    """

    model_config = ConfigDict(extra="allow")

    comments: list[ScoredComment] = Field(default_factory=list)


Result: TypeAlias = dict[str, ContributorRecord]


class CommentForEvaluation(BaseModel):
    """Comment entry sent to the relevance scoring service."""

    id: int
    comment: str
    author: str


RelevanceValue = Annotated[
    float, Field(ge=MIN_RELEVANCE, le=MAX_RELEVANCE, allow_inf_nan=False)
]


class RelevanceScores(RootModel[dict[int, RelevanceValue]]):
    """Relevance service response: comment id to score in [0, 1]."""


class LLMCallMetadata(BaseModel):
    """Metadata for LLM API calls."""

    prompt_hash: str = Field(..., description="SHA256 of prompt")
    prompt_version: str | None = None
    model: str
    max_tokens: int
    tokens_in: int
    tokens_out: int
    cost_usd: float
    latency_ms: int
    ts: datetime


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dump_result(result: Result, indent: int | None = 2) -> str:
    """Serialize a result to JSON with decimals rendered as numbers."""
    payload = {
        login: record.model_dump(exclude_none=True) for login, record in result.items()
    }
    return json.dumps(payload, indent=indent, default=_json_default)
