"""Configuration blocks consumed by the reward pipeline stages.

Each stage receives its own block from the ``incentives`` section of the
configuration file. Blocks accept the camelCase keys used in the YAML files
as well as the Python field names.
"""

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from conversation_rewards.domain.evaluation_constants import (
    DEFAULT_OPENAI_MODEL,
    MAX_RESPONSE_TOKENS,
)
from conversation_rewards.domain.exceptions import ConfigurationError

DATA_PURGE_SECTION = "dataPurge"
CONTENT_EVALUATOR_SECTION = "contentEvaluator"


class DataPurgeConfig(BaseModel):
    """Data purge stage settings. Any mapping enables the stage."""

    model_config = ConfigDict(extra="allow", frozen=True)


class OpenAIConfig(BaseModel):
    """Relevance scoring service settings."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    model: str = Field(default=DEFAULT_OPENAI_MODEL, min_length=1)
    endpoint: str | None = Field(
        default=None, description="Base URL of an OpenAI-compatible API"
    )
    token_limit: int = Field(
        default=MAX_RESPONSE_TOKENS,
        gt=0,
        alias="tokenLimit",
        description="Upper bound for the response token budget",
    )


class MultiplierEntry(BaseModel):
    """Fixed relevance for comments whose roles combine to ``role``."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    role: list[str] = Field(..., min_length=1)
    relevance: float = Field(..., ge=0, allow_inf_nan=False)


class ContentEvaluatorConfig(BaseModel):
    """Content evaluator stage settings."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    open_ai: OpenAIConfig = Field(default_factory=OpenAIConfig, alias="openAi")
    multipliers: list[MultiplierEntry] = Field(default_factory=list)


ConfigT = TypeVar("ConfigT", bound=BaseModel)


def _validate_block(model: type[ConfigT], raw: Any, section: str) -> ConfigT:
    if raw is None:
        raise ConfigurationError(f"Missing {section} configuration")
    try:
        return model.model_validate(raw)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid {section} configuration: {e}") from e


def validate_data_purge_config(raw: Any) -> DataPurgeConfig:
    """Validate the ``dataPurge`` block.

    Raises:
        ConfigurationError: If the block is missing or malformed
    """
    return _validate_block(DataPurgeConfig, raw, DATA_PURGE_SECTION)


def validate_content_evaluator_config(raw: Any) -> ContentEvaluatorConfig:
    """Validate the ``contentEvaluator`` block.

    Raises:
        ConfigurationError: If the block is missing or malformed
    """
    return _validate_block(ContentEvaluatorConfig, raw, CONTENT_EVALUATOR_SECTION)


__all__ = [
    "CONTENT_EVALUATOR_SECTION",
    "DATA_PURGE_SECTION",
    "ContentEvaluatorConfig",
    "DataPurgeConfig",
    "MultiplierEntry",
    "OpenAIConfig",
    "validate_content_evaluator_config",
    "validate_data_purge_config",
]
