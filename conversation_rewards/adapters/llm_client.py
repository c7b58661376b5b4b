"""LLM client adapter for comment relevance scoring.

Implements RelevanceScorerProtocol with OpenAI integration.
"""

import hashlib
import json
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Final, cast

import pytz
import yaml
from openai import APIError, AsyncOpenAI
from openai import RateLimitError as OpenAIRateLimitError
from pydantic import ValidationError as PydanticValidationError

from conversation_rewards.config.incentives import OpenAIConfig
from conversation_rewards.config.logging_config import get_logger
from conversation_rewards.domain.evaluation_constants import (
    DEFAULT_OPENAI_MODEL,
    DUMMY_RELEVANCE,
    MAX_RESPONSE_TOKENS,
)
from conversation_rewards.domain.exceptions import (
    LLMAPIError,
    MissingSpecificationError,
    ValidationError,
)
from conversation_rewards.domain.models import (
    CommentForEvaluation,
    LLMCallMetadata,
    RelevanceScores,
)
from conversation_rewards.services.token_budget import cap_response_tokens

# Token cost per 1M tokens (as of 2024-09)
TOKEN_COSTS: Final[dict[str, dict[str, float]]] = {
    "gpt-4o-2024-08-06": {"input": 2.50, "output": 10.00},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4o-mini": {"input": 0.150, "output": 0.600},
}

DEFAULT_PROMPT_PATH: Final[Path] = (
    Path(__file__).resolve().parents[1] / "config" / "prompts" / "relevance.yaml"
)

logger = cast(Any, get_logger(__name__))


@dataclass(frozen=True)
class PromptFileData:
    """Loaded prompt payload with metadata."""

    content: str
    version: str | None
    checksum: str
    path: Path


@dataclass
class _PromptCacheEntry:
    """Cache entry storing metadata for a prompt file."""

    mtime: float
    data: PromptFileData


_PROMPT_CACHE: dict[Path, _PromptCacheEntry] = {}


def load_prompt_from_file(file_path: str | Path) -> PromptFileData:
    """Load a prompt template from a YAML or plain text file, cached by mtime.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If a YAML prompt file has invalid structure
    """
    path = Path(file_path).expanduser().resolve()
    if not path.exists():
        raise FileNotFoundError(f"Prompt file not found: {file_path}")

    mtime = path.stat().st_mtime
    cache_entry = _PROMPT_CACHE.get(path)
    if cache_entry and cache_entry.mtime == mtime:
        return cache_entry.data

    if path.suffix.lower() in {".yaml", ".yml"}:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        if not isinstance(parsed, dict):
            raise ValueError(f"Prompt YAML must be a mapping: {path}")

        version = parsed.get("version")
        if not isinstance(version, str):
            raise ValueError(f"Prompt YAML missing 'version' string: {path}")

        system_prompt = parsed.get("system")
        if not isinstance(system_prompt, str):
            raise ValueError(f"Prompt YAML missing 'system' string: {path}")
    else:
        system_prompt = path.read_text(encoding="utf-8")
        version = None

    prompt_data = PromptFileData(
        content=system_prompt,
        version=version,
        checksum=hashlib.sha256(system_prompt.encode("utf-8")).hexdigest(),
        path=path,
    )
    _PROMPT_CACHE[path] = _PromptCacheEntry(mtime=mtime, data=prompt_data)
    return prompt_data


def generate_dummy_response(
    comments: Sequence[CommentForEvaluation],
) -> dict[str, float]:
    """Build a response shaped like the expected one, used for sizing."""
    return {str(comment.id): DUMMY_RELEVANCE for comment in comments}


class OpenAIRelevanceScorer:
    """OpenAI client scoring comment relevance against the issue specification."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_OPENAI_MODEL,
        endpoint: str | None = None,
        token_limit: int = MAX_RESPONSE_TOKENS,
        timeout: int = 120,
        prompt_file: str | Path | None = None,
    ) -> None:
        """Initialize the scorer.

        Args:
            api_key: OpenAI API key
            model: Model name
            endpoint: Base URL of an OpenAI-compatible API (optional)
            token_limit: Hard ceiling for the response token budget
            timeout: Request timeout in seconds
            prompt_file: Path to prompt file (defaults to the packaged prompt)
        """
        client_kwargs: dict[str, Any] = {"api_key": api_key, "timeout": timeout}
        if endpoint:
            client_kwargs["base_url"] = endpoint
        self.client = AsyncOpenAI(**client_kwargs)
        self.model = model
        self.token_limit = token_limit

        prompt_data = load_prompt_from_file(prompt_file or DEFAULT_PROMPT_PATH)
        self.prompt_template = prompt_data.content
        self.prompt_version = prompt_data.version

        self._last_call_metadata: LLMCallMetadata | None = None

        logger.info(
            "relevance_prompt_ready",
            prompt_version=self.prompt_version,
            prompt_path=str(prompt_data.path),
            prompt_checksum=prompt_data.checksum,
        )

    @classmethod
    def from_config(
        cls, config: OpenAIConfig, api_key: str, **kwargs: Any
    ) -> "OpenAIRelevanceScorer":
        """Build a scorer from the ``openAi`` configuration block."""
        return cls(
            api_key=api_key,
            model=config.model,
            endpoint=config.endpoint,
            token_limit=config.token_limit,
            **kwargs,
        )

    def build_prompt(
        self,
        specification: str,
        all_comments: Sequence[CommentForEvaluation],
        comments_to_evaluate: Sequence[CommentForEvaluation],
    ) -> str:
        """Render the system prompt.

        Raises:
            MissingSpecificationError: If the specification text is empty
        """
        if not specification:
            raise MissingSpecificationError(
                "Issue specification comment is missing or empty"
            )

        return self.prompt_template.format(
            specification=specification,
            all_comments=_dump_comments(all_comments),
            comments=_dump_comments(comments_to_evaluate),
        )

    async def evaluate(
        self,
        specification: str,
        all_comments: Sequence[CommentForEvaluation],
        comments_to_evaluate: Sequence[CommentForEvaluation],
    ) -> dict[int, float]:
        """Score comments for relevance.

        Returns:
            Mapping of comment id to relevance in [0, 1]

        Raises:
            MissingSpecificationError: If the specification text is empty
            LLMAPIError: On API communication errors
            ValidationError: On response decoding or validation failure
        """
        prompt = self.build_prompt(specification, all_comments, comments_to_evaluate)
        dummy_response = json.dumps(
            generate_dummy_response(comments_to_evaluate), indent=2
        )
        max_tokens = cap_response_tokens(dummy_response, self.token_limit)

        logger.debug(
            "relevance_scorer_request",
            model=self.model,
            comment_count=len(comments_to_evaluate),
            context_count=len(all_comments),
            prompt_chars=len(prompt),
            max_tokens=max_tokens,
        )

        start_time = time.time()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                response_format={"type": "json_object"},
                messages=[{"role": "system", "content": prompt}],
                max_tokens=max_tokens,
                top_p=1,
                temperature=1,
                frequency_penalty=0,
                presence_penalty=0,
            )
        except OpenAIRateLimitError as e:
            raise LLMAPIError(f"Rate limit exceeded: {e}") from e
        except APIError as e:
            raise LLMAPIError(f"OpenAI API error: {e}") from e
        except Exception as e:
            raise LLMAPIError(f"Unexpected error: {e}") from e

        latency_ms = int((time.time() - start_time) * 1000)

        content = response.choices[0].message.content if response.choices else None
        logger.info(
            "relevance_scorer_response",
            max_tokens=max_tokens,
            latency_ms=latency_ms,
            raw_response=content,
        )
        if not content:
            raise ValidationError("Empty response from LLM")

        try:
            response_data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON from LLM: {e}") from e

        try:
            relevances = RelevanceScores.model_validate(response_data).root
        except PydanticValidationError as e:
            logger.error(
                "relevance_scorer_invalid_response",
                response=response_data,
                error=str(e),
            )
            raise ValidationError(f"Error in evaluation by OpenAI: {e}") from e

        tokens_in = response.usage.prompt_tokens if response.usage else 0
        tokens_out = response.usage.completion_tokens if response.usage else 0
        self._last_call_metadata = LLMCallMetadata(
            prompt_hash=hashlib.sha256(prompt.encode("utf-8")).hexdigest(),
            prompt_version=self.prompt_version,
            model=self.model,
            max_tokens=max_tokens,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost_usd=self._calculate_cost(tokens_in, tokens_out),
            latency_ms=latency_ms,
            ts=datetime.now(tz=pytz.UTC),
        )
        logger.info(
            "relevance_scores_decoded",
            relevances=relevances,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost_usd=self._last_call_metadata.cost_usd,
        )
        return relevances

    def get_call_metadata(self) -> LLMCallMetadata:
        """Get metadata for the last call.

        Raises:
            RuntimeError: If no call has been made
        """
        if self._last_call_metadata is None:
            raise RuntimeError("No LLM call has been made yet")

        return self._last_call_metadata

    def _calculate_cost(self, tokens_in: int, tokens_out: int) -> float:
        """Calculate cost in USD for an API call."""
        costs = TOKEN_COSTS.get(self.model, TOKEN_COSTS[DEFAULT_OPENAI_MODEL])

        cost_in = (tokens_in / 1_000_000) * costs["input"]
        cost_out = (tokens_out / 1_000_000) * costs["output"]

        return cost_in + cost_out


def _dump_comments(comments: Sequence[CommentForEvaluation]) -> str:
    return json.dumps([comment.model_dump() for comment in comments], indent=2)


__all__ = [
    "DEFAULT_PROMPT_PATH",
    "OpenAIRelevanceScorer",
    "PromptFileData",
    "generate_dummy_response",
    "load_prompt_from_file",
]
