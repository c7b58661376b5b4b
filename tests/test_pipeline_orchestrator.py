"""Tests for reward pipeline orchestration."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
import structlog
import yaml

from conversation_rewards.config.settings import Settings
from conversation_rewards.domain.exceptions import LLMAPIError
from conversation_rewards.domain.models import (
    ActivitySnapshot,
    CommentScore,
    Result,
)
from conversation_rewards.observability.run_context import CORRELATION_ID_KEY
from conversation_rewards.stages.base import DisabledStage
from conversation_rewards.stages.content_evaluator import ContentEvaluatorStage
from conversation_rewards.stages.data_purge import DataPurgeStage
from conversation_rewards.use_cases.pipeline_orchestrator import (
    RewardsPipeline,
    build_pipeline,
    run_rewards_pipeline,
)
from tests.conftest import FakeRelevanceScorer, StubLogger

INCENTIVES = {
    "dataPurge": {},
    "contentEvaluator": {
        "multipliers": [{"role": ["ISSUE", "COLLABORATOR"], "relevance": 0.5}],
    },
}


class FlatRewardStage:
    """Gives every comment the same reward, standing in for the reward formula."""

    name = "flat_reward"
    enabled = True

    def __init__(self, reward: str) -> None:
        self.reward = Decimal(reward)

    async def transform(self, snapshot: ActivitySnapshot, result: Result) -> Result:
        for record in result.values():
            for comment in record.comments:
                comment.score = CommentScore(reward=self.reward)
        return result


class RecordingStage:
    """Records invocations and the bound log context."""

    def __init__(self, name: str, enabled: bool = True) -> None:
        self.name = name
        self.enabled = enabled
        self.contexts: list[dict] = []

    async def transform(self, snapshot: ActivitySnapshot, result: Result) -> Result:
        self.contexts.append(structlog.contextvars.get_contextvars())
        return result


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return Settings(config_path=str(tmp_path / "absent.yaml"), incentives=INCENTIVES)


def test_build_pipeline_orders_purge_before_evaluation(settings: Settings) -> None:
    pipeline = build_pipeline(settings, scorer=FakeRelevanceScorer())

    assert [type(stage) for stage in pipeline.stages] == [
        DataPurgeStage,
        ContentEvaluatorStage,
    ]
    assert pipeline.enabled_stages == ["data_purge", "content_evaluator"]


def test_build_pipeline_without_api_key_disables_evaluator(settings: Settings) -> None:
    pipeline = build_pipeline(settings)

    assert isinstance(pipeline.stages[1], DisabledStage)
    assert pipeline.enabled_stages == ["data_purge"]


def test_build_pipeline_with_empty_incentives_disables_everything(tmp_path: Path) -> None:
    settings = Settings(config_path=str(tmp_path / "absent.yaml"), openai_api_key="sk")

    pipeline = build_pipeline(settings)

    assert pipeline.enabled_stages == []


@pytest.mark.asyncio
async def test_pipeline_scores_purged_content(
    sample_snapshot: ActivitySnapshot, empty_result: Result, settings: Settings
) -> None:
    scorer = FakeRelevanceScorer(scores={101: 0.75})
    purge, evaluate = build_pipeline(settings, scorer=scorer).stages
    pipeline = RewardsPipeline([purge, FlatRewardStage("4"), evaluate])

    result = await pipeline.run(sample_snapshot, empty_result)

    alice = result["alice"].comments[0]
    assert alice.score == CommentScore(reward=Decimal("3.00"), relevance=Decimal("0.75"))
    bob = result["bob"].comments[0]
    assert bob.score == CommentScore(reward=Decimal("2.0"), relevance=Decimal("0.5"))

    sent = [c for call in scorer.calls for c in call["comments_to_evaluate"]]
    assert [(c.id, c.comment) for c in sent] == [
        (101, "I can take this. Will start with the theme provider.")
    ]


@pytest.mark.asyncio
async def test_disabled_stages_are_skipped(
    monkeypatch: pytest.MonkeyPatch,
    stub_logger: StubLogger,
    sample_snapshot: ActivitySnapshot,
    empty_result: Result,
) -> None:
    monkeypatch.setattr(
        "conversation_rewards.use_cases.pipeline_orchestrator.logger", stub_logger
    )
    skipped = RecordingStage("skipped", enabled=False)
    ran = RecordingStage("ran")

    result = await RewardsPipeline([skipped, ran]).run(sample_snapshot, empty_result)

    assert result is empty_result
    assert skipped.contexts == []
    assert len(ran.contexts) == 1
    assert ("pipeline_stage_skipped", {"stage": "skipped"}) in stub_logger.warning_calls


@pytest.mark.asyncio
async def test_stage_failure_aborts_the_run(
    monkeypatch: pytest.MonkeyPatch,
    stub_logger: StubLogger,
    sample_snapshot: ActivitySnapshot,
    empty_result: Result,
    settings: Settings,
) -> None:
    monkeypatch.setattr(
        "conversation_rewards.use_cases.pipeline_orchestrator.logger", stub_logger
    )
    scorer = FakeRelevanceScorer(error=LLMAPIError("timeout"))
    after = RecordingStage("after")
    purge, evaluate = build_pipeline(settings, scorer=scorer).stages

    with pytest.raises(LLMAPIError):
        await RewardsPipeline([purge, evaluate, after]).run(sample_snapshot, empty_result)

    assert after.contexts == []
    failures = [kwargs for event, kwargs in stub_logger.error_calls if event == "pipeline_run_failed"]
    assert failures[0]["stage"] == "content_evaluator"
    assert failures[0]["error_type"] == "LLMAPIError"


@pytest.mark.asyncio
async def test_run_binds_correlation_id(
    sample_snapshot: ActivitySnapshot, empty_result: Result
) -> None:
    stage = RecordingStage("recording")

    await RewardsPipeline([stage]).run(
        sample_snapshot, empty_result, correlation_id="run-42"
    )

    assert stage.contexts[0][CORRELATION_ID_KEY] == "run-42"
    assert CORRELATION_ID_KEY not in structlog.contextvars.get_contextvars()


@pytest.mark.asyncio
async def test_run_rewards_pipeline_uses_given_settings(
    sample_snapshot: ActivitySnapshot, empty_result: Result, settings: Settings
) -> None:
    result = await run_rewards_pipeline(
        sample_snapshot,
        empty_result,
        settings=settings,
        scorer=FakeRelevanceScorer(scores={101: 0.5}),
    )

    assert result["alice"].comments[0].score.relevance == Decimal("0.5")
    assert result["bob"].comments[0].score.relevance == Decimal("0.5")


def test_malformed_evaluator_block_disables_only_that_stage(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    config_path = tmp_path / "main.yaml"
    config_path.write_text(
        yaml.safe_dump(
            {
                "incentives": {
                    "dataPurge": {},
                    "contentEvaluator": {
                        "multipliers": [{"role": "ISSUE", "relevance": "high"}]
                    },
                }
            }
        ),
        encoding="utf-8",
    )

    pipeline = build_pipeline(
        Settings(config_path=str(config_path)), scorer=FakeRelevanceScorer()
    )

    assert isinstance(pipeline.stages[1], DisabledStage)
    assert pipeline.enabled_stages == ["data_purge"]


@pytest.mark.asyncio
async def test_run_rewards_pipeline_configures_logging_from_loaded_settings(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    sample_snapshot: ActivitySnapshot,
    empty_result: Result,
) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    loaded = Settings(
        config_path=str(tmp_path / "absent.yaml"),
        incentives=INCENTIVES,
        log_level="DEBUG",
        json_logs=True,
    )
    logging_calls: list[dict] = []
    monkeypatch.setattr(
        "conversation_rewards.use_cases.pipeline_orchestrator.get_settings",
        lambda: loaded,
    )
    monkeypatch.setattr(
        "conversation_rewards.use_cases.pipeline_orchestrator.setup_logging",
        lambda **kwargs: logging_calls.append(kwargs),
    )

    await run_rewards_pipeline(
        sample_snapshot, empty_result, scorer=FakeRelevanceScorer(scores={101: 0.5})
    )

    assert logging_calls == [{"log_level": "DEBUG", "json_logs": True}]


@pytest.mark.asyncio
async def test_run_rewards_pipeline_leaves_logging_to_callers_with_settings(
    monkeypatch: pytest.MonkeyPatch,
    sample_snapshot: ActivitySnapshot,
    empty_result: Result,
    settings: Settings,
) -> None:
    logging_calls: list[dict] = []
    monkeypatch.setattr(
        "conversation_rewards.use_cases.pipeline_orchestrator.setup_logging",
        lambda **kwargs: logging_calls.append(kwargs),
    )

    await run_rewards_pipeline(
        sample_snapshot,
        empty_result,
        settings=settings,
        scorer=FakeRelevanceScorer(scores={101: 0.5}),
    )

    assert logging_calls == []
