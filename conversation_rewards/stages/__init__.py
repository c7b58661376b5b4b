"""Pipeline stages transforming a contributor result in place."""

from conversation_rewards.stages.base import DisabledStage
from conversation_rewards.stages.content_evaluator import (
    ContentEvaluatorStage,
    build_content_evaluator_stage,
)
from conversation_rewards.stages.data_purge import DataPurgeStage, build_data_purge_stage

__all__ = [
    "ContentEvaluatorStage",
    "DataPurgeStage",
    "DisabledStage",
    "build_content_evaluator_stage",
    "build_data_purge_stage",
]
