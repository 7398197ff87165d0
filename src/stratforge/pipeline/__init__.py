"""Generation pipelines and their stage orchestrator."""

from stratforge.pipeline.definitions import contract_pipeline, strategy_pipeline
from stratforge.pipeline.orchestrator import (
    PipelineOrchestrator,
    PipelineRun,
    StageDefinition,
)
from stratforge.pipeline.stages import PipelineStage, StageStatus

__all__ = [
    "PipelineOrchestrator",
    "PipelineRun",
    "PipelineStage",
    "StageDefinition",
    "StageStatus",
    "contract_pipeline",
    "strategy_pipeline",
]
