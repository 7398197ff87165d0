"""
Pipeline Orchestrator - runs a fixed sequence of generation stages.

Each stage moves pending -> running -> completed | error. A stage starts only
after the previous one completed, and the first failure halts the run. The
orchestrator never retries; retries belong to the request queue.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import structlog

from stratforge.pipeline.stages import PipelineStage, StageStatus

logger = structlog.get_logger()

Reporter = Callable[[str], None]
StageHandler = Callable[[dict[str, Any], Reporter], Awaitable[str | None]]
StageListener = Callable[[PipelineStage], None]


@dataclass(frozen=True)
class StageDefinition:
    """A stage and the coroutine that performs it."""

    id: str
    title: str
    description: str
    handler: StageHandler


@dataclass
class PipelineRun:
    """Outcome of one pipeline run."""

    success: bool
    stages: list[PipelineStage]
    data: dict[str, Any] = field(default_factory=dict)
    failed_stage: str | None = None
    error: str | None = None

    def stage(self, stage_id: str) -> PipelineStage:
        for stage in self.stages:
            if stage.id == stage_id:
                return stage
        raise KeyError(stage_id)


class PipelineOrchestrator:
    """
    Runs stage handlers in order and tracks their status.

    Handlers receive the shared ``data`` dict (outputs of earlier stages)
    and a ``report`` callback for interim progress text; they return the
    content to display for the stage.

    Example:
        orchestrator = PipelineOrchestrator(definitions, on_change=render)
        run = await orchestrator.run({"asset": "BTC"})
        if not run.success:
            print(run.failed_stage, run.error)
    """

    def __init__(
        self,
        definitions: list[StageDefinition],
        on_change: StageListener | None = None,
    ):
        if len({d.id for d in definitions}) != len(definitions):
            raise ValueError("Stage ids must be unique")
        self.definitions = list(definitions)
        self.stages = [
            PipelineStage(id=d.id, title=d.title, description=d.description) for d in definitions
        ]
        self.on_change = on_change

    def _notify(self, stage: PipelineStage) -> None:
        if self.on_change:
            self.on_change(stage)

    def _transition(
        self,
        stage: PipelineStage,
        status: StageStatus,
        content: str | None = None,
        error: str | None = None,
    ) -> None:
        stage.status = status
        if content is not None:
            stage.content = content
        stage.error = error
        logger.info("Stage status changed", stage=stage.id, status=status.value)
        self._notify(stage)

    async def run(self, data: dict[str, Any] | None = None) -> PipelineRun:
        """
        Run every stage in order.

        Args:
            data: Initial inputs shared with the stage handlers

        Returns:
            PipelineRun with the final stage states; ``success`` is False and
            ``failed_stage`` names the stage when a handler raised
        """
        data = {} if data is None else data
        for stage in self.stages:
            stage.reset()
            self._notify(stage)

        for definition, stage in zip(self.definitions, self.stages):
            self._transition(stage, StageStatus.RUNNING)

            def report(text: str, stage: PipelineStage = stage) -> None:
                stage.content = text
                self._notify(stage)

            try:
                content = await definition.handler(data, report)
            except Exception as e:
                message = str(e) or type(e).__name__
                logger.error("Stage failed", stage=stage.id, error=message, error_type=type(e).__name__)
                self._transition(stage, StageStatus.ERROR, content=f"Error: {message}", error=message)
                return PipelineRun(
                    success=False,
                    stages=self.stages,
                    data=data,
                    failed_stage=stage.id,
                    error=message,
                )

            self._transition(stage, StageStatus.COMPLETED, content=content)

        return PipelineRun(success=True, stages=self.stages, data=data)
