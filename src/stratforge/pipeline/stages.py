"""
Pipeline stage state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StageStatus(str, Enum):
    """Lifecycle of a pipeline stage."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class PipelineStage:
    """One named step of a generation pipeline, as shown to the user."""

    id: str
    title: str
    description: str = ""
    status: StageStatus = StageStatus.PENDING
    content: str | None = None
    error: str | None = None

    def reset(self) -> None:
        self.status = StageStatus.PENDING
        self.content = None
        self.error = None

    @property
    def is_finished(self) -> bool:
        return self.status in (StageStatus.COMPLETED, StageStatus.ERROR)
