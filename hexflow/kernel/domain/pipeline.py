"""Pipeline definitions and run results."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hexflow.kernel.exceptions import ValidationError


class StageStatus(StrEnum):
    """Status of a single stage.

    ``PENDING`` is the implicit state of a stage not yet reached; it never
    appears on an event or result.
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RunStatus(StrEnum):
    """Terminal status of a pipeline run.

    ``CANCELLED`` is reserved for an external cancellation mechanism; the
    executor never produces it.
    """

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PipelineStage(BaseModel):
    """One unit of pipeline work, bound to a handler by ``stage_id``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    stage_id: str = Field(min_length=1)
    stage_name: str
    requires_confirm: bool = False
    timeout_ms: int | None = Field(default=None, gt=0)


class PipelineDefinition(BaseModel):
    """An ordered sequence of stages.

    Examples
    --------
    Example usage::

        PipelineDefinition(
            pipeline_id="content-factory",
            name="Content Factory",
            stages=[
                PipelineStage(stage_id="draft", stage_name="Draft"),
                PipelineStage(stage_id="review", stage_name="Review", requires_confirm=True),
            ],
        )
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    pipeline_id: str = Field(min_length=1)
    name: str
    stages: tuple[PipelineStage, ...] = ()

    @model_validator(mode="after")
    def _unique_stage_ids(self) -> PipelineDefinition:
        seen: set[str] = set()
        for stage in self.stages:
            if stage.stage_id in seen:
                raise ValidationError("stages", "duplicate stage_id", stage.stage_id)
            seen.add(stage.stage_id)
        return self


@dataclass(frozen=True, slots=True)
class StageContext:
    """Correlation data handed to every stage handler."""

    pipeline_id: str
    stage_id: str
    context_id: str
    run_id: str


StageHandler = Callable[[Any, StageContext], Awaitable[Any] | Any]


@dataclass(slots=True)
class StageResult:
    """Outcome of one stage within a run."""

    stage_id: str
    status: StageStatus
    duration_ms: float
    output: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is StageStatus.COMPLETED


@dataclass(slots=True)
class PipelineResult:
    """Outcome of one ``run()``.

    ``stages`` holds results for every stage attempted, in order; stages after
    a failure are absent.
    """

    pipeline_id: str
    run_id: str
    status: RunStatus
    stages: list[StageResult] = field(default_factory=list)
    total_duration_ms: float = 0.0

    @property
    def failed_stage(self) -> StageResult | None:
        for stage in self.stages:
            if stage.status is StageStatus.FAILED:
                return stage
        return None

    @property
    def output(self) -> Any:
        """Output of the last stage when the run completed, else None."""
        if self.status is RunStatus.COMPLETED and self.stages:
            return self.stages[-1].output
        return None
