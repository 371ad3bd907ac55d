"""Pipeline Executor - runs an ordered sequence of stages.

Each stage is bound to a handler by ``stage_id``. Stages run strictly one
after another; the output of stage *i* is the input of stage *i+1*. Every
transition is recorded as a :class:`PipelineStageEvent`, persisted before it
is emitted.

Only an unknown ``pipeline_id`` escapes :meth:`PipelineExecutor.run` as an
exception. Handler failures, missing handlers and stage timeouts become a
failed :class:`StageResult` and stop the run.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from hexflow.kernel.domain.pipeline import (
    PipelineDefinition,
    PipelineResult,
    PipelineStage,
    RunStatus,
    StageContext,
    StageHandler,
    StageResult,
    StageStatus,
)
from hexflow.kernel.exceptions import (
    HandlerExecutionError,
    HandlerMissingError,
    PipelineNotFoundError,
    describe_error,
)
from hexflow.kernel.logging import bind_run, get_logger
from hexflow.kernel.orchestration.handlers import invoke_handler
from hexflow.kernel.utils.node_timer import Timer

if TYPE_CHECKING:
    from loguru import Logger

    from hexflow.kernel.orchestration.events.emitter import EventPublisher

logger = get_logger(__name__)


class PipelineExecutor:
    """Runs registered pipelines and records every stage transition.

    Registries are owned by the instance; two executors never share
    definitions or handlers.

    Parameters
    ----------
    publisher : EventPublisher
        Persist-then-emit path for stage events
    enforce_timeouts : bool, default=True
        Apply each stage's ``timeout_ms``; when False the field is ignored

    Examples
    --------
    Example usage::

        executor = PipelineExecutor(publisher)
        executor.register_pipeline(definition)
        executor.register_stage_handler("draft", draft_handler)
        result = await executor.run("content-factory", {"topic": "release"})
    """

    def __init__(self, publisher: EventPublisher, enforce_timeouts: bool = True) -> None:
        self.publisher = publisher
        self.enforce_timeouts = enforce_timeouts
        self._pipelines: dict[str, PipelineDefinition] = {}
        self._handlers: dict[str, StageHandler] = {}

    @property
    def context_id(self) -> str:
        return self.publisher.emitter.context_id

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_pipeline(self, definition: PipelineDefinition) -> None:
        """Register or replace a pipeline definition."""
        if definition.pipeline_id in self._pipelines:
            logger.debug("Replacing pipeline '{}'", definition.pipeline_id)
        self._pipelines[definition.pipeline_id] = definition

    def register_stage_handler(self, stage_id: str, handler: StageHandler) -> None:
        """Register or replace the handler for ``stage_id``."""
        self._handlers[stage_id] = handler

    def get_pipeline(self, pipeline_id: str) -> PipelineDefinition | None:
        return self._pipelines.get(pipeline_id)

    def pipelines(self) -> list[PipelineDefinition]:
        return list(self._pipelines.values())

    def has_handler(self, stage_id: str) -> bool:
        return stage_id in self._handlers

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(self, pipeline_id: str, input: Any = None) -> PipelineResult:
        """Run a pipeline to a terminal state.

        Args
        ----
            pipeline_id: Registered pipeline identifier
            input: Input handed to the first stage

        Returns
        -------
            PipelineResult: Stage history and overall status

        Raises
        ------
        PipelineNotFoundError
            If ``pipeline_id`` is not registered. Raised before a run id is
            allocated or any event is recorded.
        StorageError
            If a stage event cannot be appended to the event log
        """
        definition = self._pipelines.get(pipeline_id)
        if definition is None:
            raise PipelineNotFoundError(pipeline_id, sorted(self._pipelines))

        run_timer = Timer()
        run_id = uuid.uuid4().hex
        run_log = bind_run(__name__, run_id=run_id, pipeline_id=pipeline_id)
        run_log.info(
            "Pipeline '{pipeline}' started ({count} stages)",
            pipeline=pipeline_id,
            count=len(definition.stages),
        )

        result = PipelineResult(pipeline_id=pipeline_id, run_id=run_id, status=RunStatus.COMPLETED)
        current_input = input

        for index, stage in enumerate(definition.stages):
            stage_result = await self._run_stage(
                definition, stage, index, run_id, current_input, run_log
            )
            result.stages.append(stage_result)
            if not stage_result.ok:
                result.status = RunStatus.FAILED
                break
            current_input = stage_result.output

        result.total_duration_ms = run_timer.duration_ms
        if result.status is RunStatus.COMPLETED:
            run_log.info(
                "Pipeline '{pipeline}' completed in {ms:.2f} ms",
                pipeline=pipeline_id,
                ms=result.total_duration_ms,
            )
        else:
            run_log.warning(
                "Pipeline '{pipeline}' failed at stage '{stage}' after {ms:.2f} ms",
                pipeline=pipeline_id,
                stage=result.stages[-1].stage_id,
                ms=result.total_duration_ms,
            )
        return result

    async def _run_stage(
        self,
        definition: PipelineDefinition,
        stage: PipelineStage,
        index: int,
        run_id: str,
        stage_input: Any,
        run_log: Logger,
    ) -> StageResult:
        emitter = self.publisher.emitter
        stage_timer = Timer()

        await self.publisher.publish(
            emitter.create_pipeline_stage_event(
                run_id,
                definition.pipeline_id,
                stage.stage_id,
                stage.stage_name,
                index,
                StageStatus.RUNNING,
            )
        )

        try:
            handler = self._handlers.get(stage.stage_id)
            if handler is None:
                raise HandlerMissingError("stage", stage.stage_id)
            context = StageContext(
                pipeline_id=definition.pipeline_id,
                stage_id=stage.stage_id,
                context_id=self.context_id,
                run_id=run_id,
            )
            timeout_ms = stage.timeout_ms if self.enforce_timeouts else None
            output = await invoke_handler(
                stage.stage_id, handler, (stage_input, context), timeout_ms=timeout_ms
            )
        except (HandlerMissingError, HandlerExecutionError) as e:
            message = describe_error(e)
            stage_result = StageResult(
                stage_id=stage.stage_id,
                status=StageStatus.FAILED,
                duration_ms=stage_timer.duration_ms,
                error=message,
            )
            await self.publisher.publish(
                emitter.create_pipeline_stage_event(
                    run_id,
                    definition.pipeline_id,
                    stage.stage_id,
                    stage.stage_name,
                    index,
                    StageStatus.FAILED,
                    error=message,
                )
            )
            run_log.opt(exception=e.__cause__ or e).debug(
                "Stage '{stage}' failed: {error}", stage=stage.stage_id, error=message
            )
            return stage_result

        stage_result = StageResult(
            stage_id=stage.stage_id,
            status=StageStatus.COMPLETED,
            duration_ms=stage_timer.duration_ms,
            output=output,
        )
        await self.publisher.publish(
            emitter.create_pipeline_stage_event(
                run_id,
                definition.pipeline_id,
                stage.stage_id,
                stage.stage_name,
                index,
                StageStatus.COMPLETED,
            )
        )
        run_log.debug(
            "Stage '{stage}' completed in {ms:.2f} ms",
            stage=stage.stage_id,
            ms=stage_result.duration_ms,
        )
        return stage_result
