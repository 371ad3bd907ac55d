"""Action Execution Layer - runs one action against a registered handler."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from hexflow.kernel.domain.action import Action, ActionHandler, ActionResult
from hexflow.kernel.exceptions import (
    HandlerExecutionError,
    HandlerMissingError,
    describe_error,
)
from hexflow.kernel.logging import bind_run
from hexflow.kernel.orchestration.events.events import ExecutionStatus
from hexflow.kernel.orchestration.handlers import invoke_handler
from hexflow.kernel.utils.node_timer import Timer

if TYPE_CHECKING:
    from hexflow.kernel.orchestration.events.emitter import EventPublisher


class ActionExecutionLayer:
    """Single-step analogue of the pipeline executor.

    :meth:`execute` never raises for handler-level failures; they are
    reported through ``ActionResult.success`` and a ``failed`` execution
    event. Storage errors while publishing still propagate.

    Parameters
    ----------
    publisher : EventPublisher
        Persist-then-emit path for execution events
    enforce_timeouts : bool, default=True
        Apply ``Action.timeout_ms``
    """

    def __init__(self, publisher: EventPublisher, enforce_timeouts: bool = True) -> None:
        self.publisher = publisher
        self.enforce_timeouts = enforce_timeouts
        self._handlers: dict[str, ActionHandler] = {}

    def register_handler(self, action_type: str, handler: ActionHandler) -> None:
        """Register or replace the handler for ``action_type``."""
        self._handlers[action_type] = handler

    def has_handler(self, action_type: str) -> bool:
        return action_type in self._handlers

    def action_types(self) -> list[str]:
        return sorted(self._handlers)

    async def execute(self, action: Action) -> ActionResult:
        """Execute ``action`` and report the outcome.

        Returns
        -------
        ActionResult
            ``success=True`` with the handler's return value as ``data``, or
            ``success=False`` with the failure message as ``error``
        """
        emitter = self.publisher.emitter
        execution_id = uuid.uuid4().hex
        exec_log = bind_run(__name__, execution_id=execution_id, action_type=action.action_type)
        timer = Timer()

        def _event(status: ExecutionStatus, error: str | None = None):
            return emitter.create_runtime_execution_event(
                execution_id,
                action.execution_kind,
                action.action_type,
                status,
                executor_role=action.executor_role,
                error=error,
            )

        await self.publisher.publish(_event(ExecutionStatus.RUNNING))

        try:
            handler = self._handlers.get(action.action_type)
            if handler is None:
                raise HandlerMissingError("action", action.action_type)
            timeout_ms = action.timeout_ms if self.enforce_timeouts else None
            data = await invoke_handler(
                action.action_type,
                handler,
                (dict(action.params),),
                timeout_ms=timeout_ms,
                kind="action",
            )
        except (HandlerMissingError, HandlerExecutionError) as e:
            message = describe_error(e)
            duration_ms = timer.duration_ms
            await self.publisher.publish(_event(ExecutionStatus.FAILED, error=message))
            exec_log.warning(
                "Action '{action_type}' failed after {ms:.2f} ms: {error}",
                action_type=action.action_type,
                ms=duration_ms,
                error=message,
            )
            return ActionResult(
                success=False,
                duration_ms=duration_ms,
                execution_id=execution_id,
                error=message,
            )

        duration_ms = timer.duration_ms
        await self.publisher.publish(_event(ExecutionStatus.COMPLETED))
        exec_log.debug(
            "Action '{action_type}' completed in {ms:.2f} ms",
            action_type=action.action_type,
            ms=duration_ms,
        )
        return ActionResult(
            success=True,
            duration_ms=duration_ms,
            execution_id=execution_id,
            data=data,
        )
