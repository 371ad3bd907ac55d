"""Event construction and in-memory fan-out.

:class:`EventEmitter` builds fully-populated event envelopes and delivers them
synchronously to subscribers. It knows nothing about durability;
:class:`EventPublisher` is the one place that couples the two, so the durable
append always happens before subscribers see an event.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from hexflow.kernel.domain.pipeline import StageStatus
from hexflow.kernel.logging import get_logger
from hexflow.kernel.orchestration.events.events import (
    Event,
    EventFamily,
    ExecutionStatus,
    GraphUpdateEvent,
    GraphUpdateKind,
    PipelineStageEvent,
    RuntimeExecutionEvent,
)

if TYPE_CHECKING:
    from hexflow.kernel.ports.node_store import NodeStore

logger = get_logger(__name__)

EventListener = Callable[[Event], Any]

_GRAPH_EVENT_TYPES = {
    GraphUpdateKind.CREATE: ("node_created", 1),
    GraphUpdateKind.UPDATE: ("node_updated", 0),
    GraphUpdateKind.DELETE: ("node_deleted", -1),
}

_STAGE_EVENT_TYPES = {
    StageStatus.RUNNING: "stage_started",
    StageStatus.COMPLETED: "stage_completed",
    StageStatus.FAILED: "stage_failed",
}

_EXECUTION_EVENT_TYPES = {
    ExecutionStatus.RUNNING: "execution_started",
    ExecutionStatus.COMPLETED: "execution_completed",
    ExecutionStatus.FAILED: "execution_failed",
}


class EventEmitter:
    """Typed event factories plus synchronous subscriber fan-out.

    Listeners are called in subscription order on the emitting task. A
    listener that raises is logged and skipped; delivery to the remaining
    listeners and the caller are unaffected.

    Examples
    --------
    Example usage::

        emitter = EventEmitter("ctx-growth")
        emitter.subscribe(print, families=EventFamily.PIPELINE_STAGE)
        emitter.emit(emitter.create_pipeline_stage_event(...))
    """

    def __init__(self, context_id: str) -> None:
        self.context_id = context_id
        self._listeners: dict[str, tuple[EventListener, frozenset[EventFamily] | None]] = {}

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    def create_graph_update_event(
        self,
        event_kind: GraphUpdateKind | str,
        node_type: str,
        node_id: str,
        context_id: str | None = None,
        node: dict[str, Any] | None = None,
    ) -> GraphUpdateEvent:
        """Build a GraphUpdateEvent for one node mutation.

        Parameters
        ----------
        event_kind : GraphUpdateKind | str
            create, update or delete
        node_type : str
            Type of the mutated node
        node_id : str
            Id of the mutated node
        context_id : str | None
            Context of the node; defaults to the emitter's context
        node : dict[str, Any] | None
            Full record after the write (ignored for deletes)
        """
        kind = GraphUpdateKind(event_kind)
        event_type, delta = _GRAPH_EVENT_TYPES[kind]
        return GraphUpdateEvent(
            event_type=event_type,
            context_id=context_id or self.context_id,
            event_kind=kind,
            node_type=node_type,
            node_id=node_id,
            node_delta=delta,
            node=None if kind is GraphUpdateKind.DELETE else node,
        )

    def create_pipeline_stage_event(
        self,
        run_id: str,
        pipeline_id: str,
        stage_id: str,
        stage_name: str,
        stage_index: int,
        stage_status: StageStatus | str,
        error: str | None = None,
    ) -> PipelineStageEvent:
        """Build a PipelineStageEvent for one stage transition."""
        status = StageStatus(stage_status)
        if status not in _STAGE_EVENT_TYPES:
            raise ValueError(f"Stage events carry running/completed/failed, got {status.value!r}")
        return PipelineStageEvent(
            event_type=_STAGE_EVENT_TYPES[status],
            context_id=self.context_id,
            run_id=run_id,
            pipeline_id=pipeline_id,
            stage_id=stage_id,
            stage_name=stage_name,
            stage_index=stage_index,
            stage_status=status,
            error=error,
        )

    def create_runtime_execution_event(
        self,
        execution_id: str,
        execution_kind: str,
        action_type: str,
        status: ExecutionStatus | str,
        executor_role: str | None = None,
        error: str | None = None,
    ) -> RuntimeExecutionEvent:
        """Build a RuntimeExecutionEvent for one action transition."""
        exec_status = ExecutionStatus(status)
        return RuntimeExecutionEvent(
            event_type=_EXECUTION_EVENT_TYPES[exec_status],
            context_id=self.context_id,
            execution_id=execution_id,
            execution_kind=execution_kind,
            action_type=action_type,
            status=exec_status,
            executor_role=executor_role,
            error=error,
        )

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(
        self,
        listener: EventListener,
        families: Iterable[EventFamily | str] | EventFamily | str | None = None,
    ) -> str:
        """Register a listener, optionally restricted to some families.

        Returns
        -------
        str
            Subscription id for :meth:`unsubscribe`
        """
        if families is None:
            wanted = None
        elif isinstance(families, str):
            wanted = frozenset({EventFamily(families)})
        else:
            wanted = frozenset(EventFamily(f) for f in families)

        subscription_id = uuid.uuid4().hex
        self._listeners[subscription_id] = (listener, wanted)
        logger.debug(
            "Subscribed {listener} to {families}",
            listener=getattr(listener, "__qualname__", repr(listener)),
            families=sorted(wanted) if wanted else "all",
        )
        return subscription_id

    def on(self, family: EventFamily | str, listener: EventListener) -> str:
        """Subscribe to a single family."""
        return self.subscribe(listener, families=family)

    def unsubscribe(self, subscription_id: str) -> bool:
        return self._listeners.pop(subscription_id, None) is not None

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def emit(self, event: Event) -> None:
        """Deliver an event to every interested listener, synchronously."""
        for subscription_id, (listener, wanted) in list(self._listeners.items()):
            if wanted is not None and event.family not in wanted:
                continue
            try:
                listener(event)
            except Exception as e:
                logger.warning(
                    "Listener {sid} failed for {event_type}: {error}",
                    sid=subscription_id,
                    event_type=event.event_type,
                    error=e,
                )


class EventPublisher:
    """Persist-then-emit: the only path by which core events leave a component.

    ``publish`` appends the event to the store's log and only then hands it to
    the emitter. If the append fails the :class:`StorageError` propagates and
    no subscriber sees the event.
    """

    def __init__(self, store: NodeStore, emitter: EventEmitter) -> None:
        self.store = store
        self.emitter = emitter

    async def publish(self, event: Event) -> Event:
        await self.store.append_event(event)
        self.emitter.emit(event)
        logger.trace(event.log_message())
        return event
