"""Event data classes for the hexflow audit trail.

Three families are recorded: graph updates, pipeline stage transitions and
runtime (action) executions. Every event shares the same envelope and can be
flattened into one JSON record for the event log.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, ClassVar

from hexflow.kernel.domain.pipeline import StageStatus


class EventFamily(StrEnum):
    """Event classification used for subscription filtering."""

    GRAPH_UPDATE = "graph_update"
    PIPELINE_STAGE = "pipeline_stage"
    RUNTIME_EXECUTION = "runtime_execution"


class GraphUpdateKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ExecutionStatus(StrEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def _new_event_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True, kw_only=True)
class Event:
    """Base envelope shared by every event."""

    family: ClassVar[EventFamily]

    event_type: str
    context_id: str
    event_id: str = field(default_factory=_new_event_id)
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def event_family(self) -> EventFamily:
        return self.family

    def to_record(self) -> dict[str, Any]:
        """Flatten into a JSON-compatible record for the event log."""
        record: dict[str, Any] = {"event_family": self.family.value}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, StrEnum):
                value = value.value
            record[f.name] = value
        return record

    def log_message(self) -> str:
        """Get a formatted log message for this event.

        Override in subclasses to provide custom formatting.
        """
        return f"{self.__class__.__name__} at {self.timestamp.isoformat()}"


@dataclass(slots=True, kw_only=True)
class GraphUpdateEvent(Event):
    """A node was created, updated or deleted.

    Attributes
    ----------
    event_kind : GraphUpdateKind
        create, update or delete
    node_type : str
        Type of the mutated node
    node_id : str
        Id of the mutated node
    node_delta : int
        +1 for create, 0 for update, -1 for delete
    node : dict[str, Any] | None
        Full record after the write; None for deletes. Replaying the log
        applies these records in order to rebuild graph state.
    """

    family: ClassVar[EventFamily] = EventFamily.GRAPH_UPDATE

    event_kind: GraphUpdateKind
    node_type: str
    node_id: str
    node_delta: int = 0
    node: dict[str, Any] | None = None

    def log_message(self) -> str:
        return f"Node {self.node_type}/{self.node_id} {self.event_kind.value}d"


@dataclass(slots=True, kw_only=True)
class PipelineStageEvent(Event):
    """A stage of a pipeline run changed status.

    Attributes
    ----------
    run_id : str
        Correlation id of the run
    pipeline_id : str
        Pipeline being run
    stage_id : str
        Stage identifier
    stage_name : str
        Human-readable stage name
    stage_index : int
        Zero-based position of the stage in the definition
    stage_status : StageStatus
        running, completed or failed
    error : str | None
        Failure message for failed stages
    """

    family: ClassVar[EventFamily] = EventFamily.PIPELINE_STAGE

    run_id: str
    pipeline_id: str
    stage_id: str
    stage_name: str
    stage_index: int
    stage_status: StageStatus
    error: str | None = None

    def log_message(self) -> str:
        base = (
            f"Stage '{self.stage_id}' ({self.stage_index}) of '{self.pipeline_id}' "
            f"{self.stage_status.value}"
        )
        return f"{base}: {self.error}" if self.error else base


@dataclass(slots=True, kw_only=True)
class RuntimeExecutionEvent(Event):
    """A single action execution changed status."""

    family: ClassVar[EventFamily] = EventFamily.RUNTIME_EXECUTION

    execution_id: str
    execution_kind: str
    action_type: str
    status: ExecutionStatus
    executor_role: str | None = None
    error: str | None = None

    def log_message(self) -> str:
        base = f"Action '{self.action_type}' [{self.execution_kind}] {self.status.value}"
        return f"{base}: {self.error}" if self.error else base


_EVENT_CLASSES: dict[str, type[Event]] = {
    EventFamily.GRAPH_UPDATE.value: GraphUpdateEvent,
    EventFamily.PIPELINE_STAGE.value: PipelineStageEvent,
    EventFamily.RUNTIME_EXECUTION.value: RuntimeExecutionEvent,
}

_ENUM_FIELDS: dict[str, type[StrEnum]] = {
    "event_kind": GraphUpdateKind,
    "stage_status": StageStatus,
    "status": ExecutionStatus,
}


def event_from_record(record: dict[str, Any]) -> Event:
    """Rebuild an event from a log record produced by :meth:`Event.to_record`.

    Raises
    ------
    ValueError
        If the family is unknown or a required field is missing
    """
    data = dict(record)
    family = data.pop("event_family", None)
    event_cls = _EVENT_CLASSES.get(family) if isinstance(family, str) else None
    if event_cls is None:
        raise ValueError(f"Unknown event family: {family!r}")

    if isinstance(data.get("timestamp"), str):
        data["timestamp"] = datetime.fromisoformat(data["timestamp"])
    for name, enum_cls in _ENUM_FIELDS.items():
        if name in data:
            data[name] = enum_cls(data[name])

    try:
        return event_cls(**data)
    except TypeError as e:
        raise ValueError(f"Malformed {family} record: {e}") from e
