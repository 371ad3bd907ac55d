"""Event system for hexflow.

- events.py: event data classes (just data, no behavior)
- emitter.py: event factories, subscriber fan-out and the persist-then-emit publisher
"""

from .emitter import EventEmitter, EventListener, EventPublisher
from .events import (
    Event,
    EventFamily,
    ExecutionStatus,
    GraphUpdateEvent,
    GraphUpdateKind,
    PipelineStageEvent,
    RuntimeExecutionEvent,
    event_from_record,
)

# Event taxonomy - grouped families for subscriber filtering
GRAPH_EVENTS = (EventFamily.GRAPH_UPDATE,)
EXECUTION_EVENTS = (EventFamily.PIPELINE_STAGE, EventFamily.RUNTIME_EXECUTION)
ALL_EVENTS = GRAPH_EVENTS + EXECUTION_EVENTS

__all__ = [
    # Events
    "Event",
    "EventFamily",
    "ExecutionStatus",
    "GraphUpdateEvent",
    "GraphUpdateKind",
    "PipelineStageEvent",
    "RuntimeExecutionEvent",
    "event_from_record",
    # Delivery
    "EventEmitter",
    "EventListener",
    "EventPublisher",
    # Event Taxonomy
    "GRAPH_EVENTS",
    "EXECUTION_EVENTS",
    "ALL_EVENTS",
]
