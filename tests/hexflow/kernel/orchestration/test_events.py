"""Tests for event data classes and log record round-trips."""

from datetime import UTC, datetime

import pytest

from hexflow.kernel.domain.pipeline import StageStatus
from hexflow.kernel.orchestration.events import (
    EventFamily,
    ExecutionStatus,
    GraphUpdateEvent,
    GraphUpdateKind,
    PipelineStageEvent,
    RuntimeExecutionEvent,
    event_from_record,
)


def _stage_event(**overrides) -> PipelineStageEvent:
    fields = {
        "event_type": "stage_failed",
        "context_id": "ctx",
        "run_id": "run-1",
        "pipeline_id": "p",
        "stage_id": "draft",
        "stage_name": "Draft",
        "stage_index": 0,
        "stage_status": StageStatus.FAILED,
        "error": "boom",
    }
    fields.update(overrides)
    return PipelineStageEvent(**fields)


class TestEnvelope:
    """Test the shared event envelope."""

    def test_defaults_are_populated(self):
        event = _stage_event()
        assert len(event.event_id) == 32
        assert event.timestamp.tzinfo is UTC
        assert event.event_family is EventFamily.PIPELINE_STAGE

    def test_event_ids_are_unique(self):
        assert _stage_event().event_id != _stage_event().event_id

    def test_record_is_flat_and_tagged(self):
        record = _stage_event().to_record()
        assert record["event_family"] == "pipeline_stage"
        assert record["stage_status"] == "failed"
        assert isinstance(record["timestamp"], str)
        assert "family" not in record


class TestEventFromRecord:
    """Test rebuilding events from log records."""

    def test_stage_event(self):
        event = _stage_event()
        rebuilt = event_from_record(event.to_record())
        assert rebuilt == event

    def test_graph_event_keeps_node_record(self):
        event = GraphUpdateEvent(
            event_type="node_created",
            context_id="ctx",
            event_kind=GraphUpdateKind.CREATE,
            node_type="domain:Plan",
            node_id="p1",
            node_delta=1,
            node={"type": "domain:Plan", "id": "p1", "context_id": "ctx", "data": {}},
        )
        rebuilt = event_from_record(event.to_record())
        assert isinstance(rebuilt, GraphUpdateEvent)
        assert rebuilt.event_kind is GraphUpdateKind.CREATE
        assert rebuilt.node == event.node

    def test_execution_event(self):
        event = RuntimeExecutionEvent(
            event_type="execution_completed",
            context_id="ctx",
            execution_id="e1",
            execution_kind="tool",
            action_type="send",
            status=ExecutionStatus.COMPLETED,
            timestamp=datetime(2025, 1, 1, tzinfo=UTC),
        )
        rebuilt = event_from_record(event.to_record())
        assert rebuilt.status is ExecutionStatus.COMPLETED
        assert rebuilt.timestamp == event.timestamp

    def test_unknown_family_rejected(self):
        with pytest.raises(ValueError, match="Unknown event family"):
            event_from_record({"event_family": "metrics", "event_type": "x"})

    def test_missing_fields_rejected(self):
        record = _stage_event().to_record()
        del record["run_id"]
        with pytest.raises(ValueError, match="Malformed"):
            event_from_record(record)


class TestLogMessages:
    """Test human-readable log messages."""

    def test_stage_message_includes_error(self):
        assert _stage_event().log_message() == "Stage 'draft' (0) of 'p' failed: boom"

    def test_graph_message(self):
        event = GraphUpdateEvent(
            event_type="node_deleted",
            context_id="ctx",
            event_kind=GraphUpdateKind.DELETE,
            node_type="domain:Plan",
            node_id="p1",
            node_delta=-1,
        )
        assert event.log_message() == "Node domain:Plan/p1 deleted"
