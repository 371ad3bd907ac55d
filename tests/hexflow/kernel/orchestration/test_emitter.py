"""Tests for EventEmitter factories, fan-out and the persist-then-emit publisher."""

import pytest

from hexflow.kernel.domain.pipeline import StageStatus
from hexflow.kernel.exceptions import StorageError
from hexflow.kernel.orchestration.events import (
    EventEmitter,
    EventFamily,
    EventPublisher,
    ExecutionStatus,
    GraphUpdateKind,
)


class FailingStore:
    """Store whose event log always fails."""

    async def append_event(self, event):
        raise StorageError("append_event", "events.ndjson", "disk full")


class TestFactories:
    """Test typed event factories."""

    @pytest.mark.parametrize(
        ("kind", "event_type", "delta"),
        [
            (GraphUpdateKind.CREATE, "node_created", 1),
            (GraphUpdateKind.UPDATE, "node_updated", 0),
            (GraphUpdateKind.DELETE, "node_deleted", -1),
        ],
    )
    def test_graph_update_event(self, emitter, kind, event_type, delta):
        event = emitter.create_graph_update_event(
            kind, "domain:Plan", "p1", node={"id": "p1"}
        )
        assert event.event_type == event_type
        assert event.node_delta == delta
        assert event.context_id == "ctx-test"
        assert event.event_family is EventFamily.GRAPH_UPDATE

    def test_delete_event_drops_node(self, emitter):
        event = emitter.create_graph_update_event("delete", "t", "1", node={"id": "1"})
        assert event.node is None

    def test_graph_event_uses_node_context(self, emitter):
        event = emitter.create_graph_update_event("create", "t", "1", context_id="other")
        assert event.context_id == "other"

    @pytest.mark.parametrize(
        ("status", "event_type"),
        [
            (StageStatus.RUNNING, "stage_started"),
            (StageStatus.COMPLETED, "stage_completed"),
            (StageStatus.FAILED, "stage_failed"),
        ],
    )
    def test_pipeline_stage_event(self, emitter, status, event_type):
        event = emitter.create_pipeline_stage_event("run-1", "p", "draft", "Draft", 0, status)
        assert event.event_type == event_type
        assert event.stage_status is status
        assert event.run_id == "run-1"

    def test_pending_is_not_an_event(self, emitter):
        with pytest.raises(ValueError):
            emitter.create_pipeline_stage_event("r", "p", "s", "S", 0, StageStatus.PENDING)

    def test_runtime_execution_event(self, emitter):
        event = emitter.create_runtime_execution_event(
            "e1", "agent", "draft_post", "failed", executor_role="writer", error="boom"
        )
        assert event.event_type == "execution_failed"
        assert event.status is ExecutionStatus.FAILED
        assert event.executor_role == "writer"
        assert event.error == "boom"


class TestSubscription:
    """Test subscriber fan-out."""

    def test_delivers_in_subscription_order(self, emitter):
        seen = []
        emitter.subscribe(lambda e: seen.append("first"))
        emitter.subscribe(lambda e: seen.append("second"))
        emitter.emit(emitter.create_graph_update_event("create", "t", "1"))
        assert seen == ["first", "second"]

    def test_family_filter(self, emitter):
        graph_events = []
        emitter.on(EventFamily.GRAPH_UPDATE, graph_events.append)
        emitter.emit(emitter.create_pipeline_stage_event("r", "p", "s", "S", 0, "running"))
        emitter.emit(emitter.create_graph_update_event("create", "t", "1"))
        assert [e.event_type for e in graph_events] == ["node_created"]

    def test_unsubscribe(self, emitter):
        seen = []
        subscription = emitter.subscribe(seen.append)
        assert emitter.unsubscribe(subscription) is True
        assert emitter.unsubscribe(subscription) is False
        emitter.emit(emitter.create_graph_update_event("create", "t", "1"))
        assert seen == []
        assert len(emitter) == 0

    def test_failing_listener_is_isolated(self, emitter):
        """Test a raising listener neither stops delivery nor reaches the caller."""
        seen = []

        def broken(event):
            raise RuntimeError("listener bug")

        emitter.subscribe(broken)
        emitter.subscribe(seen.append)
        emitter.emit(emitter.create_graph_update_event("create", "t", "1"))
        assert len(seen) == 1

    def test_clear(self, emitter):
        emitter.subscribe(lambda e: None)
        emitter.clear()
        assert len(emitter) == 0


class TestPublisher:
    """Test persist-then-emit ordering."""

    @pytest.mark.asyncio
    async def test_event_is_logged_before_listeners_run(self, memory_store, emitter, publisher):
        logged_at_delivery = []
        emitter.subscribe(lambda e: logged_at_delivery.append(memory_store.event_count))

        await publisher.publish(emitter.create_graph_update_event("create", "t", "1"))

        assert logged_at_delivery == [1]

    @pytest.mark.asyncio
    async def test_failed_append_emits_nothing(self, emitter, recorder):
        publisher = EventPublisher(FailingStore(), emitter)
        with pytest.raises(StorageError):
            await publisher.publish(emitter.create_graph_update_event("create", "t", "1"))
        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_returns_event(self, emitter, publisher):
        event = emitter.create_graph_update_event("create", "t", "1")
        assert await publisher.publish(event) is event


def test_emitter_context_id():
    assert EventEmitter("ctx-a").context_id == "ctx-a"
