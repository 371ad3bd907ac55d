"""Tests for the PipelineExecutor."""

import asyncio
import threading

import pytest

from hexflow.drivers.node_store import InMemoryNodeStore
from hexflow.kernel.domain.pipeline import (
    PipelineDefinition,
    PipelineStage,
    RunStatus,
    StageContext,
    StageStatus,
)
from hexflow.kernel.exceptions import PipelineNotFoundError, StorageError, ValidationError
from hexflow.kernel.orchestration import PipelineExecutor
from hexflow.kernel.orchestration.events import EventPublisher, PipelineStageEvent


def definition(pipeline_id: str, *stage_ids: str, timeout_ms=None) -> PipelineDefinition:
    return PipelineDefinition(
        pipeline_id=pipeline_id,
        name=pipeline_id.title(),
        stages=[
            PipelineStage(stage_id=s, stage_name=f"Stage {s}", timeout_ms=timeout_ms)
            for s in stage_ids
        ],
    )


# Test handlers
async def handler_a(data, ctx):
    return {"x": 1}


async def handler_b(data, ctx):
    return {"x": data["x"] + 1}


async def boom(data, ctx):
    raise RuntimeError("boom")


class AppendFailingStore(InMemoryNodeStore):
    """Memory store whose log fails after ``fail_after`` appends."""

    def __init__(self, fail_after: int) -> None:
        super().__init__()
        self.fail_after = fail_after

    async def append_event(self, event):
        if self.event_count >= self.fail_after:
            raise StorageError("append_event", "events", "disk full")
        await super().append_event(event)


@pytest.fixture
def executor(publisher):
    return PipelineExecutor(publisher)


def stage_events(recorder) -> list[tuple[str, str]]:
    return [
        (e.stage_id, e.stage_status.value)
        for e in recorder.events
        if isinstance(e, PipelineStageEvent)
    ]


# ============================================================================
# Core scenarios
# ============================================================================


class TestScenarios:
    """End-to-end run scenarios."""

    @pytest.mark.asyncio
    async def test_all_stages_complete(self, executor, recorder):
        """Test outputs thread through stages and every stage completes."""
        executor.register_pipeline(definition("demo", "A", "B"))
        executor.register_stage_handler("A", handler_a)
        executor.register_stage_handler("B", handler_b)

        result = await executor.run("demo", {})

        assert result.status is RunStatus.COMPLETED
        assert [(s.stage_id, s.status, s.output) for s in result.stages] == [
            ("A", StageStatus.COMPLETED, {"x": 1}),
            ("B", StageStatus.COMPLETED, {"x": 2}),
        ]
        assert result.output == {"x": 2}
        assert stage_events(recorder) == [
            ("A", "running"),
            ("A", "completed"),
            ("B", "running"),
            ("B", "completed"),
        ]

    @pytest.mark.asyncio
    async def test_failing_stage_aborts_run(self, executor, recorder):
        """Test a failing stage is recorded and later stages never run."""
        called = []

        async def never(data, ctx):
            called.append(ctx.stage_id)

        executor.register_pipeline(definition("demo2", "A", "B"))
        executor.register_stage_handler("A", boom)
        executor.register_stage_handler("B", never)

        result = await executor.run("demo2", {})

        assert result.status is RunStatus.FAILED
        assert len(result.stages) == 1
        assert result.stages[0].stage_id == "A"
        assert result.stages[0].status is StageStatus.FAILED
        assert result.stages[0].error == "boom"
        assert result.failed_stage is result.stages[0]
        assert result.output is None
        assert called == []
        assert stage_events(recorder) == [("A", "running"), ("A", "failed")]
        assert recorder.events[-1].error == "boom"

    @pytest.mark.asyncio
    async def test_unknown_pipeline_rejected_without_events(
        self, executor, memory_store, recorder
    ):
        executor.register_pipeline(definition("demo", "A"))

        with pytest.raises(PipelineNotFoundError, match="missing-pipeline"):
            await executor.run("missing-pipeline", {})

        assert memory_store.event_count == 0
        assert recorder.events == []


# ============================================================================
# Stage semantics
# ============================================================================


class TestStageExecution:
    """Test handler invocation rules."""

    @pytest.mark.asyncio
    async def test_handler_receives_context(self, executor, emitter):
        contexts: list[StageContext] = []

        async def capture(data, ctx):
            contexts.append(ctx)
            return data

        executor.register_pipeline(definition("demo", "A"))
        executor.register_stage_handler("A", capture)
        result = await executor.run("demo", {"seed": True})

        ctx = contexts[0]
        assert ctx.pipeline_id == "demo"
        assert ctx.stage_id == "A"
        assert ctx.run_id == result.run_id
        assert ctx.context_id == emitter.context_id
        assert result.stages[0].output == {"seed": True}

    @pytest.mark.asyncio
    async def test_sync_handler_runs_off_loop(self, executor):
        loop_thread = threading.get_ident()
        threads = []

        def sync_handler(data, ctx):
            threads.append(threading.get_ident())
            return data * 2

        executor.register_pipeline(definition("demo", "A"))
        executor.register_stage_handler("A", sync_handler)
        result = await executor.run("demo", 21)

        assert result.stages[0].output == 42
        assert threads and threads[0] != loop_thread

    @pytest.mark.asyncio
    async def test_sync_handler_returning_awaitable(self, executor):
        def returns_coroutine(data, ctx):
            return handler_a(data, ctx)

        executor.register_pipeline(definition("demo", "A"))
        executor.register_stage_handler("A", returns_coroutine)
        result = await executor.run("demo", {})
        assert result.stages[0].output == {"x": 1}

    @pytest.mark.asyncio
    async def test_missing_handler_is_stage_failure(self, executor, recorder):
        executor.register_pipeline(definition("demo", "A", "B"))
        executor.register_stage_handler("A", handler_a)

        result = await executor.run("demo", {})

        assert result.status is RunStatus.FAILED
        assert result.stages[-1].stage_id == "B"
        assert result.stages[-1].error == "No handler for stage: B"
        assert stage_events(recorder)[-2:] == [("B", "running"), ("B", "failed")]

    @pytest.mark.asyncio
    async def test_empty_error_message_uses_exception_name(self, executor):
        async def silent(data, ctx):
            raise KeyError

        executor.register_pipeline(definition("demo", "A"))
        executor.register_stage_handler("A", silent)
        result = await executor.run("demo", {})
        assert result.stages[0].error == "KeyError"

    @pytest.mark.asyncio
    async def test_sync_handler_failure(self, executor):
        def broken(data, ctx):
            raise ValueError("bad input")

        executor.register_pipeline(definition("demo", "A"))
        executor.register_stage_handler("A", broken)
        result = await executor.run("demo", {})
        assert result.stages[0].error == "bad input"

    @pytest.mark.asyncio
    async def test_empty_pipeline_completes(self, executor, recorder):
        executor.register_pipeline(definition("noop"))
        result = await executor.run("noop")
        assert result.status is RunStatus.COMPLETED
        assert result.stages == []
        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_durations(self, executor):
        async def slow(data, ctx):
            await asyncio.sleep(0.02)
            return data

        executor.register_pipeline(definition("demo", "A", "B"))
        executor.register_stage_handler("A", slow)
        executor.register_stage_handler("B", slow)
        result = await executor.run("demo", {})

        assert all(s.duration_ms >= 0 for s in result.stages)
        assert result.stages[0].duration_ms >= 15
        assert result.total_duration_ms >= sum(s.duration_ms for s in result.stages)


# ============================================================================
# Timeouts
# ============================================================================


class TestTimeouts:
    """Test stage timeout enforcement."""

    @pytest.mark.asyncio
    async def test_slow_stage_times_out(self, executor, recorder):
        async def slow(data, ctx):
            await asyncio.sleep(5)

        executor.register_pipeline(definition("demo", "A", timeout_ms=20))
        executor.register_stage_handler("A", slow)

        result = await executor.run("demo", {})

        assert result.status is RunStatus.FAILED
        assert result.stages[0].error == "Stage 'A' timed out after 20 ms"
        assert stage_events(recorder) == [("A", "running"), ("A", "failed")]

    @pytest.mark.asyncio
    async def test_handler_timeout_error_is_not_a_stage_timeout(self, executor):
        """Test a TimeoutError raised by the handler itself keeps its message."""

        async def raises_timeout(data, ctx):
            raise TimeoutError("upstream API timed out")

        executor.register_pipeline(definition("demo", "A", timeout_ms=5000))
        executor.register_stage_handler("A", raises_timeout)
        result = await executor.run("demo", {})
        assert result.stages[0].error == "upstream API timed out"

    @pytest.mark.asyncio
    async def test_timeouts_can_be_disabled(self, publisher):
        executor = PipelineExecutor(publisher, enforce_timeouts=False)

        async def slightly_slow(data, ctx):
            await asyncio.sleep(0.05)
            return "done"

        executor.register_pipeline(definition("demo", "A", timeout_ms=1))
        executor.register_stage_handler("A", slightly_slow)
        result = await executor.run("demo", {})
        assert result.status is RunStatus.COMPLETED


# ============================================================================
# Registries, concurrency and storage failures
# ============================================================================


class TestRegistry:
    """Test instance-owned registries."""

    def test_duplicate_stage_ids_rejected(self):
        with pytest.raises(ValidationError, match="duplicate stage_id"):
            definition("demo", "A", "A")

    def test_register_is_upsert(self, executor):
        executor.register_pipeline(definition("demo", "A"))
        executor.register_pipeline(definition("demo", "A", "B"))
        assert [p.pipeline_id for p in executor.pipelines()] == ["demo"]
        assert len(executor.get_pipeline("demo").stages) == 2

    def test_executors_do_not_share_state(self, publisher):
        first = PipelineExecutor(publisher)
        second = PipelineExecutor(publisher)
        first.register_pipeline(definition("demo", "A"))
        first.register_stage_handler("A", handler_a)
        assert second.pipelines() == []
        assert not second.has_handler("A")


class TestConcurrency:
    """Test independent runs in flight together."""

    @pytest.mark.asyncio
    async def test_concurrent_runs_are_isolated(self, executor, recorder):
        async def echo(data, ctx):
            await asyncio.sleep(0.01)
            return {"input": data, "run_id": ctx.run_id}

        executor.register_pipeline(definition("demo", "A", "B"))
        executor.register_stage_handler("A", echo)
        executor.register_stage_handler("B", echo)

        results = await asyncio.gather(*(executor.run("demo", i) for i in range(5)))

        assert len({r.run_id for r in results}) == 5
        for i, result in enumerate(results):
            assert result.status is RunStatus.COMPLETED
            assert result.output["input"]["input"] == i
            run_events = [
                e.stage_status.value
                for e in recorder.events
                if isinstance(e, PipelineStageEvent) and e.run_id == result.run_id
            ]
            assert run_events == ["running", "completed", "running", "completed"]


class TestStorageFailures:
    """Test that event log failures surface to the caller."""

    @pytest.mark.asyncio
    async def test_storage_error_propagates(self, emitter, recorder):
        store = AppendFailingStore(fail_after=1)
        executor = PipelineExecutor(EventPublisher(store, emitter))
        executor.register_pipeline(definition("demo", "A"))
        executor.register_stage_handler("A", handler_a)

        with pytest.raises(StorageError):
            await executor.run("demo", {})
        assert stage_events(recorder) == [("A", "running")]
