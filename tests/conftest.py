"""Shared fixtures for the hexflow test suite.

- memory_store / file_store: fresh node stores per test
- emitter / publisher: event plumbing bound to the memory store
- recorder: listener recording every emitted event
"""

from __future__ import annotations

import pytest

from hexflow.compiler.config_loader import clear_config_cache
from hexflow.drivers.node_store import FileNodeStore, InMemoryNodeStore
from hexflow.kernel.orchestration.events import Event, EventEmitter, EventPublisher

CONTEXT_ID = "ctx-test"


class RecordingListener:
    """Listener that records every event it receives."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    @property
    def event_types(self) -> list[str]:
        return [event.event_type for event in self.events]


@pytest.fixture
def memory_store() -> InMemoryNodeStore:
    return InMemoryNodeStore()


@pytest.fixture
def file_store(tmp_path) -> FileNodeStore:
    return FileNodeStore(tmp_path / "state", fsync=False)


@pytest.fixture
def emitter() -> EventEmitter:
    return EventEmitter(CONTEXT_ID)


@pytest.fixture
def publisher(memory_store, emitter) -> EventPublisher:
    return EventPublisher(memory_store, emitter)


@pytest.fixture
def recorder(emitter) -> RecordingListener:
    listener = RecordingListener()
    emitter.subscribe(listener)
    return listener


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch):
    """Keep HEXFLOW_* variables from the developer's shell out of tests."""
    for name in (
        "HEXFLOW_CONFIG_PATH",
        "HEXFLOW_STATE_DIR",
        "HEXFLOW_CONTEXT_ID",
        "HEXFLOW_STORE_BACKEND",
        "HEXFLOW_LOG_LEVEL",
        "HEXFLOW_LOG_FORMAT",
        "HEXFLOW_LOG_FILE",
        "HEXFLOW_LOG_COLOR",
        "HEXFLOW_LOG_RICH",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()
