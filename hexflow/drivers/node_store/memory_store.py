"""In-memory node store, for tests and ephemeral runtimes."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from hexflow.kernel.domain.node import Node, NodeKey
from hexflow.kernel.exceptions import StorageError
from hexflow.kernel.orchestration.events.events import Event, event_from_record
from hexflow.kernel.utils.serialization import dumps_line, loads

if TYPE_CHECKING:
    from hexflow.kernel.ports.node_store import NodePredicate

__all__ = ["InMemoryNodeStore"]


class InMemoryNodeStore:
    """Node store held in process memory.

    Records are stored as plain dicts, the same shape the file store writes,
    so callers mutating a returned :class:`Node` never change stored state.
    ``query`` returns nodes in first-insertion order.
    """

    def __init__(self) -> None:
        self._records: dict[NodeKey, dict[str, Any]] = {}
        self._events: list[dict[str, Any]] = []
        self._append_lock = asyncio.Lock()

    async def initialize(self) -> None:
        return None

    async def put(self, node: Node) -> None:
        try:
            record = node.to_record()
        except (TypeError, ValueError) as e:
            raise StorageError("put", f"{node.type}/{node.id}", str(e)) from e
        self._records[node.key] = record

    async def get(self, node_type: str, node_id: str) -> Node | None:
        record = self._records.get((node_type, node_id))
        return Node.from_record(record) if record is not None else None

    async def delete(self, node_type: str, node_id: str) -> bool:
        return self._records.pop((node_type, node_id), None) is not None

    async def exists(self, node_type: str, node_id: str) -> bool:
        return (node_type, node_id) in self._records

    async def query(self, predicate: NodePredicate | None = None) -> list[Node]:
        nodes = [Node.from_record(record) for record in self._records.values()]
        if predicate is None:
            return nodes
        return [node for node in nodes if predicate(node)]

    async def list_types(self) -> list[str]:
        return sorted({node_type for node_type, _ in self._records})

    async def append_event(self, event: Event) -> None:
        # Round-trip through the log encoding so bad payloads fail here too
        try:
            record = loads(dumps_line(event.to_record()))
        except TypeError as e:
            raise StorageError("append_event", event.event_id, str(e)) from e
        async with self._append_lock:
            self._events.append(record)

    async def read_events(self) -> AsyncIterator[Event]:
        for record in list(self._events):
            yield event_from_record(record)

    @property
    def event_count(self) -> int:
        return len(self._events)
