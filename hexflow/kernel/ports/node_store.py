"""Node store port definition."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from hexflow.kernel.domain.node import Node
    from hexflow.kernel.orchestration.events.events import Event

NodePredicate = Callable[["Node"], bool]


@runtime_checkable
class NodeStore(Protocol):
    """Durable keyed storage for nodes plus an append-only event log.

    Every I/O or decode failure surfaces as
    :class:`~hexflow.kernel.exceptions.StorageError`; implementations never
    retry and never raise for a missing node.
    """

    async def put(self, node: Node) -> None:
        """Upsert a node by ``(type, id)``.

        The write is atomic: readers see either the previous record or the
        new one, never a partial record.
        """
        ...

    async def get(self, node_type: str, node_id: str) -> Node | None:
        """Return the node, or None when absent."""
        ...

    async def delete(self, node_type: str, node_id: str) -> bool:
        """Remove a node.

        Returns
        -------
        bool
            True if a record existed and was removed
        """
        ...

    async def exists(self, node_type: str, node_id: str) -> bool:
        """Check whether a node is stored."""
        ...

    async def query(self, predicate: NodePredicate | None = None) -> list[Node]:
        """Return every node matching ``predicate`` (all nodes when None).

        A full scan; no ordering is guaranteed across implementations.
        """
        ...

    async def list_types(self) -> list[str]:
        """Distinct node types currently stored, sorted."""
        ...

    async def append_event(self, event: Event) -> None:
        """Append one immutable record to the event log.

        Concurrent appends never interleave partial records.
        """
        ...

    def read_events(self) -> AsyncIterator[Event]:
        """Iterate the event log in write order."""
        ...
