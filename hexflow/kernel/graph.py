"""Graph layer: query/mutation surface over a node store.

Every successful mutation produces exactly one :class:`GraphUpdateEvent`,
which is appended to the store's event log before any subscriber sees it.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable
from typing import TYPE_CHECKING

from hexflow.kernel.domain.node import GraphQuery, Node, NodeKey
from hexflow.kernel.exceptions import ImmutableNodeError
from hexflow.kernel.logging import get_logger
from hexflow.kernel.orchestration.events.events import (
    Event,
    GraphUpdateEvent,
    GraphUpdateKind,
)

if TYPE_CHECKING:
    from hexflow.kernel.orchestration.events.emitter import EventPublisher
    from hexflow.kernel.ports.node_store import NodeStore

logger = get_logger(__name__)


class SemanticGraph:
    """Cached view of the node store that records every mutation.

    Concurrent puts to the same ``(type, id)`` are last-write-wins; there is
    no version check.

    Parameters
    ----------
    store : NodeStore
        Durable storage
    publisher : EventPublisher
        Persist-then-emit path for graph update events
    immutable_types : Iterable[str]
        Node types that may be created but never overwritten

    Examples
    --------
    Example usage::

        graph = SemanticGraph(store, publisher, immutable_types={"domain:MetricSnapshot"})
        await graph.put_node(Node(type="domain:Plan", id="p1", context_id="ctx"))
        plans = await graph.query(GraphQuery(type="domain:Plan"))
    """

    def __init__(
        self,
        store: NodeStore,
        publisher: EventPublisher,
        immutable_types: Iterable[str] = (),
    ) -> None:
        self.store = store
        self.publisher = publisher
        self.immutable_types = frozenset(immutable_types)
        self._cache: dict[NodeKey, Node] = {}

    @property
    def context_id(self) -> str:
        return self.publisher.emitter.context_id

    async def get_node(self, node_type: str, node_id: str) -> Node | None:
        """Return a copy of the node, or None when absent."""
        key = (node_type, node_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached.model_copy(deep=True)

        node = await self.store.get(node_type, node_id)
        if node is not None:
            self._cache[key] = node
            return node.model_copy(deep=True)
        return None

    async def put_node(self, node: Node) -> GraphUpdateEvent:
        """Create or overwrite a node.

        Returns
        -------
        GraphUpdateEvent
            The recorded event (create or update)

        Raises
        ------
        ImmutableNodeError
            If the node's type is immutable and the node already exists
        StorageError
            If the write or the event append fails
        """
        key = node.key
        is_new = key not in self._cache and not await self.store.exists(*key)

        if node.type in self.immutable_types and not is_new:
            raise ImmutableNodeError(node.type, node.id)

        stored = node.model_copy(deep=True)
        await self.store.put(stored)
        self._cache[key] = stored

        event = self.publisher.emitter.create_graph_update_event(
            GraphUpdateKind.CREATE if is_new else GraphUpdateKind.UPDATE,
            node_type=node.type,
            node_id=node.id,
            context_id=node.context_id,
            node=stored.to_record(),
        )
        await self.publisher.publish(event)
        logger.debug(event.log_message())
        return event

    async def delete_node(self, node_type: str, node_id: str) -> bool:
        """Delete a node; emits an event only when something was removed."""
        existing = self._cache.pop((node_type, node_id), None)
        if existing is None:
            existing = await self.store.get(node_type, node_id)

        deleted = await self.store.delete(node_type, node_id)
        if not deleted:
            return False

        event = self.publisher.emitter.create_graph_update_event(
            GraphUpdateKind.DELETE,
            node_type=node_type,
            node_id=node_id,
            context_id=existing.context_id if existing is not None else None,
        )
        await self.publisher.publish(event)
        logger.debug(event.log_message())
        return True

    async def query(self, query: GraphQuery | None = None) -> list[Node]:
        """Return nodes matching every criterion of ``query``."""
        query = query or GraphQuery()
        nodes = await self.store.query(query.matches)
        if query.limit is not None:
            nodes = nodes[: query.limit]
        for node in nodes:
            self._cache[node.key] = node
        return [node.model_copy(deep=True) for node in nodes]

    async def list_types(self) -> list[str]:
        return await self.store.list_types()

    async def load(self) -> int:
        """Warm the cache with every stored node.

        Returns
        -------
        int
            Number of nodes loaded
        """
        nodes = await self.store.query()
        self._cache = {node.key: node for node in nodes}
        logger.info("Loaded {count} nodes into graph cache", count=len(nodes))
        return len(nodes)

    async def rebuild_from_log(self) -> dict[NodeKey, Node]:
        """Reconstruct graph state by replaying the store's event log."""
        return await replay_graph_events(self.store.read_events())

    def invalidate(self, node_type: str | None = None, node_id: str | None = None) -> None:
        """Drop cached nodes (all, one type, or one node)."""
        if node_type is None:
            self._cache.clear()
        elif node_id is None:
            self._cache = {k: v for k, v in self._cache.items() if k[0] != node_type}
        else:
            self._cache.pop((node_type, node_id), None)


async def replay_graph_events(events: AsyncIterable[Event]) -> dict[NodeKey, Node]:
    """Fold graph update events into the node set they describe.

    Creates and updates install the event's node record; deletes remove the
    key. Other event families are ignored.
    """
    state: dict[NodeKey, Node] = {}
    async for event in events:
        if not isinstance(event, GraphUpdateEvent):
            continue
        key = (event.node_type, event.node_id)
        if event.event_kind is GraphUpdateKind.DELETE:
            state.pop(key, None)
        elif event.node is not None:
            state[key] = Node.from_record(event.node)
    return state
