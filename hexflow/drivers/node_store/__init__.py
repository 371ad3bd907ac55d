"""Node store drivers."""

from hexflow.drivers.node_store.file_store import FileNodeStore
from hexflow.drivers.node_store.memory_store import InMemoryNodeStore

__all__ = ["FileNodeStore", "InMemoryNodeStore"]
