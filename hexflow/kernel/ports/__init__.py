"""Port interfaces consumed by the kernel."""

from hexflow.kernel.ports.node_store import NodePredicate, NodeStore

__all__ = ["NodePredicate", "NodeStore"]
