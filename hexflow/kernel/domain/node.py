"""Node envelope and graph query models.

A node is a fixed envelope (``type``, ``id``, ``context_id``) plus an open
``data`` map holding the domain fields of its variant. Domain types are
namespaced by convention (``domain:ContentAsset``, ``domain:OutreachTarget``)
but the store treats ``type`` as an opaque tag.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

NodeKey = tuple[str, str]


class Node(BaseModel):
    """A typed, uniquely identified record.

    ``(type, id)`` is globally unique. Updates are full-record overwrites.

    Examples
    --------
    Example usage::

        asset = Node(
            type="domain:ContentAsset",
            id="9b1c",
            context_id="ctx-growth",
            data={"status": "draft", "title": "Launch thread"},
        )
    """

    model_config = ConfigDict(extra="forbid")

    type: str = Field(min_length=1)
    id: str = Field(min_length=1)
    context_id: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> NodeKey:
        return (self.type, self.id)

    def to_record(self) -> dict[str, Any]:
        """Plain JSON-compatible dict, as written to the store."""
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Node:
        return cls.model_validate(record)


class GraphQuery(BaseModel):
    """Criteria for :meth:`SemanticGraph.query`; all given criteria are ANDed.

    Attributes
    ----------
    type : str | None
        Exact node type
    context_id : str | None
        Exact context id
    filter : dict[str, Any]
        ``node.data[key] == value`` for every entry
    limit : int | None
        Maximum number of nodes returned
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: str | None = None
    context_id: str | None = None
    filter: dict[str, Any] = Field(default_factory=dict)
    limit: int | None = Field(default=None, ge=1)

    def matches(self, node: Node) -> bool:
        if self.type is not None and node.type != self.type:
            return False
        if self.context_id is not None and node.context_id != self.context_id:
            return False
        for field_name, expected in self.filter.items():
            if field_name not in node.data or node.data[field_name] != expected:
                return False
        return True
