"""orjson helpers for node blobs and event log lines."""

from __future__ import annotations

from typing import Any

import orjson

_PRETTY = orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS


def _default(obj: Any) -> Any:
    # Sets and pydantic models show up in handler outputs stored on nodes
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=repr)
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def dumps_blob(data: Any) -> bytes:
    """Encode a node record or CLI payload (indented, stable key order)."""
    return orjson.dumps(data, default=_default, option=_PRETTY)


def dumps_line(data: dict[str, Any]) -> bytes:
    """Encode one event record as a single NDJSON line, newline included."""
    return orjson.dumps(data, default=_default, option=orjson.OPT_APPEND_NEWLINE)


def loads(data: bytes | str) -> Any:
    return orjson.loads(data)
