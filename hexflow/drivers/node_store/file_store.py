"""File-backed node store.

Storage layout::

    <base_path>/
    ├── objects/<type>/<id>.json
    └── events.ndjson

``type`` and ``id`` are percent-encoded into path segments, so identifiers
such as ``domain:ContentAsset`` or ids containing ``/`` stay inside the
objects tree. A leading ``.`` is encoded as well, so node files never
look like the dot-prefixed temp files of an in-progress write.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import AsyncIterator
from contextlib import suppress
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote, unquote

import aiofiles
import aiofiles.os
import orjson
from pydantic import ValidationError as PydanticValidationError

from hexflow.kernel.domain.node import Node
from hexflow.kernel.exceptions import StorageError
from hexflow.kernel.logging import get_logger
from hexflow.kernel.orchestration.events.events import Event, event_from_record
from hexflow.kernel.utils.serialization import dumps_blob, dumps_line, loads

if TYPE_CHECKING:
    from hexflow.kernel.ports.node_store import NodePredicate

logger = get_logger(__name__)

OBJECTS_DIR = "objects"
EVENTS_FILE = "events.ndjson"
_NODE_SUFFIX = ".json"
_TAIL_CHUNK = 64 * 1024


def _encode_segment(value: str) -> str:
    encoded = quote(value, safe="")
    # Dot-prefixed names are reserved for temp files (and "." / "..")
    if encoded.startswith("."):
        encoded = "%2E" + encoded[1:]
    return encoded


def _is_whole_record(line: bytes) -> bool:
    try:
        event_from_record(loads(line))
    except ValueError:
        return False
    return True


class FileNodeStore:
    """Node store persisting one JSON blob per node and an NDJSON event log.

    Parameters
    ----------
    base_path : str | Path
        Root directory of the store
    fsync : bool, default=True
        fsync node blobs before the atomic rename and the log after each append

    Examples
    --------
    Example usage::

        store = FileNodeStore("~/.hexflow/ctx-growth")
        await store.put(Node(type="domain:Plan", id="p1", context_id="ctx-growth"))
    """

    def __init__(self, base_path: str | Path, fsync: bool = True) -> None:
        self.base_path = Path(base_path).expanduser()
        self.objects_path = self.base_path / OBJECTS_DIR
        self.events_path = self.base_path / EVENTS_FILE
        self.fsync = fsync
        self._append_lock = asyncio.Lock()
        self._initialized = False

    async def initialize(self) -> None:
        """Create the directory tree and an empty event log (idempotent)."""
        if self._initialized:
            return
        try:
            await aiofiles.os.makedirs(self.objects_path, exist_ok=True)
            async with aiofiles.open(self.events_path, "ab"):
                pass
        except OSError as e:
            raise StorageError("initialize", str(self.base_path), str(e)) from e
        self._initialized = True
        logger.debug("Initialized node store at '{path}'", path=self.base_path)

    def _node_path(self, node_type: str, node_id: str) -> Path:
        return (
            self.objects_path
            / _encode_segment(node_type)
            / f"{_encode_segment(node_id)}{_NODE_SUFFIX}"
        )

    async def _sync(self, fd: int) -> None:
        if self.fsync:
            await asyncio.get_running_loop().run_in_executor(None, os.fsync, fd)

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    async def put(self, node: Node) -> None:
        await self.initialize()
        target = self._node_path(node.type, node.id)
        tmp_path = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        # pydantic raises a ValueError subclass for values it cannot serialize
        try:
            blob = dumps_blob(node.to_record())
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(blob)
                await f.flush()
                await self._sync(f.fileno())
            await aiofiles.os.replace(tmp_path, target)
        except (OSError, TypeError, ValueError) as e:
            with suppress(OSError):
                await aiofiles.os.remove(tmp_path)
            raise StorageError("put", f"{node.type}/{node.id}", str(e)) from e

    async def _read_node(self, path: Path, target: str) -> Node | None:
        try:
            async with aiofiles.open(path, "rb") as f:
                raw = await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError("get", target, str(e)) from e
        try:
            return Node.from_record(loads(raw))
        except (orjson.JSONDecodeError, PydanticValidationError) as e:
            raise StorageError("get", target, f"corrupt record: {e}") from e

    async def get(self, node_type: str, node_id: str) -> Node | None:
        return await self._read_node(
            self._node_path(node_type, node_id), f"{node_type}/{node_id}"
        )

    async def delete(self, node_type: str, node_id: str) -> bool:
        try:
            await aiofiles.os.remove(self._node_path(node_type, node_id))
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError("delete", f"{node_type}/{node_id}", str(e)) from e
        return True

    async def exists(self, node_type: str, node_id: str) -> bool:
        return await aiofiles.os.path.isfile(self._node_path(node_type, node_id))

    async def _list_dir(self, path: Path) -> list[str]:
        try:
            return sorted(await aiofiles.os.listdir(path))
        except (FileNotFoundError, NotADirectoryError):
            return []
        except OSError as e:
            raise StorageError("list", str(path), str(e)) from e

    def _is_node_file(self, name: str) -> bool:
        return name.endswith(_NODE_SUFFIX) and not name.startswith(".")

    async def query(self, predicate: NodePredicate | None = None) -> list[Node]:
        """Scan every stored node, in (type, id) path order."""
        results: list[Node] = []
        for type_dir in await self._list_dir(self.objects_path):
            type_path = self.objects_path / type_dir
            for name in await self._list_dir(type_path):
                if not self._is_node_file(name):
                    continue
                target = f"{unquote(type_dir)}/{unquote(name[: -len(_NODE_SUFFIX)])}"
                node = await self._read_node(type_path / name, target)
                if node is not None and (predicate is None or predicate(node)):
                    results.append(node)
        return results

    async def list_types(self) -> list[str]:
        types = []
        for type_dir in await self._list_dir(self.objects_path):
            names = await self._list_dir(self.objects_path / type_dir)
            if any(self._is_node_file(name) for name in names):
                types.append(unquote(type_dir))
        return sorted(types)

    # ------------------------------------------------------------------
    # Event log
    # ------------------------------------------------------------------

    async def append_event(self, event: Event) -> None:
        await self.initialize()
        try:
            line = dumps_line(event.to_record())
        except TypeError as e:
            raise StorageError("append_event", event.event_id, str(e)) from e
        async with self._append_lock:
            try:
                async with aiofiles.open(self.events_path, "a+b") as f:
                    await self._drop_torn_tail(f)
                    await f.write(line)
                    await f.flush()
                    await self._sync(f.fileno())
            except OSError as e:
                raise StorageError("append_event", str(self.events_path), str(e)) from e

    async def _drop_torn_tail(self, f) -> None:
        """Truncate a partial last line left by an interrupted append.

        Must be called under ``_append_lock`` with ``f`` opened ``a+b``. A
        tail that still decodes as a complete event is terminated instead.
        """
        end = await f.seek(0, os.SEEK_END)
        if end == 0:
            return
        await f.seek(end - 1)
        if await f.read(1) == b"\n":
            return

        keep = 0
        pos = end
        while pos > 0:
            start = max(0, pos - _TAIL_CHUNK)
            await f.seek(start)
            chunk = await f.read(pos - start)
            newline = chunk.rfind(b"\n")
            if newline != -1:
                keep = start + newline + 1
                break
            pos = start

        await f.seek(keep)
        tail = await f.read(end - keep)
        if _is_whole_record(tail):
            # A record that only lost its newline stays in the log
            await f.write(b"\n")
            return

        await f.truncate(keep)
        logger.warning(
            "Dropped {size} byte torn tail from event log '{path}'",
            size=end - keep,
            path=self.events_path,
        )

    async def read_events(self) -> AsyncIterator[Event]:
        """Yield logged events in write order.

        A final line without a trailing newline that fails to decode is a torn
        append from a crash; it is skipped with a warning. Any other bad line
        raises :class:`StorageError`.
        """
        try:
            async with aiofiles.open(self.events_path, "rb") as f:
                line_no = 0
                async for line in f:
                    line_no += 1
                    if not line.strip():
                        continue
                    try:
                        event = event_from_record(loads(line))
                    except ValueError as e:
                        if not line.endswith(b"\n"):
                            logger.warning(
                                "Skipping torn event log tail at line {line_no}",
                                line_no=line_no,
                            )
                            return
                        raise StorageError(
                            "read_events", f"{self.events_path}:{line_no}", str(e)
                        ) from e
                    yield event
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError("read_events", str(self.events_path), str(e)) from e
