"""Durable key/value storage for client-side state.

Plays the role browser ``localStorage`` plays for the web frontend: string keys
mapped to string values, read once at startup and written back on ``flush()``.
"""

import json
from typing import Dict, List, Optional

import anyio
from asyncer import asyncify

from ..domain.exceptions import StorageError
from ..logging import debug, warning, LogRecord, LogEvent


class DurableStore:
    """String key/value store persisted as one JSON document."""

    def __init__(self, path: Optional[str] = None):
        """
        Initialize the store.

        Args:
            path: JSON file backing the store; ``None`` keeps it in memory only
        """
        self.path = path
        self._items: Dict[str, str] = {}
        self._dirty = False
        self._initialized = False
        self._flush_lock = anyio.Lock()

    @property
    def is_persistent(self) -> bool:
        return self.path is not None

    async def init(self) -> None:
        """Load the backing file. A missing or unreadable file yields an empty store."""
        self._initialized = True
        if self.path is None:
            return

        store_file = anyio.Path(self.path)
        if not await store_file.exists():
            return

        try:
            content = await store_file.read_text(encoding="utf-8")
            json_loads_async = asyncify(json.loads)
            loaded = await json_loads_async(content)
        except (OSError, ValueError) as e:
            warning(
                LogRecord(
                    event=LogEvent.STORAGE_EVENT.value,
                    message=f"Ignoring unreadable storage file: {e}",
                    data={"path": self.path},
                )
            )
            return

        if not isinstance(loaded, dict):
            warning(
                LogRecord(
                    event=LogEvent.STORAGE_EVENT.value,
                    message="Ignoring storage file without a top-level mapping",
                    data={"path": self.path},
                )
            )
            return

        self._items = {str(k): v for k, v in loaded.items() if isinstance(v, str)}
        debug(
            LogRecord(
                event=LogEvent.STORAGE_EVENT.value,
                message=f"Loaded {len(self._items)} storage keys",
                data={"path": self.path},
            )
        )

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value
        self._dirty = True

    def remove_item(self, key: str) -> None:
        if self._items.pop(key, None) is not None:
            self._dirty = True

    def keys(self) -> List[str]:
        return list(self._items)

    async def flush(self) -> None:
        """
        Write pending changes to disk atomically (temp file + replace).

        Raises:
            StorageError: If the file cannot be written
        """
        if self.path is None:
            self._dirty = False
            return

        async with self._flush_lock:
            if not self._dirty:
                return
            snapshot = dict(self._items)
            self._dirty = False

            store_file = anyio.Path(self.path)
            tmp_file = anyio.Path(f"{self.path}.tmp")
            try:
                parent_dir = store_file.parent
                if not await parent_dir.exists():
                    await parent_dir.mkdir(parents=True)

                json_dumps_async = asyncify(json.dumps)
                json_content = await json_dumps_async(snapshot)
                await tmp_file.write_text(json_content, encoding="utf-8")
                await tmp_file.replace(store_file)
            except OSError as e:
                self._dirty = True
                raise StorageError(
                    f"Failed to write storage file: {e}", path=self.path
                ) from e
