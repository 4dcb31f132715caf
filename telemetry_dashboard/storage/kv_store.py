"""Key-value stores used to persist tracker state across restarts.

:class:`JsonFileStore` keeps one JSON file per key under a cache
directory (``.cache/state/`` by default).  :class:`MemoryStore`
keeps values in process and is used by tests and by deployments
that do not need durability.

Both round-trip values through JSON so callers see the same
plain-data shapes regardless of the backing store.
"""

from __future__ import annotations

import asyncio
import json
import pathlib
from typing import Protocol

from telemetry_dashboard.utils import logger
from telemetry_dashboard.utils.errors import StoreError

log = logger.create_logger("KeyValueStore")

DEFAULT_STATE_DIR = pathlib.Path(__file__).resolve().parent.parent.parent / ".cache" / "state"


class KeyValueStore(Protocol):
    """Async key-value store holding JSON-compatible values."""

    async def get(self, key: str) -> object | None:
        """Return the stored value, or ``None`` when the key is absent."""
        ...

    async def set(self, key: str, value: object) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...

    async def delete(self, key: str) -> None:
        """Remove *key* if present."""
        ...


class MemoryStore:
    """In-process store; values are copied through JSON on the way in and out."""

    def __init__(self, initial: dict[str, object] | None = None) -> None:
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[key] = json.dumps(value)

    async def get(self, key: str) -> object | None:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: object) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StoreError(key, f"value is not JSON serialisable: {exc}") from exc

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class JsonFileStore:
    """One JSON file per key under *directory*."""

    def __init__(self, directory: pathlib.Path = DEFAULT_STATE_DIR) -> None:
        self._directory = pathlib.Path(directory)

    @property
    def directory(self) -> pathlib.Path:
        return self._directory

    def path_for(self, key: str) -> pathlib.Path:
        """Build the file path for a key, keeping it filesystem-safe."""
        safe = "".join(c if c.isalnum() or c in ".-_" else "_" for c in key)[:100]
        return self._directory / f"{safe}.json"

    async def get(self, key: str) -> object | None:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: object) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)

    # ── Blocking helpers (run in a worker thread) ───────────────

    def _read(self, key: str) -> object | None:
        path = self.path_for(key)
        if not path.exists():
            log.debug("No stored value", {"key": key})
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreError(key, f"failed to read {path.name}: {exc}") from exc

    def _write(self, key: str, value: object) -> None:
        path = self.path_for(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            payload = json.dumps(value, indent=2)
            self._directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload, encoding="utf-8")
            tmp.replace(path)
        except (OSError, TypeError, ValueError) as exc:
            raise StoreError(key, f"failed to write {path.name}: {exc}") from exc
        log.debug("Stored value", {"key": key, "path": path.name})

    def _remove(self, key: str) -> None:
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError as exc:
            raise StoreError(key, f"failed to delete: {exc}") from exc
