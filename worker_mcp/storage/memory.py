from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from . import ListResult


@dataclass
class _Entry:
    value: Any
    expires_at: Optional[float] = None

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


def _parse_cursor(cursor: Optional[str]) -> Optional[int]:
    """Offset encoded in `cursor`, or None when this store did not issue it."""
    if not cursor:
        return 0
    if not (cursor.isascii() and cursor.isdigit()):
        return None
    return int(cursor)


class MemoryStorage:
    """
    Process-local key-value store.

    Keys are prefixed with the namespace, expired entries are dropped lazily
    on read or list, and nothing survives the process.
    """

    backend = "memory"

    def __init__(self, namespace: Optional[str] = None) -> None:
        namespace = (namespace or "").strip()
        self._prefix = f"{namespace}:" if namespace else ""
        self._store: Dict[str, _Entry] = {}

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Any:
        full_key = self._key(key)
        entry = self._store.get(full_key)
        if entry is None:
            return None
        if entry.expired(time.monotonic()):
            del self._store[full_key]
            return None
        return entry.value

    async def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        expires_at = time.monotonic() + ttl_seconds if ttl_seconds and ttl_seconds > 0 else None
        self._store[self._key(key)] = _Entry(value=value, expires_at=expires_at)

    async def list(self, prefix: str = "", limit: int = 100, cursor: Optional[str] = None) -> ListResult:
        now = time.monotonic()
        prefix = prefix.strip()
        offset = _parse_cursor(cursor)
        if offset is None:
            return ListResult(keys=[])

        keys: List[str] = []
        for full_key, entry in list(self._store.items()):
            if entry.expired(now):
                del self._store[full_key]
                continue
            if not full_key.startswith(self._prefix):
                continue
            key = full_key[len(self._prefix):]
            if prefix and not key.startswith(prefix):
                continue
            keys.append(key)

        page = keys[offset:offset + limit]
        next_cursor = str(offset + limit) if offset + limit < len(keys) else None
        return ListResult(keys=page, next_cursor=next_cursor)

    async def delete(self, key: str) -> None:
        self._store.pop(self._key(key), None)
