"""
Key-value storage adapters.

Only the in-memory backend is implemented. Other backends are recognised by
name so that a misconfigured deployment fails at startup with a clear
`UnsupportedBackendError` instead of at the first read or write.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel

from ..config import Settings

logger = logging.getLogger(__name__)

SUPPORTED_BACKENDS = frozenset({"memory"})
KNOWN_BACKENDS = frozenset({"memory", "supabase", "r2", "vercel-kv", "deno-kv"})

_ALIASES = {
    "vercelkv": "vercel-kv",
    "vercel": "vercel-kv",
    "denokv": "deno-kv",
    "deno": "deno-kv",
}


class UnsupportedBackendError(RuntimeError):
    def __init__(self, backend: str) -> None:
        self.backend = backend
        if backend in KNOWN_BACKENDS:
            message = f"Storage backend '{backend}' is not supported yet"
        else:
            message = f"Unknown storage backend '{backend}'"
        super().__init__(f"{message} (supported: {', '.join(sorted(SUPPORTED_BACKENDS))})")


class ListResult(BaseModel):
    keys: List[str]
    next_cursor: Optional[str] = None


@runtime_checkable
class StorageAdapter(Protocol):
    backend: str

    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None: ...

    async def list(
        self,
        prefix: str = "",
        limit: int = 100,
        cursor: Optional[str] = None,
    ) -> ListResult: ...

    async def delete(self, key: str) -> None: ...


def normalize_backend(name: str) -> str:
    normalized = name.strip().lower()
    return _ALIASES.get(normalized, normalized)


def create_storage(settings: Settings) -> StorageAdapter:
    """Build the storage adapter selected by `STORAGE_BACKEND`."""
    from .memory import MemoryStorage

    backend = normalize_backend(settings.storage_backend)
    if backend not in SUPPORTED_BACKENDS:
        raise UnsupportedBackendError(backend)

    logger.info("Using %s storage (namespace=%s)", backend, settings.storage_namespace)
    return MemoryStorage(namespace=settings.storage_namespace)


__all__ = [
    "KNOWN_BACKENDS",
    "ListResult",
    "StorageAdapter",
    "SUPPORTED_BACKENDS",
    "UnsupportedBackendError",
    "create_storage",
    "normalize_backend",
]
