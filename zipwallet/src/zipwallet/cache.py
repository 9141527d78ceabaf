"""
In-memory cache with per-entry expiration.
"""

from __future__ import annotations

import asyncio
import time
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class AsyncTTLCache(Generic[K, V]):
    """
    Cache whose entries expire ``ttl`` seconds after insertion.

    Expired entries are evicted lazily on lookup.
    """

    def __init__(self, ttl: float):
        self.ttl = ttl
        self._data: dict[K, tuple[V, float]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: K) -> V | None:
        async with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, inserted_at = entry
            if time.monotonic() - inserted_at < self.ttl:
                return value
            del self._data[key]
            return None

    async def insert(self, key: K, value: V) -> None:
        async with self._lock:
            self._data[key] = (value, time.monotonic())

    async def remove(self, key: K) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        return len(self._data)
