"""
Tests for the async TTL cache.
"""

import asyncio

import pytest

from zipwallet.cache import AsyncTTLCache


@pytest.mark.asyncio
async def test_insert_and_get():
    cache: AsyncTTLCache[str, int] = AsyncTTLCache(ttl=60)
    await cache.insert("usd", 42)
    assert await cache.get("usd") == 42
    assert await cache.get("eur") is None
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_entries_expire():
    cache: AsyncTTLCache[str, int] = AsyncTTLCache(ttl=0.01)
    await cache.insert("usd", 42)
    await asyncio.sleep(0.02)
    assert await cache.get("usd") is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_insert_refreshes_entry():
    cache: AsyncTTLCache[str, int] = AsyncTTLCache(ttl=60)
    await cache.insert("usd", 1)
    await cache.insert("usd", 2)
    assert await cache.get("usd") == 2


@pytest.mark.asyncio
async def test_remove_and_clear():
    cache: AsyncTTLCache[str, int] = AsyncTTLCache(ttl=60)
    await cache.insert("usd", 1)
    await cache.insert("eur", 2)

    await cache.remove("usd")
    await cache.remove("missing")
    assert await cache.get("usd") is None

    await cache.clear()
    assert len(cache) == 0
