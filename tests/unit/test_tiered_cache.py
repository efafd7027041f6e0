import json
import logging

import pytest

from conjure.adapters.outbound.in_memory_components import (
    InMemoryKeyValueStore,
    InMemoryRemoteCacheStore,
)
from conjure.application.services.tiered_cache import TieredCache


@pytest.mark.asyncio
async def test_set_then_get_round_trips_with_remote_unavailable() -> None:
    remote = InMemoryRemoteCacheStore()
    remote.available = False
    cache = TieredCache(InMemoryKeyValueStore(), remote)

    cache.set("rain", "register(1)")
    await cache.wait_for_pending_writes()

    assert await cache.get("rain") == "register(1)"


@pytest.mark.asyncio
async def test_local_hit_skips_remote() -> None:
    local = InMemoryKeyValueStore()
    remote = InMemoryRemoteCacheStore({"rain": "remote code"})
    cache = TieredCache(local, remote)
    local.set_item("objcache:rain", json.dumps("local code"))

    lookup = await cache.lookup("rain")

    assert lookup.artifact == "local code"
    assert lookup.tier == "local"
    assert remote.read_count == 0


@pytest.mark.asyncio
async def test_empty_artifact_is_a_hit_in_both_tiers() -> None:
    remote = InMemoryRemoteCacheStore({"silence": ""})
    cache = TieredCache(InMemoryKeyValueStore(), remote)

    cache.set("void", "")
    await cache.wait_for_pending_writes()
    local_lookup = await cache.lookup("void")
    remote_lookup = await cache.lookup("silence")

    assert local_lookup.artifact == ""
    assert local_lookup.tier == "local"
    assert remote_lookup.artifact == ""
    assert remote_lookup.tier == "remote"
    assert await cache.get("silence") == ""
    assert remote.read_count == 1


@pytest.mark.asyncio
async def test_remote_hit_is_promoted_to_local() -> None:
    local = InMemoryKeyValueStore()
    remote = InMemoryRemoteCacheStore({"rain": "shared code"})
    cache = TieredCache(local, remote)

    first = await cache.lookup("rain")
    remote.available = False
    second = await cache.lookup("rain")

    assert first.tier == "remote"
    assert second.tier == "local"
    assert second.artifact == "shared code"
    assert json.loads(local.get_item("objcache:rain") or "null") == "shared code"


@pytest.mark.asyncio
async def test_miss_returns_none_when_both_tiers_fail() -> None:
    remote = InMemoryRemoteCacheStore()
    remote.available = False
    cache = TieredCache(InMemoryKeyValueStore(), remote)

    lookup = await cache.lookup("unknown")

    assert lookup.hit is False
    assert lookup.tier is None
    assert await cache.get("unknown") is None


@pytest.mark.asyncio
async def test_invalid_local_entry_is_treated_as_miss(caplog: pytest.LogCaptureFixture) -> None:
    local = InMemoryKeyValueStore()
    local.set_item("objcache:rain", "{not json")
    cache = TieredCache(local)

    with caplog.at_level(logging.WARNING):
        assert await cache.get("rain") is None

    assert "not valid JSON" in caplog.text


@pytest.mark.asyncio
async def test_local_quota_error_is_swallowed_and_remote_still_written() -> None:
    local = InMemoryKeyValueStore(max_items=0)
    remote = InMemoryRemoteCacheStore()
    cache = TieredCache(local, remote)

    cache.set("rain", "code")
    await cache.wait_for_pending_writes()

    assert local.keys() == ()
    assert remote.write_count == 1
    assert await remote.read("rain") == "code"


@pytest.mark.asyncio
async def test_remote_write_failure_is_swallowed() -> None:
    remote = InMemoryRemoteCacheStore()
    remote.available = False
    cache = TieredCache(InMemoryKeyValueStore(), remote)

    cache.set("rain", "code")
    assert cache.pending_write_count == 1
    await cache.wait_for_pending_writes()

    assert cache.pending_write_count == 0
    assert remote.write_count == 1


def test_set_without_running_loop_keeps_local_copy() -> None:
    local = InMemoryKeyValueStore()
    remote = InMemoryRemoteCacheStore()
    cache = TieredCache(local, remote)

    cache.set("rain", "code")

    assert remote.write_count == 0
    assert json.loads(local.get_item("objcache:rain") or "null") == "code"


@pytest.mark.asyncio
async def test_remote_keys_are_sanitized() -> None:
    remote = InMemoryRemoteCacheStore()
    cache = TieredCache(InMemoryKeyValueStore(), remote)

    cache.set("rain.cloud", "code")
    await cache.wait_for_pending_writes()

    assert await cache.fetch_all_remote() == {"rain_cloud": "code"}


@pytest.mark.asyncio
async def test_local_only_cache_has_no_remote_entries() -> None:
    cache = TieredCache(InMemoryKeyValueStore())

    cache.set("rain", "code")

    assert cache.pending_write_count == 0
    assert await cache.fetch_all_remote() == {}
    assert await cache.get("rain") == "code"
