"""ローカル層とリモート層からなる生成コードキャッシュ。"""

from __future__ import annotations

import asyncio
import json
import logging

from conjure.domain.value_objects.submission import CacheLookup
from conjure.ports.outbound.key_value_store_port import KeyValueStorePort
from conjure.ports.outbound.remote_cache_store_port import (
    RemoteCacheStorePort,
    RemoteCacheUnavailableError,
)

_LOG = logging.getLogger(__name__)
DEFAULT_KEY_PREFIX = "objcache:"


class TieredCache:
    """正規化キー → 生成コードの 2 層キャッシュ。

    ローカル層を常に優先し、リモート層のヒットはローカル層へ昇格させる。
    リモート層の障害はすべて握りつぶし、キャッシュ無しと同じ扱いにする。
    """

    def __init__(
        self,
        local_store: KeyValueStorePort,
        remote_store: RemoteCacheStorePort | None = None,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> None:
        """ローカルストアと任意のリモートストアを受け取る。"""
        self._local_store = local_store
        self._remote_store = remote_store
        self._key_prefix = key_prefix
        self._pending_writes: set[asyncio.Task[None]] = set()

    @property
    def pending_write_count(self) -> int:
        return len(self._pending_writes)

    async def get(self, key: str) -> str | None:
        """キャッシュ済みコードを返す。無ければ None。"""
        return (await self.lookup(key)).artifact

    async def lookup(self, key: str) -> CacheLookup:
        """ヒットした層つきでキャッシュを参照する。"""
        local = self._get_local(key)
        if local is not None:
            _LOG.info("cache hit: tier=local key=%s", key)
            return CacheLookup(artifact=local, tier="local")

        remote = await self._get_remote(key)
        if remote is not None:
            _LOG.info("cache hit: tier=remote key=%s", key)
            self._set_local(key, remote)
            return CacheLookup(artifact=remote, tier="remote")

        _LOG.info("cache miss: key=%s", key)
        return CacheLookup(artifact=None)

    def set(self, key: str, artifact: str) -> None:
        """ローカル層へ同期書き込みし、リモート層へは投げっぱなしで書き込む。"""
        self._set_local(key, artifact)
        self._schedule_remote_write(key, artifact)

    async def wait_for_pending_writes(self) -> None:
        """未完了のリモート書き込みをすべて待つ。"""
        while self._pending_writes:
            await asyncio.gather(*tuple(self._pending_writes), return_exceptions=True)

    async def fetch_all_remote(self) -> dict[str, str]:
        """リモート層の全エントリを返す (開発ツール用)。"""
        if self._remote_store is None:
            return {}
        return await self._remote_store.read_all()

    def _local_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    def _get_local(self, key: str) -> str | None:
        raw = self._local_store.get_item(self._local_key(key))
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            _LOG.warning("local cache entry is not valid JSON: key=%s", key)
            return None
        return value if isinstance(value, str) else None

    def _set_local(self, key: str, artifact: str) -> None:
        try:
            self._local_store.set_item(self._local_key(key), json.dumps(artifact))
        except OSError as exc:
            _LOG.warning("local cache write failed: key=%s error=%s", key, exc)

    async def _get_remote(self, key: str) -> str | None:
        if self._remote_store is None:
            return None
        try:
            return await self._remote_store.read(key)
        except RemoteCacheUnavailableError as exc:
            _LOG.warning("remote cache read failed: key=%s error=%s", key, exc)
            return None

    def _schedule_remote_write(self, key: str, artifact: str) -> None:
        if self._remote_store is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _LOG.warning("no running event loop; remote cache write skipped: key=%s", key)
            return

        # 結果は待たない。失敗はログに残して捨てる。
        task = loop.create_task(_write_remote(self._remote_store, key, artifact))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)


async def _write_remote(store: RemoteCacheStorePort, key: str, artifact: str) -> None:
    try:
        await store.write(key, artifact)
    except RemoteCacheUnavailableError as exc:
        _LOG.warning("remote cache write failed: key=%s error=%s", key, exc)
