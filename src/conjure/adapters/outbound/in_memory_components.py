"""オフライン実行・テスト向けの in-memory アダプタ群。"""

from __future__ import annotations

from conjure.domain.entities.tracked_object import TrackedObject
from conjure.domain.value_objects.canonical_key import encode_remote_key
from conjure.ports.outbound.key_value_store_port import KeyValueStorePort
from conjure.ports.outbound.object_registry_port import ObjectRegistryPort
from conjure.ports.outbound.remote_cache_store_port import (
    RemoteCacheStorePort,
    RemoteCacheUnavailableError,
)


class LocalStoreQuotaExceededError(OSError):
    """ローカルストアの容量上限超過を表す例外。"""


class InMemoryKeyValueStore(KeyValueStorePort):
    """プロセス内 dict をローカル層として使うストア。"""

    def __init__(self, *, max_items: int | None = None) -> None:
        """任意の件数上限を受け取る。"""
        if max_items is not None and max_items < 0:
            raise ValueError("max_items は 0 以上である必要があります。")
        self._items: dict[str, str] = {}
        self._max_items = max_items

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        """件数上限を超える新規キーは LocalStoreQuotaExceededError で拒否する。"""
        if (
            self._max_items is not None
            and key not in self._items
            and len(self._items) >= self._max_items
        ):
            raise LocalStoreQuotaExceededError("ローカルキャッシュの容量上限に達しました。")
        self._items[key] = value

    def keys(self) -> tuple[str, ...]:
        return tuple(self._items)


class InMemoryRemoteCacheStore(RemoteCacheStorePort):
    """共有リモート層を模した in-memory ストア。"""

    def __init__(self, seed_entries: dict[str, str] | None = None) -> None:
        """初期エントリを受け取る。キーはリモート用にエンコードして保持する。"""
        self._entries: dict[str, str] = {
            encode_remote_key(key): value for key, value in (seed_entries or {}).items()
        }
        self.available = True
        self.read_count = 0
        self.write_count = 0

    async def read(self, key: str) -> str | None:
        self.read_count += 1
        self._ensure_available()
        return self._entries.get(encode_remote_key(key))

    async def write(self, key: str, artifact: str) -> None:
        self.write_count += 1
        self._ensure_available()
        self._entries[encode_remote_key(key)] = artifact

    async def read_all(self) -> dict[str, str]:
        if not self.available:
            return {}
        return dict(self._entries)

    def _ensure_available(self) -> None:
        if not self.available:
            raise RemoteCacheUnavailableError("リモートキャッシュに接続できません。")


class InMemoryObjectRegistry(ObjectRegistryPort):
    """追跡オブジェクトを登録順に保持する一覧。"""

    def __init__(self) -> None:
        self._objects: list[TrackedObject] = []

    def add(self, tracked_object: TrackedObject) -> None:
        self._objects.append(tracked_object)

    def remove(self, tracked_object: TrackedObject) -> bool:
        try:
            self._objects.remove(tracked_object)
        except ValueError:
            return False
        return True

    def list_objects(self) -> tuple[TrackedObject, ...]:
        return tuple(self._objects)
