"""REST 形式の共有 DB (Firebase Realtime Database 互換) を使うリモートキャッシュ層。"""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from conjure.domain.value_objects.canonical_key import encode_remote_key
from conjure.ports.outbound.remote_cache_store_port import (
    RemoteCacheStorePort,
    RemoteCacheUnavailableError,
)

_LOG = logging.getLogger(__name__)
_COLLECTION = "cache"


class HttpRemoteCacheStore(RemoteCacheStorePort):
    """`{base_url}/cache/{key}.json` をキー単位で GET/PUT するストア。"""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """DB の URL とタイムアウトを受け取る。transport はテスト用。"""
        normalized_url = base_url.strip().rstrip("/")
        if not normalized_url:
            raise ValueError("base_url は空にできません。")
        self._client = httpx.AsyncClient(
            base_url=normalized_url,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def read(self, key: str) -> str | None:
        """非成功ステータスや文字列以外の値は未保存として扱う。"""
        try:
            response = await self._client.get(_entry_path(key))
        except httpx.HTTPError as exc:
            raise RemoteCacheUnavailableError(
                f"リモートキャッシュの読み込みに失敗しました: {exc.__class__.__name__}"
            ) from exc
        if not response.is_success:
            return None
        try:
            data = response.json()
        except ValueError as exc:
            raise RemoteCacheUnavailableError("リモートキャッシュの応答が JSON ではありません。") from exc
        return data if isinstance(data, str) else None

    async def write(self, key: str, artifact: str) -> None:
        try:
            response = await self._client.put(_entry_path(key), json=artifact)
        except httpx.HTTPError as exc:
            raise RemoteCacheUnavailableError(
                f"リモートキャッシュへの書き込みに失敗しました: {exc.__class__.__name__}"
            ) from exc
        if not response.is_success:
            raise RemoteCacheUnavailableError(
                f"リモートキャッシュへの書き込みが拒否されました: status={response.status_code}"
            )

    async def read_all(self) -> dict[str, str]:
        try:
            response = await self._client.get(f"/{_COLLECTION}.json")
            if not response.is_success:
                return {}
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            _LOG.warning("remote cache bulk read failed: error=%s", exc)
            return {}
        if not isinstance(data, dict):
            return {}
        return {key: value for key, value in data.items() if isinstance(value, str)}


def _entry_path(key: str) -> str:
    return f"/{_COLLECTION}/{quote(encode_remote_key(key), safe='')}.json"
