"""端末間で共有されるリモートキャッシュ層の契約。"""

from __future__ import annotations

from typing import Protocol


class RemoteCacheUnavailableError(RuntimeError):
    """リモートキャッシュに到達できない・応答が不正な場合の例外。"""


class RemoteCacheStorePort(Protocol):
    """キー単位で生成コードを読み書きする非同期ストア。"""

    async def read(self, key: str) -> str | None:
        """保存済みコードを返す。未保存なら None。"""

    async def write(self, key: str, artifact: str) -> None:
        """コードを保存する (last writer wins)。"""

    async def read_all(self) -> dict[str, str]:
        """全エントリを返す。開発ツール向けで失敗時は空を返す。"""
