"""端末ローカルな文字列 KVS の契約。"""

from __future__ import annotations

from typing import Protocol


class KeyValueStorePort(Protocol):
    """同期アクセスのローカルキャッシュ層。"""

    def get_item(self, key: str) -> str | None:
        """保存値を返す。存在しなければ None。"""

    def set_item(self, key: str, value: str) -> None:
        """値を保存する。容量超過などの失敗は OSError で通知する。"""
