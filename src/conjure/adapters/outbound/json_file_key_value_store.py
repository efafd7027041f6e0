"""端末ローカルの JSON ファイルをローカルキャッシュ層として使うストア。"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from conjure.ports.outbound.key_value_store_port import KeyValueStorePort

_LOG = logging.getLogger(__name__)


class JsonFileKeyValueStore(KeyValueStorePort):
    """1 ファイルに全キーを保存する文字列 KVS。"""

    def __init__(self, path: Path) -> None:
        """保存先ファイルを受け取る。読み込みは初回アクセス時に行う。"""
        self._path = path
        self._items: dict[str, str] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        """メモリ上の値を更新してからファイル全体を置き換える。"""
        items = self._load()
        items[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_name(f"{self._path.name}.tmp")
        temp_path.write_text(json.dumps(items, ensure_ascii=False), encoding="utf-8")
        os.replace(temp_path, self._path)

    def _load(self) -> dict[str, str]:
        if self._items is not None:
            return self._items

        self._items = {}
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return self._items
        except OSError as exc:
            _LOG.warning("local cache file unreadable: path=%s error=%s", self._path, exc)
            return self._items

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            _LOG.warning("local cache file is not valid JSON, starting empty: path=%s", self._path)
            return self._items
        if isinstance(parsed, dict):
            self._items = {
                key: value
                for key, value in parsed.items()
                if isinstance(key, str) and isinstance(value, str)
            }
        return self._items
