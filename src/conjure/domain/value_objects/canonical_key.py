"""キャッシュキーの正規化とリモートストア向けエンコード。"""

from __future__ import annotations

import re

_WHITESPACE_PATTERN = re.compile(r"\s+")
_REMOTE_FORBIDDEN_PATTERN = re.compile(r"[.$#\[\]/]")
_EDGE_CHARS = " \t\r\n\"'`.,;:!?"


def canonicalize_key(raw_key: str) -> str:
    """正規化モデルの出力をキャッシュキーとして使える形に整える。"""
    candidate = raw_key.strip().strip(_EDGE_CHARS)
    candidate = _WHITESPACE_PATTERN.sub(" ", candidate).lower()
    if not candidate:
        raise ValueError("正規化キーが空です。")
    return candidate


def encode_remote_key(key: str) -> str:
    """リモートストアで使えない文字を `_` に置換する (不可逆)。"""
    return _REMOTE_FORBIDDEN_PATTERN.sub("_", key)
