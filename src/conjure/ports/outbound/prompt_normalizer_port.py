"""プロンプト正規化の契約。"""

from __future__ import annotations

from typing import Protocol


class PromptNormalizerPort(Protocol):
    """自由入力を 1〜2 語の意図キーへ圧縮する抽象ポート。"""

    async def normalize(self, text: str) -> str:
        """正規化キーを返す。失敗時は ExternalServiceError を送出する。"""
