"""オブジェクト生成コード取得の契約。"""

from __future__ import annotations

from typing import Protocol


class CodeGeneratorPort(Protocol):
    """ユーザー入力から生成コード文字列を得る抽象ポート。"""

    async def generate(self, text: str) -> str:
        """生成コードを無加工で返す。失敗時は ExternalServiceError を送出する。"""
