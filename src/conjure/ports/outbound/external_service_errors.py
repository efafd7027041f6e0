"""外部生成サービス呼び出しの失敗を表す例外。"""

from __future__ import annotations


class ExternalServiceError(RuntimeError):
    """正規化・コード生成サービスの失敗を表す基底例外。"""
