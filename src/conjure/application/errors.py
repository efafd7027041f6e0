"""オブジェクト生成リクエストを失敗させる例外群。"""

from __future__ import annotations


class ObjectGenerationError(RuntimeError):
    """ユーザーへ通知される生成失敗の基底例外。"""


class PromptNormalizationError(ObjectGenerationError):
    """プロンプト正規化サービスの失敗。"""


class CodeGenerationError(ObjectGenerationError):
    """コード生成サービスの失敗。"""


class ArtifactCompileError(ObjectGenerationError):
    """生成コードの構文不正。"""


class SetupExecutionError(ObjectGenerationError):
    """生成コードのセットアップ呼び出し中の例外。"""


class SubmissionInProgressError(RuntimeError):
    """別の生成リクエストが処理中であることを表す例外。"""
