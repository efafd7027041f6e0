"""生成リクエスト処理で使う値オブジェクト。"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Literal

CacheTier = Literal["local", "remote"]
ArtifactSource = Literal["local", "remote", "generated"]
SubmissionState = Literal["idle", "loading", "success", "error"]

NOTIFICATION_LIFETIME = timedelta(seconds=10)


@dataclass(frozen=True, slots=True)
class CacheLookup:
    """キャッシュ参照結果とヒットした階層。"""

    artifact: str | None
    tier: CacheTier | None = None

    @property
    def hit(self) -> bool:
        return self.artifact is not None


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    """1 回のプロンプト送信の結果。"""

    prompt: str
    key: str
    source: ArtifactSource
    behavior_registered: bool

    @property
    def cached(self) -> bool:
        return self.source != "generated"


@dataclass(frozen=True, slots=True)
class SubmissionStatus:
    """ユーザーへ通知する送信状態。"""

    state: SubmissionState
    message: str
    updated_at: datetime

    def __post_init__(self) -> None:
        """タイムゾーン未指定の時刻を UTC とみなす。"""
        if self.updated_at.tzinfo is None:
            object.__setattr__(self, "updated_at", self.updated_at.replace(tzinfo=UTC))

    def is_visible(self, now: datetime) -> bool:
        """成功/失敗通知は一定時間で自動的に消える。"""
        if self.state == "idle":
            return False
        if self.state == "loading":
            return True
        return now - self.updated_at <= NOTIFICATION_LIFETIME
