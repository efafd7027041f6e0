"""HTTP API の入出力スキーマ。"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """ヘルスチェックレスポンス。"""

    status: str = "ok"


class CreateObjectRequest(BaseModel):
    """オブジェクト生成リクエスト。"""

    prompt: str = Field(min_length=1, max_length=2_000)


class CreateObjectResponse(BaseModel):
    """オブジェクト生成レスポンス。"""

    prompt: str
    key: str
    source: str
    cached: bool
    behavior_registered: bool


class TrackedObjectResponse(BaseModel):
    """描画用のオブジェクトスナップショット。"""

    kind: str
    x: float
    y: float
    angle: float
    color: str
    radius: float | None = None
    half_width: float | None = None
    half_height: float | None = None
    vertices: list[tuple[float, float]] = Field(default_factory=list)
    spawned: bool
    ephemeral: bool


class SceneResponse(BaseModel):
    """ワールド内オブジェクト一覧。"""

    width: float
    height: float
    frame: int
    active_behaviors: int
    objects: list[TrackedObjectResponse]


class ClearSpawnedResponse(BaseModel):
    """生成オブジェクト一括削除レスポンス。"""

    removed: int = Field(ge=0)


class StatusResponse(BaseModel):
    """生成状態の通知。"""

    state: str
    message: str
    visible: bool
    updated_at: datetime


class CacheEntriesResponse(BaseModel):
    """リモートキャッシュ全件 (開発ツール用)。"""

    entries: dict[str, str]


class ErrorResponse(BaseModel):
    """API エラーレスポンス。"""

    error: str
