"""物理ワールド境界の契約。"""

from __future__ import annotations

from typing import Protocol


class PhysicsWorldPort(Protocol):
    """パイプラインが利用する物理ワールド操作。"""

    @property
    def handle(self) -> object:
        """生成コードへ渡すネイティブのワールドハンドル。"""

    @property
    def width(self) -> float:
        """ワールド幅 (シミュレーション単位)。"""

    @property
    def height(self) -> float:
        """ワールド高さ (シミュレーション単位)。"""

    def step(self, dt: float) -> None:
        """シミュレーションを dt 秒進める。"""

    def destroy_body(self, body: object) -> bool:
        """ボディを破棄する。既に破棄済みなら False を返す。"""

    def is_body(self, body: object) -> bool:
        """値がこのワールドの物理ボディ型かを返す。"""

    def is_body_active(self, body: object) -> bool:
        """ボディがワールド内で有効かを返す。"""

    def make_weightless(self, body: object) -> None:
        """重力と密度をゼロにする。"""

    def body_position(self, body: object) -> tuple[float, float]:
        """ボディ中心座標を返す。"""

    def body_angle(self, body: object) -> float:
        """ボディ回転角 (rad) を返す。"""
