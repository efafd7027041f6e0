"""生成コードが返した毎フレーム更新処理のエンティティ。"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass


@dataclass(slots=True, eq=False)
class BehaviorHandle:
    """update 関数と、セットアップ時に生成されたルートボディ群の組。"""

    behavior_id: str
    update: Callable[[], object]
    root_bodies: tuple[object, ...] = ()
    ticks: int = 0
    dead: bool = False

    def tick(self) -> None:
        """update を 1 回呼び出す。例外は呼び出し元へ伝播する。"""
        self.update()
        self.ticks += 1

    def is_orphaned(self, is_body_active: Callable[[object], bool]) -> bool:
        """ルートボディがすべて非アクティブになったかを返す。"""
        if not self.root_bodies:
            return False
        return not any(is_body_active(body) for body in self.root_bodies)

    def mark_dead(self) -> None:
        self.dead = True
