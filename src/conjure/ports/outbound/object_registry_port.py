"""追跡オブジェクト一覧の契約。"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from conjure.domain.entities.tracked_object import TrackedObject


class ObjectRegistryPort(Protocol):
    """描画・追跡対象オブジェクトの順序付き集合。"""

    def add(self, tracked_object: TrackedObject) -> None:
        """オブジェクトを末尾に登録する。"""

    def remove(self, tracked_object: TrackedObject) -> bool:
        """登録を解除する。未登録なら False を返す。"""

    def list_objects(self) -> Sequence[TrackedObject]:
        """登録順のオブジェクト一覧を返す。"""
