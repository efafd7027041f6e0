"""シーン内で追跡・描画されるオブジェクトのエンティティ。"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

SHAPE_KINDS: tuple[str, ...] = ("circle", "rect", "polygon")
_DEFAULT_COLOR = "#9aa0a6"


@dataclass(slots=True, eq=False)
class TrackedObject:
    """物理ボディと描画メタデータ、ライフサイクルフラグの組。"""

    body: object
    kind: str
    color: str = _DEFAULT_COLOR
    radius: float | None = None
    half_width: float | None = None
    half_height: float | None = None
    vertices: tuple[tuple[float, float], ...] = ()
    spawned: bool = False
    ephemeral: bool = False

    def __post_init__(self) -> None:
        """種別ごとの寸法整合性を検証する。"""
        if self.body is None:
            raise ValueError("body は必須です。")
        if self.kind not in SHAPE_KINDS:
            raise ValueError(f"kind は {', '.join(SHAPE_KINDS)} のいずれかである必要があります: {self.kind}")
        if self.kind == "circle" and (self.radius is None or self.radius <= 0):
            raise ValueError("circle には正の radius が必要です。")
        if self.kind == "rect" and not _is_positive(self.half_width, self.half_height):
            raise ValueError("rect には正の half_width / half_height が必要です。")
        if self.kind == "polygon" and len(self.vertices) < 3:
            raise ValueError("polygon には 3 点以上の vertices が必要です。")

    @classmethod
    def from_registration(cls, value: object) -> TrackedObject:
        """register() に渡された値から TrackedObject を得る。"""
        if isinstance(value, TrackedObject):
            return value
        if not isinstance(value, Mapping):
            raise ValueError("register には dict か TrackedObject を渡してください。")

        return cls(
            body=value.get("body"),
            kind=str(value.get("kind", "")),
            color=str(value.get("color") or _DEFAULT_COLOR),
            radius=_optional_float(value.get("radius"), field_name="radius"),
            half_width=_optional_float(value.get("half_width"), field_name="half_width"),
            half_height=_optional_float(value.get("half_height"), field_name="half_height"),
            vertices=_normalize_vertices(value.get("vertices", ())),
        )


def _is_positive(*values: float | None) -> bool:
    return all(value is not None and value > 0 for value in values)


def _optional_float(value: object, *, field_name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{field_name} は数値である必要があります。")
    return float(value)


def _normalize_vertices(value: object) -> tuple[tuple[float, float], ...]:
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise ValueError("vertices は座標の配列である必要があります。")
    vertices: list[tuple[float, float]] = []
    for index, point in enumerate(value):
        if isinstance(point, str) or not isinstance(point, Sequence) or len(point) != 2:
            raise ValueError(f"vertices[{index}] は (x, y) である必要があります。")
        vertices.append((float(point[0]), float(point[1])))
    return tuple(vertices)
