"""pymunk の Space を物理ワールドとして使うアダプタ。"""

from __future__ import annotations

import pymunk

from conjure.ports.outbound.physics_world_port import PhysicsWorldPort

DEFAULT_WORLD_WIDTH = 40.0
DEFAULT_WORLD_HEIGHT = 22.5
# 画面座標系 (+y が下向き)
DEFAULT_GRAVITY: tuple[float, float] = (0.0, 10.0)
_WALL_RADIUS = 0.5
_FALLBACK_MASS = 1.0


class PymunkWorld(PhysicsWorldPort):
    """床と左右の壁を持つ矩形ワールド。"""

    def __init__(
        self,
        width: float = DEFAULT_WORLD_WIDTH,
        height: float = DEFAULT_WORLD_HEIGHT,
        *,
        gravity: tuple[float, float] = DEFAULT_GRAVITY,
        with_walls: bool = True,
    ) -> None:
        """ワールド寸法と重力を受け取り Space を構築する。"""
        if width <= 0 or height <= 0:
            raise ValueError("width / height は正の値である必要があります。")
        self._width = float(width)
        self._height = float(height)
        self._space = pymunk.Space()
        self._space.gravity = gravity
        if with_walls:
            self._add_walls()

    @property
    def handle(self) -> pymunk.Space:
        return self._space

    @property
    def width(self) -> float:
        return self._width

    @property
    def height(self) -> float:
        return self._height

    def step(self, dt: float) -> None:
        self._space.step(dt)

    def destroy_body(self, body: object) -> bool:
        """Space からボディと付属シェイプ・拘束を取り除く。"""
        if not isinstance(body, pymunk.Body) or body.space is not self._space:
            return False
        self._space.remove(*body.constraints)
        self._space.remove(body, *body.shapes)
        return True

    def is_body(self, body: object) -> bool:
        return isinstance(body, pymunk.Body)

    def is_body_active(self, body: object) -> bool:
        """Space に属し、消費済みフラグが立っていないボディを有効とみなす。"""
        if not isinstance(body, pymunk.Body) or body.space is not self._space:
            return False
        return not getattr(body, "consumed", False)

    def make_weightless(self, body: object) -> None:
        if not isinstance(body, pymunk.Body):
            raise TypeError("pymunk.Body 以外は weightless にできません。")
        body.velocity_func = _update_velocity_without_gravity
        density_cleared = False
        for shape in body.shapes:
            if shape.density > 0:
                shape.density = 0.0
                density_cleared = True
        if density_cleared and body.body_type == pymunk.Body.DYNAMIC and body.mass <= 0:
            # 質量 0 の動的ボディは step できないため単位質量にする。
            body.mass = _FALLBACK_MASS
            body.moment = pymunk.moment_for_circle(_FALLBACK_MASS, 0, 1.0)

    def body_position(self, body: object) -> tuple[float, float]:
        position = _as_body(body).position
        return (float(position.x), float(position.y))

    def body_angle(self, body: object) -> float:
        return float(_as_body(body).angle)

    def _add_walls(self) -> None:
        static_body = self._space.static_body
        corners = (
            ((0.0, self._height), (self._width, self._height)),
            ((0.0, 0.0), (0.0, self._height)),
            ((self._width, 0.0), (self._width, self._height)),
        )
        for start, end in corners:
            wall = pymunk.Segment(static_body, start, end, _WALL_RADIUS)
            wall.friction = 0.6
            wall.elasticity = 0.3
            self._space.add(wall)


def _update_velocity_without_gravity(
    body: pymunk.Body,
    gravity: tuple[float, float],
    damping: float,
    dt: float,
) -> None:
    del gravity
    pymunk.Body.update_velocity(body, (0.0, 0.0), damping, dt)


def _as_body(body: object) -> pymunk.Body:
    if not isinstance(body, pymunk.Body):
        raise TypeError("pymunk.Body である必要があります。")
    return body
