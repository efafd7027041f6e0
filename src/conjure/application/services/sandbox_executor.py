"""生成コードを固定の引数面だけを見せて実行するサンドボックス。"""

from __future__ import annotations

import ast
import builtins
import logging
import math
import random
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import CodeType, ModuleType
from typing import cast
from uuid import uuid4

import pymunk

from conjure.application.errors import ArtifactCompileError, SetupExecutionError
from conjure.domain.entities.behavior import BehaviorHandle
from conjure.domain.entities.tracked_object import TrackedObject
from conjure.domain.services.ephemeral_ring_buffer import (
    DEFAULT_EPHEMERAL_CAPACITY,
    EphemeralRingBuffer,
)
from conjure.ports.outbound.object_registry_port import ObjectRegistryPort
from conjure.ports.outbound.physics_world_port import PhysicsWorldPort

_LOG = logging.getLogger(__name__)

ENTRYPOINT_NAME = "conjured_object"
PARAMETER_SURFACE: tuple[str, ...] = (
    "physics",
    "world",
    "register",
    "W",
    "H",
    "spawn_x",
    "spawn_y",
)
_ALLOWED_BUILTINS: tuple[str, ...] = (
    "__build_class__",
    "abs",
    "all",
    "any",
    "bool",
    "dict",
    "divmod",
    "enumerate",
    "filter",
    "float",
    "getattr",
    "hasattr",
    "int",
    "isinstance",
    "len",
    "list",
    "map",
    "max",
    "min",
    "object",
    "pow",
    "range",
    "reversed",
    "round",
    "set",
    "setattr",
    "sorted",
    "str",
    "sum",
    "super",
    "tuple",
    "zip",
    "ArithmeticError",
    "AttributeError",
    "Exception",
    "IndexError",
    "KeyError",
    "RuntimeError",
    "TypeError",
    "ValueError",
    "ZeroDivisionError",
)
SAFE_BUILTINS: Mapping[str, object] = {
    name: getattr(builtins, name) for name in _ALLOWED_BUILTINS
}


@dataclass(slots=True)
class _InvocationScope:
    """1 回の execute に紐づく登録状態。"""

    in_update: bool = False
    root_bodies: list[object] = field(default_factory=list)


class SandboxExecutor:
    """生成コードのコンパイル・セットアップ実行・update の監督を行う。"""

    def __init__(
        self,
        world: PhysicsWorldPort,
        registry: ObjectRegistryPort,
        *,
        max_ephemeral: int = DEFAULT_EPHEMERAL_CAPACITY,
        physics: ModuleType = pymunk,
    ) -> None:
        """物理ワールド、オブジェクト一覧、ephemeral 上限を受け取る。"""
        self._world = world
        self._registry = registry
        self._physics = physics
        self._ephemeral = EphemeralRingBuffer(capacity=max_ephemeral, on_evict=self._evict)
        self._behaviors: list[BehaviorHandle] = []

    @property
    def ephemeral_count(self) -> int:
        return len(self._ephemeral)

    def active_behaviors(self) -> tuple[BehaviorHandle, ...]:
        """登録順の有効 behavior を返す。"""
        return tuple(self._behaviors)

    def discard(self, behavior: BehaviorHandle) -> None:
        """behavior を dead にして以降の tick 対象から外す。"""
        behavior.mark_dead()
        if behavior in self._behaviors:
            self._behaviors.remove(behavior)

    def release(self, tracked_object: TrackedObject) -> None:
        """外部で破棄されたオブジェクトを ephemeral 枠から外す。"""
        self._ephemeral.discard(tracked_object)

    def execute(self, code: str, spawn_x: float, spawn_y: float) -> BehaviorHandle | None:
        """生成コードを 1 回実行し、update があれば behavior として登録する。"""
        entrypoint = self._load_entrypoint(compile_artifact(code))
        scope = _InvocationScope()
        register = self._build_register(scope)

        try:
            result = entrypoint(
                self._physics,
                self._world.handle,
                register,
                self._world.width,
                self._world.height,
                spawn_x,
                spawn_y,
            )
        except Exception as exc:
            # 途中まで登録されたオブジェクトはそのまま残す。
            raise SetupExecutionError(f"生成コードの実行に失敗しました: {exc}") from exc

        update = _extract_update(result)
        if update is None:
            return None

        def wrapped_update() -> None:
            scope.in_update = True
            try:
                update()
            finally:
                scope.in_update = False

        behavior = BehaviorHandle(
            behavior_id=uuid4().hex,
            update=wrapped_update,
            root_bodies=tuple(scope.root_bodies),
        )
        self._behaviors.append(behavior)
        _LOG.info(
            "behavior registered: id=%s root_bodies=%d",
            behavior.behavior_id,
            len(behavior.root_bodies),
        )
        return behavior

    def _load_entrypoint(self, code_object: CodeType) -> Callable[..., object]:
        namespace: dict[str, object] = {
            "__builtins__": dict(SAFE_BUILTINS),
            "__name__": "conjure.generated",
            "math": math,
            "random": random,
        }
        exec(code_object, namespace)
        return cast(Callable[..., object], namespace[ENTRYPOINT_NAME])

    def _build_register(self, scope: _InvocationScope) -> Callable[[object], None]:
        def register(value: object) -> None:
            tracked_object = TrackedObject.from_registration(value)
            if not self._world.is_body(tracked_object.body):
                raise TypeError(
                    "register の body は物理ボディである必要があります: "
                    f"{type(tracked_object.body).__name__}"
                )
            tracked_object.spawned = True
            if scope.in_update:
                tracked_object.ephemeral = True
                self._world.make_weightless(tracked_object.body)
                self._registry.add(tracked_object)
                self._ephemeral.push(tracked_object)
                return

            tracked_object.ephemeral = False
            scope.root_bodies.append(tracked_object.body)
            self._registry.add(tracked_object)

        return register

    def _evict(self, tracked_object: TrackedObject) -> None:
        self._registry.remove(tracked_object)
        self._world.destroy_body(tracked_object.body)


def compile_artifact(code: str) -> CodeType:
    """生成コードを固定引数の関数本体としてコンパイルする。"""
    try:
        artifact_tree = ast.parse(code, filename="<conjured>", mode="exec")
        module = ast.parse(
            f"def {ENTRYPOINT_NAME}({', '.join(PARAMETER_SURFACE)}):\n    pass\n",
            filename="<conjured>",
        )
        function_def = cast(ast.FunctionDef, module.body[0])
        function_def.body = artifact_tree.body or [ast.Pass()]
        ast.fix_missing_locations(module)
        return compile(module, filename="<conjured>", mode="exec")
    except SyntaxError as exc:
        raise ArtifactCompileError(
            f"生成コードの構文エラー: {exc.msg} (line {exc.lineno})"
        ) from exc
    except ValueError as exc:
        raise ArtifactCompileError(f"生成コードの構文エラー: {exc}") from exc


def _extract_update(result: object) -> Callable[[], object] | None:
    """セットアップ結果から update 関数を取り出す。"""
    if result is None:
        return None
    if isinstance(result, Mapping):
        candidate = result.get("update")
    else:
        candidate = getattr(result, "update", None)
    return candidate if callable(candidate) else None
