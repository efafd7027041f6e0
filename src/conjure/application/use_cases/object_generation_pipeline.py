"""プロンプト送信からオブジェクト生成、毎フレーム更新までを司るユースケース。"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from datetime import UTC, datetime

from conjure.application.errors import (
    CodeGenerationError,
    ObjectGenerationError,
    PromptNormalizationError,
    SubmissionInProgressError,
)
from conjure.application.services.sandbox_executor import SandboxExecutor
from conjure.application.services.tiered_cache import TieredCache
from conjure.domain.entities.tracked_object import TrackedObject
from conjure.domain.value_objects.canonical_key import canonicalize_key
from conjure.domain.value_objects.submission import (
    ArtifactSource,
    SubmissionResult,
    SubmissionState,
    SubmissionStatus,
)
from conjure.ports.outbound.code_generator_port import CodeGeneratorPort
from conjure.ports.outbound.external_service_errors import ExternalServiceError
from conjure.ports.outbound.object_registry_port import ObjectRegistryPort
from conjure.ports.outbound.physics_world_port import PhysicsWorldPort
from conjure.ports.outbound.prompt_normalizer_port import PromptNormalizerPort

_LOG = logging.getLogger(__name__)

DEFAULT_FRAME_RATE = 60
_OUT_OF_BOUNDS_MARGIN = 0.1
_GENERATED_SPAWN_Y = 5.0


class ObjectGenerationPipeline:
    """正規化 → キャッシュ → 生成 → 実行 → キャッシュ書き込みと、フレーム更新を行う。"""

    def __init__(
        self,
        *,
        normalizer: PromptNormalizerPort,
        generator: CodeGeneratorPort,
        cache: TieredCache,
        executor: SandboxExecutor,
        world: PhysicsWorldPort,
        registry: ObjectRegistryPort,
        rng: random.Random | None = None,
        frame_rate: int = DEFAULT_FRAME_RATE,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        """依存ポートとフレームレートを受けて初期化する。"""
        if frame_rate < 1:
            raise ValueError("frame_rate は 1 以上である必要があります。")
        self._normalizer = normalizer
        self._generator = generator
        self._cache = cache
        self._executor = executor
        self._world = world
        self._registry = registry
        self._rng = rng or random.Random()
        self._frame_rate = frame_rate
        self._now_provider = now_provider or (lambda: datetime.now(UTC))
        self._is_generating = False
        self._frame_count = 0
        self._status = SubmissionStatus(state="idle", message="", updated_at=self._now_provider())

    @property
    def is_generating(self) -> bool:
        return self._is_generating

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def active_behavior_count(self) -> int:
        return len(self._executor.active_behaviors())

    @property
    def status(self) -> SubmissionStatus:
        return self._status

    @property
    def cache(self) -> TieredCache:
        return self._cache

    @property
    def world(self) -> PhysicsWorldPort:
        return self._world

    @property
    def registry(self) -> ObjectRegistryPort:
        return self._registry

    async def submit(self, text: str) -> SubmissionResult:
        """1 件のプロンプトを処理する。処理中の送信は SubmissionInProgressError で拒否する。"""
        prompt = text.strip()
        if not prompt:
            raise ValueError("prompt は空にできません。")
        if self._is_generating:
            raise SubmissionInProgressError("別のオブジェクトを生成中です。")

        self._is_generating = True
        self._set_status("loading", f'Generating "{prompt}"...')
        try:
            result = await self._run_submission(prompt)
        except ObjectGenerationError as exc:
            _LOG.warning("object generation failed: prompt=%s error=%s", prompt, exc)
            self._set_status("error", str(exc))
            raise
        except Exception as exc:
            _LOG.exception("unexpected failure during object generation: prompt=%s", prompt)
            self._set_status("error", str(exc))
            raise
        finally:
            self._is_generating = False

        suffix = " (cached)" if result.cached else ""
        self._set_status("success", f'Created "{prompt}"!{suffix}')
        return result

    def step_frame(self) -> None:
        """behavior を 1 回ずつ tick し、ワールドを進め、画面外オブジェクトを片付ける。"""
        self.tick_behaviors()
        self._world.step(1 / self._frame_rate)
        self.cleanup_out_of_bounds()
        self._frame_count += 1

    def tick_behaviors(self) -> None:
        """登録順に tick する。失敗した behavior だけを以降の対象から外す。"""
        for behavior in self._executor.active_behaviors():
            if behavior.is_orphaned(self._world.is_body_active):
                _LOG.info("behavior reaped: id=%s ticks=%d", behavior.behavior_id, behavior.ticks)
                self._executor.discard(behavior)
                continue
            try:
                behavior.tick()
            except Exception:
                _LOG.warning(
                    "behavior update failed, removing: id=%s ticks=%d",
                    behavior.behavior_id,
                    behavior.ticks,
                    exc_info=True,
                )
                self._executor.discard(behavior)

    def cleanup_out_of_bounds(self) -> int:
        """ワールド矩形から 10% 以上はみ出した生成オブジェクトを破棄する。"""
        width = self._world.width
        height = self._world.height
        removed = 0
        for tracked_object in self._registry.list_objects():
            if not tracked_object.spawned:
                continue
            try:
                x, y = self._world.body_position(tracked_object.body)
            except TypeError:
                _LOG.warning("untrackable object dropped: body=%r", tracked_object.body)
                self._registry.remove(tracked_object)
                self._executor.release(tracked_object)
                removed += 1
                continue
            if (
                x < -width * _OUT_OF_BOUNDS_MARGIN
                or x > width * (1 + _OUT_OF_BOUNDS_MARGIN)
                or y < -height * _OUT_OF_BOUNDS_MARGIN
                or y > height * (1 + _OUT_OF_BOUNDS_MARGIN)
            ):
                self._remove_object(tracked_object)
                removed += 1
        return removed

    def clear_spawned_objects(self) -> int:
        """生成オブジェクトをすべて登録解除し物理ボディを破棄する。"""
        spawned = [
            tracked_object
            for tracked_object in self._registry.list_objects()
            if tracked_object.spawned
        ]
        for tracked_object in spawned:
            self._remove_object(tracked_object)
        return len(spawned)

    async def run(self, *, max_frames: int | None = None) -> None:
        """固定レートでフレームを回し続ける。"""
        interval = 1 / self._frame_rate
        loop = asyncio.get_running_loop()
        frames = 0
        while max_frames is None or frames < max_frames:
            started = loop.time()
            self.step_frame()
            frames += 1
            await asyncio.sleep(max(0.0, interval - (loop.time() - started)))

    async def _run_submission(self, prompt: str) -> SubmissionResult:
        try:
            raw_key = await self._normalizer.normalize(prompt)
            key = canonicalize_key(raw_key)
        except (ExternalServiceError, ValueError) as exc:
            raise PromptNormalizationError(f"プロンプトの正規化に失敗しました: {exc}") from exc
        _LOG.info("prompt normalized: prompt=%s key=%s", prompt, key)

        lookup = await self._cache.lookup(key)
        if lookup.artifact is not None and lookup.tier is not None:
            spawn_x, spawn_y = self._choose_spawn_point(cached=True)
            behavior = self._executor.execute(lookup.artifact, spawn_x, spawn_y)
            return self._build_result(prompt, key, lookup.tier, behavior is not None)

        try:
            code = await self._generator.generate(prompt)
        except ExternalServiceError as exc:
            raise CodeGenerationError(f"オブジェクトコードの生成に失敗しました: {exc}") from exc

        spawn_x, spawn_y = self._choose_spawn_point(cached=False)
        behavior = self._executor.execute(code, spawn_x, spawn_y)
        self._cache.set(key, code)
        return self._build_result(prompt, key, "generated", behavior is not None)

    def _remove_object(self, tracked_object: TrackedObject) -> None:
        self._registry.remove(tracked_object)
        self._executor.release(tracked_object)
        self._world.destroy_body(tracked_object.body)

    def _choose_spawn_point(self, *, cached: bool) -> tuple[float, float]:
        width = self._world.width
        spawn_x = width * 0.65 + self._rng.random() * (width * 0.25)
        spawn_y = self._world.height * 0.15 if cached else _GENERATED_SPAWN_Y
        return spawn_x, spawn_y

    def _set_status(self, state: SubmissionState, message: str) -> None:
        self._status = SubmissionStatus(
            state=state,
            message=message,
            updated_at=self._now_provider(),
        )

    @staticmethod
    def _build_result(
        prompt: str,
        key: str,
        source: ArtifactSource,
        behavior_registered: bool,
    ) -> SubmissionResult:
        return SubmissionResult(
            prompt=prompt,
            key=key,
            source=source,
            behavior_registered=behavior_registered,
        )
