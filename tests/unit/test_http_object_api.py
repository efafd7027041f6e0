import threading
import time
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from conjure.adapters.inbound.http.app import (
    _resolve_model_name,
    _resolve_positive_int_env,
    create_app,
)
from conjure.adapters.outbound.generation_prompts import BOUNCY_BALL_EXAMPLE
from conjure.adapters.outbound.in_memory_components import (
    InMemoryKeyValueStore,
    InMemoryObjectRegistry,
    InMemoryRemoteCacheStore,
)
from conjure.adapters.outbound.pymunk_world import PymunkWorld
from conjure.application.errors import SubmissionInProgressError
from conjure.application.services.sandbox_executor import SandboxExecutor
from conjure.application.services.tiered_cache import TieredCache
from conjure.application.use_cases.object_generation_pipeline import ObjectGenerationPipeline
from conjure.ports.outbound.external_service_errors import ExternalServiceError


class KeywordNormalizer:
    """入力の最後の単語をキーとして返すテスト用正規化器。"""

    async def normalize(self, text: str) -> str:
        return text.split()[-1]


class FixedGenerator:
    """固定コード、または固定例外を返すテスト用生成器。"""

    def __init__(self, code: str = BOUNCY_BALL_EXAMPLE, *, error: Exception | None = None) -> None:
        """返却値を受け取る。"""
        self.code = code
        self.error = error

    async def generate(self, text: str) -> str:
        del text
        if self.error is not None:
            raise self.error
        return self.code


def _build_pipeline(generator: FixedGenerator | None = None) -> ObjectGenerationPipeline:
    world = PymunkWorld()
    registry = InMemoryObjectRegistry()
    return ObjectGenerationPipeline(
        normalizer=KeywordNormalizer(),
        generator=generator or FixedGenerator(),
        cache=TieredCache(InMemoryKeyValueStore(), InMemoryRemoteCacheStore()),
        executor=SandboxExecutor(world, registry),
        world=world,
        registry=registry,
    )


def _build_test_client(pipeline: ObjectGenerationPipeline | None = None) -> TestClient:
    app = create_app(pipeline=pipeline or _build_pipeline(), run_simulation=False)
    return TestClient(app)


def test_health_endpoint_returns_ok() -> None:
    with _build_test_client() as client:
        response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_create_object_then_cached_on_second_request() -> None:
    with _build_test_client() as client:
        first = client.post("/api/objects", json={"prompt": "a bouncy Ball"})
        second = client.post("/api/objects", json={"prompt": "another ball"})

    assert first.status_code == 200
    assert first.json() == {
        "prompt": "a bouncy Ball",
        "key": "ball",
        "source": "generated",
        "cached": False,
        "behavior_registered": False,
    }
    assert second.status_code == 200
    assert second.json()["source"] == "local"
    assert second.json()["cached"] is True


def test_scene_lists_spawned_objects_and_clear_removes_them() -> None:
    with _build_test_client() as client:
        client.post("/api/objects", json={"prompt": "ball"})
        scene = client.get("/api/objects").json()
        cleared = client.delete("/api/objects/spawned").json()
        after = client.get("/api/objects").json()

    assert scene["width"] == 40.0
    assert scene["active_behaviors"] == 0
    assert len(scene["objects"]) == 1
    ball = scene["objects"][0]
    assert ball["kind"] == "circle"
    assert ball["radius"] == 1.2
    assert ball["color"] == "#ea4335"
    assert ball["spawned"] is True
    assert ball["ephemeral"] is False
    assert ball["y"] == 5.0
    assert cleared == {"removed": 1}
    assert after["objects"] == []


def test_status_and_cache_endpoints_reflect_last_submission() -> None:
    with _build_test_client() as client:
        idle = client.get("/api/status").json()
        client.post("/api/objects", json={"prompt": "ball"})
        status_payload = client.get("/api/status").json()
        cache_payload = client.get("/api/cache").json()

    assert idle["state"] == "idle"
    assert idle["visible"] is False
    assert status_payload["state"] == "success"
    assert status_payload["message"] == 'Created "ball"!'
    assert status_payload["visible"] is True
    assert cache_payload == {"entries": {"ball": BOUNCY_BALL_EXAMPLE}}


@pytest.mark.parametrize(
    ("generator", "expected_status"),
    [
        (FixedGenerator(error=ExternalServiceError("model down")), 502),
        (FixedGenerator("def broken(:"), 422),
        (FixedGenerator('raise RuntimeError("boom")'), 422),
    ],
)
def test_generation_failures_map_to_http_errors(
    generator: FixedGenerator,
    expected_status: int,
) -> None:
    with _build_test_client(_build_pipeline(generator)) as client:
        response = client.post("/api/objects", json={"prompt": "ball"})
        status_payload = client.get("/api/status").json()

    assert response.status_code == expected_status
    assert response.json()["detail"]
    assert status_payload["state"] == "error"


def test_blank_prompt_returns_400_and_empty_prompt_returns_422() -> None:
    with _build_test_client() as client:
        blank = client.post("/api/objects", json={"prompt": "   "})
        empty = client.post("/api/objects", json={"prompt": ""})

    assert blank.status_code == 400
    assert empty.status_code == 422


def test_submission_in_progress_returns_409(monkeypatch: pytest.MonkeyPatch) -> None:
    pipeline = _build_pipeline()
    monkeypatch.setattr(
        pipeline,
        "submit",
        AsyncMock(side_effect=SubmissionInProgressError("別のオブジェクトを生成中です。")),
    )

    with _build_test_client(pipeline) as client:
        response = client.post("/api/objects", json={"prompt": "ball"})

    assert response.status_code == 409
    assert response.json() == {"detail": "別のオブジェクトを生成中です。"}


def test_model_name_resolution_prefers_role_specific_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_MODEL", "shared-model")
    monkeypatch.setenv("OPENAI_GENERATOR_MODEL", "code-model")
    monkeypatch.delenv("OPENAI_NORMALIZER_MODEL", raising=False)

    assert _resolve_model_name(primary_env="OPENAI_GENERATOR_MODEL") == "code-model"
    assert _resolve_model_name(primary_env="OPENAI_NORMALIZER_MODEL") == "shared-model"

    monkeypatch.delenv("OPENAI_MODEL")
    assert _resolve_model_name(primary_env="OPENAI_NORMALIZER_MODEL") == "gpt-4.1-mini"


@pytest.mark.parametrize(
    ("raw_value", "expected"),
    [("", 200), ("50", 50), ("0", 200), ("-3", 200), ("many", 200)],
)
def test_max_ephemeral_env_falls_back_to_default(
    monkeypatch: pytest.MonkeyPatch,
    raw_value: str,
    expected: int,
) -> None:
    monkeypatch.setenv("CONJURE_MAX_EPHEMERAL", raw_value)

    assert _resolve_positive_int_env("CONJURE_MAX_EPHEMERAL", default=200) == expected


def test_clear_spawned_runs_on_the_simulation_loop_thread(monkeypatch: pytest.MonkeyPatch) -> None:
    pipeline = _build_pipeline()
    frame_threads: set[int] = set()
    clear_threads: set[int] = set()
    step_frame = pipeline.step_frame
    clear_spawned_objects = pipeline.clear_spawned_objects

    def recording_step_frame() -> None:
        frame_threads.add(threading.get_ident())
        step_frame()

    def recording_clear_spawned_objects() -> int:
        clear_threads.add(threading.get_ident())
        return clear_spawned_objects()

    monkeypatch.setattr(pipeline, "step_frame", recording_step_frame)
    monkeypatch.setattr(pipeline, "clear_spawned_objects", recording_clear_spawned_objects)

    with TestClient(create_app(pipeline=pipeline, run_simulation=True)) as client:
        deadline = time.monotonic() + 5.0
        while not frame_threads and time.monotonic() < deadline:
            time.sleep(0.01)
        client.post("/api/objects", json={"prompt": "ball"})
        cleared = client.delete("/api/objects/spawned")
        scene = client.get("/api/objects")

    assert frame_threads
    assert cleared.status_code == 200
    assert clear_threads
    assert clear_threads <= frame_threads
    assert scene.status_code == 200
