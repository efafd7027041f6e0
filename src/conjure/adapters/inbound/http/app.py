"""FastAPI ベースのオブジェクト生成 API。"""

from __future__ import annotations

import asyncio
import contextlib
import os
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path

from dotenv import load_dotenv
from fastapi import APIRouter, FastAPI, HTTPException, status

from conjure.adapters.inbound.http.schemas import (
    CacheEntriesResponse,
    ClearSpawnedResponse,
    CreateObjectRequest,
    CreateObjectResponse,
    ErrorResponse,
    HealthResponse,
    SceneResponse,
    StatusResponse,
    TrackedObjectResponse,
)
from conjure.adapters.outbound.http_remote_cache_store import HttpRemoteCacheStore
from conjure.adapters.outbound.in_memory_components import InMemoryObjectRegistry
from conjure.adapters.outbound.json_file_key_value_store import JsonFileKeyValueStore
from conjure.adapters.outbound.openai_generation_adapters import (
    OpenAICodeGeneratorAdapter,
    OpenAIPromptNormalizerAdapter,
)
from conjure.adapters.outbound.pymunk_world import (
    DEFAULT_WORLD_HEIGHT,
    DEFAULT_WORLD_WIDTH,
    PymunkWorld,
)
from conjure.application.errors import (
    ArtifactCompileError,
    CodeGenerationError,
    PromptNormalizationError,
    SetupExecutionError,
    SubmissionInProgressError,
)
from conjure.application.services.sandbox_executor import SandboxExecutor
from conjure.application.services.tiered_cache import TieredCache
from conjure.application.use_cases.object_generation_pipeline import ObjectGenerationPipeline
from conjure.domain.services.ephemeral_ring_buffer import DEFAULT_EPHEMERAL_CAPACITY

_DEFAULT_MODEL = "gpt-4.1-mini"
_DEFAULT_LOCAL_CACHE_PATH = Path.home() / ".conjure" / "object_cache.json"


def create_app(
    *,
    pipeline: ObjectGenerationPipeline | None = None,
    run_simulation: bool = True,
) -> FastAPI:
    """オブジェクト生成 API アプリを構築する。"""
    _load_runtime_env()
    remote_store: HttpRemoteCacheStore | None = None
    if pipeline is None:
        pipeline, remote_store = _build_default_pipeline()

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        simulation_task = asyncio.create_task(pipeline.run()) if run_simulation else None
        try:
            yield
        finally:
            if simulation_task is not None:
                simulation_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await simulation_task
            await pipeline.cache.wait_for_pending_writes()
            if remote_store is not None:
                await remote_store.aclose()

    app = FastAPI(
        title="Conjure Object API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.pipeline = pipeline
    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    api = APIRouter(prefix="/api")

    @api.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @api.post(
        "/objects",
        response_model=CreateObjectResponse,
        responses={
            400: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
            422: {"model": ErrorResponse},
            502: {"model": ErrorResponse},
        },
    )
    async def create_object(request: CreateObjectRequest) -> CreateObjectResponse:
        pipeline: ObjectGenerationPipeline = app.state.pipeline
        try:
            result = await pipeline.submit(request.prompt)
        except SubmissionInProgressError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        except (ArtifactCompileError, SetupExecutionError) as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc
        except (PromptNormalizationError, CodeGenerationError) as exc:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=str(exc),
            ) from exc
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

        return CreateObjectResponse(
            prompt=result.prompt,
            key=result.key,
            source=result.source,
            cached=result.cached,
            behavior_registered=result.behavior_registered,
        )

    @api.get("/objects", response_model=SceneResponse)
    async def list_objects() -> SceneResponse:
        pipeline: ObjectGenerationPipeline = app.state.pipeline
        world = pipeline.world
        return SceneResponse(
            width=world.width,
            height=world.height,
            frame=pipeline.frame_count,
            active_behaviors=pipeline.active_behavior_count,
            objects=[
                TrackedObjectResponse(
                    kind=tracked_object.kind,
                    x=world.body_position(tracked_object.body)[0],
                    y=world.body_position(tracked_object.body)[1],
                    angle=world.body_angle(tracked_object.body),
                    color=tracked_object.color,
                    radius=tracked_object.radius,
                    half_width=tracked_object.half_width,
                    half_height=tracked_object.half_height,
                    vertices=list(tracked_object.vertices),
                    spawned=tracked_object.spawned,
                    ephemeral=tracked_object.ephemeral,
                )
                for tracked_object in pipeline.registry.list_objects()
            ],
        )

    @api.delete("/objects/spawned", response_model=ClearSpawnedResponse)
    async def clear_spawned_objects() -> ClearSpawnedResponse:
        pipeline: ObjectGenerationPipeline = app.state.pipeline
        return ClearSpawnedResponse(removed=pipeline.clear_spawned_objects())

    @api.get("/status", response_model=StatusResponse)
    async def get_status() -> StatusResponse:
        pipeline: ObjectGenerationPipeline = app.state.pipeline
        current = pipeline.status
        return StatusResponse(
            state=current.state,
            message=current.message,
            visible=current.is_visible(datetime.now(UTC)),
            updated_at=current.updated_at,
        )

    @api.get("/cache", response_model=CacheEntriesResponse)
    async def list_cache_entries() -> CacheEntriesResponse:
        pipeline: ObjectGenerationPipeline = app.state.pipeline
        return CacheEntriesResponse(entries=await pipeline.cache.fetch_all_remote())

    app.include_router(api)


def _build_default_pipeline() -> tuple[ObjectGenerationPipeline, HttpRemoteCacheStore | None]:
    world = PymunkWorld(
        width=_resolve_positive_float_env("CONJURE_WORLD_WIDTH", default=DEFAULT_WORLD_WIDTH),
        height=_resolve_positive_float_env("CONJURE_WORLD_HEIGHT", default=DEFAULT_WORLD_HEIGHT),
    )
    registry = InMemoryObjectRegistry()
    executor = SandboxExecutor(
        world,
        registry,
        max_ephemeral=_resolve_positive_int_env(
            "CONJURE_MAX_EPHEMERAL",
            default=DEFAULT_EPHEMERAL_CAPACITY,
        ),
    )

    remote_url = os.getenv("CONJURE_REMOTE_CACHE_URL", "").strip()
    remote_store = HttpRemoteCacheStore(remote_url) if remote_url else None
    local_path = os.getenv("CONJURE_LOCAL_CACHE_PATH", "").strip()
    cache = TieredCache(
        JsonFileKeyValueStore(Path(local_path) if local_path else _DEFAULT_LOCAL_CACHE_PATH),
        remote_store,
    )

    pipeline = ObjectGenerationPipeline(
        normalizer=OpenAIPromptNormalizerAdapter(
            model=_resolve_model_name(primary_env="OPENAI_NORMALIZER_MODEL"),
        ),
        generator=OpenAICodeGeneratorAdapter(
            model=_resolve_model_name(primary_env="OPENAI_GENERATOR_MODEL"),
        ),
        cache=cache,
        executor=executor,
        world=world,
        registry=registry,
    )
    return pipeline, remote_store


def _resolve_model_name(*, primary_env: str) -> str:
    for env_name in (primary_env, "OPENAI_MODEL"):
        value = os.getenv(env_name, "").strip()
        if value:
            return value
    return _DEFAULT_MODEL


def _resolve_positive_int_env(env_name: str, *, default: int) -> int:
    raw_value = os.getenv(env_name, "").strip()
    try:
        value = int(raw_value)
    except ValueError:
        return default
    return value if value > 0 else default


def _resolve_positive_float_env(env_name: str, *, default: float) -> float:
    raw_value = os.getenv(env_name, "").strip()
    try:
        value = float(raw_value)
    except ValueError:
        return default
    return value if value > 0 else default


def _load_runtime_env() -> None:
    app_env = os.getenv("APP_ENV", "development")
    env_file = Path(f".env.{app_env}")
    if env_file.exists():
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)
