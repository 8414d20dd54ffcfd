"""FastAPI app entrypoint for preview-orchestrator."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Literal

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, StreamingResponse
from pydantic import BaseModel, Field

from preview_orchestrator.api.events import SSE_HEADERS, project_events
from preview_orchestrator.build.cache import DependencyCache
from preview_orchestrator.build.ports import PortRegistry
from preview_orchestrator.build.supervisor import ProcessSupervisor
from preview_orchestrator.build.sweeper import EvictionSweeper
from preview_orchestrator.build.workspace import WorkspaceBuilder
from preview_orchestrator.config.settings import Settings, get_settings
from preview_orchestrator.errors import BuildDispatchError, BuildInProgressError
from preview_orchestrator.generation.client import resolve_generation_client
from preview_orchestrator.pipeline.orchestrator import PipelineOrchestrator
from preview_orchestrator.preview.proxy import NO_CACHE_HEADERS, PreviewProxy
from preview_orchestrator.storage.base import PipelineStorage
from preview_orchestrator.storage.memory import InMemoryPipelineStorage
from preview_orchestrator.storage.models import ArtifactRecord, MessageRecord, ProjectRecord
from preview_orchestrator.storage.postgres import PostgresPipelineStorage

logger = logging.getLogger(__name__)


class CreateProjectRequest(BaseModel):
    prompt: str = Field(min_length=1)


class CreateMessageRequest(BaseModel):
    content: str = Field(min_length=1)


def build_orchestrator(settings: Settings, storage: PipelineStorage) -> PipelineOrchestrator:
    ports = PortRegistry(base_port=settings.port_base, span=settings.port_span)
    supervisor = ProcessSupervisor(
        dev_command=settings.dev_command,
        output_limit_bytes=settings.process_output_limit_bytes,
    )

    async def _on_evicted(project_id: str) -> None:
        await supervisor.stop(project_id)
        ports.forget(project_id)

    sweeper = EvictionSweeper(
        settings.drafts_dir,
        max_age_s=settings.max_workspace_age_hours * 3600,
        max_count=settings.max_workspace_count,
        grace_s=settings.eviction_grace_minutes * 60,
        reserved=(settings.cache_dirname,),
        on_evicted=_on_evicted,
    )
    cache = DependencyCache(
        settings.cache_dir,
        install_command=settings.install_command,
        install_timeout_s=settings.install_timeout_s,
    )
    builder = WorkspaceBuilder(
        drafts_dir=settings.drafts_dir,
        ports=ports,
        cache=cache,
        supervisor=supervisor,
        sweeper=sweeper,
    )

    resolution = resolve_generation_client(settings)
    if resolution.fallback_reason:
        logger.warning(
            "generation event=fallback requested_mode=%s effective_mode=%s reason=%s",
            resolution.requested_mode,
            resolution.effective_mode,
            resolution.fallback_reason,
        )
    return PipelineOrchestrator(
        storage=storage,
        client=resolution.client,
        builder=builder,
        retry_budget=settings.code_retry_budget,
    )


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    storage_override: PipelineStorage | None,
    orchestrator_override: PipelineOrchestrator | None,
) -> None:
    if not hasattr(app.state, "storage"):
        database_url = settings.resolved_database_url()
        if storage_override is not None:
            app.state.storage = storage_override
        elif database_url:
            app.state.storage = PostgresPipelineStorage(database_url)
        else:
            logger.warning("storage event=in_memory reason=no_database_url")
            app.state.storage = InMemoryPipelineStorage()

    if not hasattr(app.state, "settings"):
        app.state.settings = settings

    if not hasattr(app.state, "orchestrator"):
        app.state.orchestrator = orchestrator_override or build_orchestrator(settings, app.state.storage)

    if not hasattr(app.state, "proxy"):
        builder = app.state.orchestrator.builder
        app.state.proxy = PreviewProxy(
            storage=app.state.storage,
            ports=builder.ports,
            drafts_dir=builder.drafts_dir,
            host=settings.preview_host,
            max_attempts=settings.proxy_max_attempts,
            timeout_s=settings.proxy_timeout_s,
            backoff_base_s=settings.proxy_backoff_base_s,
            backoff_cap_s=settings.proxy_backoff_cap_s,
        )


def create_app(
    *,
    storage: PipelineStorage | None = None,
    settings_override: Settings | None = None,
    orchestrator: PipelineOrchestrator | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()

    def _ensure(app: FastAPI) -> None:
        _ensure_runtime_state(
            app,
            settings=settings,
            storage_override=storage,
            orchestrator_override=orchestrator,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure(app)
        await app.state.storage.migrate()
        yield
        await app.state.orchestrator.shutdown()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    # Keep test paths reliable when lifespan is not executed by the client.
    if storage is not None:
        _ensure(app)

    def _runtime(request: Request) -> Any:
        if not hasattr(request.app.state, "orchestrator"):
            _ensure(request.app)
        return request.app.state

    async def _require_project(state: Any, project_id: str) -> ProjectRecord:
        record = await state.storage.get_project(project_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Project not found")
        return record

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.post("/projects", response_model=ProjectRecord)
    async def create_project(payload: CreateProjectRequest, request: Request) -> ProjectRecord:
        state = _runtime(request)
        return await state.orchestrator.create_project(payload.prompt.strip())

    @app.get("/projects/{project_id}", response_model=ProjectRecord)
    async def get_project(project_id: str, request: Request) -> ProjectRecord:
        return await _require_project(_runtime(request), project_id)

    @app.get("/projects/{project_id}/artifacts", response_model=list[ArtifactRecord])
    async def list_artifacts(
        project_id: str,
        request: Request,
        kind: Literal["spec", "code", "draft"] | None = None,
    ) -> list[ArtifactRecord]:
        state = _runtime(request)
        await _require_project(state, project_id)
        return await state.storage.list_artifacts(project_id, kind=kind)

    @app.get("/projects/{project_id}/messages", response_model=list[MessageRecord])
    async def list_messages(project_id: str, request: Request) -> list[MessageRecord]:
        state = _runtime(request)
        await _require_project(state, project_id)
        return await state.storage.list_messages(project_id)

    @app.post("/projects/{project_id}/messages", response_model=MessageRecord)
    async def post_message(project_id: str, payload: CreateMessageRequest, request: Request) -> MessageRecord:
        state = _runtime(request)
        await _require_project(state, project_id)
        return await state.orchestrator.handle_message(project_id, payload.content.strip())

    @app.post("/projects/{project_id}/build")
    async def trigger_build(project_id: str, request: Request) -> dict[str, Any]:
        state = _runtime(request)
        await _require_project(state, project_id)
        try:
            handle = await state.orchestrator.trigger_build(project_id)
        except BuildInProgressError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except BuildDispatchError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"ok": True, "previewUrl": handle.preview_url, "port": handle.port}

    @app.get("/projects/{project_id}/build")
    async def build_status(project_id: str, request: Request) -> dict[str, Any]:
        state = _runtime(request)
        await _require_project(state, project_id)
        return await state.orchestrator.build_status(project_id)

    @app.get("/projects/{project_id}/events")
    async def events(project_id: str, request: Request) -> StreamingResponse:
        state = _runtime(request)
        await _require_project(state, project_id)
        stream = project_events(
            state.storage,
            project_id,
            poll_interval_s=settings.events_poll_interval_s,
            is_disconnected=request.is_disconnected,
        )
        return StreamingResponse(stream, media_type="text/event-stream", headers=SSE_HEADERS)

    @app.get("/draft/{project_id}", response_class=HTMLResponse)
    async def draft_preview(project_id: str, request: Request) -> HTMLResponse:
        result = await _runtime(request).proxy.render(project_id)
        headers = {**NO_CACHE_HEADERS, "X-Preview-Source": result.source}
        return HTMLResponse(content=result.html, status_code=200, headers=headers)

    @app.post("/cleanup")
    async def cleanup(request: Request) -> dict[str, Any]:
        token = settings.resolved_cleanup_token()
        if token and request.headers.get("authorization") != f"Bearer {token}":
            raise HTTPException(status_code=401, detail="Unauthorized")
        report = await _runtime(request).orchestrator.cleanup()
        return {"success": True, **report.to_dict()}

    return app


app = create_app()
