"""Project lifecycle: naming, the generation graph and build dispatch."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from preview_orchestrator.build.models import GeneratedFile, ProjectContext
from preview_orchestrator.build.sweeper import SweepReport
from preview_orchestrator.build.workspace import WorkspaceBuilder, preview_path
from preview_orchestrator.errors import (
    BuildDispatchError,
    BuildInProgressError,
    GenerationError,
)
from preview_orchestrator.pipeline.naming import (
    DEFAULT_TITLE,
    extract_project_name,
    extract_user_provided_name,
    to_title_case,
)
from preview_orchestrator.pipeline.state import PipelineDeps, initial_state
from preview_orchestrator.pipeline.tasks import BuildHandle, TaskRegistry
from preview_orchestrator.pipeline.workflow import build_graph
from preview_orchestrator.storage.base import PipelineStorage
from preview_orchestrator.storage.models import (
    TERMINAL_RUN_STATUSES,
    MessageRecord,
    ProjectRecord,
)

logger = logging.getLogger(__name__)

ASK_NAME_MESSAGE = "What name would you like to give to your dapp?"
INVALID_NAME_MESSAGE = "Please provide a valid project name (letters, numbers, spaces, &, ', - only). Try again:"
FRIENDLY_ERROR_LINES = 5
FRIENDLY_ERROR_CHARS = 1000
INLINE_ERROR_CHARS = 100

BUILD_STATUS_BY_RUN = {
    "queued": "pending",
    "awaiting_input": "pending",
    "running": "running",
    "completed": "completed",
    "failed": "failed",
}


def friendly_build_error(message: str) -> str:
    """The part after ``Build failed:``, first five lines, at most 1000 characters."""
    text = message.split("Build failed:", 1)[1] if "Build failed:" in message else message
    lines = text.strip().splitlines()[:FRIENDLY_ERROR_LINES]
    return "\n".join(lines)[:FRIENDLY_ERROR_CHARS]


def build_failure_message(message: str) -> str:
    friendly = friendly_build_error(message) or "unknown error"
    if len(friendly) > INLINE_ERROR_CHARS:
        return f"Draft build failed:\n```\n{friendly}\n```\nPlease check the code files and try again."
    return f"Draft build failed: {friendly}. Please check the code files and try again."


class PipelineOrchestrator:
    """Owns per-project locks and background tasks; every state change goes through storage."""

    def __init__(
        self,
        *,
        storage: PipelineStorage,
        client: Any,
        builder: WorkspaceBuilder,
        tasks: TaskRegistry | None = None,
        retry_budget: int = 1,
    ) -> None:
        self.storage = storage
        self.client = client
        self.builder = builder
        self.tasks = tasks or TaskRegistry()
        self.retry_budget = retry_budget
        self.workflow = build_graph(PipelineDeps(storage=storage, client=client))
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, project_id: str) -> asyncio.Lock:
        lock = self._locks.get(project_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[project_id] = lock
        return lock

    def is_busy(self, project_id: str) -> bool:
        lock = self._locks.get(project_id)
        return lock is not None and lock.locked()

    async def create_project(self, brief: str) -> ProjectRecord:
        name = extract_project_name(brief)
        if name is None:
            project = await self.storage.create_project(title=DEFAULT_TITLE, prompt=brief)
            await self.storage.append_message(project.project_id, role="user", content=brief)
            await self.storage.append_message(project.project_id, role="assistant", content=ASK_NAME_MESSAGE)
            await self.storage.upsert_run(project.project_id, stage="spec", status="awaiting_input", step="awaiting_name")
            logger.info("pipeline event=awaiting_name project_id=%s", project.project_id)
            return project

        project = await self.storage.create_project(title=name, prompt=brief)
        await self.storage.append_message(project.project_id, role="user", content=brief)
        await self.storage.append_message(
            project.project_id,
            role="assistant",
            content=f"I'm building your {name}! I'll keep you posted as I progress.",
        )
        await self.storage.upsert_run(project.project_id, stage="spec", status="queued", step="queued")
        self.start_pipeline(project.project_id)
        return project

    async def handle_message(self, project_id: str, content: str) -> MessageRecord:
        """Log a chat message; while the project waits for a name the message is the name."""
        message = await self.storage.append_message(project_id, role="user", content=content)
        spec_run = await self.storage.get_run(project_id, stage="spec")
        if spec_run is None or spec_run.status != "awaiting_input":
            return message

        name = extract_user_provided_name(content)
        if name is None:
            await self.storage.append_message(project_id, role="assistant", content=INVALID_NAME_MESSAGE)
            return message

        title = to_title_case(name)
        await self.storage.update_project_title(project_id, title=title)
        await self.storage.append_message(
            project_id,
            role="assistant",
            content=f"Perfect! I'll name your project {title}. Building it now...",
        )
        await self.storage.upsert_run(project_id, stage="spec", status="queued", step="queued")
        self.start_pipeline(project_id)
        return message

    def start_pipeline(self, project_id: str) -> asyncio.Task[Any]:
        return self.tasks.spawn(self.run_pipeline(project_id), name=f"pipeline:{project_id}")

    async def run_pipeline(self, project_id: str) -> BuildHandle | None:
        """Specification, code, then build; the project lock is held throughout."""
        project = await self.storage.get_project(project_id)
        if project is None:
            logger.warning("pipeline event=project_missing project_id=%s", project_id)
            return None

        lock = self.lock_for(project_id)
        await lock.acquire()
        handle: BuildHandle | None = None
        try:
            state = initial_state(project_id, project.prompt, project.title, retry_budget=self.retry_budget)
            try:
                result = await self.workflow.ainvoke(state)
            except GenerationError as exc:
                logger.warning("pipeline event=halted project_id=%s error=%s", project_id, exc)
                return None
            except Exception as exc:  # noqa: BLE001
                logger.exception("pipeline event=crashed project_id=%s", project_id)
                await self._fail_open_runs(project_id, str(exc))
                return None

            logger.info(
                "pipeline event=generated project_id=%s telemetry=%s",
                project_id,
                json.dumps(result.get("telemetry", {}), sort_keys=True),
            )
            await self.storage.append_message(
                project_id,
                role="assistant",
                content="Ok, building your code and starting the preview.",
            )
            try:
                handle = await self._dispatch_locked(project)
            except BuildDispatchError as exc:
                await self.storage.append_message(project_id, role="assistant", content=str(exc))
            return handle
        finally:
            if handle is None:
                lock.release()

    async def trigger_build(self, project_id: str) -> BuildHandle:
        """Start a build; raises when the project is unknown, busy or has no code."""
        project = await self.storage.get_project(project_id)
        if project is None:
            raise KeyError(project_id)
        lock = self.lock_for(project_id)
        if lock.locked():
            raise BuildInProgressError(f"A build is already in progress for project {project_id}")
        await lock.acquire()
        try:
            return await self._dispatch_locked(project)
        except BaseException:
            lock.release()
            raise

    async def build_status(self, project_id: str) -> dict[str, Any]:
        run = await self.storage.get_run(project_id, stage="draft")
        if run is None:
            return {"status": "pending"}
        payload: dict[str, Any] = {"status": BUILD_STATUS_BY_RUN.get(run.status, "pending")}
        if run.error:
            payload["error"] = run.error
        return payload

    async def cleanup(self) -> SweepReport:
        busy = {project_id for project_id, lock in self._locks.items() if lock.locked()}
        return await self.builder.sweeper.sweep(exclude=busy)

    async def shutdown(self) -> None:
        await self.tasks.cancel_all()
        await self.builder.supervisor.stop_all()

    async def _dispatch_locked(self, project: ProjectRecord) -> BuildHandle:
        project_id = project.project_id
        artifacts = await self.storage.list_artifacts(project_id, kind="code")
        files = [GeneratedFile(path=item.path or "code.txt", content=item.content) for item in artifacts]
        if not files:
            raise BuildDispatchError("No code files found to build")

        spec = await self.storage.get_latest_artifact(project_id, kind="spec")
        context = ProjectContext(
            title=project.title,
            prompt=project.prompt,
            spec_markdown=spec.content if spec else None,
        )
        port = self.builder.ports.port_for(project_id)
        preview_url = preview_path(project_id)

        await self.storage.upsert_run(project_id, stage="draft", status="running", step="building")
        await self.storage.append_message(project_id, role="assistant", content="Building application...")
        await self._append_draft_info(project_id, preview_url=preview_url, port=port, build_status="building")

        task = self.tasks.spawn(
            self._build_and_release(project_id, files, context, port=port, preview_url=preview_url),
            name=f"build:{project_id}",
        )
        logger.info("pipeline event=build_dispatched project_id=%s port=%s files=%s", project_id, port, len(files))
        return BuildHandle(project_id=project_id, port=port, preview_url=preview_url, task=task)

    async def _build_and_release(
        self,
        project_id: str,
        files: list[GeneratedFile],
        context: ProjectContext,
        *,
        port: int,
        preview_url: str,
    ) -> None:
        try:
            try:
                await self.builder.build(project_id, files, context)
            except Exception as exc:  # noqa: BLE001
                error = str(exc) or exc.__class__.__name__
                logger.error("pipeline event=build_failed project_id=%s error=%s", project_id, error)
                await self._append_draft_info(
                    project_id,
                    preview_url=preview_url,
                    port=port,
                    build_status="failed",
                    error=error,
                )
                await self.storage.upsert_run(project_id, stage="draft", status="failed", step="failed", error=error)
                await self.storage.append_message(project_id, role="assistant", content=build_failure_message(error))
                return

            await self._append_draft_info(project_id, preview_url=preview_url, port=port, build_status="ready")
            await self.storage.upsert_run(project_id, stage="draft", status="completed", step="ready")
            await self.storage.append_message(
                project_id,
                role="assistant",
                content=f"App draft is ready for review: {preview_url}",
            )
        finally:
            self.lock_for(project_id).release()

    async def _append_draft_info(
        self,
        project_id: str,
        *,
        preview_url: str,
        port: int,
        build_status: str,
        error: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {"previewUrl": preview_url, "port": port, "buildStatus": build_status}
        if error:
            payload["error"] = error
        await self.storage.append_artifact(project_id, kind="draft", content=json.dumps(payload))

    async def _fail_open_runs(self, project_id: str, error: str) -> None:
        for run in await self.storage.list_runs(project_id):
            if run.status not in TERMINAL_RUN_STATUSES:
                await self.storage.upsert_run(project_id, stage=run.stage, status="failed", step=run.step, error=error)
