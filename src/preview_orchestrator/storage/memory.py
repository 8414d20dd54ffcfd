"""In-memory storage backend for tests and local runs."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from preview_orchestrator.storage.models import (
    ArtifactKind,
    ArtifactRecord,
    MessageRecord,
    MessageRole,
    ProjectRecord,
    RunRecord,
    RunStage,
    RunStatus,
)


class InMemoryPipelineStorage:
    """Simple in-memory implementation; every read returns copies."""

    def __init__(self) -> None:
        self._projects: dict[str, ProjectRecord] = {}
        self._runs: dict[tuple[str, str], RunRecord] = {}
        self._artifacts: list[ArtifactRecord] = []
        self._messages: list[MessageRecord] = []

    async def migrate(self) -> None:
        return None

    async def create_project(self, *, title: str, prompt: str) -> ProjectRecord:
        now = datetime.now(UTC)
        record = ProjectRecord(
            project_id=str(uuid4()),
            title=title,
            prompt=prompt,
            created_at=now,
            updated_at=now,
        )
        self._projects[record.project_id] = record
        return record.model_copy()

    async def get_project(self, project_id: str) -> ProjectRecord | None:
        record = self._projects.get(project_id)
        return record.model_copy() if record else None

    async def update_project_title(self, project_id: str, *, title: str) -> ProjectRecord:
        current = self._projects.get(project_id)
        if current is None:
            raise KeyError(f"Project {project_id} does not exist")
        updated = current.model_copy(update={"title": title, "updated_at": datetime.now(UTC)})
        self._projects[project_id] = updated
        return updated.model_copy()

    async def upsert_run(
        self,
        project_id: str,
        *,
        stage: RunStage,
        status: RunStatus,
        step: str | None = None,
        error: str | None = None,
    ) -> RunRecord:
        now = datetime.now(UTC)
        key = (project_id, stage)
        current = self._runs.get(key)
        if current is None:
            record = RunRecord(
                run_id=str(uuid4()),
                project_id=project_id,
                stage=stage,
                status=status,
                step=step,
                error=error,
                created_at=now,
                updated_at=now,
            )
        else:
            record = current.model_copy(
                update={"status": status, "step": step, "error": error, "updated_at": now}
            )
        self._runs[key] = record
        return record.model_copy()

    async def get_run(self, project_id: str, *, stage: RunStage) -> RunRecord | None:
        record = self._runs.get((project_id, stage))
        return record.model_copy() if record else None

    async def list_runs(self, project_id: str) -> list[RunRecord]:
        runs = [run for (owner, _), run in self._runs.items() if owner == project_id]
        runs.sort(key=lambda run: run.created_at)
        return [run.model_copy() for run in runs]

    async def append_artifact(
        self,
        project_id: str,
        *,
        kind: ArtifactKind,
        content: str,
        path: str | None = None,
    ) -> ArtifactRecord:
        record = ArtifactRecord(
            artifact_id=str(uuid4()),
            project_id=project_id,
            kind=kind,
            path=path,
            content=content,
            created_at=datetime.now(UTC),
        )
        self._artifacts.append(record)
        return record.model_copy()

    async def list_artifacts(
        self,
        project_id: str,
        *,
        kind: ArtifactKind | None = None,
    ) -> list[ArtifactRecord]:
        return [
            item.model_copy()
            for item in self._artifacts
            if item.project_id == project_id and (kind is None or item.kind == kind)
        ]

    async def get_latest_artifact(
        self,
        project_id: str,
        *,
        kind: ArtifactKind,
    ) -> ArtifactRecord | None:
        for item in reversed(self._artifacts):
            if item.project_id == project_id and item.kind == kind:
                return item.model_copy()
        return None

    async def append_message(
        self,
        project_id: str,
        *,
        role: MessageRole,
        content: str,
    ) -> MessageRecord:
        record = MessageRecord(
            message_id=str(uuid4()),
            project_id=project_id,
            role=role,
            content=content,
            created_at=datetime.now(UTC),
        )
        self._messages.append(record)
        return record.model_copy()

    async def list_messages(self, project_id: str) -> list[MessageRecord]:
        return [item.model_copy() for item in self._messages if item.project_id == project_id]
