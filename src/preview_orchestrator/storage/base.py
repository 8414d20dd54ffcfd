"""Storage interfaces for the build-and-preview pipeline."""

from __future__ import annotations

from typing import Protocol

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


class PipelineStorage(Protocol):
    async def migrate(self) -> None: ...

    async def create_project(self, *, title: str, prompt: str) -> ProjectRecord: ...

    async def get_project(self, project_id: str) -> ProjectRecord | None: ...

    async def update_project_title(self, project_id: str, *, title: str) -> ProjectRecord: ...

    async def upsert_run(
        self,
        project_id: str,
        *,
        stage: RunStage,
        status: RunStatus,
        step: str | None = None,
        error: str | None = None,
    ) -> RunRecord: ...

    async def get_run(self, project_id: str, *, stage: RunStage) -> RunRecord | None: ...

    async def list_runs(self, project_id: str) -> list[RunRecord]: ...

    async def append_artifact(
        self,
        project_id: str,
        *,
        kind: ArtifactKind,
        content: str,
        path: str | None = None,
    ) -> ArtifactRecord: ...

    async def list_artifacts(
        self,
        project_id: str,
        *,
        kind: ArtifactKind | None = None,
    ) -> list[ArtifactRecord]: ...

    async def get_latest_artifact(
        self,
        project_id: str,
        *,
        kind: ArtifactKind,
    ) -> ArtifactRecord | None: ...

    async def append_message(
        self,
        project_id: str,
        *,
        role: MessageRole,
        content: str,
    ) -> MessageRecord: ...

    async def list_messages(self, project_id: str) -> list[MessageRecord]: ...
