"""Materialize a normalized draft on disk and bring its dev server up."""

from __future__ import annotations

import asyncio
import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from preview_orchestrator.build.cache import CacheSlot, DependencyCache
from preview_orchestrator.build.models import GeneratedFile, NormalizedBuild, ProjectContext
from preview_orchestrator.build.normalizer import normalize_files
from preview_orchestrator.build.ports import PortRegistry
from preview_orchestrator.build.supervisor import ProcessSupervisor, SupervisedProcess
from preview_orchestrator.build.sweeper import EvictionSweeper
from preview_orchestrator.errors import InstallError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DraftBuild:
    project_id: str
    port: int
    workspace_dir: Path
    normalized: NormalizedBuild
    cache_slot: CacheSlot
    process: SupervisedProcess


def preview_path(project_id: str) -> str:
    return f"/draft/{project_id}"


class WorkspaceBuilder:
    def __init__(
        self,
        *,
        drafts_dir: Path,
        ports: PortRegistry,
        cache: DependencyCache,
        supervisor: ProcessSupervisor,
        sweeper: EvictionSweeper,
    ) -> None:
        self.drafts_dir = Path(drafts_dir)
        self.ports = ports
        self.cache = cache
        self.supervisor = supervisor
        self.sweeper = sweeper

    def workspace_dir(self, project_id: str) -> Path:
        return self.drafts_dir / project_id

    async def build(
        self,
        project_id: str,
        files: Iterable[GeneratedFile],
        context: ProjectContext,
    ) -> DraftBuild:
        """Sweep, write the workspace, populate dependencies and start the dev server."""
        started_at = time.perf_counter()
        port = self.ports.port_for(project_id)
        await self.sweeper.sweep(exclude={project_id})

        normalized = normalize_files(project_id, files, context, port=port)
        workspace = self.workspace_dir(project_id)
        await self.supervisor.stop(project_id)
        await asyncio.to_thread(self._write_workspace, workspace, normalized, project_id, port)
        logger.info(
            "draft event=files_written project_id=%s files=%s dir=%s",
            project_id,
            len(normalized.files),
            workspace,
        )

        try:
            slot = await self.cache.prepare(normalized.manifest, workspace, project_id=project_id)
        except InstallError as exc:
            raise InstallError(
                f"Build failed: Failed to install dependencies: {exc}\n\n"
                "The dependency cache slot was discarded; the next build reinstalls it."
            ) from exc

        process = await self.supervisor.start(project_id, workspace, port)
        logger.info(
            "draft event=serving project_id=%s port=%s cache=%s duration_s=%.1f",
            project_id,
            port,
            "rebuilt" if slot.rebuilt else "reused",
            time.perf_counter() - started_at,
        )
        return DraftBuild(
            project_id=project_id,
            port=port,
            workspace_dir=workspace,
            normalized=normalized,
            cache_slot=slot,
            process=process,
        )

    @staticmethod
    def _write_workspace(workspace: Path, normalized: NormalizedBuild, project_id: str, port: int) -> None:
        if workspace.exists():
            shutil.rmtree(workspace)
        workspace.mkdir(parents=True)
        root = workspace.resolve()
        for item in normalized.files:
            target = (workspace / item.path).resolve()
            if not target.is_relative_to(root):
                logger.warning("draft event=path_rejected project_id=%s path=%s", project_id, item.path)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(item.content, encoding="utf-8")

        env_local = workspace / ".env.local"
        if not env_local.exists():
            env_local.write_text(
                f"NEXT_PUBLIC_APP_NAME={project_id}\nNODE_ENV=production\nPORT={port}\n",
                encoding="utf-8",
            )
