"""Persist node: store the final file set as code artifacts."""

from __future__ import annotations

import logging

from preview_orchestrator.pipeline.state import PipelineDeps, PipelineState

logger = logging.getLogger(__name__)

RAW_CODE_PATH = "code.txt"


async def run(state: PipelineState, deps: PipelineDeps) -> PipelineState:
    project_id = state["project_id"]
    telemetry = dict(state.get("telemetry", {}))
    files = state.get("files", [])
    validation = state.get("validation") or {}

    errors = validation.get("errors") or []
    if errors:
        logger.warning(
            "pipeline event=building_with_errors project_id=%s errors=%s",
            project_id,
            len(errors),
        )

    if files:
        for item in files:
            await deps.storage.append_artifact(project_id, kind="code", path=item["path"], content=item["content"])
        stored = len(files)
    else:
        await deps.storage.append_artifact(
            project_id,
            kind="code",
            path=RAW_CODE_PATH,
            content=state.get("raw_code", ""),
        )
        stored = 1
        logger.warning("pipeline event=manifest_unparsed project_id=%s action=store_raw", project_id)

    await deps.storage.upsert_run(project_id, stage="code", status="completed", step="done")
    await deps.storage.append_message(project_id, role="assistant", content="Application created successfully")

    telemetry["persist"] = {"artifacts": stored, "raw_fallback": not files}
    return {"telemetry": telemetry}
