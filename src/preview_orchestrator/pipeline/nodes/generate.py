"""Code node: ask for a file manifest, once more with corrections after a failed validation."""

from __future__ import annotations

import logging

from preview_orchestrator.errors import GenerationError
from preview_orchestrator.generation.manifest import parse_manifest
from preview_orchestrator.generation.prompts import CODE_TEMPERATURE, code_messages, corrective_messages
from preview_orchestrator.pipeline.state import PipelineDeps, PipelineState

logger = logging.getLogger(__name__)


async def run(state: PipelineState, deps: PipelineDeps) -> PipelineState:
    project_id = state["project_id"]
    telemetry = dict(state.get("telemetry", {}))
    validation = state.get("validation") or {}
    retry_count = int(state.get("retry_count", 0))
    correcting = bool(validation.get("errors"))

    if correcting:
        retry_count += 1
        await deps.storage.upsert_run(project_id, stage="code", status="running", step="regenerating")
        await deps.storage.append_message(
            project_id,
            role="assistant",
            content="Code validation failed. Regenerating with stricter rules...",
        )
        messages = corrective_messages(
            state.get("code_messages", []),
            state.get("raw_code", ""),
            str(validation.get("summary", "")),
        )
    else:
        await deps.storage.upsert_run(project_id, stage="code", status="running", step="generating")
        await deps.storage.append_message(
            project_id,
            role="assistant",
            content="Generating your application code...",
        )
        messages = code_messages(state.get("brief", ""), state.get("spec_markdown", ""))

    try:
        raw = await deps.client.complete(messages, temperature=CODE_TEMPERATURE)
    except Exception as exc:  # noqa: BLE001
        if correcting:
            logger.warning("pipeline event=regenerate_failed project_id=%s error=%s", project_id, exc)
            telemetry["code"] = {**telemetry.get("code", {}), "retry_error": str(exc)}
            return {"retry_count": retry_count, "validation": {}, "telemetry": telemetry}
        logger.error("pipeline event=code_failed project_id=%s error=%s", project_id, exc)
        await deps.storage.upsert_run(project_id, stage="code", status="failed", step="generating", error=str(exc))
        await deps.storage.append_message(
            project_id,
            role="assistant",
            content=f"I couldn't generate the application code: {exc}",
        )
        raise GenerationError(f"Code generation failed: {exc}") from exc

    files = parse_manifest(raw)
    code_telemetry = dict(telemetry.get("code", {}))
    code_telemetry["attempts"] = retry_count + 1
    telemetry["code"] = code_telemetry

    if correcting:
        if files:
            logger.info("pipeline event=regenerated project_id=%s files=%s", project_id, len(files))
            return {
                "raw_code": raw,
                "files": [{"path": item.path, "content": item.content} for item in files],
                "parsed": True,
                "retry_count": retry_count,
                "validation": {},
                "telemetry": telemetry,
            }
        logger.warning("pipeline event=regenerated_unparsed project_id=%s action=keep_first", project_id)
        return {"retry_count": retry_count, "validation": {}, "telemetry": telemetry}

    logger.info(
        "pipeline event=code_done project_id=%s parsed=%s files=%s",
        project_id,
        files is not None,
        len(files or []),
    )
    return {
        "code_messages": messages,
        "raw_code": raw,
        "files": [{"path": item.path, "content": item.content} for item in files or []],
        "parsed": bool(files),
        "retry_count": retry_count,
        "telemetry": telemetry,
    }
