"""Specification node: turn the brief into a Markdown specification."""

from __future__ import annotations

import logging

from preview_orchestrator.errors import GenerationError
from preview_orchestrator.generation.prompts import SPEC_TEMPERATURE, fallback_spec, spec_messages
from preview_orchestrator.pipeline.state import PipelineDeps, PipelineState

logger = logging.getLogger(__name__)


async def run(state: PipelineState, deps: PipelineDeps) -> PipelineState:
    project_id = state["project_id"]
    brief = state.get("brief", "")
    telemetry = dict(state.get("telemetry", {}))

    await deps.storage.upsert_run(project_id, stage="spec", status="running", step="generating")
    await deps.storage.append_message(project_id, role="assistant", content="Drafting the specification...")

    messages = spec_messages(brief)
    try:
        content = await deps.client.complete(messages, temperature=SPEC_TEMPERATURE)
    except Exception as exc:  # noqa: BLE001
        logger.error("pipeline event=spec_failed project_id=%s error=%s", project_id, exc)
        await deps.storage.upsert_run(project_id, stage="spec", status="failed", step="generating", error=str(exc))
        await deps.storage.append_message(
            project_id,
            role="assistant",
            content=f"I couldn't draft the specification: {exc}",
        )
        raise GenerationError(f"Specification generation failed: {exc}") from exc

    spec_markdown = content.strip() or fallback_spec(brief)
    await deps.storage.append_artifact(project_id, kind="spec", content=spec_markdown)
    await deps.storage.upsert_run(project_id, stage="spec", status="completed", step="done")
    await deps.storage.append_message(project_id, role="assistant", content="Specification blueprint created")

    telemetry["spec"] = {"chars": len(spec_markdown), "fallback_used": not content.strip()}
    logger.info("pipeline event=spec_done project_id=%s chars=%s", project_id, len(spec_markdown))
    return {"spec_markdown": spec_markdown, "spec_messages": messages, "telemetry": telemetry}
