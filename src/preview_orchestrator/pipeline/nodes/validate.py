"""Validation node: static defect scan of the parsed manifest."""

from __future__ import annotations

import logging

from preview_orchestrator.build.models import GeneratedFile
from preview_orchestrator.build.validator import ensure_valid, format_error_summary, validate_project
from preview_orchestrator.errors import ValidationFailure
from preview_orchestrator.pipeline.state import PipelineDeps, PipelineState

logger = logging.getLogger(__name__)


async def run(state: PipelineState, deps: PipelineDeps) -> PipelineState:
    project_id = state["project_id"]
    telemetry = dict(state.get("telemetry", {}))
    files = [GeneratedFile(path=item["path"], content=item["content"]) for item in state.get("files", [])]

    report = validate_project(files)
    validation = report.to_dict()
    validation["summary"] = format_error_summary(report)

    retry_count = int(state.get("retry_count", 0))
    telemetry["validation"] = {
        "valid": report.valid,
        "errors": len(report.errors),
        "warnings": len(report.warnings),
        "retry_count": retry_count,
    }
    logger.info(
        "pipeline event=validated project_id=%s valid=%s errors=%s warnings=%s",
        project_id,
        report.valid,
        len(report.errors),
        len(report.warnings),
    )
    if retry_count >= int(state.get("retry_budget", 1)):
        try:
            ensure_valid(report)
        except ValidationFailure as exc:
            logger.warning(
                "pipeline event=best_effort project_id=%s errors=%s reason=%s",
                project_id,
                exc.error_count,
                exc,
            )
    return {"validation": validation, "telemetry": telemetry}
