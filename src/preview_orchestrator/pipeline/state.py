"""Typed state contract for the generation graph."""

from dataclasses import dataclass
from typing import Any, TypedDict


class PipelineState(TypedDict, total=False):
    project_id: str
    brief: str
    title: str
    spec_markdown: str
    spec_messages: list[dict[str, Any]]
    code_messages: list[dict[str, Any]]
    raw_code: str
    files: list[dict[str, str]]
    parsed: bool
    validation: dict[str, Any]
    retry_count: int
    retry_budget: int
    telemetry: dict[str, Any]


def initial_state(
    project_id: str,
    brief: str,
    title: str = "",
    retry_budget: int = 1,
) -> PipelineState:
    return {
        "project_id": project_id,
        "brief": brief,
        "title": title,
        "spec_markdown": "",
        "spec_messages": [],
        "code_messages": [],
        "raw_code": "",
        "files": [],
        "parsed": False,
        "validation": {},
        "retry_count": 0,
        "retry_budget": retry_budget,
        "telemetry": {},
    }


@dataclass(frozen=True)
class PipelineDeps:
    """Collaborators the graph nodes call into."""

    storage: Any
    client: Any
