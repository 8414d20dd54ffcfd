"""Storage models shared by API and persistence backends."""

from datetime import datetime
import json
from typing import Any, Literal

from pydantic import BaseModel

RunStage = Literal["spec", "code", "draft"]
RunStatus = Literal["queued", "running", "completed", "failed", "awaiting_input"]
ArtifactKind = Literal["spec", "code", "draft"]
MessageRole = Literal["user", "assistant"]

TERMINAL_RUN_STATUSES = frozenset({"completed", "failed"})


class ProjectRecord(BaseModel):
    """Persisted project created from one user brief."""

    project_id: str
    title: str
    prompt: str
    created_at: datetime
    updated_at: datetime


class RunRecord(BaseModel):
    """Progress of one pipeline stage for a project."""

    run_id: str
    project_id: str
    stage: RunStage
    status: RunStatus
    step: str | None = None
    error: str | None = None
    created_at: datetime
    updated_at: datetime


class ArtifactRecord(BaseModel):
    """Append-only pipeline output."""

    artifact_id: str
    project_id: str
    kind: ArtifactKind
    path: str | None = None
    content: str
    created_at: datetime

    def draft_info(self) -> dict[str, Any]:
        """Decode a draft artifact payload; other kinds decode to an empty dict."""
        if self.kind != "draft":
            return {}
        try:
            payload = json.loads(self.content)
        except json.JSONDecodeError:
            return {}
        return payload if isinstance(payload, dict) else {}


class MessageRecord(BaseModel):
    """Chat log entry shown next to the pipeline."""

    message_id: str
    project_id: str
    role: MessageRole
    content: str
    created_at: datetime
