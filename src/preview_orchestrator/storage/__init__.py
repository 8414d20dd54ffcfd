"""Persistence backends for projects, runs, artifacts and messages."""

from preview_orchestrator.storage.base import PipelineStorage
from preview_orchestrator.storage.memory import InMemoryPipelineStorage
from preview_orchestrator.storage.models import (
    ArtifactRecord,
    MessageRecord,
    ProjectRecord,
    RunRecord,
)
from preview_orchestrator.storage.postgres import PostgresPipelineStorage

__all__ = [
    "ArtifactRecord",
    "InMemoryPipelineStorage",
    "MessageRecord",
    "PipelineStorage",
    "PostgresPipelineStorage",
    "ProjectRecord",
    "RunRecord",
]
