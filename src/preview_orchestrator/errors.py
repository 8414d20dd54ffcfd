"""Exception taxonomy shared by the pipeline, the build path and the API."""

from __future__ import annotations


class OrchestratorError(RuntimeError):
    """Base class for every failure raised by the orchestrator."""


class GenerationError(OrchestratorError):
    """The generation collaborator failed or returned an unusable payload."""


class ValidationFailure(OrchestratorError):
    """Generated files still carry fatal static defects."""

    def __init__(self, message: str, *, error_count: int = 0) -> None:
        super().__init__(message)
        self.error_count = error_count


class InstallError(OrchestratorError):
    """Dependency installation failed; the cache slot is discarded."""


class ProcessSpawnError(OrchestratorError):
    """The preview process could not be launched."""


class ProxyUnavailable(OrchestratorError):
    """The preview process did not answer within the retry budget."""


class EvictionError(OrchestratorError):
    """A workspace could not be removed. Logged, never propagated."""


class BuildDispatchError(OrchestratorError):
    """The build stage could not be started for a project."""


class BuildInProgressError(OrchestratorError):
    """A build for the project is already in flight."""
