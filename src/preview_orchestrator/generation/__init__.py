"""Text generation: chat-completion clients, prompts and manifest parsing."""

from preview_orchestrator.generation.client import (
    GenerationClient,
    GenerationResolution,
    OpenAIChatClient,
    TemplateGenerationClient,
    resolve_generation_client,
)
from preview_orchestrator.generation.manifest import expand_aggregated_files, parse_manifest

__all__ = [
    "GenerationClient",
    "GenerationResolution",
    "OpenAIChatClient",
    "TemplateGenerationClient",
    "expand_aggregated_files",
    "parse_manifest",
    "resolve_generation_client",
]
