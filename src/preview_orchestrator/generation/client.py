"""Text-completion collaborators: OpenAI chat completions and a deterministic generator."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from preview_orchestrator.build.metadata import parse_spec_document
from preview_orchestrator.config.settings import Settings
from preview_orchestrator.errors import GenerationError
from preview_orchestrator.generation.prompts import CODE_SYSTEM_PROMPT, SPEC_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

Message = dict[str, Any]


class GenerationClient(Protocol):
    async def complete(self, messages: list[Message], *, temperature: float | None = None) -> str: ...


class OpenAIChatClient:
    """Chat completions over ``httpx`` with a fixed retry budget."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str,
        timeout_s: float,
        max_retries: int,
        backoff_s: float,
        temperature: float = 0.4,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is missing")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.backoff_s = backoff_s
        self.temperature = temperature
        self._transport = transport

    async def complete(self, messages: list[Message], *, temperature: float | None = None) -> str:
        request_body = {
            "model": self.model,
            "temperature": self.temperature if temperature is None else temperature,
            "messages": messages,
        }
        response_json = await self._request_with_retry(request_body)
        return _extract_content(response_json)

    async def _request_with_retry(self, request_body: dict[str, Any]) -> dict[str, Any]:
        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                return await self._request_once(request_body)
            except GenerationError as exc:
                last_error = exc
                logger.warning(
                    "generation event=request_failed attempt=%s max_retries=%s error=%s",
                    attempt + 1,
                    self.max_retries,
                    exc,
                )
                if attempt < self.max_retries and self.backoff_s > 0:
                    await asyncio.sleep(self.backoff_s)

        if last_error is None:
            raise GenerationError("LLM request failed")
        raise last_error

    async def _request_once(self, request_body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url.rstrip('/')}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
                response = await client.post(url, json=request_body, headers=headers)
        except httpx.HTTPError as exc:
            raise GenerationError(f"LLM request failed: {exc}") from exc

        if response.status_code >= 400:
            raise GenerationError(
                f"LLM request failed with status {response.status_code}: {response.text[:400]}"
            )
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise GenerationError("LLM returned non-JSON response") from exc


def _extract_content(response_json: dict[str, Any]) -> str:
    choices = response_json.get("choices", [])
    if not choices:
        raise GenerationError("LLM response missing choices")

    message = choices[0].get("message", {})
    content = message.get("content")
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = [item["text"] for item in content if isinstance(item, dict) and isinstance(item.get("text"), str)]
        return "".join(parts).strip()
    return ""


_BRIEF_IN_SPEC_REQUEST = re.compile(r'Customer request:\n"""\n([\s\S]*?)\n"""')
_BRIEF_IN_CODE_REQUEST = re.compile(r"experiences for: ([^\n]*)")
_SPEC_IN_CODE_REQUEST = re.compile(r"Specification:\n([\s\S]*?)\n\nAdd feature pages")


class TemplateGenerationClient:
    """Offline generator: a specification outline and a small page set derived from the brief."""

    async def complete(self, messages: list[Message], *, temperature: float | None = None) -> str:
        system = str(messages[0].get("content", "")) if messages else ""
        if system == SPEC_SYSTEM_PROMPT:
            return self._specification(_first_user_match(messages, _BRIEF_IN_SPEC_REQUEST))
        if system == CODE_SYSTEM_PROMPT:
            brief = _first_user_match(messages, _BRIEF_IN_CODE_REQUEST)
            spec = _first_user_match(messages, _SPEC_IN_CODE_REQUEST)
            return json.dumps({"files": self._files(brief, spec)})
        raise GenerationError("Deterministic generator received an unknown prompt")

    @staticmethod
    def _specification(brief: str) -> str:
        summary = " ".join(brief.split()) or "A Polkadot wallet experience"
        clauses = [
            clause.strip(" .")
            for clause in re.split(r"[.;\n]|,\s*(?:and\s+)?|\s+and\s+", brief)
            if len(clause.strip(" .")) > 3
        ]
        features = clauses[:4] or ["Browse the main dashboard"]
        feature_lines = "\n".join(f"- {feature[:1].upper()}{feature[1:]}" for feature in features)
        return (
            "# Specification\n\n"
            "## Overview\n"
            f"- {summary}\n"
            "- Built for wallet holders on Polkadot.\n\n"
            "## Authentication\n"
            "- Polkadot wallet connect (default)\n"
            "- Email/password and Google login are out of scope.\n\n"
            "## Core Features\n"
            f"{feature_lines}\n\n"
            "## Data & Storage\n"
            "- Client-side only - no custom backend or database\n\n"
            "## Operations & Integrations\n"
            "- Not applicable\n"
        )

    @staticmethod
    def _files(brief: str, spec_markdown: str) -> list[dict[str, str]]:
        insights = parse_spec_document(spec_markdown)
        titles = [feature.title for feature in insights.features] or ["Dashboard"]
        items = "\n".join(
            f'          <li className="rounded-xl border border-white/10 bg-white/5 p-4">{_jsx_text(title)}</li>'
            for title in titles
        )
        heading = _jsx_text(insights.overview or brief or "Dashboard")
        page = (
            "import { RequireConnection, RequireAccount } from '@/components/polkadot-ui'\n"
            "import FeatureList from '@/components/dashboard/FeatureList'\n\n"
            "export default function DashboardPage() {\n"
            "  return (\n"
            "    <RequireConnection>\n"
            "      <RequireAccount>\n"
            '        <main className="mx-auto max-w-4xl space-y-6 p-8">\n'
            f'          <h1 className="text-3xl font-semibold">{heading}</h1>\n'
            "          <FeatureList />\n"
            "        </main>\n"
            "      </RequireAccount>\n"
            "    </RequireConnection>\n"
            "  )\n"
            "}\n"
        )
        component = (
            "export default function FeatureList() {\n"
            "  return (\n"
            '    <ul className="grid gap-4 sm:grid-cols-2">\n'
            f"{items}\n"
            "    </ul>\n"
            "  )\n"
            "}\n"
        )
        return [
            {"path": "app/(app)/dashboard/page.tsx", "content": page},
            {"path": "components/dashboard/FeatureList.tsx", "content": component},
        ]


def _first_user_match(messages: list[Message], pattern: re.Pattern[str]) -> str:
    for message in messages:
        if message.get("role") != "user":
            continue
        match = pattern.search(str(message.get("content", "")))
        if match:
            return match.group(1).strip()
    return ""


def _jsx_text(value: str) -> str:
    return re.sub(r"[{}<>]", "", value).strip()


@dataclass(frozen=True)
class GenerationResolution:
    client: GenerationClient
    requested_mode: str
    effective_mode: str
    fallback_reason: str | None = None


def resolve_generation_client(settings: Settings) -> GenerationResolution:
    normalized_mode = settings.generator_mode.lower().strip()
    deterministic = TemplateGenerationClient()

    if normalized_mode != "llm":
        return GenerationResolution(
            client=deterministic,
            requested_mode=normalized_mode,
            effective_mode="deterministic",
        )

    if settings.llm_provider.lower().strip() != "openai":
        return GenerationResolution(
            client=deterministic,
            requested_mode=normalized_mode,
            effective_mode="deterministic",
            fallback_reason=f"unsupported generator provider: {settings.llm_provider}",
        )

    try:
        client = OpenAIChatClient(
            api_key=settings.resolved_openai_api_key(),
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout_s=settings.llm_timeout_s,
            max_retries=settings.llm_max_retries,
            backoff_s=settings.llm_backoff_s,
        )
    except Exception as exc:  # noqa: BLE001
        return GenerationResolution(
            client=deterministic,
            requested_mode=normalized_mode,
            effective_mode="deterministic",
            fallback_reason=str(exc),
        )

    return GenerationResolution(client=client, requested_mode=normalized_mode, effective_mode="llm")
