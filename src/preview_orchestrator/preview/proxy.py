"""Serve a project's preview HTML from its dev server, with a fallback ladder."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable

import httpx

from preview_orchestrator.build.ports import PortRegistry
from preview_orchestrator.errors import ProxyUnavailable
from preview_orchestrator.preview.pages import render_placeholder_page, render_summary_page
from preview_orchestrator.storage.base import PipelineStorage

logger = logging.getLogger(__name__)

BUILD_OUTPUT_PAGE = Path(".next") / "server" / "app" / "page.html"
NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@dataclass(frozen=True)
class PreviewResult:
    html: str
    source: str


def backoff_delay(attempt: int, *, base_s: float, cap_s: float) -> float:
    """Delay before retry ``attempt`` (1-based): ``base * 2^(attempt-1)`` capped at ``cap``."""
    return min(base_s * (2 ** (attempt - 1)), cap_s)


class PreviewProxy:
    def __init__(
        self,
        *,
        storage: PipelineStorage,
        ports: PortRegistry,
        drafts_dir: Path,
        host: str = "127.0.0.1",
        max_attempts: int = 5,
        timeout_s: float = 10.0,
        backoff_base_s: float = 1.0,
        backoff_cap_s: float = 8.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.storage = storage
        self.ports = ports
        self.drafts_dir = Path(drafts_dir)
        self.host = host
        self.max_attempts = max_attempts
        self.timeout_s = timeout_s
        self.backoff_base_s = backoff_base_s
        self.backoff_cap_s = backoff_cap_s
        self._transport = transport
        self._sleep = sleep

    async def render(self, project_id: str) -> PreviewResult:
        """Never raises: live HTML, then build output, then a file summary, then a placeholder."""
        try:
            port = await self._port_for(project_id)
            if port is not None:
                html = await self.fetch_live(port)
                return PreviewResult(html=html, source="live")
        except ProxyUnavailable as exc:
            logger.info("preview event=live_unavailable project_id=%s error=%s", project_id, exc)
        except Exception as exc:  # noqa: BLE001
            logger.warning("preview event=lookup_failed project_id=%s error=%s", project_id, exc)

        built = self.drafts_dir / project_id / BUILD_OUTPUT_PAGE
        try:
            if built.is_file():
                return PreviewResult(html=built.read_text(encoding="utf-8"), source="build_output")
        except OSError as exc:
            logger.warning("preview event=build_output_unreadable project_id=%s error=%s", project_id, exc)

        try:
            artifacts = await self.storage.list_artifacts(project_id, kind="code")
        except Exception as exc:  # noqa: BLE001
            logger.warning("preview event=artifacts_failed project_id=%s error=%s", project_id, exc)
            artifacts = []
        paths = [item.path for item in artifacts if item.path]
        if paths:
            return PreviewResult(html=render_summary_page(project_id, paths), source="summary")
        return PreviewResult(html=render_placeholder_page(project_id), source="placeholder")

    async def fetch_live(self, port: int) -> str:
        url = f"http://{self.host}:{port}/"
        last_error: str = "no attempt made"
        attempts = 0
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            for attempt in range(self.max_attempts):
                attempts = attempt + 1
                if attempt > 0:
                    await self._sleep(
                        backoff_delay(attempt, base_s=self.backoff_base_s, cap_s=self.backoff_cap_s)
                    )
                try:
                    # httpx timeouts are per phase; the whole attempt is bounded here.
                    response = await asyncio.wait_for(
                        client.get(url, headers={"Accept": "text/html"}),
                        timeout=self.timeout_s,
                    )
                except asyncio.TimeoutError:
                    last_error = f"timed out after {self.timeout_s}s"
                    logger.debug("preview event=attempt_timeout url=%s attempt=%s", url, attempts)
                    continue
                except httpx.HTTPError as exc:
                    last_error = f"{exc.__class__.__name__}: {exc}"
                    logger.debug("preview event=connect_failed url=%s attempt=%s error=%s", url, attempt + 1, exc)
                    continue

                if response.is_success:
                    logger.info("preview event=proxied url=%s attempt=%s bytes=%s", url, attempt + 1, len(response.text))
                    return response.text
                last_error = f"status {response.status_code}: {response.text[:200]}"
                if response.status_code < 500:
                    break
                logger.debug("preview event=server_error url=%s attempt=%s status=%s", url, attempt + 1, response.status_code)

        raise ProxyUnavailable(f"{url} did not answer after {attempts} attempt(s) ({last_error})")

    async def _port_for(self, project_id: str) -> int | None:
        latest = await self.storage.get_latest_artifact(project_id, kind="draft")
        if latest is None:
            return None
        port = latest.draft_info().get("port")
        if isinstance(port, int):
            return port
        return self.ports.port_for(project_id)
