from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Sequence

import pytest

from preview_orchestrator.build.cache import DependencyCache
from preview_orchestrator.build.ports import PortRegistry
from preview_orchestrator.build.supervisor import ProcessSupervisor
from preview_orchestrator.build.sweeper import EvictionSweeper
from preview_orchestrator.build.workspace import WorkspaceBuilder
from preview_orchestrator.errors import InstallError
from preview_orchestrator.generation.prompts import CODE_SYSTEM_PROMPT, SPEC_SYSTEM_PROMPT
from preview_orchestrator.pipeline.orchestrator import PipelineOrchestrator
from preview_orchestrator.storage.memory import InMemoryPipelineStorage


class FakeProcess:
    """Stands in for ``asyncio.subprocess.Process``; must be built inside a running loop."""

    def __init__(self, stdout_lines: Sequence[str] = (), *, pid: int = 4242) -> None:
        self.pid = pid
        self.returncode: int | None = None
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        for line in stdout_lines:
            self.stdout.feed_data(f"{line}\n".encode("utf-8"))
        self.terminated = False
        self._exited = asyncio.Event()

    def finish(self, code: int) -> None:
        if self.returncode is not None:
            return
        self.returncode = code
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        assert self.returncode is not None
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        self.finish(-15)

    def kill(self) -> None:
        self.finish(-9)


class FakeLauncher:
    def __init__(self, stdout_lines: Sequence[str] = ("ready - started server",)) -> None:
        self.stdout_lines = stdout_lines
        self.calls: list[dict[str, Any]] = []
        self.processes: list[FakeProcess] = []

    async def __call__(self, command: Sequence[str], cwd: Path, env: dict[str, str]) -> FakeProcess:
        self.calls.append({"command": list(command), "cwd": Path(cwd), "env": dict(env)})
        process = FakeProcess(self.stdout_lines, pid=4242 + len(self.processes))
        self.processes.append(process)
        return process


class CountingInstaller:
    def __init__(self, *, fail: bool = False, delay_s: float = 0.0) -> None:
        self.fail = fail
        self.delay_s = delay_s
        self.calls: list[Path] = []

    async def __call__(self, command: Sequence[str], cwd: Path, timeout_s: float) -> None:
        self.calls.append(Path(cwd))
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.fail:
            raise InstallError("npm ERR! 404 Not Found - @polkadot/nope")
        modules = Path(cwd) / "node_modules" / "react"
        modules.mkdir(parents=True, exist_ok=True)
        (modules / "package.json").write_text('{"name": "react"}', encoding="utf-8")


DEFAULT_SPEC = """# Foo Marketplace

## Overview
- A marketplace for trading collectibles with a Polkadot wallet.

## Core Features
- Listings: browse items for sale
- Checkout: buy with DOT
"""

DEFAULT_FILES = [
    {
        "path": "app/(app)/market/page.tsx",
        "content": (
            "export default function MarketPage() {\n"
            "  return <main>Market</main>\n"
            "}\n"
        ),
    },
]


class ScriptedClient:
    """Answers by prompt kind; ``code_answers`` are consumed in order, the last one repeats."""

    def __init__(
        self,
        *,
        spec: str = DEFAULT_SPEC,
        code_answers: Sequence[str] | None = None,
        fail_spec: bool = False,
    ) -> None:
        self.spec = spec
        self.code_answers = list(code_answers or [json.dumps({"files": DEFAULT_FILES})])
        self.fail_spec = fail_spec
        self.calls: list[list[dict[str, Any]]] = []
        self.temperatures: list[float | None] = []

    async def complete(self, messages: list[dict[str, Any]], *, temperature: float | None = None) -> str:
        self.calls.append(messages)
        self.temperatures.append(temperature)
        system = messages[0]["content"]
        if system == SPEC_SYSTEM_PROMPT:
            if self.fail_spec:
                raise RuntimeError("completion service unavailable")
            return self.spec
        assert system == CODE_SYSTEM_PROMPT
        code_calls = sum(1 for call in self.calls if call[0]["content"] == CODE_SYSTEM_PROMPT)
        return self.code_answers[min(code_calls, len(self.code_answers)) - 1]


def make_orchestrator(
    tmp_path: Path,
    *,
    client: Any | None = None,
    storage: InMemoryPipelineStorage | None = None,
    installer: CountingInstaller | None = None,
    launcher: FakeLauncher | None = None,
) -> PipelineOrchestrator:
    drafts_dir = tmp_path / "drafts"
    ports = PortRegistry()
    supervisor = ProcessSupervisor(launcher=launcher or FakeLauncher(), kill_stale=None)
    builder = WorkspaceBuilder(
        drafts_dir=drafts_dir,
        ports=ports,
        cache=DependencyCache(drafts_dir / ".template-cache", runner=installer or CountingInstaller()),
        supervisor=supervisor,
        sweeper=EvictionSweeper(drafts_dir),
    )
    return PipelineOrchestrator(
        storage=storage or InMemoryPipelineStorage(),
        client=client or ScriptedClient(),
        builder=builder,
    )


@pytest.fixture
def storage() -> InMemoryPipelineStorage:
    return InMemoryPipelineStorage()
