"""Launch and watch one preview dev server per workspace port."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import signal
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Sequence

from preview_orchestrator.errors import ProcessSpawnError

logger = logging.getLogger(__name__)

STDOUT_SIGNALS = ("ready", "started", "compiled", "error")
STDERR_SIGNALS = ("error", "failed")
STOP_TIMEOUT_S = 8.0
FAILURE_TAIL_CHARS = 2000

ProcessLauncher = Callable[[Sequence[str], Path, dict[str, str]], Awaitable[Any]]
GroupSignaller = Callable[[int, int], None]


class OutputBuffer:
    """Ring buffer of decoded output lines bounded by total byte size."""

    def __init__(self, limit_bytes: int = 65536) -> None:
        self.limit_bytes = limit_bytes
        self._lines: deque[str] = deque()
        self._size = 0

    def append(self, line: str) -> None:
        size = len(line.encode("utf-8"))
        self._lines.append(line)
        self._size += size
        while self._size > self.limit_bytes and len(self._lines) > 1:
            dropped = self._lines.popleft()
            self._size -= len(dropped.encode("utf-8"))

    @property
    def size(self) -> int:
        return self._size

    def text(self) -> str:
        return "\n".join(self._lines)

    def tail(self, chars: int = FAILURE_TAIL_CHARS) -> str:
        return self.text()[-chars:]


@dataclass
class SupervisedProcess:
    project_id: str
    port: int
    workspace_dir: Path
    process: Any
    output: OutputBuffer
    started_at: float = field(default_factory=time.time)
    exit_code: int | None = None
    failed: bool = False
    stopping: bool = False

    @property
    def pid(self) -> int | None:
        return getattr(self.process, "pid", None)

    @property
    def running(self) -> bool:
        return self.exit_code is None and getattr(self.process, "returncode", None) is None


async def spawn_process(command: Sequence[str], cwd: Path, env: dict[str, str]) -> Any:
    return await asyncio.create_subprocess_exec(
        *command,
        cwd=str(cwd),
        env=env,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )


async def kill_stale_port_processes(port: int) -> None:
    """Best effort: kill dev servers left on ``port`` by an earlier process of this service."""
    for pattern in (f"next dev.*{port}", f"next start.*{port}"):
        try:
            process = await asyncio.create_subprocess_exec(
                "pkill",
                "-f",
                pattern,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            await asyncio.wait_for(process.wait(), timeout=5)
        except (OSError, asyncio.TimeoutError) as exc:
            logger.debug("supervisor event=pkill_skipped port=%s error=%s", port, exc)
            return
        if process.returncode == 0:
            logger.info("supervisor event=stale_killed port=%s pattern=%r", port, pattern)
            return


class ProcessSupervisor:
    """Owns the dev server processes; never restarts one that exits."""

    def __init__(
        self,
        *,
        dev_command: str | Sequence[str] = "npm run dev",
        output_limit_bytes: int = 65536,
        launcher: ProcessLauncher | None = None,
        kill_stale: Callable[[int], Awaitable[None]] | None = kill_stale_port_processes,
        signal_group: GroupSignaller | None = None,
        stop_timeout_s: float = STOP_TIMEOUT_S,
    ) -> None:
        if isinstance(dev_command, str):
            self.dev_command = shlex.split(dev_command)
        else:
            self.dev_command = list(dev_command)
        self.output_limit_bytes = output_limit_bytes
        self._launcher = launcher or spawn_process
        self._kill_stale = kill_stale
        # spawn_process starts a new session, so the pid is also the process group id.
        self._signal_group = signal_group if signal_group is not None else (os.killpg if launcher is None else None)
        self.stop_timeout_s = stop_timeout_s
        self._by_port: dict[int, SupervisedProcess] = {}
        self._by_project: dict[str, SupervisedProcess] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def get(self, project_id: str) -> SupervisedProcess | None:
        return self._by_project.get(project_id)

    async def start(self, project_id: str, workspace_dir: Path, port: int) -> SupervisedProcess:
        previous = self._by_port.get(port)
        if previous is not None and previous.running:
            logger.info(
                "supervisor event=replace port=%s previous_project_id=%s project_id=%s",
                port,
                previous.project_id,
                project_id,
            )
            await self._terminate(previous)
        if self._kill_stale is not None:
            await self._kill_stale(port)

        env = dict(os.environ)
        env.update({"PORT": str(port), "NODE_ENV": "development"})
        try:
            process = await self._launcher(self.dev_command, Path(workspace_dir), env)
        except (OSError, ValueError) as exc:
            logger.error("supervisor event=spawn_failed project_id=%s port=%s error=%s", project_id, port, exc)
            raise ProcessSpawnError(f"Could not start `{' '.join(self.dev_command)}`: {exc}") from exc

        supervised = SupervisedProcess(
            project_id=project_id,
            port=port,
            workspace_dir=Path(workspace_dir),
            process=process,
            output=OutputBuffer(self.output_limit_bytes),
        )
        self._by_port[port] = supervised
        self._by_project[project_id] = supervised
        logger.info(
            "supervisor event=started project_id=%s port=%s pid=%s command=%r",
            project_id,
            port,
            supervised.pid,
            " ".join(self.dev_command),
        )

        for stream, name, signals in (
            (getattr(process, "stdout", None), "stdout", STDOUT_SIGNALS),
            (getattr(process, "stderr", None), "stderr", STDERR_SIGNALS),
        ):
            if stream is not None:
                self._track(self._drain(supervised, stream, name, signals))
        self._track(self._watch(supervised))
        return supervised

    async def stop(self, project_id: str) -> None:
        supervised = self._by_project.pop(project_id, None)
        if supervised is None:
            return
        if self._by_port.get(supervised.port) is supervised:
            self._by_port.pop(supervised.port)
        await self._terminate(supervised)

    async def stop_all(self) -> None:
        for supervised in list(self._by_project.values()):
            await self.stop(supervised.project_id)
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _track(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _drain(
        self,
        supervised: SupervisedProcess,
        stream: Any,
        name: str,
        signals: tuple[str, ...],
    ) -> None:
        while True:
            raw = await stream.readline()
            if not raw:
                return
            line = raw.decode("utf-8", errors="replace").rstrip()
            if not line:
                continue
            supervised.output.append(line)
            lowered = line.lower()
            if any(marker in lowered for marker in signals):
                logger.info(
                    "supervisor event=output project_id=%s port=%s stream=%s line=%r",
                    supervised.project_id,
                    supervised.port,
                    name,
                    line[:300],
                )

    async def _watch(self, supervised: SupervisedProcess) -> None:
        code = await supervised.process.wait()
        supervised.exit_code = code
        if code == 0 or supervised.stopping:
            logger.info(
                "supervisor event=exited project_id=%s port=%s code=%s",
                supervised.project_id,
                supervised.port,
                code,
            )
            return
        supervised.failed = True
        logger.error(
            "supervisor event=crashed project_id=%s port=%s code=%s output_tail=%r",
            supervised.project_id,
            supervised.port,
            code,
            supervised.output.tail(),
        )

    async def _terminate(self, supervised: SupervisedProcess) -> None:
        process = supervised.process
        if getattr(process, "returncode", None) is not None:
            return
        supervised.stopping = True
        try:
            self._send(supervised, signal.SIGTERM)
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=self.stop_timeout_s)
        except asyncio.TimeoutError:
            try:
                self._send(supervised, signal.SIGKILL)
            except ProcessLookupError:
                return
            await process.wait()
        logger.info("supervisor event=stopped project_id=%s port=%s", supervised.project_id, supervised.port)

    def _send(self, supervised: SupervisedProcess, sig: int) -> None:
        """Signal the dev server's whole process group so `next dev` children go down with npm."""
        pid = supervised.pid
        if self._signal_group is not None and pid:
            self._signal_group(pid, sig)
        elif sig == signal.SIGKILL:
            supervised.process.kill()
        else:
            supervised.process.terminate()
