import asyncio
import signal

import pytest

from conftest import FakeLauncher
from preview_orchestrator.build.supervisor import OutputBuffer, ProcessSupervisor
from preview_orchestrator.errors import ProcessSpawnError


def test_output_buffer_drops_oldest_lines_past_limit() -> None:
    buffer = OutputBuffer(limit_bytes=10)
    for line in ("aaaa", "bbbb", "cccc"):
        buffer.append(line)
    assert buffer.text() == "bbbb\ncccc"
    assert buffer.size == 8
    assert buffer.tail(3) == "ccc"


def test_start_sets_port_env_and_captures_output(tmp_path) -> None:
    launcher = FakeLauncher(stdout_lines=("ready - started server on 0.0.0.0:3042", "compiled /"))
    supervisor = ProcessSupervisor(launcher=launcher, kill_stale=None)

    async def _run():
        supervised = await supervisor.start("p1", tmp_path, 3042)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        return supervised

    supervised = asyncio.run(_run())

    call = launcher.calls[0]
    assert call["command"] == ["npm", "run", "dev"]
    assert call["cwd"] == tmp_path
    assert call["env"]["PORT"] == "3042"
    assert call["env"]["NODE_ENV"] == "development"
    assert "ready - started server on 0.0.0.0:3042" in supervised.output.text()
    assert supervisor.get("p1") is supervised


def test_crash_marks_process_failed_without_restart(tmp_path) -> None:
    launcher = FakeLauncher()
    supervisor = ProcessSupervisor(launcher=launcher, kill_stale=None)

    async def _run():
        supervised = await supervisor.start("p1", tmp_path, 3042)
        launcher.processes[0].finish(1)
        for _ in range(3):
            await asyncio.sleep(0)
        return supervised

    supervised = asyncio.run(_run())

    assert supervised.failed
    assert supervised.exit_code == 1
    assert len(launcher.calls) == 1


def test_stop_is_not_a_crash(tmp_path) -> None:
    launcher = FakeLauncher()
    supervisor = ProcessSupervisor(launcher=launcher, kill_stale=None)

    async def _run():
        supervised = await supervisor.start("p1", tmp_path, 3042)
        await supervisor.stop("p1")
        await asyncio.sleep(0)
        return supervised

    supervised = asyncio.run(_run())

    assert launcher.processes[0].terminated
    assert not supervised.failed
    assert supervisor.get("p1") is None


def test_start_on_busy_port_replaces_previous_process(tmp_path) -> None:
    launcher = FakeLauncher()
    stale_ports: list[int] = []

    async def kill_stale(port: int) -> None:
        stale_ports.append(port)

    supervisor = ProcessSupervisor(launcher=launcher, kill_stale=kill_stale)

    async def _run():
        await supervisor.start("Aa", tmp_path / "Aa", 3042)
        await supervisor.start("BB", tmp_path / "BB", 3042)
        await supervisor.stop_all()

    asyncio.run(_run())

    assert launcher.processes[0].terminated
    assert stale_ports == [3042, 3042]
    assert [call["cwd"].name for call in launcher.calls] == ["Aa", "BB"]


def test_spawn_failure_raises_process_spawn_error(tmp_path) -> None:
    async def broken_launcher(command, cwd, env):
        raise OSError("npm: not found")

    supervisor = ProcessSupervisor(launcher=broken_launcher, kill_stale=None)
    with pytest.raises(ProcessSpawnError, match="npm: not found"):
        asyncio.run(supervisor.start("p1", tmp_path, 3042))


def test_stop_signals_the_process_group_and_escalates(tmp_path) -> None:
    launcher = FakeLauncher()
    sent: list[tuple[int, int]] = []

    def signal_group(pid: int, sig: int) -> None:
        sent.append((pid, sig))
        if sig == signal.SIGKILL:
            launcher.processes[0].finish(-sig)

    supervisor = ProcessSupervisor(
        launcher=launcher,
        kill_stale=None,
        signal_group=signal_group,
        stop_timeout_s=0.01,
    )

    async def _run():
        supervised = await supervisor.start("p1", tmp_path, 3042)
        await supervisor.stop("p1")
        await asyncio.sleep(0)
        return supervised

    supervised = asyncio.run(_run())

    assert sent == [(4242, signal.SIGTERM), (4242, signal.SIGKILL)]
    assert not launcher.processes[0].terminated
    assert supervised.exit_code == -signal.SIGKILL
    assert not supervised.failed
