import asyncio
import json

from preview_orchestrator.api.events import Fingerprint, format_event, project_events


def _frames(chunks: list[str]) -> list[tuple[str, dict]]:
    frames = []
    for chunk in chunks:
        event_line, data_line = chunk.strip().split("\n")
        frames.append((event_line.removeprefix("event: "), json.loads(data_line.removeprefix("data: "))))
    return frames


def test_format_event_is_one_sse_frame() -> None:
    assert format_event("connected", {"ok": True}) == 'event: connected\ndata: {"ok":true}\n\n'


def test_fingerprint_tracks_run_status_artifacts_and_messages() -> None:
    base = {"runs": [{"run_id": "r1", "status": "running", "step": "generating"}], "artifacts": [], "messages": []}
    same = Fingerprint.of(base)
    assert not Fingerprint.of(base).differs_from(same)

    completed = {**base, "runs": [{"run_id": "r1", "status": "completed", "step": None}]}
    assert Fingerprint.of(completed).differs_from(same)
    with_artifact = {**base, "artifacts": [{"artifact_id": "a1"}]}
    assert Fingerprint.of(with_artifact).differs_from(same)
    with_message = {**base, "messages": [{"message_id": "m1"}]}
    assert Fingerprint.of(with_message).differs_from(same)


def test_stream_sends_snapshot_then_only_changes(storage) -> None:
    ticks: list[float] = []

    async def _run():
        project = await storage.create_project(title="Foo", prompt="foo")
        await storage.upsert_run(project.project_id, stage="spec", status="running", step="generating")

        async def sleep(delay: float) -> None:
            ticks.append(delay)
            if len(ticks) == 1:
                await storage.append_message(project.project_id, role="assistant", content="Drafting")
            if len(ticks) == 3:
                await storage.upsert_run(project.project_id, stage="spec", status="completed")

        async def is_disconnected() -> bool:
            return len(ticks) > 3

        return [
            chunk
            async for chunk in project_events(
                storage,
                project.project_id,
                poll_interval_s=0.25,
                is_disconnected=is_disconnected,
                sleep=sleep,
            )
        ]

    frames = _frames(asyncio.run(_run()))

    assert [name for name, _ in frames] == ["connected", "snapshot", "update", "update"]
    assert frames[1][1]["runs"][0]["status"] == "running"
    assert frames[2][1]["messages"][0]["content"] == "Drafting"
    assert frames[3][1]["runs"][0]["status"] == "completed"
    assert ticks == [0.25] * 4


def test_stream_reports_read_failures_and_stops() -> None:
    class BrokenStorage:
        async def list_runs(self, project_id):
            raise RuntimeError("database unavailable")

        async def list_artifacts(self, project_id):
            return []

        async def list_messages(self, project_id):
            return []

    async def _run():
        return [chunk async for chunk in project_events(BrokenStorage(), "p1")]

    frames = _frames(asyncio.run(_run()))
    assert frames == [("connected", {"ok": True}), ("error", {"message": "database unavailable"})]
