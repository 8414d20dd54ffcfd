import asyncio
import os

from preview_orchestrator.build.sweeper import EvictionSweeper, directory_size
from preview_orchestrator.errors import EvictionError

NOW = 1_700_000_000.0
HOUR = 3600.0


def _workspace(root, name: str, age_s: float, payload: bytes = b"x" * 10):
    path = root / name
    path.mkdir(parents=True)
    (path / "page.tsx").write_bytes(payload)
    os.utime(path, (NOW - age_s, NOW - age_s))
    return path


def _sweeper(root, **kwargs) -> EvictionSweeper:
    return EvictionSweeper(root, clock=lambda: NOW, **kwargs)


def test_directory_size_counts_files(tmp_path) -> None:
    (tmp_path / "a").write_bytes(b"1234")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b").write_bytes(b"12")
    assert directory_size(tmp_path) == 6


def test_old_workspaces_are_removed(tmp_path) -> None:
    _workspace(tmp_path, "stale", 13 * HOUR)
    _workspace(tmp_path, "fresh", 1 * HOUR)

    report = asyncio.run(_sweeper(tmp_path).sweep())

    assert report.removed == ["stale"]
    assert report.kept == ["fresh"]
    assert report.freed_bytes == 10
    assert not (tmp_path / "stale").exists()


def test_only_the_most_recent_workspaces_survive_past_grace(tmp_path) -> None:
    for index in range(7):
        _workspace(tmp_path, f"p{index}", (index + 1) * HOUR)

    report = asyncio.run(_sweeper(tmp_path, max_count=5).sweep())

    assert report.kept == ["p0", "p1", "p2", "p3", "p4"]
    assert sorted(report.removed) == ["p5", "p6"]


def test_count_limit_spares_workspaces_inside_grace(tmp_path) -> None:
    for index in range(4):
        _workspace(tmp_path, f"p{index}", index * 60.0)

    report = asyncio.run(_sweeper(tmp_path, max_count=2).sweep())

    assert report.removed == []
    assert len(report.kept) == 4


def test_excluded_reserved_and_hidden_entries_are_skipped(tmp_path) -> None:
    _workspace(tmp_path, "building", 20 * HOUR)
    _workspace(tmp_path, ".template-cache", 20 * HOUR)
    _workspace(tmp_path, ".hidden", 20 * HOUR)
    (tmp_path / "stray-file").write_text("x", encoding="utf-8")

    report = asyncio.run(_sweeper(tmp_path).sweep(exclude={"building"}))

    assert report.scanned == 0
    assert (tmp_path / "building").exists()
    assert (tmp_path / ".template-cache").exists()


def test_missing_drafts_dir_is_an_empty_sweep(tmp_path) -> None:
    report = asyncio.run(_sweeper(tmp_path / "nope").sweep())
    assert report.to_dict() == {"scanned": 0, "removed": [], "kept": [], "failed": [], "freed_bytes": 0}


def test_eviction_hook_runs_and_removal_failures_are_counted(tmp_path, monkeypatch) -> None:
    _workspace(tmp_path, "stuck", 13 * HOUR)
    _workspace(tmp_path, "gone", 13 * HOUR)
    evicted: list[str] = []

    async def on_evicted(project_id: str) -> None:
        evicted.append(project_id)
        if project_id == "gone":
            raise RuntimeError("hook failure is not fatal")

    def fake_remove(path) -> None:
        if path.name == "stuck":
            raise EvictionError("permission denied")

    monkeypatch.setattr("preview_orchestrator.build.sweeper._remove_tree", fake_remove)
    report = asyncio.run(_sweeper(tmp_path, on_evicted=on_evicted).sweep())

    assert sorted(evicted) == ["gone", "stuck"]
    assert report.failed == ["stuck"]
    assert report.removed == ["gone"]
