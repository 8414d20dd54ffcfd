"""Age- and count-based reclamation of draft workspace directories."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable

from preview_orchestrator.errors import EvictionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkspaceEntry:
    project_id: str
    path: Path
    mtime: float
    size_bytes: int

    def age_s(self, now: float) -> float:
        return now - self.mtime


@dataclass
class SweepReport:
    scanned: int = 0
    removed: list[str] = field(default_factory=list)
    kept: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    freed_bytes: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "scanned": self.scanned,
            "removed": list(self.removed),
            "kept": list(self.kept),
            "failed": list(self.failed),
            "freed_bytes": self.freed_bytes,
        }


def directory_size(path: Path) -> int:
    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            try:
                total += os.lstat(os.path.join(root, name)).st_size
            except OSError:
                continue
    return total


def _remove_tree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        raise EvictionError(f"Could not remove {path}: {exc}") from exc


class EvictionSweeper:
    """Deletes workspaces older than ``max_age_s``, then all but the ``max_count``
    most recently modified ones that are also past ``grace_s``.

    Every deletion is best effort: failures are logged and counted.
    """

    def __init__(
        self,
        drafts_dir: Path,
        *,
        max_age_s: float = 12 * 3600,
        max_count: int = 5,
        grace_s: float = 30 * 60,
        reserved: Iterable[str] = (".template-cache",),
        on_evicted: Callable[[str], Awaitable[None]] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.drafts_dir = Path(drafts_dir)
        self.max_age_s = max_age_s
        self.max_count = max_count
        self.grace_s = grace_s
        self.reserved = frozenset(reserved)
        self._on_evicted = on_evicted
        self._clock = clock

    async def scan(self, *, exclude: Iterable[str] = ()) -> list[WorkspaceEntry]:
        """Workspace directories, newest first."""
        if not self.drafts_dir.is_dir():
            return []
        skipped = self.reserved | set(exclude)
        entries: list[WorkspaceEntry] = []
        for child in self.drafts_dir.iterdir():
            if child.name in skipped or child.name.startswith(".") or not child.is_dir():
                continue
            try:
                mtime = child.stat().st_mtime
                size = await asyncio.to_thread(directory_size, child)
            except OSError as exc:
                logger.warning("sweep event=stat_failed path=%s error=%s", child, exc)
                continue
            entries.append(WorkspaceEntry(project_id=child.name, path=child, mtime=mtime, size_bytes=size))
        entries.sort(key=lambda entry: entry.mtime, reverse=True)
        return entries

    async def sweep(self, *, exclude: Iterable[str] = ()) -> SweepReport:
        now = self._clock()
        entries = await self.scan(exclude=exclude)
        report = SweepReport(scanned=len(entries))

        survivors: list[WorkspaceEntry] = []
        for entry in entries:
            if entry.age_s(now) > self.max_age_s:
                await self._evict(entry, report, reason="max_age", now=now)
            else:
                survivors.append(entry)

        for index, entry in enumerate(survivors):
            if index >= self.max_count and entry.age_s(now) > self.grace_s:
                await self._evict(entry, report, reason="max_count", now=now)
            else:
                report.kept.append(entry.project_id)

        logger.info(
            "sweep event=done scanned=%s removed=%s failed=%s freed_mb=%.1f",
            report.scanned,
            len(report.removed),
            len(report.failed),
            report.freed_bytes / (1024 * 1024),
        )
        return report

    async def _evict(self, entry: WorkspaceEntry, report: SweepReport, *, reason: str, now: float) -> None:
        logger.info(
            "sweep event=evict project_id=%s reason=%s age_h=%.1f size_mb=%.1f",
            entry.project_id,
            reason,
            entry.age_s(now) / 3600,
            entry.size_bytes / (1024 * 1024),
        )
        if self._on_evicted is not None:
            try:
                await self._on_evicted(entry.project_id)
            except Exception as exc:  # noqa: BLE001
                logger.warning("sweep event=evict_hook_failed project_id=%s error=%s", entry.project_id, exc)
        try:
            await asyncio.to_thread(_remove_tree, entry.path)
        except EvictionError as exc:
            report.failed.append(entry.project_id)
            logger.warning("sweep event=remove_failed project_id=%s error=%s", entry.project_id, exc)
            return
        report.removed.append(entry.project_id)
        report.freed_bytes += entry.size_bytes
