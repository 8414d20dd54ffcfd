"""Content-addressed dependency install cache shared by all workspaces."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import shlex
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Sequence

from preview_orchestrator.errors import InstallError

logger = logging.getLogger(__name__)

HASH_MARKER = ".package-hash"
CACHE_ONLY_DIRS = frozenset({".cache"})

InstallRunner = Callable[[Sequence[str], Path, float], Awaitable[None]]


@dataclass(frozen=True)
class CacheSlot:
    key: str
    path: Path
    rebuilt: bool

    @property
    def node_modules(self) -> Path:
        return self.path / "node_modules"


def cache_key(manifest: str) -> str:
    return hashlib.sha256(manifest.encode("utf-8")).hexdigest()[:16]


async def run_install(command: Sequence[str], cwd: Path, timeout_s: float) -> None:
    """Run the package manager install in ``cwd`` with a hard timeout."""
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise InstallError(f"`{' '.join(command)}` could not be started: {exc}") from exc
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        process.kill()
        await process.communicate()
        raise InstallError(f"`{' '.join(command)}` timed out after {timeout_s:.0f}s") from exc
    if (process.returncode or 0) != 0:
        output = (stderr or stdout or b"").decode("utf-8", errors="replace").strip()
        if len(output) > 1400:
            output = output[:1400] + "... [truncated]"
        raise InstallError(
            f"`{' '.join(command)}` failed with exit code {process.returncode}: {output}"
        )


def _ignore_cache_only_dirs(_directory: str, names: list[str]) -> set[str]:
    return {name for name in names if name in CACHE_ONLY_DIRS}


class DependencyCache:
    """One slot per manifest hash under ``cache_dir``.

    A slot counts as populated only once its hash marker is written, which
    happens after a successful install. Work for the same hash is serialized
    by a per-key lock; different hashes never wait on each other.
    """

    def __init__(
        self,
        cache_dir: Path,
        *,
        install_command: str | Sequence[str] = "npm install --prefer-offline --no-audit --no-fund",
        install_timeout_s: float = 600.0,
        runner: InstallRunner | None = None,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        if isinstance(install_command, str):
            self.install_command = shlex.split(install_command)
        else:
            self.install_command = list(install_command)
        self.install_timeout_s = install_timeout_s
        self._runner = runner or run_install
        self._locks: dict[str, asyncio.Lock] = {}

    def slot_path(self, key: str) -> Path:
        return self.cache_dir / key

    def is_populated(self, key: str) -> bool:
        slot = self.slot_path(key)
        marker = slot / HASH_MARKER
        if not marker.is_file() or not (slot / "node_modules").is_dir():
            return False
        try:
            return marker.read_text(encoding="utf-8").strip() == key
        except OSError:
            return False

    def lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def prepare(self, manifest: str, workspace_dir: Path, *, project_id: str = "") -> CacheSlot:
        """Ensure the slot for ``manifest`` and copy its install tree into the workspace."""
        key = cache_key(manifest)
        started_at = time.perf_counter()
        async with self.lock_for(key):
            slot = await self._ensure_locked(key, manifest)
            await self._populate_locked(slot, Path(workspace_dir), project_id=project_id)
        logger.info(
            "cache event=ready project_id=%s key=%s rebuilt=%s duration_s=%.1f",
            project_id,
            key,
            slot.rebuilt,
            time.perf_counter() - started_at,
        )
        return slot

    async def ensure(self, manifest: str) -> CacheSlot:
        key = cache_key(manifest)
        async with self.lock_for(key):
            return await self._ensure_locked(key, manifest)

    async def _ensure_locked(self, key: str, manifest: str) -> CacheSlot:
        slot_dir = self.slot_path(key)
        if self.is_populated(key):
            logger.info("cache event=hit key=%s", key)
            return CacheSlot(key=key, path=slot_dir, rebuilt=False)

        logger.info("cache event=miss key=%s", key)
        if slot_dir.exists():
            await asyncio.to_thread(shutil.rmtree, slot_dir, ignore_errors=True)
        slot_dir.mkdir(parents=True, exist_ok=True)
        (slot_dir / "package.json").write_text(manifest, encoding="utf-8")

        started_at = time.perf_counter()
        try:
            await self._runner(self.install_command, slot_dir, self.install_timeout_s)
        except InstallError:
            await asyncio.to_thread(shutil.rmtree, slot_dir, ignore_errors=True)
            logger.warning("cache event=install_failed key=%s slot_discarded=true", key)
            raise
        except Exception as exc:  # noqa: BLE001
            await asyncio.to_thread(shutil.rmtree, slot_dir, ignore_errors=True)
            logger.warning("cache event=install_failed key=%s slot_discarded=true", key)
            raise InstallError(f"Dependency install failed: {exc}") from exc

        (slot_dir / "node_modules").mkdir(exist_ok=True)
        (slot_dir / HASH_MARKER).write_text(key, encoding="utf-8")
        logger.info(
            "cache event=installed key=%s duration_s=%.1f",
            key,
            time.perf_counter() - started_at,
        )
        return CacheSlot(key=key, path=slot_dir, rebuilt=True)

    async def _populate_locked(self, slot: CacheSlot, workspace_dir: Path, *, project_id: str) -> None:
        source = slot.node_modules
        if not source.is_dir():
            raise InstallError(f"Cache slot {slot.key} has no node_modules")
        target = workspace_dir / "node_modules"
        started_at = time.perf_counter()
        await asyncio.to_thread(
            shutil.copytree,
            source,
            target,
            symlinks=True,
            ignore=_ignore_cache_only_dirs,
            dirs_exist_ok=True,
        )
        logger.info(
            "cache event=copied project_id=%s key=%s duration_s=%.1f",
            project_id,
            slot.key,
            time.perf_counter() - started_at,
        )
