"""Server-Sent Events feed of a project's runs, artifacts and messages."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable

from preview_orchestrator.storage.base import PipelineStorage

logger = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"}


def format_event(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data, separators=(',', ':'), default=str)}\n\n"


async def load_payload(storage: PipelineStorage, project_id: str) -> dict[str, list[dict[str, Any]]]:
    runs, artifacts, messages = await asyncio.gather(
        storage.list_runs(project_id),
        storage.list_artifacts(project_id),
        storage.list_messages(project_id),
    )
    return {
        "runs": [item.model_dump(mode="json") for item in runs],
        "artifacts": [item.model_dump(mode="json") for item in artifacts],
        "messages": [item.model_dump(mode="json") for item in messages],
    }


@dataclass(frozen=True)
class Fingerprint:
    runs: dict[str, tuple[Any, Any]]
    artifact_ids: frozenset[str]
    message_count: int

    @classmethod
    def of(cls, payload: dict[str, list[dict[str, Any]]]) -> "Fingerprint":
        return cls(
            runs={run["run_id"]: (run.get("status"), run.get("step")) for run in payload["runs"]},
            artifact_ids=frozenset(item["artifact_id"] for item in payload["artifacts"]),
            message_count=len(payload["messages"]),
        )

    def differs_from(self, other: "Fingerprint") -> bool:
        return (
            self.runs != other.runs
            or self.artifact_ids != other.artifact_ids
            or self.message_count != other.message_count
        )


async def project_events(
    storage: PipelineStorage,
    project_id: str,
    *,
    poll_interval_s: float = 1.0,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> AsyncIterator[str]:
    """``connected``, ``snapshot``, then an ``update`` frame whenever the project state changes.

    Ends when the client goes away or after an ``error`` frame for a failed read.
    """
    yield format_event("connected", {"ok": True})
    try:
        payload = await load_payload(storage, project_id)
    except Exception as exc:  # noqa: BLE001
        logger.warning("events event=snapshot_failed project_id=%s error=%s", project_id, exc)
        yield format_event("error", {"message": str(exc)})
        return
    yield format_event("snapshot", payload)
    last = Fingerprint.of(payload)

    while True:
        await sleep(poll_interval_s)
        if is_disconnected is not None and await is_disconnected():
            logger.debug("events event=disconnected project_id=%s", project_id)
            return
        try:
            payload = await load_payload(storage, project_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("events event=poll_failed project_id=%s error=%s", project_id, exc)
            yield format_event("error", {"message": str(exc)})
            return
        current = Fingerprint.of(payload)
        if current.differs_from(last):
            last = current
            yield format_event("update", payload)
