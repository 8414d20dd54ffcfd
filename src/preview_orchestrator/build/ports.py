"""Deterministic port assignment for draft workspaces."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

_INT32_MASK = 0xFFFFFFFF


def java_hash(value: str) -> int:
    """32-bit signed string hash (`h = h * 31 + code`), stable across processes.

    Python's builtin ``hash`` is salted per process, so it cannot be used for
    an assignment that must survive restarts.
    """
    acc = 0
    for char in value:
        acc = ((acc << 5) - acc + ord(char)) & _INT32_MASK
    if acc & 0x80000000:
        acc -= 1 << 32
    return acc


def port_for_project(project_id: str, *, base_port: int = 3001, span: int = 100) -> int:
    """Map a project id to ``base_port + |hash| mod span``."""
    if span <= 0:
        raise ValueError("span must be positive")
    return base_port + abs(java_hash(project_id)) % span


class PortRegistry:
    """Process-wide memo of assigned ports.

    Not authoritative: every entry can be recomputed from the project id. Two
    projects may share a port; the most recent build on it wins.
    """

    def __init__(self, *, base_port: int = 3001, span: int = 100) -> None:
        self.base_port = base_port
        self.span = span
        self._assigned: dict[str, int] = {}

    def port_for(self, project_id: str) -> int:
        port = self._assigned.get(project_id)
        if port is None:
            port = port_for_project(project_id, base_port=self.base_port, span=self.span)
            self._assigned[project_id] = port
            logger.info(
                "draft event=port_assigned project_id=%s port=%s offset=%s",
                project_id,
                port,
                port - self.base_port,
            )
        return port

    def projects_on(self, port: int) -> list[str]:
        return [project_id for project_id, value in self._assigned.items() if value == port]

    def forget(self, project_id: str) -> None:
        self._assigned.pop(project_id, None)
