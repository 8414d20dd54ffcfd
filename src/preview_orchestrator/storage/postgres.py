"""PostgreSQL-backed storage with automatic table migration."""

from __future__ import annotations

import asyncio
import uuid
from datetime import UTC, datetime
from typing import Any

from preview_orchestrator.storage.models import (
    ArtifactKind,
    ArtifactRecord,
    MessageRecord,
    MessageRole,
    ProjectRecord,
    RunRecord,
    RunStage,
    RunStatus,
)


class PostgresPipelineStorage:
    """Persist projects, runs, artifacts and messages in PostgreSQL."""

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("PREVIEW_ORCHESTRATOR_DATABASE_URL is required")
        self.database_url = database_url
        self._lock = asyncio.Lock()
        self._psycopg, self._dict_row = self._load_psycopg()

    async def migrate(self) -> None:
        async with self._lock:
            async with await self._connect() as conn:
                await conn.execute("""
                    CREATE TABLE IF NOT EXISTS projects (
                        project_id UUID PRIMARY KEY,
                        title TEXT NOT NULL,
                        prompt TEXT NOT NULL,
                        created_at TIMESTAMPTZ NOT NULL,
                        updated_at TIMESTAMPTZ NOT NULL
                    )
                    """)
                await conn.execute("""
                    CREATE TABLE IF NOT EXISTS runs (
                        run_id UUID PRIMARY KEY,
                        project_id UUID NOT NULL REFERENCES projects(project_id) ON DELETE CASCADE,
                        stage TEXT NOT NULL,
                        status TEXT NOT NULL,
                        step TEXT,
                        error TEXT,
                        created_at TIMESTAMPTZ NOT NULL,
                        updated_at TIMESTAMPTZ NOT NULL,
                        UNIQUE (project_id, stage)
                    )
                    """)
                await conn.execute("""
                    CREATE TABLE IF NOT EXISTS artifacts (
                        seq BIGSERIAL PRIMARY KEY,
                        artifact_id UUID NOT NULL UNIQUE,
                        project_id UUID NOT NULL REFERENCES projects(project_id) ON DELETE CASCADE,
                        kind TEXT NOT NULL,
                        path TEXT,
                        content TEXT NOT NULL,
                        created_at TIMESTAMPTZ NOT NULL
                    )
                    """)
                await conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_artifacts_project_kind
                    ON artifacts(project_id, kind, seq DESC)
                    """)
                await conn.execute("""
                    CREATE TABLE IF NOT EXISTS messages (
                        seq BIGSERIAL PRIMARY KEY,
                        message_id UUID NOT NULL UNIQUE,
                        project_id UUID NOT NULL REFERENCES projects(project_id) ON DELETE CASCADE,
                        role TEXT NOT NULL,
                        content TEXT NOT NULL,
                        created_at TIMESTAMPTZ NOT NULL
                    )
                    """)
                await conn.commit()

    async def create_project(self, *, title: str, prompt: str) -> ProjectRecord:
        now = datetime.now(tz=UTC)
        project_id = str(uuid.uuid4())
        await self._execute(
            """
            INSERT INTO projects (project_id, title, prompt, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s)
            """,
            (project_id, title, prompt, now, now),
        )
        return ProjectRecord(
            project_id=project_id,
            title=title,
            prompt=prompt,
            created_at=now,
            updated_at=now,
        )

    async def get_project(self, project_id: str) -> ProjectRecord | None:
        row = await self._fetch_one(
            "SELECT * FROM projects WHERE project_id::text = %s",
            (project_id,),
        )
        if row is None:
            return None
        return self._row_to_project(row)

    async def update_project_title(self, project_id: str, *, title: str) -> ProjectRecord:
        await self._execute(
            "UPDATE projects SET title = %s, updated_at = %s WHERE project_id::text = %s",
            (title, datetime.now(tz=UTC), project_id),
        )
        refreshed = await self.get_project(project_id)
        if refreshed is None:
            raise KeyError(f"Project {project_id} does not exist")
        return refreshed

    async def upsert_run(
        self,
        project_id: str,
        *,
        stage: RunStage,
        status: RunStatus,
        step: str | None = None,
        error: str | None = None,
    ) -> RunRecord:
        now = datetime.now(tz=UTC)
        row = await self._fetch_one(
            """
            INSERT INTO runs (run_id, project_id, stage, status, step, error, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (project_id, stage) DO UPDATE
            SET status = EXCLUDED.status,
                step = EXCLUDED.step,
                error = EXCLUDED.error,
                updated_at = EXCLUDED.updated_at
            RETURNING *
            """,
            (str(uuid.uuid4()), project_id, stage, status, step, error, now, now),
            commit=True,
        )
        if row is None:
            raise RuntimeError("Failed to persist run")
        return self._row_to_run(row)

    async def get_run(self, project_id: str, *, stage: RunStage) -> RunRecord | None:
        row = await self._fetch_one(
            "SELECT * FROM runs WHERE project_id::text = %s AND stage = %s",
            (project_id, stage),
        )
        if row is None:
            return None
        return self._row_to_run(row)

    async def list_runs(self, project_id: str) -> list[RunRecord]:
        rows = await self._fetch_all(
            "SELECT * FROM runs WHERE project_id::text = %s ORDER BY created_at ASC",
            (project_id,),
        )
        return [self._row_to_run(row) for row in rows]

    async def append_artifact(
        self,
        project_id: str,
        *,
        kind: ArtifactKind,
        content: str,
        path: str | None = None,
    ) -> ArtifactRecord:
        record = ArtifactRecord(
            artifact_id=str(uuid.uuid4()),
            project_id=project_id,
            kind=kind,
            path=path,
            content=content,
            created_at=datetime.now(tz=UTC),
        )
        await self._execute(
            """
            INSERT INTO artifacts (artifact_id, project_id, kind, path, content, created_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            (
                record.artifact_id,
                project_id,
                kind,
                path,
                content,
                record.created_at,
            ),
        )
        return record

    async def list_artifacts(
        self,
        project_id: str,
        *,
        kind: ArtifactKind | None = None,
    ) -> list[ArtifactRecord]:
        if kind is None:
            rows = await self._fetch_all(
                "SELECT * FROM artifacts WHERE project_id::text = %s ORDER BY seq ASC",
                (project_id,),
            )
        else:
            rows = await self._fetch_all(
                """
                SELECT * FROM artifacts
                WHERE project_id::text = %s AND kind = %s
                ORDER BY seq ASC
                """,
                (project_id, kind),
            )
        return [self._row_to_artifact(row) for row in rows]

    async def get_latest_artifact(
        self,
        project_id: str,
        *,
        kind: ArtifactKind,
    ) -> ArtifactRecord | None:
        row = await self._fetch_one(
            """
            SELECT * FROM artifacts
            WHERE project_id::text = %s AND kind = %s
            ORDER BY seq DESC
            LIMIT 1
            """,
            (project_id, kind),
        )
        if row is None:
            return None
        return self._row_to_artifact(row)

    async def append_message(
        self,
        project_id: str,
        *,
        role: MessageRole,
        content: str,
    ) -> MessageRecord:
        record = MessageRecord(
            message_id=str(uuid.uuid4()),
            project_id=project_id,
            role=role,
            content=content,
            created_at=datetime.now(tz=UTC),
        )
        await self._execute(
            """
            INSERT INTO messages (message_id, project_id, role, content, created_at)
            VALUES (%s, %s, %s, %s, %s)
            """,
            (record.message_id, project_id, role, content, record.created_at),
        )
        return record

    async def list_messages(self, project_id: str) -> list[MessageRecord]:
        rows = await self._fetch_all(
            "SELECT * FROM messages WHERE project_id::text = %s ORDER BY seq ASC",
            (project_id,),
        )
        return [self._row_to_message(row) for row in rows]

    async def _connect(self) -> Any:
        return await self._psycopg.AsyncConnection.connect(
            self.database_url,
            row_factory=self._dict_row,
        )

    async def _execute(self, query: str, params: tuple[Any, ...]) -> None:
        async with self._lock:
            async with await self._connect() as conn:
                await conn.execute(query, params)
                await conn.commit()

    async def _fetch_one(
        self,
        query: str,
        params: tuple[Any, ...],
        *,
        commit: bool = False,
    ) -> dict[str, Any] | None:
        async with self._lock:
            async with await self._connect() as conn:
                cursor = await conn.execute(query, params)
                row = await cursor.fetchone()
                if commit:
                    await conn.commit()
        return row

    async def _fetch_all(self, query: str, params: tuple[Any, ...]) -> list[dict[str, Any]]:
        async with self._lock:
            async with await self._connect() as conn:
                cursor = await conn.execute(query, params)
                rows = await cursor.fetchall()
        return list(rows)

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any]:
        try:
            import psycopg
            from psycopg.rows import dict_row
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row

    @staticmethod
    def _parse_datetime(raw: Any) -> datetime:
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, str):
            return datetime.fromisoformat(raw)
        raise TypeError(f"Unsupported datetime value: {type(raw)!r}")

    @classmethod
    def _row_to_project(cls, row: dict[str, Any]) -> ProjectRecord:
        return ProjectRecord(
            project_id=str(row["project_id"]),
            title=row["title"],
            prompt=row["prompt"],
            created_at=cls._parse_datetime(row["created_at"]),
            updated_at=cls._parse_datetime(row["updated_at"]),
        )

    @classmethod
    def _row_to_run(cls, row: dict[str, Any]) -> RunRecord:
        return RunRecord(
            run_id=str(row["run_id"]),
            project_id=str(row["project_id"]),
            stage=row["stage"],
            status=row["status"],
            step=row.get("step"),
            error=row.get("error"),
            created_at=cls._parse_datetime(row["created_at"]),
            updated_at=cls._parse_datetime(row["updated_at"]),
        )

    @classmethod
    def _row_to_artifact(cls, row: dict[str, Any]) -> ArtifactRecord:
        return ArtifactRecord(
            artifact_id=str(row["artifact_id"]),
            project_id=str(row["project_id"]),
            kind=row["kind"],
            path=row.get("path"),
            content=row["content"],
            created_at=cls._parse_datetime(row["created_at"]),
        )

    @classmethod
    def _row_to_message(cls, row: dict[str, Any]) -> MessageRecord:
        return MessageRecord(
            message_id=str(row["message_id"]),
            project_id=str(row["project_id"]),
            role=row["role"],
            content=row["content"],
            created_at=cls._parse_datetime(row["created_at"]),
        )
