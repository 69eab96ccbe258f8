"""Document storage for repository records in Postgres."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Iterable, Sequence

import asyncpg

from .config import DatabaseSettings
from .errors import ConfigurationError
from .models import RepositoryRecord

SCHEMA_PATH = Path(__file__).resolve().parent / "sql" / "schema.sql"

UPSERT_SQL = """
    INSERT INTO repositories (
        id,
        full_name,
        default_branch,
        document,
        ingested_at
    ) VALUES (
        $1, $2, $3, $4::jsonb, $5
    )
    ON CONFLICT (id) DO UPDATE SET
        full_name = EXCLUDED.full_name,
        default_branch = EXCLUDED.default_branch,
        document = EXCLUDED.document,
        ingested_at = EXCLUDED.ingested_at
"""

UPDATE_README_SQL = """
    UPDATE repositories
    SET readme = $2, readme_read_at = $3
    WHERE id = $1
"""


class Database:
    """Async helper for writing repository documents into Postgres.

    Each repository is one JSONB document keyed by its 64-bit GitHub id.
    """

    def __init__(self, settings: DatabaseSettings) -> None:
        self._settings = settings
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        if self._pool is not None:
            return
        if not self._settings.dsn:
            raise ConfigurationError("A database DSN is required (set DATABASE_DSN)")
        self._pool = await asyncpg.create_pool(
            dsn=self._settings.dsn,
            init=self._init_connection,
            command_timeout=self._settings.statement_timeout,
        )

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        await self.close()

    async def create_schema(self) -> None:
        pool = self._ensure_pool()
        statements = _load_sql_statements(SCHEMA_PATH)
        async with pool.acquire() as conn:
            for statement in statements:
                await conn.execute(statement)

    async def upsert_repositories(self, records: Sequence[RepositoryRecord], ingested_at: datetime) -> int:
        """Insert or replace ``records`` by id; stored READMEs are kept."""

        if not records:
            return 0
        pool = self._ensure_pool()
        written = 0
        async with pool.acquire() as conn:
            async with conn.transaction():
                for chunk in _chunks(records, self._settings.batch_size):
                    await conn.executemany(UPSERT_SQL, [document_row(record, ingested_at) for record in chunk])
                    written += len(chunk)
        return written

    async def update_readme(self, repository_id: int, readme: str | None, read_at: datetime) -> None:
        pool = self._ensure_pool()
        async with pool.acquire() as conn:
            await conn.execute(UPDATE_README_SQL, int(repository_id), readme, read_at)

    async def stream_repositories(self, *, missing_readme: bool = False) -> AsyncIterator[RepositoryRecord]:
        pool = self._ensure_pool()
        query = """
            SELECT
                document,
                readme,
                readme_read_at
            FROM repositories
        """
        if missing_readme:
            query += " WHERE readme_read_at IS NULL"
        query += " ORDER BY id"
        async with pool.acquire() as conn:
            async with conn.transaction():
                async for row in conn.cursor(query):
                    document = row["document"]
                    if isinstance(document, str):
                        document = json.loads(document)
                    yield RepositoryRecord.from_document(
                        document,
                        readme=row["readme"],
                        readme_read_at=row["readme_read_at"],
                    )

    def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database pool has not been initialized")
        return self._pool

    async def _init_connection(self, conn: asyncpg.Connection) -> None:
        await conn.execute("SET TIME ZONE 'UTC'")
        await conn.execute(f"SET statement_timeout = {int(self._settings.statement_timeout * 1000)}")


def document_row(record: RepositoryRecord, ingested_at: datetime) -> tuple[int, str, str | None, str, datetime]:
    """Positional parameters for :data:`UPSERT_SQL`."""

    document = record.to_document()
    document["ingested_at"] = ingested_at.isoformat()
    return (
        int(record.id),
        record.full_name,
        record.default_branch,
        json.dumps(document),
        ingested_at,
    )


def _chunks(items: Sequence[RepositoryRecord], size: int) -> Iterable[Sequence[RepositoryRecord]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _load_sql_statements(path: Path) -> list[str]:
    script = path.read_text(encoding="utf-8")
    statements: list[str] = []
    for part in script.split(";"):
        statement = part.strip()
        if statement:
            statements.append(statement)
    return statements


__all__ = ["Database", "document_row"]
