"""SQLite storage for the observability log."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..logging_config import get_logger
from ..models import TraceEvent

logger = get_logger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


class IStorage(Protocol):
    """Persistent trace-event log (SQLite)."""

    async def init(self) -> None:
        """Open the database and create tables."""
        ...

    async def close(self) -> None:
        ...

    async def save_trace_event(self, event: TraceEvent) -> None:
        ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Trace events matching every given filter, newest first."""
        ...

    async def count_trace_events(self) -> int:
        ...

    async def delete_trace_events_before(self, cutoff: datetime) -> int:
        """Drop events older than cutoff. Returns the number removed."""
        ...

    async def clear(self) -> None:
        ...


def _utc_iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat()


def _row_to_event(row: aiosqlite.Row) -> TraceEvent:
    return TraceEvent(
        id=row["id"],
        event_type=row["event_type"],
        actor=row["actor"],
        data=json.loads(row["data"]),
        timestamp=datetime.fromisoformat(row["timestamp"]).astimezone(timezone.utc),
    )


class Storage:
    """aiosqlite-backed IStorage. Timestamps are stored as UTC ISO strings."""

    def __init__(self, db_path: str | Path | None = None):
        self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    def _connection(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    async def init(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.executescript(SCHEMA_PATH.read_text(encoding="utf-8"))
        await self._conn.commit()
        logger.debug("Trace storage opened at %s", self._db_path)

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def save_trace_event(self, event: TraceEvent) -> None:
        conn = self._connection()
        await conn.execute(
            "INSERT INTO trace_events (id, event_type, actor, data, timestamp) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                event.id or str(uuid.uuid4()),
                event.event_type,
                event.actor,
                json.dumps(event.data, default=str),
                _utc_iso(event.timestamp),
            ),
        )
        await conn.commit()

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Trace events matching every given filter, newest first."""
        conn = self._connection()

        clauses: list[str] = []
        params: list = []
        if after:
            clauses.append("timestamp > ?")
            params.append(_utc_iso(after))
        if event_types:
            clauses.append(f"event_type IN ({','.join('?' * len(event_types))})")
            params.extend(event_types)
        if actor:
            clauses.append("actor = ?")
            params.append(actor)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with conn.execute(
            f"SELECT id, event_type, actor, data, timestamp FROM trace_events {where} "
            "ORDER BY timestamp DESC, rowid DESC LIMIT ?",
            (*params, limit),
        ) as cursor:
            rows = await cursor.fetchall()

        return [_row_to_event(row) for row in rows]

    async def count_trace_events(self) -> int:
        async with self._connection().execute("SELECT COUNT(*) FROM trace_events") as cursor:
            (count,) = await cursor.fetchone()
        return count

    async def delete_trace_events_before(self, cutoff: datetime) -> int:
        conn = self._connection()
        cursor = await conn.execute(
            "DELETE FROM trace_events WHERE timestamp < ?", (_utc_iso(cutoff),)
        )
        await conn.commit()
        if cursor.rowcount:
            logger.info("Pruned %d trace events older than %s", cursor.rowcount, cutoff)
        return cursor.rowcount

    async def clear(self) -> None:
        conn = self._connection()
        await conn.execute("DELETE FROM trace_events")
        await conn.commit()
