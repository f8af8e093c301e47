"""Document store holding session and chunk records.

``DocumentStore`` is the narrow interface the session store depends on:
find_one, find_many, upsert, delete_many, plus count and the payload-free
find_summaries and find_chunk_indices. Upserts replace the record with the
same key in a single transaction, so a record is either the old one or the
new one, never a mix.

``SqlDocumentStore`` implements it with SQLAlchemy Core. Any SQLAlchemy
async URL works; SQLite via aiosqlite is the default.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Protocol, overload

from sqlalchemy import ColumnElement, Table, delete, false, func, or_, select, true
from sqlalchemy.exc import DisconnectionError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
import stamina

from sessionvault.core.errors import TransportError
from sessionvault.observability.logging import get_logger
from sessionvault.persistence.models import ChunkRecord, Collection, SessionRecord, SessionSummary
from sessionvault.persistence.schema import chunks_table, metadata, sessions_table

log = get_logger(__name__)

RETRY_ATTEMPTS = 3
RETRY_WAIT_INITIAL = 0.2
RETRY_WAIT_MAX = 2.0

_TRANSIENT_ERRORS = (OperationalError, DisconnectionError)


@dataclass(frozen=True, slots=True)
class RecordFilter:
    """Selects records by session identifier.

    Attributes:
        session_ids: Identifiers to match; may contain None to match rows with
            no identifier. None (the default) matches every record.
    """

    session_ids: tuple[str | None, ...] | None = None

    @classmethod
    def all(cls) -> RecordFilter:
        return cls(session_ids=None)

    @classmethod
    def for_session(cls, session_id: str) -> RecordFilter:
        return cls(session_ids=(session_id,))

    @classmethod
    def any_of(cls, *session_ids: str | None) -> RecordFilter:
        return cls(session_ids=tuple(session_ids))


class DocumentStore(Protocol):
    """Operations the session store needs from its backing store.

    All methods raise TransportError on failure.
    """

    async def initialize(self) -> None: ...

    async def close(self) -> None: ...

    async def find_one(self, session_id: str) -> SessionRecord | None: ...

    @overload
    async def find_many(
        self, collection: Literal[Collection.SESSIONS], record_filter: RecordFilter
    ) -> list[SessionRecord]: ...

    @overload
    async def find_many(
        self, collection: Literal[Collection.CHUNKS], record_filter: RecordFilter
    ) -> list[ChunkRecord]: ...

    async def find_many(
        self, collection: Collection, record_filter: RecordFilter
    ) -> list[SessionRecord] | list[ChunkRecord]: ...

    async def find_summaries(self, record_filter: RecordFilter) -> list[SessionSummary]: ...

    async def find_chunk_indices(self, session_id: str) -> list[int]: ...

    async def upsert(self, record: SessionRecord | ChunkRecord) -> None: ...

    async def delete_many(self, collection: Collection, record_filter: RecordFilter) -> int: ...

    async def count(self, collection: Collection, record_filter: RecordFilter) -> int: ...


def _table_for(collection: Collection) -> Table:
    return sessions_table if collection is Collection.SESSIONS else chunks_table


def _filter_clause(table: Table, record_filter: RecordFilter) -> ColumnElement[bool]:
    if record_filter.session_ids is None:
        return true()
    named = [sid for sid in record_filter.session_ids if sid is not None]
    clauses: list[ColumnElement[bool]] = []
    if named:
        clauses.append(table.c.session_id.in_(named))
    if None in record_filter.session_ids:
        clauses.append(table.c.session_id.is_(None))
    if not clauses:
        return false()
    return or_(*clauses)


class SqlDocumentStore:
    """SQLAlchemy Core implementation of DocumentStore.

    Usage:
        store = SqlDocumentStore("sqlite+aiosqlite:///sessions.db")
        await store.initialize()
        await store.upsert(record)
        record = await store.find_one("default")
        await store.close()
    """

    def __init__(self, database_url: str | None = None) -> None:
        """Initialize with a SQLAlchemy async URL.

        Args:
            database_url: e.g. "sqlite+aiosqlite:///path/to/sessions.db".
                Defaults to ~/.sessionvault/data/sessions.db.
        """
        if database_url is None:
            db_path = Path.home() / ".sessionvault" / "data" / "sessions.db"
            db_path.parent.mkdir(parents=True, exist_ok=True)
            database_url = f"sqlite+aiosqlite:///{db_path}"
        self._database_url = database_url
        self._engine: AsyncEngine | None = None

    async def initialize(self) -> None:
        """Connect and create tables if needed. Idempotent."""
        try:
            if self._engine is None:
                self._engine = create_async_engine(self._database_url, echo=False)
            async with self._engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            raise TransportError.from_exception(e, operation="initialize") from e

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    def _require_engine(self, operation: str) -> AsyncEngine:
        if self._engine is None:
            raise TransportError(
                "Document store not initialized. Call initialize() first.",
                operation=operation,
            )
        return self._engine

    @stamina.retry(
        on=_TRANSIENT_ERRORS,
        attempts=RETRY_ATTEMPTS,
        wait_initial=RETRY_WAIT_INITIAL,
        wait_max=RETRY_WAIT_MAX,
        wait_jitter=0.5,
    )
    async def _fetch(self, engine: AsyncEngine, query: Any) -> list[dict[str, Any]]:
        async with engine.connect() as conn:
            result = await conn.execute(query)
            return [dict(row) for row in result.mappings().all()]

    @stamina.retry(
        on=_TRANSIENT_ERRORS,
        attempts=RETRY_ATTEMPTS,
        wait_initial=RETRY_WAIT_INITIAL,
        wait_max=RETRY_WAIT_MAX,
        wait_jitter=0.5,
    )
    async def _write(self, engine: AsyncEngine, *statements: Any) -> int:
        affected = 0
        async with engine.begin() as conn:
            for statement in statements:
                affected += await self._execute(conn, statement)
        return affected

    @staticmethod
    async def _execute(conn: AsyncConnection, statement: Any) -> int:
        result = await conn.execute(statement)
        return max(result.rowcount or 0, 0)

    async def find_one(self, session_id: str) -> SessionRecord | None:
        engine = self._require_engine("find_one")
        try:
            rows = await self._fetch(
                engine,
                select(sessions_table).where(sessions_table.c.session_id == session_id).limit(1),
            )
        except SQLAlchemyError as e:
            raise TransportError.from_exception(
                e, operation="find_one", collection=Collection.SESSIONS
            ) from e
        return SessionRecord.from_db_row(rows[0]) if rows else None

    @overload
    async def find_many(
        self, collection: Literal[Collection.SESSIONS], record_filter: RecordFilter
    ) -> list[SessionRecord]: ...

    @overload
    async def find_many(
        self, collection: Literal[Collection.CHUNKS], record_filter: RecordFilter
    ) -> list[ChunkRecord]: ...

    async def find_many(
        self, collection: Collection, record_filter: RecordFilter
    ) -> list[SessionRecord] | list[ChunkRecord]:
        """Return matching records; chunks come back ordered by chunk_index."""
        engine = self._require_engine("find_many")
        table = _table_for(collection)
        query = select(table).where(_filter_clause(table, record_filter))
        if collection is Collection.CHUNKS:
            query = query.order_by(table.c.session_id, table.c.chunk_index)
        else:
            query = query.order_by(table.c.created_at.desc(), table.c.id)
        try:
            rows = await self._fetch(engine, query)
        except SQLAlchemyError as e:
            raise TransportError.from_exception(
                e, operation="find_many", collection=collection
            ) from e
        if collection is Collection.CHUNKS:
            return [ChunkRecord.from_db_row(row) for row in rows]
        return [SessionRecord.from_db_row(row) for row in rows]

    async def find_summaries(self, record_filter: RecordFilter) -> list[SessionSummary]:
        """Like find_many over sessions, without loading payloads."""
        engine = self._require_engine("find_summaries")
        t = sessions_table
        query = (
            select(t.c.session_id, t.c.size, t.c.is_chunked, t.c.chunk_count, t.c.created_at)
            .where(_filter_clause(t, record_filter))
            .order_by(t.c.created_at.desc(), t.c.id)
        )
        try:
            rows = await self._fetch(engine, query)
        except SQLAlchemyError as e:
            raise TransportError.from_exception(
                e, operation="find_summaries", collection=Collection.SESSIONS
            ) from e
        return [SessionSummary.from_db_row(row) for row in rows]

    async def find_chunk_indices(self, session_id: str) -> list[int]:
        """Stored chunk_index values for ``session_id``, ascending, without payloads."""
        engine = self._require_engine("find_chunk_indices")
        query = (
            select(chunks_table.c.chunk_index)
            .where(chunks_table.c.session_id == session_id)
            .order_by(chunks_table.c.chunk_index)
        )
        try:
            rows = await self._fetch(engine, query)
        except SQLAlchemyError as e:
            raise TransportError.from_exception(
                e, operation="find_chunk_indices", collection=Collection.CHUNKS
            ) from e
        return [row["chunk_index"] for row in rows]

    async def upsert(self, record: SessionRecord | ChunkRecord) -> None:
        """Insert ``record``, atomically replacing any record with the same key."""
        engine = self._require_engine("upsert")
        statements: list[Any] = []
        if isinstance(record, SessionRecord):
            collection = Collection.SESSIONS
            if record.session_id is not None:
                statements.append(
                    delete(sessions_table).where(
                        sessions_table.c.session_id == record.session_id
                    )
                )
            statements.append(sessions_table.insert().values(**record.to_db_dict()))
        else:
            collection = Collection.CHUNKS
            if record.session_id is not None:
                statements.append(
                    delete(chunks_table)
                    .where(chunks_table.c.session_id == record.session_id)
                    .where(chunks_table.c.chunk_index == record.chunk_index)
                )
            statements.append(chunks_table.insert().values(**record.to_db_dict()))
        try:
            await self._write(engine, *statements)
        except SQLAlchemyError as e:
            raise TransportError.from_exception(
                e, operation="upsert", collection=collection
            ) from e

    async def delete_many(self, collection: Collection, record_filter: RecordFilter) -> int:
        """Delete matching records and return how many were removed."""
        engine = self._require_engine("delete_many")
        table = _table_for(collection)
        try:
            deleted = await self._write(
                engine, delete(table).where(_filter_clause(table, record_filter))
            )
        except SQLAlchemyError as e:
            raise TransportError.from_exception(
                e, operation="delete_many", collection=collection
            ) from e
        log.debug("store.records.deleted", collection=str(collection), count=deleted)
        return deleted

    async def count(self, collection: Collection, record_filter: RecordFilter) -> int:
        engine = self._require_engine("count")
        table = _table_for(collection)
        query = select(func.count()).select_from(table).where(_filter_clause(table, record_filter))
        try:
            async with engine.connect() as conn:
                return int((await conn.execute(query)).scalar_one())
        except SQLAlchemyError as e:
            raise TransportError.from_exception(e, operation="count", collection=collection) from e

