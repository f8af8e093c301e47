"""Record types persisted in the document store.

A session is stored either as one ``SessionRecord`` carrying the whole
archive, or as a ``SessionRecord`` with an empty payload plus
``chunk_count`` ``ChunkRecord`` rows holding consecutive slices of it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class Collection(StrEnum):
    """The two record collections."""

    SESSIONS = "sessions"
    CHUNKS = "session_chunks"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class SessionRecord:
    """Metadata (and, when not chunked, the payload) of one stored session.

    Attributes:
        session_id: Unique key. None only for corrupt rows read back from storage.
        payload: Full archive bytes; empty when ``is_chunked``.
        checksum: Digest of the full, pre-chunking archive.
        size: Length of the full archive in bytes.
        is_chunked: Whether the payload lives in ChunkRecords.
        chunk_count: Number of ChunkRecords when chunked, else 1.
        created_at: Time of the save that wrote this record.
    """

    session_id: str | None
    payload: bytes
    checksum: str
    size: int
    is_chunked: bool = False
    chunk_count: int = 1
    created_at: datetime = field(default_factory=_utcnow)

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "payload": self.payload,
            "checksum": self.checksum,
            "size": self.size,
            "is_chunked": self.is_chunked,
            "chunk_count": self.chunk_count,
            "created_at": self.created_at,
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> SessionRecord:
        return cls(
            session_id=row["session_id"],
            payload=bytes(row["payload"] or b""),
            checksum=row["checksum"] or "",
            size=row["size"] or 0,
            is_chunked=bool(row["is_chunked"]),
            chunk_count=row["chunk_count"] or 0,
            created_at=_as_utc(row["created_at"]),
        )


@dataclass(frozen=True, slots=True)
class ChunkRecord:
    """One slice of a chunked session archive.

    Attributes:
        session_id: Owning session.
        chunk_index: Zero-based position in the reassembly order.
        payload: At most ``max_chunk_size`` bytes.
        created_at: Time the chunk was written.
    """

    session_id: str | None
    chunk_index: int
    payload: bytes
    created_at: datetime = field(default_factory=_utcnow)

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "chunk_index": self.chunk_index,
            "payload": self.payload,
            "created_at": self.created_at,
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> ChunkRecord:
        return cls(
            session_id=row["session_id"],
            chunk_index=row["chunk_index"],
            payload=bytes(row["payload"] or b""),
            created_at=_as_utc(row["created_at"]),
        )


@dataclass(frozen=True, slots=True)
class SessionSummary:
    """Payload-free view of a SessionRecord for listings and status reports."""

    session_id: str | None
    size: int
    is_chunked: bool
    chunk_count: int
    created_at: datetime

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> SessionSummary:
        return cls(
            session_id=row["session_id"],
            size=row["size"] or 0,
            is_chunked=bool(row["is_chunked"]),
            chunk_count=row["chunk_count"] or 0,
            created_at=_as_utc(row["created_at"]),
        )


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
