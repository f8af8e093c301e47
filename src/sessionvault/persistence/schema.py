"""Database schema definitions using SQLAlchemy Core.

Tables:
    sessions: one row per stored session (metadata, plus payload when unchunked)
    session_chunks: ordered payload slices of chunked sessions

``session_id`` is nullable on purpose: rows written by clients that lost
their identifier must stay representable so that cleanup can find them.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    text,
)

metadata = MetaData()

sessions_table = Table(
    "sessions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("session_id", String(255), nullable=True),
    Column("payload", LargeBinary, nullable=False),
    # hex SHA-256 of the full archive
    Column("checksum", String(64), nullable=False),
    Column("size", BigInteger, nullable=False),
    Column("is_chunked", Boolean, nullable=False, default=False),
    Column("chunk_count", Integer, nullable=False, default=1),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    UniqueConstraint("session_id", name="uq_sessions_session_id"),
)

chunks_table = Table(
    "session_chunks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("session_id", String(255), nullable=True),
    Column("chunk_index", Integer, nullable=False),
    Column("payload", LargeBinary, nullable=False),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    UniqueConstraint("session_id", "chunk_index", name="uq_session_chunks_session_id_index"),
    Index("ix_session_chunks_session_id", "session_id"),
)
