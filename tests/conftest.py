"""Shared fixtures: in-memory document store, fake connection client, session trees."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
import stamina

from sessionvault.core.errors import TransportError
from sessionvault.observability.logging import LoggingConfig, configure_logging, is_configured
from sessionvault.orchestrator.client import ClientEvent, EventHandler
from sessionvault.persistence.document_store import RecordFilter
from sessionvault.persistence.models import ChunkRecord, Collection, SessionRecord, SessionSummary


@pytest.fixture(autouse=True)
def _stamina_testing() -> Iterator[None]:
    """Disable retry backoff so failing stores fail fast."""
    stamina.set_testing(True)
    yield
    stamina.set_testing(False)


@pytest.fixture(autouse=True)
def _console_logging() -> None:
    """Make sure log events go to stderr, never to ~/.sessionvault/logs."""
    if not is_configured():
        configure_logging(LoggingConfig(enable_file_logging=False))


def _matches(session_id: str | None, record_filter: RecordFilter) -> bool:
    return record_filter.session_ids is None or session_id in record_filter.session_ids


class InMemoryDocumentStore:
    """DocumentStore kept in lists, with switchable failures.

    Attributes:
        fail_on: Operation names that raise TransportError.
        fail_upsert_after: Raise on upserts once this many have succeeded.
        calls: Operation names in call order.
    """

    def __init__(self) -> None:
        self.sessions: list[SessionRecord] = []
        self.chunks: list[ChunkRecord] = []
        self.fail_on: set[str] = set()
        self.fail_upsert_after: int | None = None
        self.calls: list[str] = []
        self._upserts = 0

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise TransportError("simulated outage", operation=operation)

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def find_one(self, session_id: str) -> SessionRecord | None:
        self._check("find_one")
        return next((r for r in self.sessions if r.session_id == session_id), None)

    async def find_many(self, collection: Collection, record_filter: RecordFilter) -> list[Any]:
        self._check("find_many")
        if collection is Collection.CHUNKS:
            found = [c for c in self.chunks if _matches(c.session_id, record_filter)]
            return sorted(found, key=lambda c: c.chunk_index)
        return [s for s in self.sessions if _matches(s.session_id, record_filter)]

    async def find_summaries(self, record_filter: RecordFilter) -> list[SessionSummary]:
        self._check("find_summaries")
        return [
            SessionSummary(
                session_id=s.session_id,
                size=s.size,
                is_chunked=s.is_chunked,
                chunk_count=s.chunk_count,
                created_at=s.created_at,
            )
            for s in self.sessions
            if _matches(s.session_id, record_filter)
        ]

    async def find_chunk_indices(self, session_id: str) -> list[int]:
        self._check("find_chunk_indices")
        return sorted(c.chunk_index for c in self.chunks if c.session_id == session_id)

    async def upsert(self, record: SessionRecord | ChunkRecord) -> None:
        self._check("upsert")
        if self.fail_upsert_after is not None and self._upserts >= self.fail_upsert_after:
            raise TransportError("simulated write rejection", operation="upsert")
        self._upserts += 1
        if isinstance(record, SessionRecord):
            self.sessions = [
                s
                for s in self.sessions
                if record.session_id is None or s.session_id != record.session_id
            ]
            self.sessions.append(record)
        else:
            self.chunks = [
                c
                for c in self.chunks
                if record.session_id is None
                or (c.session_id, c.chunk_index) != (record.session_id, record.chunk_index)
            ]
            self.chunks.append(record)

    async def delete_many(self, collection: Collection, record_filter: RecordFilter) -> int:
        self._check("delete_many")
        if collection is Collection.CHUNKS:
            before = len(self.chunks)
            self.chunks = [c for c in self.chunks if not _matches(c.session_id, record_filter)]
            return before - len(self.chunks)
        before = len(self.sessions)
        self.sessions = [s for s in self.sessions if not _matches(s.session_id, record_filter)]
        return before - len(self.sessions)

    async def count(self, collection: Collection, record_filter: RecordFilter) -> int:
        self._check("count")
        records = self.chunks if collection is Collection.CHUNKS else self.sessions
        return sum(1 for r in records if _matches(r.session_id, record_filter))


class FakeConnectionClient:
    """ConnectionClient double that records calls and emits events on demand."""

    def __init__(self, session_dir: Path) -> None:
        self._session_dir = session_dir
        self.handlers: dict[ClientEvent, list[EventHandler]] = defaultdict(list)
        self.initialize_calls = 0
        self.destroy_calls = 0
        self.initialize_errors: list[Exception] = []
        self.connection_info: dict[str, Any] | None = None

    @property
    def session_dir(self) -> Path:
        return self._session_dir

    def on(self, event: ClientEvent, handler: EventHandler) -> None:
        self.handlers[event].append(handler)

    def emit(self, event: ClientEvent, payload: Any = None) -> None:
        for handler in self.handlers[event]:
            handler(payload)

    async def initialize(self) -> None:
        self.initialize_calls += 1
        if self.initialize_errors:
            raise self.initialize_errors.pop(0)

    async def destroy(self) -> None:
        self.destroy_calls += 1

    async def get_connection_info(self) -> dict[str, Any] | None:
        return self.connection_info


def write_tree(root: Path, files: dict[str, bytes]) -> Path:
    """Create ``files`` (relative path -> content) under ``root``."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return root


def read_tree(root: Path) -> dict[str, bytes]:
    """Map of relative POSIX path -> content for every regular file under ``root``."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file() and not p.is_symlink()
    }


SAMPLE_FILES: dict[str, bytes] = {
    "Default/Cookies": b"cookie-jar-contents",
    "Default/Local Storage/leveldb/000003.log": b"\x00\x01leveldb\xff" * 64,
    "Default/Preferences": b'{"profile": {"name": "bot"}}',
    "Local State": b'{"os_crypt": {}}',
}


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def tree_factory() -> Callable[[Path, dict[str, bytes]], Path]:
    return write_tree


@pytest.fixture
def tree_reader() -> Callable[[Path], dict[str, bytes]]:
    return read_tree


@pytest.fixture
def session_dir(tmp_path: Path) -> Path:
    """A populated session directory."""
    return write_tree(tmp_path / "session", SAMPLE_FILES)


@pytest.fixture
def fake_client(session_dir: Path) -> FakeConnectionClient:
    return FakeConnectionClient(session_dir)


@pytest.fixture
def sample_files() -> dict[str, bytes]:
    return dict(SAMPLE_FILES)
