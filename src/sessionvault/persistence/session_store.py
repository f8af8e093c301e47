"""Session store: save, restore and maintain session backups.

The store archives the connection client's session directory into the
document store and materializes it back. Small archives are kept inline in
one SessionRecord; archives above ``chunk_threshold`` are split into
ChunkRecords of at most ``max_chunk_size`` bytes with a payload-free
SessionRecord written last.

Every public operation reports failure as a return value. Lower-layer
exceptions are logged and never escape to the caller, who is expected to
try again on the next scheduled run.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from pathlib import Path

from sessionvault.config.models import MIB, BackupConfig
from sessionvault.core.errors import (
    DecodingError,
    EncodingError,
    IntegrityMismatch,
    SessionVaultError,
    TransportError,
)
from sessionvault.core.scheduling import PeriodicTask
from sessionvault.core.session_id import CORRUPT_RAW_IDS, DEFAULT_SESSION_ID, SessionId
from sessionvault.core.types import Result
from sessionvault.observability.logging import get_logger
from sessionvault.persistence import chunking, integrity
from sessionvault.persistence.archiver import Archiver
from sessionvault.persistence.document_store import DocumentStore, RecordFilter
from sessionvault.persistence.models import ChunkRecord, Collection, SessionRecord, SessionSummary

log = get_logger(__name__)

DEFAULT_BACKUP_INTERVAL = 300.0


class SessionStore:
    """Backs up one local session directory to a document store.

    Usage:
        store = SessionStore(document_store, Path("session"))
        if not await store.restore("default"):
            ...  # fresh login required
        await store.start_periodic_backup(300, session_id="default")
        ...
        await store.stop_periodic_backup()
    """

    def __init__(
        self,
        document_store: DocumentStore,
        session_dir: Path,
        *,
        archiver: Archiver | None = None,
        max_chunk_size: int = 10 * MIB,
        chunk_threshold: int = 15 * MIB,
        failure_alert_threshold: int = 3,
        default_session_id: str = DEFAULT_SESSION_ID,
    ) -> None:
        """Initialize the store.

        Args:
            document_store: Backing store for session and chunk records.
            session_dir: Directory the connection client keeps its session in.
            archiver: Archiver to use; a plain Archiver by default.
            max_chunk_size: Largest payload of a single ChunkRecord.
            chunk_threshold: Archives larger than this are chunked.
            failure_alert_threshold: Consecutive failed saves after which each
                further failure is logged at error level.
            default_session_id: Identifier used for placeholder identifiers.

        Raises:
            ValueError: If chunk_threshold is not greater than max_chunk_size.
        """
        if max_chunk_size < 1:
            msg = f"max_chunk_size must be >= 1, got {max_chunk_size}"
            raise ValueError(msg)
        if chunk_threshold <= max_chunk_size:
            msg = (
                f"chunk_threshold ({chunk_threshold}) must be greater than "
                f"max_chunk_size ({max_chunk_size})"
            )
            raise ValueError(msg)
        self._document_store = document_store
        self._session_dir = Path(session_dir)
        self._archiver = archiver or Archiver()
        self._max_chunk_size = max_chunk_size
        self._chunk_threshold = chunk_threshold
        self._failure_alert_threshold = failure_alert_threshold
        self._default_session_id = SessionId(default_session_id)

        self._backup_task: PeriodicTask | None = None
        self._backup_session_id = self._default_session_id
        self._last_backup_at: datetime | None = None
        self._consecutive_failures = 0

    @classmethod
    def from_config(cls, config: BackupConfig, document_store: DocumentStore) -> SessionStore:
        """Build a store from the ``backup`` configuration section."""
        return cls(
            document_store,
            config.session_dir,
            archiver=Archiver(config.exclude_patterns),
            max_chunk_size=config.max_chunk_size,
            chunk_threshold=config.chunk_threshold,
            failure_alert_threshold=config.failure_alert_threshold,
            default_session_id=config.session_id,
        )

    @property
    def session_dir(self) -> Path:
        return self._session_dir

    @property
    def last_backup_at(self) -> datetime | None:
        """Time of the most recent successful backup known to this store."""
        return self._last_backup_at

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def is_backup_running(self) -> bool:
        return self._backup_task is not None and self._backup_task.is_running

    def _normalize(self, session_id: str | SessionId | None) -> SessionId:
        return SessionId.normalize(session_id, default=self._default_session_id.value)

    # -- save ---------------------------------------------------------------

    async def save(self, session_id: str | SessionId | None = None) -> bool:
        """Archive the session directory and store it under ``session_id``.

        Returns:
            True if a new backup was written. False if there was nothing to
            back up or the backup failed; the previous backup is then kept.
        """
        sid = self._normalize(session_id)
        if not self._session_dir.is_dir():
            log.info(
                "session.backup.skipped",
                session_id=sid.value,
                reason="missing_directory",
                session_dir=str(self._session_dir),
            )
            return False

        try:
            archive = await asyncio.to_thread(self._archiver.pack, self._session_dir)
        except EncodingError as e:
            self._record_failure(sid, e)
            return False

        if archive.is_empty:
            log.warning("session.backup.skipped", session_id=sid.value, reason="empty_archive")
            return False

        checksum = integrity.digest(archive.data)
        is_chunked = archive.size > self._chunk_threshold
        try:
            if is_chunked:
                chunk_count = await self._write_chunked(sid, archive.data, checksum)
            else:
                chunk_count = await self._write_single(sid, archive.data, checksum)
        except TransportError as e:
            self._record_failure(sid, e)
            return False

        self._last_backup_at = datetime.now(UTC)
        self._consecutive_failures = 0
        log.info(
            "session.backup.completed",
            session_id=sid.value,
            size=archive.size,
            files=archive.file_count,
            is_chunked=is_chunked,
            chunk_count=chunk_count,
        )
        return True

    async def _write_single(self, sid: SessionId, data: bytes, checksum: str) -> int:
        await self._document_store.upsert(
            SessionRecord(
                session_id=sid.value,
                payload=data,
                checksum=checksum,
                size=len(data),
            )
        )
        # Chunks left over from an earlier chunked backup are no longer referenced.
        try:
            await self._document_store.delete_many(
                Collection.CHUNKS, RecordFilter.for_session(sid.value)
            )
        except TransportError as e:
            log.warning("session.backup.stale_chunks_kept", session_id=sid.value, error=str(e))
        return 1

    async def _write_chunked(self, sid: SessionId, data: bytes, checksum: str) -> int:
        await self._document_store.delete_many(
            Collection.CHUNKS, RecordFilter.for_session(sid.value)
        )
        parts = chunking.split(data, self._max_chunk_size)
        for index, part in enumerate(parts):
            await self._document_store.upsert(
                ChunkRecord(session_id=sid.value, chunk_index=index, payload=part)
            )
            log.debug(
                "session.chunk.written",
                session_id=sid.value,
                chunk_index=index,
                chunk_count=len(parts),
                size=len(part),
            )
        await self._document_store.upsert(
            SessionRecord(
                session_id=sid.value,
                payload=b"",
                checksum=checksum,
                size=len(data),
                is_chunked=True,
                chunk_count=len(parts),
            )
        )
        return len(parts)

    def _record_failure(self, sid: SessionId, error: SessionVaultError) -> None:
        self._consecutive_failures += 1
        if self._consecutive_failures >= self._failure_alert_threshold:
            log.error(
                "session.backup.failing",
                session_id=sid.value,
                consecutive_failures=self._consecutive_failures,
                error=str(error),
                error_type=type(error).__name__,
            )
        else:
            log.warning(
                "session.backup.failed",
                session_id=sid.value,
                consecutive_failures=self._consecutive_failures,
                error=str(error),
                error_type=type(error).__name__,
            )

    # -- restore ------------------------------------------------------------

    async def restore(self, session_id: str | SessionId | None = None) -> bool:
        """Replace the session directory with the stored backup.

        The local directory is only touched once the stored archive has been
        fully reassembled and its checksum verified.

        Returns:
            True if the directory now holds the stored session.
        """
        sid = self._normalize(session_id)
        try:
            record = await self._document_store.find_one(sid.value)
        except TransportError as e:
            log.warning("session.restore.failed", session_id=sid.value, error=str(e))
            return False
        if record is None:
            log.info("session.restore.not_found", session_id=sid.value)
            return False

        loaded = await self._load_archive(sid, record)
        if loaded.is_err:
            error = loaded.error
            if isinstance(error, IntegrityMismatch):
                log.warning(
                    "session.restore.integrity_failed",
                    session_id=sid.value,
                    error=error.message,
                    expected=error.expected,
                    actual=error.actual,
                )
            else:
                log.warning("session.restore.failed", session_id=sid.value, error=str(error))
            return False

        try:
            await asyncio.to_thread(self._archiver.deserialize, loaded.value, self._session_dir)
        except DecodingError as e:
            log.warning("session.restore.failed", session_id=sid.value, error=str(e))
            return False

        log.info(
            "session.restore.completed",
            session_id=sid.value,
            size=record.size,
            is_chunked=record.is_chunked,
            backup_created_at=record.created_at.isoformat(),
        )
        return True

    async def _load_archive(
        self, sid: SessionId, record: SessionRecord
    ) -> Result[bytes, SessionVaultError]:
        if record.is_chunked:
            fetched = await self._fetch_chunks(sid, record)
        else:
            fetched = Result.ok(record.payload)
        return fetched.and_then(lambda data: _verify_checksum(data, record.checksum))

    async def _fetch_chunks(
        self, sid: SessionId, record: SessionRecord
    ) -> Result[bytes, SessionVaultError]:
        try:
            chunks = await self._document_store.find_many(
                Collection.CHUNKS, RecordFilter.for_session(sid.value)
            )
        except TransportError as e:
            return Result.err(e)

        if len(chunks) != record.chunk_count:
            return Result.err(
                IntegrityMismatch(
                    "Stored chunk count does not match the session record",
                    expected=record.chunk_count,
                    actual=len(chunks),
                )
            )
        indices = [chunk.chunk_index for chunk in chunks]
        if indices != list(range(record.chunk_count)):
            return Result.err(
                IntegrityMismatch(
                    "Stored chunk indices are not contiguous",
                    expected=record.chunk_count,
                    actual=len(set(indices)),
                    details={"indices": indices},
                )
            )
        return Result.ok(chunking.join(chunk.payload for chunk in chunks))

    # -- queries ------------------------------------------------------------

    async def exists(self, session_id: str | SessionId | None = None) -> bool:
        """Return True if a reconstructible backup is stored for ``session_id``.

        A chunked backup counts only when its chunk indices are exactly
        ``0..chunk_count-1``. Payloads are not loaded; the checksum is
        verified by restore().
        """
        sid = self._normalize(session_id)
        try:
            record = await self._document_store.find_one(sid.value)
            if record is None:
                return False
            if not record.is_chunked:
                return len(record.payload) > 0
            if record.chunk_count < 1:
                return False
            indices = await self._document_store.find_chunk_indices(sid.value)
        except TransportError as e:
            log.warning("session.exists.failed", session_id=sid.value, error=str(e))
            return False
        return indices == list(range(record.chunk_count))

    async def list_sessions(self) -> list[SessionSummary]:
        """Summaries of every stored session, including corrupt ones.

        Raises:
            TransportError: If the document store cannot be read.
        """
        return await self._document_store.find_summaries(RecordFilter.all())

    async def refresh_status(self, session_id: str | SessionId | None = None) -> datetime | None:
        """Update last_backup_at from the stored record and return it.

        Lets a fresh process report the age of a backup written by an
        earlier one.
        """
        sid = self._normalize(session_id)
        try:
            summaries = await self._document_store.find_summaries(
                RecordFilter.for_session(sid.value)
            )
        except TransportError as e:
            log.warning("session.status.refresh_failed", session_id=sid.value, error=str(e))
            return self._last_backup_at
        if summaries:
            stored_at = summaries[0].created_at
            if self._last_backup_at is None or stored_at > self._last_backup_at:
                self._last_backup_at = stored_at
        return self._last_backup_at

    # -- maintenance --------------------------------------------------------

    async def cleanup_corrupted(self) -> int:
        """Delete records whose session_id is missing, empty or "undefined".

        Returns:
            Total number of session and chunk records deleted.
        """
        corrupt = RecordFilter.any_of(None, *CORRUPT_RAW_IDS)
        deleted = 0
        for collection in (Collection.SESSIONS, Collection.CHUNKS):
            try:
                deleted += await self._document_store.delete_many(collection, corrupt)
            except TransportError as e:
                log.warning(
                    "session.cleanup.failed", collection=str(collection), error=str(e)
                )
        if deleted:
            log.info("session.cleanup.completed", deleted=deleted)
        else:
            log.debug("session.cleanup.completed", deleted=0)
        return deleted

    # -- periodic backup ----------------------------------------------------

    async def start_periodic_backup(
        self,
        interval: float = DEFAULT_BACKUP_INTERVAL,
        session_id: str | SessionId | None = None,
    ) -> None:
        """Save ``session_id`` every ``interval`` seconds.

        Starting while a schedule is running replaces it.
        """
        sid = self._normalize(session_id)
        self._backup_session_id = sid
        if self._backup_task is None:
            self._backup_task = PeriodicTask(self._periodic_save, interval, name="session.backup")
        await self._backup_task.restart(interval)
        log.info("session.backup.scheduled", session_id=sid.value, interval=interval)

    async def _periodic_save(self) -> None:
        await self.save(self._backup_session_id)

    async def stop_periodic_backup(self) -> None:
        """Cancel future backups. An in-flight save is allowed to finish."""
        task = self._backup_task
        if task is None or not task.is_running:
            return
        await task.stop()
        log.info("session.backup.unscheduled")


def _verify_checksum(data: bytes, expected: str) -> Result[bytes, SessionVaultError]:
    if integrity.verify(data, expected):
        return Result.ok(data)
    return Result.err(
        IntegrityMismatch(
            "Checksum of the stored archive does not match",
            expected=expected,
            actual=integrity.digest(data),
        )
    )
