"""Recovery orchestrator.

Drives the connection client's lifecycle around the session store:

    start         cleanup corrupt records, restore, initialize the client
    ready         wait a grace period, save, start periodic backup
    health check  restore the session directory if it vanished while connected
    disconnected  stop backup, restore, re-initialize after a delay; if that
                  fails, wipe the session directory and initialize once more
    stop          let in-flight flows finish, stop backup, final save,
                  destroy the client

Periodic backup is always stopped before a restore-driven flow runs, so the
store never sees a save and a restore of the same session at once.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
import shutil
from typing import Any

from sessionvault.config.models import SessionVaultConfig
from sessionvault.core.scheduling import PeriodicTask
from sessionvault.core.session_id import SessionId
from sessionvault.observability.logging import get_logger
from sessionvault.orchestrator.client import ClientEvent, ConnectionClient
from sessionvault.persistence.session_store import SessionStore

log = get_logger(__name__)


class ConnectionState(StrEnum):
    """Lifecycle state of the managed connection."""

    UNINITIALIZED = "uninitialized"
    RESTORING = "restoring"
    INITIALIZING = "initializing"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"
    STOPPED = "stopped"


class HealthOutcome(StrEnum):
    """Result of one health check."""

    SKIPPED = "skipped"
    HEALTHY = "healthy"
    SPARSE = "sparse"
    RESTORED = "restored"
    RESTORE_FAILED = "restore_failed"


@dataclass(frozen=True, slots=True)
class OrchestratorStatus:
    """Point-in-time view of the orchestrator for status reporting.

    Attributes:
        state: Current connection state.
        ready: Whether the client has reported ready since its last (re)start.
        uptime_seconds: Seconds since start(), 0 if not started.
        last_backup_at: Most recent successful backup, if any.
        consecutive_backup_failures: Failed saves since the last success.
        backup_running: Whether periodic backup is scheduled.
        last_auth_failure: Message of the most recent auth failure, if any.
        last_auth_failure_at: When it happened.
    """

    state: ConnectionState
    ready: bool
    uptime_seconds: float
    last_backup_at: datetime | None
    consecutive_backup_failures: int
    backup_running: bool
    last_auth_failure: str | None = None
    last_auth_failure_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": str(self.state),
            "ready": self.ready,
            "uptime_seconds": round(self.uptime_seconds, 1),
            "last_backup_at": self.last_backup_at.isoformat() if self.last_backup_at else None,
            "consecutive_backup_failures": self.consecutive_backup_failures,
            "backup_running": self.backup_running,
            "last_auth_failure": self.last_auth_failure,
            "last_auth_failure_at": (
                self.last_auth_failure_at.isoformat() if self.last_auth_failure_at else None
            ),
        }


class RecoveryOrchestrator:
    """Keeps a connection client's session backed up and recoverable.

    Usage:
        orchestrator = RecoveryOrchestrator(client, store, session_id="default")
        await orchestrator.start()
        ...
        await orchestrator.stop()
    """

    def __init__(
        self,
        client: ConnectionClient,
        session_store: SessionStore,
        *,
        session_id: str | None = None,
        backup_interval: float = 300.0,
        health_check_interval: float = 60.0,
        ready_grace: float = 10.0,
        reconnect_delay: float = 5.0,
        min_session_entries: int = 3,
    ) -> None:
        self._client = client
        self._store = session_store
        self._session_id = SessionId.normalize(session_id)
        self._backup_interval = backup_interval
        self._ready_grace = ready_grace
        self._reconnect_delay = reconnect_delay
        self._min_session_entries = min_session_entries

        self._state = ConnectionState.UNINITIALIZED
        self._ready = False
        self._started_at: datetime | None = None
        self._last_auth_failure: str | None = None
        self._last_auth_failure_at: datetime | None = None
        self._handlers_registered = False
        self._pending: set[asyncio.Task[Any]] = set()
        self._stopping = asyncio.Event()
        self._health_task = PeriodicTask(
            self.health_check, health_check_interval, name="recovery.health"
        )

        if client.session_dir.resolve() != session_store.session_dir.resolve():
            log.warning(
                "recovery.session_dir.mismatch",
                client_dir=str(client.session_dir),
                store_dir=str(session_store.session_dir),
            )

    @classmethod
    def from_config(
        cls,
        config: SessionVaultConfig,
        client: ConnectionClient,
        session_store: SessionStore,
    ) -> RecoveryOrchestrator:
        return cls(
            client,
            session_store,
            session_id=config.backup.session_id,
            backup_interval=config.backup.interval_seconds,
            health_check_interval=config.recovery.health_check_interval_seconds,
            ready_grace=config.recovery.ready_grace_seconds,
            reconnect_delay=config.recovery.reconnect_delay_seconds,
            min_session_entries=config.recovery.min_session_entries,
        )

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def session_id(self) -> SessionId:
        return self._session_id

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            log.info(
                "recovery.state.changed",
                from_state=str(self._state),
                to_state=str(state),
                session_id=self._session_id.value,
            )
            self._state = state

    def status(self) -> OrchestratorStatus:
        uptime = 0.0
        if self._started_at is not None:
            uptime = (datetime.now(UTC) - self._started_at).total_seconds()
        return OrchestratorStatus(
            state=self._state,
            ready=self._ready,
            uptime_seconds=uptime,
            last_backup_at=self._store.last_backup_at,
            consecutive_backup_failures=self._store.consecutive_failures,
            backup_running=self._store.is_backup_running,
            last_auth_failure=self._last_auth_failure,
            last_auth_failure_at=self._last_auth_failure_at,
        )

    # -- lifecycle ----------------------------------------------------------

    async def start(self) -> None:
        """Restore the stored session and initialize the client.

        A failed restore is not an error: the client then starts without a
        session and asks for a fresh login.

        Raises:
            Exception: Whatever the client's initialize() raises.
        """
        if self._state not in (ConnectionState.UNINITIALIZED, ConnectionState.STOPPED):
            log.debug("recovery.start.ignored", state=str(self._state))
            return
        self._started_at = datetime.now(UTC)
        self._stopping = asyncio.Event()
        self._register_handlers()

        self._set_state(ConnectionState.RESTORING)
        deleted = await self._store.cleanup_corrupted()
        restored = await self._store.restore(self._session_id)
        log.info(
            "recovery.start.restored" if restored else "recovery.start.fresh_session",
            session_id=self._session_id.value,
            corrupt_records_deleted=deleted,
        )

        try:
            await self._initialize_client()
        except Exception:
            self._set_state(ConnectionState.DISCONNECTED)
            raise
        await self._health_task.start()

    async def stop(self) -> None:
        """Stop backups, save one last time and destroy the client.

        Flows waiting out the ready grace or the reconnect delay return at
        once. A flow inside a save or restore is awaited, never cancelled:
        its archive work runs in a worker thread and has to finish before the
        final save reads the session directory.
        """
        if self._state is ConnectionState.STOPPED:
            return
        self._stopping.set()
        await self.wait_idle()

        await self._health_task.stop()
        await self._store.stop_periodic_backup()
        saved = await self._store.save(self._session_id)
        log.info("recovery.stop.final_save", session_id=self._session_id.value, saved=saved)

        try:
            await self._client.destroy()
        except Exception as e:
            log.warning("recovery.client.destroy_failed", error=str(e))
        self._ready = False
        self._set_state(ConnectionState.STOPPED)

    async def _initialize_client(self) -> None:
        self._set_state(ConnectionState.INITIALIZING)
        await self._client.initialize()

    # -- client events ------------------------------------------------------

    def _register_handlers(self) -> None:
        if self._handlers_registered:
            return
        self._client.on(ClientEvent.READY, lambda _payload: self._spawn(self.handle_ready()))
        self._client.on(
            ClientEvent.DISCONNECTED,
            lambda payload: self._spawn(self.handle_disconnected(payload)),
        )
        self._client.on(ClientEvent.AUTH_FAILURE, self.handle_auth_failure)
        self._handlers_registered = True

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def wait_idle(self) -> None:
        """Wait until every flow started by a client event has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _pause(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds. Returns False if stop() cut it short."""
        if self._stopping.is_set():
            return False
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=delay)
        except TimeoutError:
            return True
        return False

    async def handle_ready(self) -> None:
        """Client connected: back up after a grace delay, then periodically."""
        if self._stopping.is_set():
            return
        self._ready = True
        self._set_state(ConnectionState.CONNECTED)

        # Let the client finish writing its own session files first.
        if not await self._pause(self._ready_grace):
            return
        if self._state is not ConnectionState.CONNECTED:
            log.info("recovery.ready.superseded", state=str(self._state))
            return

        saved = await self._store.save(self._session_id)
        log.info("recovery.ready.initial_backup", session_id=self._session_id.value, saved=saved)
        if self._stopping.is_set():
            return
        await self._store.start_periodic_backup(self._backup_interval, self._session_id)

    async def handle_disconnected(self, reason: Any = None) -> None:
        """Client lost its connection: restore and re-initialize it."""
        if self._stopping.is_set():
            return
        log.warning("recovery.client.disconnected", reason=str(reason) if reason else None)
        self._ready = False
        self._set_state(ConnectionState.RECONNECTING)

        await self._store.stop_periodic_backup()
        restored = await self._store.restore(self._session_id)
        log.info("recovery.reconnect.restored", session_id=self._session_id.value, ok=restored)

        if not await self._pause(self._reconnect_delay):
            return
        try:
            await self._initialize_client()
            return
        except Exception as e:
            log.error("recovery.reconnect.failed", error=str(e), error_type=type(e).__name__)
        if self._stopping.is_set():
            return

        # Last resort: drop the local session and force a fresh login.
        try:
            await self._client.destroy()
        except Exception as e:
            log.warning("recovery.client.destroy_failed", error=str(e))
        session_dir = self._client.session_dir
        await asyncio.to_thread(shutil.rmtree, session_dir, ignore_errors=True)
        log.warning("recovery.session.wiped", session_dir=str(session_dir))
        try:
            await self._initialize_client()
        except Exception as e:
            log.error(
                "recovery.reconnect.abandoned", error=str(e), error_type=type(e).__name__
            )
            self._set_state(ConnectionState.DISCONNECTED)

    def handle_auth_failure(self, message: Any = None) -> None:
        """Record an authentication failure; the client handles re-login."""
        self._last_auth_failure = str(message) if message is not None else "unknown"
        self._last_auth_failure_at = datetime.now(UTC)
        log.error("recovery.client.auth_failed", message=self._last_auth_failure)

    # -- health -------------------------------------------------------------

    async def health_check(self) -> HealthOutcome:
        """Check the live connection and its session files.

        Restores the session directory if it is missing while connected;
        a directory with too few entries only produces a warning.
        """
        try:
            info = await self._client.get_connection_info()
        except Exception as e:
            log.warning("recovery.health.query_failed", error=str(e))
            return HealthOutcome.SKIPPED
        if not info:
            log.debug("recovery.health.skipped", reason="not_connected")
            return HealthOutcome.SKIPPED

        session_dir = self._client.session_dir
        if not session_dir.is_dir():
            log.warning("recovery.health.session_missing", session_dir=str(session_dir))
            return await self._self_heal()

        entries = sum(1 for _ in session_dir.iterdir())
        if entries < self._min_session_entries:
            log.warning(
                "recovery.health.session_sparse",
                session_dir=str(session_dir),
                entries=entries,
                minimum=self._min_session_entries,
            )
            return HealthOutcome.SPARSE

        log.debug("recovery.health.ok", entries=entries)
        return HealthOutcome.HEALTHY

    async def _self_heal(self) -> HealthOutcome:
        backup_was_running = self._store.is_backup_running
        await self._store.stop_periodic_backup()
        restored = await self._store.restore(self._session_id)
        if backup_was_running and self._state is ConnectionState.CONNECTED:
            await self._store.start_periodic_backup(self._backup_interval, self._session_id)
        if restored:
            log.info("recovery.health.session_restored", session_id=self._session_id.value)
            return HealthOutcome.RESTORED
        log.error("recovery.health.restore_failed", session_id=self._session_id.value)
        return HealthOutcome.RESTORE_FAILED
