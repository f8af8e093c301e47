"""Unit tests for sessionvault.orchestrator.recovery module."""

import asyncio
from pathlib import Path
import shutil
import threading
import time

import pytest

from sessionvault.config.models import BackupConfig, RecoveryConfig, SessionVaultConfig
from sessionvault.orchestrator.client import ClientEvent
from sessionvault.orchestrator.recovery import (
    ConnectionState,
    HealthOutcome,
    RecoveryOrchestrator,
)
from sessionvault.persistence.archiver import Archive, Archiver
from sessionvault.persistence.integrity import digest
from sessionvault.persistence.models import SessionRecord
from sessionvault.persistence.session_store import SessionStore


@pytest.fixture
def store(memory_store, session_dir: Path) -> SessionStore:
    return SessionStore(memory_store, session_dir)


@pytest.fixture
def orchestrator(fake_client, store: SessionStore) -> RecoveryOrchestrator:
    return RecoveryOrchestrator(
        fake_client,
        store,
        session_id="default",
        backup_interval=60,
        health_check_interval=30,
        ready_grace=0,
        reconnect_delay=0,
        min_session_entries=2,
    )


@pytest.fixture
async def backed_up(store: SessionStore) -> SessionStore:
    """Store holding a backup of the sample session directory."""
    assert await store.save("default") is True
    return store


class TestStart:
    async def test_start_restores_then_initializes(
        self, orchestrator: RecoveryOrchestrator, fake_client, backed_up, session_dir: Path,
        sample_files, tree_reader,
    ) -> None:
        shutil.rmtree(session_dir)

        await orchestrator.start()

        assert tree_reader(session_dir) == sample_files
        assert fake_client.initialize_calls == 1
        assert orchestrator.state is ConnectionState.INITIALIZING
        assert set(fake_client.handlers) == set(ClientEvent)
        await orchestrator.stop()

    async def test_start_without_backup_still_initializes(
        self, orchestrator: RecoveryOrchestrator, fake_client
    ) -> None:
        await orchestrator.start()

        assert fake_client.initialize_calls == 1
        await orchestrator.stop()

    async def test_start_removes_corrupt_records(
        self, orchestrator: RecoveryOrchestrator, memory_store
    ) -> None:
        memory_store.sessions.append(
            SessionRecord(session_id="undefined", payload=b"x", checksum=digest(b"x"), size=1)
        )

        await orchestrator.start()

        assert memory_store.sessions == []
        await orchestrator.stop()

    async def test_start_propagates_initialize_failure(
        self, orchestrator: RecoveryOrchestrator, fake_client
    ) -> None:
        fake_client.initialize_errors.append(RuntimeError("browser failed to launch"))

        with pytest.raises(RuntimeError, match="browser failed"):
            await orchestrator.start()

        assert orchestrator.state is ConnectionState.DISCONNECTED

    async def test_second_start_is_ignored(
        self, orchestrator: RecoveryOrchestrator, fake_client
    ) -> None:
        await orchestrator.start()
        await orchestrator.start()

        assert fake_client.initialize_calls == 1
        assert len(fake_client.handlers[ClientEvent.READY]) == 1
        await orchestrator.stop()


class TestReady:
    async def test_ready_saves_and_schedules_backup(
        self, orchestrator: RecoveryOrchestrator, fake_client, store: SessionStore, memory_store
    ) -> None:
        await orchestrator.start()

        fake_client.emit(ClientEvent.READY)
        await orchestrator.wait_idle()

        assert orchestrator.state is ConnectionState.CONNECTED
        assert orchestrator.status().ready is True
        assert [r.session_id for r in memory_store.sessions] == ["default"]
        assert store.is_backup_running is True
        await orchestrator.stop()

    async def test_disconnect_during_grace_cancels_initial_backup(
        self, fake_client, store: SessionStore, memory_store
    ) -> None:
        orchestrator = RecoveryOrchestrator(
            fake_client, store, ready_grace=0.05, reconnect_delay=0, health_check_interval=30
        )
        await orchestrator.start()

        fake_client.emit(ClientEvent.READY)
        await asyncio.sleep(0)
        fake_client.emit(ClientEvent.DISCONNECTED, "NAVIGATION")
        await orchestrator.wait_idle()

        assert memory_store.sessions == []
        assert store.is_backup_running is False
        await orchestrator.stop()


class TestDisconnected:
    async def test_restores_and_reinitializes(
        self, orchestrator: RecoveryOrchestrator, fake_client, backed_up, store: SessionStore,
        session_dir: Path, sample_files, tree_reader,
    ) -> None:
        await store.start_periodic_backup(60)
        (session_dir / "Default" / "Cookies").write_bytes(b"half-written")

        await orchestrator.handle_disconnected("CONFLICT")

        assert store.is_backup_running is False
        assert tree_reader(session_dir) == sample_files
        assert fake_client.initialize_calls == 1
        assert fake_client.destroy_calls == 0
        assert orchestrator.state is ConnectionState.INITIALIZING
        assert orchestrator.status().ready is False

    async def test_failed_reinitialize_wipes_session(
        self, orchestrator: RecoveryOrchestrator, fake_client, backed_up, session_dir: Path
    ) -> None:
        fake_client.initialize_errors.append(RuntimeError("session rejected"))

        await orchestrator.handle_disconnected()

        assert fake_client.destroy_calls == 1
        assert fake_client.initialize_calls == 2
        assert not session_dir.exists()
        assert orchestrator.state is ConnectionState.INITIALIZING

    async def test_second_failure_gives_up(
        self, orchestrator: RecoveryOrchestrator, fake_client
    ) -> None:
        fake_client.initialize_errors.extend([RuntimeError("one"), RuntimeError("two")])

        await orchestrator.handle_disconnected()

        assert fake_client.initialize_calls == 2
        assert orchestrator.state is ConnectionState.DISCONNECTED

    async def test_event_after_stop_is_ignored(
        self, orchestrator: RecoveryOrchestrator, fake_client
    ) -> None:
        await orchestrator.start()
        await orchestrator.stop()

        await orchestrator.handle_disconnected()

        assert fake_client.initialize_calls == 1
        assert orchestrator.state is ConnectionState.STOPPED


class TestAuthFailure:
    async def test_auth_failure_recorded_in_status(
        self, orchestrator: RecoveryOrchestrator, fake_client
    ) -> None:
        await orchestrator.start()

        fake_client.emit(ClientEvent.AUTH_FAILURE, "restore session failed")

        status = orchestrator.status()
        assert status.last_auth_failure == "restore session failed"
        assert status.last_auth_failure_at is not None
        assert status.to_dict()["last_auth_failure"] == "restore session failed"
        await orchestrator.stop()


class TestHealthCheck:
    async def test_skipped_when_not_connected(
        self, orchestrator: RecoveryOrchestrator, fake_client
    ) -> None:
        fake_client.connection_info = None

        assert await orchestrator.health_check() is HealthOutcome.SKIPPED

    async def test_skipped_when_query_fails(
        self, orchestrator: RecoveryOrchestrator, fake_client, monkeypatch
    ) -> None:
        async def broken() -> None:
            raise RuntimeError("page crashed")

        monkeypatch.setattr(fake_client, "get_connection_info", broken)

        assert await orchestrator.health_check() is HealthOutcome.SKIPPED

    async def test_healthy(self, orchestrator: RecoveryOrchestrator, fake_client) -> None:
        fake_client.connection_info = {"wid": "123@c.us"}

        assert await orchestrator.health_check() is HealthOutcome.HEALTHY

    async def test_sparse_directory_only_warns(
        self, fake_client, store: SessionStore, session_dir: Path
    ) -> None:
        orchestrator = RecoveryOrchestrator(fake_client, store, min_session_entries=5)
        fake_client.connection_info = {"wid": "123@c.us"}

        assert await orchestrator.health_check() is HealthOutcome.SPARSE
        assert session_dir.is_dir()

    async def test_missing_directory_restored(
        self, orchestrator: RecoveryOrchestrator, fake_client, backed_up, session_dir: Path,
        sample_files, tree_reader,
    ) -> None:
        fake_client.connection_info = {"wid": "123@c.us"}
        shutil.rmtree(session_dir)

        assert await orchestrator.health_check() is HealthOutcome.RESTORED
        assert tree_reader(session_dir) == sample_files

    async def test_missing_directory_without_backup(
        self, orchestrator: RecoveryOrchestrator, fake_client, session_dir: Path
    ) -> None:
        fake_client.connection_info = {"wid": "123@c.us"}
        shutil.rmtree(session_dir)

        assert await orchestrator.health_check() is HealthOutcome.RESTORE_FAILED

    async def test_self_heal_resumes_backup_when_connected(
        self, orchestrator: RecoveryOrchestrator, fake_client, backed_up, store: SessionStore,
        session_dir: Path,
    ) -> None:
        await orchestrator.start()
        fake_client.emit(ClientEvent.READY)
        await orchestrator.wait_idle()
        fake_client.connection_info = {"wid": "123@c.us"}
        shutil.rmtree(session_dir)

        assert await orchestrator.health_check() is HealthOutcome.RESTORED
        assert store.is_backup_running is True
        await orchestrator.stop()


class TestStop:
    async def test_stop_saves_and_destroys(
        self, orchestrator: RecoveryOrchestrator, fake_client, store: SessionStore, memory_store
    ) -> None:
        await orchestrator.start()
        fake_client.emit(ClientEvent.READY)
        await orchestrator.wait_idle()
        memory_store.sessions.clear()

        await orchestrator.stop()

        assert orchestrator.state is ConnectionState.STOPPED
        assert store.is_backup_running is False
        assert [r.session_id for r in memory_store.sessions] == ["default"]
        assert fake_client.destroy_calls == 1

    async def test_stop_twice_destroys_once(
        self, orchestrator: RecoveryOrchestrator, fake_client
    ) -> None:
        await orchestrator.start()
        await orchestrator.stop()
        await orchestrator.stop()

        assert fake_client.destroy_calls == 1

    async def test_stop_survives_destroy_failure(
        self, orchestrator: RecoveryOrchestrator, fake_client, monkeypatch
    ) -> None:
        async def broken() -> None:
            raise RuntimeError("already closed")

        monkeypatch.setattr(fake_client, "destroy", broken)
        await orchestrator.start()

        await orchestrator.stop()

        assert orchestrator.state is ConnectionState.STOPPED

    async def test_restart_after_stop(
        self, orchestrator: RecoveryOrchestrator, fake_client
    ) -> None:
        await orchestrator.start()
        await orchestrator.stop()
        await orchestrator.start()

        assert fake_client.initialize_calls == 2
        assert len(fake_client.handlers[ClientEvent.READY]) == 1
        await orchestrator.stop()


class _SlowRestoreArchiver(Archiver):
    """Archiver whose deserialize holds its worker thread for a while."""

    def __init__(self) -> None:
        super().__init__()
        self.events: list[str] = []
        self.restoring = threading.Event()

    def pack(self, directory: Path) -> Archive:
        self.events.append("pack")
        return super().pack(directory)

    def deserialize(self, data: bytes, target: Path) -> None:
        self.events.append("deserialize.started")
        self.restoring.set()
        time.sleep(0.2)
        super().deserialize(data, target)
        self.events.append("deserialize.finished")


class TestStopDuringFlows:
    async def test_final_save_waits_for_running_restore(
        self, fake_client, memory_store, session_dir: Path, sample_files, tree_reader
    ) -> None:
        archiver = _SlowRestoreArchiver()
        store = SessionStore(memory_store, session_dir, archiver=archiver)
        assert await store.save("default") is True
        orchestrator = RecoveryOrchestrator(
            fake_client, store, reconnect_delay=30, health_check_interval=30
        )
        await orchestrator.start()
        archiver.events.clear()
        archiver.restoring.clear()

        fake_client.emit(ClientEvent.DISCONNECTED, "CONFLICT")
        assert await asyncio.to_thread(archiver.restoring.wait, 5)
        await asyncio.wait_for(orchestrator.stop(), timeout=5)

        assert archiver.events == ["deserialize.started", "deserialize.finished", "pack"]
        assert tree_reader(session_dir) == sample_files
        assert fake_client.initialize_calls == 1
        assert orchestrator.state is ConnectionState.STOPPED

    async def test_stop_cuts_reconnect_delay_short(
        self, fake_client, store: SessionStore
    ) -> None:
        orchestrator = RecoveryOrchestrator(
            fake_client, store, reconnect_delay=30, health_check_interval=30
        )
        await orchestrator.start()

        fake_client.emit(ClientEvent.DISCONNECTED)
        await asyncio.sleep(0.05)
        await asyncio.wait_for(orchestrator.stop(), timeout=5)

        assert fake_client.initialize_calls == 1
        assert orchestrator.state is ConnectionState.STOPPED

    async def test_stop_cuts_ready_grace_short(
        self, fake_client, store: SessionStore, memory_store
    ) -> None:
        orchestrator = RecoveryOrchestrator(
            fake_client, store, ready_grace=30, health_check_interval=30
        )
        await orchestrator.start()

        fake_client.emit(ClientEvent.READY)
        await asyncio.sleep(0)
        await asyncio.wait_for(orchestrator.stop(), timeout=5)

        assert memory_store.calls.count("upsert") == 1
        assert store.is_backup_running is False
        assert orchestrator.state is ConnectionState.STOPPED

class TestConstruction:
    def test_from_config(self, fake_client, store: SessionStore, session_dir: Path) -> None:
        config = SessionVaultConfig(
            backup=BackupConfig(session_id="bot-7", session_dir=session_dir, interval_seconds=120),
            recovery=RecoveryConfig(health_check_interval_seconds=15),
        )

        orchestrator = RecoveryOrchestrator.from_config(config, fake_client, store)

        assert orchestrator.session_id.value == "bot-7"
        assert orchestrator.state is ConnectionState.UNINITIALIZED

    def test_placeholder_session_id_uses_default(self, fake_client, store: SessionStore) -> None:
        orchestrator = RecoveryOrchestrator(fake_client, store, session_id="undefined")

        assert orchestrator.session_id.value == "default"

    def test_directory_mismatch_warns(
        self, fake_client, memory_store, tmp_path: Path, capsys
    ) -> None:
        RecoveryOrchestrator(fake_client, SessionStore(memory_store, tmp_path / "elsewhere"))

        assert "recovery.session_dir.mismatch" in capsys.readouterr().err

    def test_status_before_start(self, orchestrator: RecoveryOrchestrator) -> None:
        status = orchestrator.status().to_dict()

        assert status["state"] == "uninitialized"
        assert status["uptime_seconds"] == 0
        assert status["last_backup_at"] is None
