"""Orchestrator module for sessionvault.

Ties the connection client's lifecycle to the session store: restore on
start, back up once connected, self-heal on health checks and recover from
disconnects.
"""

from sessionvault.orchestrator.client import ClientEvent, ConnectionClient, EventHandler
from sessionvault.orchestrator.recovery import (
    ConnectionState,
    HealthOutcome,
    OrchestratorStatus,
    RecoveryOrchestrator,
)

__all__ = [
    "ClientEvent",
    "ConnectionClient",
    "EventHandler",
    "ConnectionState",
    "HealthOutcome",
    "OrchestratorStatus",
    "RecoveryOrchestrator",
]
