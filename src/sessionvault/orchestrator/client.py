"""Connection client interface.

The connection client is the external component that talks to the remote
messaging network and keeps its login state in a local directory. The
orchestrator only needs its lifecycle events, that directory, a connection
state query and an initialize/destroy pair.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol

# Handlers receive the event payload (a disconnect reason, an auth error
# message) or None.
EventHandler = Callable[[Any], None]


class ClientEvent(StrEnum):
    """Lifecycle events raised by the connection client."""

    READY = "ready"
    DISCONNECTED = "disconnected"
    AUTH_FAILURE = "auth_failure"


class ConnectionClient(Protocol):
    """What the recovery orchestrator consumes from the connection client."""

    @property
    def session_dir(self) -> Path:
        """Directory holding the client's session files."""
        ...

    def on(self, event: ClientEvent, handler: EventHandler) -> None:
        """Register ``handler`` for ``event``. Handlers must not block."""
        ...

    async def initialize(self) -> None:
        """Start connecting. Raises if the client cannot be started."""
        ...

    async def destroy(self) -> None: ...

    async def get_connection_info(self) -> dict[str, Any] | None:
        """Details of the active connection, or None when not connected."""
        ...
