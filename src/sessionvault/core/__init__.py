"""sessionvault core module - shared types, errors and scheduling primitives."""

from sessionvault.core.errors import (
    ConfigError,
    DecodingError,
    EncodingError,
    IntegrityMismatch,
    SessionVaultError,
    TransportError,
    ValidationError,
)
from sessionvault.core.scheduling import PeriodicTask
from sessionvault.core.session_id import DEFAULT_SESSION_ID, SessionId, is_placeholder
from sessionvault.core.types import Result

__all__ = [
    # Types
    "Result",
    "SessionId",
    "DEFAULT_SESSION_ID",
    "is_placeholder",
    "PeriodicTask",
    # Errors
    "SessionVaultError",
    "EncodingError",
    "DecodingError",
    "IntegrityMismatch",
    "TransportError",
    "ConfigError",
    "ValidationError",
]
