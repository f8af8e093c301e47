"""Error hierarchy for sessionvault.

Local archive problems, integrity failures and document store failures are
kept apart so that callers can tell "the remote backup is bad" from "the
remote store is unreachable" from "the local directory cannot be read".

Exception Hierarchy:
    SessionVaultError (base)
    ├── EncodingError      - directory could not be archived
    ├── DecodingError      - archive malformed or could not be materialized
    ├── IntegrityMismatch  - checksum or chunk-count disagreement
    ├── TransportError     - document store unreachable or write rejected
    ├── ConfigError        - configuration loading and validation
    └── ValidationError    - invalid input (e.g. session identifiers)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class SessionVaultError(Exception):
    """Base exception for all sessionvault errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dict with additional context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class EncodingError(SessionVaultError):
    """A session directory could not be serialized.

    Raised only for unrecoverable I/O problems (permission denied, device
    failure). A missing directory is not an error.

    Attributes:
        path: The directory or file that could not be read.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Path | str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.path = Path(path) if path is not None else None


class DecodingError(SessionVaultError):
    """An archive could not be unpacked into a session directory.

    Attributes:
        path: The target directory of the failed restore.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Path | str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.path = Path(path) if path is not None else None


class IntegrityMismatch(SessionVaultError):
    """Stored data disagrees with its recorded checksum or chunk count.

    Attributes:
        expected: The recorded value (checksum or chunk count).
        actual: The value recomputed from the retrieved data.
    """

    def __init__(
        self,
        message: str,
        *,
        expected: str | int | None = None,
        actual: str | int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.expected = expected
        self.actual = actual


class TransportError(SessionVaultError):
    """Error talking to the document store.

    Attributes:
        operation: The store operation that failed (e.g. "upsert", "find_one").
        collection: The collection involved if applicable.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        collection: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.operation = operation
        self.collection = collection

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        *,
        operation: str,
        collection: str | None = None,
    ) -> TransportError:
        """Wrap a driver exception, preserving it as ``__cause__``."""
        error = cls(
            f"Document store {operation} failed: {exc}",
            operation=operation,
            collection=collection,
            details={"original_exception": type(exc).__name__},
        )
        error.__cause__ = exc
        return error


class ConfigError(SessionVaultError):
    """Error from configuration operations.

    Attributes:
        config_key: The configuration key that caused the error.
        config_file: Path to the config file if applicable.
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        config_file: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.config_key = config_key
        self.config_file = config_file


class ValidationError(SessionVaultError):
    """Input failed validation.

    Attributes:
        field: The field that failed validation.
        value: The invalid value.
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.field = field
        self.value = value

    def __str__(self) -> str:
        base = self.message
        if self.field:
            base = f"{base} (field: {self.field}, value: {self.value!r})"
        if self.details:
            base = f"{base} (details: {self.details})"
        return base
