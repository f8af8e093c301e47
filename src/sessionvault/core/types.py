"""Result type used inside the persistence layer.

Expected failures while loading a backup (a torn chunk set, a checksum
mismatch, an unreachable store) travel as ``Result`` values so that the
load pipeline can be written as a chain of steps. Public SessionStore
operations reduce the final Result to a bool.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast


@dataclass(frozen=True, slots=True)
class Result[T, E]:
    """Either an Ok value or an Err value.

    Usage:
        loaded = fetch_chunks(record).and_then(verify_checksum)
        if loaded.is_err:
            log.warning("session.restore.failed", error=str(loaded.error))
            return False
        archive = loaded.value
    """

    _payload: Any
    _ok: bool

    @classmethod
    def ok(cls, value: T) -> Result[T, E]:
        return cls(_payload=value, _ok=True)

    @classmethod
    def err(cls, error: E) -> Result[T, E]:
        return cls(_payload=error, _ok=False)

    @property
    def is_err(self) -> bool:
        return not self._ok

    @property
    def value(self) -> T:
        """The Ok value; raises ValueError on an Err."""
        if not self._ok:
            msg = f"Result is Err({self._payload!r}), it has no value"
            raise ValueError(msg)
        return cast(T, self._payload)

    @property
    def error(self) -> E:
        """The Err value; raises ValueError on an Ok."""
        if self._ok:
            msg = "Result is Ok, it has no error"
            raise ValueError(msg)
        return cast(E, self._payload)

    def and_then[U](self, step: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Run ``step`` on an Ok value; pass an Err through untouched."""
        if self._ok:
            return step(cast(T, self._payload))
        return Result.err(cast(E, self._payload))

    def __repr__(self) -> str:
        return f"{'Ok' if self._ok else 'Err'}({self._payload!r})"
