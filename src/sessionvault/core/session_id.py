"""Session identifier value type.

Identifiers reach the store from configuration, environment variables and
the connection client, and some of those paths have historically produced
the literal string "undefined" instead of a real name. ``SessionId`` makes
such values unrepresentable; ``SessionId.normalize`` maps them to the
default identifier at every public entry point.
"""

from __future__ import annotations

from dataclasses import dataclass

from sessionvault.core.errors import ValidationError

DEFAULT_SESSION_ID = "default"

# Values treated as "no identifier" (compared after strip + casefold).
PLACEHOLDER_IDS: frozenset[str] = frozenset({"", "undefined", "null", "none"})

# Raw values cleanup_corrupted() treats as orphans; None is matched separately.
CORRUPT_RAW_IDS: tuple[str, ...] = ("", "undefined")


def is_placeholder(raw: str | None) -> bool:
    """Return True if ``raw`` does not name a real session."""
    if raw is None:
        return True
    return raw.strip().casefold() in PLACEHOLDER_IDS


@dataclass(frozen=True, slots=True)
class SessionId:
    """A validated, non-placeholder session identifier.

    Attributes:
        value: The identifier string, stripped of surrounding whitespace.
    """

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or is_placeholder(self.value):
            raise ValidationError(
                "Session identifier must be a non-empty, non-placeholder string",
                field="session_id",
                value=self.value,
            )
        if self.value != self.value.strip():
            object.__setattr__(self, "value", self.value.strip())

    @classmethod
    def normalize(
        cls,
        raw: str | SessionId | None,
        default: str = DEFAULT_SESSION_ID,
    ) -> SessionId:
        """Coerce a raw identifier, substituting ``default`` for placeholders.

        Args:
            raw: Identifier as received from a caller.
            default: Identifier used when ``raw`` is None, blank or a placeholder.

        Returns:
            A valid SessionId.
        """
        if isinstance(raw, SessionId):
            return raw
        if is_placeholder(raw):
            return cls(default)
        return cls(raw.strip())  # type: ignore[union-attr]

    def __str__(self) -> str:
        return self.value
