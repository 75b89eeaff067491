"""
Exception taxonomy shared by every engine component.

Callers catch CourtsideError for "anything the engine rejected"; the
subclasses let the surrounding layer decide what to show or retry.
ConcurrencyError is the only one worth retrying as-is.
"""

from __future__ import annotations


class CourtsideError(Exception):
    """Base class for all engine errors."""


class ValidationError(CourtsideError):
    """Raised when caller input is malformed (bad format, unknown point type)."""


class NotFoundError(CourtsideError):
    """Raised when an id does not resolve to a stored entity."""

    def __init__(self, kind: str, entity_id: str) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found: {entity_id!r}")


class StateError(CourtsideError):
    """Raised when an operation is not valid for the entity's current status."""


class AlreadyGeneratedError(StateError):
    """Raised when a bracket is generated a second time."""


class AlreadyFinalizedError(StateError):
    """Raised when undo / force-end is attempted on a finished match."""


class ConcurrencyError(StateError):
    """Raised by Repository.commit when a version compare-and-swap fails."""


class EmptyHistoryError(CourtsideError):
    """Raised by undo when no point has been recorded for the match."""


class CorruptStateError(CourtsideError):
    """Raised when a TennisScore violates the scoring invariants."""
