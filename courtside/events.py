"""
Typed event dataclasses: the shared language between the engine and any consumer.

The engine hands these to a Notifier after each successful commit. The CLI,
an async stream (ClubService), or a test harness consumes them. All events
are frozen (immutable) so they are safe to pass across async boundaries and
can be serialised with to_json_dict().
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal, Protocol

PointType = Literal[
    "point_won",
    "ace",
    "winner",
    "double_fault",
    "forced_error",
    "unforced_error",
]

POINT_TYPES: tuple[str, ...] = (
    "point_won",
    "ace",
    "winner",
    "double_fault",
    "forced_error",
    "unforced_error",
)

# Accepted on input, stored as the canonical name.
_POINT_TYPE_ALIASES = {"generic": "point_won"}


def normalize_point_type(value: str) -> PointType:
    """Return the canonical PointType, or raise ValueError for an unknown one."""
    canonical = _POINT_TYPE_ALIASES.get(value, value)
    if canonical not in POINT_TYPES:
        raise ValueError(
            f"Unknown point type: {value!r}. Valid types: {', '.join(POINT_TYPES)}"
        )
    return canonical  # type: ignore[return-value]


@dataclass(frozen=True)
class PointEvent:
    """One awarded point. point_type is metadata only; it never changes scoring."""

    match_id: str
    winner_id: str
    winner_slot: int          # 1 or 2
    point_type: PointType = "point_won"
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class BracketGeneratedEvent:
    tournament_id: str
    format: str
    seeded_ids: tuple[str, ...]
    match_count: int
    bye_count: int
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class PointAwardedEvent:
    point: PointEvent
    score: dict            # score_to_dict() wire form
    game_won_by: str | None = None
    set_won_by: str | None = None


@dataclass(frozen=True)
class RatingChange:
    player_id: str
    old_rating: int
    new_rating: int

    @property
    def delta(self) -> int:
        return self.new_rating - self.old_rating


@dataclass(frozen=True)
class MatchCompletedEvent:
    match_id: str
    tournament_id: str | None
    winner_id: str | None          # None = forced-end with no determined winner
    loser_id: str | None
    score_summary: str
    rating_changes: tuple[RatingChange, ...] = ()
    ended_early: bool = False
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class TournamentCompletedEvent:
    tournament_id: str
    format: str
    winner_id: str | None
    timestamp: datetime = field(default_factory=datetime.now)


# Union type for type-safe pattern matching in consumers
EngineEvent = (
    BracketGeneratedEvent
    | PointAwardedEvent
    | MatchCompletedEvent
    | TournamentCompletedEvent
)


class Notifier(Protocol):
    """Optional notification collaborator. Delivery is the implementor's concern."""

    def notify(self, event: EngineEvent) -> None: ...


class NullNotifier:
    def notify(self, event: EngineEvent) -> None:
        return None


class CollectingNotifier:
    """Keeps every event in order. Handy for tests and the CLI."""

    def __init__(self) -> None:
        self.events: list[EngineEvent] = []

    def notify(self, event: EngineEvent) -> None:
        self.events.append(event)


def to_json_dict(obj: Any) -> Any:
    """
    Convert an event (or any nested dataclass) to JSON-safe plain data.

    Every dataclass level gets a "type" key so consumers can dispatch on it.
    Tuples become lists; datetimes become ISO strings.
    """
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        out: dict[str, Any] = {"type": type(obj).__name__}
        for f in dataclasses.fields(obj):
            out[f.name] = to_json_dict(getattr(obj, f.name))
        return out
    if isinstance(obj, (list, tuple)):
        return [to_json_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {key: to_json_dict(value) for key, value in obj.items()}
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return obj
