"""
Domain entities: players, tournaments and bracket matches.

Persisted entities are frozen dataclasses. Every change goes through
revise(), which bumps `version`; Repository.commit() uses that to detect
lost updates.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Literal, TypeVar

from courtside.scoring import TennisScore

TournamentFormat = Literal["single_elimination", "double_elimination", "round_robin"]
TournamentStatus = Literal[
    "registration_open",
    "registration_closed",
    "in_progress",
    "completed",
    "cancelled",
]
MatchStatus = Literal["pending", "in_progress", "completed", "cancelled"]
BracketSide = Literal["winners", "losers", "grand_final", "reset", "round_robin", "friendly"]
SkillTier = Literal["beginner", "intermediate", "advanced"]

TOURNAMENT_FORMATS: tuple[str, ...] = ("single_elimination", "double_elimination", "round_robin")
SKILL_TIERS: tuple[str, ...] = ("beginner", "intermediate", "advanced")

BYE_SUMMARY = "Bye"


def tier_for_rating(rating: int) -> SkillTier:
    if rating < 1300:
        return "beginner"
    if rating < 1600:
        return "intermediate"
    return "advanced"


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Player:
    id: str
    name: str
    rating: int = 1500
    matches_played: int = 0
    matches_won: int = 0
    skill_tier: SkillTier | None = None   # None = derive from rating
    version: int = 0

    def __post_init__(self) -> None:
        if self.skill_tier is None:
            object.__setattr__(self, "skill_tier", tier_for_rating(self.rating))

    @property
    def win_rate(self) -> float:
        if self.matches_played == 0:
            return 0.0
        return self.matches_won / self.matches_played


@dataclass(frozen=True)
class Tournament:
    id: str
    name: str
    format: TournamentFormat
    max_participants: int
    status: TournamentStatus = "registration_open"
    participant_ids: tuple[str, ...] = ()   # registration order
    seeded_ids: tuple[str, ...] = ()        # fixed at bracket generation
    bracket_generated: bool = False
    winner_id: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "cancelled")

    def seed_of(self, player_id: str) -> int:
        """1-based seed; unseeded players sort after everyone."""
        try:
            return self.seeded_ids.index(player_id) + 1
        except ValueError:
            return len(self.seeded_ids) + 1


@dataclass(frozen=True)
class BracketMatch:
    id: str
    tournament_id: str | None               # None = friendly challenge match
    round: int
    match_number: int
    bracket: BracketSide
    player1_id: str | None = None
    player2_id: str | None = None
    status: MatchStatus = "pending"
    winner_id: str | None = None
    score: TennisScore | None = None
    score_summary: str | None = None
    is_bye: bool = False
    ended_early: bool = False
    version: int = 0

    @property
    def is_finished(self) -> bool:
        return self.status in ("completed", "cancelled")

    @property
    def is_playable(self) -> bool:
        return (
            not self.is_finished
            and self.player1_id is not None
            and self.player2_id is not None
        )

    @property
    def loser_id(self) -> str | None:
        if self.status != "completed" or self.winner_id is None or self.is_bye:
            return None
        return self.player2_id if self.winner_id == self.player1_id else self.player1_id

    @property
    def players(self) -> tuple[str, ...]:
        return tuple(p for p in (self.player1_id, self.player2_id) if p is not None)

    def slot_of(self, player_id: str) -> int | None:
        if player_id == self.player1_id:
            return 1
        if player_id == self.player2_id:
            return 2
        return None

    @property
    def label(self) -> str:
        """Short display id, e.g. "W-R2-M1" or "GF"."""
        match self.bracket:
            case "grand_final":
                return "GF"
            case "reset":
                return "GF-2"
            case "friendly":
                return "FR"
            case "round_robin":
                return f"RR-M{self.match_number}"
            case _:
                side = "W" if self.bracket == "winners" else "L"
                return f"{side}-R{self.round}-M{self.match_number}"


Entity = TypeVar("Entity", Player, Tournament, BracketMatch)


def revise(entity: Entity, **changes) -> Entity:
    """Return a copy with `changes` applied and the version bumped by one."""
    return replace(entity, version=entity.version + 1, **changes)
