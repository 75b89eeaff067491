"""
Per-match statistics derived from the recorded point log.

Aces and winners are credited to the player who won the point; double
faults and errors are charged to the player who lost it. Games and sets
come from the match's score, so the numbers never depend on anything but
recorded events.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from courtside.config import ScoringConfig
from courtside.events import PointEvent
from courtside.models import BracketMatch
from courtside.scoring import ScoreStateMachine

_CREDITED = {"ace": "aces", "winner": "winners"}
_CHARGED = {
    "double_fault": "double_faults",
    "forced_error": "forced_errors",
    "unforced_error": "unforced_errors",
}


@dataclass
class PlayerStatistics:
    player_id: str
    points_won: int = 0
    aces: int = 0
    double_faults: int = 0
    winners: int = 0
    forced_errors: int = 0
    unforced_errors: int = 0
    games_won: int = 0
    sets_won: int = 0


@dataclass
class MatchStatistics:
    match_id: str
    player1: PlayerStatistics
    player2: PlayerStatistics
    points: list[PointEvent] = field(default_factory=list)

    @property
    def total_points(self) -> int:
        return len(self.points)

    def for_player(self, player_id: str) -> PlayerStatistics:
        if player_id == self.player1.player_id:
            return self.player1
        if player_id == self.player2.player_id:
            return self.player2
        raise KeyError(player_id)


def compute_statistics(
    match: BracketMatch,
    points: Iterable[PointEvent],
    rules: ScoringConfig | None = None,
) -> MatchStatistics:
    if match.player1_id is None or match.player2_id is None:
        raise ValueError(f"{match.label} has no players yet")
    stats = MatchStatistics(
        match_id=match.id,
        player1=PlayerStatistics(match.player1_id),
        player2=PlayerStatistics(match.player2_id),
        points=list(points),
    )
    by_slot = {1: stats.player1, 2: stats.player2}

    for point in stats.points:
        winner = by_slot[point.winner_slot]
        loser = by_slot[3 - point.winner_slot]
        winner.points_won += 1
        if point.point_type in _CREDITED:
            counter = _CREDITED[point.point_type]
            setattr(winner, counter, getattr(winner, counter) + 1)
        elif point.point_type in _CHARGED:
            counter = _CHARGED[point.point_type]
            setattr(loser, counter, getattr(loser, counter) + 1)

    if match.score is not None:
        machine = ScoreStateMachine(match.player1_id, match.player2_id, rules)
        stats.player1.games_won = sum(s.player1_games for s in match.score.sets)
        stats.player2.games_won = sum(s.player2_games for s in match.score.sets)
        stats.player1.sets_won, stats.player2.sets_won = machine.sets_won(match.score)
    return stats
