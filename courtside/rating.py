"""
Elo rating updates.

RatingEngine is pure: it returns new values / new Player copies and never
touches storage. Callers decide when an outcome is rateable (byes and
undetermined forced-ends are not).
"""

from __future__ import annotations

import logging
from typing import Iterable, Literal

from courtside.errors import ValidationError
from courtside.models import Player, SkillTier, revise, tier_for_rating

logger = logging.getLogger(__name__)

Side = Literal["a", "b"]


def expected_score(rating_a: int, rating_b: int) -> float:
    """Probability that A beats B under the Elo model."""
    return 1 / (1 + 10 ** ((rating_b - rating_a) / 400))


class RatingEngine:
    def __init__(self, k_factor: int = 32) -> None:
        if k_factor <= 0:
            raise ValidationError(f"k_factor must be > 0, got {k_factor}")
        self.k_factor = k_factor

    def update(
        self,
        rating_a: int,
        rating_b: int,
        winner: Side,
        k: int | None = None,
    ) -> tuple[int, int]:
        """
        Return (new_rating_a, new_rating_b) after a decided match.

        update(1500, 1500, "a") == (1516, 1484) with the default K of 32.
        """
        if winner not in ("a", "b"):
            raise ValidationError(f"winner must be 'a' or 'b', got {winner!r}")
        k_factor = self.k_factor if k is None else k
        expected_a = expected_score(rating_a, rating_b)
        expected_b = expected_score(rating_b, rating_a)
        actual_a = 1 if winner == "a" else 0
        actual_b = 1 - actual_a
        new_a = round(rating_a + k_factor * (actual_a - expected_a))
        new_b = round(rating_b + k_factor * (actual_b - expected_b))
        return new_a, new_b

    def apply(self, player_a: Player, player_b: Player, winner_id: str) -> tuple[Player, Player]:
        """Return revised copies of both players with ratings and match counters updated."""
        if player_a.id == player_b.id:
            raise ValidationError("A player cannot be rated against themselves.")
        if winner_id == player_a.id:
            side: Side = "a"
        elif winner_id == player_b.id:
            side = "b"
        else:
            raise ValidationError(f"Winner {winner_id!r} played neither side of this match.")

        new_a, new_b = self.update(player_a.rating, player_b.rating, side)
        logger.debug(
            "Rating %s %d -> %d, %s %d -> %d",
            player_a.id, player_a.rating, new_a, player_b.id, player_b.rating, new_b,
        )
        updated_a = revise(
            player_a,
            rating=new_a,
            skill_tier=tier_for_rating(new_a),
            matches_played=player_a.matches_played + 1,
            matches_won=player_a.matches_won + (1 if side == "a" else 0),
        )
        updated_b = revise(
            player_b,
            rating=new_b,
            skill_tier=tier_for_rating(new_b),
            matches_played=player_b.matches_played + 1,
            matches_won=player_b.matches_won + (1 if side == "b" else 0),
        )
        return updated_a, updated_b


def leaderboard(players: Iterable[Player], skill_tier: SkillTier | None = None) -> list[Player]:
    """Players sorted by rating (highest first), optionally filtered to one tier."""
    pool = [p for p in players if skill_tier is None or p.skill_tier == skill_tier]
    return sorted(pool, key=lambda p: (-p.rating, p.name))
