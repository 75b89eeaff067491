"""
Round-robin schedule.

Every participant plays every other participant exactly once: N(N-1)/2
matches, all in round 1, generated in seed order (1v2, 1v3, ..., 2v3, ...).
There are no byes and nothing advances. The tournament is complete when
every match has finished; the leader of the standings wins.
"""

from __future__ import annotations

from courtside.models import BracketMatch, Tournament, new_id
from courtside.tournaments.base import (
    BracketFormat,
    BracketWorkspace,
    CompletionResult,
    compute_standings,
)


class RoundRobinFormat(BracketFormat):
    name = "round_robin"

    def generate(self, tournament: Tournament, seeded_ids: list[str]) -> list[BracketMatch]:
        matches: list[BracketMatch] = []
        number = 0
        for i, first in enumerate(seeded_ids):
            for second in seeded_ids[i + 1:]:
                number += 1
                matches.append(
                    BracketMatch(
                        id=new_id("m"),
                        tournament_id=tournament.id,
                        round=1,
                        match_number=number,
                        bracket="round_robin",
                        player1_id=first,
                        player2_id=second,
                    )
                )
        return matches

    def advance(self, workspace: BracketWorkspace, finished: BracketMatch) -> None:
        return None

    def feeders(self, workspace: BracketWorkspace, match: BracketMatch) -> list[BracketMatch]:
        return []

    def check_completion(self, tournament: Tournament, workspace: BracketWorkspace) -> CompletionResult:
        matches = workspace.all()
        if not matches or not all(m.is_finished for m in matches):
            return CompletionResult(completed=False)
        table = compute_standings(tournament, matches)
        # Nobody leads a table where every match was cancelled.
        leader = table[0] if table and table[0].wins > 0 else None
        return CompletionResult(completed=True, winner_id=leader.player_id if leader else None)
