"""
Single-elimination bracket.

Rules:
- The bracket has the next power of two >= N slots; empty slots are byes.
- Round 1 pairs slots (1, 2), (3, 4), ...; later rounds start empty.
- The winner of match n moves to match ceil(n/2) of the next round, as
  player 1 from an odd n and player 2 from an even n.
- Lose once -> eliminated. The final's winner is the champion.
"""

from __future__ import annotations

from courtside.models import BracketMatch, Tournament
from courtside.tournaments.base import (
    BracketFormat,
    BracketWorkspace,
    CompletionResult,
    _next_power_of_two,
    advance_positionally,
    build_slots,
    elimination_rounds,
    positional_feeders,
)


class SingleEliminationFormat(BracketFormat):
    name = "single_elimination"

    def generate(self, tournament: Tournament, seeded_ids: list[str]) -> list[BracketMatch]:
        size = _next_power_of_two(len(seeded_ids))
        slots = build_slots(seeded_ids, size, self.seeding)
        return elimination_rounds(tournament.id, slots)

    def advance(self, workspace: BracketWorkspace, finished: BracketMatch) -> None:
        advance_positionally(workspace, finished)

    def feeders(self, workspace: BracketWorkspace, match: BracketMatch) -> list[BracketMatch]:
        return positional_feeders(workspace, match)

    def check_completion(self, tournament: Tournament, workspace: BracketWorkspace) -> CompletionResult:
        final = _final(workspace)
        if final is None or not final.is_finished:
            return CompletionResult(completed=False)
        return CompletionResult(completed=True, winner_id=final.winner_id)


def _final(workspace: BracketWorkspace) -> BracketMatch | None:
    rounds = [m.round for m in workspace.all() if m.bracket == "winners"]
    if not rounds:
        return None
    return workspace.at("winners", max(rounds), 1)
