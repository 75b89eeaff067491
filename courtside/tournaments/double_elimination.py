"""
Double-elimination bracket.

Layout for a bracket of S slots, W = log2(S) winners rounds:
- Winners bracket: identical to single elimination, rounds 1..W.
- Losers bracket: L = 2(W - 1) rounds, numbered W+1..W+L. Losers round r
  has 2^(W - ceil(r/2) - 1) matches when r is odd, 2^(W - r/2 - 1) when even.
- Grand final at round W+L+1 and a pre-allocated reset at W+L+2.

Routing:
- Winners round 1 losers fill losers round 1, earliest open slot first.
- Winners round k >= 2 losers drop into losers round 2(k-1) as player 2.
- Odd losers-round winners move to the next round as player 1; even
  losers-round winners fill the next round's earliest open slot.
- Winners-final winner is grand-final player 1, losers-final winner is
  player 2. With only two slots there is no losers bracket and the
  winners-final loser goes straight to grand-final player 2.
- If grand-final player 2 wins, both players meet again in the reset;
  otherwise the reset is cancelled.

"Earliest" always means generation order within the receiving round.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace

from courtside.errors import StateError
from courtside.models import BracketMatch, BracketSide, Tournament, new_id
from courtside.tournaments.base import (
    BracketFormat,
    BracketWorkspace,
    CompletionResult,
    _next_power_of_two,
    advance_positionally,
    build_slots,
    elimination_rounds,
    place_player,
    positional_feeders,
)

logger = logging.getLogger(__name__)


def losers_round_size(winners_rounds: int, losers_round: int) -> int:
    if losers_round % 2 == 1:
        return 2 ** (winners_rounds - math.ceil(losers_round / 2) - 1)
    return 2 ** (winners_rounds - losers_round // 2 - 1)


class DoubleEliminationFormat(BracketFormat):
    name = "double_elimination"

    def generate(self, tournament: Tournament, seeded_ids: list[str]) -> list[BracketMatch]:
        size = _next_power_of_two(len(seeded_ids))
        winners_rounds = int(math.log2(size))
        losers_rounds = 2 * (winners_rounds - 1)

        matches = elimination_rounds(tournament.id, build_slots(seeded_ids, size, self.seeding))
        for r in range(1, losers_rounds + 1):
            for number in range(1, losers_round_size(winners_rounds, r) + 1):
                matches.append(
                    BracketMatch(
                        id=new_id("m"),
                        tournament_id=tournament.id,
                        round=winners_rounds + r,
                        match_number=number,
                        bracket="losers",
                    )
                )
        for offset, side in ((1, "grand_final"), (2, "reset")):
            matches.append(
                BracketMatch(
                    id=new_id("m"),
                    tournament_id=tournament.id,
                    round=winners_rounds + losers_rounds + offset,
                    match_number=1,
                    bracket=side,
                )
            )
        return matches

    def advance(self, workspace: BracketWorkspace, finished: BracketMatch) -> None:
        winners_rounds = _winners_rounds(workspace)
        losers_rounds = 2 * (winners_rounds - 1)
        grand_final_round = winners_rounds + losers_rounds + 1

        match finished.bracket:
            case "winners":
                if finished.round < winners_rounds:
                    advance_positionally(workspace, finished)
                elif finished.winner_id is not None:
                    _place(workspace, "grand_final", grand_final_round, finished.winner_id, slots=(1,))

                loser = finished.loser_id
                if loser is None:
                    return
                if losers_rounds == 0:
                    _place(workspace, "grand_final", grand_final_round, loser, slots=(2,))
                elif finished.round == 1:
                    _place(workspace, "losers", winners_rounds + 1, loser, slots=(1, 2))
                else:
                    drop_round = 2 * (finished.round - 1)
                    _place(workspace, "losers", winners_rounds + drop_round, loser, slots=(2,))

            case "losers":
                if finished.winner_id is None:
                    return
                r = finished.round - winners_rounds
                if r == losers_rounds:
                    _place(workspace, "grand_final", grand_final_round, finished.winner_id, slots=(2,))
                elif r % 2 == 1:
                    _place(workspace, "losers", finished.round + 1, finished.winner_id, slots=(1,))
                else:
                    _place(workspace, "losers", finished.round + 1, finished.winner_id, slots=(1, 2))

            case "grand_final":
                reset = workspace.at("reset", grand_final_round + 1, 1)
                if reset is None or reset.is_finished:
                    return
                if finished.winner_id is not None and finished.winner_id == finished.player2_id:
                    logger.info("Grand final won from the losers bracket; reset match is on")
                    workspace.put(
                        replace(reset, player1_id=finished.player1_id, player2_id=finished.player2_id)
                    )
                else:
                    workspace.put(replace(reset, status="cancelled"))

            case _:
                return

    def feeders(self, workspace: BracketWorkspace, match: BracketMatch) -> list[BracketMatch]:
        winners_rounds = _winners_rounds(workspace)
        losers_rounds = 2 * (winners_rounds - 1)
        match match.bracket:
            case "winners":
                return positional_feeders(workspace, match)
            case "losers":
                r = match.round - winners_rounds
                previous = workspace.in_round("losers", match.round - 1) if r > 1 else []
                if r == 1:
                    return workspace.in_round("winners", 1)
                if r % 2 == 0:
                    return previous + workspace.in_round("winners", r // 2 + 1)
                return previous
            case "grand_final":
                found = workspace.in_round("winners", winners_rounds)
                if losers_rounds:
                    found += workspace.in_round("losers", winners_rounds + losers_rounds)
                return found
            case "reset":
                return workspace.in_round("grand_final", match.round - 1)
            case _:
                return []

    def check_completion(self, tournament: Tournament, workspace: BracketWorkspace) -> CompletionResult:
        grand_final = _single(workspace, "grand_final")
        reset = _single(workspace, "reset")
        if grand_final is None or not grand_final.is_finished:
            return CompletionResult(completed=False)
        if reset is not None and reset.status == "completed":
            return CompletionResult(completed=True, winner_id=reset.winner_id)
        if reset is not None and reset.status == "cancelled" and len(reset.players) == 2:
            # Reset was in play and ended level: the winners-side player never lost it.
            return CompletionResult(completed=True, winner_id=None)
        if reset is None or reset.status == "cancelled":
            return CompletionResult(completed=True, winner_id=grand_final.winner_id)
        return CompletionResult(completed=False)


def _winners_rounds(workspace: BracketWorkspace) -> int:
    return max(m.round for m in workspace.all() if m.bracket == "winners")


def _single(workspace: BracketWorkspace, side: BracketSide) -> BracketMatch | None:
    found = [m for m in workspace.all() if m.bracket == side]
    return found[0] if found else None


def _place(
    workspace: BracketWorkspace,
    side: BracketSide,
    round_num: int,
    player_id: str,
    slots: tuple[int, ...],
) -> None:
    """Put player_id into the earliest open slot of the round, trying `slots` in order per match."""
    candidates = workspace.in_round(side, round_num)
    if any(player_id in m.players for m in candidates):
        return
    for match in candidates:
        if match.is_finished:
            continue
        for slot in slots:
            occupant = match.player1_id if slot == 1 else match.player2_id
            if occupant is None:
                workspace.put(place_player(match, slot, player_id))
                return
    raise StateError(f"No open slot for {player_id!r} in {side} round {round_num}")
