"""
Bracket abstractions: the BracketFormat base class and helpers shared by
every format.

A format is a stateless strategy. It knows how to lay out the matches for a
seeded field, where the players of a finished match go next, and when the
whole tournament is decided. All mutations happen on a BracketWorkspace,
an in-memory copy of one tournament's matches; the engine commits the
workspace's changes in a single repository commit.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Iterable

from courtside.config import SeedingMode
from courtside.errors import StateError
from courtside.models import (
    BYE_SUMMARY,
    BracketMatch,
    BracketSide,
    Tournament,
    TournamentFormat,
    new_id,
)
from courtside.scoring import parse_summary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionResult:
    completed: bool
    winner_id: str | None = None


@dataclass
class StandingEntry:
    """Running tally for one participant across all completed matches."""

    player_id: str
    seed: int
    wins: int = 0
    losses: int = 0
    games_for: int = 0
    games_against: int = 0

    @property
    def played(self) -> int:
        return self.wins + self.losses

    @property
    def game_difference(self) -> int:
        return self.games_for - self.games_against

    @property
    def win_rate(self) -> float:
        return self.wins / self.played if self.played else 0.0


class BracketWorkspace:
    """
    Mutable working copy of one tournament's matches.

    put() stores plain replace()d copies; changed() hands back every touched
    match with its version bumped exactly once relative to the stored copy
    (or 0 for matches that are not stored yet).
    """

    def __init__(self, matches: Iterable[BracketMatch], stored: bool = True) -> None:
        ordered = list(matches)
        self._original = {m.id: m for m in ordered} if stored else {}
        self._current = {m.id: m for m in ordered}
        self._positions = {(m.bracket, m.round, m.match_number): m.id for m in ordered}
        self._touched: list[str] = [] if stored else [m.id for m in ordered]

    def get(self, match_id: str) -> BracketMatch:
        return self._current[match_id]

    def put(self, match: BracketMatch) -> None:
        if match.id not in self._current:
            raise StateError(f"Match {match.id!r} does not belong to this bracket")
        if self._current[match.id] == match:
            return
        self._current[match.id] = match
        if match.id not in self._touched:
            self._touched.append(match.id)

    def at(self, bracket: BracketSide, round_num: int, match_number: int) -> BracketMatch | None:
        match_id = self._positions.get((bracket, round_num, match_number))
        return self._current[match_id] if match_id else None

    def in_round(self, bracket: BracketSide, round_num: int) -> list[BracketMatch]:
        found = [
            m for m in self._current.values()
            if m.bracket == bracket and m.round == round_num
        ]
        return sorted(found, key=lambda m: m.match_number)

    def all(self) -> list[BracketMatch]:
        return list(self._current.values())

    def changed(self) -> list[BracketMatch]:
        out: list[BracketMatch] = []
        for match_id in self._touched:
            current = self._current[match_id]
            original = self._original.get(match_id)
            version = 0 if original is None else original.version + 1
            out.append(replace(current, version=version))
        return out


class BracketFormat(ABC):
    """Abstract base class for all tournament formats."""

    name: TournamentFormat

    def __init__(self, seeding: SeedingMode = "positional") -> None:
        self.seeding = seeding

    @abstractmethod
    def generate(self, tournament: Tournament, seeded_ids: list[str]) -> list[BracketMatch]:
        """Lay out every match for seeded_ids (best seed first), before bye resolution."""
        ...  # pragma: no cover

    @abstractmethod
    def advance(self, workspace: BracketWorkspace, finished: BracketMatch) -> None:
        """Move the players of a finished match to wherever the format sends them."""
        ...  # pragma: no cover

    @abstractmethod
    def feeders(self, workspace: BracketWorkspace, match: BracketMatch) -> list[BracketMatch]:
        """Every match whose outcome can still place a player into `match`."""
        ...  # pragma: no cover

    @abstractmethod
    def check_completion(self, tournament: Tournament, workspace: BracketWorkspace) -> CompletionResult:
        ...  # pragma: no cover

    # ------------------------------------------------------------------ #
    # Shared behaviour                                                     #
    # ------------------------------------------------------------------ #

    def resolve_byes(self, workspace: BracketWorkspace) -> int:
        """
        Complete every pending match that can no longer get two players.

        Repeats until nothing changes, so byes cascade through later rounds.
        Returns the number of matches resolved.
        """
        resolved = 0
        progress = True
        while progress:
            progress = False
            for snapshot in workspace.all():
                match = workspace.get(snapshot.id)
                if match.is_finished or len(match.players) == 2:
                    continue
                if not all(f.is_finished for f in self.feeders(workspace, match)):
                    continue
                winner = match.players[0] if match.players else None
                bye = replace(
                    match,
                    status="completed",
                    winner_id=winner,
                    score_summary=BYE_SUMMARY,
                    is_bye=True,
                )
                workspace.put(bye)
                logger.debug("Bye resolved %s -> %s", match.label, winner or "(empty)")
                self.advance(workspace, bye)
                resolved += 1
                progress = True
        return resolved

    def standings(self, tournament: Tournament, matches: Iterable[BracketMatch]) -> list[StandingEntry]:
        return compute_standings(tournament, matches)


# ------------------------------------------------------------------ #
# Bracket helpers                                                     #
# ------------------------------------------------------------------ #

def _next_power_of_two(n: int) -> int:
    return 1 << math.ceil(math.log2(max(n, 2)))


def standard_seed_order(size: int) -> list[int]:
    """
    Seed numbers in bracket order so seed 1 and seed 2 can only meet in the final.

    standard_seed_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]
    """
    order = [1]
    while len(order) < size:
        total = len(order) * 2 + 1
        order = [seed for s in order for seed in (s, total - s)]
    return order


def build_slots(seeded_ids: list[str], size: int, seeding: SeedingMode) -> list[str | None]:
    """Fill `size` bracket slots from the seed list; None marks a bye slot."""
    if seeding == "standard":
        return [
            seeded_ids[seed - 1] if seed <= len(seeded_ids) else None
            for seed in standard_seed_order(size)
        ]
    return list(seeded_ids) + [None] * (size - len(seeded_ids))


def elimination_rounds(
    tournament_id: str,
    slots: list[str | None],
    bracket: BracketSide = "winners",
) -> list[BracketMatch]:
    """Round 1 pairs slots (2i, 2i+1); later rounds are created empty."""
    matches: list[BracketMatch] = []
    size = len(slots)
    total_rounds = int(math.log2(size))
    for i in range(size // 2):
        matches.append(
            BracketMatch(
                id=new_id("m"),
                tournament_id=tournament_id,
                round=1,
                match_number=i + 1,
                bracket=bracket,
                player1_id=slots[2 * i],
                player2_id=slots[2 * i + 1],
            )
        )
    for round_num in range(2, total_rounds + 1):
        for number in range(1, size // 2 ** round_num + 1):
            matches.append(
                BracketMatch(
                    id=new_id("m"),
                    tournament_id=tournament_id,
                    round=round_num,
                    match_number=number,
                    bracket=bracket,
                )
            )
    return matches


def place_player(match: BracketMatch, slot: int, player_id: str) -> BracketMatch:
    """Return `match` with player_id in slot 1 or 2; placing the same player twice is a no-op."""
    field_name = "player1_id" if slot == 1 else "player2_id"
    occupant = getattr(match, field_name)
    if occupant == player_id:
        return match
    if occupant is not None:
        raise StateError(f"{match.label} slot {slot} is already taken by {occupant!r}")
    if match.is_finished:
        raise StateError(f"{match.label} is already {match.status}")
    return replace(match, **{field_name: player_id})


def advance_positionally(
    workspace: BracketWorkspace,
    finished: BracketMatch,
    bracket: BracketSide = "winners",
) -> BracketMatch | None:
    """
    Put the winner into round+1, match ceil(n/2): slot 1 from odd n, slot 2 from even n.

    Returns the updated target, or None when there is no next round or no winner.
    """
    if finished.winner_id is None:
        return None
    target = workspace.at(bracket, finished.round + 1, math.ceil(finished.match_number / 2))
    if target is None:
        return None
    slot = 1 if finished.match_number % 2 == 1 else 2
    updated = place_player(target, slot, finished.winner_id)
    workspace.put(updated)
    return updated


def positional_feeders(
    workspace: BracketWorkspace,
    match: BracketMatch,
    bracket: BracketSide = "winners",
) -> list[BracketMatch]:
    if match.round <= 1:
        return []
    found = [
        workspace.at(bracket, match.round - 1, 2 * match.match_number - 1),
        workspace.at(bracket, match.round - 1, 2 * match.match_number),
    ]
    return [m for m in found if m is not None]


# ------------------------------------------------------------------ #
# Standings                                                           #
# ------------------------------------------------------------------ #

def match_games(match: BracketMatch) -> tuple[int, int]:
    """Total games won by (player1, player2) from the live score or the summary."""
    if match.score is not None:
        return (
            sum(s.player1_games for s in match.score.sets),
            sum(s.player2_games for s in match.score.sets),
        )
    if match.score_summary:
        sets = parse_summary(match.score_summary)
        return sum(a for a, _ in sets), sum(b for _, b in sets)
    return 0, 0


def compute_standings(tournament: Tournament, matches: Iterable[BracketMatch]) -> list[StandingEntry]:
    """
    Tally wins, losses and games, then sort.

    Order: wins; head-to-head wins among players level on wins; game
    difference; seed.
    """
    entries = {
        pid: StandingEntry(player_id=pid, seed=tournament.seed_of(pid))
        for pid in (tournament.seeded_ids or tournament.participant_ids)
    }
    head_to_head: dict[tuple[str, str], int] = {}
    for match in matches:
        if match.status != "completed" or match.is_bye or match.winner_id is None:
            continue
        loser = match.loser_id
        if loser is None:
            continue
        games_1, games_2 = match_games(match)
        for pid, won, lost in (
            (match.player1_id, games_1, games_2),
            (match.player2_id, games_2, games_1),
        ):
            entry = entries.setdefault(pid, StandingEntry(player_id=pid, seed=tournament.seed_of(pid)))
            entry.games_for += won
            entry.games_against += lost
        entries[match.winner_id].wins += 1
        entries[loser].losses += 1
        key = (match.winner_id, loser)
        head_to_head[key] = head_to_head.get(key, 0) + 1

    by_wins: dict[int, list[StandingEntry]] = {}
    for entry in entries.values():
        by_wins.setdefault(entry.wins, []).append(entry)

    ordered: list[StandingEntry] = []
    for wins in sorted(by_wins, reverse=True):
        group = by_wins[wins]
        ids = {e.player_id for e in group}

        def h2h(entry: StandingEntry) -> int:
            return sum(head_to_head.get((entry.player_id, other), 0) for other in ids)

        ordered.extend(sorted(group, key=lambda e: (-h2h(e), -e.game_difference, e.seed)))
    return ordered
