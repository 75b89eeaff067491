"""
Tests for single-elimination brackets: layout, byes, seeding, positional
advancement and completion.
"""

from __future__ import annotations

import math

import pytest

from courtside.config import Config, TournamentConfig
from courtside.events import CollectingNotifier, TournamentCompletedEvent
from courtside.repository import InMemoryRepository
from courtside.tournaments import standard_seed_order
from courtside.tournaments.base import _next_power_of_two
from courtside.tournaments.engine import TournamentEngine


# --------------------------------------------------------------------------- #
# Helpers                                                                      #
# --------------------------------------------------------------------------- #

def build_tournament(n: int, fmt: str = "single_elimination", seeding: str = "positional"):
    """
    Engine with n players already registered and the bracket generated.

    Ratings descend with registration order, so player i is seed i + 1.
    Returns (engine, tournament_id, [seed1_id, seed2_id, ...]).
    """
    config = Config(tournament=TournamentConfig(seeding=seeding))
    engine = TournamentEngine(InMemoryRepository(), config=config, notifier=CollectingNotifier())
    ids = [
        engine.create_player(f"Player {i + 1}", rating=2000 - 10 * i, player_id=f"s{i + 1}").id
        for i in range(n)
    ]
    tournament = engine.create_tournament("Club Open", fmt, max_participants=max(n, 2), participant_ids=ids)
    engine.close_registration(tournament.id)
    engine.generate_bracket(tournament.id)
    return engine, tournament.id, ids


def find(engine, tid, bracket, round_num, number):
    for m in engine.matches(tid):
        if (m.bracket, m.round, m.match_number) == (bracket, round_num, number):
            return m
    raise AssertionError(f"no match {bracket} R{round_num} M{number}")


def play_out(engine, tid, pick=lambda m: m.player1_id, limit=200):
    """Register results until the tournament completes; pick chooses each winner."""
    for _ in range(limit):
        if engine.check_completion(tid).completed:
            return engine.check_completion(tid)
        playable = engine.playable_matches(tid)
        assert playable, "tournament stalled with nothing playable"
        match = playable[0]
        winner = pick(match)
        summary = "6-3, 6-3" if winner == match.player1_id else "3-6, 3-6"
        engine.register_result(match.id, winner, summary)
    raise AssertionError("tournament did not complete")


# --------------------------------------------------------------------------- #
# Layout                                                                       #
# --------------------------------------------------------------------------- #

class TestLayout:
    def test_next_power_of_two(self):
        assert _next_power_of_two(2) == 2
        assert _next_power_of_two(3) == 4
        assert _next_power_of_two(5) == 8
        assert _next_power_of_two(8) == 8
        assert _next_power_of_two(9) == 16

    @pytest.mark.parametrize("n", range(2, 10))
    def test_match_count_is_bracket_size_minus_one(self, n):
        engine, tid, _ = build_tournament(n)
        size = _next_power_of_two(n)
        matches = engine.matches(tid)
        assert len(matches) == size - 1
        assert max(m.round for m in matches) == int(math.log2(size))

    def test_round_one_pairs_in_seed_order(self):
        engine, tid, ids = build_tournament(4)
        m1 = find(engine, tid, "winners", 1, 1)
        m2 = find(engine, tid, "winners", 1, 2)
        assert (m1.player1_id, m1.player2_id) == (ids[0], ids[1])
        assert (m2.player1_id, m2.player2_id) == (ids[2], ids[3])

    def test_later_rounds_start_empty(self):
        engine, tid, _ = build_tournament(8)
        for m in engine.matches(tid):
            if m.round > 1:
                assert m.players == ()
                assert m.status == "pending"

    def test_standard_seed_order(self):
        assert standard_seed_order(2) == [1, 2]
        assert standard_seed_order(4) == [1, 4, 2, 3]
        assert standard_seed_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]

    def test_standard_seeding_keeps_top_seeds_apart(self):
        engine, tid, ids = build_tournament(4, seeding="standard")
        m1 = find(engine, tid, "winners", 1, 1)
        m2 = find(engine, tid, "winners", 1, 2)
        assert (m1.player1_id, m1.player2_id) == (ids[0], ids[3])
        assert (m2.player1_id, m2.player2_id) == (ids[1], ids[2])

    def test_standard_seeding_gives_top_seed_the_bye(self):
        engine, tid, ids = build_tournament(3, seeding="standard")
        m1 = find(engine, tid, "winners", 1, 1)
        assert m1.is_bye and m1.winner_id == ids[0]
        assert find(engine, tid, "winners", 2, 1).player1_id == ids[0]


# --------------------------------------------------------------------------- #
# Byes                                                                         #
# --------------------------------------------------------------------------- #

class TestByes:
    def test_five_players_bye_cascade(self):
        engine, tid, ids = build_tournament(5)
        m3 = find(engine, tid, "winners", 1, 3)
        m4 = find(engine, tid, "winners", 1, 4)
        assert (m3.player1_id, m3.player2_id) == (ids[4], None)
        assert m3.is_bye and m3.status == "completed" and m3.winner_id == ids[4]
        assert m3.score_summary == "Bye"
        assert m4.is_bye and m4.winner_id is None

        # R2 M2 is fed only by byes, so seed 5 walks through it too
        r2m2 = find(engine, tid, "winners", 2, 2)
        assert r2m2.is_bye and r2m2.winner_id == ids[4]
        assert find(engine, tid, "winners", 3, 1).player2_id == ids[4]

    def test_bye_does_not_touch_ratings(self):
        engine, _, ids = build_tournament(3)
        seed3 = engine.repository.load_player(ids[2])
        assert seed3.rating == 1980
        assert seed3.matches_played == 0

    def test_match_waiting_on_a_real_match_is_not_a_bye(self):
        engine, tid, ids = build_tournament(3)
        r2 = find(engine, tid, "winners", 2, 1)
        assert r2.status == "pending"
        assert r2.players == (ids[2],)
        assert not r2.is_playable


# --------------------------------------------------------------------------- #
# Advancement and completion                                                   #
# --------------------------------------------------------------------------- #

class TestAdvancement:
    def test_winners_move_to_positional_slots(self):
        engine, tid, ids = build_tournament(8)
        engine.register_result(find(engine, tid, "winners", 1, 1).id, ids[1], "4-6, 4-6")
        engine.register_result(find(engine, tid, "winners", 1, 2).id, ids[2], "6-1, 6-1")
        engine.register_result(find(engine, tid, "winners", 1, 3).id, ids[5], "2-6, 2-6")
        r2m1 = find(engine, tid, "winners", 2, 1)
        r2m2 = find(engine, tid, "winners", 2, 2)
        assert (r2m1.player1_id, r2m1.player2_id) == (ids[1], ids[2])
        assert r2m2.player1_id == ids[5]
        assert r2m2.player2_id is None

    def test_final_decides_champion(self):
        engine, tid, ids = build_tournament(4)
        result = play_out(engine, tid)
        assert result.completed
        assert result.winner_id == ids[0]
        tournament = engine.repository.load_tournament(tid)
        assert tournament.status == "completed"
        assert tournament.winner_id == ids[0]
        events = [e for e in engine.notifier.events if isinstance(e, TournamentCompletedEvent)]
        assert len(events) == 1 and events[0].winner_id == ids[0]

    def test_two_player_bracket_is_just_a_final(self):
        engine, tid, ids = build_tournament(2)
        (final,) = engine.matches(tid)
        engine.register_result(final.id, ids[1], "3-6, 6-4, 6-7(2)")
        assert engine.check_completion(tid).winner_id == ids[1]

    @pytest.mark.parametrize("n", [3, 5, 6, 7, 9])
    def test_every_size_completes(self, n):
        engine, tid, ids = build_tournament(n)
        result = play_out(engine, tid, pick=lambda m: m.player2_id)
        assert result.completed
        assert result.winner_id in ids

    def test_not_complete_until_final_played(self):
        engine, tid, ids = build_tournament(4)
        engine.register_result(find(engine, tid, "winners", 1, 1).id, ids[0], "6-0, 6-0")
        assert not engine.check_completion(tid).completed
