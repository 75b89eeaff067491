"""
Tests for the CLI helpers: scoring-command parsing and rich rendering.
"""

from __future__ import annotations

import unittest
from unittest.mock import patch

from rich.console import Console

from courtside.cli import display
from courtside.cli.selector import ScoringAction, parse_scoring_input
from courtside.events import MatchCompletedEvent, RatingChange, TournamentCompletedEvent
from courtside.models import BracketMatch, Player, Tournament
from courtside.scoring import ScoreStateMachine
from courtside.tournaments import StandingEntry


# --------------------------------------------------------------------------- #
# Helpers                                                                      #
# --------------------------------------------------------------------------- #

PLAYERS = {
    "ana": Player(id="ana", name="Ana Ruiz", rating=1620),
    "ben": Player(id="ben", name="Ben Okafor", rating=1480),
}

MATCH = BracketMatch(
    id="m-1",
    tournament_id="t-1",
    round=1,
    match_number=1,
    bracket="winners",
    player1_id="ana",
    player2_id="ben",
)


def recording_console() -> Console:
    return Console(record=True, width=120, legacy_windows=False)


# --------------------------------------------------------------------------- #
# Input parsing                                                                #
# --------------------------------------------------------------------------- #

class ParseScoringInputTests(unittest.TestCase):
    def test_plain_points(self) -> None:
        self.assertEqual(parse_scoring_input("1", MATCH), ScoringAction("point", "ana", "point_won"))
        self.assertEqual(parse_scoring_input("2", MATCH), ScoringAction("point", "ben", "point_won"))

    def test_point_type_suffixes(self) -> None:
        self.assertEqual(parse_scoring_input("1a", MATCH).point_type, "ace")
        self.assertEqual(parse_scoring_input("2d", MATCH).point_type, "double_fault")
        self.assertEqual(parse_scoring_input("2u", MATCH).point_type, "unforced_error")

    def test_commands(self) -> None:
        self.assertEqual(parse_scoring_input("u", MATCH), ScoringAction("undo"))
        self.assertEqual(parse_scoring_input("b", MATCH), ScoringAction("back"))
        self.assertEqual(parse_scoring_input("f", MATCH), ScoringAction("force_end"))
        self.assertEqual(parse_scoring_input("f2", MATCH), ScoringAction("force_end", "ben"))

    def test_garbage(self) -> None:
        for raw in ("", "3", "1z", "f3", "undo"):
            self.assertIsNone(parse_scoring_input(raw, MATCH), raw)


# --------------------------------------------------------------------------- #
# Rendering                                                                    #
# --------------------------------------------------------------------------- #

class DisplayTests(unittest.TestCase):
    def test_bracket_shows_names_and_byes(self) -> None:
        tournament = Tournament(id="t-1", name="Club Open", format="single_elimination", max_participants=4)
        bye = BracketMatch(
            id="m-2", tournament_id="t-1", round=1, match_number=2, bracket="winners",
            player1_id="ben", status="completed", winner_id="ben", score_summary="Bye", is_bye=True,
        )
        console = recording_console()
        with patch.object(display, "console", console):
            display.print_bracket(tournament, [MATCH, bye], PLAYERS)
        text = console.export_text()
        self.assertIn("Winners Bracket", text)
        self.assertIn("Ana Ruiz", text)
        self.assertIn("BYE", text)
        self.assertIn("W-R1-M2", text)

    def test_live_score_panel(self) -> None:
        machine = ScoreStateMachine("ana", "ben")
        score = machine.initial_score()
        for slot in (1, 1, 1, 2, 2, 2, 2):
            score = machine.apply_point(score, slot).score
        console = recording_console()
        with patch.object(display, "console", console):
            display.print_score(MATCH, score, PLAYERS)
        text = console.export_text()
        self.assertIn("AD", text)
        self.assertIn("Ben Okafor", text)

    def test_standings_and_leaderboard(self) -> None:
        console = recording_console()
        with patch.object(display, "console", console):
            display.print_standings([StandingEntry("ana", 1, wins=2, games_for=24, games_against=10)], PLAYERS)
            display.print_leaderboard(list(PLAYERS.values()))
        text = console.export_text()
        self.assertIn("+14", text)
        self.assertIn("1620", text)
        self.assertIn("advanced", text)

    def test_events_render(self) -> None:
        console = recording_console()
        with patch.object(display, "console", console):
            display.display_event(
                MatchCompletedEvent(
                    match_id="m-1", tournament_id="t-1", winner_id="ana", loser_id="ben",
                    score_summary="6-3, 6-3",
                    rating_changes=(RatingChange("ana", 1500, 1516),),
                ),
                PLAYERS,
            )
            display.display_event(
                TournamentCompletedEvent(tournament_id="t-1", format="round_robin", winner_id=None),
                PLAYERS,
            )
        text = console.export_text()
        self.assertIn("Ana Ruiz", text)
        self.assertIn("(+16)", text)
        self.assertIn("no champion", text)


if __name__ == "__main__":
    unittest.main()
