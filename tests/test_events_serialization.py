"""
Tests for event serialisation: every dataclass level carries a "type" key
so socket or log consumers can dispatch on it without importing Python types.
"""

from __future__ import annotations

import json
import unittest
from datetime import datetime

from courtside.events import (
    POINT_TYPES,
    BracketGeneratedEvent,
    MatchCompletedEvent,
    PointAwardedEvent,
    PointEvent,
    RatingChange,
    normalize_point_type,
    to_json_dict,
)


WHEN = datetime(2024, 6, 1, 9, 15, 0)


class EventSerializationTests(unittest.TestCase):
    def test_match_completed_nests_rating_changes(self) -> None:
        event = MatchCompletedEvent(
            match_id="m-1",
            tournament_id="t-1",
            winner_id="ana",
            loser_id="ben",
            score_summary="6-4, 7-6(5)",
            rating_changes=(RatingChange("ana", 1500, 1516), RatingChange("ben", 1500, 1484)),
            timestamp=WHEN,
        )
        data = to_json_dict(event)
        self.assertEqual(data["type"], "MatchCompletedEvent")
        self.assertEqual(data["timestamp"], "2024-06-01T09:15:00")
        self.assertEqual(
            data["rating_changes"][0],
            {"type": "RatingChange", "player_id": "ana", "old_rating": 1500, "new_rating": 1516},
        )
        json.dumps(data)

    def test_point_awarded_keeps_wire_score(self) -> None:
        point = PointEvent(match_id="m-1", winner_id="ana", winner_slot=1, point_type="ace", timestamp=WHEN)
        score = {"sets": [], "current_game": {"player1": "15", "player2": "0"}, "server_id": "ana", "is_tiebreak": False}
        data = to_json_dict(PointAwardedEvent(point=point, score=score))
        self.assertEqual(data["point"]["type"], "PointEvent")
        self.assertEqual(data["point"]["point_type"], "ace")
        self.assertEqual(data["score"], score)
        self.assertIsNone(data["game_won_by"])

    def test_tuples_become_lists(self) -> None:
        event = BracketGeneratedEvent(
            tournament_id="t-1",
            format="single_elimination",
            seeded_ids=("ana", "ben"),
            match_count=1,
            bye_count=0,
            timestamp=WHEN,
        )
        self.assertEqual(to_json_dict(event)["seeded_ids"], ["ana", "ben"])

    def test_rating_change_delta(self) -> None:
        self.assertEqual(RatingChange("ben", 1500, 1484).delta, -16)


class PointTypeTests(unittest.TestCase):
    def test_canonical_types_pass_through(self) -> None:
        for point_type in POINT_TYPES:
            self.assertEqual(normalize_point_type(point_type), point_type)

    def test_generic_alias(self) -> None:
        self.assertEqual(normalize_point_type("generic"), "point_won")

    def test_unknown_type(self) -> None:
        with self.assertRaises(ValueError):
            normalize_point_type("net_cord")


if __name__ == "__main__":
    unittest.main()
