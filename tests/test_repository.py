"""
Tests for InMemoryRepository: lookups, ordering and versioned atomic commits.
"""

from __future__ import annotations

import pytest

from courtside.errors import ConcurrencyError, NotFoundError
from courtside.models import BracketMatch, Player, Tournament, revise
from courtside.repository import InMemoryRepository


def make_match(mid: str, tid: str = "t-1", number: int = 1) -> BracketMatch:
    return BracketMatch(id=mid, tournament_id=tid, round=1, match_number=number, bracket="round_robin")


class TestInMemoryRepository:
    def test_missing_entities(self):
        repo = InMemoryRepository()
        with pytest.raises(NotFoundError) as info:
            repo.load_player("p-x")
        assert info.value.kind == "Player"
        with pytest.raises(NotFoundError):
            repo.load_match("m-x")
        with pytest.raises(NotFoundError):
            repo.load_tournament("t-x")

    def test_list_matches_keeps_insertion_order(self):
        repo = InMemoryRepository()
        repo.commit(matches=[make_match("m-b", number=1), make_match("m-a", number=2), make_match("m-z", "t-2")])
        assert [m.id for m in repo.list_matches("t-1")] == ["m-b", "m-a"]

    def test_versions_must_step_by_one(self):
        repo = InMemoryRepository()
        player = Player(id="p-1", name="Ana")
        repo.commit(players=[player])
        with pytest.raises(ConcurrencyError):
            repo.commit(players=[player])                        # version 0 again
        updated = revise(player, rating=1510)
        repo.commit(players=[updated])
        with pytest.raises(ConcurrencyError):
            repo.commit(players=[revise(player, rating=1490)])   # stale base
        assert repo.load_player("p-1").rating == 1510

    def test_commit_is_all_or_nothing(self):
        repo = InMemoryRepository()
        tournament = Tournament(id="t-1", name="Open", format="round_robin", max_participants=4)
        repo.commit(tournaments=[tournament])
        with pytest.raises(ConcurrencyError):
            repo.commit(
                tournaments=[revise(revise(tournament, name="Renamed"))],   # skips a version
                matches=[make_match("m-1")],
                players=[Player(id="p-1", name="Ana")],
            )
        assert repo.list_matches("t-1") == []
        assert repo.list_players() == []
        assert repo.load_tournament("t-1").name == "Open"

    def test_duplicate_id_in_one_commit(self):
        repo = InMemoryRepository()
        with pytest.raises(ConcurrencyError):
            repo.commit(matches=[make_match("m-1"), make_match("m-1")])
