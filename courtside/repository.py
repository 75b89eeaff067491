"""
Persistence collaborator.

The engine only ever talks to a Repository. Reads are by id; writes go
through a single commit() so multi-entity transitions (result + bracket
advancement + ratings) land together or not at all.

InMemoryRepository is the reference implementation used by the CLI and
the test suite.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Iterable

from courtside.errors import ConcurrencyError, NotFoundError
from courtside.models import BracketMatch, Player, Tournament


class Repository(ABC):
    @abstractmethod
    def load_tournament(self, tournament_id: str) -> Tournament: ...

    @abstractmethod
    def load_match(self, match_id: str) -> BracketMatch: ...

    @abstractmethod
    def load_player(self, player_id: str) -> Player: ...

    @abstractmethod
    def list_matches(self, tournament_id: str) -> list[BracketMatch]:
        """Matches of one tournament in generation order."""

    @abstractmethod
    def list_players(self) -> list[Player]: ...

    @abstractmethod
    def commit(
        self,
        tournaments: Iterable[Tournament] = (),
        matches: Iterable[BracketMatch] = (),
        players: Iterable[Player] = (),
    ) -> None:
        """
        Store every entity or none of them.

        Each entity's version must be exactly the stored version + 1, or 0
        for an entity that is not stored yet.

        Raises:
            ConcurrencyError: any version check fails.
        """


class InMemoryRepository(Repository):
    """Dict-backed repository; commit() is atomic under a single lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tournaments: dict[str, Tournament] = {}
        self._matches: dict[str, BracketMatch] = {}
        self._players: dict[str, Player] = {}

    def load_tournament(self, tournament_id: str) -> Tournament:
        with self._lock:
            try:
                return self._tournaments[tournament_id]
            except KeyError:
                raise NotFoundError("Tournament", tournament_id) from None

    def load_match(self, match_id: str) -> BracketMatch:
        with self._lock:
            try:
                return self._matches[match_id]
            except KeyError:
                raise NotFoundError("Match", match_id) from None

    def load_player(self, player_id: str) -> Player:
        with self._lock:
            try:
                return self._players[player_id]
            except KeyError:
                raise NotFoundError("Player", player_id) from None

    def list_matches(self, tournament_id: str) -> list[BracketMatch]:
        with self._lock:
            # dicts keep insertion order, which is generation order
            return [m for m in self._matches.values() if m.tournament_id == tournament_id]

    def list_players(self) -> list[Player]:
        with self._lock:
            return list(self._players.values())

    def commit(
        self,
        tournaments: Iterable[Tournament] = (),
        matches: Iterable[BracketMatch] = (),
        players: Iterable[Player] = (),
    ) -> None:
        batches = (
            (self._tournaments, list(tournaments)),
            (self._matches, list(matches)),
            (self._players, list(players)),
        )
        with self._lock:
            for store, entities in batches:
                seen: set[str] = set()
                for entity in entities:
                    if entity.id in seen:
                        raise ConcurrencyError(f"{entity.id!r} appears twice in one commit")
                    seen.add(entity.id)
                    _check_version(store.get(entity.id), entity)
            for store, entities in batches:
                for entity in entities:
                    store[entity.id] = entity


def _check_version(current, incoming) -> None:
    expected = 0 if current is None else current.version + 1
    if incoming.version != expected:
        raise ConcurrencyError(
            f"Version conflict on {incoming.id!r}: expected {expected}, got {incoming.version}"
        )
