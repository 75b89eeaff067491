"""
ClubService: asyncio facade over the synchronous engine.

The engine itself is plain synchronous code. ClubService runs each call in a
worker thread (asyncio.to_thread) so a slow repository never blocks the
event loop, and holds an asyncio.Lock per match and per tournament so
awaited calls for the same entity apply in arrival order.

QueueNotifier turns engine notifications into per-subscriber asyncio
queues, so any number of consumers (CLI display, a socket broadcaster,
tests) can follow the same stream of events.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import AsyncIterator, Sequence

from courtside.config import Config
from courtside.events import EngineEvent
from courtside.match import MatchLifecycleManager, PointResult
from courtside.models import BracketMatch, Player, SkillTier, Tournament, TournamentFormat
from courtside.rating import RatingEngine, leaderboard
from courtside.repository import InMemoryRepository, Repository
from courtside.scoring import TennisScore
from courtside.statistics import MatchStatistics
from courtside.tournaments import CompletionResult, StandingEntry
from courtside.tournaments.engine import TournamentEngine

logger = logging.getLogger(__name__)


class QueueNotifier:
    """Fans each event out to every subscribed asyncio.Queue, thread-safely."""

    def __init__(self) -> None:
        self._subscribers: list[tuple[asyncio.AbstractEventLoop, asyncio.Queue[EngineEvent]]] = []
        self._lock = threading.Lock()

    def subscribe(self) -> asyncio.Queue[EngineEvent]:
        """Must be called from a running event loop."""
        queue: asyncio.Queue[EngineEvent] = asyncio.Queue()
        with self._lock:
            self._subscribers.append((asyncio.get_running_loop(), queue))
        return queue

    def unsubscribe(self, queue: asyncio.Queue[EngineEvent]) -> None:
        with self._lock:
            self._subscribers = [(loop, q) for loop, q in self._subscribers if q is not queue]

    def notify(self, event: EngineEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for loop, queue in subscribers:
            if loop.is_closed():
                logger.debug("Dropping event for a subscriber whose loop is closed")
                continue
            loop.call_soon_threadsafe(queue.put_nowait, event)

    async def stream(self) -> AsyncIterator[EngineEvent]:
        queue = self.subscribe()
        try:
            while True:
                yield await queue.get()
        finally:
            self.unsubscribe(queue)


class ClubService:
    def __init__(
        self,
        config: Config | None = None,
        repository: Repository | None = None,
        notifier: QueueNotifier | None = None,
    ) -> None:
        self.config = config or Config()
        self.repository = repository or InMemoryRepository()
        self.notifier = notifier or QueueNotifier()
        self.rating_engine = RatingEngine(self.config.rating.k_factor)
        self.engine = TournamentEngine(self.repository, self.rating_engine, self.config, self.notifier)
        self.lifecycle = MatchLifecycleManager(
            self.repository,
            self.engine,
            self.rating_engine,
            self.config.scoring,
            self.notifier,
        )
        self._match_locks: dict[str, asyncio.Lock] = {}
        self._tournament_locks: dict[str, asyncio.Lock] = {}

    def events(self) -> AsyncIterator[EngineEvent]:
        return self.notifier.stream()

    # ------------------------------------------------------------------ #
    # Players & tournaments                                                #
    # ------------------------------------------------------------------ #

    async def create_player(self, name: str, rating: int | None = None, player_id: str | None = None) -> Player:
        return await asyncio.to_thread(self.engine.create_player, name, rating, None, player_id)

    async def create_tournament(
        self,
        name: str,
        format: TournamentFormat,
        max_participants: int | None = None,
        participant_ids: Sequence[str] = (),
    ) -> Tournament:
        return await asyncio.to_thread(
            self.engine.create_tournament, name, format, max_participants, participant_ids
        )

    async def register_player(self, tournament_id: str, player_id: str) -> Tournament:
        async with self._tournament_lock(tournament_id):
            return await asyncio.to_thread(self.engine.register_player, tournament_id, player_id)

    async def close_registration(self, tournament_id: str) -> Tournament:
        async with self._tournament_lock(tournament_id):
            return await asyncio.to_thread(self.engine.close_registration, tournament_id)

    async def cancel_tournament(self, tournament_id: str) -> Tournament:
        async with self._tournament_lock(tournament_id):
            return await asyncio.to_thread(self.engine.cancel_tournament, tournament_id)

    async def generate_bracket(self, tournament_id: str) -> list[BracketMatch]:
        async with self._tournament_lock(tournament_id):
            return await asyncio.to_thread(self.engine.generate_bracket, tournament_id)

    async def register_result(
        self,
        match_id: str,
        winner_id: str,
        score: TennisScore | str | None = None,
    ) -> BracketMatch:
        match = await asyncio.to_thread(self.repository.load_match, match_id)
        async with self._match_lock(match_id):
            if match.tournament_id is None:
                return await asyncio.to_thread(self.engine.register_result, match_id, winner_id, score)
            async with self._tournament_lock(match.tournament_id):
                return await asyncio.to_thread(self.engine.register_result, match_id, winner_id, score)

    async def check_completion(self, tournament_id: str) -> CompletionResult:
        return await asyncio.to_thread(self.engine.check_completion, tournament_id)

    async def standings(self, tournament_id: str) -> list[StandingEntry]:
        return await asyncio.to_thread(self.engine.standings, tournament_id)

    async def matches(self, tournament_id: str) -> list[BracketMatch]:
        return await asyncio.to_thread(self.engine.matches, tournament_id)

    async def leaderboard(self, skill_tier: SkillTier | None = None) -> list[Player]:
        players = await asyncio.to_thread(self.repository.list_players)
        return leaderboard(players, skill_tier)

    # ------------------------------------------------------------------ #
    # Live scoring                                                         #
    # ------------------------------------------------------------------ #

    async def create_friendly_match(self, player1_id: str, player2_id: str) -> BracketMatch:
        return await asyncio.to_thread(self.lifecycle.create_friendly_match, player1_id, player2_id)

    async def award_point(self, match_id: str, winner_id: str, point_type: str = "point_won") -> PointResult:
        async with self._match_lock(match_id):
            return await asyncio.to_thread(self.lifecycle.award_point, match_id, winner_id, point_type)

    async def undo_last_point(self, match_id: str) -> BracketMatch:
        async with self._match_lock(match_id):
            return await asyncio.to_thread(self.lifecycle.undo_last_point, match_id)

    async def force_end_match(self, match_id: str, winner_override: str | None = None) -> BracketMatch:
        async with self._match_lock(match_id):
            return await asyncio.to_thread(self.lifecycle.force_end_match, match_id, winner_override)

    async def statistics(self, match_id: str) -> MatchStatistics:
        return await asyncio.to_thread(self.lifecycle.statistics, match_id)

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    def _match_lock(self, match_id: str) -> asyncio.Lock:
        return self._match_locks.setdefault(match_id, asyncio.Lock())

    def _tournament_lock(self, tournament_id: str) -> asyncio.Lock:
        return self._tournament_locks.setdefault(tournament_id, asyncio.Lock())
