"""
Tests for the asyncio facade: ClubService call serialisation and the
QueueNotifier event stream.
"""

from __future__ import annotations

import asyncio
import unittest

from courtside.events import (
    BracketGeneratedEvent,
    MatchCompletedEvent,
    PointAwardedEvent,
    TournamentCompletedEvent,
)
from courtside.service import ClubService, QueueNotifier


# --------------------------------------------------------------------------- #
# Helpers                                                                      #
# --------------------------------------------------------------------------- #

async def setup_tournament(service: ClubService, names: list[str], fmt: str = "single_elimination") -> str:
    for name in names:
        await service.create_player(name.title(), player_id=name)
    tournament = await service.create_tournament("Club Open", fmt, max_participants=len(names))
    for name in names:
        await service.register_player(tournament.id, name)
    await service.close_registration(tournament.id)
    await service.generate_bracket(tournament.id)
    return tournament.id


async def drain(queue: asyncio.Queue) -> list:
    # Let call_soon_threadsafe callbacks run
    await asyncio.sleep(0)
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


# --------------------------------------------------------------------------- #
# QueueNotifier                                                                #
# --------------------------------------------------------------------------- #

class TestQueueNotifier(unittest.IsolatedAsyncioTestCase):
    async def test_fans_out_to_every_subscriber(self):
        notifier = QueueNotifier()
        first, second = notifier.subscribe(), notifier.subscribe()
        event = TournamentCompletedEvent(tournament_id="t-1", format="round_robin", winner_id=None)
        notifier.notify(event)
        self.assertEqual(await asyncio.wait_for(first.get(), 1), event)
        self.assertEqual(await asyncio.wait_for(second.get(), 1), event)

    async def test_unsubscribed_queue_gets_nothing(self):
        notifier = QueueNotifier()
        queue = notifier.subscribe()
        notifier.unsubscribe(queue)
        notifier.notify(TournamentCompletedEvent(tournament_id="t-1", format="round_robin", winner_id=None))
        self.assertEqual(await drain(queue), [])

    async def test_notify_from_worker_thread(self):
        notifier = QueueNotifier()
        queue = notifier.subscribe()
        event = TournamentCompletedEvent(tournament_id="t-1", format="round_robin", winner_id="ana")
        await asyncio.to_thread(notifier.notify, event)
        self.assertEqual(await asyncio.wait_for(queue.get(), 1), event)


# --------------------------------------------------------------------------- #
# ClubService                                                                  #
# --------------------------------------------------------------------------- #

class TestClubService(unittest.IsolatedAsyncioTestCase):
    async def test_bracket_generation_is_streamed(self):
        service = ClubService()
        queue = service.notifier.subscribe()
        await setup_tournament(service, ["ana", "ben", "cai"])
        events = await drain(queue)
        self.assertEqual(len(events), 1)
        self.assertIsInstance(events[0], BracketGeneratedEvent)
        self.assertEqual(events[0].bye_count, 1)

    async def test_concurrent_points_on_one_match_all_apply(self):
        service = ClubService()
        tid = await setup_tournament(service, ["ana", "ben"])
        (match,) = await service.matches(tid)
        await asyncio.gather(*(service.award_point(match.id, "ana") for _ in range(8)))
        score = service.lifecycle.current_score(match.id)
        self.assertEqual(score.sets[0].player1_games, 2)
        self.assertEqual(len(service.lifecycle.point_log(match.id)), 8)

    async def test_matches_score_independently(self):
        service = ClubService()
        tid = await setup_tournament(service, ["ana", "ben", "cai", "dee"])
        first, second = [m for m in await service.matches(tid) if m.round == 1]
        await asyncio.gather(
            *(service.award_point(first.id, "ana") for _ in range(4)),
            *(service.award_point(second.id, "dee") for _ in range(4)),
        )
        self.assertEqual(service.lifecycle.current_score(first.id).sets[0].player1_games, 1)
        self.assertEqual(service.lifecycle.current_score(second.id).sets[0].player2_games, 1)

    async def test_full_match_through_the_service(self):
        service = ClubService()
        queue = service.notifier.subscribe()
        tid = await setup_tournament(service, ["ana", "ben"])
        (match,) = await service.matches(tid)
        for _ in range(48):
            result = await service.award_point(match.id, "ben", "winner")
        self.assertTrue(result.match_complete)
        completion = await service.check_completion(tid)
        self.assertEqual(completion.winner_id, "ben")

        events = await drain(queue)
        self.assertEqual(sum(isinstance(e, PointAwardedEvent) for e in events), 48)
        self.assertEqual(sum(isinstance(e, MatchCompletedEvent) for e in events), 1)
        self.assertIsInstance(events[-1], PointAwardedEvent)
        self.assertTrue(any(isinstance(e, TournamentCompletedEvent) for e in events))

        stats = await service.statistics(match.id)
        self.assertEqual(stats.for_player("ben").winners, 48)
        board = await service.leaderboard()
        self.assertEqual([p.id for p in board], ["ben", "ana"])

    async def test_undo_and_force_end(self):
        service = ClubService()
        tid = await setup_tournament(service, ["ana", "ben"])
        (match,) = await service.matches(tid)
        await service.award_point(match.id, "ana")
        restored = await service.undo_last_point(match.id)
        self.assertEqual(restored.status, "pending")
        ended = await service.force_end_match(match.id, winner_override="ben")
        self.assertEqual(ended.winner_id, "ben")
        self.assertTrue(ended.ended_early)

    async def test_register_result_and_standings(self):
        service = ClubService()
        tid = await setup_tournament(service, ["ana", "ben", "cai"], fmt="round_robin")
        for match in await service.matches(tid):
            await service.register_result(match.id, match.player1_id, "6-4, 6-4")
        table = await service.standings(tid)
        self.assertEqual([e.player_id for e in table], ["ana", "ben", "cai"])
        self.assertTrue((await service.check_completion(tid)).completed)

    async def test_friendly_match(self):
        service = ClubService()
        await service.create_player("Ana", player_id="ana")
        await service.create_player("Ben", player_id="ben")
        match = await service.create_friendly_match("ana", "ben")
        for _ in range(48):
            await service.award_point(match.id, "ana")
        board = await service.leaderboard("intermediate")
        self.assertEqual(board[0].id, "ana")
        self.assertEqual(board[0].rating, 1516)

    async def test_events_stream(self):
        service = ClubService()
        stream = service.events()
        waiter = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)
        await setup_tournament(service, ["ana", "ben"])
        event = await asyncio.wait_for(waiter, 1)
        self.assertIsInstance(event, BracketGeneratedEvent)
        await stream.aclose()


if __name__ == "__main__":
    unittest.main()
