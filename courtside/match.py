"""
MatchLifecycleManager: point-by-point play for one match at a time.

Each award_point() call runs the ScoreStateMachine, persists the new score
and remembers the previous one so undo_last_point() can restore it exactly.
When the machine signals a decided match, the result goes to the
TournamentEngine (tournament matches) or straight to the RatingEngine
(friendly matches) in the same commit as the final score.

Calls for the same match are serialised by a per-match lock; different
matches never wait on each other.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from courtside.config import ScoringConfig
from courtside.errors import (
    AlreadyFinalizedError,
    EmptyHistoryError,
    StateError,
    ValidationError,
)
from courtside.events import (
    MatchCompletedEvent,
    Notifier,
    PointAwardedEvent,
    PointEvent,
    RatingChange,
)
from courtside.models import BracketMatch, MatchStatus, new_id, revise
from courtside.rating import RatingEngine
from courtside.repository import Repository
from courtside.scoring import PointOutcome, ScoreStateMachine, TennisScore, score_to_dict
from courtside.statistics import MatchStatistics, compute_statistics
from courtside.tournaments.engine import TournamentEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PointResult:
    match: BracketMatch           # as stored after this point
    outcome: PointOutcome
    event: PointEvent

    @property
    def match_complete(self) -> bool:
        return self.outcome.match_complete


class MatchLifecycleManager:
    def __init__(
        self,
        repository: Repository,
        tournament_engine: TournamentEngine,
        rating_engine: RatingEngine | None = None,
        scoring_config: ScoringConfig | None = None,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.repository = repository
        self.tournament_engine = tournament_engine
        self.rating_engine = rating_engine or tournament_engine.rating_engine
        self.scoring_config = scoring_config or tournament_engine.config.scoring
        self.notifier: Notifier = notifier or tournament_engine.notifier
        self._clock = clock
        # match_id -> stack of (score, status) as they were before each point
        self._history: dict[str, list[tuple[TennisScore | None, MatchStatus]]] = {}
        self._points: dict[str, list[PointEvent]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def create_friendly_match(self, player1_id: str, player2_id: str) -> BracketMatch:
        """Create an unbracketed challenge match between two players."""
        if player1_id == player2_id:
            raise ValidationError("A player cannot challenge themselves.")
        self.repository.load_player(player1_id)
        self.repository.load_player(player2_id)
        match = BracketMatch(
            id=new_id("m"),
            tournament_id=None,
            round=1,
            match_number=1,
            bracket="friendly",
            player1_id=player1_id,
            player2_id=player2_id,
        )
        self.repository.commit(matches=[match])
        logger.info("Friendly match %s: %s vs %s", match.id, player1_id, player2_id)
        return match

    def award_point(
        self,
        match_id: str,
        winner_id: str,
        point_type: str = "point_won",
    ) -> PointResult:
        """
        Award one point to winner_id.

        Raises:
            NotFoundError: unknown match.
            StateError: match finished or not ready to play.
            ValidationError: winner not in the match, or unknown point_type.
            CorruptStateError: the stored score is invalid.
        """
        with self._lock_for(match_id):
            match = self.repository.load_match(match_id)
            if match.is_finished:
                raise StateError(f"{match.label} is already {match.status}.")
            if not match.is_playable:
                raise StateError(f"{match.label} is still waiting for its players.")

            machine = self._machine_for(match)
            slot = machine.slot_of(winner_id)
            current = match.score if match.score is not None else machine.initial_score()
            outcome = machine.apply_point(current, slot, point_type)
            event = PointEvent(
                match_id=match_id,
                winner_id=winner_id,
                winner_slot=slot,
                point_type=outcome.point_type,
                timestamp=self._clock(),
            )

            if outcome.match_complete:
                match_winner = machine.player_id(outcome.match_winner_slot)
                if match.tournament_id is not None:
                    stored = self.tournament_engine.register_result(match_id, match_winner, outcome.score)
                else:
                    stored = self._complete_friendly(match, match_winner, outcome.score)
                self._history.pop(match_id, None)
            else:
                stored = revise(match, score=outcome.score, status="in_progress")
                self.repository.commit(matches=[stored])
                self._history.setdefault(match_id, []).append((match.score, match.status))
            self._points.setdefault(match_id, []).append(event)

        self.notifier.notify(
            PointAwardedEvent(
                point=event,
                score=score_to_dict(outcome.score),
                game_won_by=machine.player_id(outcome.game_winner_slot) if outcome.game_winner_slot else None,
                set_won_by=machine.player_id(outcome.set_winner_slot) if outcome.set_winner_slot else None,
            )
        )
        return PointResult(match=stored, outcome=outcome, event=event)

    def undo_last_point(self, match_id: str) -> BracketMatch:
        """
        Restore the score as it was before the most recent point.

        Raises:
            AlreadyFinalizedError: the match is completed or cancelled.
            EmptyHistoryError: no point has been awarded yet.
        """
        with self._lock_for(match_id):
            match = self.repository.load_match(match_id)
            if match.is_finished:
                raise AlreadyFinalizedError(f"{match.label} is {match.status}; its score is final.")
            history = self._history.get(match_id)
            if not history:
                raise EmptyHistoryError(f"No points to undo for {match.label}.")
            previous_score, previous_status = history[-1]
            restored = revise(match, score=previous_score, status=previous_status)
            self.repository.commit(matches=[restored])
            history.pop()
            undone = self._points[match_id].pop()
        logger.info("Undid %s point for %s in %s", undone.point_type, undone.winner_id, match.label)
        return restored

    def force_end_match(self, match_id: str, winner_override: str | None = None) -> BracketMatch:
        """
        End a match early.

        Without an override the winner is whoever leads in completed sets. A
        level set count leaves the winner undetermined: the match is
        cancelled, nobody is rated and nobody advances.
        """
        with self._lock_for(match_id):
            match = self.repository.load_match(match_id)
            if match.is_finished:
                raise AlreadyFinalizedError(f"{match.label} is already {match.status}.")
            if not match.is_playable:
                raise StateError(f"{match.label} is still waiting for its players.")

            machine = self._machine_for(match)
            score = match.score if match.score is not None else machine.initial_score()
            if winner_override is not None:
                machine.slot_of(winner_override)
                winner = winner_override
            else:
                sets_1, sets_2 = machine.sets_won(score)
                if sets_1 == sets_2:
                    winner = None
                else:
                    winner = machine.player_id(1 if sets_1 > sets_2 else 2)

            if winner is None:
                logger.warning(
                    "%s force-ended level at %r; no winner, match cancelled",
                    match.label, machine.summary(score),
                )
                if match.tournament_id is not None:
                    ended = self.tournament_engine.cancel_match(match_id, score)
                else:
                    ended = self._cancel_friendly(match, machine, score)
            else:
                logger.warning("%s force-ended; %s awarded the match", match.label, winner)
                if match.tournament_id is not None:
                    ended = self.tournament_engine.register_result(match_id, winner, score, ended_early=True)
                else:
                    ended = self._complete_friendly(match, winner, score, ended_early=True)
            self._history.pop(match_id, None)
            return ended

    def current_score(self, match_id: str) -> TennisScore:
        match = self.repository.load_match(match_id)
        if match.score is not None:
            return match.score
        return self._machine_for(match).initial_score()

    def point_log(self, match_id: str) -> list[PointEvent]:
        return list(self._points.get(match_id, ()))

    def statistics(self, match_id: str) -> MatchStatistics:
        match = self.repository.load_match(match_id)
        return compute_statistics(match, self.point_log(match_id), self.scoring_config)

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    def _lock_for(self, match_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(match_id, threading.Lock())

    def _machine_for(self, match: BracketMatch) -> ScoreStateMachine:
        return ScoreStateMachine(match.player1_id, match.player2_id, self.scoring_config)

    def _complete_friendly(
        self,
        match: BracketMatch,
        winner_id: str,
        score: TennisScore,
        ended_early: bool = False,
    ) -> BracketMatch:
        machine = self._machine_for(match)
        summary = machine.summary(score)
        player1 = self.repository.load_player(match.player1_id)
        player2 = self.repository.load_player(match.player2_id)
        rated1, rated2 = self.rating_engine.apply(player1, player2, winner_id)
        completed = revise(
            match,
            status="completed",
            winner_id=winner_id,
            score=score,
            score_summary=summary,
            ended_early=ended_early,
        )
        self.repository.commit(matches=[completed], players=[rated1, rated2])
        logger.info("%s won friendly %s (%s)", winner_id, match.id, summary)
        self.notifier.notify(
            MatchCompletedEvent(
                match_id=match.id,
                tournament_id=None,
                winner_id=winner_id,
                loser_id=completed.loser_id,
                score_summary=summary,
                rating_changes=(
                    RatingChange(player1.id, player1.rating, rated1.rating),
                    RatingChange(player2.id, player2.rating, rated2.rating),
                ),
                ended_early=ended_early,
            )
        )
        return completed

    def _cancel_friendly(
        self,
        match: BracketMatch,
        machine: ScoreStateMachine,
        score: TennisScore,
    ) -> BracketMatch:
        summary = machine.summary(score)
        cancelled = revise(
            match,
            status="cancelled",
            score=score,
            score_summary=summary or None,
            ended_early=True,
        )
        self.repository.commit(matches=[cancelled])
        self.notifier.notify(
            MatchCompletedEvent(
                match_id=match.id,
                tournament_id=None,
                winner_id=None,
                loser_id=None,
                score_summary=summary,
                ended_early=True,
            )
        )
        return cancelled
