"""
TournamentEngine: registration, bracket generation, result registration and
completion for every tournament format.

Every operation loads what it needs from the Repository, builds all changes
in memory and then commits once. A failure anywhere before the commit
leaves the stored state untouched; a lost compare-and-swap surfaces as
ConcurrencyError (or AlreadyGeneratedError for bracket generation).

Events are handed to the Notifier only after the commit succeeded.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Iterable, Sequence

from courtside.config import Config
from courtside.errors import (
    AlreadyGeneratedError,
    ConcurrencyError,
    StateError,
    ValidationError,
)
from courtside.events import (
    BracketGeneratedEvent,
    MatchCompletedEvent,
    Notifier,
    NullNotifier,
    RatingChange,
    TournamentCompletedEvent,
)
from courtside.models import (
    TOURNAMENT_FORMATS,
    BracketMatch,
    Player,
    SkillTier,
    Tournament,
    TournamentFormat,
    new_id,
    revise,
)
from courtside.rating import RatingEngine
from courtside.repository import Repository
from courtside.scoring import ScoreStateMachine, TennisScore, parse_summary
from courtside.tournaments import (
    BracketFormat,
    BracketWorkspace,
    CompletionResult,
    StandingEntry,
    create_bracket_format,
)

logger = logging.getLogger(__name__)


class TournamentEngine:
    def __init__(
        self,
        repository: Repository,
        rating_engine: RatingEngine | None = None,
        config: Config | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.repository = repository
        self.config = config or Config()
        self.rating_engine = rating_engine or RatingEngine(self.config.rating.k_factor)
        self.notifier: Notifier = notifier or NullNotifier()
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------ #
    # Players & registration                                              #
    # ------------------------------------------------------------------ #

    def create_player(
        self,
        name: str,
        rating: int | None = None,
        skill_tier: SkillTier | None = None,
        player_id: str | None = None,
    ) -> Player:
        if not name or not name.strip():
            raise ValidationError("Player name must not be empty.")
        player = Player(
            id=player_id or new_id("p"),
            name=name.strip(),
            rating=self.config.rating.initial_rating if rating is None else rating,
            skill_tier=skill_tier,
        )
        self.repository.commit(players=[player])
        return player

    def create_tournament(
        self,
        name: str,
        format: TournamentFormat,
        max_participants: int | None = None,
        participant_ids: Sequence[str] = (),
    ) -> Tournament:
        """
        Create a tournament in registration_open, optionally with initial entrants.

        Raises:
            ValidationError: bad name, format or size, or duplicate entrants.
            NotFoundError: an entrant id is unknown.
        """
        if not name or not name.strip():
            raise ValidationError("Tournament name must not be empty.")
        if format not in TOURNAMENT_FORMATS:
            raise ValidationError(
                f"Unknown tournament format: {format!r}. Valid formats: {', '.join(TOURNAMENT_FORMATS)}"
            )
        capacity = self.config.tournament.default_max_participants if max_participants is None else max_participants
        if capacity < 2:
            raise ValidationError(f"max_participants must be >= 2, got {capacity}")
        ids = tuple(participant_ids)
        if len(ids) > capacity:
            raise ValidationError(f"{len(ids)} participants exceed max_participants={capacity}")
        if len(set(ids)) != len(ids):
            raise ValidationError("A player is listed more than once.")
        for pid in ids:
            self.repository.load_player(pid)

        tournament = Tournament(
            id=new_id("t"),
            name=name.strip(),
            format=format,
            max_participants=capacity,
            participant_ids=ids,
        )
        self.repository.commit(tournaments=[tournament])
        logger.info("Created %s tournament %r (%s)", format, tournament.name, tournament.id)
        return tournament

    def register_player(self, tournament_id: str, player_id: str) -> Tournament:
        with self._lock_for(tournament_id):
            tournament = self.repository.load_tournament(tournament_id)
            self.repository.load_player(player_id)
            if tournament.status != "registration_open":
                raise StateError(f"Registration is not open (status: {tournament.status}).")
            if player_id in tournament.participant_ids:
                raise ValidationError(f"Player {player_id!r} is already registered.")
            if len(tournament.participant_ids) >= tournament.max_participants:
                raise StateError(f"Tournament is full ({tournament.max_participants} players).")
            updated = revise(tournament, participant_ids=tournament.participant_ids + (player_id,))
            self.repository.commit(tournaments=[updated])
            return updated

    def close_registration(self, tournament_id: str) -> Tournament:
        with self._lock_for(tournament_id):
            tournament = self.repository.load_tournament(tournament_id)
            if tournament.status != "registration_open":
                raise StateError(f"Cannot close registration from status {tournament.status}.")
            updated = revise(tournament, status="registration_closed")
            self.repository.commit(tournaments=[updated])
            return updated

    def cancel_tournament(self, tournament_id: str) -> Tournament:
        """Move to the terminal cancelled status; unfinished matches are cancelled with it."""
        with self._lock_for(tournament_id):
            tournament = self.repository.load_tournament(tournament_id)
            if tournament.is_terminal:
                raise StateError(f"Tournament is already {tournament.status}.")
            workspace = BracketWorkspace(self.repository.list_matches(tournament_id))
            for match in workspace.all():
                if not match.is_finished:
                    workspace.put(replace(match, status="cancelled"))
            updated = revise(tournament, status="cancelled")
            self.repository.commit(tournaments=[updated], matches=workspace.changed())
            logger.warning("Tournament %r cancelled", tournament.name)
            return updated

    @staticmethod
    def seed_participants(players: Iterable[Player]) -> list[Player]:
        """Highest rating first; ties keep registration order (sorted() is stable)."""
        return sorted(players, key=lambda p: -p.rating)

    # ------------------------------------------------------------------ #
    # Bracket                                                              #
    # ------------------------------------------------------------------ #

    def generate_bracket(self, tournament_id: str) -> list[BracketMatch]:
        """
        Build the full bracket or schedule, exactly once.

        Raises:
            AlreadyGeneratedError: the bracket exists, or a concurrent call won.
            StateError: registration is not closed.
            ValidationError: fewer than two participants.
        """
        with self._lock_for(tournament_id):
            tournament = self.repository.load_tournament(tournament_id)
            if tournament.bracket_generated:
                raise AlreadyGeneratedError(f"Bracket for {tournament.name!r} was already generated.")
            if tournament.status != "registration_closed":
                raise StateError(
                    f"Bracket generation needs status registration_closed, not {tournament.status}."
                )
            if len(tournament.participant_ids) < 2:
                raise ValidationError("A tournament needs at least 2 participants.")

            players = [self.repository.load_player(pid) for pid in tournament.participant_ids]
            seeded_ids = [p.id for p in self.seed_participants(players)]
            bracket_format = self._format_for(tournament)
            workspace = BracketWorkspace(bracket_format.generate(tournament, seeded_ids), stored=False)
            bracket_format.resolve_byes(workspace)
            matches = workspace.changed()

            updated = revise(
                tournament,
                status="in_progress",
                seeded_ids=tuple(seeded_ids),
                bracket_generated=True,
            )
            try:
                self.repository.commit(tournaments=[updated], matches=matches)
            except ConcurrencyError as exc:
                raise AlreadyGeneratedError(
                    f"Bracket for {tournament.name!r} was generated concurrently."
                ) from exc

        bye_count = sum(1 for m in matches if m.is_bye)
        logger.info(
            "Generated %s bracket for %r: %d matches, %d byes",
            tournament.format, tournament.name, len(matches), bye_count,
        )
        self.notifier.notify(
            BracketGeneratedEvent(
                tournament_id=tournament.id,
                format=tournament.format,
                seeded_ids=tuple(seeded_ids),
                match_count=len(matches),
                bye_count=bye_count,
            )
        )
        return matches

    def advance_winner(self, completed_match: BracketMatch) -> list[BracketMatch]:
        """
        Apply the bracket consequences of an already-completed match and commit them.

        Placement is idempotent, so re-advancing a match changes nothing.
        Returns the matches that changed.
        """
        if completed_match.tournament_id is None:
            return []
        with self._lock_for(completed_match.tournament_id):
            stored = self.repository.load_match(completed_match.id)
            if not stored.is_finished:
                raise StateError(f"{stored.label} has not finished yet.")
            tournament = self.repository.load_tournament(stored.tournament_id)
            bracket_format = self._format_for(tournament)
            workspace = BracketWorkspace(self.repository.list_matches(tournament.id))
            bracket_format.advance(workspace, stored)
            bracket_format.resolve_byes(workspace)
            tournaments, completion = self._settle(tournament, bracket_format, workspace)
            changed = workspace.changed()
            self.repository.commit(tournaments=tournaments, matches=changed)
        self._announce_completion(tournament, completion, tournaments)
        return changed

    def register_result(
        self,
        match_id: str,
        winner_id: str,
        score: TennisScore | str | None = None,
        *,
        ended_early: bool = False,
    ) -> BracketMatch:
        """
        Record a decided tournament match, advance the bracket and update ratings.

        score may be the final TennisScore, a summary string like "6-4, 7-6",
        or None to keep the match's live score.

        Raises:
            NotFoundError: unknown match.
            StateError: match already finished, not ready, or tournament not running.
            ValidationError: winner is not in the match, or the score is malformed.
        """
        match = self.repository.load_match(match_id)
        if match.tournament_id is None:
            raise ValidationError(f"{match.label} is not a tournament match.")

        with self._lock_for(match.tournament_id):
            match = self.repository.load_match(match_id)
            if match.is_finished:
                raise StateError(f"{match.label} is already {match.status}.")
            tournament = self.repository.load_tournament(match.tournament_id)
            if tournament.status != "in_progress":
                raise StateError(f"Tournament is {tournament.status}, not in_progress.")
            if not match.is_playable:
                raise StateError(f"{match.label} does not have both players yet.")
            if winner_id not in match.players:
                raise ValidationError(f"{winner_id!r} is not playing {match.label}.")

            final_score, summary = self._resolve_score(match, winner_id, score, ended_early)
            completed = replace(
                match,
                status="completed",
                winner_id=winner_id,
                score=final_score,
                score_summary=summary,
                ended_early=ended_early,
            )
            bracket_format = self._format_for(tournament)
            workspace = BracketWorkspace(self.repository.list_matches(tournament.id))
            workspace.put(completed)
            bracket_format.advance(workspace, completed)
            bracket_format.resolve_byes(workspace)

            player1 = self.repository.load_player(match.player1_id)
            player2 = self.repository.load_player(match.player2_id)
            rated1, rated2 = self.rating_engine.apply(player1, player2, winner_id)

            tournaments, completion = self._settle(tournament, bracket_format, workspace)
            changed = workspace.changed()
            self.repository.commit(tournaments=tournaments, matches=changed, players=[rated1, rated2])

        stored = next(m for m in changed if m.id == match_id)
        logger.info(
            "%s won %s (%s)%s", winner_id, stored.label, summary, " [ended early]" if ended_early else ""
        )
        self.notifier.notify(
            MatchCompletedEvent(
                match_id=stored.id,
                tournament_id=tournament.id,
                winner_id=winner_id,
                loser_id=stored.loser_id,
                score_summary=summary,
                rating_changes=(
                    RatingChange(player1.id, player1.rating, rated1.rating),
                    RatingChange(player2.id, player2.rating, rated2.rating),
                ),
                ended_early=ended_early,
            )
        )
        self._announce_completion(tournament, completion, tournaments)
        return stored

    def cancel_match(self, match_id: str, score: TennisScore | None = None) -> BracketMatch:
        """
        End a tournament match with no winner: no rating change, nobody advances.

        Later matches that can no longer fill both slots resolve as byes.
        """
        match = self.repository.load_match(match_id)
        if match.tournament_id is None:
            raise ValidationError(f"{match.label} is not a tournament match.")

        with self._lock_for(match.tournament_id):
            match = self.repository.load_match(match_id)
            if match.is_finished:
                raise StateError(f"{match.label} is already {match.status}.")
            tournament = self.repository.load_tournament(match.tournament_id)
            if tournament.status != "in_progress":
                raise StateError(f"Tournament is {tournament.status}, not in_progress.")

            final_score = score if score is not None else match.score
            summary = self._summary_for(match, final_score) if final_score is not None else None
            cancelled = replace(
                match,
                status="cancelled",
                winner_id=None,
                score=final_score,
                score_summary=summary,
                ended_early=True,
            )
            bracket_format = self._format_for(tournament)
            workspace = BracketWorkspace(self.repository.list_matches(tournament.id))
            workspace.put(cancelled)
            bracket_format.advance(workspace, cancelled)
            bracket_format.resolve_byes(workspace)
            tournaments, completion = self._settle(tournament, bracket_format, workspace)
            changed = workspace.changed()
            self.repository.commit(tournaments=tournaments, matches=changed)

        stored = next(m for m in changed if m.id == match_id)
        logger.warning("%s cancelled without a winner", stored.label)
        self.notifier.notify(
            MatchCompletedEvent(
                match_id=stored.id,
                tournament_id=tournament.id,
                winner_id=None,
                loser_id=None,
                score_summary=summary or "",
                ended_early=True,
            )
        )
        self._announce_completion(tournament, completion, tournaments)
        return stored

    def check_completion(self, tournament_id: str) -> CompletionResult:
        tournament = self.repository.load_tournament(tournament_id)
        if tournament.status == "completed":
            return CompletionResult(completed=True, winner_id=tournament.winner_id)
        if not tournament.bracket_generated:
            return CompletionResult(completed=False)
        workspace = BracketWorkspace(self.repository.list_matches(tournament_id))
        return self._format_for(tournament).check_completion(tournament, workspace)

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    def matches(self, tournament_id: str) -> list[BracketMatch]:
        return self.repository.list_matches(tournament_id)

    def playable_matches(self, tournament_id: str) -> list[BracketMatch]:
        return [m for m in self.repository.list_matches(tournament_id) if m.is_playable]

    def standings(self, tournament_id: str) -> list[StandingEntry]:
        tournament = self.repository.load_tournament(tournament_id)
        matches = self.repository.list_matches(tournament_id)
        return self._format_for(tournament).standings(tournament, matches)

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    def _lock_for(self, tournament_id: str) -> threading.RLock:
        with self._locks_guard:
            return self._locks.setdefault(tournament_id, threading.RLock())

    def _format_for(self, tournament: Tournament) -> BracketFormat:
        return create_bracket_format(tournament.format, self.config.tournament.seeding)

    def _settle(
        self,
        tournament: Tournament,
        bracket_format: BracketFormat,
        workspace: BracketWorkspace,
    ) -> tuple[list[Tournament], CompletionResult]:
        """Check completion on the working copy; return the tournament update to commit, if any."""
        completion = bracket_format.check_completion(tournament, workspace)
        if not completion.completed or tournament.status == "completed":
            return [], completion
        return [revise(tournament, status="completed", winner_id=completion.winner_id)], completion

    def _announce_completion(
        self,
        tournament: Tournament,
        completion: CompletionResult,
        committed: list[Tournament],
    ) -> None:
        if not committed:
            return
        if completion.winner_id is None:
            logger.warning("Tournament %r completed without a champion", tournament.name)
        else:
            logger.info("Tournament %r completed; champion %s", tournament.name, completion.winner_id)
        self.notifier.notify(
            TournamentCompletedEvent(
                tournament_id=tournament.id,
                format=tournament.format,
                winner_id=completion.winner_id,
            )
        )

    def _machine_for(self, match: BracketMatch) -> ScoreStateMachine:
        return ScoreStateMachine(match.player1_id, match.player2_id, self.config.scoring)

    def _summary_for(self, match: BracketMatch, score: TennisScore) -> str:
        machine = self._machine_for(match)
        machine.validate(score)
        return machine.summary(score)

    def _resolve_score(
        self,
        match: BracketMatch,
        winner_id: str,
        score: TennisScore | str | None,
        ended_early: bool,
    ) -> tuple[TennisScore | None, str]:
        if isinstance(score, str):
            sets = parse_summary(score)
            if not sets:
                raise ValidationError(f"Score {score!r} has no sets.")
            if not ended_early:
                won_by_1 = sum(1 for a, b in sets if a > b)
                won_by_2 = sum(1 for a, b in sets if b > a)
                winner_sets, other_sets = (
                    (won_by_1, won_by_2) if match.slot_of(winner_id) == 1 else (won_by_2, won_by_1)
                )
                if winner_sets <= other_sets:
                    raise ValidationError(f"Score {score.strip()!r} was not won by {winner_id!r}.")
            # The summary replaces any abandoned live score.
            return None, score.strip()
        final = score if score is not None else match.score
        if final is None:
            raise ValidationError(f"A score is required to complete {match.label}.")
        machine = self._machine_for(match)
        machine.validate(final)
        if not ended_early:
            decided = machine.match_winner_slot(final)
            if decided is None:
                raise ValidationError(f"Score {machine.summary(final)!r} does not decide {match.label}.")
            if machine.player_id(decided) != winner_id:
                raise ValidationError(f"Score {machine.summary(final)!r} was won by the other player.")
        return final, machine.summary(final)
