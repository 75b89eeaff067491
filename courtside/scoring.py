"""
Tennis score state machine.

TennisScore is plain immutable data; ScoreStateMachine holds the rules and
the two player ids and turns (score, point) into a new score. Nothing here
touches storage, clocks or randomness, so apply_point() is fully
deterministic.

Game points are kept as integers. Regular games are normalised so that deuce
is always 3-3 and advantage 4-3; that keeps the wire format (labels) and the
in-memory form in one-to-one correspondence. Tiebreak points are raw counts.

The last entry of TennisScore.sets is the set in progress, if any. A new set
is appended when its first game is won.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

from courtside.config import ScoringConfig
from courtside.errors import CorruptStateError, StateError, ValidationError
from courtside.events import PointType, normalize_point_type

_LABELS = ("0", "15", "30", "40")
_LABEL_TO_POINTS = {"0": 0, "15": 1, "30": 2, "40": 3, "AD": 4}
_SUMMARY_SET = re.compile(r"^(\d+)-(\d+)(?:\((\d+)\))?$")


@dataclass(frozen=True)
class GameRecord:
    player1_points: int
    player2_points: int
    server_id: str

    @property
    def winner_slot(self) -> int:
        return 1 if self.player1_points > self.player2_points else 2


@dataclass(frozen=True)
class SetScore:
    player1_games: int = 0
    player2_games: int = 0
    games: tuple[GameRecord, ...] = ()


@dataclass(frozen=True)
class TennisScore:
    server_id: str
    sets: tuple[SetScore, ...] = ()
    player1_points: int = 0
    player2_points: int = 0
    is_tiebreak: bool = False

    def current_game_labels(self) -> tuple[str, str]:
        """Display labels for the game in progress, e.g. ("AD", "40") or ("5", "3")."""
        a, b = self.player1_points, self.player2_points
        if self.is_tiebreak:
            return str(a), str(b)
        if a >= 3 and b >= 3:
            if a == b:
                return "40", "40"
            return ("AD", "40") if a > b else ("40", "AD")
        return _LABELS[a], _LABELS[b]


@dataclass(frozen=True)
class PointOutcome:
    """Result of one apply_point() call; match_winner_slot signals the caller to finalise."""

    score: TennisScore
    winner_slot: int
    point_type: PointType
    game_winner_slot: int | None = None
    set_winner_slot: int | None = None
    match_winner_slot: int | None = None

    @property
    def match_complete(self) -> bool:
        return self.match_winner_slot is not None


class ScoreStateMachine:
    """Applies tennis scoring rules for one pairing of players."""

    def __init__(
        self,
        player1_id: str,
        player2_id: str,
        rules: ScoringConfig | None = None,
    ) -> None:
        if player1_id == player2_id:
            raise ValidationError("A match needs two different players.")
        self.player1_id = player1_id
        self.player2_id = player2_id
        self.rules = rules or ScoringConfig()

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def initial_score(self, server_id: str | None = None) -> TennisScore:
        server = server_id or self.player1_id
        if server not in (self.player1_id, self.player2_id):
            raise ValidationError(f"Server {server!r} is not playing this match.")
        return TennisScore(server_id=server)

    def slot_of(self, player_id: str) -> int:
        if player_id == self.player1_id:
            return 1
        if player_id == self.player2_id:
            return 2
        raise ValidationError(f"Player {player_id!r} is not playing this match.")

    def player_id(self, slot: int) -> str:
        return self.player1_id if slot == 1 else self.player2_id

    def apply_point(
        self,
        score: TennisScore,
        winner_slot: int,
        point_type: str = "point_won",
    ) -> PointOutcome:
        """
        Award one point and return the resulting score.

        Raises:
            CorruptStateError: score violates the scoring invariants.
            StateError: the match in score is already decided.
            ValidationError: winner_slot or point_type is invalid.
        """
        self.validate(score)
        if self.match_winner_slot(score) is not None:
            raise StateError("Match is already decided; no further points can be applied.")
        if winner_slot not in (1, 2):
            raise ValidationError(f"winner_slot must be 1 or 2, got {winner_slot!r}")
        try:
            canonical_type = normalize_point_type(point_type)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        points = [score.player1_points, score.player2_points]
        points[winner_slot - 1] += 1

        if not self._game_over(points[0], points[1], score.is_tiebreak):
            if not score.is_tiebreak:
                points = _normalise_deuce(points)
            return PointOutcome(
                score=replace(score, player1_points=points[0], player2_points=points[1]),
                winner_slot=winner_slot,
                point_type=canonical_type,
            )

        # Game over: record it on the current (or a fresh) set.
        record = GameRecord(points[0], points[1], score.server_id)
        sets = list(score.sets)
        if not sets or self._set_winner(sets[-1], len(sets) - 1) is not None:
            sets.append(SetScore())
        set_index = len(sets) - 1
        current = sets[set_index]
        current = SetScore(
            player1_games=current.player1_games + (1 if winner_slot == 1 else 0),
            player2_games=current.player2_games + (1 if winner_slot == 2 else 0),
            games=current.games + (record,),
        )
        sets[set_index] = current

        set_winner = self._set_winner(current, set_index)
        games_per_set = self.rules.games_per_set
        enter_tiebreak = (
            set_winner is None
            and current.player1_games == games_per_set
            and current.player2_games == games_per_set
            and self._tiebreak_applies(set_index)
        )
        new_score = TennisScore(
            server_id=self._other(score.server_id),
            sets=tuple(sets),
            player1_points=0,
            player2_points=0,
            is_tiebreak=enter_tiebreak,
        )
        match_winner = self.match_winner_slot(new_score) if set_winner else None
        return PointOutcome(
            score=new_score,
            winner_slot=winner_slot,
            point_type=canonical_type,
            game_winner_slot=winner_slot,
            set_winner_slot=set_winner,
            match_winner_slot=match_winner,
        )

    def sets_won(self, score: TennisScore) -> tuple[int, int]:
        """Completed sets won by (player1, player2)."""
        won = [0, 0]
        for index, set_score in enumerate(score.sets):
            winner = self._set_winner(set_score, index)
            if winner is not None:
                won[winner - 1] += 1
        return won[0], won[1]

    def match_winner_slot(self, score: TennisScore) -> int | None:
        p1_sets, p2_sets = self.sets_won(score)
        needed = self.rules.sets_to_win
        if p1_sets >= needed:
            return 1
        if p2_sets >= needed:
            return 2
        return None

    def is_decided(self, score: TennisScore) -> bool:
        return self.match_winner_slot(score) is not None

    def summary(self, score: TennisScore) -> str:
        """Set-by-set summary, e.g. "6-4, 6-7(5), 7-6(3)". Tiebreak sets show the loser's points."""
        games = self.rules.games_per_set
        parts: list[str] = []
        for index, set_score in enumerate(score.sets):
            a, b = set_score.player1_games, set_score.player2_games
            text = f"{a}-{b}"
            went_to_tiebreak = (
                self._set_winner(set_score, index) is not None
                and self._tiebreak_applies(index)
                and {a, b} == {games, games + 1}
            )
            if went_to_tiebreak and set_score.games:
                last = set_score.games[-1]
                text += f"({min(last.player1_points, last.player2_points)})"
            parts.append(text)
        return ", ".join(parts)

    def validate(self, score: TennisScore) -> None:
        """Raise CorruptStateError unless score is reachable under these rules."""
        if not isinstance(score, TennisScore):
            raise CorruptStateError(f"Expected TennisScore, got {type(score).__name__}")
        if score.server_id not in (self.player1_id, self.player2_id):
            raise CorruptStateError(f"server_id {score.server_id!r} is not one of the players")
        if len(score.sets) > self.rules.best_of:
            raise CorruptStateError(
                f"{len(score.sets)} sets exceeds best-of-{self.rules.best_of}"
            )

        won = [0, 0]
        for index, set_score in enumerate(score.sets):
            if max(won) >= self.rules.sets_to_win:
                raise CorruptStateError("Sets recorded after the match was decided")
            self._validate_set(set_score, index)
            is_last = index == len(score.sets) - 1
            winner = self._set_winner(set_score, index)
            if winner is None and not is_last:
                raise CorruptStateError(f"Set {index + 1} is unfinished but is not the last set")
            if winner is not None:
                won[winner - 1] += 1

        self._validate_current_game(score)

        decided = max(won) >= self.rules.sets_to_win
        if decided and (score.player1_points or score.player2_points or score.is_tiebreak):
            raise CorruptStateError("Decided match has a game in progress")

        expect_tiebreak = False
        if score.sets:
            last_index = len(score.sets) - 1
            last = score.sets[last_index]
            expect_tiebreak = (
                self._set_winner(last, last_index) is None
                and last.player1_games == self.rules.games_per_set
                and last.player2_games == self.rules.games_per_set
                and self._tiebreak_applies(last_index)
            )
        if score.is_tiebreak != expect_tiebreak:
            raise CorruptStateError(
                f"is_tiebreak={score.is_tiebreak} does not match the set score"
            )

    # ------------------------------------------------------------------ #
    # Rules                                                                #
    # ------------------------------------------------------------------ #

    def _game_over(self, a: int, b: int, tiebreak: bool) -> bool:
        target = self.rules.tiebreak_points if tiebreak else 4
        return max(a, b) >= target and abs(a - b) >= 2

    def _finished_game(self, a: int, b: int, tiebreak: bool) -> bool:
        """A completed game as apply_point records it: regular games end 4-0..4-2 or 5-3."""
        if min(a, b) < 0 or not self._game_over(a, b, tiebreak):
            return False
        target = self.rules.tiebreak_points if tiebreak else 4
        if max(a, b) == target:
            return True
        # Past the target only at exactly two clear, and regular games fold deuce to 5-3.
        return abs(a - b) == 2 and (tiebreak or (a, b) in ((5, 3), (3, 5)))

    def _tiebreak_applies(self, set_index: int) -> bool:
        is_deciding_set = set_index == self.rules.best_of - 1
        return self.rules.final_set_tiebreak or not is_deciding_set

    def _set_winner(self, set_score: SetScore, set_index: int) -> int | None:
        a, b = set_score.player1_games, set_score.player2_games
        games = self.rules.games_per_set
        if a >= games and a - b >= 2:
            return 1
        if b >= games and b - a >= 2:
            return 2
        if self._tiebreak_applies(set_index):
            if a == games + 1 and b == games:
                return 1
            if b == games + 1 and a == games:
                return 2
        return None

    def _other(self, player_id: str) -> str:
        return self.player2_id if player_id == self.player1_id else self.player1_id

    def _validate_set(self, set_score: SetScore, index: int) -> None:
        a, b = set_score.player1_games, set_score.player2_games
        if a < 0 or b < 0:
            raise CorruptStateError(f"Set {index + 1} has negative games")
        if len(set_score.games) != a + b:
            raise CorruptStateError(
                f"Set {index + 1} lists {len(set_score.games)} games but the score is {a}-{b}"
            )
        p1_records = sum(1 for g in set_score.games if g.winner_slot == 1)
        if p1_records != a:
            raise CorruptStateError(f"Set {index + 1} game records disagree with its score")

        games = self.rules.games_per_set
        running = [0, 0]
        for record in set_score.games:
            tiebreak = running == [games, games] and self._tiebreak_applies(index)
            if not self._finished_game(record.player1_points, record.player2_points, tiebreak):
                raise CorruptStateError(
                    f"Set {index + 1} records an unfinished game "
                    f"{record.player1_points}-{record.player2_points}"
                )
            running[record.winner_slot - 1] += 1

        if self._set_winner(set_score, index) is not None:
            # The set must have ended on its last game, not gone past it.
            last_winner = set_score.games[-1].winner_slot if set_score.games else None
            previous = SetScore(
                player1_games=a - (1 if last_winner == 1 else 0),
                player2_games=b - (1 if last_winner == 2 else 0),
            )
            if self._set_winner(previous, index) is not None:
                raise CorruptStateError(f"Set {index + 1} continued past its end: {a}-{b}")
        elif self._tiebreak_applies(index) and max(a, b) > games:
            raise CorruptStateError(f"Set {index + 1} has an unreachable score {a}-{b}")

    def _validate_current_game(self, score: TennisScore) -> None:
        a, b = score.player1_points, score.player2_points
        if a < 0 or b < 0:
            raise CorruptStateError("Current game has negative points")
        if self._game_over(a, b, score.is_tiebreak):
            raise CorruptStateError(f"Current game {a}-{b} should already be over")
        if score.is_tiebreak:
            return
        # Regular games only ever hold 0..3 each, or 4-3 / 3-4 at advantage.
        if max(a, b) > 4 or (max(a, b) == 4 and min(a, b) != 3):
            raise CorruptStateError(f"Current game {a}-{b} is not a normalised game score")


def _normalise_deuce(points: list[int]) -> list[int]:
    """Fold long deuce games back to 3-3 / 4-3 so labels map one-to-one."""
    low = min(points)
    if low > 3:
        shift = low - 3
        return [points[0] - shift, points[1] - shift]
    return points


# --------------------------------------------------------------------------- #
# Summaries                                                                    #
# --------------------------------------------------------------------------- #

def parse_summary(text: str) -> list[tuple[int, int]]:
    """
    Parse "6-4, 3-6, 7-6(5)" into [(6, 4), (3, 6), (7, 6)].

    "Bye" and the empty string yield an empty list.

    Raises:
        ValidationError: text is not a set-by-set summary.
    """
    cleaned = text.strip()
    if not cleaned or cleaned.lower() == "bye":
        return []
    sets: list[tuple[int, int]] = []
    for chunk in re.split(r"[,\s]+", cleaned):
        if not chunk:
            continue
        match = _SUMMARY_SET.match(chunk)
        if match is None:
            raise ValidationError(f"Cannot parse set score {chunk!r} in {text!r}")
        sets.append((int(match.group(1)), int(match.group(2))))
    return sets


# --------------------------------------------------------------------------- #
# Wire format                                                                  #
# --------------------------------------------------------------------------- #

def score_to_dict(score: TennisScore) -> dict:
    """Serialise to the external score format (round-trips via score_from_dict)."""
    p1_label, p2_label = score.current_game_labels()
    return {
        "sets": [
            {
                "player1_games": s.player1_games,
                "player2_games": s.player2_games,
                "games": [
                    {
                        "player1_points": g.player1_points,
                        "player2_points": g.player2_points,
                        "server_id": g.server_id,
                    }
                    for g in s.games
                ],
            }
            for s in score.sets
        ],
        "current_game": {"player1": p1_label, "player2": p2_label},
        "server_id": score.server_id,
        "is_tiebreak": score.is_tiebreak,
    }


def score_from_dict(data: dict) -> TennisScore:
    """
    Parse the external score format.

    Only structure is checked here; ScoreStateMachine.validate() checks the
    tennis invariants.

    Raises:
        CorruptStateError: data is structurally malformed.
    """
    try:
        is_tiebreak = data["is_tiebreak"]
        if not isinstance(is_tiebreak, bool):
            raise TypeError("is_tiebreak must be a bool")
        current = data["current_game"]
        p1_points = _points_from_label(current["player1"], is_tiebreak)
        p2_points = _points_from_label(current["player2"], is_tiebreak)
        sets = tuple(
            SetScore(
                player1_games=_as_int(s["player1_games"]),
                player2_games=_as_int(s["player2_games"]),
                games=tuple(
                    GameRecord(
                        player1_points=_as_int(g["player1_points"]),
                        player2_points=_as_int(g["player2_points"]),
                        server_id=str(g["server_id"]),
                    )
                    for g in s["games"]
                ),
            )
            for s in data["sets"]
        )
        return TennisScore(
            server_id=str(data["server_id"]),
            sets=sets,
            player1_points=p1_points,
            player2_points=p2_points,
            is_tiebreak=is_tiebreak,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise CorruptStateError(f"Malformed score data: {exc}") from exc


def _points_from_label(label: object, is_tiebreak: bool) -> int:
    text = str(label)
    if is_tiebreak:
        if not text.isdigit():
            raise ValueError(f"tiebreak label must be a number, got {text!r}")
        return int(text)
    if text not in _LABEL_TO_POINTS:
        raise ValueError(f"unknown game label {text!r}")
    return _LABEL_TO_POINTS[text]


def _as_int(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected int, got {value!r}")
    return value
