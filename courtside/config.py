"""
Configuration loading from config.yaml.

Uses typed dataclasses throughout so the rest of the engine gets IDE
completion and type-checker support without touching raw dicts.
Every section has defaults, so Config() is usable without a file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import yaml

SeedingMode = Literal["positional", "standard"]


@dataclass(frozen=True)
class ScoringConfig:
    best_of: int = 3              # sets; first to best_of // 2 + 1 wins
    games_per_set: int = 6
    tiebreak_points: int = 7
    final_set_tiebreak: bool = True   # False = deciding set is an advantage set

    @property
    def sets_to_win(self) -> int:
        return self.best_of // 2 + 1


@dataclass(frozen=True)
class RatingConfig:
    k_factor: int = 32
    initial_rating: int = 1500


@dataclass(frozen=True)
class TournamentConfig:
    seeding: SeedingMode = "positional"
    default_max_participants: int = 16


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    file: str = "./logs/courtside.log"


@dataclass(frozen=True)
class Config:
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    rating: RatingConfig = field(default_factory=RatingConfig)
    tournament: TournamentConfig = field(default_factory=TournamentConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def log_file_path(self) -> Path:
        return Path(self.logging.file)


def load_config(path: str | Path = "config.yaml") -> Config:
    """
    Load and validate config.yaml.

    Raises:
        FileNotFoundError: config.yaml is missing.
        ValueError: fields are malformed or out of range.
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {cfg_path.resolve()}\n"
            "Copy config.example.yaml to config.yaml and adjust it."
        )

    with cfg_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        scoring_raw = raw.get("scoring") or {}
        scoring = ScoringConfig(
            best_of=int(scoring_raw.get("best_of", 3)),
            games_per_set=int(scoring_raw.get("games_per_set", 6)),
            tiebreak_points=int(scoring_raw.get("tiebreak_points", 7)),
            final_set_tiebreak=bool(scoring_raw.get("final_set_tiebreak", True)),
        )

        rating_raw = raw.get("rating") or {}
        rating = RatingConfig(
            k_factor=int(rating_raw.get("k_factor", 32)),
            initial_rating=int(rating_raw.get("initial_rating", 1500)),
        )

        tournament_raw = raw.get("tournament") or {}
        tournament = TournamentConfig(
            seeding=tournament_raw.get("seeding", "positional"),
            default_max_participants=int(tournament_raw.get("default_max_participants", 16)),
        )

        logging_raw = raw.get("logging") or {}
        log_cfg = LoggingConfig(
            level=str(logging_raw.get("level", "INFO")).upper(),
            file=str(logging_raw.get("file", "./logs/courtside.log")),
        )

        config = Config(scoring=scoring, rating=rating, tournament=tournament, logging=log_cfg)
        _validate(config)
        return config

    except (AttributeError, TypeError) as exc:
        raise ValueError(f"Invalid config.yaml structure: {exc}") from exc


@dataclass(frozen=True)
class RosterEntry:
    name: str
    rating: int | None = None   # None = rating.initial_rating


@dataclass(frozen=True)
class Roster:
    tournament_name: str
    format: str
    players: tuple[RosterEntry, ...]
    max_participants: int | None = None


def load_roster(path: str | Path) -> Roster:
    """
    Load a roster file (tournament name, format and entrants).

    Raises:
        FileNotFoundError: the file is missing.
        ValueError: fields are malformed or fewer than two players are listed.
    """
    roster_path = Path(path)
    if not roster_path.exists():
        raise FileNotFoundError(
            f"Roster file not found: {roster_path.resolve()}\n"
            "See roster.example.yaml for the expected layout."
        )

    with roster_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        tournament_raw = raw.get("tournament") or {}
        players = tuple(
            RosterEntry(
                name=str(entry["name"]),
                rating=int(entry["rating"]) if entry.get("rating") is not None else None,
            )
            for entry in raw.get("players") or []
        )
        max_participants = tournament_raw.get("max_participants")
        roster = Roster(
            tournament_name=str(tournament_raw.get("name", "Club Tournament")),
            format=str(tournament_raw.get("format", "single_elimination")),
            players=players,
            max_participants=int(max_participants) if max_participants is not None else None,
        )
    except (AttributeError, KeyError, TypeError) as exc:
        raise ValueError(f"Invalid roster structure: {exc}") from exc

    if len(roster.players) < 2:
        raise ValueError("A roster needs at least 2 players.")
    return roster


def _validate(config: Config) -> None:
    if config.scoring.best_of < 1 or config.scoring.best_of % 2 == 0:
        raise ValueError(
            f"scoring.best_of must be a positive odd number, got {config.scoring.best_of}"
        )
    if config.scoring.games_per_set < 1:
        raise ValueError("scoring.games_per_set must be >= 1")
    if config.scoring.tiebreak_points < 1:
        raise ValueError("scoring.tiebreak_points must be >= 1")
    if config.rating.k_factor <= 0:
        raise ValueError("rating.k_factor must be > 0")
    valid_seeding = ("positional", "standard")
    if config.tournament.seeding not in valid_seeding:
        raise ValueError(
            f"tournament.seeding must be one of {valid_seeding}, got '{config.tournament.seeding}'"
        )
    if config.tournament.default_max_participants < 2:
        raise ValueError("tournament.default_max_participants must be >= 2")
    if config.logging.level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ValueError(f"logging.level is not a valid level: '{config.logging.level}'")
