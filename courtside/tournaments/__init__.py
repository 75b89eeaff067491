"""
Tournament formats package.

create_bracket_format() is the single entry point for instantiating any format.

To add a new format:
  1. Create courtside/tournaments/<name>.py implementing BracketFormat
  2. Add a case here and its name to models.TOURNAMENT_FORMATS
"""

from __future__ import annotations

from courtside.config import SeedingMode
from courtside.errors import ValidationError
from courtside.models import TournamentFormat
from courtside.tournaments.base import (
    BracketFormat,
    BracketWorkspace,
    CompletionResult,
    StandingEntry,
    compute_standings,
    standard_seed_order,
)
from courtside.tournaments.double_elimination import DoubleEliminationFormat
from courtside.tournaments.round_robin import RoundRobinFormat
from courtside.tournaments.single_elimination import SingleEliminationFormat

__all__ = [
    # Base types
    "BracketFormat",
    "BracketWorkspace",
    "CompletionResult",
    "StandingEntry",
    "compute_standings",
    "standard_seed_order",
    # Implementations
    "SingleEliminationFormat",
    "DoubleEliminationFormat",
    "RoundRobinFormat",
    # Factory
    "create_bracket_format",
]


def create_bracket_format(
    tournament_format: TournamentFormat,
    seeding: SeedingMode = "positional",
) -> BracketFormat:
    """
    Instantiate the correct BracketFormat subclass.

    Args:
        tournament_format: "single_elimination" | "double_elimination" | "round_robin"
        seeding:           "positional" | "standard"  (elimination formats only)
    """
    match tournament_format:
        case "single_elimination":
            return SingleEliminationFormat(seeding)
        case "double_elimination":
            return DoubleEliminationFormat(seeding)
        case "round_robin":
            return RoundRobinFormat(seeding)
        case _:
            raise ValidationError(
                f"Unknown tournament format: {tournament_format!r}. "
                "Valid formats: single_elimination, double_elimination, round_robin"
            )
