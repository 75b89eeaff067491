"""
Rich-based CLI rendering for brackets, live scores, standings and ratings.

display_event() is the consumer for EngineEvent objects; the print_*
functions render snapshots the runner asks for explicitly.
"""

from __future__ import annotations

from typing import Mapping

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from courtside.events import (
    BracketGeneratedEvent,
    EngineEvent,
    MatchCompletedEvent,
    PointAwardedEvent,
    TournamentCompletedEvent,
)
from courtside.models import BracketMatch, Player, Tournament
from courtside.scoring import TennisScore
from courtside.tournaments import StandingEntry

console = Console(legacy_windows=False)

_SIDE_TITLES = {
    "winners": "Winners Bracket",
    "losers": "Losers Bracket",
    "grand_final": "Grand Final",
    "reset": "Grand Final Reset",
    "round_robin": "Round Robin",
    "friendly": "Friendly",
}

_STATUS_STYLE = {
    "pending": "dim",
    "in_progress": "bold bright_blue",
    "completed": "green",
    "cancelled": "red",
}


def display_event(event: EngineEvent, players: Mapping[str, Player]) -> None:
    """Dispatch an EngineEvent to the appropriate display function."""
    match event:
        case BracketGeneratedEvent():
            _bracket_generated(event, players)
        case PointAwardedEvent():
            _point_awarded(event, players)
        case MatchCompletedEvent():
            _match_completed(event, players)
        case TournamentCompletedEvent():
            _tournament_completed(event, players)


# --------------------------------------------------------------------------- #
# Snapshots                                                                    #
# --------------------------------------------------------------------------- #

def print_bracket(tournament: Tournament, matches: list[BracketMatch], players: Mapping[str, Player]) -> None:
    console.print()
    console.rule(f"[bold]{tournament.name}[/]  [dim]{tournament.format.replace('_', ' ')}[/]")
    for side, title in _SIDE_TITLES.items():
        side_matches = [m for m in matches if m.bracket == side]
        if not side_matches:
            continue
        table = Table(title=title, show_header=True, header_style="bold", border_style="dim")
        table.add_column("Match", style="dim", width=10)
        table.add_column("Player 1", min_width=18)
        table.add_column("", width=3, justify="center")
        table.add_column("Player 2", min_width=18)
        table.add_column("Score", min_width=12)
        table.add_column("Status", width=12)
        for m in side_matches:
            table.add_row(
                m.label,
                _name_cell(m, m.player1_id, players),
                "vs",
                _name_cell(m, m.player2_id, players),
                m.score_summary or "",
                f"[{_STATUS_STYLE[m.status]}]{m.status.replace('_', ' ')}[/]",
            )
        console.print(table)


def print_score(match: BracketMatch, score: TennisScore, players: Mapping[str, Player]) -> None:
    table = Table(show_header=True, header_style="bold", border_style="bright_blue")
    table.add_column("", width=2)
    table.add_column("Player", min_width=18)
    for i in range(len(score.sets)):
        table.add_column(f"S{i + 1}", justify="center", width=4)
    table.add_column("Game", justify="center", width=5)

    labels = score.current_game_labels()
    for slot, player_id in ((1, match.player1_id), (2, match.player2_id)):
        games = [str(s.player1_games if slot == 1 else s.player2_games) for s in score.sets]
        serve = "[yellow]●[/]" if score.server_id == player_id else ""
        table.add_row(serve, _name(player_id, players), *games, labels[slot - 1])

    title = f"{match.label}" + ("  [yellow]TIEBREAK[/]" if score.is_tiebreak else "")
    console.print(Panel(table, title=title, border_style="bright_blue", expand=False))


def print_standings(entries: list[StandingEntry], players: Mapping[str, Player], title: str = "Standings") -> None:
    table = Table(title=title, show_header=True, header_style="bold", border_style="dim")
    table.add_column("#", style="dim", width=3, justify="right")
    table.add_column("Name", min_width=20)
    table.add_column("Seed", justify="right", width=5)
    table.add_column("W", justify="center", width=4)
    table.add_column("L", justify="center", width=4)
    table.add_column("Games", justify="center", width=8)
    table.add_column("+/-", justify="right", width=5)
    for i, entry in enumerate(entries, 1):
        table.add_row(
            str(i),
            _name(entry.player_id, players),
            str(entry.seed),
            str(entry.wins),
            str(entry.losses),
            f"{entry.games_for}-{entry.games_against}",
            f"{entry.game_difference:+d}",
            style="bold yellow" if i == 1 and entry.wins else "",
        )
    console.print()
    console.print(table)


def print_leaderboard(players: list[Player], title: str = "Ratings") -> None:
    table = Table(title=title, show_header=True, header_style="bold", border_style="dim")
    table.add_column("#", style="dim", width=3, justify="right")
    table.add_column("Name", min_width=20)
    table.add_column("Rating", justify="right", width=7)
    table.add_column("Tier", width=13)
    table.add_column("W-L", justify="center", width=7)
    for i, p in enumerate(players, 1):
        table.add_row(
            str(i),
            p.name,
            str(p.rating),
            p.skill_tier or "",
            f"{p.matches_won}-{p.matches_played - p.matches_won}",
        )
    console.print()
    console.print(table)


# --------------------------------------------------------------------------- #
# Event display                                                                #
# --------------------------------------------------------------------------- #

def _bracket_generated(event: BracketGeneratedEvent, players: Mapping[str, Player]) -> None:
    seeds = "  •  ".join(
        f"{i}. {_name(pid, players)}" for i, pid in enumerate(event.seeded_ids, 1)
    )
    console.print()
    console.print(
        Panel(
            f"[bold]{event.format.replace('_', ' ').title()}[/]\n\n"
            f"[dim]Seeds:[/] {seeds}\n\n"
            f"[dim]Matches: {event.match_count}  •  Byes: {event.bye_count}  •  "
            f"{event.timestamp.strftime('%Y-%m-%d %H:%M:%S')}[/]",
            title="[bold green] Bracket Generated [/]",
            border_style="green",
            expand=False,
        )
    )


def _point_awarded(event: PointAwardedEvent, players: Mapping[str, Player]) -> None:
    point = event.point
    detail = "" if point.point_type == "point_won" else f" [dim]({point.point_type.replace('_', ' ')})[/]"
    line = f"  [bold]{_name(point.winner_id, players)}[/] wins the point{detail}"
    if event.set_won_by:
        line += f"  [green]SET {_name(event.set_won_by, players)}[/]"
    elif event.game_won_by:
        line += f"  [cyan]game {_name(event.game_won_by, players)}[/]"
    console.print(line)


def _match_completed(event: MatchCompletedEvent, players: Mapping[str, Player]) -> None:
    console.print()
    if event.winner_id is None:
        console.print(f"  [yellow]![/] Match ended without a winner [dim]({event.score_summary or 'no score'})[/]")
        return
    early = "  [yellow](ended early)[/]" if event.ended_early else ""
    console.print(
        f"  [green]✓[/] [bold]{_name(event.winner_id, players)}[/] beats "
        f"{_name(event.loser_id, players)}  [dim]{event.score_summary}[/]{early}"
    )
    for change in event.rating_changes:
        colour = "green" if change.delta >= 0 else "red"
        console.print(
            f"    {_name(change.player_id, players)}: {change.old_rating} → {change.new_rating} "
            f"[{colour}]({change.delta:+d})[/]"
        )


def _tournament_completed(event: TournamentCompletedEvent, players: Mapping[str, Player]) -> None:
    champion = _name(event.winner_id, players) if event.winner_id else "no champion"
    console.print()
    console.print(
        Panel(
            f"[bold yellow]★  {champion}[/]\n\n"
            f"[dim]{event.timestamp.strftime('%Y-%m-%d %H:%M:%S')}[/]",
            title="[bold green] Tournament Champion [/]",
            border_style="yellow",
            expand=False,
        )
    )


# --------------------------------------------------------------------------- #
# Helpers                                                                      #
# --------------------------------------------------------------------------- #

def _name(player_id: str | None, players: Mapping[str, Player]) -> str:
    if player_id is None:
        return "-"
    player = players.get(player_id)
    return player.name if player else player_id


def _name_cell(match: BracketMatch, player_id: str | None, players: Mapping[str, Player]) -> str:
    if player_id is None:
        return "[dim]BYE[/]" if match.is_bye else "[dim]TBD[/]"
    if match.winner_id == player_id:
        return f"[bold green]{_name(player_id, players)}[/]"
    return _name(player_id, players)
