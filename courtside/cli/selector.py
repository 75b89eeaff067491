"""
Interactive prompts for the tournament runner.

The operator picks a playable match from a numbered table, then scores it
one point at a time:  1 / 2 award the point (optionally followed by a point
type letter, e.g. "1a" for an ace), u undoes, f force-ends, b goes back.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Mapping

from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from courtside.models import BracketMatch, Player

console = Console(legacy_windows=False)

ActionKind = Literal["point", "undo", "force_end", "back"]

POINT_TYPE_KEYS = {
    "": "point_won",
    "a": "ace",
    "w": "winner",
    "d": "double_fault",
    "f": "forced_error",
    "u": "unforced_error",
}


@dataclass(frozen=True)
class ScoringAction:
    kind: ActionKind
    player_id: str | None = None
    point_type: str = "point_won"


def select_match(matches: list[BracketMatch], players: Mapping[str, Player]) -> BracketMatch | None:
    """Show the playable matches and return the chosen one, or None to quit."""
    table = Table(title="Playable Matches", show_header=True, header_style="bold", border_style="green")
    table.add_column("#", style="dim", width=3, justify="right")
    table.add_column("Match", style="dim", width=10)
    table.add_column("Player 1", min_width=18)
    table.add_column("Player 2", min_width=18)
    table.add_column("Score", min_width=10)
    for i, m in enumerate(matches, 1):
        table.add_row(
            str(i),
            m.label,
            _name(m.player1_id, players),
            _name(m.player2_id, players),
            m.score_summary or ("live" if m.status == "in_progress" else ""),
        )
    console.print()
    console.print(table)

    choices = [str(i) for i in range(1, len(matches) + 1)] + ["q"]
    raw = Prompt.ask("Select a match ([bold]q[/] to quit)", choices=choices, show_choices=False)
    if raw == "q":
        return None
    return matches[int(raw) - 1]


def prompt_scoring_action(match: BracketMatch, players: Mapping[str, Player]) -> ScoringAction:
    """Read one scoring command; re-prompts until the input parses."""
    p1, p2 = _name(match.player1_id, players), _name(match.player2_id, players)
    hint = (
        f"[bold]1[/]={p1}  [bold]2[/]={p2}  "
        "[dim](suffix a=ace w=winner d=double fault f=forced u=unforced)[/]  "
        "[bold]u[/]=undo  [bold]f[/]=force end  [bold]b[/]=back"
    )
    while True:
        raw = Prompt.ask(hint).strip().lower()
        action = parse_scoring_input(raw, match)
        if action is not None:
            return action
        console.print(f"  [red]Unrecognised input {raw!r}.[/]")


def parse_scoring_input(raw: str, match: BracketMatch) -> ScoringAction | None:
    """Turn "1", "2a", "u", "f", "f1", "b" into a ScoringAction; None if it does not parse."""
    if raw == "u":
        return ScoringAction("undo")
    if raw == "b":
        return ScoringAction("back")
    if raw.startswith("f") and raw[1:] in ("", "1", "2"):
        override = None
        if raw[1:]:
            override = match.player1_id if raw[1:] == "1" else match.player2_id
        return ScoringAction("force_end", player_id=override)
    if raw[:1] in ("1", "2") and raw[1:] in POINT_TYPE_KEYS:
        player_id = match.player1_id if raw[0] == "1" else match.player2_id
        return ScoringAction("point", player_id=player_id, point_type=POINT_TYPE_KEYS[raw[1:]])
    return None


def _name(player_id: str | None, players: Mapping[str, Player]) -> str:
    if player_id is None:
        return "TBD"
    player = players.get(player_id)
    return player.name if player else player_id
