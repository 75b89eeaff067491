"""
Courtside: interactive tournament runner.

Usage:
    python tournament_main.py [roster.yaml]

Wires together:
    config → roster → ClubService (in-memory) → bracket generation →
    match selection → point-by-point scoring → CLI display
"""

from __future__ import annotations

import asyncio
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Mapping

from courtside.cli.display import (
    console,
    display_event,
    print_bracket,
    print_leaderboard,
    print_score,
    print_standings,
)
from courtside.cli.selector import prompt_scoring_action, select_match
from courtside.config import Config, load_config, load_roster
from courtside.errors import CourtsideError
from courtside.models import BracketMatch, Player
from courtside.service import ClubService

logger = logging.getLogger("courtside")


def _configure_logging(config: Config) -> None:
    log_file = config.log_file_path
    log_file.parent.mkdir(parents=True, exist_ok=True)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)   # keep the scoring screen readable
    logging.basicConfig(
        level=config.logging.level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        handlers=[
            console_handler,
            logging.handlers.RotatingFileHandler(
                log_file, maxBytes=2 * 1024 * 1024, backupCount=3,  # 2 MB × 3 files
                encoding="utf-8",
            ),
        ],
    )


async def _show_events(service: ClubService, players: Mapping[str, Player]) -> None:
    async for event in service.events():
        display_event(event, players)


async def _let_events_render() -> None:
    # Notifications arrive via call_soon_threadsafe; give the display task a turn.
    await asyncio.sleep(0.01)


async def _score_match(service: ClubService, chosen: BracketMatch, players: Mapping[str, Player]) -> None:
    while True:
        score = await asyncio.to_thread(service.lifecycle.current_score, chosen.id)
        print_score(chosen, score, players)
        action = await asyncio.to_thread(prompt_scoring_action, chosen, players)
        try:
            match action.kind:
                case "back":
                    return
                case "undo":
                    await service.undo_last_point(chosen.id)
                case "force_end":
                    await service.force_end_match(chosen.id, action.player_id)
                    await _let_events_render()
                    return
                case "point":
                    result = await service.award_point(chosen.id, action.player_id, action.point_type)
                    await _let_events_render()
                    if result.match_complete:
                        return
        except CourtsideError as exc:
            console.print(f"  [red]{type(exc).__name__}:[/] {exc}")


async def _main() -> None:
    config_path = Path("config.yaml")
    try:
        config = load_config(config_path)
    except FileNotFoundError:
        console.print("[dim]No config.yaml found; using built-in defaults.[/]")
        config = Config()
    except ValueError as exc:
        console.print(f"[red]Config error:[/] {exc}")
        sys.exit(1)

    _configure_logging(config)

    roster_path = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("roster.yaml")
    try:
        roster = load_roster(roster_path)
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]Roster error:[/] {exc}")
        sys.exit(1)

    logger.info("Starting %r with %d players", roster.tournament_name, len(roster.players))
    service = ClubService(config)
    players: dict[str, Player] = {}
    for entry in roster.players:
        player = await service.create_player(entry.name, entry.rating)
        players[player.id] = player

    events_task = asyncio.create_task(_show_events(service, players))
    await asyncio.sleep(0)   # let the display task subscribe before anything happens

    try:
        capacity = roster.max_participants or max(len(players), config.tournament.default_max_participants)
        tournament = await service.create_tournament(
            roster.tournament_name, roster.format, capacity, list(players)
        )
        await service.close_registration(tournament.id)
        await service.generate_bracket(tournament.id)
        await _let_events_render()
    except CourtsideError as exc:
        console.print(f"[red]Could not start the tournament:[/] {exc}")
        events_task.cancel()
        sys.exit(1)

    while not (await service.check_completion(tournament.id)).completed:
        matches = await service.matches(tournament.id)
        print_bracket(tournament, matches, players)
        playable = [m for m in matches if m.is_playable]
        if not playable:
            console.print("[yellow]No playable matches left.[/]")
            break
        chosen = await asyncio.to_thread(select_match, playable, players)
        if chosen is None:
            break
        await _score_match(service, chosen, players)

    print_bracket(tournament, await service.matches(tournament.id), players)
    print_standings(await service.standings(tournament.id), players, title="Final Standings")
    print_leaderboard(await service.leaderboard())
    events_task.cancel()


def main() -> None:
    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/]")


if __name__ == "__main__":
    main()
