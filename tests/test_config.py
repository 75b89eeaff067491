"""
Tests for config.yaml and roster loading.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from courtside.config import Config, ScoringConfig, load_config, load_roster


# --------------------------------------------------------------------------- #
# Helpers                                                                      #
# --------------------------------------------------------------------------- #

def write(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


# --------------------------------------------------------------------------- #
# config.yaml                                                                  #
# --------------------------------------------------------------------------- #

class TestLoadConfig:
    def test_defaults_without_a_file(self):
        config = Config()
        assert config.scoring.best_of == 3
        assert config.scoring.sets_to_win == 2
        assert config.rating.k_factor == 32
        assert config.tournament.seeding == "positional"
        assert config.log_file_path == Path("./logs/courtside.log")

    def test_full_file(self, tmp_path):
        path = write(tmp_path, "config.yaml", """
scoring:
  best_of: 5
  final_set_tiebreak: false
rating:
  k_factor: 24
  initial_rating: 1200
tournament:
  seeding: standard
  default_max_participants: 32
logging:
  level: debug
  file: club.log
""")
        config = load_config(path)
        assert config.scoring == ScoringConfig(best_of=5, final_set_tiebreak=False)
        assert config.scoring.sets_to_win == 3
        assert (config.rating.k_factor, config.rating.initial_rating) == (24, 1200)
        assert config.tournament.seeding == "standard"
        assert config.tournament.default_max_participants == 32
        assert config.logging.level == "DEBUG"
        assert config.log_file_path == Path("club.log")

    def test_empty_file_gives_defaults(self, tmp_path):
        assert load_config(write(tmp_path, "config.yaml", "")) == Config()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    @pytest.mark.parametrize(
        "text",
        [
            "scoring:\n  best_of: 4\n",
            "rating:\n  k_factor: 0\n",
            "tournament:\n  seeding: random\n",
            "tournament:\n  default_max_participants: 1\n",
            "logging:\n  level: chatty\n",
            "scoring: [1, 2]\n",
            "rating:\n  k_factor: lots\n",
        ],
    )
    def test_invalid_values(self, tmp_path, text):
        with pytest.raises(ValueError):
            load_config(write(tmp_path, "config.yaml", text))


# --------------------------------------------------------------------------- #
# Rosters                                                                      #
# --------------------------------------------------------------------------- #

class TestLoadRoster:
    def test_roster(self, tmp_path):
        path = write(tmp_path, "roster.yaml", """
tournament:
  name: Winter Ladder
  format: round_robin
  max_participants: 6
players:
  - name: Ana
    rating: 1620
  - name: Ben
""")
        roster = load_roster(path)
        assert roster.tournament_name == "Winter Ladder"
        assert roster.format == "round_robin"
        assert roster.max_participants == 6
        assert [(p.name, p.rating) for p in roster.players] == [("Ana", 1620), ("Ben", None)]

    def test_example_roster_loads(self):
        roster = load_roster(Path(__file__).parent.parent / "roster.example.yaml")
        assert len(roster.players) >= 2

    def test_defaults(self, tmp_path):
        roster = load_roster(write(tmp_path, "roster.yaml", "players:\n  - name: A\n  - name: B\n"))
        assert roster.format == "single_elimination"
        assert roster.max_participants is None

    def test_too_few_players(self, tmp_path):
        with pytest.raises(ValueError):
            load_roster(write(tmp_path, "roster.yaml", "players:\n  - name: Solo\n"))

    def test_malformed_player(self, tmp_path):
        with pytest.raises(ValueError):
            load_roster(write(tmp_path, "roster.yaml", "players:\n  - Ana\n  - Ben\n"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_roster(tmp_path / "roster.yaml")
