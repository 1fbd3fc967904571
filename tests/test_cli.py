"""
Smoke tests for the Typer CLI.
"""

from datetime import date, timedelta

import pytest
from typer.testing import CliRunner

from venuebook import __version__
from venuebook.cli.app import app

runner = CliRunner()

SEED_YAML = """
venues:
  - name: Cafe
    category: restaurant
    rules:
{rules}
    services:
      - {{key: table, name: Table, duration_minutes: 60, capacity: 2}}
"""


@pytest.fixture
def cli_env(tmp_path):
    """Config and seed files for a CLI session; the CLI uses the real clock."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        f"database_url: sqlite:///{tmp_path / 'cli.db'}\n"
        "log_level: WARNING\n"
    )
    rules = "\n".join(
        f'      - {{day: {day}, start: "09:00", end: "17:00"}}' for day in range(7)
    )
    seed_file = tmp_path / "seed.yaml"
    seed_file.write_text(SEED_YAML.format(rules=rules))
    booking_day = (date.today() + timedelta(days=5)).isoformat()
    return str(config_file), str(seed_file), booking_day


def _invoke(*args):
    return runner.invoke(app, [str(arg) for arg in args])


class TestCli:
    """End-to-end runs of the CLI commands."""

    def test_version(self):
        """Test the version command."""
        result = _invoke("version")

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_init_db_and_seed(self, cli_env):
        """Test schema creation and seeding."""
        config_file, seed_file, _ = cli_env

        init = _invoke("init-db", "--config", config_file)
        seed = _invoke("seed", seed_file, "--config", config_file)

        assert init.exit_code == 0
        assert "Database ready" in init.output
        assert seed.exit_code == 0
        assert "venue:Cafe" in seed.output

    def test_booking_flow(self, cli_env):
        """Test listing, checking, booking and cancelling."""
        config_file, seed_file, booking_day = cli_env
        assert _invoke("seed", seed_file, "--config", config_file).exit_code == 0

        slots = _invoke("slots", 1, 1, booking_day, "--config", config_file)
        check = _invoke("check", 1, 1, booking_day, "10:00", "11:00", "--config", config_file)
        book = _invoke(
            "book", 1, 1, booking_day, "10:00", "11:00",
            "--party-size", 2, "--name", "Maria", "--config", config_file,
        )
        full = _invoke("check", 1, 1, booking_day, "10:00", "11:00", "--config", config_file)
        cancel = _invoke("cancel", 1, "--reason", "plans changed", "--config", config_file)

        assert slots.exit_code == 0
        assert "10:00-11:00" in slots.output
        assert check.exit_code == 0
        assert "Available" in check.output
        assert book.exit_code == 0
        assert "Booking created" in book.output
        assert full.exit_code == 2
        assert "capacity_exceeded" in full.output
        assert cancel.exit_code == 0
        assert "cancelled" in cancel.output

    def test_week(self, cli_env):
        """Test the seven-day overview."""
        config_file, seed_file, booking_day = cli_env
        _invoke("seed", seed_file, "--config", config_file)

        result = _invoke("week", 1, 1, booking_day, "--config", config_file)

        assert result.exit_code == 0
        assert booking_day in result.output

    def test_validate_lists_all_problems(self, cli_env):
        """Test every violation is printed."""
        config_file, seed_file, _ = cli_env
        _invoke("seed", seed_file, "--config", config_file)
        past_day = (date.today() - timedelta(days=3)).isoformat()

        result = _invoke(
            "validate", 1, 1, past_day, "07:00", "08:00", "--party-size", 5, "--config", config_file
        )

        assert result.exit_code == 2
        assert "3 problem(s)" in result.output
        assert "in_past" in result.output

    def test_book_conflict_message(self, cli_env):
        """Test a full interval is reported as no longer available."""
        config_file, seed_file, booking_day = cli_env
        _invoke("seed", seed_file, "--config", config_file)
        args = ("book", 1, 1, booking_day, "10:00", "11:00", "--party-size", 2, "--config", config_file)

        assert _invoke(*args).exit_code == 0
        result = _invoke(*args)

        assert result.exit_code == 1
        assert "No longer available" in result.output

    def test_unknown_venue(self, cli_env):
        """Test domain errors end with exit code 1."""
        config_file, seed_file, booking_day = cli_env
        _invoke("seed", seed_file, "--config", config_file)

        result = _invoke("slots", 99, 1, booking_day, "--config", config_file)

        assert result.exit_code == 1
        assert "Venue not found: 99" in result.output

    def test_missing_config_file(self, tmp_path):
        """Test an explicit but missing config file is an error."""
        result = _invoke("init-db", "--config", tmp_path / "nope.yaml")

        assert result.exit_code == 1
        assert "Config file not found" in result.output
