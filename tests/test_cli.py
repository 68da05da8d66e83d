"""
Tests for the Operator CLI
==========================

Tests for:
- db:init
- import:csv with accepted and rejected rows
- report and history output
"""

import asyncio

import pytest
from click.testing import CliRunner

from rosterguard.cli import cli
from rosterguard.config import Settings
from rosterguard.database import build_engine, build_session_factory
from rosterguard.services import IntegrityEngine


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'cli.db'}"


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def invoke(runner: CliRunner, database_url: str, *args: str):
    return runner.invoke(cli, ["--database-url", database_url, *args])


def create_player(database_url: str, player_id: str, document: dict) -> None:
    async def run():
        settings = Settings(_env_file=None, database_url=database_url)
        engine = build_engine(settings=settings)
        try:
            await IntegrityEngine(build_session_factory(engine), settings=settings).create_player(player_id, document)
        finally:
            await engine.dispose()

    asyncio.run(run())


@pytest.fixture
def initialized(runner: CliRunner, database_url: str, player_document) -> str:
    result = invoke(runner, database_url, "db:init")
    assert result.exit_code == 0, result.output
    create_player(database_url, "p1", player_document())
    return database_url


def test_db_init(runner: CliRunner, database_url: str):
    """Test that db:init creates the tables."""
    result = invoke(runner, database_url, "db:init")

    assert result.exit_code == 0
    assert "Tables created." in result.output


def test_import_csv_reports_rejected_rows(runner: CliRunner, initialized: str, tmp_path):
    """Test a mixed import exits 1 and counts each outcome."""
    csv_path = tmp_path / "squad.csv"
    csv_path.write_text(
        "Player ID,Weight (kg),Passing\n"
        "p1,97,8\n"
        "p1,250,7\n"
        ",90,5\n",
        encoding="utf-8",
    )

    result = invoke(runner, initialized, "import:csv", str(csv_path))

    assert result.exit_code == 1
    assert "1 imported, 2 rejected" in result.output


def test_import_csv_all_rows_accepted(runner: CliRunner, initialized: str, tmp_path):
    """Test a clean import exits 0 and is recorded in history."""
    csv_path = tmp_path / "squad.csv"
    csv_path.write_text("Player ID,Phone\np1,0207 946 0000\n", encoding="utf-8")

    result = invoke(runner, initialized, "import:csv", str(csv_path))
    assert result.exit_code == 0, result.output
    assert "1 imported, 0 rejected" in result.output

    history = invoke(runner, initialized, "history", "p1")
    assert history.exit_code == 0
    assert "Update history for p1" in history.output
    assert "Last 1 updates" in history.output


def test_history_empty(runner: CliRunner, initialized: str):
    """Test the history message for a player without updates."""
    result = invoke(runner, initialized, "history", "p1")

    assert result.exit_code == 0
    assert "No updates recorded." in result.output


def test_report(runner: CliRunner, initialized: str):
    """Test the report for a consistent player."""
    result = invoke(runner, initialized, "report", "p1")

    assert result.exit_code == 0
    assert "Consistency score:" in result.output
    assert "100" in result.output
    assert "No issues found." in result.output


def test_report_unknown_player(runner: CliRunner, initialized: str):
    """Test that a missing player exits 1."""
    result = invoke(runner, initialized, "report", "ghost")

    assert result.exit_code == 1
    assert "Player ghost not found" in result.output
