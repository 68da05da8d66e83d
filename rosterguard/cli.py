"""
RosterGuard CLI
===============

Operator commands for the player data integrity service.

Usage:
    rosterguard <command> [options]
    python -m rosterguard <command> [options]

Commands:
    db:init                        Create database tables
    import:csv PATH                Import a squad spreadsheet row by row
    report PLAYER_ID               Print a player's integrity report
    history PLAYER_ID              Print a player's update history

Examples:
    rosterguard db:init
    rosterguard import:csv squad.csv --player-column "Player ID"
    rosterguard report player_001
    rosterguard history player_001 --limit 10
"""

import asyncio
import csv
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import click
from rich.console import Console
from rich.table import Table

from rosterguard import __version__
from rosterguard.config import Settings, configure_logging, get_settings
from rosterguard.database import build_engine, build_session_factory, create_tables
from rosterguard.exceptions import PlayerNotFoundError
from rosterguard.services import IntegrityEngine, PlayerUpdateService

console = Console()


@asynccontextmanager
async def open_service(settings: Settings) -> AsyncIterator[PlayerUpdateService]:
    """Update service over a fresh engine, disposed on exit."""
    engine = build_engine(settings=settings)
    try:
        yield PlayerUpdateService(IntegrityEngine(build_session_factory(engine), settings=settings))
    finally:
        await engine.dispose()


@click.group()
@click.version_option(version=__version__)
@click.option("--database-url", envvar="DATABASE_URL", default=None, help="Database URL (defaults to settings)")
@click.pass_context
def cli(ctx: click.Context, database_url: Optional[str]):
    """RosterGuard - player data integrity for rugby squads."""
    settings = get_settings()
    if database_url:
        settings = settings.model_copy(update={"database_url": database_url})
    ctx.obj = settings


# =============================================================================
# DATABASE COMMANDS
# =============================================================================

@cli.command("db:init")
@click.pass_obj
def cmd_db_init(settings: Settings):
    """Create the players and data_updates tables."""

    async def run() -> None:
        engine = build_engine(settings=settings)
        try:
            await create_tables(engine)
        finally:
            await engine.dispose()

    asyncio.run(run())
    console.print("[green]Tables created.[/green]")


# =============================================================================
# IMPORT COMMANDS
# =============================================================================

@cli.command("import:csv")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--player-column", default="Player ID", show_default=True, help="Column holding the player id")
@click.option("--updated-by", default="coaching_staff", show_default=True, help="Recorded as the author of each update")
@click.pass_context
def cmd_import_csv(ctx: click.Context, path: str, player_column: str, updated_by: str):
    """
    Import a spreadsheet export, one update batch per row.

    Columns are matched by header ("Weight (kg)", "Passing", ...);
    unknown columns are ignored. Exits with status 1 if any row fails.
    """
    settings: Settings = ctx.obj

    with open(path, newline="", encoding="utf-8-sig") as f:
        rows = list(csv.DictReader(f))

    async def run() -> list:
        outcomes = []
        async with open_service(settings) as service:
            for line, row in enumerate(rows, start=2):
                player_id = (row.pop(player_column, None) or "").strip()
                if not player_id:
                    outcomes.append((line, "-", False, [f"Missing '{player_column}' value"]))
                    continue
                result = await service.process_csv_import(player_id, row, updated_by)
                outcomes.append((line, player_id, result.success, result.errors))
        return outcomes

    console.print(f"\n[bold]RosterGuard - CSV Import[/bold] ({len(rows)} rows)\n")
    outcomes = asyncio.run(run())

    table = Table(title="Import Results")
    table.add_column("Line", justify="right")
    table.add_column("Player", style="cyan")
    table.add_column("Status")
    table.add_column("Errors")

    for line, player_id, success, errors in outcomes:
        table.add_row(
            str(line),
            player_id,
            "[green]imported[/]" if success else "[red]rejected[/]",
            "; ".join(errors),
        )

    console.print(table)

    failed = sum(1 for outcome in outcomes if not outcome[2])
    console.print(f"\n{len(outcomes) - failed} imported, {failed} rejected")
    if failed:
        ctx.exit(1)


# =============================================================================
# REPORT COMMANDS
# =============================================================================

@cli.command("report")
@click.argument("player_id")
@click.pass_context
def cmd_report(ctx: click.Context, player_id: str):
    """Print the integrity report for a player."""
    settings: Settings = ctx.obj

    async def run():
        async with open_service(settings) as service:
            return await service.generate_player_data_report(player_id)

    try:
        report = asyncio.run(run())
    except PlayerNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        ctx.exit(1)

    score_style = "green" if report.consistency_score >= 80 else "yellow" if report.consistency_score >= 50 else "red"
    console.print(f"\n[bold]Integrity report for {player_id}[/bold]\n")
    console.print(f"[cyan]Consistency score:[/cyan] [{score_style}]{report.consistency_score}[/]")
    console.print(f"[cyan]Checked at:[/cyan] {report.last_validation.isoformat()}")

    if not report.issues:
        console.print("\n[green]No issues found.[/green]")
        return

    console.print("\n[bold]Issues:[/bold]")
    for issue in report.issues:
        console.print(f"  • {issue}")
    console.print("\n[bold]Recommendations:[/bold]")
    for recommendation in report.recommendations:
        console.print(f"  • {recommendation}")


@cli.command("history")
@click.argument("player_id")
@click.option("--limit", type=int, default=20, show_default=True, help="Number of entries to show")
@click.pass_obj
def cmd_history(settings: Settings, player_id: str, limit: int):
    """Print the most recent accepted updates for a player."""

    async def run():
        async with open_service(settings) as service:
            return await service.get_player_data_history(player_id, limit=limit)

    entries = asyncio.run(run())

    console.print(f"\n[bold]Update history for {player_id}[/bold]\n")
    if not entries:
        console.print("[yellow]No updates recorded.[/yellow]")
        return

    table = Table(title=f"Last {len(entries)} updates")
    table.add_column("Timestamp", width=19)
    table.add_column("Source", style="cyan")
    table.add_column("Category")
    table.add_column("By")
    table.add_column("Fields")

    for entry in entries:
        table.add_row(
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            entry.source.value,
            entry.category.value,
            entry.updated_by,
            ", ".join(entry.new_value),
        )

    console.print(table)


def main() -> None:
    """Console script entry point."""
    configure_logging()
    cli()
