"""tourpricing CLI.

Commands:
- init: Initialize database schema
- ingest: Upload a pricing CSV for one tour operator
- query: Show one page of a tour operator's pricing rows
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from tourpricing.config import get_config
from tourpricing.core.logging import configure_logging
from tourpricing.db.connection import close_db, init_db
from tourpricing.errors import CSVFormatError, DuplicateRowError
from tourpricing.ingestion.service import upload_pricing
from tourpricing.ingestion.types import ConflictMode
from tourpricing.query.service import PricingQueryService
from tourpricing.utils.redis_cache import close_cache, get_cache

app = typer.Typer(
    name="tourpricing",
    help="tourpricing - tour operator pricing ingestion",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def _setup() -> None:
    config = get_config()
    configure_logging(config.log_level, config.json_logs)


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        try:
            await init_db(drop=drop)
        finally:
            await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def ingest(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Pricing CSV file"),
    operator: UUID = typer.Option(..., "--operator", help="Tour operator ID"),
    mode: ConflictMode = typer.Option(ConflictMode.SKIP, "--mode", help="Duplicate handling"),
    fail_fast: bool = typer.Option(False, "--fail-fast", help="Stop at the first invalid row"),
):
    """Upload a pricing CSV for one tour operator."""
    console.print(f"[bold]Ingesting pricing:[/bold] operator={operator}, mode={mode.value}")

    async def _ingest():
        try:
            with file.open("rb") as stream:
                return await upload_pricing(
                    operator, stream, skip_bad_rows=not fail_fast, mode=mode
                )
        finally:
            await close_cache()
            await close_db()

    try:
        summary = asyncio.run(_ingest())
    except DuplicateRowError as e:
        console.print(f"[red]✗[/red] {e}")
        console.print(f"  {e.summary.inserted} inserted before the duplicate")
        raise typer.Exit(code=1)
    except CSVFormatError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓[/green] {summary.inserted} rows inserted")
    if summary.skipped:
        console.print(f"[yellow]⚠[/yellow] {summary.skipped} rows skipped")
        for err in summary.errors[:5]:  # Show first 5 errors
            console.print(f"  {err}", style="dim")


@app.command()
def query(
    operator: UUID = typer.Option(..., "--operator", help="Tour operator ID"),
    page: int = typer.Option(1, "--page"),
    page_size: int = typer.Option(50, "--page-size"),
):
    """Show one page of a tour operator's pricing rows."""
    config = get_config()

    async def _query():
        try:
            service = PricingQueryService(
                cache=get_cache(),
                ttl_seconds=config.cache.ttl_seconds,
                default_page_size=config.query.default_page_size,
                max_page_size=config.query.max_page_size,
            )
            return await service.query(operator, page=page, page_size=page_size)
        finally:
            await close_cache()
            await close_db()

    result = asyncio.run(_query())

    table = Table(title=f"Pricing page {result.page} ({result.total} rows total)")
    for column in ("Date", "Route", "Season", "Economy", "Business", "Eco seats", "Biz seats"):
        table.add_column(column)
    for row in result.items:
        table.add_row(
            row.date.isoformat(),
            row.route_code,
            row.season_code,
            str(row.economy_price),
            str(row.business_price),
            str(row.economy_seats),
            str(row.business_seats),
        )
    console.print(table)


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
