"""EnVivo ingestion CLI.

Usage:
    envivo scrape
    envivo scrape --source ticketmaster --source livepass --max-pages 2
    envivo sources
    envivo delete-event <event-id> --reason "Evento cancelado"
    envivo blacklist
    envivo reset --yes
"""

import asyncio
import json
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from src.adapters import ADAPTER_REGISTRY, build_sources, list_sources
from src.config.scrapers import get_scraper_config
from src.config.settings import get_settings
from src.core.admin_service import DEFAULT_DELETE_REASON
from src.core.base_adapter import FetchParams
from src.core.exceptions import ConfigurationError, EventNotFoundError
from src.core.orchestrator import RunReport
from src.core.services import build_services
from src.logging import setup_logging

__version__ = "1.0.0"

app = typer.Typer(
    name="envivo",
    help="Live music and stage events ingestion for Argentina",
    add_completion=False,
)
console = Console()


@app.callback()
def configure() -> None:
    """Configure logging from settings before any command runs."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format, settings.log_file)


@app.command()
def scrape(
    source: Optional[list[str]] = typer.Option(
        None,
        "--source", "-s",
        help="Run only this source (repeatable). Default: every configured source",
    ),
    max_pages: Optional[int] = typer.Option(
        None,
        "--max-pages", "-p",
        min=1,
        help="Override the page limit of paginated scrapers",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the run report as JSON",
    ),
):
    """Fetch every source, then filter, deduplicate and store the events.

    Examples:
        envivo scrape
        envivo scrape --source ticketmaster
        envivo scrape -s movistararena -s livepass --max-pages 1
    """
    try:
        adapters = build_sources(source or None)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if not adapters:
        console.print("[yellow]Warning:[/yellow] No sources could be configured")
        raise typer.Exit(0)

    services = build_services()
    try:
        orchestrator = services.create_orchestrator(adapters)
        report = asyncio.run(orchestrator.fetch_all(FetchParams(max_pages=max_pages)))
    finally:
        services.close()

    if as_json:
        console.print_json(json.dumps(report.to_dict()))
    else:
        print_report(report)

    if not report.success:
        raise typer.Exit(1)


def print_report(report: RunReport) -> None:
    """Print the per-source table and run totals."""
    console.print()
    console.print("[bold blue]RUN REPORT[/bold blue]")
    console.print()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Source")
    table.add_column("Events", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Status")

    for s in report.sources:
        status = "[green]OK[/green]" if s.success else f"[red]ERR[/red] {s.error or ''}"
        table.add_row(s.name, str(s.events_count), f"{s.duration:.1f}s", status)

    console.print(table)
    console.print()
    console.print(
        f"[bold]TOTALS:[/bold] Fetched: {report.total_events}, "
        f"Inserted: {report.total_accepted}, Updated: {report.total_updated}, "
        f"Duplicates: {report.total_duplicates}, Blacklisted: {report.total_blacklisted}, "
        f"Rejected: {report.total_rejected}"
    )
    if report.timed_out:
        console.print("[yellow]Run timed out before every source finished[/yellow]")

    if report.errors:
        console.print()
        console.print(f"[bold]Event errors ({len(report.errors)}):[/bold]")
        for error in report.errors[:20]:
            field = f" [{error.field}]" if error.field else ""
            console.print(f"  {error.source}: {error.title[:50]}{field} - {error.reason}")
        if len(report.errors) > 20:
            console.print(f"  ... and {len(report.errors) - 20} more")


@app.command()
def sources():
    """List the sources that can be scraped."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("URL")

    for name in list_sources():
        if name in ADAPTER_REGISTRY:
            table.add_row(name, "adapter", "")
            continue
        config = get_scraper_config(name)
        kind = "js" if config.requires_javascript else "static"
        table.add_row(name, kind, config.base_url)

    console.print(table)
    console.print(f"[bold]Total:[/bold] {len(list_sources())} sources")


@app.command("delete-event")
def delete_event(
    event_id: str = typer.Argument(..., help="Id of the stored event"),
    reason: str = typer.Option(
        DEFAULT_DELETE_REASON,
        "--reason", "-r",
        help="Why the event is removed (stored in the blacklist)",
    ),
):
    """Delete an event and blacklist it so it is never ingested again."""
    services = build_services()
    try:
        event = asyncio.run(services.admin.delete_event_and_blacklist(event_id, reason))
    except EventNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        services.close()

    console.print(f"[green]OK[/green] - Deleted '{event.title}' and blacklisted {event.source}/{event.external_id}")


@app.command()
def blacklist():
    """Show the blacklisted (source, external_id) pairs."""
    services = build_services()
    try:
        entries = asyncio.run(services.blacklist.list_entries())
    finally:
        services.close()

    if not entries:
        console.print("[yellow]Blacklist is empty[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Source")
    table.add_column("External id")
    table.add_column("Reason")
    table.add_column("Added")

    for entry in entries:
        table.add_row(
            entry.source,
            entry.external_id[:60],
            entry.reason or "",
            entry.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def reset(
    yes: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Do not ask for confirmation",
    ),
):
    """Delete every stored event and blacklist entry."""
    if not yes:
        typer.confirm("This deletes all events and the blacklist. Continue?", abort=True)

    services = build_services()
    try:
        result = asyncio.run(services.admin.reset_database())
    finally:
        services.close()

    console.print(
        f"[green]OK[/green] - Deleted {result.events_deleted} events "
        f"and {result.blacklist_deleted} blacklist entries"
    )


@app.command()
def version():
    """Show version information."""
    console.print("[bold]EnVivo Event Ingestion[/bold]")
    console.print(f"Version: {__version__}")
    console.print(f"Sources: {len(list_sources())}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
