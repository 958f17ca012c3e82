"""CLI commands for crawling booth sources."""

import asyncio
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from booth_beacon.core.enums import GeocodeConfidence
from booth_beacon.core.errors import ConfigurationError
from booth_beacon.db.engine import get_session
from booth_beacon.db.repositories import BoothRepository, CrawlRunRepository
from booth_beacon.ingestion.adapters import default_adapter_registry, normalize_hostname
from booth_beacon.ingestion.geocoding import NominatimGeocoder, enrich_missing_coordinates
from booth_beacon.ingestion.jobs import (
    WorkerSettings,
    crawl_sources_sync,
    enqueue_crawl,
    get_job_status,
)
from booth_beacon.ingestion.registry import get_default_registry

console = Console()

crawl_app = typer.Typer(
    name="crawl",
    help="Booth source crawling commands",
    no_args_is_help=True,
)

sources_app = typer.Typer(
    name="sources",
    help="Manage crawl sources",
    no_args_is_help=True,
)

jobs_app = typer.Typer(
    name="jobs",
    help="Manage crawl jobs",
    no_args_is_help=True,
)

crawl_app.add_typer(sources_app, name="sources")
crawl_app.add_typer(jobs_app, name="jobs")


def _load_registry():
    """Load the default source registry, exiting on a bad config file."""
    try:
        return get_default_registry()
    except (ConfigurationError, FileNotFoundError) as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@crawl_app.command("run")
def run_crawl(
    source: Optional[list[str]] = typer.Option(
        None, "--source", "-s", help="Source name (repeatable; default: all enabled)"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Compute outcomes without writing booths, runs or alerts"
    ),
    sync: bool = typer.Option(
        False, "--sync", help="Run in-process instead of queueing a job"
    ),
) -> None:
    """
    Crawl booth sources.

    Examples:
        booth-beacon crawl run --sync
        booth-beacon crawl run -s autofoto -s photomatica --dry-run --sync
    """
    registry = _load_registry()
    source_names = list(source) if source else None

    if source_names:
        unknown = [name for name in source_names if registry.get_source(name) is None]
        if unknown:
            rprint(f"[red]Error:[/red] Unknown source(s): {', '.join(unknown)}")
            rprint("\nAvailable sources:")
            for s in registry.list_sources():
                rprint(f"  • {s.name}")
            raise typer.Exit(1)
    elif not registry.list_enabled_sources():
        rprint("[yellow]No enabled sources configured[/yellow]")
        raise typer.Exit(1)

    label = ", ".join(source_names) if source_names else "all enabled sources"

    if sync:
        rprint(f"[blue]Crawling {label}" + (" (dry run)" if dry_run else "") + "...[/blue]")
        with console.status("Crawling..."):
            result = asyncio.run(crawl_sources_sync(source_names, dry_run=dry_run))
        _display_job_result(result)
        if result.get("status") == "failed":
            raise typer.Exit(1)
    else:
        try:
            job_id = asyncio.run(enqueue_crawl(source_names, dry_run=dry_run))
        except Exception as e:
            rprint(f"[red]Error:[/red] Failed to enqueue job: {e}")
            rprint("\nMake sure Redis is running, or use --sync")
            raise typer.Exit(1)

        rprint(f"[green]Crawl job enqueued for {label}[/green]")
        rprint(f"  Job ID: {job_id}")
        rprint(f"\nCheck status with: booth-beacon crawl jobs status {job_id}")


@crawl_app.command("worker")
def start_worker(
    burst: bool = typer.Option(
        False, "--burst", help="Exit after processing queued jobs"
    ),
) -> None:
    """
    Start the crawl worker.

    The worker processes crawl jobs from the Redis queue.

    Examples:
        booth-beacon crawl worker
        booth-beacon crawl worker --burst
    """
    from arq import run_worker

    rprint("[blue]Starting crawl worker...[/blue]")
    rprint("Press Ctrl+C to stop")

    run_worker(WorkerSettings, burst=burst)


@crawl_app.command("adapters")
def list_adapters() -> None:
    """
    List hostname adapters.

    Sources whose hostname has no adapter go through the LLM fallback.
    """
    adapters = default_adapter_registry()

    table = Table(title="Hostname Adapters")
    table.add_column("Hostname", style="bold")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Class")

    for hostname in adapters.list_adapters():
        info = adapters.get_adapter_info(hostname)
        if info:
            table.add_row(hostname, info["name"], info["version"], info["class"])

    console.print(table)


@crawl_app.command("runs")
def list_runs(
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Filter by source name"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of runs to show"),
) -> None:
    """
    Show recent crawl runs.

    Examples:
        booth-beacon crawl runs
        booth-beacon crawl runs -s autofoto -n 5
    """
    with get_session() as session:
        runs = CrawlRunRepository(session).list_recent(source_name=source, limit=limit)

        if not runs:
            rprint("[yellow]No crawl runs recorded[/yellow]")
            return

        table = Table(title="Recent Crawl Runs")
        table.add_column("Started")
        table.add_column("Source", style="bold")
        table.add_column("Status")
        table.add_column("Method")
        table.add_column("Found", justify="right")
        table.add_column("Added", justify="right")
        table.add_column("Updated", justify="right")
        table.add_column("Skipped", justify="right")
        table.add_column("Errored", justify="right")

        for run in runs:
            status = "[green]success[/green]" if run.status == "success" else "[red]failed[/red]"
            table.add_row(
                run.started_at.strftime("%Y-%m-%d %H:%M"),
                run.source_name,
                status,
                run.extraction_method,
                str(run.total_candidates),
                str(run.inserted),
                str(run.changed),
                str(run.skipped + run.rejected),
                str(run.errored),
            )

    console.print(table)


@crawl_app.command("geocode")
def geocode(
    limit: Optional[int] = typer.Option(
        None, "--limit", "-n", help="Maximum booths to geocode (default from config)"
    ),
    min_confidence: Optional[GeocodeConfidence] = typer.Option(
        None, "--min-confidence", help="Lowest confidence to write (default from config)"
    ),
) -> None:
    """
    Geocode booths that have no coordinates.

    Examples:
        booth-beacon crawl geocode
        booth-beacon crawl geocode --limit 10 --min-confidence high
    """
    config = _load_registry().global_config
    settings = config.geocoding
    geocoder = NominatimGeocoder(
        user_agent=settings.user_agent,
        min_interval=settings.min_interval_seconds,
        retry_policy=config.retry.geocode,
    )

    with get_session() as session:
        repository = BoothRepository(session)
        with console.status("Geocoding..."):
            summary = asyncio.run(
                enrich_missing_coordinates(
                    repository,
                    geocoder,
                    limit=limit or settings.batch_limit,
                    min_confidence=min_confidence or settings.min_confidence,
                )
            )

    rprint("\n[bold]Geocoding:[/bold]")
    rprint(f"  Examined: {summary.examined}")
    rprint(f"  Geocoded: [green]{summary.geocoded}[/green]")
    rprint(f"  Below threshold: {summary.below_threshold}")
    rprint(f"  No match: {summary.no_match}")
    if summary.errors:
        rprint(f"\n[bold red]Errors ({len(summary.errors)}):[/bold red]")
        for error in summary.errors[:10]:
            rprint(f"  • {error}")


# Sources subcommands


@sources_app.command("list")
def list_sources(
    all_sources: bool = typer.Option(
        False, "--all", "-a", help="Include disabled sources"
    ),
) -> None:
    """
    List crawl sources in crawl order.

    Examples:
        booth-beacon crawl sources list
        booth-beacon crawl sources list --all
    """
    registry = _load_registry()
    sources = registry.list_sources() if all_sources else registry.list_enabled_sources()

    if not sources:
        rprint("[yellow]No sources configured[/yellow]")
        rprint("\nAdd sources to config/sources.yaml")
        return

    adapters = default_adapter_registry()

    table = Table(title="Crawl Sources")
    table.add_column("Name", style="bold")
    table.add_column("URL")
    table.add_column("Mode")
    table.add_column("Priority", justify="right")
    table.add_column("Extraction")
    table.add_column("Status")

    for source in sources:
        status = "[green]enabled[/green]" if source.enabled else "[yellow]disabled[/yellow]"
        extraction = "adapter" if adapters.get_adapter(source.url) else "fallback"
        table.add_row(
            source.name, source.url, source.mode.value, str(source.priority), extraction, status
        )

    console.print(table)


@sources_app.command("show")
def show_source(
    name: str = typer.Argument(..., help="Source name"),
) -> None:
    """
    Show detailed information about a source.

    Examples:
        booth-beacon crawl sources show autofoto
    """
    registry = _load_registry()
    source = registry.get_source(name)

    if source is None:
        rprint(f"[red]Error:[/red] Source '{name}' not found")
        raise typer.Exit(1)

    status = "[green]enabled[/green]" if source.enabled else "[yellow]disabled[/yellow]"

    rprint(f"\n[bold]Source: {source.name}[/bold]")
    rprint(f"  Status: {status}")
    rprint(f"  URL: {source.url}")
    rprint(f"  Mode: {source.mode.value}")
    rprint(f"  Priority: {source.priority}")
    if source.description:
        rprint(f"  Description: {source.description}")

    if source.mode.value == "crawl":
        rprint(f"\n[bold]Crawl Options:[/bold]")
        rprint(f"  Page limit: {source.page_limit}")
        for pattern in source.include_paths:
            rprint(f"  + {pattern}")
        for pattern in source.exclude_paths:
            rprint(f"  - {pattern}")

    adapters = default_adapter_registry()
    hostname = normalize_hostname(source.url)
    adapter_info = adapters.get_adapter_info(hostname) if hostname else None
    if adapter_info:
        rprint("\n[bold]Adapter Info:[/bold]")
        rprint(f"  Name: {adapter_info['name']}")
        rprint(f"  Version: {adapter_info['version']}")
        rprint(f"  Class: {adapter_info['class']}")
    else:
        rprint("\n[dim]No hostname adapter; the LLM fallback extracts this source[/dim]")


# Jobs subcommands


@jobs_app.command("status")
def job_status(
    job_id: str = typer.Argument(..., help="Job ID to check"),
) -> None:
    """
    Check the status of a crawl job.

    Examples:
        booth-beacon crawl jobs status abc123
    """
    try:
        result = asyncio.run(get_job_status(job_id))
    except Exception as e:
        rprint(f"[red]Error:[/red] Failed to get job status: {e}")
        rprint("\nMake sure Redis is running")
        raise typer.Exit(1)

    if result is None:
        rprint(f"[yellow]Job '{job_id}' not found[/yellow]")
        raise typer.Exit(1)

    rprint(f"\n[bold]Job: {job_id}[/bold]")
    rprint(f"  Status: {result.get('status', 'unknown')}")

    if result.get("result"):
        _display_job_result(result["result"])


def _display_job_result(result: dict) -> None:
    """Display job result in a formatted table."""
    status = result.get("status", "unknown")
    status_color = {
        "completed": "green",
        "running": "blue",
        "pending": "yellow",
        "failed": "red",
    }.get(status, "white")

    rprint(f"\n[bold]Results:[/bold]")
    rprint(f"  Status: [{status_color}]{status}[/{status_color}]")
    if result.get("dry_run"):
        rprint("  [yellow]Dry run: nothing was written[/yellow]")
    if result.get("duration_seconds"):
        rprint(f"  Duration: {result['duration_seconds']:.1f}s")

    summary = result.get("summary")
    if summary:
        _display_summary(summary)

    errors = result.get("errors", [])
    if errors:
        rprint(f"\n[bold red]Errors ({len(errors)}):[/bold red]")
        for error in errors[:10]:  # Show first 10
            rprint(f"  • {error}")
        if len(errors) > 10:
            rprint(f"  ... and {len(errors) - 10} more")


def _display_summary(summary: dict) -> None:
    """Display per-source counts and totals from a crawl summary."""
    table = Table(title="Sources")
    table.add_column("Source", style="bold")
    table.add_column("Status")
    table.add_column("Method")
    table.add_column("Found", justify="right")
    table.add_column("Added", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Errored", justify="right")

    for outcome in summary.get("outcomes", []):
        failed = outcome["status"] == "failed"
        table.add_row(
            outcome["source_name"],
            "[red]failed[/red]" if failed else "[green]success[/green]",
            outcome["extraction_method"],
            str(outcome["total_candidates"]),
            str(outcome["inserted"]),
            str(outcome["changed"]),
            str(outcome["skipped"] + outcome["rejected"]),
            str(outcome["errored"]),
        )
    console.print(table)

    rprint(f"\n[bold]Totals:[/bold]")
    rprint(f"  Found: {summary.get('total_candidates', 0)}")
    rprint(f"  Added: {summary.get('inserted', 0)}")
    rprint(f"  Updated: {summary.get('changed', 0)}")
    rprint(f"  Skipped: {summary.get('skipped', 0) + summary.get('rejected', 0)}")
    rprint(f"  Errored: {summary.get('errored', 0)}")

    for alert in summary.get("alerts", []):
        rprint(f"  [yellow]⚠ {alert}[/yellow]")
