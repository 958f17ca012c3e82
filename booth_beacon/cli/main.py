"""Booth Beacon CLI using Typer."""

import logging
import os
from pathlib import Path

import typer
from dotenv import load_dotenv

from booth_beacon import __version__
from booth_beacon.cli.crawl import crawl_app

# Load .env file from current directory or project root
_env_paths = [
    Path.cwd() / ".env",
    Path(__file__).parent.parent.parent / ".env",
]
for _env_path in _env_paths:
    if _env_path.exists():
        load_dotenv(_env_path)
        break

app = typer.Typer(
    name="booth-beacon",
    help="Booth Beacon - Crawl and reconcile a directory of analog photo booths",
    add_completion=False,
)

app.add_typer(crawl_app, name="crawl")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _check_credentials() -> None:
    """Display credential status without failing."""
    from booth_beacon.services.ai.client import API_KEY_ENV_VARS, AIProvider

    firecrawl = "configured" if os.environ.get("FIRECRAWL_API_KEY") else "missing"
    typer.echo(f"  Firecrawl: {firecrawl}")

    provider_name = os.environ.get("AI_PROVIDER", AIProvider.ANTHROPIC.value).lower()
    try:
        provider = AIProvider(provider_name)
    except ValueError:
        typer.echo(f"  AI Provider: unsupported value '{provider_name}'")
        return
    key_status = "configured" if os.environ.get(API_KEY_ENV_VARS[provider]) else "missing"
    typer.echo(f"  AI Provider: {provider.value} ({key_status})")

    webhook = "configured" if os.environ.get("ALERT_WEBHOOK_URL") else "not set (alerts are logged only)"
    typer.echo(f"  Alert webhook: {webhook}")


@app.command()
def init_db(
    migrate: bool = typer.Option(
        False, "--migrate", help="Apply Alembic migrations instead of create_all"
    ),
) -> None:
    """Initialize the database (create tables)."""
    from booth_beacon.db.engine import init_db as db_init
    from booth_beacon.db.engine import run_migrations

    typer.echo("Initializing database...")
    if migrate:
        run_migrations()
    else:
        db_init()
    typer.echo("Database initialized successfully!")


@app.command()
def version() -> None:
    """Show the Booth Beacon version."""
    typer.echo(f"Booth Beacon v{__version__}")


@app.command()
def check_config() -> None:
    """Check the current configuration status."""
    typer.echo("Booth Beacon Configuration")
    typer.echo("=" * 40)

    # Check .env file
    env_found = False
    for _env_path in _env_paths:
        if _env_path.exists():
            typer.echo(f"  .env file: {_env_path}")
            env_found = True
            break
    if not env_found:
        typer.echo("  .env file: Not found")

    _check_credentials()

    from booth_beacon.db.engine import get_database_url
    from booth_beacon.ingestion.registry import get_default_registry

    typer.echo(f"  Database: {get_database_url()}")

    registry = get_default_registry()
    if registry.config_path is None:
        typer.echo("  Sources: no config file found")
    else:
        enabled = len(registry.list_enabled_sources())
        total = len(registry.list_sources())
        typer.echo(f"  Sources: {registry.config_path} ({enabled}/{total} enabled)")


if __name__ == "__main__":
    app()
