"""
Engine and session handling for the booth store.

The store is addressed by ``DATABASE_URL``. Any SQLAlchemy URL works there;
a value without a scheme is read as a SQLite file path. When the variable
is unset the store is a SQLite file under ``~/.booth_beacon``.
"""

import logging
import os
from collections.abc import Generator
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_PATH = Path.home() / ".booth_beacon" / "booth_beacon.db"

# Shipped inside the package so migrations work from a wheel install
MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


def get_database_url(db_path: Path | str | None = None) -> str:
    """
    Resolve the store URL.

    Args:
        db_path: SQLite file path or full SQLAlchemy URL. Takes precedence
                 over ``DATABASE_URL``.

    Returns:
        SQLAlchemy connection URL. For SQLite files the parent directory
        is created.
    """
    target = str(db_path) if db_path is not None else os.environ.get("DATABASE_URL", "")
    if "://" in target:
        return target

    path = Path(target) if target else DEFAULT_SQLITE_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


@lru_cache(maxsize=None)
def _engine_for(url: str) -> Engine:
    parsed = make_url(url)
    # The arq worker touches SQLite sessions from more than one thread
    connect_args = {"check_same_thread": False} if parsed.get_backend_name() == "sqlite" else {}
    logger.debug(f"Creating engine for {parsed.render_as_string(hide_password=True)}")
    return create_engine(url, connect_args=connect_args)


def get_engine(db_path: Path | str | None = None) -> Engine:
    """Get the shared engine for the resolved store URL."""
    return _engine_for(get_database_url(db_path))


@contextmanager
def get_session(db_path: Path | str | None = None) -> Generator[Session, None, None]:
    """
    Open a session on the booth store.

    Commit boundaries belong to the repositories (one reconcile group, one
    crawl run), so this only guarantees the session is closed.
    """
    session = Session(bind=get_engine(db_path), autoflush=False)
    try:
        yield session
    finally:
        session.close()


def init_db(db_path: Path | str | None = None) -> None:
    """Create the booths and crawl_runs tables if they are missing."""
    from booth_beacon.db.models import Base

    Base.metadata.create_all(bind=get_engine(db_path))


def run_migrations(db_path: Path | str | None = None, revision: str = "head") -> None:
    """
    Upgrade the store schema with Alembic.

    Args:
        db_path: SQLite file path or full SQLAlchemy URL
        revision: Target revision
    """
    if not (MIGRATIONS_DIR / "env.py").exists():
        raise FileNotFoundError(f"Migration scripts not found: {MIGRATIONS_DIR}")

    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    # Config values go through ConfigParser interpolation
    config.set_main_option("sqlalchemy.url", get_database_url(db_path).replace("%", "%%"))
    logger.info(f"Upgrading store schema to {revision}")
    command.upgrade(config, revision)
