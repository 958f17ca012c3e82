"""Database initialization and persistence layer."""

from booth_beacon.db.engine import (
    get_database_url,
    get_engine,
    get_session,
    init_db,
    run_migrations,
)
from booth_beacon.db.models import Base, BoothDB, CrawlRunDB
from booth_beacon.db.repositories import BoothRepository, CrawlRunRepository

__all__ = [
    # Engine
    "get_database_url",
    "get_engine",
    "get_session",
    "init_db",
    "run_migrations",
    # Models
    "Base",
    "BoothDB",
    "CrawlRunDB",
    # Repositories
    "BoothRepository",
    "CrawlRunRepository",
]
