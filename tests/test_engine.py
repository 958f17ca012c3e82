"""Tests for engine resolution, schema creation and migrations."""

from pathlib import Path

import pytest
from sqlalchemy import inspect

from booth_beacon.core.errors import StoreError
from booth_beacon.core.schema import StoredBooth
from booth_beacon.db.engine import get_database_url, get_engine, get_session, init_db, run_migrations
from booth_beacon.db.repositories import BoothRepository


class TestDatabaseUrl:
    """Tests for get_database_url."""

    def test_full_url_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgresql+psycopg://booths:secret@db/booths")
        assert get_database_url() == "postgresql+psycopg://booths:secret@db/booths"

    def test_bare_path_from_env_is_sqlite(self, tmp_path: Path, monkeypatch) -> None:
        path = tmp_path / "nested" / "booths.db"
        monkeypatch.setenv("DATABASE_URL", str(path))

        assert get_database_url() == f"sqlite:///{path}"
        assert path.parent.is_dir()

    def test_explicit_path_wins(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgresql://elsewhere/booths")
        path = tmp_path / "explicit.db"
        assert get_database_url(path) == f"sqlite:///{path}"


class TestSchema:
    """Tests for table creation and the migration chain."""

    def test_init_db_creates_tables(self, tmp_path: Path) -> None:
        path = tmp_path / "init.db"
        init_db(path)

        tables = inspect(get_engine(path)).get_table_names()
        assert {"booths", "crawl_runs"} <= set(tables)

    def test_migrations_enforce_one_booth_per_key(self, tmp_path: Path) -> None:
        path = tmp_path / "migrated.db"
        run_migrations(path)

        booth = dict(normalized_key="bar|berlin|germany", name="Bar", city="Berlin", country="Germany")
        with get_session(path) as session:
            repository = BoothRepository(session)
            repository.insert(StoredBooth(**booth))
            repository.commit()

            with pytest.raises(StoreError):
                repository.insert(StoredBooth(**booth))
            repository.rollback()

            assert repository.count() == 1
