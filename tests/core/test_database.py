# tests/core/test_database.py
"""Tests for database connection management."""

from pathlib import Path

import pytest
from sqlalchemy import create_engine, inspect, select, text


class TestCaseDB:
    def test_in_memory_creates_all_tables(self) -> None:
        from caseport.core.database import CaseDB
        from caseport.core.schema import metadata

        with CaseDB.in_memory() as db:
            tables = set(inspect(db.engine).get_table_names())

        assert set(metadata.tables) <= tables

    def test_connection_commits_on_success(self) -> None:
        from caseport.core.database import CaseDB
        from caseport.core.schema import users_table

        with CaseDB.in_memory() as db:
            with db.connection() as conn:
                conn.execute(users_table.insert().values(id=1, css_id="ABC", station_id="101"))
            with db.connection() as conn:
                assert conn.execute(select(users_table.c.css_id)).scalars().all() == ["ABC"]

    def test_connection_rolls_back_on_error(self) -> None:
        from caseport.core.database import CaseDB
        from caseport.core.schema import users_table

        with CaseDB.in_memory() as db:
            with pytest.raises(RuntimeError), db.connection() as conn:
                conn.execute(users_table.insert().values(id=1, css_id="ABC", station_id="101"))
                raise RuntimeError("abort")
            with db.connection() as conn:
                assert conn.execute(select(users_table)).all() == []

    def test_sqlite_foreign_keys_enabled(self) -> None:
        from caseport.core.database import CaseDB

        with CaseDB.in_memory() as db, db.connection() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1

    def test_engine_unavailable_after_close(self) -> None:
        from caseport.core.database import CaseDB

        db = CaseDB.in_memory()
        db.close()

        with pytest.raises(RuntimeError, match="not initialized"):
            _ = db.engine

    def test_from_url_without_creating_tables(self, tmp_path: Path) -> None:
        from caseport.core.database import CaseDB

        url = f"sqlite:///{tmp_path / 'empty.db'}"
        with CaseDB.from_url(url, create_tables=False) as db:
            assert inspect(db.engine).get_table_names() == []


class TestSchemaValidation:
    def test_partial_schema_is_rejected(self, tmp_path: Path) -> None:
        from caseport.contracts import SchemaCompatibilityError
        from caseport.core.database import CaseDB

        url = f"sqlite:///{tmp_path / 'old.db'}"
        engine = create_engine(url)
        with engine.begin() as conn:
            conn.execute(text("CREATE TABLE appeals (id INTEGER PRIMARY KEY, uuid VARCHAR(36))"))
        engine.dispose()

        with pytest.raises(SchemaCompatibilityError) as exc_info:
            CaseDB.from_url(url)

        message = str(exc_info.value)
        assert "Missing tables" in message
        assert "appeals.veteran_file_number" in message

    def test_existing_complete_schema_is_accepted(self, tmp_path: Path) -> None:
        from caseport.core.database import CaseDB

        url = f"sqlite:///{tmp_path / 'full.db'}"
        CaseDB.from_url(url).close()

        with CaseDB.from_url(url) as db:
            assert "appeals" in inspect(db.engine).get_table_names()
