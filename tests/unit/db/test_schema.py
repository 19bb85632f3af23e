"""Tests for the catalogue schema."""

import sqlite3
from pathlib import Path

from avindex.db import SCHEMA_VERSION, create_schema, get_connection, get_schema_version

TABLES = {"filestat", "mediastat", "tags", "thumbmap", "thumbface", "wordassocs", "thumbnail"}


class TestCreateSchema:
    """Tests for create_schema."""

    def test_creates_tables(self, tmp_path: Path) -> None:
        with get_connection(tmp_path / "info.db") as conn:
            create_schema(conn)
            names = {
                row["name"]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
        assert TABLES <= names

    def test_indexes_on_filename_and_thumbname_columns(self, tmp_path: Path) -> None:
        with get_connection(tmp_path / "info.db") as conn:
            create_schema(conn)
            indexed = {
                (row["tbl_name"], row["name"])
                for row in conn.execute(
                    "SELECT tbl_name, name FROM sqlite_master WHERE type = 'index'"
                )
            }
        tables = {table for table, _ in indexed}
        assert {"tags", "thumbmap", "thumbface", "wordassocs"} <= tables

    def test_records_version(self, tmp_path: Path) -> None:
        with get_connection(tmp_path / "info.db") as conn:
            assert get_schema_version(conn) is None
            create_schema(conn)
            assert get_schema_version(conn) == SCHEMA_VERSION

    def test_leaves_no_open_transaction(self, tmp_path: Path) -> None:
        with get_connection(tmp_path / "info.db") as conn:
            create_schema(conn)
            assert not conn.in_transaction

    def test_wordassocs_ignores_duplicates(self, db_conn: sqlite3.Connection) -> None:
        db_conn.execute("INSERT INTO wordassocs VALUES ('/m/a', 'film')")
        db_conn.execute("INSERT INTO wordassocs VALUES ('/m/a', 'film')")
        db_conn.commit()
        assert db_conn.execute("SELECT count(*) FROM wordassocs").fetchone()[0] == 1
