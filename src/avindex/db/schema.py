"""Catalogue schema definition.

Table names match the on-disk layout used by existing catalogues so an
older info.db opens without migration. The _meta table records the
schema version.
"""

from __future__ import annotations

import sqlite3

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS _meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

-- Every regular file seen under the media root
CREATE TABLE IF NOT EXISTS filestat (
    filename TEXT,
    filesize INTEGER NOT NULL,
    PRIMARY KEY (filename)
);

-- Files that demuxed successfully
CREATE TABLE IF NOT EXISTS mediastat (
    filename TEXT,
    canseek INTEGER NOT NULL,
    probes INTEGER NOT NULL,
    facechecked INTEGER NOT NULL,
    bestthumb TEXT NOT NULL,
    bestscore REAL NOT NULL,
    PRIMARY KEY (filename)
);

CREATE TABLE IF NOT EXISTS tags (
    filename TEXT,
    name TEXT,
    val TEXT NOT NULL,
    PRIMARY KEY (filename, name)
);

CREATE INDEX IF NOT EXISTS tags_filename_idx ON tags(filename);
CREATE INDEX IF NOT EXISTS tags_name_idx ON tags(name);

CREATE TABLE IF NOT EXISTS thumbmap (
    filename TEXT,
    thumbname TEXT,
    PRIMARY KEY (filename, thumbname)
);

CREATE INDEX IF NOT EXISTS thumbmap_filename_idx ON thumbmap(filename);
CREATE INDEX IF NOT EXISTS thumbmap_thumbname_idx ON thumbmap(thumbname);

CREATE TABLE IF NOT EXISTS thumbface (
    thumbname TEXT NOT NULL,
    area INTEGER NOT NULL,
    confidence REAL NOT NULL,
    quality REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS thumbface_thumbname_idx ON thumbface(thumbname);

CREATE TABLE IF NOT EXISTS wordassocs (
    filename TEXT,
    word TEXT,
    PRIMARY KEY (filename, word) ON CONFLICT IGNORE
);

CREATE INDEX IF NOT EXISTS wordassocs_filename_idx ON wordassocs(filename);
CREATE INDEX IF NOT EXISTS wordassocs_word_idx ON wordassocs(word);

-- Content-addressed thumbnails: thumbname is <blake2b-512 hex>.webp
CREATE TABLE IF NOT EXISTS thumbnail (
    thumbname TEXT,
    image BLOB NOT NULL,
    facechecked INTEGER NOT NULL,
    area INTEGER NOT NULL,
    confidence REAL NOT NULL,
    quality REAL NOT NULL,
    score REAL NOT NULL,
    PRIMARY KEY (thumbname)
);

CREATE INDEX IF NOT EXISTS mediastat_facechecked_idx ON mediastat(facechecked);
"""


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """Return the recorded schema version, or None for a fresh database."""
    try:
        row = conn.execute(
            "SELECT value FROM _meta WHERE key = 'schema_version'"
        ).fetchone()
    except sqlite3.OperationalError:
        return None
    return int(row[0]) if row else None


def create_schema(conn: sqlite3.Connection) -> None:
    """Create the catalogue tables and indexes if they don't exist.

    Args:
        conn: An open database connection.
    """
    conn.executescript(SCHEMA_SQL)
    conn.execute(
        "INSERT OR IGNORE INTO _meta (key, value) VALUES ('schema_version', ?)",
        (str(SCHEMA_VERSION),),
    )
    # executescript() commits implicitly; the INSERT above opens a new
    # implicit transaction that must be closed before BEGIN IMMEDIATE.
    conn.commit()
