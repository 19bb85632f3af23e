"""Tag queries.

All functions here do NOT commit. Caller must manage transactions.
"""

import sqlite3
from collections.abc import Mapping


def upsert_tags(conn: sqlite3.Connection, filename: str, tags: Mapping[str, str]) -> None:
    """Insert or update tags for a file. Keys are lowercased.

    When two keys differ only by case, the one iterated last wins.
    """
    conn.executemany(
        """
        INSERT INTO tags (filename, name, val) VALUES (?, ?, ?)
        ON CONFLICT(filename, name) DO UPDATE SET val = excluded.val
        """,
        [(filename, name.lower(), str(val)) for name, val in tags.items()],
    )


def get_tags(conn: sqlite3.Connection, filename: str) -> dict[str, str]:
    rows = conn.execute(
        "SELECT name, val FROM tags WHERE filename = ? ORDER BY name", (filename,)
    ).fetchall()
    return {row["name"]: row["val"] for row in rows}


def normalise_tag_keys(conn: sqlite3.Connection) -> int:
    """Lowercase every tag name that is not already lowercase.

    An existing lowercase row for the same file wins; the mixed-case
    duplicates are dropped.

    Returns:
        Number of rows renamed or dropped.
    """
    renamed = conn.execute(
        "UPDATE OR IGNORE tags SET name = lower(name) WHERE name != lower(name)"
    ).rowcount
    dropped = conn.execute("DELETE FROM tags WHERE name != lower(name)").rowcount
    return renamed + dropped
