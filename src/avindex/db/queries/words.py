"""Word association queries for tag-value search.

All functions here do NOT commit. Caller must manage transactions.
"""

import re
import sqlite3

WORD_SEPARATORS = " \r\n\t\"`~()[]{}<>&^%$#@?!+-=_,.:;|/\\*'"

_SPLIT_RE = re.compile("[" + re.escape(WORD_SEPARATORS) + "]+")


def split_words(text: str) -> list[str]:
    """Split text on the separator set; return lowercased non-empty words."""
    return [word.lower() for word in _SPLIT_RE.split(text) if word]


def derive_word_associations(conn: sqlite3.Connection) -> int:
    """Index tag-value words for files that have no word rows yet.

    Returns:
        Number of files processed.
    """
    rows = conn.execute(
        """
        SELECT filename, val FROM tags
        WHERE filename NOT IN (SELECT DISTINCT filename FROM wordassocs)
        ORDER BY filename
        """
    ).fetchall()

    pairs = []
    filenames = set()
    for row in rows:
        filenames.add(row["filename"])
        pairs.extend((row["filename"], word) for word in split_words(row["val"]))

    # wordassocs ignores duplicate (filename, word) on conflict
    conn.executemany("INSERT INTO wordassocs (filename, word) VALUES (?, ?)", pairs)
    return len(filenames)

