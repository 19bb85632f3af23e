"""Shared test fixtures for avindex."""

import itertools
import os
import shutil
import sqlite3
import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path
from unittest.mock import patch

import pytest

from avindex.db import FaceObservation, initialize_database, open_connection
from avindex.media import (
    DecodeError,
    MediaProbe,
    NotMediaError,
    ProbeResult,
    Thumbnail,
)

PATTERN_IMAGE = b"RIFF\x00\x00\x00\x00WEBPtest-pattern"


class FakeDecoder:
    """Decoder stand-in driven by file names and contents.

    - *.txt files are not media.
    - *.bad files fail to decode.
    - Anything else is a 30 second video. Each thumbnail's bytes are the
      file content plus the sample position, so two files with the same
      content share their midpoint thumbnail.
    - Files named in `unseekable` report can_seek False.
    """

    def __init__(self) -> None:
        self.unseekable: set[str] = set()
        self.calls: list[tuple[str, tuple[float, ...], bool]] = []

    def probe(
        self, path: str, positions: Sequence[float], want_seek: bool = True
    ) -> ProbeResult:
        self.calls.append((path, tuple(positions), want_seek))
        name = os.path.basename(path)
        if name.endswith(".txt"):
            raise NotMediaError(path, "Invalid data found when processing input")
        if name.endswith(".bad"):
            raise DecodeError(path, "corrupt stream")

        with open(path, "rb") as f:
            content = f.read()

        can_seek = name not in self.unseekable
        thumbnails = [
            Thumbnail(image=b"RIFF" + content + b"@" + repr(pos).encode())
            for pos in (positions if can_seek else positions[:1])
        ]
        return ProbeResult(
            tags={
                "mediatype": "video",
                "duration": "00:00:00:30",
                "Title": f"{os.path.splitext(name)[0]} - Director's Cut",
            },
            thumbnails=thumbnails,
            can_seek=can_seek,
        )

    def test_pattern(self) -> Thumbnail:
        return Thumbnail(image=PATTERN_IMAGE)


class FakeScorer:
    """Scorer stand-in. `respond` maps image bytes to faces."""

    def __init__(self) -> None:
        self.respond: Callable[[bytes], list[FaceObservation]] = lambda image: []
        self.seen: list[bytes] = []

    def evaluate(self, image: bytes) -> list[FaceObservation]:
        self.seen.append(image)
        return list(self.respond(image))


def write_media(path: Path, content: str = "frames") -> Path:
    """Create a file the fake decoder treats as media."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test isolation."""
    dir_path = tempfile.mkdtemp()
    yield Path(dir_path)
    shutil.rmtree(dir_path, ignore_errors=True)


@pytest.fixture
def media_dir(temp_dir: Path) -> Path:
    """Create an empty media root."""
    path = temp_dir / "media"
    path.mkdir()
    return path


@pytest.fixture
def db_path(media_dir: Path) -> Path:
    """Catalogue path inside the media root, like the default layout."""
    return media_dir / "info.db"


@pytest.fixture
def db_conn(db_path: Path):
    """Open and initialize a catalogue connection."""
    conn = open_connection(db_path)
    initialize_database(conn)
    yield conn
    conn.close()


@pytest.fixture
def fake_decoder() -> FakeDecoder:
    return FakeDecoder()


@pytest.fixture
def probe(fake_decoder: FakeDecoder) -> MediaProbe:
    """MediaProbe over the fake decoder with distinct, repeatable positions."""
    counter = itertools.count(1)
    return MediaProbe(fake_decoder, rand=lambda: (next(counter) % 997) / 1000)


@pytest.fixture
def fake_scorer() -> FakeScorer:
    return FakeScorer()


@pytest.fixture
def write_media_file() -> Callable[..., Path]:
    """Return the helper that creates fake media files."""
    return write_media


def table_count(conn: sqlite3.Connection, table: str) -> int:
    return conn.execute(f"SELECT count(*) FROM {table}").fetchone()[0]  # nosec B608


@pytest.fixture
def count_rows() -> Callable[[sqlite3.Connection, str], int]:
    """Return a row counter for a table."""
    return table_count


@pytest.fixture(autouse=True)
def avindex_isolated_env(temp_dir: Path):
    """Isolate every test from the user's avindex configuration.

    Points AVINDEX_CONFIG_PATH at a file that does not exist and removes
    any other AVINDEX_* variables for the duration of the test.
    """
    with patch.dict(
        os.environ, {"AVINDEX_CONFIG_PATH": str(temp_dir / "config.toml")}
    ):
        for key in [k for k in os.environ if k.startswith("AVINDEX_")]:
            if key != "AVINDEX_CONFIG_PATH":
                del os.environ[key]
        yield temp_dir / "config.toml"
