"""End-to-end tests of the ingest, evaluate and improve pipeline.

Runs the real catalogue, scanner, dispatcher and jobs against a media
tree on disk, with the fake decoder and scorer standing in for the
native libraries.
"""

import math
import os
import sqlite3
from pathlib import Path

import pytest

from avindex.db import (
    DEFAULT_KEEP,
    FaceObservation,
    cull_missing,
    get_media_file,
    get_tags,
    get_thumbnails_for_file,
)
from avindex.db.queries.media import TARGET_AREA, TARGET_CONFIDENCE, TARGET_QUALITY
from avindex.jobs import Evaluator, Improver, IngestPass
from avindex.scanner import Scanner
from avindex.scorer import score_fn

pytestmark = pytest.mark.integration

PROBE_MIN = 3
PROBE_MAX = 6
TARGET_SCORE = score_fn(TARGET_AREA, TARGET_CONFIDENCE, TARGET_QUALITY)
SMALL_FACE = FaceObservation(area=100, confidence=0.5, quality=0.5)
LARGE_FACE = FaceObservation(area=TARGET_AREA * 2, confidence=0.9, quality=0.9)


def dump(conn: sqlite3.Connection) -> dict[str, list[tuple]]:
    tables = ("filestat", "mediastat", "tags", "thumbmap", "thumbnail", "wordassocs")
    return {
        table: [
            tuple(row)
            for row in conn.execute(f"SELECT * FROM {table} ORDER BY 1, 2")  # nosec B608
        ]
        for table in tables
    }


def assert_catalogue_consistent(conn: sqlite3.Connection) -> None:
    """Check the invariants every pass and round must leave behind."""
    for media in conn.execute("SELECT * FROM mediastat"):
        thumbnails = get_thumbnails_for_file(conn, media["filename"])
        assert thumbnails, f"{media['filename']} has no thumbnail"
        assert 1 <= len(thumbnails) <= max(DEFAULT_KEEP, media["probes"])
        scores = {t.thumbname: t.score for t in thumbnails}
        assert media["bestthumb"] in scores
        assert media["bestscore"] == pytest.approx(scores[media["bestthumb"]])
        assert media["bestscore"] == pytest.approx(max(scores.values()))
        assert media["probes"] <= PROBE_MAX

    for row in conn.execute("SELECT name FROM tags"):
        assert row["name"] == row["name"].lower()

    for row in conn.execute("SELECT filename, filesize FROM filestat"):
        assert row["filesize"] >= 0

    dangling = conn.execute(
        "SELECT count(*) FROM thumbmap WHERE thumbname NOT IN "
        "(SELECT thumbname FROM thumbnail)"
    ).fetchone()[0]
    assert dangling == 0


def referenced_paths(conn: sqlite3.Connection) -> set[str]:
    paths = set()
    for table in ("filestat", "mediastat", "tags", "thumbmap", "wordassocs"):
        paths.update(
            row[0] for row in conn.execute(f"SELECT filename FROM {table}")  # nosec B608
        )
    return paths


@pytest.fixture
def pipeline(media_dir: Path, db_conn, db_path: Path, probe, fake_scorer):
    """Ingest, evaluate and improve steps over the media directory."""

    class Pipeline:
        def ingest(self):
            summary = IngestPass(
                db_conn, Scanner(media_dir, db_path=db_path), probe, workers=3
            ).run()
            assert_catalogue_consistent(db_conn)
            return summary

        def evaluate(self) -> int:
            evaluated = Evaluator(db_conn, fake_scorer).run()
            assert_catalogue_consistent(db_conn)
            return evaluated

        def improve(self) -> int:
            improved = Improver(
                db_conn, probe, workers=3, probe_min=PROBE_MIN, probe_max=PROBE_MAX
            ).run()
            assert_catalogue_consistent(db_conn)
            return improved

    return Pipeline()


class TestIngestScenarios:
    """Single files through a first ingest pass."""

    def test_video_file(
        self, pipeline, media_dir: Path, db_conn, fake_scorer, write_media_file
    ) -> None:
        path = write_media_file(media_dir / "a.mp4", "video")
        pipeline.ingest()

        file_row = db_conn.execute(
            "SELECT filesize FROM filestat WHERE filename = ?", (str(path),)
        ).fetchone()
        assert file_row["filesize"] == path.stat().st_size

        media = get_media_file(db_conn, str(path))
        assert media.canseek
        assert media.probes == 1
        assert media.bestscore == 0

        tags = get_tags(db_conn, str(path))
        assert tags["mediatype"] == "video"
        assert tags["duration"] == "00:00:00:30"
        assert len(get_thumbnails_for_file(db_conn, str(path))) == 1

        fake_scorer.respond = lambda image: [SMALL_FACE]
        pipeline.evaluate()
        assert get_media_file(db_conn, str(path)).bestscore == pytest.approx(
            math.sqrt(100) * 0.5 * 0.5
        )

    def test_plain_text_file(self, pipeline, media_dir: Path, db_conn, count_rows) -> None:
        (media_dir / "notes.txt").write_text("shopping list")
        pipeline.ingest()

        assert count_rows(db_conn, "filestat") == 1
        assert count_rows(db_conn, "mediastat") == 0
        assert count_rows(db_conn, "thumbnail") == 0
        assert count_rows(db_conn, "tags") == 0

    def test_unseekable_file(
        self, pipeline, media_dir: Path, db_conn, fake_decoder, write_media_file
    ) -> None:
        fake_decoder.unseekable.add("stream.ts")
        path = write_media_file(media_dir / "stream.ts")
        pipeline.ingest()
        pipeline.evaluate()

        assert pipeline.improve() == 0

        media = get_media_file(db_conn, str(path))
        assert not media.canseek
        assert media.probes == 1
        assert len(get_thumbnails_for_file(db_conn, str(path))) == 1

    def test_identical_midpoint_thumbnails(
        self, pipeline, media_dir: Path, db_conn, count_rows, write_media_file
    ) -> None:
        a = write_media_file(media_dir / "a.mkv", "same frames")
        b = write_media_file(media_dir / "copy" / "b.mkv", "same frames")
        pipeline.ingest()

        assert count_rows(db_conn, "thumbnail") == 1
        assert count_rows(db_conn, "thumbmap") == 2
        assert (
            get_media_file(db_conn, str(a)).bestthumb
            == get_media_file(db_conn, str(b)).bestthumb
        )

    def test_decode_failure_recorded_not_dropped(
        self, pipeline, media_dir: Path, db_conn, count_rows
    ) -> None:
        (media_dir / "corrupt.bad").write_text("garbage")
        summary = pipeline.ingest()

        assert summary.failed == 1
        assert count_rows(db_conn, "filestat") == 1
        assert count_rows(db_conn, "mediastat") == 0


class TestRescans:
    """Behaviour across consecutive ingest passes."""

    @pytest.fixture
    def tree(self, media_dir: Path, write_media_file) -> Path:
        write_media_file(media_dir / "Holiday (2019).mkv", "holiday")
        write_media_file(media_dir / "films" / "The Film.mp4", "film")
        write_media_file(media_dir / "films" / "extras" / "Trailer.webm", "trailer")
        (media_dir / "films" / "notes.txt").write_text("notes")
        return media_dir

    def test_unchanged_tree_not_mutated(
        self, pipeline, tree: Path, db_conn, fake_decoder
    ) -> None:
        pipeline.ingest()
        before = dump(db_conn)
        changes = db_conn.total_changes
        calls = len(fake_decoder.calls)

        summary = pipeline.ingest()

        assert summary.scan.files_unchanged == 4
        assert len(fake_decoder.calls) == calls
        assert db_conn.total_changes == changes
        assert dump(db_conn) == before

    def test_deleted_file_culled_everywhere(
        self, pipeline, tree: Path, db_conn
    ) -> None:
        pipeline.ingest()
        victim = tree / "films" / "The Film.mp4"
        victim.unlink()

        summary = pipeline.ingest()

        assert summary.files_removed == 1
        assert str(victim) not in referenced_paths(db_conn)
        assert all(os.path.exists(path) for path in referenced_paths(db_conn))

    def test_cull_missing_directly(self, pipeline, tree: Path, db_conn) -> None:
        pipeline.ingest()
        (tree / "Holiday (2019).mkv").unlink()
        (tree / "films" / "notes.txt").unlink()

        removed = cull_missing(db_conn)

        assert len(removed) == 2
        assert all(os.path.exists(path) for path in referenced_paths(db_conn))
        assert_catalogue_consistent(db_conn)

    def test_search_words(self, pipeline, tree: Path, db_conn) -> None:
        pipeline.ingest()
        rows = db_conn.execute(
            "SELECT DISTINCT filename FROM wordassocs WHERE word = ?", ("holiday",)
        ).fetchall()
        assert [row[0] for row in rows] == [str(tree / "Holiday (2019).mkv")]


class TestImprovement:
    """Repeated evaluate and improve rounds."""

    def run_rounds(self, pipeline) -> int:
        """Evaluate, then improve and evaluate until nothing is improvable."""
        pipeline.evaluate()
        rounds = 0
        while pipeline.improve():
            pipeline.evaluate()
            rounds += 1
            assert rounds <= PROBE_MAX - 1
        return rounds

    def test_low_score_probed_up_to_max(
        self, pipeline, media_dir: Path, db_conn, fake_scorer, write_media_file
    ) -> None:
        path = write_media_file(media_dir / "a.mkv")
        pipeline.ingest()
        fake_scorer.respond = lambda image: [SMALL_FACE]

        rounds = self.run_rounds(pipeline)

        media = get_media_file(db_conn, str(path))
        assert rounds == PROBE_MAX - 1
        assert media.probes == PROBE_MAX
        assert media.bestscore < TARGET_SCORE
        assert len(get_thumbnails_for_file(db_conn, str(path))) <= DEFAULT_KEEP

    def test_no_faces_stops_at_probe_min(
        self, pipeline, media_dir: Path, db_conn, write_media_file
    ) -> None:
        path = write_media_file(media_dir / "a.mkv")
        pipeline.ingest()

        rounds = self.run_rounds(pipeline)

        media = get_media_file(db_conn, str(path))
        assert rounds == PROBE_MIN - 1
        assert media.probes == PROBE_MIN
        assert media.bestscore == 0

    def test_target_score_ends_improvement(
        self, pipeline, media_dir: Path, db_conn, fake_scorer, write_media_file
    ) -> None:
        path = write_media_file(media_dir / "a.mkv")
        pipeline.ingest()
        # only thumbnails sampled away from the midpoint show a good face
        fake_scorer.respond = lambda image: (
            [SMALL_FACE] if image.endswith(b"@0.5") else [LARGE_FACE]
        )

        rounds = self.run_rounds(pipeline)

        media = get_media_file(db_conn, str(path))
        assert rounds == 1
        assert media.probes == 2
        assert media.bestscore >= TARGET_SCORE
        assert media.bestscore == pytest.approx(
            score_fn(LARGE_FACE.area, LARGE_FACE.confidence, LARGE_FACE.quality)
        )
