"""Tests for the Evaluator and the Improver."""

from pathlib import Path

import pytest

from avindex.db import FaceObservation, get_media_file, get_thumbnails_for_file
from avindex.jobs import Evaluator, Improver, IngestPass
from avindex.scanner import Scanner
from avindex.scorer import ScorerError

FACE = FaceObservation(area=400, confidence=0.5, quality=0.5)


@pytest.fixture
def ingested(media_dir: Path, db_conn, db_path: Path, probe, write_media_file) -> Path:
    """A catalogue with one face video and one faceless video."""
    write_media_file(media_dir / "face.mkv", "face")
    write_media_file(media_dir / "plain.mkv", "plain")
    IngestPass(db_conn, Scanner(media_dir, db_path=db_path), probe).run()
    return media_dir


@pytest.fixture
def scorer(fake_scorer):
    fake_scorer.respond = lambda image: [FACE] if b"face" in image else []
    return fake_scorer


class TestEvaluator:
    """Tests for Evaluator."""

    def test_scores_every_pending_file(self, ingested: Path, db_conn, scorer) -> None:
        assert Evaluator(db_conn, scorer).run() == 2

        face = get_media_file(db_conn, str(ingested / "face.mkv"))
        plain = get_media_file(db_conn, str(ingested / "plain.mkv"))
        assert face.facechecked and plain.facechecked
        assert face.bestscore == pytest.approx(5.0)
        assert plain.bestscore == 0
        assert len(scorer.seen) == 2

    def test_second_run_has_nothing_to_do(self, ingested: Path, db_conn, scorer) -> None:
        Evaluator(db_conn, scorer).run()
        assert Evaluator(db_conn, scorer).run() == 0
        assert len(scorer.seen) == 2

    def test_undecodable_image_has_no_faces(
        self, ingested: Path, db_conn, fake_scorer
    ) -> None:
        def reject(image: bytes) -> list[FaceObservation]:
            raise ScorerError("Cannot decode image")

        fake_scorer.respond = reject

        assert Evaluator(db_conn, fake_scorer).run() == 2
        assert get_media_file(db_conn, str(ingested / "face.mkv")).facechecked

    def test_stop_event(self, ingested: Path, db_conn, scorer) -> None:
        evaluator = Evaluator(db_conn, scorer)
        evaluator.stop.set()
        assert evaluator.run() == 0


class TestImprover:
    """Tests for Improver."""

    def test_low_scoring_files_probed_again(
        self, ingested: Path, db_conn, probe, scorer
    ) -> None:
        Evaluator(db_conn, scorer).run()

        assert Improver(db_conn, probe).run() == 2

        path = str(ingested / "plain.mkv")
        record = get_media_file(db_conn, path)
        assert record.probes == 2
        assert not record.facechecked
        assert len(get_thumbnails_for_file(db_conn, path)) == 2

    def test_unevaluated_files_skipped(self, ingested: Path, db_conn, probe) -> None:
        assert Improver(db_conn, probe).run() == 0

    def test_unseekable_files_skipped(
        self, media_dir: Path, db_conn, db_path: Path, probe, fake_decoder, scorer,
        write_media_file,
    ) -> None:
        fake_decoder.unseekable.add("still.mkv")
        write_media_file(media_dir / "still.mkv", "plain")
        IngestPass(db_conn, Scanner(media_dir, db_path=db_path), probe).run()
        Evaluator(db_conn, scorer).run()

        assert Improver(db_conn, probe).run() == 0

    def test_probe_budget_respected(self, ingested: Path, db_conn, probe, scorer) -> None:
        improver = Improver(db_conn, probe, probe_min=3, probe_max=3)
        evaluator = Evaluator(db_conn, scorer)

        rounds = 0
        evaluator.run()
        while improver.run():
            evaluator.run()
            rounds += 1
            assert rounds < 10

        for name in ("face.mkv", "plain.mkv"):
            assert get_media_file(db_conn, str(ingested / name)).probes <= 3
        assert get_media_file(db_conn, str(ingested / "plain.mkv")).probes == 3
