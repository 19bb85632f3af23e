"""Tests for the evaluate and improve commands."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from avindex.cli import main
from avindex.cli.exit_codes import ExitCode
from avindex.db import FaceObservation, get_connection, get_media_file


@pytest.fixture
def scanned(runner: CliRunner, media_dir: Path, write_media_file, cli_probe) -> Path:
    write_media_file(media_dir / "a.mkv", "a")
    write_media_file(media_dir / "b.mkv", "b")
    result = runner.invoke(main, ["scan", "--path", str(media_dir)])
    assert result.exit_code == 0, result.output
    return media_dir


class TestWithoutModels:
    """Both commands need face models."""

    @pytest.mark.parametrize("command", ["evaluate", "improve"])
    def test_config_error(self, runner: CliRunner, scanned: Path, command: str) -> None:
        result = runner.invoke(main, [command, "--path", str(scanned)])
        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert "face models not configured" in result.output

    def test_missing_model_files(
        self, runner: CliRunner, scanned: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("AVINDEX_DETECT_MODEL", str(scanned / "detect.onnx"))
        monkeypatch.setenv("AVINDEX_ASSESS_MODEL", str(scanned / "assess.onnx"))
        result = runner.invoke(main, ["evaluate", "--path", str(scanned)])
        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert "Model file not found" in result.output


class TestEvaluateCommand:
    """Tests for `avindex evaluate`."""

    def test_evaluates_every_file(
        self, runner: CliRunner, scanned: Path, cli_scorer
    ) -> None:
        result = runner.invoke(main, ["evaluate", "--path", str(scanned)])

        assert result.exit_code == 0, result.output
        assert "Evaluated 2 file(s)" in result.output
        with get_connection(scanned / "info.db") as conn:
            assert get_media_file(conn, str(scanned / "a.mkv")).facechecked

    def test_second_run_evaluates_nothing(
        self, runner: CliRunner, scanned: Path, cli_scorer
    ) -> None:
        runner.invoke(main, ["evaluate", "--path", str(scanned)])
        result = runner.invoke(main, ["evaluate", "--path", str(scanned)])
        assert "Evaluated 0 file(s)" in result.output


class TestImproveCommand:
    """Tests for `avindex improve`."""

    def test_rounds(self, runner: CliRunner, scanned: Path, cli_scorer) -> None:
        result = runner.invoke(main, ["improve", "--path", str(scanned), "--rounds", "2"])

        assert result.exit_code == 0, result.output
        assert "Round 1: 2 file(s) probed" in result.output
        assert "Round 2: 2 file(s) probed" in result.output
        assert "Improved 4 file(s)" in result.output
        with get_connection(scanned / "info.db") as conn:
            record = get_media_file(conn, str(scanned / "b.mkv"))
        assert record.probes == 3
        assert record.facechecked

    def test_stops_when_nothing_improvable(
        self, runner: CliRunner, scanned: Path, cli_scorer
    ) -> None:
        # a face large enough to meet the target score
        cli_scorer.respond = lambda image: [
            FaceObservation(area=200_000, confidence=1.0, quality=1.0)
        ]
        result = runner.invoke(main, ["improve", "--path", str(scanned), "--rounds", "5"])

        assert result.exit_code == 0, result.output
        assert "Round 1: 0 file(s) probed" in result.output
        assert "Round 2" not in result.output
        assert "Improved 0 file(s)" in result.output

    def test_invalid_rounds(self, runner: CliRunner, scanned: Path, cli_scorer) -> None:
        result = runner.invoke(main, ["improve", "--path", str(scanned), "--rounds", "0"])
        assert result.exit_code == 2
