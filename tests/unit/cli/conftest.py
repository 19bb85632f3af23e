"""Fixtures for CLI command tests."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner


@pytest.fixture(autouse=True)
def _skip_logging_setup():
    """Leave logging to pytest while commands run."""
    with patch("avindex.cli._configure_logging"):
        yield


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cli_probe(probe):
    """Route every command to the fake decoder instead of PyAV."""
    with (
        patch("avindex.cli.scan.build_probe", return_value=probe),
        patch("avindex.cli.enrich.build_probe", return_value=probe),
        patch("avindex.cli.serve.build_probe", return_value=probe),
    ):
        yield probe


@pytest.fixture
def cli_scorer(fake_scorer):
    """Supply the fake scorer to commands that need face models."""
    with (
        patch("avindex.cli.enrich.build_scorer_or_exit", return_value=fake_scorer),
        patch("avindex.cli.serve.build_scorer_or_exit", return_value=None),
    ):
        yield fake_scorer
