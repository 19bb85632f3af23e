"""Shared setup for CLI commands: configuration, catalogue, probe, scorer.

The *_or_exit helpers print an error and exit with the matching ExitCode
instead of raising.
"""

from __future__ import annotations

import logging
import sqlite3
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from avindex.cli.exit_codes import ExitCode
from avindex.config import AvIndexConfig, TomlParseError, get_config
from avindex.db import initialize_database, open_connection
from avindex.media import MediaProbe
from avindex.scorer import Scorer, ScorerError

logger = logging.getLogger(__name__)


def path_option(func):
    """Add the --path option for the media root."""
    return click.option(
        "--path",
        "media_path",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        help="Media root to index (default: current directory).",
    )(func)


def db_option(func):
    """Add the --db option for the catalogue file."""
    return click.option(
        "--db",
        "db_path",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        help="Catalogue database; relative paths are below the media root "
        "(default: info.db).",
    )(func)


def conc_option(func):
    """Add the --conc option for the probe worker count."""
    return click.option(
        "--conc",
        "workers",
        type=click.IntRange(min=1),
        default=None,
        help="Number of probe workers (default: 2).",
    )(func)


def load_config_or_exit(ctx: click.Context, **overrides) -> AvIndexConfig:
    """Load configuration with CLI overrides applied.

    Args:
        ctx: Click context; its obj may carry the --config path.
        **overrides: Keyword overrides accepted by get_config.

    Returns:
        The effective configuration.
    """
    config_path = (ctx.obj or {}).get("config_path")
    try:
        return get_config(config_path=config_path, strict=True, **overrides)
    except (TomlParseError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(ExitCode.CONFIG_ERROR)


def require_media_path(config: AvIndexConfig) -> None:
    """Exit with TARGET_NOT_FOUND unless the media root is a directory."""
    if not config.media_path.is_dir():
        click.echo(f"Error: media path not found: {config.media_path}", err=True)
        sys.exit(ExitCode.TARGET_NOT_FOUND)


@contextmanager
def open_catalogue_or_exit(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Open and initialize the catalogue, closing it on exit.

    Yields:
        A connection with the schema in place and scores up to date.
    """
    try:
        conn = open_connection(db_path)
    except (sqlite3.Error, OSError) as e:
        click.echo(f"Error: cannot open database {db_path}: {e}", err=True)
        sys.exit(ExitCode.DATABASE_ERROR)

    try:
        try:
            initialize_database(conn)
        except sqlite3.Error as e:
            click.echo(f"Error: cannot initialize database {db_path}: {e}", err=True)
            sys.exit(ExitCode.DATABASE_ERROR)
        yield conn
    finally:
        conn.close()


def build_probe() -> MediaProbe:
    """Build the MediaProbe backed by PyAV."""
    from avindex.media.pyav import PyAVDecoder

    return MediaProbe(PyAVDecoder())


def build_scorer_or_exit(config: AvIndexConfig, required: bool = False) -> Scorer | None:
    """Load the face models when both are configured.

    Args:
        config: Effective configuration.
        required: Exit with CONFIG_ERROR when the models are not configured.

    Returns:
        The scorer, or None when models are not configured and not required.
    """
    if not config.scorer.enabled:
        if required:
            click.echo(
                "Error: face models not configured "
                "(set AVINDEX_DETECT_MODEL and AVINDEX_ASSESS_MODEL)",
                err=True,
            )
            sys.exit(ExitCode.CONFIG_ERROR)
        return None

    from avindex.scorer.opencv import OpenCVFaceScorer

    try:
        scorer = OpenCVFaceScorer.from_config(config.scorer)
    except ScorerError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(ExitCode.CONFIG_ERROR)

    logger.info("Loaded face models with %d thread(s)", config.scorer.threads)
    return scorer
