"""Evaluate and improve commands for avindex CLI.

Both need the face models (AVINDEX_DETECT_MODEL, AVINDEX_ASSESS_MODEL).
"""

from __future__ import annotations

import logging
import sqlite3
import sys
from pathlib import Path

import click

from avindex.cli.common import (
    build_probe,
    build_scorer_or_exit,
    conc_option,
    db_option,
    load_config_or_exit,
    open_catalogue_or_exit,
    path_option,
)
from avindex.cli.exit_codes import ExitCode
from avindex.jobs import Evaluator, Improver

logger = logging.getLogger(__name__)


@click.command("evaluate")
@path_option
@db_option
@click.pass_context
def evaluate_command(
    ctx: click.Context,
    media_path: Path | None,
    db_path: Path | None,
) -> None:
    """Score every thumbnail not yet checked for faces."""
    config = load_config_or_exit(ctx, media_path=media_path, database_path=db_path)
    scorer = build_scorer_or_exit(config, required=True)

    with open_catalogue_or_exit(config.resolved_database_path) as conn:
        evaluator = Evaluator(conn, scorer, keep=config.ingest.thumbnails_per_file)
        try:
            evaluated = evaluator.run()
        except KeyboardInterrupt:
            click.echo("\nEvaluation interrupted. Partial results saved.", err=True)
            sys.exit(ExitCode.INTERRUPTED)
        except sqlite3.Error as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(ExitCode.DATABASE_ERROR)

    click.echo(f"Evaluated {evaluated} file(s)")


@click.command("improve")
@path_option
@db_option
@conc_option
@click.option(
    "--rounds",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Improvement rounds to run.",
)
@click.pass_context
def improve_command(
    ctx: click.Context,
    media_path: Path | None,
    db_path: Path | None,
    workers: int | None,
    rounds: int,
) -> None:
    """Probe poorly scoring files again for better thumbnails.

    Each round probes every improvable file once more, then evaluates the
    new thumbnails. Stops early when a round finds nothing to improve.
    """
    config = load_config_or_exit(
        ctx, media_path=media_path, database_path=db_path, workers=workers
    )
    scorer = build_scorer_or_exit(config, required=True)
    probe = build_probe()
    ingest = config.ingest

    with open_catalogue_or_exit(config.resolved_database_path) as conn:
        evaluator = Evaluator(conn, scorer, keep=ingest.thumbnails_per_file)
        improver = Improver(
            conn,
            probe,
            workers=ingest.workers,
            probe_min=ingest.probe_min,
            probe_max=ingest.probe_max,
        )
        total = 0
        try:
            evaluator.run()
            for round_number in range(1, rounds + 1):
                improved = improver.run()
                click.echo(f"Round {round_number}: {improved} file(s) probed")
                if not improved:
                    break
                total += improved
                evaluator.run()
        except KeyboardInterrupt:
            click.echo("\nImprovement interrupted. Partial results saved.", err=True)
            sys.exit(ExitCode.INTERRUPTED)
        except sqlite3.Error as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(ExitCode.DATABASE_ERROR)

    click.echo(f"Improved {total} file(s)")
