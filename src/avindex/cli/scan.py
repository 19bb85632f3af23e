"""Scan and cull commands for avindex CLI."""

from __future__ import annotations

import json
import logging
import sqlite3
import sys
import time
from dataclasses import asdict
from pathlib import Path

import click

from avindex.cli.common import (
    build_probe,
    conc_option,
    db_option,
    load_config_or_exit,
    open_catalogue_or_exit,
    path_option,
    require_media_path,
)
from avindex.cli.exit_codes import ExitCode
from avindex.db import cull_missing
from avindex.jobs import IngestPass, IngestSummary
from avindex.scanner import Scanner

logger = logging.getLogger(__name__)


def output_json(summary: IngestSummary, elapsed: float) -> None:
    """Output ingest results in JSON format."""
    data = asdict(summary)
    data["scan"].pop("paths")
    data["elapsed_seconds"] = round(elapsed, 3)
    click.echo(json.dumps(data, indent=2))


def output_human(root: Path, summary: IngestSummary, elapsed: float) -> None:
    """Output ingest results in human-readable format."""
    scan = summary.scan
    click.echo(f"\nScanning {root}...")
    click.echo(f"  Discovered: {scan.files_found:,} files")
    click.echo(f"  Skipped (unchanged): {scan.files_unchanged:,}")
    click.echo(f"  Probed (new): {scan.files_new:,}")
    click.echo(f"  Probed (changed): {scan.files_changed:,}")
    click.echo(f"  Media: {summary.media:,}")
    click.echo(f"  Not media: {summary.not_media:,}")
    if summary.failed:
        click.echo(f"  Failed: {summary.failed:,}")
    if summary.files_removed:
        click.echo(f"  Removed (missing): {summary.files_removed:,}")
    click.echo(f"\nScan complete in {elapsed:.1f}s")


@click.command("scan")
@path_option
@db_option
@conc_option
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    default=False,
    help="Output results in JSON format.",
)
@click.pass_context
def scan_command(
    ctx: click.Context,
    media_path: Path | None,
    db_path: Path | None,
    workers: int | None,
    json_output: bool,
) -> None:
    """Run one ingest pass over the media tree, then exit.

    New and changed files are probed for tags and a thumbnail. Files that
    no longer exist are removed from the catalogue.

    \b
    Examples:
        avindex scan --path /srv/media
        avindex scan --path /srv/media --conc 4 --json
    """
    config = load_config_or_exit(
        ctx, media_path=media_path, database_path=db_path, workers=workers
    )
    require_media_path(config)
    db = config.resolved_database_path
    probe = build_probe()

    start = time.monotonic()
    with open_catalogue_or_exit(db) as conn:
        ingest = IngestPass(
            conn,
            Scanner(config.media_path, db_path=db),
            probe,
            workers=config.ingest.workers,
        )
        try:
            summary = ingest.run()
        except KeyboardInterrupt:
            click.echo("\nScan interrupted. Partial results saved.", err=True)
            sys.exit(ExitCode.INTERRUPTED)
        except sqlite3.Error as e:
            click.echo(f"Error: {e}", err=True)
            click.echo(
                "Hint: another avindex process may hold the database.", err=True
            )
            sys.exit(ExitCode.DATABASE_ERROR)
        except OSError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(ExitCode.GENERAL_ERROR)
    elapsed = time.monotonic() - start

    if json_output:
        output_json(summary, elapsed)
    else:
        output_human(config.media_path, summary, elapsed)


@click.command("cull")
@path_option
@db_option
@click.pass_context
def cull_command(
    ctx: click.Context,
    media_path: Path | None,
    db_path: Path | None,
) -> None:
    """Remove catalogue entries for files that no longer exist."""
    config = load_config_or_exit(ctx, media_path=media_path, database_path=db_path)

    with open_catalogue_or_exit(config.resolved_database_path) as conn:
        try:
            removed = cull_missing(conn)
        except sqlite3.Error as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(ExitCode.DATABASE_ERROR)

    click.echo(f"Removed {len(removed)} missing file(s)")
