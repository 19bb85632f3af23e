"""CLI serve command.

This module provides the `avindex serve` command: an initial ingest
pass, then the background loops and the HTTP layer until SIGTERM or
SIGINT.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import random
import sqlite3
import sys
import time
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
    require_media_path,
)
from avindex.cli.exit_codes import ExitCode
from avindex.config.models import AvIndexConfig
from avindex.db import is_locked_error
from avindex.jobs import IngestPass, start_background_loops
from avindex.media import MediaProbe
from avindex.scanner import Scanner
from avindex.server.lifecycle import ServerLifecycle

logger = logging.getLogger(__name__)


def run_initial_ingest(
    conn: sqlite3.Connection,
    config: AvIndexConfig,
    db_path: Path,
    probe: MediaProbe,
) -> None:
    """Run the first ingest pass, retrying while the catalogue is locked.

    Another process holding the write lock is transient: sleep a random
    while up to locked_retry_max_seconds and try again. Other database
    errors propagate.
    """
    attempt = 1
    while True:
        try:
            IngestPass(
                conn,
                Scanner(config.media_path, db_path=db_path),
                probe,
                workers=config.ingest.workers,
            ).run()
            return
        except sqlite3.OperationalError as e:
            if not is_locked_error(e):
                raise
            if conn.in_transaction:
                conn.rollback()
        delay = random.uniform(0, config.ingest.locked_retry_max_seconds)
        logger.warning(
            "Initial ingest: database locked (attempt %d), retrying in %.1fs",
            attempt,
            delay,
        )
        attempt += 1
        time.sleep(delay)


async def run_server(
    bind: str,
    port: int,
    lifecycle: ServerLifecycle,
    db_path: Path,
    media_path: Path,
) -> int:
    """Run the HTTP server until a shutdown signal arrives.

    Args:
        bind: Address to bind to.
        port: Port to bind to.
        lifecycle: Shared lifecycle; its stop event reaches the loops.
        db_path: Catalogue database file.
        media_path: Root directory served under /file/.

    Returns:
        Exit code (0 for clean shutdown, non-zero for errors).
    """
    from aiohttp import web

    from avindex.server.app import create_app
    from avindex.server.signals import (
        remove_signal_handlers,
        setup_signal_handlers,
    )

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    handled = setup_signal_handlers(loop, lifecycle, shutdown_event)

    app = create_app(db_path=db_path, media_path=media_path, lifecycle=lifecycle)

    runner = web.AppRunner(app)
    await runner.setup()

    try:
        site = web.TCPSite(runner, bind, port)
        await site.start()

        logger.info(
            "avindex serving %s on http://%s:%d (PID %d)",
            media_path,
            bind,
            port,
            os.getpid(),
        )
        logger.info("Press Ctrl+C or send SIGTERM to stop")

        await shutdown_event.wait()

        logger.info(
            "Shutdown initiated, waiting up to %.1fs for background loops",
            lifecycle.shutdown_timeout,
        )

    except OSError as e:
        if e.errno == errno.EADDRINUSE:
            logger.error("Port %d is already in use", port)
        elif e.errno == errno.EADDRNOTAVAIL:
            logger.error("Cannot bind to address %s", bind)
        else:
            logger.error("Server error: %s", e)
        return ExitCode.GENERAL_ERROR
    finally:
        remove_signal_handlers(loop, handled)
        await runner.cleanup()
        logger.info("HTTP server stopped")

    return ExitCode.SUCCESS


@click.command("serve")
@click.option(
    "--port",
    "-p",
    type=int,
    default=None,
    help="Port to bind to (default: 8080).",
)
@path_option
@db_option
@conc_option
@click.option(
    "--bind",
    type=str,
    default=None,
    help="Address to bind to (default: 0.0.0.0).",
)
@click.option(
    "--scorer-threads",
    type=click.IntRange(min=1),
    default=None,
    help="Threads for face model inference (default: 2).",
)
@click.pass_context
def serve_command(
    ctx: click.Context,
    port: int | None,
    media_path: Path | None,
    db_path: Path | None,
    workers: int | None,
    bind: str | None,
    scorer_threads: int | None,
) -> None:
    """Index a media tree continuously and serve it over HTTP.

    Runs an initial ingest pass, then keeps rescanning in the background
    and, when face models are configured, evaluates and improves
    thumbnails. Serves /health, /tmb/<thumbname> and /file/<path>.

    Configuration precedence (highest to lowest):
      1. CLI flags (--port, --path, --db, etc.)
      2. Environment variables (AVINDEX_*)
      3. Config file (--config or ~/.avindex/config.toml)
      4. Default values

    \b
    Examples:
        avindex serve --path /srv/media
        avindex serve --path /srv/media --port 9000 --conc 4
    """
    config = load_config_or_exit(
        ctx,
        media_path=media_path,
        database_path=db_path,
        workers=workers,
        server_bind=bind,
        server_port=port,
        scorer_threads=scorer_threads,
    )
    require_media_path(config)
    db = config.resolved_database_path

    if config.server.port < 1024:
        logger.warning("Port %d is privileged and may require root", config.server.port)

    scorer = build_scorer_or_exit(config)
    probe = build_probe()

    try:
        with open_catalogue_or_exit(db) as conn:
            logger.info("Initial ingest of %s into %s", config.media_path, db)
            run_initial_ingest(conn, config, db, probe)
    except KeyboardInterrupt:
        logger.info("Interrupted before server started")
        sys.exit(ExitCode.INTERRUPTED)
    except sqlite3.Error as e:
        logger.error("Initial ingest failed: %s", e)
        sys.exit(ExitCode.DATABASE_ERROR)
    except OSError as e:
        logger.error("Cannot read media tree: %s", e)
        sys.exit(ExitCode.GENERAL_ERROR)

    lifecycle = ServerLifecycle(shutdown_timeout=config.server.shutdown_timeout)
    lifecycle.loops = start_background_loops(
        config,
        probe,
        scorer,
        lifecycle.stop_event,
        ingest_delay=config.ingest.scan_interval_seconds,
    )

    exit_code = ExitCode.SUCCESS
    try:
        exit_code = asyncio.run(
            run_server(
                config.server.bind,
                config.server.port,
                lifecycle,
                db,
                config.media_path,
            )
        )
    except KeyboardInterrupt:
        exit_code = ExitCode.INTERRUPTED
    finally:
        lifecycle.initiate_shutdown()
        if not lifecycle.join_loops():
            logger.warning("Background loops still running at exit")
        logger.info("avindex stopped")

    sys.exit(exit_code)
