"""HTTP application for `avindex serve`.

This module provides the aiohttp Application: a health check, thumbnail
images straight from the catalogue, and the media files themselves.
"""

from __future__ import annotations

import asyncio
import logging
import re
import sqlite3
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from aiohttp import web

from avindex import __version__
from avindex.db import ConnectionPool, get_catalogue_stats, get_thumbnail_image

if TYPE_CHECKING:
    from avindex.server.lifecycle import ServerLifecycle

logger = logging.getLogger(__name__)

HEALTH_CHECK_TIMEOUT = 5.0  # seconds

THUMBNAME_PATTERN = re.compile(r"^[0-9a-f]{128}\.webp$")

# Thumbnails are content addressed, so a name never changes its image
THUMBNAIL_CACHE_CONTROL = "public, max-age=31536000, immutable"


@dataclass
class HealthStatus:
    """Health check response payload."""

    status: str
    """Overall status: 'healthy', 'degraded', or 'unhealthy'."""

    database: str
    """Database connectivity: 'connected' or 'disconnected'."""

    uptime_seconds: float
    """Seconds since server startup."""

    version: str
    """avindex version string."""

    shutting_down: bool = False
    """True if graceful shutdown is in progress."""

    files: int = 0
    media_files: int = 0
    thumbnails: int = 0
    unevaluated: int = 0

    failed_loops: list[str] = field(default_factory=list)
    """Background loops that stopped on an error."""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


async def check_database_health(
    connection_pool: ConnectionPool | None,
) -> dict[str, int] | None:
    """Read catalogue counts through the pool.

    Runs in a worker thread so the event loop never blocks on SQLite, and
    gives up after HEALTH_CHECK_TIMEOUT seconds.

    Args:
        connection_pool: ConnectionPool instance or None.

    Returns:
        Row counts if the catalogue is readable, otherwise None.
    """
    if connection_pool is None:
        return None

    def _sync_check() -> dict[str, int] | None:
        try:
            with connection_pool.read_connection() as conn:
                return asdict(get_catalogue_stats(conn))
        except sqlite3.OperationalError as e:
            logger.warning("Database locked or inaccessible: %s", e)
            return None
        except sqlite3.DatabaseError as e:
            logger.warning("Database error during health check: %s", e)
            return None
        except RuntimeError as e:
            logger.warning("Health check on closed pool: %s", e)
            return None

    try:
        return await asyncio.wait_for(
            asyncio.to_thread(_sync_check),
            timeout=HEALTH_CHECK_TIMEOUT,
        )
    except asyncio.TimeoutError:
        logger.warning(
            "Database health check timed out after %.1fs", HEALTH_CHECK_TIMEOUT
        )
        return None


async def _cleanup_connection_pool(app: web.Application) -> None:
    """Cleanup handler to close the connection pool on shutdown."""
    pool: ConnectionPool | None = app.get("connection_pool")
    if pool is not None:
        logger.debug("Closing database connection pool")
        pool.close()


def create_app(
    db_path: Path | None,
    media_path: Path,
    lifecycle: ServerLifecycle | None = None,
) -> web.Application:
    """Create and configure the aiohttp Application.

    Args:
        db_path: Catalogue database. A connection pool is created when the
            file exists.
        media_path: Root directory served under /file/.
        lifecycle: Shared server lifecycle, reported by /health.

    Returns:
        Configured aiohttp Application instance.
    """
    app = web.Application()

    app["lifecycle"] = lifecycle
    app["media_path"] = media_path.resolve()

    if db_path is not None and db_path.exists():
        app["connection_pool"] = ConnectionPool(db_path)
        logger.debug("Created database connection pool for %s", db_path)
    else:
        logger.warning("Database %s not found, serving without catalogue", db_path)
        app["connection_pool"] = None

    app.router.add_get("/health", health_handler)
    app.router.add_get("/tmb/{thumbname}", thumbnail_handler)
    app.router.add_get("/file/{path:.*}", file_handler)

    app.on_cleanup.append(_cleanup_connection_pool)

    return app


async def health_handler(request: web.Request) -> web.Response:
    """Handle GET /health requests.

    Returns JSON health status with appropriate HTTP status code:
    - 200: healthy (database readable, loops running, not shutting down)
    - 503: degraded/unhealthy otherwise

    Args:
        request: aiohttp Request object.

    Returns:
        JSON response with HealthStatus payload.
    """
    lifecycle: ServerLifecycle | None = request.app.get("lifecycle")
    connection_pool: ConnectionPool | None = request.app.get("connection_pool")

    counts = await check_database_health(connection_pool)

    shutting_down = lifecycle.is_shutting_down if lifecycle else False
    uptime = lifecycle.uptime_seconds if lifecycle else 0.0
    failed_loops = lifecycle.failed_loops if lifecycle else []

    if shutting_down:
        status = "unhealthy"
    elif counts is None or failed_loops:
        status = "degraded"
    else:
        status = "healthy"

    health = HealthStatus(
        status=status,
        database="connected" if counts is not None else "disconnected",
        uptime_seconds=round(uptime, 1),
        version=__version__,
        shutting_down=shutting_down,
        failed_loops=failed_loops,
        **(counts or {}),
    )

    http_status = 200 if status == "healthy" else 503

    return web.json_response(health.to_dict(), status=http_status)


async def thumbnail_handler(request: web.Request) -> web.Response:
    """Handle GET /tmb/{thumbname} requests with the stored WEBP image.

    Raises:
        web.HTTPNotFound: Malformed name, unknown thumbnail or no catalogue.
    """
    thumbname = request.match_info["thumbname"]
    if not THUMBNAME_PATTERN.match(thumbname):
        raise web.HTTPNotFound()

    pool: ConnectionPool | None = request.app.get("connection_pool")
    if pool is None:
        raise web.HTTPNotFound()

    def _load() -> bytes | None:
        with pool.read_connection() as conn:
            return get_thumbnail_image(conn, thumbname)

    image = await asyncio.to_thread(_load)
    if image is None:
        raise web.HTTPNotFound()

    return web.Response(
        body=image,
        content_type="image/webp",
        headers={"Cache-Control": THUMBNAIL_CACHE_CONTROL},
    )


def resolve_media_file(root: Path, relative: str) -> Path | None:
    """Resolve a request path to a regular file below root.

    Args:
        root: Resolved media root.
        relative: Path taken from the URL.

    Returns:
        The resolved file, or None if it escapes root or is not a file.
    """
    target = (root / relative.lstrip("/")).resolve()
    if not target.is_relative_to(root) or not target.is_file():
        return None
    return target


async def file_handler(request: web.Request) -> web.FileResponse:
    """Handle GET /file/{path} requests for files below the media root.

    Raises:
        web.HTTPNotFound: The path leaves the media root or is not a file.
    """
    root: Path = request.app["media_path"]
    target = resolve_media_file(root, request.match_info["path"])
    if target is None:
        logger.debug("Refusing file request for %s", request.match_info["path"])
        raise web.HTTPNotFound()
    return web.FileResponse(target)
