"""Tests for the HTTP application."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from types import SimpleNamespace
from typing import TYPE_CHECKING

from aiohttp.test_utils import AioHTTPTestCase

from avindex import __version__
from avindex.db import initialize_database, open_connection, record_ingest
from avindex.media import MediaInfo, ProbeReply, ProbeRequest, Thumbnail
from avindex.server import ServerLifecycle, create_app, resolve_media_file
from avindex.server.app import THUMBNAIL_CACHE_CONTROL

if TYPE_CHECKING:
    from aiohttp import web

IMAGE = b"RIFF\x10\x00\x00\x00WEBPVP8 thumbnail"


def build_catalogue(root: Path) -> Path:
    """Create a media root holding one catalogued video."""
    media = root / "media"
    (media / "films").mkdir(parents=True)
    (media / "films" / "a.mkv").write_bytes(b"video bytes")
    (root / "secret.txt").write_text("outside the root")

    db_path = media / "info.db"
    conn = open_connection(db_path)
    try:
        initialize_database(conn)
        path = str(media / "films" / "a.mkv")
        record_ingest(
            conn,
            ProbeReply(
                request=ProbeRequest(path=path),
                info=MediaInfo(
                    path=path,
                    size=11,
                    tags={"title": "A"},
                    thumbnails=[Thumbnail(IMAGE)],
                ),
            ),
        )
    finally:
        conn.close()
    return db_path


class TestCatalogueEndpoints(AioHTTPTestCase):
    """Tests for /health, /tmb and /file against a small catalogue."""

    async def get_application(self) -> web.Application:
        self._root = Path(tempfile.mkdtemp())
        self._db_path = build_catalogue(self._root)
        self._lifecycle = ServerLifecycle()
        return create_app(
            db_path=self._db_path,
            media_path=self._db_path.parent,
            lifecycle=self._lifecycle,
        )

    async def tearDownAsync(self) -> None:
        await super().tearDownAsync()
        shutil.rmtree(self._root, ignore_errors=True)

    async def test_health_reports_counts(self) -> None:
        resp = await self.client.get("/health")
        assert resp.status == 200
        data = await resp.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["version"] == __version__
        assert data["files"] == 1
        assert data["media_files"] == 1
        assert data["thumbnails"] == 1
        assert data["unevaluated"] == 1
        assert data["failed_loops"] == []

    async def test_health_degraded_when_a_loop_failed(self) -> None:
        self._lifecycle.loops = [
            SimpleNamespace(name="ingest", failed=False),
            SimpleNamespace(name="improve", failed=True),
        ]
        resp = await self.client.get("/health")
        assert resp.status == 503
        data = await resp.json()
        assert data["status"] == "degraded"
        assert data["failed_loops"] == ["improve"]

    async def test_health_unhealthy_while_shutting_down(self) -> None:
        self._lifecycle.initiate_shutdown()
        resp = await self.client.get("/health")
        assert resp.status == 503
        data = await resp.json()
        assert data["status"] == "unhealthy"
        assert data["shutting_down"] is True

    async def test_thumbnail_served(self) -> None:
        resp = await self.client.get(f"/tmb/{Thumbnail(IMAGE).thumbname}")
        assert resp.status == 200
        assert resp.content_type == "image/webp"
        assert resp.headers["Cache-Control"] == THUMBNAIL_CACHE_CONTROL
        assert await resp.read() == IMAGE

    async def test_unknown_thumbnail(self) -> None:
        resp = await self.client.get(f"/tmb/{Thumbnail(b'other').thumbname}")
        assert resp.status == 404

    async def test_malformed_thumbname(self) -> None:
        for name in ("abc.webp", "x" * 128 + ".webp", Thumbnail(IMAGE).digest + ".png"):
            resp = await self.client.get(f"/tmb/{name}")
            assert resp.status == 404, name

    async def test_media_file_served(self) -> None:
        resp = await self.client.get("/file/films/a.mkv")
        assert resp.status == 200
        assert await resp.read() == b"video bytes"

    async def test_directory_not_served(self) -> None:
        resp = await self.client.get("/file/films")
        assert resp.status == 404

    async def test_missing_file(self) -> None:
        resp = await self.client.get("/file/films/missing.mkv")
        assert resp.status == 404

    async def test_symlink_out_of_root_refused(self) -> None:
        os.symlink(self._root / "secret.txt", self._db_path.parent / "link.txt")
        resp = await self.client.get("/file/link.txt")
        assert resp.status == 404


class TestWithoutCatalogue(AioHTTPTestCase):
    """Tests for a server started before the catalogue exists."""

    async def get_application(self) -> web.Application:
        self._root = Path(tempfile.mkdtemp())
        return create_app(db_path=self._root / "info.db", media_path=self._root)

    async def tearDownAsync(self) -> None:
        await super().tearDownAsync()
        shutil.rmtree(self._root, ignore_errors=True)

    async def test_health_degraded(self) -> None:
        resp = await self.client.get("/health")
        assert resp.status == 503
        data = await resp.json()
        assert data["status"] == "degraded"
        assert data["database"] == "disconnected"
        assert data["files"] == 0

    async def test_thumbnail_not_found(self) -> None:
        resp = await self.client.get(f"/tmb/{Thumbnail(IMAGE).thumbname}")
        assert resp.status == 404


class TestResolveMediaFile:
    """Tests for resolve_media_file."""

    def test_file_below_root(self, tmp_path: Path) -> None:
        (tmp_path / "a.mkv").write_text("x")
        assert resolve_media_file(tmp_path.resolve(), "a.mkv") == (tmp_path / "a.mkv").resolve()

    def test_leading_slash_stays_below_root(self, tmp_path: Path) -> None:
        (tmp_path / "a.mkv").write_text("x")
        assert resolve_media_file(tmp_path.resolve(), "/a.mkv") is not None

    def test_parent_traversal_refused(self, tmp_path: Path) -> None:
        root = tmp_path / "media"
        root.mkdir()
        (tmp_path / "secret.txt").write_text("x")
        assert resolve_media_file(root.resolve(), "../secret.txt") is None
        assert resolve_media_file(root.resolve(), "a/../../secret.txt") is None

    def test_directory_refused(self, tmp_path: Path) -> None:
        (tmp_path / "dir").mkdir()
        assert resolve_media_file(tmp_path.resolve(), "dir") is None
