"""Tests for strata.middleware.static: file serving and use_static."""

from pathlib import Path

import pytest

from strata.application import Application
from strata.middleware.protocol import use_middleware
from strata.middleware.static import StaticFiles
from strata.routing import router
from strata.testing import TestClient


@pytest.fixture
def site(tmp_path: Path) -> Path:
    (tmp_path / "style.css").write_text("body { color: red; }")
    (tmp_path / "index.html").write_text("<h1>home</h1>")
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "index.html").write_text("<h1>docs</h1>")
    return tmp_path


def _api():
    return router().get("/api", lambda ctx: "from router").build()


def _app(middleware: StaticFiles) -> Application:
    return Application().router(_api()).app_config(use_middleware(middleware))


class TestStaticFiles:
    async def test_serves_file_with_content_type(self, site: Path) -> None:
        async with TestClient(_app(StaticFiles(site))) as client:
            response = await client.get("/style.css")
        assert response.status == 200
        assert response.content_type == "text/css"
        assert response.text == "body { color: red; }"
        assert response.header("cache-control") == "public, max-age=3600"

    async def test_root_serves_index(self, site: Path) -> None:
        async with TestClient(_app(StaticFiles(site))) as client:
            response = await client.get("/")
        assert response.text == "<h1>home</h1>"

    async def test_directory_without_slash_redirects(self, site: Path) -> None:
        async with TestClient(_app(StaticFiles(site))) as client:
            response = await client.get("/docs")
        assert response.status == 301
        assert response.header("location") == "/docs/"

    async def test_directory_with_slash_serves_index(self, site: Path) -> None:
        async with TestClient(_app(StaticFiles(site))) as client:
            response = await client.get("/docs/")
        assert response.text == "<h1>docs</h1>"

    async def test_missing_file_falls_through(self, site: Path) -> None:
        async with TestClient(_app(StaticFiles(site))) as client:
            assert (await client.get("/api")).text == "from router"
            assert (await client.get("/nope.txt")).status == 404

    async def test_traversal_is_forbidden(self, site: Path) -> None:
        (site.parent / "secret.txt").write_text("secret")
        async with TestClient(_app(StaticFiles(site))) as client:
            response = await client.get("/../secret.txt")
        assert response.status == 403

    async def test_post_falls_through(self, site: Path) -> None:
        async with TestClient(_app(StaticFiles(site))) as client:
            response = await client.post("/style.css")
        assert response.status == 404

    async def test_prefix(self, site: Path) -> None:
        async with TestClient(_app(StaticFiles(site, prefix="/assets"))) as client:
            assert (await client.get("/assets/style.css")).status == 200
            assert (await client.get("/style.css")).status == 404


class TestUseStatic:
    async def test_serves_declared_directory(self, site: Path) -> None:
        app = Application().router(_api()).use_static(site)
        async with TestClient(app) as client:
            response = await client.get("/style.css")
        assert response.text == "body { color: red; }"

    def test_sets_content_and_web_root(self, site: Path) -> None:
        host = Application().router(_api()).use_static(site).asgi_app().host
        assert Path(host.web_root) == site
        assert Path(host.content_root) == site
