"""Serving of obfuscated client bundles."""

from __future__ import annotations

import re
from collections.abc import Callable

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from vue_ssr import Renderer
from vue_ssr.obfuscation import PathObfuscator

pytestmark = pytest.mark.integration

_SCRIPT = re.compile(r'<script defer src="([^"]+)"></script>')
_STYLE = re.compile(r'<link href="([^"]+)" rel="stylesheet">')


def _client(app: FastAPI) -> TestClient:
    @app.get("/")
    async def home(request: Request):
        return await request.state.vue("Test.vue")

    return TestClient(app)


def _asset_urls(page: str) -> tuple[str, str]:
    return _SCRIPT.search(page).group(1), _STYLE.search(page).group(1)


class TestAssetRoutes:
    def test_bundle_and_stylesheet_served(self, app: FastAPI, renderer: Renderer) -> None:
        client = _client(app)
        script_url, style_url = _asset_urls(client.get("/").text)

        assert script_url.startswith("/public/ssr/")
        assert "views" not in script_url.split("/")[3]

        script = client.get(script_url)
        assert script.status_code == 200
        assert script.headers["content-type"].startswith("application/javascript")
        assert "client bundle for Test.vue" in script.text

        style = client.get(style_url)
        assert style.status_code == 200
        assert style.headers["content-type"].startswith("text/css")

    def test_source_maps_in_development(self, app: FastAPI, renderer: Renderer) -> None:
        client = _client(app)
        script_url, style_url = _asset_urls(client.get("/").text)

        assert client.get(f"{script_url}.map").status_code == 200
        assert client.get(f"{style_url}.map").status_code == 200

    def test_source_map_kind_must_be_js_or_css(self, app: FastAPI, renderer: Renderer) -> None:
        client = _client(app)
        script_url, _ = _asset_urls(client.get("/").text)

        response = client.get(script_url.replace(".js", ".txt.map"))
        assert response.status_code == 404

    def test_no_source_maps_in_production(self, app: FastAPI, make_renderer: Callable[..., Renderer]) -> None:
        make_renderer(production_mode=True)
        client = _client(app)
        script_url, _ = _asset_urls(client.get("/").text)

        assert client.get(script_url).status_code == 200
        assert client.get(f"{script_url}.map").status_code == 404

    def test_unknown_folder_segment(self, app: FastAPI, renderer: Renderer) -> None:
        client = _client(app)
        response = client.get("/public/ssr/not-a-token/bundle-client.abc.js")

        assert response.status_code == 404
        assert "Couldn't find the bundle file" in response.text

    def test_token_from_another_project(self, app: FastAPI, renderer: Renderer) -> None:
        client = _client(app)
        token = PathObfuscator("/some/other/project").obfuscate("views/Test")

        assert client.get(f"/public/ssr/{token}/bundle-client.abc.js").status_code == 404

    def test_missing_file_in_known_folder(self, app: FastAPI, renderer: Renderer) -> None:
        client = _client(app)
        client.get("/")
        token = renderer.obfuscate("views/Test")

        assert client.get(f"/public/ssr/{token}/bundle-client.doesnotexist.js").status_code == 404


class TestMountedApp:
    def test_assets_served_under_a_mount_prefix(self, app: FastAPI, renderer: Renderer) -> None:
        @app.get("/")
        async def home(request: Request):
            return await request.state.vue("Test.vue")

        outer = FastAPI()
        outer.mount("/site", app)
        client = TestClient(outer)

        page = client.get("/site/")
        assert page.status_code == 200
        script_url, style_url = _asset_urls(page.text)

        script = client.get(f"/site{script_url}")
        assert script.status_code == 200
        assert "client bundle for Test.vue" in script.text
        assert client.get(f"/site{style_url}").status_code == 200
        assert client.get(f"/site{script_url}.map").status_code == 200
