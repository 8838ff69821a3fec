"""
Rendering with the real webpack build and Node render worker.

Needs Node.js and the npm packages listed in
``src/vue_ssr/build_files/package.json``. Install them with
``npm install --prefix src/vue_ssr/build_files`` or point
``VUE_SSR_NODE_MODULES`` at an existing ``node_modules`` folder.
"""

from __future__ import annotations

import json
import os
import re
import shutil
from pathlib import Path

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from vue_ssr import Renderer
from vue_ssr.bundle_config import MANIFEST_FILENAME
from vue_ssr.paths import PACKAGE_ROOT
from vue_ssr.server_render import node_binary

NODE_MODULES = Path(os.environ.get("VUE_SSR_NODE_MODULES", PACKAGE_ROOT / "build_files" / "node_modules"))

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        shutil.which(node_binary()) is None or not (NODE_MODULES / "webpack").is_dir(),
        reason="needs Node.js and the packages in build_files/package.json",
    ),
]

_SCRIPT = re.compile(r'<script defer="defer" src="([^"]+)"></script>|<script defer src="([^"]+)"></script>')


@pytest.fixture
def node_project(project_dir: Path) -> Path:
    """Fixture project whose node_modules is the installed build toolchain."""
    (project_dir / "node_modules").symlink_to(NODE_MODULES.resolve(), target_is_directory=True)
    return project_dir


@pytest.fixture
def node_renderer(app: FastAPI, node_project: Path) -> Renderer:
    renderer = Renderer(
        {
            "app": app,
            "project_directory": str(node_project),
            "views_folder": str(node_project / "views"),
            "output_folder": str(node_project / "dist"),
            "production_mode": False,
        }
    )

    @app.get("/")
    async def home(request: Request):
        return await request.state.vue("Test.vue")

    @app.get("/parent")
    async def parent(request: Request):
        return await request.state.vue("Parent.vue", {"from": "server"})

    return renderer


class TestWebpackRendering:
    def test_hello_world(self, app: FastAPI, node_renderer: Renderer, node_project: Path) -> None:
        with TestClient(app) as client:
            response = client.get("/")

        assert response.status_code == 200
        assert "Hello, world!" in response.text
        assert "<div id='app'>" in response.text

        manifest = json.loads((node_project / "dist" / "views" / "Test" / MANIFEST_FILENAME).read_text())
        assert manifest["main.js"].startswith("bundle-server.")
        assert manifest["main.js"].endswith(".js")

    def test_parent_before_child(self, app: FastAPI, node_renderer: Renderer) -> None:
        with TestClient(app) as client:
            text = client.get("/parent").text

        assert text.index('id="parent"') < text.index('id="child"')
        assert 'window.__INITIAL_STATE__ = {"from": "server"}' in text

    def test_client_bundle_served(self, app: FastAPI, node_renderer: Renderer) -> None:
        with TestClient(app) as client:
            page = client.get("/").text
            match = _SCRIPT.search(page)
            assert match is not None
            script = client.get(match.group(1) or match.group(2))

        assert script.status_code == 200
        assert script.headers["content-type"].startswith("application/javascript")

    def test_render_worker_reused_across_requests(self, app: FastAPI, node_renderer: Renderer) -> None:
        with TestClient(app) as client:
            client.get("/")
            pid = node_renderer.node_worker.pid
            assert pid is not None
            client.get("/")
            assert node_renderer.node_worker.pid == pid

        assert node_renderer.node_worker.running is False
