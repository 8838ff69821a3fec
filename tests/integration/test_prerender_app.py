"""Prerendering every view registered on an app's route table."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest
from fakes import FakeBundler
from fastapi import APIRouter, FastAPI, Request
from fastapi.testclient import TestClient

from vue_ssr import BuildError, Renderer

pytestmark = pytest.mark.integration


def _register(app: FastAPI, renderer: Renderer) -> None:
    @app.get("/")
    @renderer.view("Test.vue")
    async def home(request: Request):
        return await request.state.vue("Test.vue")

    router = APIRouter()

    @router.get("/greet")
    @renderer.view("Greeting.vue", {"name": "prerender"})
    async def greet(request: Request):
        return await request.state.vue("Greeting.vue", {"name": "live"})

    app.include_router(router, prefix="/pages")

    sub = FastAPI()

    @sub.get("/deep")
    @renderer.view(lambda base: str(Path(base) / "views" / "nested" / "Deep.vue"))
    async def deep():
        return None

    app.mount("/sub", sub)

    @app.get("/plain")
    async def plain():
        return {"ok": True}


class TestPrerender:
    def test_builds_each_registered_view(
        self, app: FastAPI, renderer: Renderer, bundler: FakeBundler, project_dir: Path
    ) -> None:
        _register(app, renderer)

        results = asyncio.run(renderer.prerender())

        assert results == [None, None, None]
        assert bundler.run_count == 3
        for stem in ("views/Test", "views/Greeting", "views/nested/Deep"):
            assert (project_dir / "dist" / stem / "index.html").exists()

    def test_render_targets(self, app: FastAPI, renderer: Renderer) -> None:
        _register(app, renderer)
        files = [t.file for t in renderer.render_targets()]
        assert "Test.vue" in files
        assert "Greeting.vue" in files
        assert len(files) == 3

    def test_computed_file_uses_dir(self, app: FastAPI, renderer: Renderer, bundler: FakeBundler, tmp_path: Path) -> None:
        other = tmp_path / "elsewhere"
        (other / "views" / "nested").mkdir(parents=True)
        (other / "views" / "nested" / "Deep.vue").write_text("<template><i>elsewhere</i></template>")
        _register(app, renderer)

        asyncio.run(renderer.prerender(str(other)))

        inputs = [graphs[0]["output"]["path"] for graphs in bundler.runs]
        assert any(path.endswith(str(Path("elsewhere") / "views" / "nested" / "Deep")) for path in inputs)

    def test_production_prerender_then_serve_without_rebuild(
        self, app: FastAPI, make_renderer: Callable[..., Renderer], bundler: FakeBundler
    ) -> None:
        renderer = make_renderer(production_mode=True)
        _register(app, renderer)

        asyncio.run(renderer.prerender())
        assert bundler.run_count == 3

        response = TestClient(app).get("/pages/greet")
        assert "Hello, live!" in response.text
        assert bundler.run_count == 3

    def test_failed_view_fails_prerender(self, app: FastAPI, project_dir: Path) -> None:
        renderer = Renderer(
            {
                "app": app,
                "project_directory": str(project_dir),
                "views_folder": str(project_dir / "views"),
                "output_folder": str(project_dir / "dist"),
                "production_mode": False,
                "bundler": FakeBundler(errors=["boom"]),
            }
        )
        _register(app, renderer)

        with pytest.raises(BuildError, match="boom"):
            asyncio.run(renderer.prerender())
