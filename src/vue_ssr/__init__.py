"""
vue-ssr: server-side rendering of Vue single-file components for FastAPI.

Quick start:

    from fastapi import FastAPI, Request
    from vue_ssr import Renderer

    app = FastAPI()
    renderer = Renderer({"app": app, "project_directory": "."})

    @app.get("/")
    @renderer.view("Home.vue")
    async def home(request: Request):
        return await request.state.vue("Home.vue", {"user": "ada"})
"""

from __future__ import annotations

__version__ = "0.1.0"

from .errors import (
    BuildError,
    ConfigurationError,
    DecryptionError,
    ModuleLoadError,
    NotFoundError,
    RenderError,
    VueSSRError,
)
from .options import RendererOptions, RendererOptionsOverride, WebpackOptions
from .prerender import RenderTarget, render_target
from .renderer import Renderer, RendererMiddleware, create_renderer

__all__ = [
    "__version__",
    # Renderer
    "Renderer",
    "RendererMiddleware",
    "create_renderer",
    "RenderTarget",
    "render_target",
    # Options
    "RendererOptions",
    "RendererOptionsOverride",
    "WebpackOptions",
    # Errors
    "VueSSRError",
    "ConfigurationError",
    "NotFoundError",
    "BuildError",
    "DecryptionError",
    "ModuleLoadError",
    "RenderError",
]
