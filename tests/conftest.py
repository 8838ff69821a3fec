"""Shared pytest fixtures for vue-ssr tests."""

from __future__ import annotations

import shutil
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from fakes import FakeBundler
from fastapi import FastAPI

from vue_ssr import Renderer

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A throwaway project directory holding copies of the fixture views."""
    project = tmp_path / "project"
    shutil.copytree(FIXTURES_DIR, project)
    return project


@pytest.fixture
def bundler() -> FakeBundler:
    return FakeBundler()


@pytest.fixture
def app() -> FastAPI:
    return FastAPI()


@pytest.fixture
def make_renderer(app: FastAPI, project_dir: Path, bundler: FakeBundler) -> Callable[..., Renderer]:
    """Factory for renderers bound to ``app`` and the fake bundler."""

    def factory(**overrides: Any) -> Renderer:
        options: dict[str, Any] = {
            "app": app,
            "project_directory": str(project_dir),
            "views_folder": str(project_dir / "views"),
            "output_folder": str(project_dir / "dist"),
            "production_mode": False,
            "bundler": bundler,
        }
        options.update(overrides)
        return Renderer(options)

    return factory


@pytest.fixture
def renderer(make_renderer: Callable[..., Renderer]) -> Renderer:
    return make_renderer()
