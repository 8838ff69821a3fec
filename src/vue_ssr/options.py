"""
Option models for the renderer.

``RendererOptions`` is what users hand to ``Renderer``; it is validated with
pydantic and then resolved (defaults applied, paths made absolute and
checked) into ``ResolvedRendererOptions``. Per-request data travels as
``CompilationOptions`` and, once validated, as ``WebpackBuilderOptions``.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .fs import FileSystem

DEFAULT_VIEWS_FOLDER = "views"
DEFAULT_OUTPUT_FOLDER = "dist"
DEFAULT_PUBLIC_PREFIX = "/public/ssr"

DEFAULT_TEMPLATE_FILE = "build_files/template.html"
DEFAULT_APP_ENTRY = "build_files/app.js"
DEFAULT_CLIENT_ENTRY = "build_files/entry-client.js"
DEFAULT_SERVER_ENTRY = "build_files/entry-server.js"


def production_mode_from_env(environ: dict[str, str] | None = None) -> bool:
    """
    Production flag when the options do not set one.

    ``VUE_SSR_PRODUCTION`` wins when set; otherwise ``NODE_ENV=production``
    switches production mode on.
    """
    env = os.environ if environ is None else environ
    explicit = env.get("VUE_SSR_PRODUCTION")
    if explicit is not None:
        return explicit.strip().lower() in {"1", "true", "yes", "on"}
    return env.get("NODE_ENV", "").strip().lower() == "production"


# =============================================================================
# User-facing models
# =============================================================================


class EntryFilesOption(BaseModel):
    """Optional replacements for the default entry files."""

    app: str | None = None
    client: str | None = None
    server: str | None = None


class WebpackOptions(BaseModel):
    """
    User webpack configuration.

    Raw graph dicts are merged over the baseline graphs. When the renderer is
    created with ``webpack_override=True`` these are callables
    ``(WebpackBuilderOptions, html) -> dict`` returning the whole graph.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    client: dict[str, Any] | Callable[..., dict[str, Any]] = Field(default_factory=dict)
    server: dict[str, Any] | Callable[..., dict[str, Any]] = Field(default_factory=dict)


class RendererOptions(BaseModel):
    """Options accepted by ``Renderer``."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    app: Any = None
    project_directory: str | None = None
    views_folder: str | None = None
    output_folder: str | None = None
    webpack_override: bool = False
    webpack: WebpackOptions = Field(default_factory=WebpackOptions)
    public_prefix: str | None = None
    template_file: str | None = None
    entry_files: EntryFilesOption = Field(default_factory=EntryFilesOption)
    production_mode: bool | None = None
    html: dict[str, Any] = Field(default_factory=dict)
    fs: Any = None
    obfuscation_key: str | None = None
    bundler: Any = None
    render_to_string: Callable[..., Any] | None = None


class RendererOptionsOverride(BaseModel):
    """Per-call options that replace the renderer's own for a single render."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    project_directory: str | None = None
    views_folder: str | None = None
    output_folder: str | None = None
    webpack_override: bool | None = None
    public_prefix: str | None = None
    template_file: str | None = None
    entry_files: EntryFilesOption | None = None
    html: dict[str, Any] | None = None


# =============================================================================
# Resolved / derived options
# =============================================================================


@dataclass
class EntryFiles:
    app: str
    client: str
    server: str


@dataclass
class ResolvedRendererOptions:
    """Renderer options with defaults applied and every path absolute and existing."""

    project_directory: str
    views_folder: str
    output_folder: str
    webpack_override: bool
    webpack: WebpackOptions
    public_prefix: str
    app: Any
    template_file: str
    entry_files: EntryFiles
    production_mode: bool
    html: dict[str, Any]
    fs: FileSystem
    obfuscation_key: str | None = None
    bundler: Any = None
    render_to_string: Callable[..., Any] | None = None


@dataclass
class CompilationOptions:
    """Everything known about one render call."""

    renderer_options: ResolvedRendererOptions
    input_file: str | None
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class WebpackBuilderOptions:
    """Fully resolved parameters for exactly one webpack build."""

    output_folder: str
    input_file: str
    entry_files: EntryFiles
    webpack_override: bool
    custom: WebpackOptions
    public_prefix: str
    template_file: str
    html: dict[str, Any]
    production_mode: bool
    project_directory: str
    fs: FileSystem


__all__ = [
    "DEFAULT_OUTPUT_FOLDER",
    "DEFAULT_PUBLIC_PREFIX",
    "DEFAULT_VIEWS_FOLDER",
    "CompilationOptions",
    "EntryFiles",
    "EntryFilesOption",
    "RendererOptions",
    "RendererOptionsOverride",
    "ResolvedRendererOptions",
    "WebpackBuilderOptions",
    "WebpackOptions",
    "production_mode_from_env",
]
