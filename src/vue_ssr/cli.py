"""
vue-ssr command line.

- prerender: compile every view registered on an app's routes
- info: show a renderer's resolved options

TARGET names a ``Renderer`` as ``module:attribute`` (``myapp.main:renderer``),
imported from the current working directory.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import os
import sys
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .errors import VueSSRError
from .logging import setup_logging

app = typer.Typer(
    help="Server-side rendering of Vue views for FastAPI apps",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"vue-ssr {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
) -> None:
    """vue-ssr command line."""


def load_target(target: str) -> Any:
    """
    Import ``module:attribute`` and return the attribute.

    Raises:
        typer.BadParameter: If TARGET is malformed or cannot be imported
    """
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise typer.BadParameter(f"Expected module:attribute, got {target!r}")

    cwd = os.getcwd()
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"Cannot import {module_name}: {e}") from e

    obj: Any = module
    for part in attribute.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise typer.BadParameter(f"{module_name} has no attribute {attribute}") from e
    return obj


@app.command(name="prerender")
def prerender_command(
    target: str = typer.Argument(..., help="Renderer to use, as module:attribute"),
    dir: str | None = typer.Option(
        None,
        "--dir",
        "-d",
        help="Base directory for views computed from their handler's folder",
    ),
    production: bool = typer.Option(
        False,
        "--production",
        help="Build in production mode (sets VUE_SSR_PRODUCTION before import)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Compile every view registered on the app's routes."""
    setup_logging(level=logging.DEBUG if verbose else None)
    if production:
        os.environ["VUE_SSR_PRODUCTION"] = "1"

    renderer = load_target(target)
    targets = renderer.render_targets()
    if not targets:
        console.print("[yellow]No views registered on the app's routes[/yellow]")
        return

    try:
        asyncio.run(renderer.prerender(dir))
    except VueSSRError as e:
        console.print(f"[red]Prerender failed: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Prerendered {len(targets)} view(s)[/green]")


@app.command(name="info")
def info_command(
    target: str = typer.Argument(..., help="Renderer to inspect, as module:attribute"),
) -> None:
    """Show a renderer's resolved options and registered views."""
    renderer = load_target(target)
    options = renderer.options

    table = Table(title="Renderer options")
    table.add_column("Option", style="cyan")
    table.add_column("Value")

    table.add_row("project_directory", options.project_directory)
    table.add_row("views_folder", options.views_folder)
    table.add_row("output_folder", options.output_folder)
    table.add_row("public_prefix", options.public_prefix)
    table.add_row("template_file", options.template_file)
    table.add_row("entry_files.app", options.entry_files.app)
    table.add_row("entry_files.client", options.entry_files.client)
    table.add_row("entry_files.server", options.entry_files.server)
    table.add_row("production_mode", str(options.production_mode))
    table.add_row("webpack_override", str(options.webpack_override))
    console.print(table)

    views = Table(title="Registered views")
    views.add_column("File")
    views.add_column("Context keys")
    for render_target in renderer.render_targets():
        file = render_target.file if isinstance(render_target.file, str) else "<computed>"
        context = render_target.context if isinstance(render_target.context, dict) else {}
        views.add_row(file, ", ".join(sorted(context)) or "-")
    console.print(views)


__all__ = ["app", "load_target"]
