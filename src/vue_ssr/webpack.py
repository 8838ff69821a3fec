"""
Build orchestration around webpack.

``WebpackBuilder`` materialises the entry files for one input component into
its output folder, asks ``bundle_config`` for the client/server graphs, runs
the bundler as a single multi-compilation and turns compiler diagnostics into
a ``BuildError``.

The bundler itself is reached through the ``Bundler`` protocol. The default,
``NodeWebpackBundler``, pipes the graphs as JSON into ``webpack-runner.js``
and reads a JSON summary back.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from .bundle_config import build_config_pair
from .errors import BuildError
from .options import WebpackBuilderOptions
from .server_render import node_binary, node_environment

logger = logging.getLogger(__name__)

WEBPACK_SCRIPT = Path(__file__).parent / "build_files" / "webpack-runner.js"

APP_ENTRY_FILENAME = "app.js"
RENDER_FILE_PLACEHOLDER = "'{{vue-render-file}}'"
ROOT_PLACEHOLDER = "{{root}}"


# =============================================================================
# Bundler contract
# =============================================================================


@dataclass
class BuildStats:
    """Outcome of one sub-compilation."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    assets: list[str] = field(default_factory=list)

    def has_errors(self) -> bool:
        return bool(self.errors)


@dataclass
class MultiBuildResult:
    """Outcome of a multi-compilation: a hard error, or per-build stats."""

    error: str | None = None
    stats: list[BuildStats] = field(default_factory=list)


@runtime_checkable
class Bundler(Protocol):
    async def run(self, graphs: list[dict[str, Any]]) -> MultiBuildResult: ...


class NodeWebpackBundler:
    """Runs webpack in a Node.js subprocess."""

    def __init__(
        self,
        node: str | None = None,
        script: Path = WEBPACK_SCRIPT,
        node_path: list[str] | None = None,
    ):
        self.node = node or node_binary()
        self.script = script
        self.node_path = list(node_path or [])

    async def run(self, graphs: list[dict[str, Any]]) -> MultiBuildResult:
        payload = json.dumps({"configs": graphs})
        cwd = graphs[0].get("output", {}).get("path") if graphs else None

        try:
            proc = await asyncio.create_subprocess_exec(
                self.node,
                str(self.script),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=node_environment(self.node_path),
            )
        except FileNotFoundError:
            logger.error("Node.js not found; cannot run webpack")
            return MultiBuildResult(error=f"Node.js executable {self.node!r} not found")

        stdout, stderr = await proc.communicate(input=payload.encode("utf-8"))
        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            return MultiBuildResult(error=detail or f"webpack runner exited with code {proc.returncode}")

        try:
            output = json.loads(stdout.decode("utf-8"))
        except json.JSONDecodeError as e:
            return MultiBuildResult(error=f"Unreadable webpack runner output: {e}")

        if output.get("error"):
            return MultiBuildResult(error=output["error"])

        return MultiBuildResult(
            stats=[
                BuildStats(
                    errors=list(item.get("errors", [])),
                    warnings=list(item.get("warnings", [])),
                    assets=list(item.get("assets", [])),
                )
                for item in output.get("stats", [])
            ]
        )


# =============================================================================
# Builder
# =============================================================================


class WebpackBuilder:
    """Builds the client and server bundles for one input component."""

    def __init__(self, options: WebpackBuilderOptions, bundler: Bundler | None = None):
        self.options = options
        self.bundler = bundler or NodeWebpackBundler()
        self.server_config, self.client_config = build_config_pair(options)

    def get_config(self) -> list[dict[str, Any]]:
        """
        Prepare the output folder and return ``[server, client]`` graphs.

        Outside production the output folder is wiped first so stale hashed
        bundles never linger. The app entry gets the real input file and project
        root substituted in; client and server entries are copied verbatim.
        """
        fs = self.options.fs
        output_folder = self.options.output_folder

        if fs.exists(output_folder) and not self.options.production_mode:
            fs.rm(output_folder)
        fs.mkdir(output_folder)

        entry_files = self.options.entry_files
        output_paths = {
            "app": os.path.join(output_folder, APP_ENTRY_FILENAME),
            "server": os.path.join(output_folder, os.path.basename(entry_files.server)),
            "client": os.path.join(output_folder, os.path.basename(entry_files.client)),
        }

        app_source = (
            fs.read(entry_files.app)
            .replace(RENDER_FILE_PLACEHOLDER, json.dumps(self.options.input_file))
            .replace(ROOT_PLACEHOLDER, json.dumps(self.options.project_directory)[1:-1])
        )
        fs.write(output_paths["app"], app_source)
        fs.write(output_paths["server"], fs.read(entry_files.server))
        fs.write(output_paths["client"], fs.read(entry_files.client))

        server_config = dict(self.server_config)
        server_config["entry"] = output_paths["server"]
        server_config["output"] = {**server_config.get("output", {}), "path": output_folder}

        client_config = dict(self.client_config)
        client_config["entry"] = output_paths["client"]
        client_config["output"] = {**client_config.get("output", {}), "path": output_folder}

        return [server_config, client_config]

    @staticmethod
    def collect_errors(error: BaseException | str | None, result: MultiBuildResult | None) -> list[str]:
        """
        Flatten a bundler outcome into a list of error messages.

        A hard error short-circuits as the only message; otherwise every
        sub-build that reports errors contributes all of them.
        """
        if error is not None:
            return [str(error)]

        errors: list[str] = []
        if result is not None:
            if result.error:
                return [result.error]
            for stats in result.stats:
                if stats.has_errors():
                    errors.extend(stats.errors)
        return errors

    async def build(self) -> None:
        """
        Run the multi-compilation.

        Raises:
            BuildError: If webpack reported any error
        """
        configs = self.get_config()
        started = time.perf_counter()
        logger.info(f"Building {self.options.input_file} -> {self.options.output_folder}")

        error: BaseException | None = None
        result: MultiBuildResult | None = None
        try:
            result = await self.bundler.run(configs)
        except Exception as e:
            error = e

        errors = self.collect_errors(error, result)
        if errors:
            for message in errors:
                logger.error(f"webpack: {message}")
            raise BuildError(errors) from error

        for stats in result.stats if result else []:
            for warning in stats.warnings:
                logger.warning(f"webpack: {warning}")

        elapsed = time.perf_counter() - started
        logger.info(f"Built {self.options.input_file} in {elapsed:.2f}s")


__all__ = [
    "BuildStats",
    "Bundler",
    "MultiBuildResult",
    "NodeWebpackBundler",
    "WebpackBuilder",
]
