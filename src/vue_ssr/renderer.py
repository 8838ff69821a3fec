"""
Vue server-side renderer for FastAPI / Starlette applications.

``Renderer`` owns the resolved options and wires itself into the host app:

1. An ASGI middleware puts two callables on every request's state:
   ``request.state.vue(file, context=None, options=None)`` compiles (when
   needed), renders and returns an ``HTMLResponse``;
   ``request.state.vue_config(...)`` only returns the compilation options.
2. GET routes under the public prefix serve the client bundle, its
   stylesheet and (outside production) their source maps. The folder part of
   those URLs is obfuscated.

Per render call: resolve options -> decide whether to compile -> webpack
build -> load server bundle -> render markup -> fill the HTML shell.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import json
import logging
import os
from collections.abc import Callable
from typing import Any

from fastapi import Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

from .bundle_config import HTML_FILENAME, MANIFEST_FILENAME
from .errors import BuildError, ConfigurationError, DecryptionError
from .fs import default_fs
from .inflight import InFlight
from .module_cache import ModuleCache
from .obfuscation import PathObfuscator
from .options import (
    DEFAULT_APP_ENTRY,
    DEFAULT_CLIENT_ENTRY,
    DEFAULT_OUTPUT_FOLDER,
    DEFAULT_PUBLIC_PREFIX,
    DEFAULT_SERVER_ENTRY,
    DEFAULT_TEMPLATE_FILE,
    DEFAULT_VIEWS_FOLDER,
    CompilationOptions,
    EntryFiles,
    EntryFilesOption,
    RendererOptions,
    RendererOptionsOverride,
    ResolvedRendererOptions,
    WebpackBuilderOptions,
    production_mode_from_env,
)
from .paths import resolve_file, resolve_folder, resolve_package_file
from .prerender import RenderTarget, collect_render_targets, render_target
from .server_render import NodeRenderWorker, compose_html, render_to_string
from .webpack import NodeWebpackBundler, WebpackBuilder

logger = logging.getLogger(__name__)

MISSING_BUNDLE_MESSAGE = "Couldn't find the bundle file. Is the output folder correct? Is everything compiling?"
MISSING_MAP_MESSAGE = "Couldn't find the source map file. Is the output folder correct? Is everything compiling?"

OptionsOverride = RendererOptionsOverride | dict[str, Any] | None


class RendererMiddleware:
    """ASGI middleware attaching the render callables to ``request.state``."""

    def __init__(self, app: Any, renderer: Renderer):
        self.app = app
        self.renderer = renderer

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] == "http":
            request = Request(scope, receive)
            state = scope.setdefault("state", {})
            state["vue"] = functools.partial(self.renderer.template_engine, request)
            state["vue_config"] = functools.partial(self.renderer.template_engine_config, request)
        await self.app(scope, receive, send)


class Renderer:
    """Compiles ``.vue`` views with webpack and serves them server-rendered."""

    def __init__(self, options: RendererOptions | dict[str, Any] | None = None):
        """
        Create a renderer and inject it into ``options.app``.

        Raises:
            ConfigurationError: If options are missing or a configured path is invalid
            NotFoundError: If a configured file or folder does not exist
        """
        if not options:
            raise ConfigurationError("Missing options for the renderer.")
        if isinstance(options, dict):
            options = RendererOptions(**options)
        if options.app is None:
            raise ConfigurationError("Missing the application for the renderer.")

        self.default_fs = default_fs
        self.options: ResolvedRendererOptions = self.apply_default_options(options)
        self.crypt = PathObfuscator(self.options.obfuscation_key or self.options.project_directory)
        node_path = [os.path.join(self.options.project_directory, "node_modules")]
        self.node_worker = NodeRenderWorker(node_path=node_path)
        self.module_cache = ModuleCache(self.node_worker)
        self.in_flight = InFlight()
        self.bundler = self.options.bundler or NodeWebpackBundler(node_path=node_path)
        self.render_to_string = self.options.render_to_string or render_to_string
        self._output_owners: dict[str, str] = {}

        self.inject()

    # -------------------------------------------------------------------------
    # Host application wiring
    # -------------------------------------------------------------------------

    def inject(self) -> None:
        """Register the middleware and the bundle routes on the host app."""
        app = self.options.app
        app.add_middleware(RendererMiddleware, renderer=self)
        app.on_event("shutdown")(self.aclose)

        prefix = self.options.public_prefix
        app.add_route(
            f"{prefix}/{{segment}}/bundle-client.{{digest}}.js",
            self._asset_endpoint("bundle-client.{digest}.js", "application/javascript", MISSING_BUNDLE_MESSAGE),
            methods=["GET"],
            include_in_schema=False,
        )
        app.add_route(
            f"{prefix}/{{segment}}/bundle-client.{{digest}}.css",
            self._asset_endpoint("bundle-client.{digest}.css", "text/css", MISSING_BUNDLE_MESSAGE),
            methods=["GET"],
            include_in_schema=False,
        )
        if not self.options.production_mode:
            app.add_route(
                f"{prefix}/{{segment}}/bundle-client.{{digest}}.{{kind}}.map",
                self._asset_endpoint(
                    "bundle-client.{digest}.{kind}.map",
                    "application/json",
                    MISSING_MAP_MESSAGE,
                    kinds=("js", "css"),
                ),
                methods=["GET"],
                include_in_schema=False,
            )

        logger.debug(f"Renderer injected, bundles served under {prefix}")

    def engine(self) -> type[RendererMiddleware]:
        """Middleware class, for hosts that assemble their middleware stack themselves."""
        return RendererMiddleware

    def _asset_endpoint(
        self,
        file_name: str,
        media_type: str,
        missing_message: str,
        kinds: tuple[str, ...] | None = None,
    ) -> Callable[[Request], Any]:
        async def serve_bundle_file(request: Request) -> Response:
            if kinds is not None and request.path_params.get("kind") not in kinds:
                return PlainTextResponse(missing_message, status_code=404)
            try:
                bundle_file_path = self.get_bundle_file_path(
                    request.path_params["segment"],
                    file_name.format(**request.path_params),
                )
            except DecryptionError:
                logger.warning(f"Rejected bundle request with unknown folder: {request.url.path}")
                return PlainTextResponse(missing_message, status_code=404)

            fs = self.options.fs
            if not fs.exists(bundle_file_path):
                return PlainTextResponse(missing_message, status_code=404)
            return Response(content=fs.read(bundle_file_path), media_type=media_type)

        return serve_bundle_file

    def get_bundle_file_path_from_request(self, request_path: str) -> str:
        """
        Map an obfuscated bundle URL to the bundle file on disk.

        ``/public/ssr/<token>/bundle-client.abc.js`` ->
        ``<output folder>/<clarified token>/bundle-client.abc.js``

        Raises:
            DecryptionError: If the token was not produced by this renderer
        """
        prefix = self.options.public_prefix
        if request_path.startswith(prefix):
            request_path = request_path[len(prefix) :]
        parts = request_path.split("/")
        if len(parts) < 3:
            raise DecryptionError(f"No obfuscated folder in {request_path!r}")
        return self.get_bundle_file_path(parts[1], "/".join(parts[2:]))

    def get_bundle_file_path(self, segment: str, file_name: str) -> str:
        """
        Bundle file on disk for an obfuscated folder segment and a file name.

        Raises:
            DecryptionError: If the segment was not produced by this renderer
        """
        return os.path.join(self.options.output_folder, self.clarify(segment), file_name)

    # -------------------------------------------------------------------------
    # Prerendering
    # -------------------------------------------------------------------------

    def view(
        self,
        file: str | Callable[[str], str],
        context: dict[str, Any] | Callable[[], dict[str, Any]] | None = None,
        options: OptionsOverride = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Declare that the decorated handler renders ``file``; see ``prerender``."""
        return render_target(file, context, options)

    def render_targets(self) -> list[RenderTarget]:
        """Every render target registered on the app's routes, asset routes excluded."""
        return collect_render_targets(self.options.app.routes, self.options.public_prefix)

    async def prerender(self, dir: str | None = None) -> list[Any]:
        """
        Compile every view registered on the app's routes without serving a response.

        Args:
            dir: Base directory for targets whose file is computed from the
                handler's folder; defaults to the project directory

        Returns:
            One result per render target

        Raises:
            BuildError: On the first failed build
        """
        base_dir = dir or self.options.project_directory
        targets = self.render_targets()
        logger.info(f"Prerendering {len(targets)} view(s)")

        return await asyncio.gather(
            *(
                self.template_engine(None, target.resolve_file(base_dir), target.resolve_context(), target.options)
                for target in targets
            )
        )

    # -------------------------------------------------------------------------
    # Options
    # -------------------------------------------------------------------------

    def _coerce_overrides(self, overrides: OptionsOverride) -> RendererOptionsOverride:
        if overrides is None:
            return RendererOptionsOverride()
        if isinstance(overrides, RendererOptionsOverride):
            return overrides
        return RendererOptionsOverride(**overrides)

    def _options_with_overrides(self, overrides: RendererOptionsOverride) -> RendererOptions:
        current = self.options
        values: dict[str, Any] = {
            "app": current.app,
            "project_directory": current.project_directory,
            "views_folder": current.views_folder,
            "output_folder": current.output_folder,
            "webpack_override": current.webpack_override,
            "webpack": current.webpack,
            "public_prefix": current.public_prefix,
            "template_file": current.template_file,
            "entry_files": EntryFilesOption(
                app=current.entry_files.app,
                client=current.entry_files.client,
                server=current.entry_files.server,
            ),
            "production_mode": current.production_mode,
            "html": dict(current.html),
            "fs": current.fs,
            "obfuscation_key": current.obfuscation_key,
            "bundler": current.bundler,
            "render_to_string": current.render_to_string,
        }
        values.update(overrides.model_dump(exclude_none=True))
        return RendererOptions(**values)

    def get_compilation_options(
        self,
        override_options: OptionsOverride,
        file: str,
        context: dict[str, Any] | None,
    ) -> CompilationOptions:
        """
        Options for a single render call.

        Args:
            override_options: Options replacing the renderer's own for this call
            file: View to render, relative to the views folder or absolute
            context: Data handed to the view

        Returns:
            Compilation options with the input file resolved
        """
        overrides = self._coerce_overrides(override_options)
        renderer_options = self.apply_default_options(self._options_with_overrides(overrides))

        title = self.get_title(overrides)
        renderer_options.html["title"] = title if title else os.path.basename(file)

        return CompilationOptions(
            renderer_options=renderer_options,
            input_file=resolve_file(self.default_fs, file, renderer_options.views_folder),
            context=context or {},
        )

    def get_title(self, override_options: OptionsOverride) -> str | None:
        """
        Page title for a render call.

        A title callable configured on the renderer is called with the page's
        own title (or with nothing). A configured string title is used as is.
        Without either the page's own title is used; ``None`` leaves the
        template's default.
        """
        overrides = self._coerce_overrides(override_options)
        page_title = (overrides.html or {}).get("title")
        configured = self.options.html.get("title")

        if configured:
            if callable(configured):
                return configured(page_title) if page_title else configured()
            if isinstance(configured, str):
                return configured
            return None
        if page_title:
            return str(page_title)
        return None

    def validate_compilation_options(self, options: CompilationOptions) -> WebpackBuilderOptions:
        """
        Turn compilation options into the parameters of one webpack build.

        Raises:
            ConfigurationError: If there is no input file, or its output folder
                is already used by another view
        """
        if not options.input_file:
            raise ConfigurationError("Invalid input file to compile")

        output_root = self.options.output_folder
        output_folder = self.get_webpack_output_path(output_root, options.input_file, True)
        self._claim_output_folder(output_folder, options.input_file)

        return WebpackBuilderOptions(
            output_folder=output_folder,
            input_file=options.input_file,
            entry_files=self.options.entry_files,
            webpack_override=self.options.webpack_override,
            custom=self.options.webpack,
            public_prefix=(
                f"{self.options.public_prefix}/"
                f"{self.obfuscate(self.get_webpack_output_path(output_root, options.input_file))}"
            ),
            template_file=self.options.template_file,
            html=options.renderer_options.html,
            production_mode=self.options.production_mode,
            project_directory=self.options.project_directory,
            fs=self.options.fs,
        )

    def _claim_output_folder(self, output_folder: str, input_file: str) -> None:
        owner = self._output_owners.setdefault(output_folder, os.path.abspath(input_file))
        if owner != os.path.abspath(input_file):
            raise ConfigurationError(
                f"{input_file} and {owner} both compile to {output_folder}; rename one of them"
            )

    def get_webpack_output_path(self, output_root: str, input_file: str, absolute: bool = False) -> str:
        """
        Output folder for an input file.

        The input's path relative to ``output_root`` with ``..``/``.`` segments
        and the extension dropped, e.g. ``<root>/a/b/Test.vue`` -> ``a/b/Test``.
        """
        relative = os.path.relpath(os.path.abspath(input_file), os.path.abspath(output_root))
        parts = [p for p in relative.split(os.sep) if p not in ("..", ".")]
        stem = os.path.splitext(os.path.join(*parts))[0] if parts else ""

        if absolute:
            return os.path.join(output_root, stem)
        return stem

    def apply_default_options(self, options: RendererOptions) -> ResolvedRendererOptions:
        """Fill in defaults and resolve every path option."""
        fs = self.default_fs
        project_directory = self.resolve_project_directory(options.project_directory)
        entry_files = options.entry_files or EntryFilesOption()

        def entry(path: str | None, default: str) -> str:
            if path:
                return resolve_file(fs, path, project_directory)
            return resolve_package_file(fs, default)

        return ResolvedRendererOptions(
            project_directory=project_directory,
            views_folder=resolve_folder(fs, options.views_folder or DEFAULT_VIEWS_FOLDER, project_directory),
            output_folder=resolve_folder(
                fs, options.output_folder or DEFAULT_OUTPUT_FOLDER, project_directory, True
            ),
            webpack_override=options.webpack_override,
            webpack=options.webpack,
            public_prefix=(options.public_prefix or DEFAULT_PUBLIC_PREFIX).rstrip("/"),
            app=options.app,
            template_file=entry(options.template_file, DEFAULT_TEMPLATE_FILE),
            entry_files=EntryFiles(
                app=entry(entry_files.app, DEFAULT_APP_ENTRY),
                client=entry(entry_files.client, DEFAULT_CLIENT_ENTRY),
                server=entry(entry_files.server, DEFAULT_SERVER_ENTRY),
            ),
            production_mode=(
                options.production_mode if options.production_mode is not None else production_mode_from_env()
            ),
            html=dict(options.html),
            fs=options.fs or self.default_fs,
            obfuscation_key=options.obfuscation_key,
            bundler=options.bundler,
            render_to_string=options.render_to_string,
        )

    def resolve_project_directory(self, pd: str | None = None) -> str:
        """
        Project directory option, defaulting to the current working directory.

        Raises:
            ConfigurationError: If the given directory does not exist
        """
        if pd and not self.default_fs.exists(pd):
            raise ConfigurationError(f"Project directory at path {pd} does not exist.")
        return os.path.abspath(pd) if pd else os.getcwd()

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def template_engine_config(
        self,
        request: Request | None,
        file: str,
        context: dict[str, Any] | None = None,
        options: OptionsOverride = None,
    ) -> CompilationOptions:
        """Compilation options a render call would use; for debugging."""
        return self.get_compilation_options(options, file, context)

    def should_compile(self, webpack_options: WebpackBuilderOptions) -> bool:
        """
        Development always rebuilds; production builds once per output folder.

        A production build counts as finished once its server manifest exists.
        The folder itself is created before the bundler starts.
        """
        if not self.options.production_mode:
            return True
        return not self.options.fs.exists(os.path.join(webpack_options.output_folder, MANIFEST_FILENAME))

    async def template_engine(
        self,
        request: Request | None,
        file: str,
        context: dict[str, Any] | None = None,
        options: OptionsOverride = None,
    ) -> HTMLResponse | None:
        """
        Compile ``file`` if needed and, for a live request, render it.

        Args:
            request: Current request, or None when prerendering
            file: View to render
            context: Data handed to the view and to the client as initial state
            options: Per-call option overrides

        Returns:
            The rendered page, or None when prerendering
        """
        compilation_options = self.get_compilation_options(options, file, context)
        webpack_options = self.validate_compilation_options(compilation_options)

        if webpack_options.output_folder in self.in_flight or self.should_compile(webpack_options):
            await self.compile_file(webpack_options)
        else:
            logger.debug(f"Reusing compiled output in {webpack_options.output_folder}")

        if request is None:
            return None

        rendered = await self.render_file(webpack_options, compilation_options)
        return self.send_file(request, rendered)

    async def compile_file(self, webpack_options: WebpackBuilderOptions) -> WebpackBuilderOptions:
        """
        Build the bundles for one view; concurrent calls for one output folder share a build.

        Raises:
            BuildError: If webpack fails
        """

        async def build() -> WebpackBuilderOptions:
            builder = WebpackBuilder(webpack_options, bundler=self.bundler)
            try:
                await builder.build()
            except BuildError:
                if self.options.production_mode and self.options.fs.exists(webpack_options.output_folder):
                    # no partial output is reused by the next request
                    self.options.fs.rm(webpack_options.output_folder)
                raise
            return webpack_options

        return await self.in_flight.run(webpack_options.output_folder, build)

    async def aclose(self) -> None:
        """Stop the Node render worker; runs on app shutdown."""
        await self.node_worker.aclose()

    def require_from_string(self, src: str, filename: str) -> Any:
        """Load server-bundle source through the renderer's module cache."""
        return self.module_cache.load_module(src, filename)

    async def render_file(
        self,
        webpack_options: WebpackBuilderOptions,
        compilation_options: CompilationOptions,
    ) -> str:
        """
        Render a compiled view into a full HTML page.

        Reads the server manifest, loads the server bundle, creates the app
        with the context, renders it and fills in the emitted ``index.html``.
        """
        fs = self.options.fs
        output_folder = webpack_options.output_folder

        manifest = json.loads(fs.read(os.path.join(output_folder, MANIFEST_FILENAME)))
        app_path = os.path.join(output_folder, manifest["main.js"])
        exports = self.require_from_string(fs.read(app_path), app_path)

        create_app = getattr(exports, "default", None)
        if not callable(create_app):
            raise ConfigurationError(f"Server bundle {app_path} has no default export")

        app = create_app(compilation_options.context)
        if inspect.isawaitable(app):
            app = await app

        app_content = await self.render_to_string(app)
        output_file = fs.read(os.path.join(output_folder, HTML_FILENAME))
        return compose_html(output_file, compilation_options.context, app_content)

    def send_file(self, request: Request | None, output_content: str) -> HTMLResponse:
        return HTMLResponse(output_content)

    # -------------------------------------------------------------------------
    # Obfuscation
    # -------------------------------------------------------------------------

    def obfuscate(self, text: str) -> str:
        return self.crypt.obfuscate(text)

    def clarify(self, text: str) -> str:
        return self.crypt.clarify(text)


def create_renderer(options: RendererOptions | dict[str, Any]) -> Renderer:
    return Renderer(options)


__all__ = ["Renderer", "RendererMiddleware", "create_renderer"]
