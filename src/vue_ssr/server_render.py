"""
Server-side rendering helpers.

Bridges a loaded server bundle to the Vue rendering library and composes the
final HTML page from the webpack-emitted shell.

Two kinds of server bundle are understood:

1. JavaScript bundles (what webpack emits). Their ``default`` export builds a
   ``NodeApp`` handle; ``render_to_string`` hands it to a ``NodeRenderWorker``,
   a long-lived ``render-runner.js`` process that requires each bundle once,
   creates the app with the context and calls ``@vue/server-renderer``.
2. Python bundles. Their ``default`` export returns a root object with a
   ``render()`` method (sync or async) or the markup itself. Used by
   Python-emitting bundlers and by the test suite.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import json
import logging
import os
import signal
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import RenderError

logger = logging.getLogger(__name__)

INITIAL_STATE_MARKER = "/** sir-vue-initial-state **/"
OUTLET_MARKER = "<!--sir-vue-outlet-->"
INITIAL_STATE_GLOBAL = "window.__INITIAL_STATE__"
MOUNT_ELEMENT_ID = "app"

RENDER_SCRIPT = Path(__file__).parent / "build_files" / "render-runner.js"

# Longest reply line accepted from the render worker
REPLY_LIMIT = 64 * 1024 * 1024


def node_binary() -> str:
    """Node executable used for webpack and rendering (``VUE_SSR_NODE`` overrides)."""
    return os.environ.get("VUE_SSR_NODE", "node")


def node_environment(node_path: list[str] | None = None) -> dict[str, str] | None:
    """
    Environment for Node subprocesses, with ``node_path`` prepended to ``NODE_PATH``.

    The runner scripts live inside this package, so packages installed in the
    host project are only found through ``NODE_PATH``.
    """
    if not node_path:
        return None
    existing = os.environ.get("NODE_PATH")
    paths = [*node_path, *([existing] if existing else [])]
    return {**os.environ, "NODE_PATH": os.pathsep.join(paths)}


# =============================================================================
# Node render worker
# =============================================================================


class NodeRenderWorker:
    """
    Long-lived ``node render-runner.js`` process.

    Requests and replies are newline-delimited JSON, one request at a time.
    The process is started on first use, restarted after it dies, and
    replaced when used from a different event loop. Node's require cache
    keeps every bundle it has loaded, so a bundle's module-level code runs
    once per worker unless ``forget`` is called for it.
    """

    def __init__(self, script: Path | str = RENDER_SCRIPT, node_path: list[str] | None = None):
        self.script = str(script)
        self.node_path = list(node_path or [])
        self._proc: asyncio.subprocess.Process | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock: asyncio.Lock | None = None
        self._stale: set[str] = set()

    @property
    def running(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self.running and self._proc is not None else None

    def forget(self, bundle_path: str) -> None:
        """Make the next render of ``bundle_path`` require it afresh."""
        if self.running:
            self._stale.add(bundle_path)

    async def render(self, bundle_path: str, context: Any) -> str:
        """
        Render the app exported by ``bundle_path`` with ``context``.

        Raises:
            RenderError: If Node is missing, the worker dies or the render throws
        """
        lock = self._bind(asyncio.get_running_loop())
        async with lock:
            proc = await self._start()
            request: dict[str, Any] = {"bundle": bundle_path, "context": context}
            if bundle_path in self._stale:
                self._stale.discard(bundle_path)
                request["reload"] = True

            assert proc.stdin is not None and proc.stdout is not None
            try:
                proc.stdin.write(json.dumps(request, default=str).encode("utf-8") + b"\n")
                await proc.stdin.drain()
                line = await proc.stdout.readline()
            except (BrokenPipeError, ConnectionResetError, ValueError) as e:
                self._proc = None
                raise RenderError(f"Render worker failed while rendering {bundle_path}: {e}") from e

            if not line:
                self._proc = None
                raise RenderError(f"Render worker exited while rendering {bundle_path}")

        reply = json.loads(line)
        if "error" in reply:
            logger.error(f"Server render failed for {bundle_path}: {reply['error']}")
            raise RenderError(reply["error"])
        return reply["html"]

    async def aclose(self) -> None:
        """Stop the worker process; the next render starts a new one."""
        if self._loop is not asyncio.get_running_loop():
            self._bind(asyncio.get_running_loop())
            return
        proc, self._proc = self._proc, None
        self._stale.clear()
        if proc is None or proc.returncode is not None:
            return
        if proc.stdin is not None:
            proc.stdin.close()
        try:
            await asyncio.wait_for(proc.wait(), timeout=5)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
        logger.debug("Render worker stopped")

    def _bind(self, loop: asyncio.AbstractEventLoop) -> asyncio.Lock:
        if self._loop is not loop or self._lock is None:
            if self.running:
                # streams belong to the previous loop
                assert self._proc is not None
                logger.debug(f"Replacing render worker {self._proc.pid} started on another event loop")
                try:
                    os.kill(self._proc.pid, signal.SIGKILL)
                except ProcessLookupError:
                    pass
            self._proc = None
            self._stale.clear()
            self._loop = loop
            self._lock = asyncio.Lock()
        return self._lock

    async def _start(self) -> asyncio.subprocess.Process:
        if self.running:
            assert self._proc is not None
            return self._proc
        try:
            self._proc = await asyncio.create_subprocess_exec(
                node_binary(),
                self.script,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                env=node_environment(self.node_path),
                limit=REPLY_LIMIT,
            )
        except FileNotFoundError as e:
            raise RenderError("Node.js not found; cannot render the server bundle") from e
        self._stale.clear()
        logger.debug(f"Started render worker {self._proc.pid}")
        return self._proc


@functools.lru_cache(maxsize=1)
def default_worker() -> NodeRenderWorker:
    """Worker for ``NodeApp`` handles created without one."""
    return NodeRenderWorker()


# =============================================================================
# JavaScript bundle handles
# =============================================================================


@dataclass
class NodeApp:
    """A not-yet-rendered app living in a JavaScript server bundle."""

    bundle_path: str
    context: Any = field(default_factory=dict)
    worker: NodeRenderWorker | None = None


class NodeModule:
    """Exports object for a JavaScript server bundle."""

    def __init__(self, path: str, worker: NodeRenderWorker | None = None):
        self.path = path
        self.worker = worker

    def default(self, context: Any = None) -> NodeApp:
        return NodeApp(
            bundle_path=self.path,
            context=context if context is not None else {},
            worker=self.worker,
        )

    def __repr__(self) -> str:
        return f"NodeModule({self.path!r})"


# =============================================================================
# Rendering library adapter
# =============================================================================


async def render_to_string(app: Any) -> str:
    """
    Turn a root app object into markup.

    Args:
        app: ``NodeApp`` handle, object with a ``render()`` method, or a string

    Returns:
        Rendered markup

    Raises:
        RenderError: If the app cannot be rendered
    """
    if isinstance(app, NodeApp):
        worker = app.worker or default_worker()
        return await worker.render(app.bundle_path, app.context)

    if isinstance(app, str):
        return app

    render = getattr(app, "render", None)
    if not callable(render):
        raise RenderError(f"Don't know how to render {type(app).__name__}")

    result = render()
    if inspect.isawaitable(result):
        result = await result
    if not isinstance(result, str):
        raise RenderError(f"render() returned {type(result).__name__}, expected str")
    return result


# =============================================================================
# HTML composition
# =============================================================================

_JS_ESCAPES = {
    "<": "\\u003C",
    ">": "\\u003E",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def to_js_literal(value: Any) -> str:
    """
    Serialise ``value`` as a JavaScript literal safe to embed in a ``<script>``.

    JSON output is a valid JS expression; the characters that could close the
    script element or break a JS string are escaped.
    """
    text = json.dumps(value, ensure_ascii=False, default=str)
    return "".join(_JS_ESCAPES.get(ch, ch) for ch in text)


def compose_html(shell: str, context: Any, markup: str) -> str:
    """Fill the two substitution points of the emitted ``index.html``."""
    return shell.replace(
        INITIAL_STATE_MARKER,
        f"{INITIAL_STATE_GLOBAL} = {to_js_literal(context)}",
        1,
    ).replace(
        OUTLET_MARKER,
        f"<div id='{MOUNT_ELEMENT_ID}'>{markup}</div>",
        1,
    )


__all__ = [
    "INITIAL_STATE_MARKER",
    "OUTLET_MARKER",
    "NodeApp",
    "NodeModule",
    "NodeRenderWorker",
    "default_worker",
    "compose_html",
    "node_binary",
    "node_environment",
    "render_to_string",
    "to_js_literal",
]
