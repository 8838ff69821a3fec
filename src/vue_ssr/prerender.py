"""
Render targets declared on route handlers.

A handler that renders a view is decorated with ``render_target`` (or
``Renderer.view``); the decorator records which file it renders, with which
context and options, on the handler itself. ``collect_render_targets`` walks
the app's route table, descending into mounted sub-apps and routers, and
returns every recorded target so the views can be compiled ahead of time.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

RENDER_TARGETS_ATTR = "__vue_render_targets__"


@dataclass(frozen=True)
class RenderTarget:
    """One view a handler renders."""

    file: str | Callable[[str], str]
    context: dict[str, Any] | Callable[[], dict[str, Any]] | None = None
    options: Any = None

    def resolve_file(self, base_dir: str) -> str:
        """File to render; a callable file is given the base directory."""
        if callable(self.file):
            return self.file(base_dir)
        return self.file

    def resolve_context(self) -> dict[str, Any]:
        if callable(self.context):
            return self.context() or {}
        return dict(self.context or {})


def render_target(
    file: str | Callable[[str], str],
    context: dict[str, Any] | Callable[[], dict[str, Any]] | None = None,
    options: Any = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator recording that a handler renders ``file``.

    Stacking the decorator records several targets on one handler. The
    handler itself is returned unchanged.

    Example:
        @app.get("/")
        @renderer.view("Home.vue", {"user": None})
        async def home(request: Request):
            return await request.state.vue("Home.vue", {"user": None})
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        targets = list(getattr(func, RENDER_TARGETS_ATTR, []))
        targets.insert(0, RenderTarget(file=file, context=context, options=options))
        setattr(func, RENDER_TARGETS_ATTR, targets)
        return func

    return decorator


def _route_path(route: Any) -> str:
    return getattr(route, "path", None) or getattr(route, "path_format", "") or ""


def collect_render_targets(routes: Iterable[Any], public_prefix: str = "") -> list[RenderTarget]:
    """
    Gather render targets from a route table.

    Routes under ``public_prefix`` (the bundle routes) are skipped. Anything
    exposing ``.routes`` (``Mount``, ``Host``, routers) is walked recursively.
    """
    found: list[RenderTarget] = []

    for route in routes:
        path = _route_path(route)
        if public_prefix and path.startswith(public_prefix):
            continue

        endpoint = getattr(route, "endpoint", None)
        if endpoint is not None:
            found.extend(getattr(endpoint, RENDER_TARGETS_ATTR, []))

        children = getattr(route, "routes", None)
        if children:
            found.extend(collect_render_targets(children, public_prefix))

    logger.debug(f"Collected {len(found)} render target(s)")
    return found


__all__ = [
    "RENDER_TARGETS_ATTR",
    "RenderTarget",
    "collect_render_targets",
    "render_target",
]
