"""
Compiled server-bundle cache.

Turns freshly emitted server-bundle text into an executable module and
memoises it by absolute path, so module-level code of a bundle runs at most
once per path for the lifetime of the owning renderer. JavaScript bundles are
run by a ``NodeRenderWorker``, which requires each bundle path once; their
source text is not needed on the Python side.

Production consequence: a server bundle rewritten at the same path is not
picked up until ``invalidate()`` is called or the process restarts.
"""

from __future__ import annotations

import hashlib
import logging
import os
import sys
import threading
import types
from typing import Any

from .errors import ModuleLoadError
from .server_render import NodeModule, NodeRenderWorker

logger = logging.getLogger(__name__)

JS_SUFFIXES = (".js", ".cjs", ".mjs")


class ModuleCache:
    """Path-keyed cache of executed server bundles."""

    def __init__(self, node_worker: NodeRenderWorker | None = None) -> None:
        self._modules: dict[str, Any] = {}
        self.node_worker = node_worker
        self._lock = threading.RLock()

    def load_module(self, source: str, path: str) -> Any:
        """
        Execute ``source`` as the module living at ``path`` and return its exports.

        Args:
            source: Module source text
            path: Absolute path the source belongs to; relative imports
                resolve against its directory

        Returns:
            The exports object (a module for Python bundles, a ``NodeModule``
            for JavaScript bundles)

        Raises:
            ModuleLoadError: If executing the source fails
        """
        path = os.path.abspath(path)
        with self._lock:
            cached = self._modules.get(path)
            if cached is not None:
                return cached

            if path.endswith(JS_SUFFIXES):
                exports: Any = NodeModule(path, self.node_worker)
            else:
                exports = self._exec_python(source, path)

            self._modules[path] = exports
            logger.debug(f"Loaded server bundle {path}")
            return exports

    def _exec_python(self, source: str, path: str) -> types.ModuleType:
        digest = hashlib.sha1(path.encode("utf-8")).hexdigest()[:12]
        module_name = f"vue_ssr_bundle_{digest}"

        module = types.ModuleType(module_name)
        module.__file__ = path
        # Acts as a package rooted at the bundle's folder so that
        # ``from .sibling import x`` finds files next to the bundle.
        module.__path__ = [os.path.dirname(path)]
        module.__package__ = module_name

        sys.modules[module_name] = module
        try:
            code = compile(source, path, "exec")
            exec(code, module.__dict__)
        except Exception as e:
            del sys.modules[module_name]
            raise ModuleLoadError(f"Error executing server bundle {path}: {e}") from e

        return module

    def invalidate(self, path: str | None = None) -> None:
        """Forget one cached bundle, or every bundle when ``path`` is None."""
        with self._lock:
            if path is None:
                paths = list(self._modules)
            else:
                paths = [os.path.abspath(path)]
            for p in paths:
                exports = self._modules.pop(p, None)
                if isinstance(exports, NodeModule) and exports.worker is not None:
                    exports.worker.forget(p)
                if isinstance(exports, types.ModuleType):
                    prefix = f"{exports.__name__}."
                    for name in [n for n in sys.modules if n == exports.__name__ or n.startswith(prefix)]:
                        del sys.modules[name]

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and os.path.abspath(path) in self._modules

    def __len__(self) -> int:
        return len(self._modules)


__all__ = ["ModuleCache"]
