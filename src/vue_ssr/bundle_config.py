"""
Baseline webpack build graphs for the client and server bundles.

Graphs are plain JSON-serialisable dicts. Values webpack needs as live
objects are described declaratively and revived by ``webpack-runner.js``:

- ``{"$regexp": "\\.vue$"}``             a RegExp
- ``{"name": "DefinePlugin", "options": {...}}``  a plugin instance
- ``{"$nodeExternals": {"allowlist": [...]}}``    webpack-node-externals
- ``{"$resolve": "vue-loader"}``          ``require.resolve`` of a package
"""

from __future__ import annotations

from typing import Any

from .errors import ConfigurationError
from .merge import Match, Rule, Strategy, merge_with_rules
from .options import WebpackBuilderOptions

# How user overrides combine with the baseline graphs.
GRAPH_MERGE_RULES: dict[str, Rule] = {
    "module": {
        "rules": Match(
            "test",
            {
                "use": Match("loader", {"options": Strategy.REPLACE}),
            },
        ),
    },
    "resolve": Strategy.MERGE,
    "externals": Strategy.REPLACE,
    "plugins": Match("name"),
}

CLIENT_BUNDLE_FILENAME = "bundle-client.[contenthash].js"
CLIENT_STYLE_FILENAME = "bundle-client.[contenthash].css"
SERVER_BUNDLE_FILENAME = "bundle-server.[contenthash].js"
MANIFEST_FILENAME = "vue-ssr-manifest.json"
HTML_FILENAME = "index.html"

RENDERING_LIBRARY_PACKAGES = ["vue", "@vue/server-renderer"]
MINI_CSS_EXTRACT_LOADER = "mini-css-extract-plugin/dist/loader"


def regexp(pattern: str) -> dict[str, str]:
    return {"$regexp": pattern}


def plugin(name: str, **options: Any) -> dict[str, Any]:
    return {"name": name, "options": options}


def _mode(options: WebpackBuilderOptions) -> str:
    return "production" if options.production_mode else "development"


def _module_rules(client: bool) -> dict[str, Any]:
    js_rule: dict[str, Any] = {
        "test": regexp(r"\.js$"),
        "exclude": regexp("node_modules"),
        "use": [{"loader": "babel-loader"}],
    }
    if client:
        js_rule["use"] = [{"loader": "babel-loader", "options": {"presets": ["@babel/preset-env"]}}]

    # the client extracts styles into the hashed stylesheet; the server keeps them inline
    style_loader: Any = {"$resolve": MINI_CSS_EXTRACT_LOADER} if client else "vue-style-loader"
    # vue-style-loader reads CommonJS css-loader output
    css_loader: Any = "css-loader" if client else {"loader": "css-loader", "options": {"esModule": False}}

    return {
        "rules": [
            {"test": regexp(r"\.vue$"), "use": [{"loader": {"$resolve": "vue-loader"}}]},
            js_rule,
            {
                "test": regexp(r"\.css$"),
                "use": [style_loader, css_loader, "postcss-loader"],
            },
        ],
    }


def _resolve(options: WebpackBuilderOptions) -> dict[str, Any]:
    return {
        "alias": {
            "$$": options.project_directory,
            "vue": "vue/dist/vue.runtime.esm-bundler.js",
        },
        "extensions": [".js", ".vue", ".json", ".css", ".less"],
        "modules": ["node_modules"],
    }


def _feature_flags(options: WebpackBuilderOptions) -> dict[str, Any]:
    return plugin(
        "DefinePlugin",
        __VUE_OPTIONS_API__=True,
        __VUE_PROD_DEVTOOLS__=not options.production_mode,
    )


def build_client_config(
    defaults: dict[str, Any] | None,
    options: WebpackBuilderOptions,
    html: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Client (browser) build graph: baseline merged with ``defaults``.

    Args:
        defaults: User graph to merge over the baseline
        options: Parameters of the current build
        html: HTML metadata handed to the HTML plugin (title, meta, ...)
    """
    production = options.production_mode
    html_options = {k: v for k, v in (html or {}).items() if not callable(v)}

    baseline: dict[str, Any] = {
        "entry": "entry-client.js",
        "mode": _mode(options),
        "devtool": False if production else "source-map",
        "output": {
            "filename": CLIENT_BUNDLE_FILENAME,
            "publicPath": "/",
        },
        "module": _module_rules(client=True),
        "resolve": _resolve(options),
        "externals": [],
        "plugins": [
            plugin("VueLoaderPlugin"),
            _feature_flags(options),
            plugin("LimitChunkCountPlugin", maxChunks=1),
            plugin("MiniCssExtractPlugin", filename=CLIENT_STYLE_FILENAME),
            {
                "name": "HtmlWebpackPlugin",
                "options": {
                    **html_options,
                    "filename": HTML_FILENAME,
                    "publicPath": options.public_prefix,
                    "template": options.template_file,
                    "minify": {
                        # comments carry the SSR injection markers
                        "removeComments": False,
                        "collapseWhitespace": production,
                        "keepClosingSlash": production,
                        "removeRedundantAttributes": production,
                        "removeScriptTypeAttributes": production,
                        "removeStyleLinkTypeAttributes": production,
                        "useShortDoctype": production,
                    },
                },
            },
        ],
    }
    return merge_with_rules(GRAPH_MERGE_RULES, baseline, defaults or {})


def build_server_config(
    defaults: dict[str, Any] | None,
    options: WebpackBuilderOptions,
    html: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Server (Node) build graph: baseline merged with ``defaults``."""
    baseline: dict[str, Any] = {
        "entry": "entry-server.js",
        "mode": _mode(options),
        "target": "node",
        "output": {
            "libraryTarget": "commonjs2",
            "filename": SERVER_BUNDLE_FILENAME,
        },
        "module": _module_rules(client=False),
        "resolve": _resolve(options),
        # third-party code runs from node_modules, except the rendering library
        "externals": [{"$nodeExternals": {"allowlist": list(RENDERING_LIBRARY_PACKAGES)}}],
        "plugins": [
            plugin("VueLoaderPlugin"),
            _feature_flags(options),
            plugin("LimitChunkCountPlugin", maxChunks=1),
            plugin("WebpackManifestPlugin", fileName=MANIFEST_FILENAME),
        ],
    }
    return merge_with_rules(GRAPH_MERGE_RULES, baseline, defaults or {})


def build_config_pair(options: WebpackBuilderOptions) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Produce ``(server, client)`` graphs for a build.

    With ``webpack_override`` the user callables return the graphs directly and
    the baseline is bypassed.
    """
    custom = options.custom
    if options.webpack_override:
        if not callable(custom.server) or not callable(custom.client):
            raise ConfigurationError(
                "webpack_override requires callables for both webpack.client and webpack.server"
            )
        return custom.server(options, options.html), custom.client(options, options.html)

    server_defaults = custom.server if isinstance(custom.server, dict) else {}
    client_defaults = custom.client if isinstance(custom.client, dict) else {}
    return (
        build_server_config(server_defaults, options, options.html),
        build_client_config(client_defaults, options, options.html),
    )


__all__ = [
    "GRAPH_MERGE_RULES",
    "HTML_FILENAME",
    "MANIFEST_FILENAME",
    "MINI_CSS_EXTRACT_LOADER",
    "build_client_config",
    "build_config_pair",
    "build_server_config",
    "plugin",
    "regexp",
]
