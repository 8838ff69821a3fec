"""
Error types for the vue-ssr rendering pipeline.
"""

from __future__ import annotations


class VueSSRError(Exception):
    """Base exception for all vue-ssr errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(VueSSRError):
    """
    Raised when a required option is missing or invalid.

    Examples:
    - Renderer created without options
    - Blank folder or file path
    - Project directory that does not exist
    - Compilation options without an input file
    """

    pass


class NotFoundError(VueSSRError):
    """
    Raised when a resolved path does not exist and cannot be created.
    """

    pass


class BuildError(VueSSRError):
    """
    Raised when webpack fails to compile.

    Carries one message per compiler diagnostic (or the single message of a
    hard compiler failure) in ``messages``.
    """

    def __init__(self, messages: list[str], message: str = "Webpack failed to compile."):
        self.messages = list(messages)
        super().__init__(message)

    def __str__(self) -> str:
        if not self.messages:
            return self.message
        details = "\n".join(f"  - {m}" for m in self.messages)
        return f"{self.message}\n{details}"


class DecryptionError(VueSSRError):
    """Raised when an obfuscated path segment does not decrypt under the current key."""

    pass


class ModuleLoadError(VueSSRError):
    """Raised when a compiled server bundle cannot be executed."""

    pass


class RenderError(VueSSRError):
    """Raised when the rendering library fails to turn an app into markup."""

    pass
