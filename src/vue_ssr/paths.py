"""
Folder and file resolution for renderer options.

Relative paths are looked up inside a root folder (usually the project
directory); paths that already exist as given are returned in absolute form.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .errors import ConfigurationError, NotFoundError
from .fs import FileSystem

logger = logging.getLogger(__name__)

PACKAGE_ROOT = Path(__file__).parent


def resolve_folder(
    fs: FileSystem,
    folder: str | os.PathLike[str] | None,
    root: str | os.PathLike[str] | None = None,
    create_if_missing: bool = False,
) -> str:
    """
    Find and validate a folder path.

    Args:
        fs: Filesystem capability
        folder: Folder to resolve, absolute or relative to ``root``
        root: Folder to look in when ``folder`` does not exist as given
        create_if_missing: Create the joined folder instead of failing

    Returns:
        Absolute folder path

    Raises:
        ConfigurationError: If ``folder`` is blank, or a root is needed and missing
        NotFoundError: If the folder does not exist and may not be created
    """
    if not folder or str(folder).strip() == "":
        raise ConfigurationError("Cannot resolve an undefined folder.")

    folder = os.fspath(folder)
    if fs.exists(folder):
        return os.path.abspath(folder)

    if not root:
        raise ConfigurationError(
            "Failed to resolve a folder because no root folder has been set "
            "and this folder may not exist."
        )

    fp = os.path.normpath(os.path.join(os.fspath(root), folder))
    if not fs.exists(fp):
        if not create_if_missing:
            raise NotFoundError(f"Folder at path {fp} does not exist.")
        logger.debug(f"Creating folder {fp}")
        fs.mkdir(fp)

    return fp


def resolve_file(
    fs: FileSystem,
    file: str | os.PathLike[str] | None,
    root: str | os.PathLike[str] | None = None,
) -> str:
    """
    Find and validate a file path. Files are never created.

    Raises:
        ConfigurationError: If ``file`` is blank, or a root is needed and missing
        NotFoundError: If the file does not exist
    """
    if not file or str(file).strip() == "":
        raise ConfigurationError("Cannot resolve an undefined file.")

    file = os.fspath(file)
    if fs.exists(file):
        return os.path.abspath(file)

    if not root:
        raise ConfigurationError("Cannot resolve a file because no root folder has been set.")

    fp = os.path.normpath(os.path.join(os.fspath(root), file))
    if not fs.exists(fp):
        raise NotFoundError(f"File at path {fp} does not exist.")

    return fp


def resolve_package_file(fs: FileSystem, file: str) -> str:
    """Find a file shipped inside the vue_ssr package (default templates, entry files)."""
    fp = os.path.join(str(PACKAGE_ROOT), file)
    if not fs.exists(fp):
        raise NotFoundError(f"Package file at path {fp} does not exist.")
    return fp


__all__ = ["PACKAGE_ROOT", "resolve_file", "resolve_folder", "resolve_package_file"]
