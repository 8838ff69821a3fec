"""Tests for folder and file resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from vue_ssr.errors import ConfigurationError, NotFoundError
from vue_ssr.fs import default_fs
from vue_ssr.paths import PACKAGE_ROOT, resolve_file, resolve_folder, resolve_package_file


class TestResolveFolder:
    def test_existing_absolute_folder(self, tmp_path: Path) -> None:
        assert resolve_folder(default_fs, str(tmp_path)) == str(tmp_path)

    def test_relative_folder_joined_with_root(self, tmp_path: Path) -> None:
        (tmp_path / "vue-ssr-views").mkdir()
        assert resolve_folder(default_fs, "vue-ssr-views", str(tmp_path)) == str(tmp_path / "vue-ssr-views")

    def test_blank_folder_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="undefined folder"):
            resolve_folder(default_fs, "", str(tmp_path))
        with pytest.raises(ConfigurationError):
            resolve_folder(default_fs, "   ", str(tmp_path))
        with pytest.raises(ConfigurationError):
            resolve_folder(default_fs, None, str(tmp_path))

    def test_missing_folder_without_root(self) -> None:
        with pytest.raises(ConfigurationError, match="no root folder has been set"):
            resolve_folder(default_fs, "no-such-folder-anywhere")

    def test_missing_folder_under_root(self, tmp_path: Path) -> None:
        with pytest.raises(NotFoundError, match="does not exist"):
            resolve_folder(default_fs, "missing", str(tmp_path))

    def test_create_if_missing(self, tmp_path: Path) -> None:
        resolved = resolve_folder(default_fs, "dist-created", str(tmp_path), create_if_missing=True)
        assert resolved == str(tmp_path / "dist-created")
        assert (tmp_path / "dist-created").is_dir()


class TestResolveFile:
    def test_file_under_root(self, tmp_path: Path) -> None:
        (tmp_path / "Home.vue").write_text("<template></template>")
        assert resolve_file(default_fs, "Home.vue", str(tmp_path)) == str(tmp_path / "Home.vue")

    def test_absolute_file(self, tmp_path: Path) -> None:
        target = tmp_path / "Home.vue"
        target.write_text("")
        assert resolve_file(default_fs, str(target)) == str(target)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(NotFoundError, match="File at path"):
            resolve_file(default_fs, "Nope.vue", str(tmp_path))

    def test_missing_root(self) -> None:
        with pytest.raises(ConfigurationError, match="no root folder has been set"):
            resolve_file(default_fs, "Nope-without-root.vue")

    def test_blank_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            resolve_file(default_fs, "", str(tmp_path))


class TestResolvePackageFile:
    def test_shipped_template(self) -> None:
        assert resolve_package_file(default_fs, "build_files/template.html") == str(
            PACKAGE_ROOT / "build_files" / "template.html"
        )

    def test_missing_package_file(self) -> None:
        with pytest.raises(NotFoundError, match="Package file"):
            resolve_package_file(default_fs, "build_files/missing.js")
