"""Tests for logging setup."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from vue_ssr.logging import ConsoleFormatter, JSONLFormatter, level_from_env, setup_logging


@pytest.fixture
def clean_logger() -> Iterator[logging.Logger]:
    logger = logging.getLogger("vue_ssr")
    saved_handlers, saved_level = list(logger.handlers), logger.level
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in saved_handlers:
        logger.addHandler(handler)
    logger.setLevel(saved_level)


def _record(level: int = logging.INFO, msg: str = "Built Test.vue in 0.10s") -> logging.LogRecord:
    return logging.LogRecord("vue_ssr.webpack", level, __file__, 10, msg, None, None)


class TestFormatters:
    def test_jsonl(self) -> None:
        entry = json.loads(JSONLFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "vue_ssr.webpack"
        assert entry["message"] == "Built Test.vue in 0.10s"
        assert entry["timestamp"].endswith("Z")
        assert "source" not in entry

    def test_jsonl_warning_has_source(self) -> None:
        entry = json.loads(JSONLFormatter().format(_record(logging.WARNING)))
        assert entry["source"]["line"] == 10

    def test_console_plain(self) -> None:
        line = ConsoleFormatter(color=False).format(_record(logging.ERROR, "webpack: boom"))
        assert "[webpack]" in line
        assert "ERROR: webpack: boom" in line
        assert "\033[" not in line


class TestSetupLogging:
    def test_console_only(self, clean_logger: logging.Logger) -> None:
        setup_logging(level=logging.DEBUG)
        assert clean_logger.level == logging.DEBUG
        assert len(clean_logger.handlers) == 1

    def test_jsonl_file(self, clean_logger: logging.Logger, tmp_path: Path) -> None:
        setup_logging(level=logging.INFO, log_dir=tmp_path / "logs")
        logging.getLogger("vue_ssr.renderer").info("Prerendering 2 view(s)")
        for handler in clean_logger.handlers:
            handler.flush()

        lines = (tmp_path / "logs" / "vue-ssr.log").read_text().splitlines()
        assert json.loads(lines[-1])["message"] == "Prerendering 2 view(s)"

    def test_repeated_setup_replaces_handlers(self, clean_logger: logging.Logger) -> None:
        setup_logging()
        setup_logging()
        assert len(clean_logger.handlers) == 1


def test_level_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VUE_SSR_LOG_LEVEL", "debug")
    assert level_from_env() == logging.DEBUG
    monkeypatch.setenv("VUE_SSR_LOG_LEVEL", "nonsense")
    assert level_from_env() == logging.INFO
    monkeypatch.delenv("VUE_SSR_LOG_LEVEL")
    assert level_from_env(logging.WARNING) == logging.WARNING
