# tests/unit/logging/test_unit_logger.py — v2
"""Tests for logging/logger.py — formatters, NOTICE level and setup."""

from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from pinhandoff.logging.context import set_phase, set_run_context
from pinhandoff.logging.logger import (
    NOTICE,
    ROOT_LOGGER,
    GithubFormatter,
    JsonFormatter,
    TextFormatter,
    notice,
    parse_size,
    setup_logging,
)


def _record(level: int = logging.INFO, msg: str = "hello %s", args: tuple = ("world",)) -> logging.LogRecord:
    return logging.LogRecord("pinhandoff.test", level, __file__, 1, msg, args, None)


class TestNoticeLevel:
    def test_between_info_and_warning(self):
        assert logging.INFO < NOTICE < logging.WARNING
        assert logging.getLevelName(NOTICE) == "NOTICE"

    def test_notice_helper(self, caplog: pytest.LogCaptureFixture):
        logger = logging.getLogger("notice-test")
        with caplog.at_level(NOTICE, logger="notice-test"):
            notice(logger, "bundle %s missing", "reuse-x")
        assert caplog.records[0].levelno == NOTICE
        assert caplog.records[0].getMessage() == "bundle reuse-x missing"


class TestFormatters:
    def test_json_includes_context(self):
        set_run_context("1001")
        set_phase("upload")
        entry = json.loads(JsonFormatter().format(_record()))
        assert entry["message"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["context"] == {"phase": "upload", "run_id": "1001"}

    def test_text_shows_phase(self):
        set_phase("build")
        line = TextFormatter().format(_record())
        assert "[build]" in line
        assert line.endswith("- hello world")

    @pytest.mark.parametrize("level, command", [
        (NOTICE, "notice"), (logging.WARNING, "warning"), (logging.ERROR, "error"),
    ])
    def test_github_annotations(self, level, command):
        assert GithubFormatter().format(_record(level)) == f"::{command}::hello world"

    def test_github_plain_info(self):
        assert GithubFormatter().format(_record()) == "hello world"

    def test_github_escapes_multiline(self):
        out = GithubFormatter().format(_record(logging.ERROR, "50% done\nnext", ()))
        assert out == "::error::50%25 done%0Anext"


class TestParseSize:
    @pytest.mark.parametrize("raw, expected", [
        ("10MB", 10 * 1024**2), ("1kb", 1024), ("2 GB", 2 * 1024**3), ("512", 512),
    ])
    def test_valid(self, raw, expected):
        assert parse_size(raw) == expected

    def test_invalid(self):
        with pytest.raises(ValueError, match="Invalid size"):
            parse_size("ten megs")


class TestSetupLogging:
    def test_console_only(self):
        setup_logging(level="NOTICE", log_format="github")
        root = logging.getLogger(ROOT_LOGGER)
        assert root.level == NOTICE
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, GithubFormatter)

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        setup_logging(level="DEBUG", log_file=log_file, rotation="1KB", retention=2)
        root = logging.getLogger(ROOT_LOGGER)
        file_handlers = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 1024
        assert file_handlers[0].backupCount == 2
        logging.getLogger(f"{ROOT_LOGGER}.test").info("to file")
        file_handlers[0].flush()
        assert "to file" in log_file.read_text(encoding="utf-8")

    def test_reinit_does_not_duplicate(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger(ROOT_LOGGER).handlers) == 1
