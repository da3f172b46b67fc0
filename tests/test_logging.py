"""Tests for logging configuration helpers."""

from __future__ import annotations

import io
import logging
from pathlib import Path

import pytest

from herotree.config import LoggingConfig
from herotree.logging import (
    TRACE,
    VERBOSE,
    get_logger,
    logger,
    reset_logging,
    resolve_level,
    setup_logging,
)


@pytest.fixture(autouse=True)
def clean_logger():
    reset_logging()
    yield
    reset_logging()


class TestResolveLevel:
    """Test mapping of config to log levels."""

    def test_default_is_info(self) -> None:
        assert resolve_level(None) == logging.INFO
        assert resolve_level(LoggingConfig()) == logging.INFO

    def test_level_names(self) -> None:
        assert resolve_level(LoggingConfig(level="debug")) == logging.DEBUG
        assert resolve_level(LoggingConfig(level="WARN")) == logging.WARNING
        assert resolve_level(LoggingConfig(level="trace")) == TRACE

    def test_unknown_level_is_info(self) -> None:
        assert resolve_level(LoggingConfig(level="chatty")) == logging.INFO

    def test_verbose_wins_over_level(self) -> None:
        config = LoggingConfig(level="ERROR", verbose=3)
        assert resolve_level(config) == VERBOSE

    def test_verbosity_scale(self) -> None:
        levels = [resolve_level(LoggingConfig(verbose=v)) for v in range(5)]
        assert levels == [logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE]

    def test_verbosity_clamped(self) -> None:
        assert resolve_level(LoggingConfig(verbose=9)) == TRACE
        assert resolve_level(LoggingConfig(verbose=-1)) == logging.ERROR


class TestSetupLogging:
    """Test handler installation."""

    def test_file_gets_lowercase_levels(self, tmp_path: Path) -> None:
        path = tmp_path / "herotree.log"
        setup_logging(LoggingConfig(file=str(path), verbose=3))

        get_logger("tree").log(VERBOSE, "app:a1 changed: renamed")
        get_logger("tree").debug("not at this level")
        reset_logging()

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        assert lines[0].endswith("verbose: app:a1 changed: renamed")

    def test_env_var_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "env.log"
        monkeypatch.setenv("HEROTREE_LOG", str(path))

        handler = setup_logging(LoggingConfig())

        assert isinstance(handler, logging.FileHandler)
        get_logger().info("Built 2 roots")
        reset_logging()
        assert "info: Built 2 roots" in path.read_text(encoding="utf-8")

    def test_record_level_name_untouched(self, caplog: pytest.LogCaptureFixture) -> None:
        stream = io.StringIO()
        setup_logging(LoggingConfig(level="info"), stream=stream)

        with caplog.at_level(logging.INFO, logger="herotree"):
            get_logger("poller").warning("Refresh cycle 1 failed")

        assert "warning: Refresh cycle 1 failed" in stream.getvalue()
        assert caplog.records[0].levelname == "WARNING"

    def test_setup_again_replaces_handler(self) -> None:
        first = io.StringIO()
        second = io.StringIO()

        setup_logging(LoggingConfig(), stream=first)
        handler = setup_logging(LoggingConfig(level="error"), stream=second)
        get_logger().error("boom")

        assert handler in logger.handlers
        assert sum(isinstance(h, logging.StreamHandler) for h in logger.handlers) == 1
        assert first.getvalue() == ""
        assert "error: boom" in second.getvalue()
        assert logger.level == logging.ERROR

    def test_no_destination_sets_level_only(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stderr", io.StringIO())

        assert setup_logging(LoggingConfig(verbose=4)) is None
        assert logger.level == TRACE


def test_child_loggers() -> None:
    assert get_logger().name == "herotree"
    assert get_logger("tree").name == "herotree.tree"
    assert logging.getLevelName(TRACE) == "TRACE"
