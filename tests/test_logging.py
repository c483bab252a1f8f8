"""Tests for logging configuration."""

from __future__ import annotations

import logging

import pytest

import pi_acp.logging as pi_logging
from pi_acp.config import load_config, reset_config
from pi_acp.config.schema import LoggingConfig
from pi_acp.logging import TRACE, get_logger, log_wire, resolve_level, setup_logging


def read_log(path) -> str:
    for handler in pi_logging.logger.handlers:
        handler.flush()
    return path.read_text(encoding="utf-8")


class TestResolveLevel:
    def test_default_info(self):
        assert resolve_level(None) == logging.INFO
        assert resolve_level(LoggingConfig()) == logging.INFO

    def test_level_name(self):
        assert resolve_level(LoggingConfig(level="debug")) == logging.DEBUG
        assert resolve_level(LoggingConfig(level="warn")) == logging.WARNING
        assert resolve_level(LoggingConfig(level="trace")) == TRACE
        assert resolve_level(LoggingConfig(level="bogus")) == logging.INFO

    def test_verbose_wins(self):
        assert resolve_level(LoggingConfig(level="error", verbose=1)) == logging.DEBUG
        assert resolve_level(LoggingConfig(level="error", verbose=2)) == TRACE
        assert resolve_level(LoggingConfig(verbose=9)) == TRACE

    def test_zero_verbose_falls_back_to_level(self):
        assert resolve_level(LoggingConfig(level="error", verbose=0)) == logging.ERROR


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def fresh_logger(self):
        level = pi_logging.logger.level
        yield
        for handler in pi_logging._installed:
            pi_logging.logger.removeHandler(handler)
            handler.close()
        pi_logging._installed.clear()
        pi_logging.logger.setLevel(level)

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "pi-acp.log"

        setup_logging(LoggingConfig(level="debug", file=str(log_file)))
        get_logger("rpc").debug("hello from rpc")

        assert "debug [rpc] hello from rpc" in read_log(log_file)

    def test_creates_log_directory(self, tmp_path):
        log_file = tmp_path / "logs" / "nested" / "pi-acp.log"

        setup_logging(LoggingConfig(file=str(log_file)))
        get_logger().info("started")

        assert "info [pi_acp] started" in read_log(log_file)

    def test_env_log_file(self, tmp_path, monkeypatch: pytest.MonkeyPatch):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("PI_ACP_LOG", str(log_file))
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        reset_config()

        setup_logging(load_config(reload=True).logging)
        get_logger("session").info("started")

        assert "info [session] started" in read_log(log_file)

    def test_second_call_replaces_handler(self, tmp_path):
        first = tmp_path / "a.log"
        second = tmp_path / "b.log"
        setup_logging(LoggingConfig(file=str(first)))
        count = len(pi_logging.logger.handlers)

        setup_logging(LoggingConfig(file=str(second)))
        get_logger().info("after switch")

        assert len(pi_logging.logger.handlers) == count
        assert "after switch" not in first.read_text(encoding="utf-8")
        assert "after switch" in read_log(second)

    def test_child_logger_names(self):
        assert get_logger("session").name == "pi_acp.session"
        assert get_logger().name == "pi_acp"


class TestWireLog:
    @pytest.fixture(autouse=True)
    def restore_level(self):
        level = pi_logging.logger.level
        yield
        pi_logging.logger.setLevel(level)

    def test_lines_logged_at_trace(self, caplog: pytest.LogCaptureFixture):
        pi_logging.logger.setLevel(TRACE)
        with caplog.at_level(TRACE, logger="pi_acp.wire"):
            log_wire("->", '{"type":"get_state"}')

        (record,) = caplog.records
        assert record.name == "pi_acp.wire"
        assert record.levelno == TRACE
        assert record.getMessage() == '-> {"type":"get_state"}'

    def test_long_lines_truncated(self, caplog: pytest.LogCaptureFixture):
        pi_logging.logger.setLevel(TRACE)
        line = "x" * (pi_logging.WIRE_PREVIEW + 100)
        with caplog.at_level(TRACE, logger="pi_acp.wire"):
            log_wire("<-", line)

        message = caplog.records[0].getMessage()
        assert message.endswith(f"... ({len(line)} chars)")
        assert len(message) < len(line)

    def test_silent_above_trace(self, caplog: pytest.LogCaptureFixture):
        pi_logging.logger.setLevel(logging.DEBUG)
        with caplog.at_level(logging.DEBUG, logger="pi_acp"):
            log_wire("->", "{}")

        assert caplog.records == []
