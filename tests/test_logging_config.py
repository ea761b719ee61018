# tests/test_logging_config.py
"""Tests for logging setup and the timing decorator."""

import json
import logging

import pytest

from diffmerge.logging_config import ConsoleFormatter, JSONFormatter, log_performance, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(message="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("diffmerge.test", level, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    def test_json_formatter_includes_extra_data(self):
        record = make_record(extra_data={"operation": "merge_submit", "duration_ms": 1.5})

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "diffmerge.test"
        assert data["message"] == "hello"
        assert data["operation"] == "merge_submit"

    def test_console_formatter_without_colors(self):
        record = make_record(extra_data={"duration_ms": 12.345})

        line = ConsoleFormatter(use_colors=False).format(record)

        assert line == "[INFO] diffmerge.test - hello (12.35ms)"


class TestSetupLogging:
    def test_unknown_level_is_rejected(self, restore_root_logger):
        with pytest.raises(ValueError):
            setup_logging(log_level="LOUD")

    def test_file_logging_writes_json(self, restore_root_logger, tmp_path):
        setup_logging(
            log_level="DEBUG",
            log_dir=str(tmp_path),
            enable_file_logging=True,
            enable_console_logging=False,
        )

        logging.getLogger("diffmerge.test").error("went wrong")
        for handler in restore_root_logger.handlers:
            handler.flush()

        main_log = (tmp_path / "diffmerge.log").read_text().strip().splitlines()
        error_log = (tmp_path / "errors.log").read_text().strip().splitlines()
        assert json.loads(main_log[-1])["message"] == "went wrong"
        assert json.loads(error_log[-1])["level"] == "ERROR"

    def test_http_loggers_are_quieted(self, restore_root_logger):
        setup_logging(log_level="DEBUG", enable_console_logging=False)

        assert logging.getLogger("httpx").level == logging.WARNING


class TestLogPerformance:
    @pytest.mark.asyncio
    async def test_async_success_is_logged(self, caplog):
        @log_performance("add")
        async def add(a, b):
            return a + b

        with caplog.at_level(logging.INFO):
            assert await add(1, 2) == 3

        record = caplog.records[-1]
        assert record.getMessage() == "add completed"
        assert record.extra_data["success"] is True
        assert record.extra_data["duration_ms"] >= 0

    def test_plain_function_is_rejected(self):
        with pytest.raises(TypeError):
            @log_performance("add")
            def add(a, b):
                return a + b

    @pytest.mark.asyncio
    async def test_async_failure_is_logged_and_raised(self, caplog):
        @log_performance("explode")
        async def explode():
            raise RuntimeError("boom")

        with caplog.at_level(logging.INFO):
            with pytest.raises(RuntimeError):
                await explode()

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.extra_data["error_type"] == "RuntimeError"
