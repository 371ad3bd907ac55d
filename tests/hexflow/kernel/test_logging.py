"""Tests for the loguru logging setup."""

from pathlib import Path

import pytest
from loguru import logger

import hexflow.kernel.logging as logging_module
from hexflow.kernel.logging import bind_run, configure_logging, get_logger


@pytest.fixture
def reset_logging():
    logging_module._CURRENT_CONFIG = None
    yield
    for handler_id in logging_module._HANDLER_IDS:
        logger.remove(handler_id)
    logging_module._HANDLER_IDS.clear()
    logging_module._CURRENT_CONFIG = None


@pytest.fixture
def captured():
    messages = []
    handler_id = logger.add(messages.append, level="DEBUG", format="{message}")
    yield messages
    logger.remove(handler_id)


class TestGetLogger:
    """get_logger returns cached, module-bound loggers."""

    def test_caches_by_name(self):
        assert get_logger("hexflow.test.cache") is get_logger("hexflow.test.cache")

    def test_binds_module(self, captured):
        get_logger("hexflow.test.module").info("hello")
        record = captured[-1].record
        assert record["extra"]["module"] == "hexflow.test.module"
        assert record["message"] == "hello"


class TestBindRun:
    """bind_run attaches correlation ids to every line."""

    def test_correlation_ids_in_extra(self, captured):
        log = bind_run("hexflow.test.run", run_id="abc123", pipeline_id="demo")
        log.info("Run started")
        extra = captured[-1].record["extra"]
        assert extra["run_id"] == "abc123"
        assert extra["pipeline_id"] == "demo"
        assert extra["module"] == "hexflow.test.run"

    def test_keyword_formatting(self, captured):
        bind_run("hexflow.test.run", run_id="r1").info("Stage {stage_id} done", stage_id="draft")
        assert captured[-1].record["message"] == "Stage draft done"


class TestConfigureLogging:
    """configure_logging installs and replaces only its own handlers."""

    @pytest.mark.parametrize("fmt", ["console", "json", "structured", "rich"])
    def test_formats_add_one_handler(self, reset_logging, fmt):
        configure_logging(level="INFO", format=fmt)
        assert len(logging_module._HANDLER_IDS) == 1

    def test_idempotent(self, reset_logging):
        configure_logging(level="DEBUG", format="console")
        first = list(logging_module._HANDLER_IDS)
        configure_logging(level="DEBUG", format="console")
        assert logging_module._HANDLER_IDS == first

    def test_changed_settings_replace_handlers(self, reset_logging):
        configure_logging(level="INFO", format="console")
        first = list(logging_module._HANDLER_IDS)
        configure_logging(level="DEBUG", format="console")
        assert len(logging_module._HANDLER_IDS) == 1
        assert logging_module._HANDLER_IDS != first

    def test_force_reconfigure(self, reset_logging):
        configure_logging(level="INFO", format="console")
        first = list(logging_module._HANDLER_IDS)
        configure_logging(level="INFO", format="console", force_reconfigure=True)
        assert logging_module._HANDLER_IDS != first

    def test_file_output(self, reset_logging, tmp_path: Path):
        log_file = tmp_path / "logs" / "hexflow.log"
        configure_logging(level="INFO", format="console", output_file=log_file)
        assert len(logging_module._HANDLER_IDS) == 2

        get_logger("hexflow.test.file").info("written to file")
        logger.complete()
        assert "written to file" in log_file.read_text()

    def test_foreign_handlers_survive(self, reset_logging, captured):
        configure_logging(level="INFO", format="console")
        configure_logging(level="WARNING", format="json")
        get_logger("hexflow.test.foreign").info("still captured")
        assert captured[-1].record["message"] == "still captured"
