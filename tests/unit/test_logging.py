"""Unit tests for logging setup."""

import logging

import pytest

from cloudbridge.utils.logging import setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_sets_level_and_single_console_handler():
    setup_logging("DEBUG")
    setup_logging("WARNING")

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1


def test_quiets_http_libraries():
    setup_logging("DEBUG")

    for name in ("httpx", "httpcore", "botocore"):
        assert logging.getLogger(name).level == logging.WARNING


def test_file_handler(tmp_path):
    log_file = tmp_path / "cloudbridge.log"

    setup_logging("INFO", log_file=str(log_file))
    logging.getLogger("cloudbridge.test").info("hello from test")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "hello from test" in log_file.read_text()


def test_unknown_level_falls_back_to_info():
    setup_logging("chatty")
    assert logging.getLogger().level == logging.INFO
