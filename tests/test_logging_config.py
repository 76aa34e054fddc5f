"""Tests for logging helpers."""

import logging

from utils.logging_config import APP_LOGGER_NAME, get_logger, log_progress_every, setup_logging


def test_component_logger_name():
    assert get_logger("Differ").name == f"{APP_LOGGER_NAME}.Differ"


def test_progress_is_logged_every_n(caplog):
    logger = logging.getLogger("test.progress")

    with caplog.at_level(logging.INFO, logger="test.progress"):
        logged = [log_progress_every(i, 100, logger, "Stored {current} albums") for i in range(0, 301)]

    assert sum(logged) == 3
    assert "Stored 200 albums" in caplog.text


def test_setup_logging_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "watcher.log"
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging("INFO", log_file, console_output=False)
        get_logger("test").info("hello")
        for handler in root.handlers:
            handler.flush()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    assert "releases-watcher.test - INFO - hello" in log_file.read_text(encoding="utf-8")
