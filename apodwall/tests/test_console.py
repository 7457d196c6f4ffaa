"""
Tests for console.py

The run log has to end up in apod.log one timestamped line per message, and a log file that can't
be written must never raise into the code that is logging.
"""

import logging
import re

import pytest

# following entities are tested in this module:
from apodwall.console import LOGGER_NAME
from apodwall.console import setup_logging


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def test_log_file_lines(tmp_path):

    log_path = tmp_path / "home" / "apod.log"
    setup_logging(log_path)

    logging.getLogger("apodwall.updater").info("Wallpaper successfully set")
    logging.getLogger("apodwall.updater").debug("hidden unless verbose")

    lines = log_path.read_text().splitlines()
    assert len(lines) == 1
    assert re.fullmatch(r"\d{4}-\d\d-\d\d \d\d:\d\d:\d\d - Wallpaper successfully set", lines[0])


def test_log_file_appends(tmp_path):

    log_path = tmp_path / "apod.log"
    log_path.write_text("2024-04-30 09:00:00 - yesterday\n")

    setup_logging(log_path)
    logging.getLogger(LOGGER_NAME).info("today")

    assert log_path.read_text().splitlines()[0].endswith("yesterday")
    assert log_path.read_text().splitlines()[1].endswith("today")


def test_verbose_logs_debug(tmp_path):

    log_path = tmp_path / "apod.log"
    setup_logging(log_path, verbose=True)

    logging.getLogger(LOGGER_NAME).debug("raw response")

    assert "raw response" in log_path.read_text()


def test_unwritable_log_is_ignored(tmp_path):

    # a directory where the log file should be can't be opened for appending
    log_path = tmp_path / "apod.log"
    log_path.mkdir()

    setup_logging(log_path)
    logging.getLogger(LOGGER_NAME).info("still running")


def test_setup_replaces_handlers(tmp_path):

    setup_logging(tmp_path / "a.log")
    setup_logging(tmp_path / "b.log")

    assert len(logging.getLogger(LOGGER_NAME).handlers) == 2
