"""
apodwall console utilities

This module provides application-wide access to a Rich Console object for handling writing
to stdout and stderr, plus the run log. Interactive output (help, scheduling confirmations,
configuration failures) goes through the formatting helpers below. Everything that happens
during an update is reported through the standard logging module on the "apodwall" logger,
which setup_logging() wires to the terminal (via Rich) and to the append-only apod.log file.

apodwall usually runs unattended from a scheduler, so the log file is the primary way of
finding out what happened on a given day. A log file that can't be written must never stop
a run, so the file handler swallows its own errors.
"""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

apodwall_theme = Theme(
    {"warning": "orange_red1", "fail": "bold red", "confirm": "bold", "describe": ""}
)

console = Console(theme=apodwall_theme)
error_console = Console(theme=apodwall_theme, stderr=True)

LOGGER_NAME = "apodwall"
LOG_FORMAT = "%(asctime)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


"""
Formatting helpers
"""


def warn(msg: str):
    """
    Format msg and print to stderr.
    """

    error_console.print(
        f":exclamation_mark-emoji: [bold]warning: [/] {msg}", style="warning"
    )


def describe(msg: str, **kwargs):
    """
    Format descriptive msg and print to stdout.
    """

    console.print(f"{msg}", style="describe", **kwargs)


def confirm_success(msg: str, **kwargs):
    """
    Format confirmation msg and print to stdout. Accept any additional kwargs that console.print from
    rich module exposes.
    """

    console.print(f"{msg}", style="confirm", **kwargs)


def fail(msg: str):
    """
    Format failure msg and print to stderr.
    """

    error_console.print(f":x-emoji: failed. {msg}", style="fail")


"""
Run log
"""


class AppendOnlyFileHandler(logging.FileHandler):
    """
    File handler for apod.log. Opens the file lazily in append mode and ignores any error
    raised while opening or writing to it.
    """

    def __init__(self, filename: Path):
        super().__init__(filename, mode="a", encoding="utf-8", delay=True)

    def emit(self, record: logging.LogRecord) -> None:
        # FileHandler opens the delayed stream outside of its own error handling
        try:
            super().emit(record)
        except OSError:
            self.handleError(record)

    def handleError(self, record: logging.LogRecord) -> None:
        pass


def setup_logging(log_path: Optional[Path] = None, verbose: bool = False) -> logging.Logger:
    """
    Configure the apodwall logger. Messages are shown on the terminal through Rich and, when
    log_path is given, appended to the log file one timestamped line per event. Calling this
    again replaces the previously installed handlers.
    """

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    terminal = RichHandler(console=console, show_path=False, markup=False)
    terminal.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.addHandler(terminal)

    if log_path is not None:
        try:
            Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            # the handler swallows the write errors that follow
            pass

        logfile = AppendOnlyFileHandler(log_path)
        logfile.setLevel(logging.DEBUG if verbose else logging.INFO)
        logfile.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        logger.addHandler(logfile)

    return logger
