"""
apodwall Configuration Management

This file builds the single configuration object that the rest of apodwall is handed at startup.
ApodConfig should be created once, by load_config(), before any attempt at updating the wallpaper
is made, and then passed explicitly to whatever needs it. Raise an ApodConfigError for any issues
that arise in processing or retrieving these configuration variables.

Everything apodwall writes lives under one per-user application data directory (the "home"):

    <home>/state.json   record of the last successful update
    <home>/images/      downloaded and converted wallpapers
    <home>/apod.log     append-only run log

On Windows the home is %LOCALAPPDATA%\\apodwall. Everywhere else it follows the XDG base directory
conventions and lands at ~/.local/share/apodwall unless XDG_DATA_HOME says otherwise. Set
APODWALL_HOME to put it anywhere else.
"""

import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping


APP_NAME = "apodwall"

API_KEY_VAR = "NASA_API_KEY"
HOME_VAR = "APODWALL_HOME"
RETENTION_VAR = "APODWALL_RETENTION_DAYS"
SCHEDULE_VAR = "APODWALL_SCHEDULE_TIME"

DEFAULT_RETENTION_DAYS = 7
LOG_FILENAME = "apod.log"
DEFAULT_SCHEDULE_TIME = "09:00"

_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class ApodConfigError(Exception):
    """Raise when an issue occurs with handling apodwall configuration."""

    pass


def default_home(environ: Mapping[str, str] = os.environ) -> Path:
    """
    Return the per-user application data directory for apodwall on this platform.
    """

    if sys.platform.startswith("win"):
        base = environ.get("LOCALAPPDATA") or Path("~/AppData/Local").expanduser()
        return Path(base) / APP_NAME

    base = environ.get("XDG_DATA_HOME") or Path("~/.local/share").expanduser()
    return Path(base) / APP_NAME


def resolve_home(environ: Mapping[str, str] = os.environ) -> Path:
    """
    Return the apodwall home directory: APODWALL_HOME if set, otherwise the platform default.
    Doesn't require an API key, so it can be used to find the log and .env files before the rest
    of the configuration is loaded.
    """

    home = environ.get(HOME_VAR)
    return Path(home).expanduser() if home else default_home(environ)


@dataclass
class ApodConfig:
    """
    Dataclass to represent configuration variables for apodwall. Provides a namespace and identifiers
    for the credential and the directories on the filesystem that apodwall reads from and writes to.

    Application code references the identifiers here without ever touching environment variables or
    building filesystem paths by hand. Tests construct one directly with a tmp_path as home.
    """

    api_key: str
    home: Path
    retention_days: int = DEFAULT_RETENTION_DAYS
    schedule_time: str = DEFAULT_SCHEDULE_TIME

    def __post_init__(self):
        """
        Accept plain strings for home so that a config can be built straight from environment values.
        """

        self.home = Path(self.home).expanduser()

    @property
    def images_dir(self) -> Path:
        return self.home / "images"

    @property
    def state_path(self) -> Path:
        return self.home / "state.json"

    @property
    def log_path(self) -> Path:
        return self.home / LOG_FILENAME

    def ensure_dirs(self) -> None:
        """
        Create the home and images directories if they don't already exist.
        """

        try:
            self.images_dir.mkdir(parents=True, exist_ok=True)

        except OSError as error:
            raise ApodConfigError(
                f"There was an error creating the apodwall directories at {self.home}: {error}"
            )


def parse_schedule_time(value: str) -> str:
    """
    Validate an HH:MM time of day and return it zero padded, e.g. "9:05" -> "09:05".
    """

    match = _TIME_PATTERN.match(value.strip())
    if match is None:
        raise ApodConfigError(
            f"Invalid schedule time '{value}'. Expected a 24 hour HH:MM value such as 09:00."
        )

    hour, minute = match.groups()
    return f"{int(hour):02d}:{minute}"


def load_config(environ: Mapping[str, str] = os.environ) -> ApodConfig:
    """
    Build an ApodConfig from environment variables. The NASA API key is required; everything
    else has a sensible default. Raise ApodConfigError if the key is missing or an optional
    value can't be understood.
    """

    api_key = environ.get(API_KEY_VAR, "").strip()
    if not api_key:
        raise ApodConfigError(
            f"NASA API key not found. Please set the {API_KEY_VAR} environment variable."
        )

    home = resolve_home(environ)

    retention = environ.get(RETENTION_VAR, "").strip()
    try:
        retention_days = int(retention) if retention else DEFAULT_RETENTION_DAYS
    except ValueError:
        raise ApodConfigError(
            f"Invalid value for {RETENTION_VAR}: '{retention}' is not a whole number of days."
        )

    if retention_days < 1:
        raise ApodConfigError(f"{RETENTION_VAR} must be at least 1 (got {retention_days}).")

    schedule_time = parse_schedule_time(environ.get(SCHEDULE_VAR) or DEFAULT_SCHEDULE_TIME)

    return ApodConfig(
        api_key=api_key,
        home=home,
        retention_days=retention_days,
        schedule_time=schedule_time,
    )
