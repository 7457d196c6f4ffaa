"""
apodwall scheduling

Registers apodwall with the operating system's task scheduler so the wallpaper updates itself once a
day without anything left running in the background:

- Windows: a daily task named "apodwall" created with schtasks.exe.
- Linux and macOS: an entry in the user's crontab, tagged with a trailing "# apodwall" comment so
  that scheduling again replaces the existing entry instead of adding a second one.

The scheduled command is "<python> -m apodwall" with the interpreter apodwall is running under now.
Scheduled runs don't see the interactive shell's environment, so the NASA_API_KEY has to be
available from the .env file in the apodwall home directory.

Once the task is registered, schedule() kicks off an update in a separate process straight away so
that the user doesn't have to wait until tomorrow to see the first picture.
"""

import logging
import shlex
import subprocess
import sys
from typing import Callable, List, Optional

from apodwall.config import APP_NAME
from apodwall.config import parse_schedule_time

logger = logging.getLogger(__name__)

TASK_NAME = APP_NAME
CRON_TAG = f"# {APP_NAME}"


class SchedulerError(Exception):
    """
    Raised when the daily task can't be registered with the OS scheduler.
    """

    pass


def update_command() -> List[str]:
    """
    Return the command line that runs a single apodwall update.
    """

    return [sys.executable, "-m", APP_NAME]


def cron_line(at: str, command: List[str]) -> str:
    hour, minute = parse_schedule_time(at).split(":")
    return f"{int(minute)} {int(hour)} * * * {shlex.join(command)} {CRON_TAG}"


def merge_crontab(existing: str, line: str) -> str:
    """
    Return the crontab text with any previous apodwall entry replaced by line.
    """

    kept = [
        entry
        for entry in existing.splitlines()
        if entry.strip() and not entry.rstrip().endswith(CRON_TAG)
    ]
    kept.append(line)
    return "\n".join(kept) + "\n"


def _register_cron(at: str, command: List[str]) -> None:
    try:
        current = subprocess.run(
            ["crontab", "-l"], text=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE
        )
    except OSError as error:
        raise SchedulerError(f"crontab is not available: {error}")

    # crontab -l exits non-zero when the user has no crontab yet
    existing = current.stdout if current.returncode == 0 else ""

    try:
        subprocess.run(
            ["crontab", "-"],
            input=merge_crontab(existing, cron_line(at, command)),
            text=True,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except subprocess.CalledProcessError as error:
        raise SchedulerError(f"Failed to install crontab entry: {error.stderr or error}")


def _register_schtasks(at: str, command: List[str]) -> None:
    try:
        subprocess.run(
            [
                "schtasks.exe",
                "/create",
                "/tn",
                TASK_NAME,
                "/tr",
                subprocess.list2cmdline(command),
                "/sc",
                "daily",
                "/st",
                parse_schedule_time(at),
                "/f",
            ],
            text=True,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except subprocess.CalledProcessError as error:
        raise SchedulerError(
            f"Failed to schedule task. Try running as Administrator. {error.stderr or ''}".strip()
        )
    except OSError as error:
        raise SchedulerError(f"schtasks.exe is not available: {error}")


def register_daily_task(at: str = "09:00", command: Optional[List[str]] = None) -> bool:
    """
    Register command (by default an apodwall update) to run every day at the HH:MM time given by
    at. Return True if the OS scheduler accepted it.
    """

    command = command or update_command()

    try:
        if sys.platform.startswith("win"):
            _register_schtasks(at, command)
        else:
            _register_cron(at, command)

    except SchedulerError as error:
        logger.error(str(error))
        return False

    logger.info(f"Scheduled daily wallpaper update at {at}")
    return True


def launch_update() -> None:
    """
    Start an apodwall update in a new, detached process and return immediately.
    """

    kwargs = {}
    if sys.platform.startswith("win"):
        kwargs["creationflags"] = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        kwargs["start_new_session"] = True

    subprocess.Popen(
        update_command(),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        **kwargs,
    )


def schedule(
    at: str = "09:00",
    register: Callable[[str], bool] = register_daily_task,
    run_now: Callable[[], None] = launch_update,
) -> bool:
    """
    Register the daily task and, only if that worked, start an update right away.
    """

    if not register(at):
        return False

    logger.info("Running an update now to set today's wallpaper...")

    try:
        run_now()
    except OSError as error:
        logger.warning(f"Could not start the immediate update: {error}")

    return True
