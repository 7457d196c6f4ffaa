"""
apodwall

Set your desktop wallpaper to NASA's Astronomy Picture of the Day.

This module defines the entry point to the apodwall CLI. There's deliberately very little to it:
with no arguments it performs the daily update, --force repeats the update even if it already
happened today, and --schedule registers the daily task with the OS and then runs once. Anything
it doesn't understand gets the help text rather than an error, since it's usually started by a
scheduler rather than typed.
"""

import logging
from functools import wraps
from sys import exit

import click
from dotenv import find_dotenv
from dotenv import load_dotenv

from apodwall.config import ApodConfig
from apodwall.config import ApodConfigError
from apodwall.config import LOG_FILENAME
from apodwall.config import load_config
from apodwall.config import resolve_home
from apodwall.console import LOGGER_NAME
from apodwall.console import confirm_success
from apodwall.console import describe
from apodwall.console import fail
from apodwall.console import setup_logging
from apodwall.console import warn
from apodwall import scheduler
from apodwall.updater import Updater

logger = logging.getLogger(LOGGER_NAME)


def catch_errors(func):
    """
    Catch configuration errors, format them with the "fail" console template, record them in the
    run log and exit the application with an error code. A broken configuration is the one failure
    apodwall can't work around, so it's the one that stops the process.
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ApodConfigError as error:
            logger.error(str(error))
            fail(str(error))
            exit(1)

    return wrapper


def load_env_files() -> None:
    """
    Load NASA_API_KEY and friends from a .env file in the working directory and from the one in the
    apodwall home directory. Variables already in the environment win.
    """

    load_dotenv(find_dotenv(usecwd=True))
    load_dotenv(resolve_home() / ".env")


def run_schedule(config: ApodConfig) -> None:
    describe(f"Setting up scheduled task to run daily at {config.schedule_time}...")

    if scheduler.schedule(config.schedule_time):
        confirm_success(
            f":white_check_mark-emoji: Task scheduled successfully! The wallpaper will update daily at {config.schedule_time}."
        )
        describe("Running apodwall now to update your wallpaper...")
    else:
        fail("Could not schedule the daily update. See the log for details.")


@click.command(
    context_settings={
        "ignore_unknown_options": True,
        "allow_extra_args": True,
        "help_option_names": ["--help", "-h"],
    }
)
@click.option(
    "--force",
    is_flag=True,
    help="Update the wallpaper even if it was already updated today.",
)
@click.option(
    "--schedule",
    is_flag=True,
    help="Schedule a daily update with the OS task scheduler, then update now.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Also log debug detail, including the raw APOD API response.",
)
@click.version_option(package_name="apodwall")
@click.pass_context
@catch_errors
def cli(ctx: click.Context, force: bool, schedule: bool, verbose: bool):
    """
    NASA APOD Wallpaper Changer

    Sets your desktop wallpaper to NASA's Astronomy Picture of the Day (APOD).

    \b
    Usage:
      apodwall              - Update wallpaper now
      apodwall --force      - Update wallpaper now, even if already updated today
      apodwall --schedule   - Schedule daily updates
      apodwall --help       - Show this help message

    Requires a NASA API key (https://api.nasa.gov) in the NASA_API_KEY environment variable,
    or in a .env file in the apodwall data directory for scheduled runs.
    """

    if ctx.args:
        warn(f"Unrecognized arguments: {' '.join(ctx.args)}")
        click.echo(ctx.get_help())
        return

    load_env_files()
    setup_logging(resolve_home() / LOG_FILENAME, verbose=verbose)

    config = load_config()
    config.ensure_dirs()

    if schedule:
        run_schedule(config)
        return

    logger.info("NASA APOD Wallpaper Changer started")
    Updater(config).run(force=force)


def main():
    cli()


if __name__ == "__main__":
    main()
