"""
Tests for scheduler.py

Validate the crontab and schtasks registrations without touching the real OS scheduler:
subprocess.run is patched and the platform is pinned with monkeypatch.
"""

import subprocess
import sys
from unittest.mock import MagicMock, patch

import pytest

# following entities are tested in this module:
from apodwall.scheduler import CRON_TAG
from apodwall.scheduler import cron_line
from apodwall.scheduler import merge_crontab
from apodwall.scheduler import register_daily_task
from apodwall.scheduler import schedule
from apodwall.scheduler import update_command


COMMAND = ["/usr/bin/python3", "-m", "apodwall"]


def test_update_command():

    assert update_command() == [sys.executable, "-m", "apodwall"]


@pytest.mark.parametrize(
    "at, expected",
    [
        ("09:00", "0 9 * * * /usr/bin/python3 -m apodwall # apodwall"),
        ("7:30", "30 7 * * * /usr/bin/python3 -m apodwall # apodwall"),
        ("23:05", "5 23 * * * /usr/bin/python3 -m apodwall # apodwall"),
    ],
)
def test_cron_line(at, expected):

    assert cron_line(at, COMMAND) == expected


def test_cron_line_quotes_paths():

    line = cron_line("09:00", ["/home/me/my venv/bin/python", "-m", "apodwall"])
    assert "'/home/me/my venv/bin/python'" in line


def test_merge_crontab_replaces_previous_entry():

    existing = (
        "MAILTO=me@example.com\n"
        "0 8 * * * /usr/bin/python3 -m apodwall # apodwall\n"
        "\n"
        "*/5 * * * * backup.sh\n"
    )

    merged = merge_crontab(existing, "0 9 * * * new # apodwall")

    assert merged.splitlines() == [
        "MAILTO=me@example.com",
        "*/5 * * * * backup.sh",
        "0 9 * * * new # apodwall",
    ]
    assert merged.endswith("\n")


def test_merge_crontab_empty():

    assert merge_crontab("", "0 9 * * * x # apodwall") == "0 9 * * * x # apodwall\n"


@patch("apodwall.scheduler.subprocess.run", autospec=True)
def test_register_cron(fake_run, monkeypatch):

    monkeypatch.setattr("apodwall.scheduler.sys.platform", "linux")
    fake_run.side_effect = [
        subprocess.CompletedProcess(args=["crontab", "-l"], returncode=0, stdout="@reboot x\n"),
        subprocess.CompletedProcess(args=["crontab", "-"], returncode=0),
    ]

    assert register_daily_task("09:00", COMMAND) is True

    install = fake_run.call_args_list[1]
    assert install.args[0] == ["crontab", "-"]
    assert install.kwargs["input"] == "@reboot x\n" + cron_line("09:00", COMMAND) + "\n"


@patch("apodwall.scheduler.subprocess.run", autospec=True)
def test_register_cron_no_existing_crontab(fake_run, monkeypatch):

    monkeypatch.setattr("apodwall.scheduler.sys.platform", "darwin")
    fake_run.side_effect = [
        subprocess.CompletedProcess(
            args=["crontab", "-l"], returncode=1, stdout="", stderr="no crontab for me"
        ),
        subprocess.CompletedProcess(args=["crontab", "-"], returncode=0),
    ]

    assert register_daily_task("09:00", COMMAND) is True
    assert fake_run.call_args_list[1].kwargs["input"].count(CRON_TAG) == 1


@patch("apodwall.scheduler.subprocess.run", autospec=True)
def test_register_cron_failure(fake_run, monkeypatch):

    monkeypatch.setattr("apodwall.scheduler.sys.platform", "linux")
    fake_run.side_effect = [
        subprocess.CompletedProcess(args=["crontab", "-l"], returncode=0, stdout=""),
        subprocess.CalledProcessError(cmd="crontab", returncode=1, stderr="permission denied"),
    ]

    assert register_daily_task("09:00", COMMAND) is False


@patch("apodwall.scheduler.subprocess.run", autospec=True)
def test_register_cron_unavailable(fake_run, monkeypatch):

    monkeypatch.setattr("apodwall.scheduler.sys.platform", "linux")
    fake_run.side_effect = FileNotFoundError("crontab")

    assert register_daily_task("09:00", COMMAND) is False


@patch("apodwall.scheduler.subprocess.run", autospec=True)
def test_register_schtasks(fake_run, monkeypatch):

    monkeypatch.setattr("apodwall.scheduler.sys.platform", "win32")

    assert register_daily_task("9:00", COMMAND) is True

    command = fake_run.call_args.args[0]
    assert command[:4] == ["schtasks.exe", "/create", "/tn", "apodwall"]
    assert command[command.index("/sc") + 1] == "daily"
    assert command[command.index("/st") + 1] == "09:00"
    assert command[-1] == "/f"


@patch("apodwall.scheduler.subprocess.run", autospec=True)
def test_register_schtasks_failure(fake_run, monkeypatch):

    monkeypatch.setattr("apodwall.scheduler.sys.platform", "win32")
    fake_run.side_effect = subprocess.CalledProcessError(
        cmd="schtasks.exe", returncode=1, stderr="Access is denied."
    )

    assert register_daily_task("09:00", COMMAND) is False


def test_schedule_runs_now_after_registration():

    register = MagicMock(return_value=True)
    run_now = MagicMock()

    assert schedule("10:15", register=register, run_now=run_now) is True

    register.assert_called_once_with("10:15")
    run_now.assert_called_once_with()


def test_schedule_does_not_run_when_registration_fails():

    run_now = MagicMock()

    assert schedule("10:15", register=MagicMock(return_value=False), run_now=run_now) is False
    run_now.assert_not_called()


def test_schedule_launch_failure_still_scheduled():

    run_now = MagicMock(side_effect=OSError("no python"))

    assert schedule(register=MagicMock(return_value=True), run_now=run_now) is True
