"""
Tests for state.py

The run state file must round trip the documented JSON layout, load as "never updated" whenever it
can't be trusted, and never be left half written.
"""

import json
import unittest.mock
from datetime import date
from pathlib import Path

import pytest

# following entities are tested in this module:
from apodwall.state import RunState
from apodwall.state import StateError
from apodwall.state import load_state
from apodwall.state import save_state


def test_save_writes_documented_layout(tmp_path):

    state_path = tmp_path / "state.json"
    image = tmp_path / "images" / "APOD_2024-05-01.png"

    save_state(RunState(last_update=date(2024, 5, 1), last_image=image), state_path)

    assert json.loads(state_path.read_text()) == {
        "lastUpdate": "2024-05-01",
        "lastImage": str(image),
    }
    assert [p.name for p in tmp_path.iterdir()] == ["state.json"]


def test_load_saved_state(tmp_path):

    state_path = tmp_path / "nested" / "state.json"
    saved = RunState(last_update=date(2024, 5, 1), last_image=Path("/x/APOD_2024-05-01.png"))

    save_state(saved, state_path)

    assert load_state(state_path) == saved


def test_load_missing_file(tmp_path):

    assert load_state(tmp_path / "state.json") == RunState()


def test_load_empty_values(tmp_path):

    state_path = tmp_path / "state.json"
    state_path.write_text('{"lastUpdate": "", "lastImage": ""}')

    assert load_state(state_path) == RunState()


@pytest.mark.parametrize(
    "contents",
    [
        "",
        "{not json",
        '{"lastUpdate": "2024-05',
        "[1, 2, 3]",
        '{"lastUpdate": "yesterday"}',
        '{"lastUpdate": 20240501}',
        '{"lastUpdate": "2024-05-01", "lastImage": ["a"]}',
    ],
)
def test_load_corrupt_state(tmp_path, contents):

    state_path = tmp_path / "state.json"
    state_path.write_text(contents)

    state = load_state(state_path)

    assert state.last_update is None
    assert not state.updated_on(date(2024, 5, 1))


def test_load_unreadable_state(tmp_path):

    # a directory where the file should be can't be read as text
    state_path = tmp_path / "state.json"
    state_path.mkdir()

    assert load_state(state_path) == RunState()


def test_save_failure_keeps_previous_state(tmp_path):

    state_path = tmp_path / "state.json"
    previous = RunState(last_update=date(2024, 4, 30), last_image=Path("/x/old.jpg"))
    save_state(previous, state_path)

    with unittest.mock.patch("apodwall.state.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(StateError):
            save_state(RunState(last_update=date(2024, 5, 1)), state_path)

    assert load_state(state_path) == previous
    assert [p.name for p in tmp_path.iterdir()] == ["state.json"]


def test_updated_on():

    state = RunState(last_update=date(2024, 5, 1))

    assert state.updated_on(date(2024, 5, 1))
    assert not state.updated_on(date(2024, 5, 2))
    assert not RunState().updated_on(date(2024, 5, 1))
