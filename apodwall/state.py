"""
Run State

apodwall remembers two things between runs: the last day the wallpaper was successfully updated and
the file it was updated to. These live in a small JSON file:

    {
        "lastUpdate": "2024-05-01",
        "lastImage": "/home/user/.local/share/apodwall/images/APOD_2024-05-01.png"
    }

Losing this file is harmless; the worst case is that today's wallpaper gets applied a second time.
So a missing, unreadable or malformed state file loads as an empty RunState instead of failing the
run. Writes go to a temporary file in the same directory which is then renamed over the old one, so
an interrupted write leaves the previous state intact.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class StateError(Exception):
    """Raise when the run state can't be written to disk."""

    pass


@dataclass
class RunState:
    last_update: Optional[date] = None
    last_image: Optional[Path] = None

    def updated_on(self, day: date) -> bool:
        return self.last_update == day

    def to_json(self) -> str:
        return json.dumps(
            {
                "lastUpdate": self.last_update.isoformat() if self.last_update else "",
                "lastImage": str(self.last_image) if self.last_image else "",
            },
            indent=4,
        )

    @classmethod
    def from_json(cls, text: str) -> "RunState":
        """
        Parse the contents of a state file. Raise ValueError if it isn't a JSON object with
        well formed values.
        """

        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("state is not a JSON object")

        last_update = data.get("lastUpdate") or None
        last_image = data.get("lastImage") or None

        if last_update is not None and not isinstance(last_update, str):
            raise ValueError(f"lastUpdate is not a string: {last_update!r}")
        if last_image is not None and not isinstance(last_image, str):
            raise ValueError(f"lastImage is not a string: {last_image!r}")

        return cls(
            last_update=date.fromisoformat(last_update) if last_update else None,
            last_image=Path(last_image) if last_image else None,
        )


def load_state(state_path: Path) -> RunState:
    """
    Load the run state from state_path. Returns an empty RunState ("never updated") if the file
    doesn't exist or can't be read.
    """

    try:
        text = Path(state_path).read_text(encoding="utf-8")

    except FileNotFoundError:
        return RunState()

    except OSError as error:
        logger.warning(f"Could not read state file {state_path}, starting fresh: {error}")
        return RunState()

    try:
        return RunState.from_json(text)

    except ValueError as error:
        # json.JSONDecodeError and bad dates are both ValueErrors
        logger.warning(f"State file {state_path} is corrupt, starting fresh: {error}")
        return RunState()


def save_state(state: RunState, state_path: Path) -> None:
    """
    Atomically replace the state file with state. Raise StateError on failure, in which case the
    previous state file (if any) is left untouched.
    """

    state_path = Path(state_path)

    try:
        state_path.parent.mkdir(parents=True, exist_ok=True)
        fd, temporary = tempfile.mkstemp(
            dir=state_path.parent, prefix=f".{state_path.name}.", suffix=".tmp"
        )

    except OSError as error:
        raise StateError(f"There was an error saving the state file: {error}")

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as file:
            file.write(state.to_json())
            file.flush()
            os.fsync(file.fileno())

        os.replace(temporary, state_path)

    except OSError as error:
        try:
            os.unlink(temporary)
        except OSError:
            pass
        raise StateError(f"There was an error saving the state file: {error}")
