"""
Wallpaper Updater

The daily update as a small state machine. Each stage's output is the next stage's input, so the
stages simply run one after the other:

    IDLE -> CHECKING -> FETCHING -> DOWNLOADING -> APPLYING
         -> (CONVERTING -> APPLYING_CONVERTED)
         -> PERSISTING -> CLEANING -> DONE

and any stage can end the run in ABORTED instead.

CHECKING makes the update idempotent: once the wallpaper has been set on a given calendar day,
further runs that day are no-ops (no network, no state change) unless forced.

APPLYING hands the downloaded image to the desktop as it is. Only if the desktop rejects it is the
image converted to a BMP and applied a second, final time. The file that ends up on the desktop is
the one recorded in the run state.

An aborted run is not a crash. Nothing to download today (a video APOD, the API being down) is an
expected outcome for a background job, so every stage error is caught here, logged, and reported
in the returned UpdateResult. The caller exits normally either way.

Collaborators are passed in as plain callables so the updater can be run against fakes:

    fetch(api_key) -> DailyRecord             raises ApodFetchError
    apply(path) -> bool
    convert(source, target) -> Path           raises ImageConvertError
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from apodwall.apod_handler import ApodFetchError
from apodwall.apod_handler import DailyRecord
from apodwall.apod_handler import fetch_apod
from apodwall.config import ApodConfig
from apodwall.image_handler import ImageConvertError
from apodwall.image_handler import ImageDownloadError
from apodwall.image_handler import convert_image
from apodwall.state import RunState
from apodwall.state import StateError
from apodwall.state import load_state
from apodwall.state import save_state
from apodwall.store import ArtifactStore
from apodwall.store import NoImageUrlError
from apodwall.wallpaper_handler import apply_background

logger = logging.getLogger(__name__)


class Stage(Enum):
    IDLE = "idle"
    CHECKING = "checking"
    FETCHING = "fetching"
    DOWNLOADING = "downloading"
    APPLYING = "applying"
    CONVERTING = "converting"
    APPLYING_CONVERTED = "applying converted"
    PERSISTING = "persisting"
    CLEANING = "cleaning"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class UpdateResult:
    """
    Outcome of one run. stages lists every stage the run passed through, in order, ending with
    DONE or ABORTED.
    """

    stages: List[Stage] = field(default_factory=list)
    record: Optional[DailyRecord] = None
    applied_path: Optional[Path] = None
    reason: str = ""

    @property
    def stage(self) -> Stage:
        return self.stages[-1] if self.stages else Stage.IDLE

    @property
    def aborted(self) -> bool:
        return self.stage is Stage.ABORTED

    @property
    def updated(self) -> bool:
        """True if the wallpaper was changed by this run."""

        return self.stage is Stage.DONE and self.applied_path is not None


class _Abort(Exception):
    """Internal signal that ends a run early in the ABORTED stage."""

    pass


class Updater:
    def __init__(
        self,
        config: ApodConfig,
        *,
        fetch: Callable[[str], DailyRecord] = fetch_apod,
        apply: Callable[[Path], bool] = apply_background,
        convert: Callable[[Path, Path], Path] = convert_image,
        store: Optional[ArtifactStore] = None,
        today: Callable[[], date] = date.today,
    ):
        self.config = config
        self.fetch = fetch
        self.apply = apply
        self.convert = convert
        self.store = store or ArtifactStore(config.images_dir)
        self.today = today

    def run(self, force: bool = False) -> UpdateResult:
        """
        Perform one update. Never raises for an expected failure; inspect the result instead.
        """

        result = UpdateResult(stages=[Stage.IDLE])
        today = self.today()

        try:
            self._run(result, today, force)

        except _Abort as abort:
            result.reason = str(abort)
            self._enter(result, Stage.ABORTED)
            logger.info(f"Update aborted: {result.reason}")

        return result

    def _enter(self, result: UpdateResult, stage: Stage) -> None:
        logger.debug(f"{result.stage.value} -> {stage.value}")
        result.stages.append(stage)

    def _run(self, result: UpdateResult, today: date, force: bool) -> None:
        self._enter(result, Stage.CHECKING)
        state = load_state(self.config.state_path)

        if state.updated_on(today) and not force:
            result.reason = f"Already updated wallpaper today ({today}). Skipping."
            logger.info(result.reason)
            self._enter(result, Stage.DONE)
            return

        if force and state.updated_on(today):
            logger.info(f"Already updated today ({today}) but forced to update again.")

        self._enter(result, Stage.FETCHING)
        record = self._fetch()
        result.record = record

        self._enter(result, Stage.DOWNLOADING)
        source = self._download(record, record.day or today)

        applied = self._apply(result, source, record.day or today)

        self._enter(result, Stage.PERSISTING)
        self._persist(RunState(last_update=today, last_image=applied))
        result.applied_path = applied

        self._enter(result, Stage.CLEANING)
        self.store.cleanup(self.config.retention_days)

        self._enter(result, Stage.DONE)
        result.reason = f"Wallpaper successfully set to {applied}"
        logger.info(f"Today's APOD: {record.title or 'Unknown Title'}")
        if record.explanation:
            logger.debug(record.explanation)
        logger.info(result.reason)

    def _fetch(self) -> DailyRecord:
        try:
            record = self.fetch(self.config.api_key)

        except ApodFetchError as error:
            raise _Abort(f"Failed to get APOD data: {error}")

        if not record.is_image:
            raise _Abort(
                f"Today's APOD is not an image (it's {record.media_type.value}). Skipping."
            )

        return record

    def _download(self, record: DailyRecord, day: date) -> Path:
        try:
            url = self.store.resolve_image_url(record)
            return self.store.ensure_downloaded(url, day)

        except (NoImageUrlError, ImageDownloadError) as error:
            raise _Abort(f"Failed to download image: {error}")

    def _apply(self, result: UpdateResult, source: Path, day: date) -> Path:
        """
        Apply source directly, falling back to a converted copy once. Return the path that ended
        up on the desktop.
        """

        self._enter(result, Stage.APPLYING)
        if self.apply(source):
            return source

        logger.info(f"Direct apply of {source.name} failed, converting to BMP")

        self._enter(result, Stage.CONVERTING)
        converted = self.store.converted_path(day)
        try:
            self.convert(source, converted)
        except ImageConvertError as error:
            raise _Abort(f"Failed to convert image: {error}")

        self._enter(result, Stage.APPLYING_CONVERTED)
        if not self.apply(converted):
            raise _Abort(f"Failed to set wallpaper, even after converting to {converted.name}.")

        return converted

    def _persist(self, state: RunState) -> None:
        # the wallpaper has already changed at this point, so a failed save isn't rolled back
        try:
            save_state(state, self.config.state_path)

        except StateError as error:
            logger.error(f"Wallpaper was set but the run state could not be saved: {error}")
