"""
Artifact Store

Owns the directory of downloaded and converted wallpapers. Each APOD day maps to one file with a
predictable name, so the store can tell whether today's image is already on disk without keeping
any index:

    APOD_2024-05-01.png              the image as downloaded (extension taken from the url)
    APOD_2024-05-01_converted.bmp    the BMP fallback, only created when needed

Files are timestamped by their modification time. Artifacts are written once and never touched
again, so that is the moment the file was created on this machine. Retention cleanup deletes
anything older than the configured number of days. No other part of apodwall deletes files here.
"""

import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, List
from urllib.parse import urlparse

from apodwall import image_handler
from apodwall.apod_handler import DailyRecord
from apodwall.config import DEFAULT_RETENTION_DAYS

logger = logging.getLogger(__name__)

ARTIFACT_PREFIX = "APOD"
DEFAULT_EXTENSION = ".jpg"
CONVERTED_SUFFIX = "_converted.bmp"


class NoImageUrlError(Exception):
    """
    Raised when an APOD record has neither a high resolution nor a standard image url.
    """

    pass


def url_extension(url: str) -> str:
    """
    Return the lower-cased file extension of the url's path, or the default extension if the path
    doesn't have one. Query strings and fragments are ignored.
    """

    suffix = Path(urlparse(url).path).suffix.lower()
    return suffix if suffix else DEFAULT_EXTENSION


class ArtifactStore:
    """
    Maps APOD days to image files under images_dir. now is the clock used for the cache and
    retention decisions and is only replaced in tests.
    """

    def __init__(
        self,
        images_dir: Path,
        prefer_hd: bool = True,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.images_dir = Path(images_dir)
        self.prefer_hd = prefer_hd
        self.now = now

    def resolve_image_url(self, record: DailyRecord) -> str:
        """
        Pick the url to download for a record: the high resolution image when there is one,
        otherwise the standard one.
        """

        candidates = [record.hdurl, record.url]
        if not self.prefer_hd:
            candidates.reverse()

        for url in candidates:
            if url:
                return url

        raise NoImageUrlError(
            f"No image URL found in APOD data for {record.day or 'today'}."
        )

    def artifact_path(self, url: str, day: date) -> Path:
        return self.images_dir / f"{ARTIFACT_PREFIX}_{day.isoformat()}{url_extension(url)}"

    def converted_path(self, day: date) -> Path:
        return self.images_dir / f"{ARTIFACT_PREFIX}_{day.isoformat()}{CONVERTED_SUFFIX}"

    def _timestamp(self, path: Path) -> datetime:
        return datetime.fromtimestamp(path.stat().st_mtime)

    def is_fresh(self, path: Path) -> bool:
        """
        True if path is a file that was written during the current calendar day.
        """

        try:
            if not path.is_file():
                return False
            return self._timestamp(path).date() == self.now().date()

        except OSError:
            return False

    def ensure_downloaded(self, url: str, day: date) -> Path:
        """
        Return the local file for day, downloading url first unless a copy was already saved
        today. Raise ImageDownloadError if the download fails.
        """

        destination = self.artifact_path(url, day)

        if self.is_fresh(destination):
            logger.info(f"Using image already downloaded today: {destination}")
            return destination

        logger.info(f"Downloading {url}")
        return image_handler.download_image(url, destination)

    def cleanup(self, retention_days: int = DEFAULT_RETENTION_DAYS) -> List[Path]:
        """
        Delete every file in the images directory older than retention_days and return the paths
        that were removed. Best effort: problems are logged and the remaining files are still
        considered.
        """

        cutoff = self.now() - timedelta(days=retention_days)
        removed = []

        try:
            entries = list(self.images_dir.iterdir())
        except OSError as error:
            logger.warning(f"Could not list {self.images_dir} for cleanup: {error}")
            return removed

        for entry in entries:
            try:
                if not entry.is_file() or self._timestamp(entry) >= cutoff:
                    continue

                entry.unlink()

            except OSError as error:
                logger.warning(f"Could not remove old image {entry.name}: {error}")
                continue

            removed.append(entry)
            logger.info(f"Removed old image {entry.name}")

        return removed
