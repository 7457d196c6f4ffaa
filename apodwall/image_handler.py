"""
Image Handler

Utilities for downloading and converting images.

Downloading images: supports only plain GET requests for image files specified by URL, with no
expectation of authentication. Talking to the APOD API is the job of apod_handler; by the time a
URL gets here it should point straight at an image resource.

Every file is first written next to its destination with a ".part" suffix and only renamed to the
destination once it is complete and has been checked to be an image. A download or conversion that
fails, or a process that is killed halfway through, therefore never leaves behind something that
looks like a finished wallpaper.

Converting images: the fallback for desktops that refuse the downloaded file as-is. The image is
re-encoded as a 24-bit BMP, which every wallpaper API we target accepts.
"""

import logging
import os
from pathlib import Path

from PIL import Image, UnidentifiedImageError
import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60
CHUNK_SIZE = 64 * 1024
PARTIAL_SUFFIX = ".part"


class InvalidImageError(Exception):
    """
    Raised when a provided binary input file is not an image. Wrapper around the PIL
    UnidentifiedImageError for better identification of errors during debugging
    and custom error messaging.
    """

    pass


class ImageDownloadError(Exception):
    """
    Raised when an image download is unsuccessful.
    """

    pass


class ImageConvertError(Exception):
    """
    Raised when an image can't be converted to the wallpaper fallback format, either because the
    source can't be decoded or because the codec isn't available.
    """

    pass


def partial_path(destination: Path) -> Path:
    """
    Return the temporary path a file destined for destination is written to while in flight.
    """

    return destination.with_name(destination.name + PARTIAL_SUFFIX)


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as error:
        logger.warning(f"Could not remove incomplete file {path}: {error}")


def validate_image(input) -> str:
    """
    Determine whether input is a valid image and return its format (e.g. "JPEG"). PIL open accepts a
    Path object, string, or file object. The PIL method reads the content header to determine file
    type but doesn't actually load any of the contents in memory, so it's cheap to use as a check.
    """

    try:
        with Image.open(input) as image:

            return image.format

    except UnidentifiedImageError:
        raise InvalidImageError(f"Input {str(input)} does not appear to be an image.")

    except FileNotFoundError:
        raise InvalidImageError(f"Input {str(input)} could not be found.")

    # Image.open refuses anything past twice Image.MAX_IMAGE_PIXELS
    except Image.DecompressionBombError as error:
        raise InvalidImageError(f"Input {str(input)} is too large to use: {error}")


def download_image(url: str, file_path: Path, timeout: float = DEFAULT_TIMEOUT) -> Path:
    """
    Download the image at url to file_path and return file_path. The response body is streamed to
    disk in chunks rather than held in memory; APOD high resolution images can be large.

    An existing file at file_path is replaced, but only once the new download is known to be good.
    Raise ImageDownloadError on any network, HTTP, filesystem or validation failure, in which case
    nothing is left on disk.
    """

    destination = Path(file_path).expanduser()

    # edge case where destination path is a folder
    if destination.is_dir():
        raise ImageDownloadError(f"Destination file {destination} is a directory.")

    destination.parent.mkdir(parents=True, exist_ok=True)
    temporary = partial_path(destination)

    try:
        # requests follows redirects on our behalf, so a url that bounces to the real image is fine
        r = requests.get(url, stream=True, timeout=timeout)

    except requests.exceptions.RequestException as error:
        raise ImageDownloadError(str(error))

    try:
        # successful request but received a bad response from the server.
        try:
            r.raise_for_status()
        except requests.exceptions.HTTPError:
            raise ImageDownloadError(
                f"Download error: something went wrong trying to access {url} (status code {r.status_code})"
            )

        try:
            with open(temporary, "wb") as file:
                for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        file.write(chunk)

        except (requests.exceptions.RequestException, OSError) as error:
            _discard(temporary)
            raise ImageDownloadError(f"Download error: transfer from {url} failed: {error}")

    finally:
        r.close()

    # successful request but did not get back image data as the response.
    try:
        validate_image(temporary)
    except InvalidImageError:
        _discard(temporary)
        raise ImageDownloadError(
            f"Download error: the target resource at {url} does not appear to be an image."
        )

    try:
        os.replace(temporary, destination)
    except OSError as error:
        _discard(temporary)
        raise ImageDownloadError(f"Download error: could not save {destination}: {error}")

    logger.info(f"Image downloaded to {destination}")
    return destination


def convert_image(source: Path, target: Path) -> Path:
    """
    Re-encode source as a BMP at target and return target. Transparency is flattened since BMP
    wallpapers don't support an alpha channel. Raise ImageConvertError if source can't be read or
    the BMP can't be written; the original image is never modified.
    """

    source = Path(source)
    target = Path(target)
    temporary = partial_path(target)

    try:
        with Image.open(source) as image:
            image.convert("RGB").save(temporary, format="BMP")

    except FileNotFoundError:
        _discard(temporary)
        raise ImageConvertError(f"Cannot convert {source}: file could not be found.")

    except UnidentifiedImageError:
        _discard(temporary)
        raise ImageConvertError(f"Cannot convert {source}: it does not appear to be an image.")

    # OSError covers truncated or corrupt data, ValueError/KeyError a missing codec
    except (OSError, ValueError, KeyError, Image.DecompressionBombError) as error:
        _discard(temporary)
        raise ImageConvertError(f"Failed to convert {source.name} to BMP: {error}")

    try:
        os.replace(temporary, target)
    except OSError as error:
        _discard(temporary)
        raise ImageConvertError(f"Failed to save converted image {target}: {error}")

    logger.info(f"Image converted to BMP: {target}")
    return target
