"""
Desktop Wallpaper Handler

This module sets the desktop background. It's the only place in apodwall that knows anything about
the operating system's desktop:

- Windows: SystemParametersInfoW(SPI_SETDESKWALLPAPER) through ctypes, after setting the wallpaper
  style to "Fill" in HKCU\\Control Panel\\Desktop.
- macOS: asks System Events to set the picture of every desktop through osascript.
- Linux: the GNOME settings schema org.gnome.desktop.background, through the gsettings command.
  Both picture-uri and picture-uri-dark are set so the image shows regardless of colour scheme.

Settings for GNOME desktop backgrounds are defined under the schema org.gnome.desktop.background.
More information on this schema can be found at:
https://github.com/GNOME/gsettings-desktop-schemas/blob/master/schemas/org.gnome.desktop.background.gschema.xml.in

update_wallpaper raises WallpaperUpdateError when the desktop refuses the image. apply_background is
the yes/no version of the same thing that the updater uses: a refusal there is a signal to try the
converted image, not an error.
"""

import logging
import subprocess
import sys
from pathlib import Path

from apodwall.image_handler import InvalidImageError
from apodwall.image_handler import validate_image

logger = logging.getLogger(__name__)

SPI_SETDESKWALLPAPER = 20
SPIF_UPDATEINIFILE = 0x01
SPIF_SENDCHANGE = 0x02

WALLPAPER_STYLE_FILL = "10"

GNOME_BACKGROUND_SCHEMA = "org.gnome.desktop.background"
GNOME_PICTURE_KEYS = ("picture-uri", "picture-uri-dark")


class WallpaperUpdateError(Exception):
    """
    Raised when an attempt to update the desktop background fails.
    """

    pass


def _run(command: list) -> subprocess.CompletedProcess:
    """
    Run a desktop settings command. subprocess.CalledProcessError is raised by run if a non-zero
    exit status is returned, which is the main way of finding out the desktop said no.
    """

    try:
        return subprocess.run(
            command,
            check=True,
            text=True,
            stdin=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            stdout=subprocess.PIPE,
        )

    except subprocess.CalledProcessError as error:
        raise WallpaperUpdateError(
            f"Could not set desktop background: {error} {error.stderr or ''}".strip()
        )

    except OSError as error:
        raise WallpaperUpdateError(f"Could not run {command[0]}: {error}")


def _set_windows_wallpaper(wallpaper_location: Path) -> None:
    import ctypes
    import winreg

    try:
        with winreg.OpenKey(
            winreg.HKEY_CURRENT_USER, r"Control Panel\Desktop", 0, winreg.KEY_SET_VALUE
        ) as key:
            winreg.SetValueEx(key, "WallpaperStyle", 0, winreg.REG_SZ, WALLPAPER_STYLE_FILL)
            winreg.SetValueEx(key, "TileWallpaper", 0, winreg.REG_SZ, "0")

    except OSError as error:
        raise WallpaperUpdateError(
            f"Failed to open registry key for wallpaper settings: {error}"
        )

    result = ctypes.windll.user32.SystemParametersInfoW(
        SPI_SETDESKWALLPAPER,
        0,
        str(wallpaper_location),
        SPIF_UPDATEINIFILE | SPIF_SENDCHANGE,
    )

    if not result:
        raise WallpaperUpdateError(
            f"Windows refused {wallpaper_location.name} as the desktop background."
        )


def _set_macos_wallpaper(wallpaper_location: Path) -> None:
    script = (
        'tell application "System Events" to tell every desktop '
        f'to set picture to "{wallpaper_location}"'
    )
    _run(["osascript", "-e", script])


def _set_gnome_wallpaper(wallpaper_location: Path) -> None:
    # the schema is read directly and gnome does no validation, so always hand it an absolute uri
    uri = wallpaper_location.as_uri()
    for key in GNOME_PICTURE_KEYS:
        _run(["gsettings", "set", GNOME_BACKGROUND_SCHEMA, key, uri])


def update_wallpaper(img_path: Path) -> None:
    """
    Update the background image to the one at img_path. Raise WallpaperUpdateError if issues are
    encountered during the attempt to update the background.
    """

    img_path = Path(str(img_path).removeprefix("file://"))

    wallpaper_location = img_path.expanduser().resolve()

    # subsequent operations will fail if path does not exist or is not a file, so catch this.
    if not wallpaper_location.exists() or not wallpaper_location.is_file():
        raise WallpaperUpdateError(
            f"Invalid path provided for image location: {img_path} does not exist."
        )

    try:
        validate_image(wallpaper_location)
    except InvalidImageError:
        raise WallpaperUpdateError(
            f"Invalid image type provided. {wallpaper_location.name} is not a valid image."
        )

    if sys.platform.startswith("win"):
        _set_windows_wallpaper(wallpaper_location)

    elif sys.platform == "darwin":
        _set_macos_wallpaper(wallpaper_location)

    elif sys.platform.startswith("linux"):
        _set_gnome_wallpaper(wallpaper_location)

    else:
        raise WallpaperUpdateError(
            f"Setting the wallpaper is not supported on this platform ({sys.platform})."
        )


def apply_background(img_path: Path) -> bool:
    """
    Try to set img_path as the desktop background and report whether it worked.
    """

    logger.info(f"Attempting to set wallpaper using: {img_path}")

    try:
        update_wallpaper(img_path)

    except WallpaperUpdateError as error:
        logger.warning(f"Failed to set wallpaper: {error}")
        return False

    logger.info(f"Wallpaper set to {img_path}")
    return True
