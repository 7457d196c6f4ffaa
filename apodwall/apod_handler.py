"""
NASA APOD API - Metadata Client

This module is a thin wrapper around the NASA Astronomy Picture of the Day API. One GET request
is made per call, with the user's API key passed as the api_key query parameter. The JSON body
that comes back is parsed into a DailyRecord, which is all the rest of apodwall ever sees of the API.

A typical response looks like:

    {
        "date": "2024-05-01",
        "explanation": "...",
        "hdurl": "https://apod.nasa.gov/apod/image/2405/example_big.jpg",
        "media_type": "image",
        "service_version": "v1",
        "title": "...",
        "url": "https://apod.nasa.gov/apod/image/2405/example.jpg"
    }

hdurl is only present for images, and media_type is the one field needed to decide whether there
is anything to download at all: some days the APOD is a video.

The client does not touch the filesystem. Downloading the image the record points at is handled by
the artifact store and the image handler.
"""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from functools import wraps
from typing import Optional

import requests

logger = logging.getLogger(__name__)

APOD_ENDPOINT = "https://api.nasa.gov/planetary/apod"
DEFAULT_TIMEOUT = 30


class ApodFetchError(Exception):
    """
    Raised when the APOD record for today can't be retrieved or understood: network failure,
    an unsuccessful HTTP status or a response body that isn't a valid APOD record.
    """

    pass


class MediaType(Enum):
    IMAGE = "image"
    VIDEO = "video"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str) -> "MediaType":
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class DailyRecord:
    """
    Metadata for one day's APOD. Optional fields are empty strings when the API leaves them out.
    """

    day: Optional[date]
    media_type: MediaType
    title: str = ""
    explanation: str = ""
    url: str = ""
    hdurl: str = ""
    service_version: str = ""
    copyright: str = ""

    @property
    def is_image(self) -> bool:
        return self.media_type is MediaType.IMAGE


def _parse_day(value) -> Optional[date]:
    if not isinstance(value, str):
        return None

    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        logger.debug(f"APOD record has an unrecognised date: {value!r}")
        return None


def _text(payload: dict, key: str) -> str:
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def parse_apod(payload) -> DailyRecord:
    """
    Build a DailyRecord from a decoded APOD response body. Raise ApodFetchError if the body is not
    a JSON object or has no media_type.
    """

    if not isinstance(payload, dict):
        raise ApodFetchError(
            f"Unexpected APOD response: expected a JSON object but got {type(payload).__name__}."
        )

    media_type = payload.get("media_type")
    if not isinstance(media_type, str) or not media_type.strip():
        raise ApodFetchError("Unexpected APOD response: no media_type in record.")

    return DailyRecord(
        day=_parse_day(payload.get("date")),
        media_type=MediaType.parse(media_type),
        title=_text(payload, "title"),
        explanation=_text(payload, "explanation"),
        url=_text(payload, "url"),
        hdurl=_text(payload, "hdurl"),
        service_version=_text(payload, "service_version"),
        copyright=_text(payload, "copyright"),
    )


def api_key_param(func):
    """
    Use this decorator to turn the api_key argument of a request function into the query
    parameters the APOD API expects. The key is never interpolated into the URL by hand, so
    it doesn't end up in log messages built from the endpoint.
    """

    @wraps(func)
    def wrapper(api_key: str, *args, **kwargs):
        return func(*args, params={"api_key": api_key}, **kwargs)

    return wrapper


@api_key_param
def fetch_apod(
    endpoint: str = APOD_ENDPOINT, timeout: float = DEFAULT_TIMEOUT, *, params: dict
) -> DailyRecord:
    """
    Request today's APOD record and return it as a DailyRecord. Raise ApodFetchError for any
    failure; callers treat that as "nothing to do today" rather than a crash.
    """

    try:
        r = requests.get(endpoint, params=params, timeout=timeout)

    except requests.exceptions.RequestException as error:
        raise ApodFetchError(f"Error fetching APOD data: {error}")

    # successful request but received a bad response from the server.
    try:
        r.raise_for_status()
    except requests.exceptions.HTTPError:
        raise ApodFetchError(
            f"Error fetching APOD data: {endpoint} returned status code {r.status_code}"
        )

    logger.debug(f"Raw APOD API response: {r.text}")

    try:
        payload = r.json()
    except ValueError as error:
        raise ApodFetchError(f"Error fetching APOD data: response is not valid JSON ({error})")

    return parse_apod(payload)
