"""
conftest.py

Test configuration for apodwall tests.

Defines Pytest fixtures for supplying test data to tests across the entire test suite. Fixtures
used within only a single module are defined directly in that module. Test images are generated
with Pillow into pytest's tmp_path rather than checked in, and nothing in the suite touches the
network or the real desktop.
"""

import io
from datetime import date
from pathlib import Path

import pytest
from PIL import Image

from apodwall.apod_handler import DailyRecord
from apodwall.apod_handler import MediaType
from apodwall.config import ApodConfig


def make_image_bytes(format: str = "JPEG", size=(32, 24), color=(20, 40, 120)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=format)
    return buffer.getvalue()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG")


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture
def test_image(tmp_path, jpeg_bytes) -> Path:
    """
    Returns a Path object representing a small valid JPEG on disk.
    """

    path = tmp_path / "sample.jpg"
    path.write_bytes(jpeg_bytes)
    return path


@pytest.fixture
def not_an_image(tmp_path) -> Path:
    path = tmp_path / "not_an_image.txt"
    path.write_text("definitely not pixels")
    return path


@pytest.fixture
def config(tmp_path) -> ApodConfig:
    """
    A configuration whose home is an empty temporary directory.
    """

    return ApodConfig(api_key="DEMO_KEY", home=tmp_path / "home")


@pytest.fixture
def image_record() -> DailyRecord:
    return DailyRecord(
        day=date(2024, 5, 1),
        media_type=MediaType.IMAGE,
        title="A Test Nebula",
        explanation="Gas, dust and a fixture.",
        url="http://x/a-std.jpg",
        hdurl="http://x/a.png",
    )
