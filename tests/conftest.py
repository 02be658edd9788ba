from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

import pytest
import requests
from PIL import Image
from PIL.TiffImagePlugin import IFDRational

from media_sorter.config import SorterConfig
from media_sorter.geocoder import GeocodeResolver

# 48°51'24"N 2°21'8"E
PARIS_GPS = (((48, 51, 24), "N"), ((2, 21, 8), "E"))


def make_jpeg(path: Path, capture_date: Optional[str] = None,
              gps: Optional[Tuple] = None, color: str = "red") -> Path:
    """Write a small JPEG with optional DateTimeOriginal and GPS tags."""
    img = Image.new("RGB", (16, 16), color)
    exif = Image.Exif()
    if capture_date is not None:
        exif[0x8769] = {0x9003: capture_date}
    if gps is not None:
        (lat, lat_ref), (lon, lon_ref) = gps
        exif[0x8825] = {
            0x0001: lat_ref,
            0x0002: tuple(IFDRational(v, 1) for v in lat),
            0x0003: lon_ref,
            0x0004: tuple(IFDRational(v, 1) for v in lon),
        }
    path.parent.mkdir(parents=True, exist_ok=True)
    img.save(path, "JPEG", exif=exif)
    return path


def set_mtime(path: Path, when: datetime) -> None:
    ts = when.timestamp()
    os.utime(path, (ts, ts))


class FakeResponse:
    def __init__(self, payload=None, status_code: int = 200, body_error: Exception = None):
        self.payload = payload
        self.status_code = status_code
        self.body_error = body_error
        self.closed = False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.body_error is not None:
            raise self.body_error
        return self.payload

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Stands in for requests.Session and counts GET calls."""

    def __init__(self, payload=None, error: Exception = None, status_code: int = 200,
                 body_error: Exception = None):
        self.payload = payload if payload is not None else {"address": {"city": "Paris"}}
        self.error = error
        self.status_code = status_code
        self.body_error = body_error
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return FakeResponse(self.payload, self.status_code, self.body_error)


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def resolver(fake_session: FakeSession, sleeps: list) -> GeocodeResolver:
    return GeocodeResolver(SorterConfig(), session=fake_session, sleep=sleeps.append)


@pytest.fixture
def roots(tmp_path: Path) -> Tuple[Path, Path]:
    source = tmp_path / "source"
    target = tmp_path / "target"
    source.mkdir()
    target.mkdir()
    return source, target
