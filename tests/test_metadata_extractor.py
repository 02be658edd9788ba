from __future__ import annotations

from datetime import datetime
from pathlib import Path
from unittest.mock import Mock

import pytest

from conftest import PARIS_GPS, make_jpeg, set_mtime
from media_sorter.metadata_extractor import (
    MetadataExtractor,
    dms_to_decimal,
    parse_exif_datetime,
    rational_to_float,
)


def test_embedded_capture_date_wins_over_mtime(tmp_path: Path) -> None:
    photo = make_jpeg(tmp_path / "photo.jpg", capture_date="2023:10:15 14:30:05")
    set_mtime(photo, datetime(2020, 5, 5, 5, 5, 5))

    meta = MetadataExtractor().extract(photo)

    assert meta.timestamp == datetime(2023, 10, 15, 14, 30, 5)
    assert meta.has_precise_date is True
    assert meta.location == ""


def test_image_without_exif_falls_back_to_mtime(tmp_path: Path) -> None:
    photo = make_jpeg(tmp_path / "plain.jpg")
    set_mtime(photo, datetime(2021, 3, 4, 5, 6, 7))

    meta = MetadataExtractor().extract(photo)

    assert meta.timestamp == datetime(2021, 3, 4, 5, 6, 7)
    assert meta.has_precise_date is False


def test_non_image_uses_mtime(tmp_path: Path) -> None:
    note = tmp_path / "note.txt"
    note.write_text("hello", encoding="utf-8")
    set_mtime(note, datetime(2022, 1, 1, 0, 0, 0))

    meta = MetadataExtractor().extract(note)

    assert meta.timestamp == datetime(2022, 1, 1, 0, 0, 0)
    assert meta.has_precise_date is False
    assert meta.coordinates is None


def test_malformed_capture_date_is_ignored(tmp_path: Path) -> None:
    photo = make_jpeg(tmp_path / "bad.jpg", capture_date="2023:13:45 99:99:99")
    set_mtime(photo, datetime(2019, 9, 9, 9, 9, 9))

    meta = MetadataExtractor().extract(photo)

    assert meta.timestamp == datetime(2019, 9, 9, 9, 9, 9)
    assert meta.has_precise_date is False


def test_gps_is_resolved_to_location(tmp_path: Path) -> None:
    photo = make_jpeg(tmp_path / "paris.jpg", capture_date="2023:10:15 14:30:05", gps=PARIS_GPS)
    geocoder = Mock()
    geocoder.resolve.return_value = "Paris"

    meta = MetadataExtractor(geocoder).extract(photo)

    assert meta.location == "Paris"
    lat, lon = geocoder.resolve.call_args[0]
    assert lat == pytest.approx(48 + 51 / 60 + 24 / 3600)
    assert lon == pytest.approx(2 + 21 / 60 + 8 / 3600)


def test_southern_and_western_hemispheres_are_negative(tmp_path: Path) -> None:
    gps = (((33, 52, 7), "S"), ((151, 12, 33), "W"))
    photo = make_jpeg(tmp_path / "south.jpg", gps=gps)

    meta = MetadataExtractor().extract(photo)

    lat, lon = meta.coordinates
    assert lat == pytest.approx(-(33 + 52 / 60 + 7 / 3600))
    assert lon == pytest.approx(-(151 + 12 / 60 + 33 / 3600))
    assert meta.location == ""


def test_geocoder_failure_leaves_location_empty(tmp_path: Path) -> None:
    photo = make_jpeg(tmp_path / "paris.jpg", gps=PARIS_GPS)
    geocoder = Mock()
    geocoder.resolve.side_effect = RuntimeError("offline")

    meta = MetadataExtractor(geocoder).extract(photo)

    assert meta.location == ""
    assert meta.timestamp is not None


def test_missing_file_has_unknown_date(tmp_path: Path) -> None:
    meta = MetadataExtractor().extract(tmp_path / "gone.jpg")

    assert meta.timestamp is None
    assert meta.has_precise_date is False
    assert meta.location == ""


def test_parse_exif_datetime() -> None:
    assert parse_exif_datetime("2023:10:15 14:30:05") == datetime(2023, 10, 15, 14, 30, 5)
    assert parse_exif_datetime(b"2023:10:15 14:30:05\x00") == datetime(2023, 10, 15, 14, 30, 5)
    assert parse_exif_datetime("2023:10:15 14:30") is None
    assert parse_exif_datetime("0000:00:00 00:00:00") is None
    assert parse_exif_datetime("not a date at all!!") is None
    assert parse_exif_datetime(None) is None


def test_rational_zero_denominator_is_zero() -> None:
    assert rational_to_float((5, 0)) == 0.0
    assert rational_to_float((30, 2)) == 15.0
    assert rational_to_float(7) == 7.0


def test_dms_to_decimal() -> None:
    assert dms_to_decimal(((48, 1), (30, 1), (0, 1)), "N") == pytest.approx(48.5)
    assert dms_to_decimal(((48, 1), (30, 1), (0, 1)), b"S\x00") == pytest.approx(-48.5)
    assert dms_to_decimal(((10, 1), (0, 0), (36, 1)), "W") == pytest.approx(-10.01)
    with pytest.raises(ValueError):
        dms_to_decimal(((10, 1),), "N")
