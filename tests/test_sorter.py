from __future__ import annotations

import threading
import time
import zipfile
from datetime import datetime
from io import BytesIO
from pathlib import Path

import pytest

import media_sorter.sorter as sorter_module
from conftest import PARIS_GPS, FakeSession, make_jpeg, set_mtime
from media_sorter.archive import LibraryExtractor
from media_sorter.config import SorterConfig
from media_sorter.context import Summary
from media_sorter.errors import InvalidRootError
from media_sorter.geocoder import GeocodeResolver
from media_sorter.sorter import MediaSorter


def _sorter(geocode: bool = False, workers: int = 4, session: FakeSession = None) -> MediaSorter:
    config = SorterConfig(max_workers=workers, geocode_enabled=geocode)
    geocoder = None
    if geocode:
        geocoder = GeocodeResolver(config, session=session or FakeSession(), sleep=lambda s: None)
    return MediaSorter(config, geocoder=geocoder, archive_extractor=LibraryExtractor())


def _files(root: Path):
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file())


def test_photo_with_gps_and_plain_file(roots) -> None:
    source, target = roots
    make_jpeg(source / "IMG_0001.jpg", capture_date="2023:10:15 14:30:05", gps=PARIS_GPS)
    note = source / "sub" / "note.txt"
    note.parent.mkdir()
    note.write_text("hello", encoding="utf-8")
    set_mtime(note, datetime(2022, 1, 1, 0, 0, 0))
    session = FakeSession()

    summary = _sorter(geocode=True, session=session).sort(source, target)

    assert summary == Summary(total_files=2, processed=2, succeeded=2, skipped=0)
    assert _files(target) == [
        "2022/2022-01/2022-01-01 00-00-00.txt",
        "2023/2023-10/2023-10-15 14-30-05 Paris.jpg",
    ]
    assert len(session.calls) == 1
    assert (source / "IMG_0001.jpg").exists()


def test_identical_photos_are_copied_once(roots) -> None:
    source, target = roots
    make_jpeg(source / "a.jpg", capture_date="2021:06:01 08:00:00")
    make_jpeg(source / "b.jpg", capture_date="2021:06:01 08:00:00")

    summary = _sorter().sort(source, target)

    assert summary.succeeded == 1
    assert summary.skipped == 1
    assert summary.processed == summary.total_files == 2
    assert _files(target) == ["2021/2021-06/2021-06-01 08-00-00.jpg"]


def test_same_timestamp_different_content_gets_suffix(roots) -> None:
    source, target = roots
    make_jpeg(source / "a.jpg", capture_date="2021:06:01 08:00:00", color="red")
    make_jpeg(source / "b.jpg", capture_date="2021:06:01 08:00:00", color="blue")
    (source / "b.jpg").write_bytes((source / "b.jpg").read_bytes() + b"\x00" * 64)

    summary = _sorter(workers=1).sort(source, target)

    assert summary.succeeded == 2
    assert _files(target) == [
        "2021/2021-06/2021-06-01 08-00-00.jpg",
        "2021/2021-06/2021-06-01 08-00-00_1.jpg",
    ]


def test_zip_members_are_sorted_and_scratch_removed(roots) -> None:
    source, target = roots
    photo = make_jpeg(source.parent / "staging" / "inner.jpg", capture_date="2020:02:29 12:00:00")
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.write(photo, "album/inner.jpg")
    (source / "album.zip").write_bytes(buffer.getvalue())

    summary = _sorter().sort(source, target)

    assert summary.total_files == 1
    assert summary.succeeded == 1
    assert summary.processed == summary.succeeded + summary.skipped
    assert _files(target) == ["2020/2020-02/2020-02-29 12-00-00.jpg"]
    assert not [p for p in target.iterdir() if p.name.startswith("_temp_")]


def test_unreadable_archive_is_skipped(roots) -> None:
    source, target = roots
    (source / "broken.zip").write_bytes(b"not really a zip")

    summary = _sorter().sort(source, target)

    assert summary == Summary(total_files=1, processed=1, succeeded=0, skipped=1)
    assert list(target.iterdir()) == []


def test_identical_roots_are_rejected(roots) -> None:
    source, _ = roots
    with pytest.raises(InvalidRootError):
        _sorter().start_sort(source, source)


def test_missing_roots_are_rejected(roots, tmp_path: Path) -> None:
    source, target = roots
    with pytest.raises(InvalidRootError):
        _sorter().start_sort(tmp_path / "nope", target)
    with pytest.raises(InvalidRootError):
        _sorter().start_sort(source, tmp_path / "nope")


def test_empty_source_completes_with_zero_summary(roots) -> None:
    source, target = roots
    completed = []

    handle = _sorter().start_sort(source, target, on_complete=completed.append)
    summary = handle.wait(10)

    assert summary == Summary(0, 0, 0, 0)
    assert completed == [summary]
    assert not handle.is_running


def test_progress_reports_processed_and_total(roots) -> None:
    source, target = roots
    for i in range(3):
        (source / f"f{i}.txt").write_bytes(b"x" * (i + 1))
    events = []

    _sorter().sort(source, target, on_progress=lambda p, t, s: events.append((p, t, s)))

    assert events[0] == (0, 0, "Counting files...")
    assert events[-1] == (3, 3, "Finished.")
    processed_counts = sorted(p for p, t, s in events if s.startswith("Processing: "))
    assert processed_counts == [1, 2, 3]


def test_request_stop_leaves_remaining_files(roots, monkeypatch) -> None:
    source, target = roots
    for i in range(10):
        (source / f"f{i}.txt").write_text(str(i), encoding="utf-8")
    started = threading.Event()
    release = threading.Event()

    def slow_process(ctx, file_path, depth=0):
        started.set()
        release.wait(5)
        ctx.stats.record_success()

    monkeypatch.setattr(sorter_module, "process_file", slow_process)

    handle = _sorter(workers=1).start_sort(source, target)
    assert started.wait(5)
    handle.request_stop()
    assert handle.stop_requested
    release.set()
    summary = handle.wait(10)

    assert summary is not None
    assert summary.total_files == 10
    assert summary.processed == 1
    assert summary.processed == summary.succeeded + summary.skipped


def test_request_stop_interrupts_scan(roots, monkeypatch) -> None:
    source, target = roots
    (source / "a.txt").write_text("a", encoding="utf-8")
    scanning = threading.Event()

    def endless_scan(root, cancel_token=None):
        def walk():
            scanning.set()
            while not cancel_token.is_cancelled:
                time.sleep(0.01)
            yield from ()
        return walk()

    monkeypatch.setattr(sorter_module, "scan", endless_scan)

    started = time.monotonic()
    handle = _sorter().start_sort(source, target)
    assert time.monotonic() - started < 1.0
    assert scanning.wait(5)
    assert handle.is_running

    handle.request_stop()
    summary = handle.wait(5)

    assert summary == Summary(0, 0, 0, 0)
    assert list(target.iterdir()) == []
