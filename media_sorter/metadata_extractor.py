"""
Metadata extraction module for media files.

This module derives the capture timestamp and GPS position of a file.
The filesystem modification time is always the starting point; embedded
EXIF data (read with Pillow, or exifread for formats Pillow cannot decode)
and video container metadata (hachoir) override it when present.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Tuple

import exifread
from PIL import Image

try:
    from hachoir.metadata import extractMetadata
    from hachoir.parser import createParser
    HACHOIR_AVAILABLE = True
except ImportError:
    HACHOIR_AVAILABLE = False
    logging.warning("hachoir not available. Video capture dates will not be read.")

from .geocoder import GeocodeResolver

# EXIF tag ids
EXIF_IFD = 0x8769
GPS_IFD = 0x8825
DATETIME_ORIGINAL = 0x9003
GPS_LATITUDE_REF = 0x0001
GPS_LATITUDE = 0x0002
GPS_LONGITUDE_REF = 0x0003
GPS_LONGITUDE = 0x0004

Coordinates = Tuple[float, float]


@dataclass(frozen=True)
class FileMetadata:
    """
    Metadata derived for one file.

    ``timestamp`` is None only when the file could not be stat'ed.
    ``has_precise_date`` is False when the timestamp is the filesystem
    modification time rather than an embedded capture time.
    """

    timestamp: Optional[datetime] = None
    has_precise_date: bool = False
    location: str = ""
    coordinates: Optional[Coordinates] = None


def rational_to_float(value: Any) -> float:
    """
    Convert an EXIF rational to float.

    Accepts Pillow ``IFDRational``, exifread ``Ratio``, ``(num, den)`` pairs
    and plain numbers. A zero denominator yields 0.0.
    """
    if isinstance(value, (tuple, list)) and len(value) == 2:
        numerator, denominator = value
    elif hasattr(value, "numerator") and hasattr(value, "denominator"):
        numerator, denominator = value.numerator, value.denominator
    elif hasattr(value, "num") and hasattr(value, "den"):
        numerator, denominator = value.num, value.den
    else:
        return float(value)

    if not denominator:
        return 0.0
    return float(numerator) / float(denominator)


def dms_to_decimal(dms: Any, ref: Any) -> float:
    """
    Convert degrees/minutes/seconds to signed decimal degrees.

    Args:
        dms: Sequence of three rationals (degrees, minutes, seconds)
        ref: Hemisphere reference, "N", "S", "E" or "W"

    Returns:
        Decimal degrees, negative for the southern and western hemispheres

    Raises:
        ValueError: If ``dms`` does not hold three values
    """
    if dms is None or len(dms) < 3:
        raise ValueError(f"Expected three DMS components, got {dms!r}")

    degrees = rational_to_float(dms[0])
    minutes = rational_to_float(dms[1])
    seconds = rational_to_float(dms[2])
    decimal = degrees + minutes / 60.0 + seconds / 3600.0

    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    ref = str(ref).strip("\x00 ").upper()
    if ref[:1] in ("S", "W"):
        decimal = -decimal
    return decimal


def parse_exif_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a ``YYYY:MM:DD HH:MM:SS`` EXIF date.

    Values shorter than 19 characters or with out-of-range fields give None.
    """
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    if not isinstance(value, str):
        return None

    text = value.strip("\x00")
    if len(text) < 19:
        return None
    try:
        return datetime(int(text[0:4]), int(text[5:7]), int(text[8:10]),
                        int(text[11:13]), int(text[14:16]), int(text[17:19]))
    except ValueError:
        return None


class MetadataExtractor:
    """
    Extracts capture date and location from media files.

    Sources are tried from most to least specific; a missing or malformed
    value from one source never prevents the others from being used, and
    nothing here raises for a file that exists.
    """

    # Formats Pillow may not decode but exifread can read tags from
    EXIFREAD_EXTENSIONS = {'.heic', '.heif', '.cr2', '.cr3', '.nef', '.arw', '.dng',
                           '.orf', '.rw2', '.raf', '.pef', '.srw', '.tif', '.tiff'}

    VIDEO_EXTENSIONS = {'.mp4', '.avi', '.mov', '.mkv', '.wmv', '.flv', '.webm', '.m4v', '.3gp'}

    def __init__(self, geocoder: Optional[GeocodeResolver] = None):
        """
        Initialize the metadata extractor.

        Args:
            geocoder: Resolver for GPS coordinates; without one, locations stay empty
        """
        self.logger = logging.getLogger(__name__)
        self.geocoder = geocoder

    def extract(self, file_path) -> FileMetadata:
        """
        Build the metadata of a single file.

        Args:
            file_path: Path to the file

        Returns:
            FileMetadata; ``timestamp`` is None only if the file cannot be stat'ed
        """
        path = Path(file_path)
        try:
            mtime = path.stat().st_mtime
        except OSError as e:
            self.logger.warning(f"Cannot stat {path}: {e}")
            return FileMetadata()

        timestamp = datetime.fromtimestamp(mtime).replace(microsecond=0)
        has_precise_date = False

        capture_date, coordinates = self._read_embedded(path)
        if capture_date is not None:
            timestamp = capture_date
            has_precise_date = True

        location = ""
        if coordinates is not None:
            location = self._resolve_location(path, coordinates)

        return FileMetadata(timestamp=timestamp, has_precise_date=has_precise_date,
                            location=location, coordinates=coordinates)

    def _read_embedded(self, path: Path) -> Tuple[Optional[datetime], Optional[Coordinates]]:
        ext = path.suffix.lower()

        result = self._read_with_pillow(path)
        if result is None and ext in self.EXIFREAD_EXTENSIONS:
            result = self._read_with_exifread(path)
        if result is not None:
            return result

        if ext in self.VIDEO_EXTENSIONS:
            return self._read_video_date(path), None
        return None, None

    def _read_with_pillow(self, path: Path) -> Optional[Tuple[Optional[datetime], Optional[Coordinates]]]:
        """
        Read date and GPS with Pillow.

        Returns:
            (date, coordinates) for a decodable image, None if Pillow cannot open it
        """
        try:
            with Image.open(path) as img:
                exif = img.getexif()
                exif_ifd = exif.get_ifd(EXIF_IFD)
                gps_ifd = exif.get_ifd(GPS_IFD)
                date_value = exif_ifd.get(DATETIME_ORIGINAL, exif.get(DATETIME_ORIGINAL))
        except Exception as e:
            self.logger.debug(f"PIL extraction failed for {path}: {e}")
            return None

        capture_date = parse_exif_datetime(date_value)
        coordinates = None
        required = (GPS_LATITUDE, GPS_LATITUDE_REF, GPS_LONGITUDE, GPS_LONGITUDE_REF)
        if all(tag in gps_ifd for tag in required):
            coordinates = self._to_coordinates(
                path,
                gps_ifd[GPS_LATITUDE], gps_ifd[GPS_LATITUDE_REF],
                gps_ifd[GPS_LONGITUDE], gps_ifd[GPS_LONGITUDE_REF],
            )
        return capture_date, coordinates

    def _read_with_exifread(self, path: Path) -> Optional[Tuple[Optional[datetime], Optional[Coordinates]]]:
        try:
            with open(path, 'rb') as f:
                tags = exifread.process_file(f, details=False)
        except Exception as e:
            self.logger.debug(f"exifread extraction failed for {path}: {e}")
            return None
        if not tags:
            return None

        capture_date = None
        if "EXIF DateTimeOriginal" in tags:
            capture_date = parse_exif_datetime(str(tags["EXIF DateTimeOriginal"]))

        coordinates = None
        required = ("GPS GPSLatitude", "GPS GPSLatitudeRef", "GPS GPSLongitude", "GPS GPSLongitudeRef")
        if all(name in tags for name in required):
            coordinates = self._to_coordinates(
                path,
                tags["GPS GPSLatitude"].values, str(tags["GPS GPSLatitudeRef"]),
                tags["GPS GPSLongitude"].values, str(tags["GPS GPSLongitudeRef"]),
            )
        return capture_date, coordinates

    def _read_video_date(self, path: Path) -> Optional[datetime]:
        if not HACHOIR_AVAILABLE:
            return None

        try:
            parser = createParser(str(path))
            if not parser:
                return None
            with parser:
                metadata = extractMetadata(parser)
                if not metadata or not metadata.has('creation_date'):
                    return None
                created = metadata.get('creation_date')
        except Exception as e:
            self.logger.debug(f"Video metadata extraction failed for {path}: {e}")
            return None

        # QuickTime writes 1904-01-01 when the field is unset
        if not isinstance(created, datetime) or created.year <= 1970:
            return None
        return created.replace(microsecond=0, tzinfo=None)

    def _to_coordinates(self, path: Path, lat, lat_ref, lon, lon_ref) -> Optional[Coordinates]:
        try:
            return dms_to_decimal(lat, lat_ref), dms_to_decimal(lon, lon_ref)
        except (TypeError, ValueError, ZeroDivisionError) as e:
            self.logger.debug(f"Malformed GPS data in {path}: {e}")
            return None

    def _resolve_location(self, path: Path, coordinates: Coordinates) -> str:
        if self.geocoder is None:
            return ""

        latitude, longitude = coordinates
        try:
            location = self.geocoder.resolve(latitude, longitude)
        except Exception as e:
            self.logger.warning(f"Could not geocode coordinates for {path}: {e}")
            return ""

        if location:
            self.logger.info(f"GPS found in {path.name}: ({latitude:.6f}, {longitude:.6f}) -> {location}")
        else:
            self.logger.debug(f"No place name for GPS in {path.name}: ({latitude:.6f}, {longitude:.6f})")
        return location or ""
