"""
Capture metadata extraction (date, camera model, serial) via exifread.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional

import exifread

from utils.timeouts import call_with_timeout

DATE_TAGS = ("EXIF DateTimeOriginal", "EXIF DateTimeDigitized", "Image DateTime")
MODEL_TAGS = ("Image Model",)
SERIAL_TAGS = (
    "EXIF BodySerialNumber",
    "MakerNote SerialNumber",
    "Image CameraSerialNumber",
    "MakerNote InternalSerialNumber",
)
EXIF_DATE_FORMATS = (("%Y:%m:%d %H:%M:%S", 19), ("%Y-%m-%d %H:%M:%S", 19), ("%Y:%m:%d", 10))


@dataclass(frozen=True)
class CaptureMetadata:
    """Capture facts for one file; every field may be missing."""

    capture_date: Optional[datetime] = None
    camera_model: Optional[str] = None
    camera_serial: Optional[str] = None


EMPTY_METADATA = CaptureMetadata()


def parse_exif_date(value: str) -> Optional[datetime]:
    cleaned = value.strip().rstrip("\x00")
    if not cleaned or cleaned.startswith("0000"):
        return None
    for fmt, length in EXIF_DATE_FORMATS:
        try:
            return datetime.strptime(cleaned[:length], fmt)
        except ValueError:
            continue
    return None


def _first_text(tags: Mapping[str, Any], names: tuple) -> Optional[str]:
    for name in names:
        tag = tags.get(name)
        if tag is None:
            continue
        text = str(tag).strip().strip("\x00").strip()
        if text:
            return text
    return None


class ExifMetadataExtractor:
    """Read capture metadata from file headers with a per-file time bound.

    ``extract`` never raises: read errors, unparseable tags and timeouts all
    degrade to ``EMPTY_METADATA``.
    """

    def __init__(self, timeout_seconds: float = 10.0, logger: Optional[logging.Logger] = None) -> None:
        self.timeout_seconds = timeout_seconds
        self.logger = logger or logging.getLogger("ingest")

    def extract(self, path: Path) -> CaptureMetadata:
        ok, result = call_with_timeout(self._read, self.timeout_seconds, path)
        if ok and isinstance(result, CaptureMetadata):
            return result
        if not ok and result is None:
            self.logger.warning("Metadata extraction timed out for %s", path)
        elif not ok:
            self.logger.debug("Metadata extraction failed for %s: %s", path, result)
        return EMPTY_METADATA

    def _read(self, path: Path) -> CaptureMetadata:
        with path.open("rb") as handle:
            tags = exifread.process_file(handle, details=False)
        if not tags:
            return EMPTY_METADATA
        date_text = _first_text(tags, DATE_TAGS)
        return CaptureMetadata(
            capture_date=parse_exif_date(date_text) if date_text else None,
            camera_model=_first_text(tags, MODEL_TAGS),
            camera_serial=_first_text(tags, SERIAL_TAGS),
        )
