"""
Corruption and black-frame checks for copied media.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from ingest.models import FLAG_BLACK_FRAME, FLAG_UNREADABLE, TriageFlag
from templates.folder_template import MEDIA_VIDEO

from .providers import ContentSniffer, ImageDecoder

DEFAULT_HEADER_BYTES = 4100

PILLOW_DECODABLE = {".jpg", ".jpeg", ".png", ".tif", ".tiff", ".webp"}
RAW_IMAGE_EXTS = {
    ".cr2", ".cr3", ".nef", ".arw", ".dng", ".raf", ".rw2", ".orf", ".pef", ".srw",
}
IMAGE_EXTS = PILLOW_DECODABLE | RAW_IMAGE_EXTS | {".heic", ".heif", ".avif"}
VIDEO_EXTS = {".mp4", ".mov"}

EXT_TO_MIME: Dict[str, Tuple[str, ...]] = {
    ".jpg": ("image/jpeg",),
    ".jpeg": ("image/jpeg",),
    ".png": ("image/png",),
    ".tif": ("image/tiff",),
    ".tiff": ("image/tiff",),
    ".heic": ("image/heic", "image/heif"),
    ".heif": ("image/heic", "image/heif"),
    ".webp": ("image/webp",),
    ".avif": ("image/avif",),
    ".mp4": ("video/mp4",),
    ".mov": ("video/quicktime",),
}


def _mismatch(ext: str, mime: str) -> TriageFlag:
    return TriageFlag(
        kind=FLAG_UNREADABLE,
        reason=f"File extension {ext} does not match detected format {mime}; file may be renamed or corrupt",
        confidence=0.7,
    )


class CorruptionCheck:
    """Flag files whose bytes are empty, unrecognised, misnamed or undecodable."""

    def __init__(
        self,
        sniffer: ContentSniffer,
        decoder: ImageDecoder,
        header_bytes: int = DEFAULT_HEADER_BYTES,
        generic_mime_exemptions: Iterable[str] = ("application/octet-stream",),
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.sniffer = sniffer
        self.decoder = decoder
        self.header_bytes = header_bytes
        self.generic_mime_exemptions = frozenset(generic_mime_exemptions)
        self.logger = logger or logging.getLogger("ingest")

    def check(self, path: Path) -> Optional[TriageFlag]:
        ext = path.suffix.lower()
        try:
            with path.open("rb") as handle:
                head = handle.read(self.header_bytes)
        except OSError as exc:
            return TriageFlag(FLAG_UNREADABLE, f"File could not be read: {exc}", 1.0)
        if not head:
            return TriageFlag(FLAG_UNREADABLE, "File is empty (0 bytes readable)", 1.0)

        if getattr(self.sniffer, "available", True):
            flag = self._check_type(ext, head)
            if flag is not None:
                return flag

        if ext in PILLOW_DECODABLE and not self.decoder.decode_metadata(path):
            return TriageFlag(
                FLAG_UNREADABLE,
                "Image file could not be decoded; file appears corrupt or truncated",
                0.95,
            )
        return None

    def _check_type(self, ext: str, head: bytes) -> Optional[TriageFlag]:
        mime = self.sniffer.sniff(head)
        if not mime:
            return TriageFlag(
                FLAG_UNREADABLE,
                "File format not recognized; may be corrupt or incomplete",
                0.9,
            )
        ext_is_image = ext in IMAGE_EXTS
        ext_is_video = ext in VIDEO_EXTS
        broad_mismatch = (ext_is_image and not mime.startswith("image/")) or (
            ext_is_video and not mime.startswith("video/")
        )
        if broad_mismatch and not (ext_is_image and mime in self.generic_mime_exemptions):
            return _mismatch(ext, mime)
        expected = EXT_TO_MIME.get(ext)
        if expected and mime not in expected:
            return _mismatch(ext, mime)
        return None


class BlackFrameCheck:
    """Flag near-black images by mean luminance of a downsampled grayscale copy."""

    def __init__(
        self,
        decoder: ImageDecoder,
        black_threshold: float = 5.0,
        dark_threshold: float = 15.0,
        grid_size: int = 64,
    ) -> None:
        self.decoder = decoder
        self.black_threshold = black_threshold
        self.dark_threshold = dark_threshold
        self.grid_size = grid_size

    def check(self, path: Path, media_type: Optional[str]) -> Optional[TriageFlag]:
        if media_type == MEDIA_VIDEO or path.suffix.lower() not in PILLOW_DECODABLE:
            return None
        mean = self.decoder.mean_luminance(path, self.grid_size)
        if mean is None:
            return None
        metric = round(mean, 2)
        if mean < self.black_threshold:
            return TriageFlag(
                FLAG_BLACK_FRAME, "Near-black frame, possible lens cap or accidental shot", 0.95, metric
            )
        if mean < self.dark_threshold:
            return TriageFlag(
                FLAG_BLACK_FRAME,
                "Very dark frame, may be a lens cap or intentional low-light shot",
                0.7,
                metric,
            )
        return None
