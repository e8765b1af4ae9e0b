"""
External providers used by triage: content sniffing and image decoding.

Both wrap third-party libraries and degrade to ``None`` instead of raising.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Protocol

from utils.timeouts import call_with_timeout


class ContentSniffer(Protocol):
    def sniff(self, head: bytes) -> Optional[str]:
        ...


class ImageDecoder(Protocol):
    def decode_metadata(self, path: Path) -> bool:
        ...

    def mean_luminance(self, path: Path, grid_size: int) -> Optional[float]:
        ...


class MagicContentSniffer:
    """Detect MIME types from header bytes with libmagic (python-magic)."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("ingest")
        self._magic: Any = None
        try:
            import magic
        except ImportError:
            self.logger.warning("python-magic not available; content sniffing disabled")
            return
        self._magic = magic

    @property
    def available(self) -> bool:
        return self._magic is not None

    def sniff(self, head: bytes) -> Optional[str]:
        if self._magic is None or not head:
            return None
        try:
            mime = self._magic.from_buffer(head, mime=True)
        except Exception as exc:  # libmagic raises its own error types
            self.logger.debug("Content sniff failed: %s", exc)
            return None
        return mime or None


class PillowImageDecoder:
    """Decode images with Pillow, bounded by a per-call timeout."""

    def __init__(self, timeout_seconds: float = 15.0, logger: Optional[logging.Logger] = None) -> None:
        self.timeout_seconds = timeout_seconds
        self.logger = logger or logging.getLogger("ingest")

    def decode_metadata(self, path: Path) -> bool:
        """Return True when the image header and pixel data decode cleanly."""
        ok, result = call_with_timeout(self._load, self.timeout_seconds, path)
        if not ok:
            self.logger.debug("Decode failed for %s: %s", path, result or "timed out")
        return ok

    def mean_luminance(self, path: Path, grid_size: int) -> Optional[float]:
        """Mean grayscale value of the image shrunk to fit ``grid_size``; ``None`` if undecodable."""
        ok, result = call_with_timeout(self._luminance, self.timeout_seconds, path, grid_size)
        if not ok:
            self.logger.debug("Luminance sample failed for %s: %s", path, result or "timed out")
            return None
        return result

    @staticmethod
    def _load(path: Path) -> None:
        from PIL import Image

        with Image.open(path) as image:
            image.load()

    @staticmethod
    def _luminance(path: Path, grid_size: int) -> float:
        from PIL import Image, ImageStat

        with Image.open(path) as image:
            image.draft("L", (grid_size, grid_size))
            gray = image.convert("L")
            gray.thumbnail((grid_size, grid_size))
            return float(ImageStat.Stat(gray).mean[0])
