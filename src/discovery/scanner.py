"""
Source enumeration for ingest runs.
"""

from __future__ import annotations

import fnmatch
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple

from config import AppConfig
from ingest.errors import FatalRunError
from ingest.events import OnProgress, ScanProgress, emit
from ingest.models import FileDescriptor
from templates.folder_template import MEDIA_PHOTO, MEDIA_RAW, MEDIA_VIDEO, normalize_extension

RAW_EXTENSIONS = {".cr2", ".cr3", ".nef", ".arw", ".dng", ".raf", ".rw2", ".orf", ".pef", ".srw"}
PHOTO_EXTENSIONS = {".jpg", ".jpeg", ".png", ".heic", ".heif", ".tif", ".tiff", ".webp"}
VIDEO_EXTENSIONS = {".mp4", ".mov"}
MEDIA_UNKNOWN = "UNKNOWN"

SCAN_PROGRESS_INTERVAL = 100
_PROJECT_NAME_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9._-]")


def suggest_project_name(source_path: Path, today: Optional[datetime] = None) -> str:
    """Return ``YYYYMMDD_<last segment>`` with unsafe characters replaced."""
    stamp = (today or datetime.now()).strftime("%Y%m%d")
    last = Path(str(source_path).rstrip("/\\")).name
    if not last:
        return stamp
    return f"{stamp}_{_PROJECT_NAME_UNSAFE_RE.sub('_', last)}"


class Scanner:
    """Walk a source tree and emit descriptors for media files in path order."""

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        self.config = config or AppConfig.from_mapping({})
        self.skip_hidden = self.config.get_bool("scan", "skip_hidden", default=True)
        self.follow_symlinks = self.config.get_bool("scan", "follow_symlinks", default=False)
        self.excluded_patterns = self.config.get_list("scan", "exclusions", "file_patterns")
        self.raw_extensions = self._extensions("raw_extensions", RAW_EXTENSIONS)
        self.photo_extensions = self._extensions("photo_extensions", PHOTO_EXTENSIONS)
        self.video_extensions = self._extensions("video_extensions", VIDEO_EXTENSIONS)

    def _extensions(self, key: str, default: Iterable[str]) -> set[str]:
        values = self.config.get("scan", key, default=None)
        source = default if values is None else values
        return {normalize_extension(value) for value in source if str(value).strip()}

    @property
    def media_extensions(self) -> set[str]:
        return self.raw_extensions | self.photo_extensions | self.video_extensions

    def classify(self, ext: str) -> str:
        """Classify an extension into RAW, VIDEO or PHOTO (the default)."""
        ext = normalize_extension(ext)
        if ext in self.raw_extensions:
            return MEDIA_RAW
        if ext in self.video_extensions:
            return MEDIA_VIDEO
        return MEDIA_PHOTO

    def scan(self, root: Path, on_progress: Optional[OnProgress] = None) -> List[FileDescriptor]:
        """Return descriptors for every media file below ``root`` sorted by relative path.

        A sub-directory or media file that cannot be listed or stat'ed yields a
        descriptor with ``error`` set, so it is reported rather than lost. An
        unlistable ``root`` raises FatalRunError.
        """
        descriptors: List[FileDescriptor] = []
        unreadable: List[Tuple[Path, OSError]] = []
        media_extensions = self.media_extensions
        for path in self._iter_files(root, unreadable):
            ext = path.suffix.lower()
            if ext not in media_extensions:
                continue
            try:
                stat = path.stat()
            except OSError as exc:
                error = f"Source file could not be read: {exc.strerror or exc}"
                descriptors.append(self._unreadable(root, path, self.classify(ext), error))
                continue
            descriptors.append(
                FileDescriptor(
                    rel_path=path.relative_to(root).as_posix(),
                    abs_path=path,
                    size=stat.st_size,
                    mtime=stat.st_mtime,
                    media_type=self.classify(ext),
                )
            )
            if len(descriptors) % SCAN_PROGRESS_INTERVAL == 0:
                emit(on_progress, ScanProgress(discovered_count=len(descriptors)))
        descriptors.extend(
            self._unreadable(root, path, MEDIA_UNKNOWN, f"Source directory could not be read: {exc.strerror or exc}")
            for path, exc in unreadable
        )
        descriptors.sort(key=lambda item: item.rel_path)
        return descriptors

    def _unreadable(self, root: Path, path: Path, media_type: str, error: str) -> FileDescriptor:
        return FileDescriptor(
            rel_path=path.relative_to(root).as_posix(),
            abs_path=path,
            size=0,
            mtime=0.0,
            media_type=media_type,
            error=error,
        )

    def _iter_files(self, root: Path, unreadable: List[Tuple[Path, OSError]]) -> Iterator[Path]:
        def on_error(exc: OSError) -> None:
            failed = Path(exc.filename) if exc.filename else root
            if failed == root:
                raise FatalRunError(f"Source path cannot be listed: {root} ({exc.strerror or exc})") from exc
            unreadable.append((failed, exc))

        walker = os.walk(root, topdown=True, onerror=on_error, followlinks=self.follow_symlinks)
        for dirpath, dirnames, filenames in walker:
            current = Path(dirpath)
            dirnames[:] = sorted(
                name for name in dirnames if not self._is_hidden(name) and not self._is_excluded(current / name)
            )
            for filename in sorted(filenames):
                file_path = current / filename
                if self._is_hidden(filename) or self._is_excluded(file_path):
                    continue
                if not self.follow_symlinks and file_path.is_symlink():
                    continue
                if not file_path.is_file():
                    continue
                yield file_path

    def _is_hidden(self, name: str) -> bool:
        return self.skip_hidden and name.startswith(".")

    def _is_excluded(self, path: Path) -> bool:
        for pattern in self.excluded_patterns:
            if fnmatch.fnmatch(path.name, pattern) or fnmatch.fnmatch(str(path), pattern):
                return True
        return False
