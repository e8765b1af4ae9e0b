"""
Copy a file while hashing the bytes read from the source.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from hashing.hasher import Hasher
from ingest.models import STATUS_COPIED, STATUS_ERROR, STATUS_SKIPPED_EXISTS

PARTIAL_SUFFIX = ".partial"


@dataclass(frozen=True)
class CopyResult:
    hash: str
    bytes: int
    status: str
    error: Optional[str] = None


def partial_path(destination: Path) -> Path:
    return destination.with_name(destination.name + PARTIAL_SUFFIX)


def copy_file_with_hash(source: Path, destination: Path, hasher: Hasher, overwrite: bool = False) -> CopyResult:
    """Stream ``source`` into ``destination`` and digest it in the same pass.

    Bytes go to ``<destination>.partial`` first and are renamed into place only
    after the whole file was written, so a destination is either complete or
    absent. An existing destination is left untouched unless ``overwrite``.
    """
    if not overwrite and destination.exists():
        try:
            size = destination.stat().st_size
        except OSError:
            size = 0
        return CopyResult(hash="", bytes=size, status=STATUS_SKIPPED_EXISTS)

    staging = partial_path(destination)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        digest = hasher.new()
        copied = 0
        with source.open("rb") as reader, staging.open("wb") as writer:
            while True:
                chunk = reader.read(hasher.chunk_bytes)
                if not chunk:
                    break
                digest.update(chunk)
                writer.write(chunk)
                copied += len(chunk)
            writer.flush()
            os.fsync(writer.fileno())
        os.replace(staging, destination)
        return CopyResult(hash=digest.hexdigest(), bytes=copied, status=STATUS_COPIED)
    except OSError as exc:
        try:
            staging.unlink()
        except OSError:
            pass
        return CopyResult(hash="", bytes=0, status=STATUS_ERROR, error=str(exc))
