"""
Per-file token context construction.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import PurePath
from typing import Dict, Mapping, Optional

from metadata.extractor import CaptureMetadata

UNKNOWN = "Unknown"
_LABEL_WHITESPACE_RE = re.compile(r"\s+")
_LABEL_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9_.-]")


def build_camera_label(model: Optional[str], serial_short: str) -> str:
    if not model:
        return UNKNOWN
    clean = _LABEL_UNSAFE_RE.sub("", _LABEL_WHITESPACE_RE.sub("_", model))
    if not clean:
        return UNKNOWN
    return f"{clean}_{serial_short}" if serial_short else clean


def build_token_context(
    *,
    media_type: str,
    source_path: PurePath,
    metadata: Optional[CaptureMetadata],
    user_context: Mapping[str, str],
    defaults: Mapping[str, str],
    import_date: datetime,
) -> Dict[str, str]:
    """Resolve token values for one file.

    Precedence: user context > file-derived values > template defaults.
    Empty values never override a lower layer; unresolved tokens expand to "".
    """
    capture_date = (metadata.capture_date if metadata else None) or import_date
    camera_model = metadata.camera_model if metadata else None
    camera_serial = metadata.camera_serial if metadata else None
    serial_short = camera_serial[-6:] if camera_serial else ""

    derived = {
        "YYYY": f"{capture_date.year:04d}",
        "MM": f"{capture_date.month:02d}",
        "DD": f"{capture_date.day:02d}",
        "MEDIA_TYPE": media_type,
        "CAMERA_MODEL": camera_model or UNKNOWN,
        "CAMERA_SERIAL_SHORT": serial_short,
        "CAMERA_LABEL": build_camera_label(camera_model, serial_short),
        "CARD_LABEL": source_path.parent.name,
        "EXT": source_path.suffix.lstrip(".").lower(),
        "ORIGINAL_FILENAME": source_path.stem,
    }

    context: Dict[str, str] = {}
    for layer in (defaults, derived, user_context):
        for key, value in layer.items():
            if value:
                context[str(key)] = str(value)
    return context


def build_run_context(
    user_context: Mapping[str, str], defaults: Mapping[str, str], import_date: datetime
) -> Dict[str, str]:
    """Context for run-level patterns such as the job root (no per-file values)."""
    derived = {"YYYY": f"{import_date.year:04d}", "MM": f"{import_date.month:02d}", "DD": f"{import_date.day:02d}"}
    context: Dict[str, str] = {}
    for layer in (defaults, derived, user_context):
        for key, value in layer.items():
            if value:
                context[str(key)] = str(value)
    return context
