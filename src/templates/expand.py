"""
Destination pattern expansion with path-safety enforcement.

Expansion is two-phase: each token value is sanitized on its own, then the
whole expanded string is validated. A value of ".." survives sanitizing and
is rejected by the segment check.
"""

from __future__ import annotations

import re
from typing import List, Mapping

from ingest.errors import PathSafetyError

ALLOWED_TOKENS = frozenset(
    {
        "YYYY",
        "MM",
        "DD",
        "CLIENT",
        "JOB",
        "MEDIA_TYPE",
        "CAMERA_MODEL",
        "CAMERA_SERIAL_SHORT",
        "CAMERA_LABEL",
        "CARD_LABEL",
        "EXT",
        "ORIGINAL_FILENAME",
    }
)

TOKEN_RE = re.compile(r"\{([A-Z_]+)\}")
CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")
SEPARATOR_RE = re.compile(r"[/\\]")
UNDERSCORE_RUN_RE = re.compile(r"_+")
WINDOWS_DRIVE_RE = re.compile(r"^[A-Za-z]:")


def validate_pattern(pattern: str) -> List[str]:
    """Return a list of problems with a pattern (empty when valid)."""
    if not pattern:
        return ["Pattern must not be empty"]
    errors = []
    for token in TOKEN_RE.findall(pattern):
        if token not in ALLOWED_TOKENS:
            errors.append(f"Unknown token: {{{token}}}")
    return errors


def sanitize_token_value(value: str) -> str:
    clean = CONTROL_RE.sub("", value)
    clean = SEPARATOR_RE.sub("_", clean)
    clean = UNDERSCORE_RUN_RE.sub("_", clean)
    return clean.strip()


def expand_template(pattern: str, context: Mapping[str, str]) -> str:
    """Substitute tokens and return a relative path that stays under its root.

    Raises PathSafetyError when the result contains control bytes, is absolute,
    or has a "." or ".." segment.
    """
    expanded = TOKEN_RE.sub(lambda match: sanitize_token_value(str(context.get(match.group(1), ""))), pattern)
    assert_safe_path(expanded)
    return expanded


def assert_safe_path(expanded: str) -> None:
    if "\x00" in expanded:
        raise PathSafetyError("Expanded path contains null byte")
    if CONTROL_RE.search(expanded):
        raise PathSafetyError("Expanded path contains control characters")
    if expanded.startswith(("/", "\\")) or WINDOWS_DRIVE_RE.match(expanded):
        raise PathSafetyError("Expanded path must not be absolute")
    for segment in SEPARATOR_RE.split(expanded):
        if segment in (".", ".."):
            raise PathSafetyError("Expanded path contains path traversal")
