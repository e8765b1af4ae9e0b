"""
Exception taxonomy for ingest runs.

Per-file problems are captured on the manifest; only ``FatalRunError`` escapes
``IngestOrchestrator.run`` and it is always raised before any file is touched.
"""

from __future__ import annotations

from typing import Iterable


class IngestError(Exception):
    """Base class for ingest failures."""


class PathSafetyError(IngestError):
    """An expanded destination would escape the project root or contains unsafe bytes."""


class TemplateValidationError(IngestError):
    """A folder template failed validation."""

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid folder template: " + "; ".join(self.errors))


class FatalRunError(IngestError):
    """A run precondition failed; no file was processed."""
