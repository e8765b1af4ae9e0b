"""
Ingest engine: errors and progress events.

The data model lives in ``ingest.models``; the run entry point is
``ingest.orchestrator.IngestOrchestrator``.
"""

from .errors import FatalRunError, IngestError, PathSafetyError, TemplateValidationError
from .events import OnProgress, ProgressEvent

__all__ = [
    "FatalRunError",
    "IngestError",
    "OnProgress",
    "PathSafetyError",
    "ProgressEvent",
    "TemplateValidationError",
]
