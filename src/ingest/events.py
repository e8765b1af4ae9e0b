"""
Progress events emitted by an ingest run.

Each event is a small dataclass tagged with a ``type`` discriminant; callers
receive them in strict phase order through a single callback.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Callable, ClassVar, Dict, Optional, Union


@dataclass(frozen=True)
class _Event:
    type: ClassVar[str] = ""

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type}
        payload.update(asdict(self))
        return payload


@dataclass(frozen=True)
class IngestStarted(_Event):
    type: ClassVar[str] = "ingest.start"
    source_path: str
    project_root: str


@dataclass(frozen=True)
class ScanProgress(_Event):
    type: ClassVar[str] = "ingest.scan.progress"
    discovered_count: int


@dataclass(frozen=True)
class CopyProgress(_Event):
    type: ClassVar[str] = "ingest.copy.progress"
    index: int
    total: int
    rel_path: str
    bytes_copied: int
    total_bytes_copied: int


@dataclass(frozen=True)
class DedupeHit(_Event):
    type: ClassVar[str] = "ingest.dedupe.hit"
    rel_path: str
    duplicate_of: str
    bytes_saved_total: int
    duplicate_count_total: int


@dataclass(frozen=True)
class VerifyProgress(_Event):
    type: ClassVar[str] = "ingest.verify.progress"
    mode: str
    verified_count: int
    verified_total: int


@dataclass(frozen=True)
class BackupStarted(_Event):
    type: ClassVar[str] = "ingest.backup.start"
    backup_root: str


@dataclass(frozen=True)
class BackupCopyProgress(CopyProgress):
    type: ClassVar[str] = "ingest.backup.copy.progress"


@dataclass(frozen=True)
class BackupVerifyProgress(VerifyProgress):
    type: ClassVar[str] = "ingest.backup.verify.progress"


@dataclass(frozen=True)
class SidecarProgress(_Event):
    type: ClassVar[str] = "ingest.xmp.progress"
    written_count: int
    failed_count: int
    total: int


@dataclass(frozen=True)
class TriageProgress(_Event):
    type: ClassVar[str] = "ingest.triage.progress"
    analyzed_count: int
    analyzed_total: int
    flagged_count: int


@dataclass(frozen=True)
class TriageDone(_Event):
    type: ClassVar[str] = "ingest.triage.done"
    unreadable_count: int
    black_frame_count: int
    elapsed_ms: int


@dataclass(frozen=True)
class ReportGenerated(_Event):
    type: ClassVar[str] = "ingest.report.generated"
    manifest_path: str
    report_path: str


@dataclass(frozen=True)
class IngestDone(_Event):
    type: ClassVar[str] = "ingest.done"
    success_count: int
    fail_count: int
    elapsed_ms: int
    safe_to_format: bool


ProgressEvent = Union[
    IngestStarted,
    ScanProgress,
    CopyProgress,
    DedupeHit,
    VerifyProgress,
    BackupStarted,
    BackupCopyProgress,
    BackupVerifyProgress,
    SidecarProgress,
    TriageProgress,
    TriageDone,
    ReportGenerated,
    IngestDone,
]

OnProgress = Callable[[ProgressEvent], None]


def emit(on_progress: Optional[OnProgress], event: ProgressEvent) -> None:
    """Deliver an event when a listener is attached."""
    if on_progress is not None:
        on_progress(event)
