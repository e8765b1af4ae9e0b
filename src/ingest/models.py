"""
Data model for ingest runs: per-file entries, totals and the run manifest.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from config import AppConfig
from sidecar.xmp import XmpPatch
from templates.folder_template import FolderTemplate

TOOL_VERSION = 1
APP_VERSION = "0.4.0"

STATUS_COPIED = "copied"
STATUS_SKIPPED_EXISTS = "skipped_exists"
STATUS_SKIPPED_DUPLICATE = "skipped_duplicate"
STATUS_ERROR = "error"
FILE_STATUSES = (STATUS_COPIED, STATUS_SKIPPED_EXISTS, STATUS_SKIPPED_DUPLICATE, STATUS_ERROR)

VERIFY_NONE = "none"
VERIFY_SENTINEL = "sentinel"
VERIFY_FULL = "full"
VERIFY_MODES = (VERIFY_NONE, VERIFY_SENTINEL, VERIFY_FULL)

FLAG_UNREADABLE = "unreadable"
FLAG_BLACK_FRAME = "black_frame"


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


@dataclass(frozen=True)
class FileDescriptor:
    """A source file discovered by the scanner.

    ``error`` is set for a file or directory that could not be read; such a
    descriptor is recorded as a failed entry instead of being copied.
    """

    rel_path: str
    abs_path: Path
    size: int
    mtime: float
    media_type: str
    error: Optional[str] = None


@dataclass(frozen=True)
class TriageFlag:
    """Advisory finding attached to a copied file."""

    kind: str
    reason: str
    confidence: float
    metric: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {"kind": self.kind, "reason": self.reason, "confidence": self.confidence, "metric": self.metric}
        )


@dataclass
class FileEntry:
    """Outcome of ingesting one source file; enriched in place by later phases."""

    src_rel: str
    dst_rel: str
    bytes: int
    hash: str
    status: str
    media_type: Optional[str] = None
    routed_by: Optional[str] = None
    duplicate_of: Optional[str] = None
    error: Optional[str] = None
    hash_dest: Optional[str] = None
    verified: Optional[bool] = None
    backup_status: Optional[str] = None
    backup_hash: Optional[str] = None
    backup_hash_dest: Optional[str] = None
    backup_verified: Optional[bool] = None
    backup_error: Optional[str] = None
    sidecar_written: Optional[bool] = None
    sidecar_path: Optional[str] = None
    sidecar_error: Optional[str] = None
    triage_flags: List[TriageFlag] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if item.name == "triage_flags":
                if value:
                    data[item.name] = [flag.to_dict() for flag in value]
                continue
            if value is not None:
                data[item.name] = value
        return data


@dataclass
class TriageFileResult:
    src_rel: str
    dst_rel: str
    flags: List[TriageFlag]

    def to_dict(self) -> Dict[str, Any]:
        return {"src_rel": self.src_rel, "dst_rel": self.dst_rel, "flags": [flag.to_dict() for flag in self.flags]}


@dataclass
class TriageResult:
    """Summary of the post-copy triage pass."""

    ran_at: str
    elapsed_ms: int
    file_count: int
    unreadable_count: int
    black_frame_count: int
    flagged_files: List[TriageFileResult] = field(default_factory=list)
    version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "ran_at": self.ran_at,
            "elapsed_ms": self.elapsed_ms,
            "file_count": self.file_count,
            "unreadable_count": self.unreadable_count,
            "black_frame_count": self.black_frame_count,
            "flagged_files": [item.to_dict() for item in self.flagged_files],
        }


@dataclass
class Totals:
    """Counters derived from the final list of file entries."""

    file_count: int = 0
    success_count: int = 0
    fail_count: int = 0
    skip_count: int = 0
    duplicate_count: int = 0
    bytes_saved: int = 0
    total_bytes: int = 0
    verified_count: int = 0
    verified_ok: int = 0
    verified_mismatch: int = 0
    backup_success_count: int = 0
    backup_fail_count: int = 0
    backup_verified_count: int = 0
    backup_verified_ok: int = 0
    backup_verified_mismatch: int = 0
    xmp_written_count: int = 0
    xmp_failed_count: int = 0
    triage_unreadable_count: int = 0
    triage_black_frame_count: int = 0

    @classmethod
    def from_entries(cls, files: List[FileEntry], triage: Optional[TriageResult] = None) -> "Totals":
        totals = cls(file_count=len(files))
        for entry in files:
            if entry.status == STATUS_COPIED:
                totals.success_count += 1
                totals.total_bytes += entry.bytes
            elif entry.status == STATUS_ERROR:
                totals.fail_count += 1
            elif entry.status == STATUS_SKIPPED_EXISTS:
                totals.skip_count += 1
            elif entry.status == STATUS_SKIPPED_DUPLICATE:
                totals.duplicate_count += 1
                totals.bytes_saved += entry.bytes
            if entry.verified is not None:
                totals.verified_count += 1
                if entry.verified:
                    totals.verified_ok += 1
                else:
                    totals.verified_mismatch += 1
            if entry.backup_status == STATUS_COPIED:
                totals.backup_success_count += 1
            elif entry.backup_status == STATUS_ERROR:
                totals.backup_fail_count += 1
            if entry.backup_verified is not None:
                totals.backup_verified_count += 1
                if entry.backup_verified:
                    totals.backup_verified_ok += 1
                else:
                    totals.backup_verified_mismatch += 1
            if entry.sidecar_written is True:
                totals.xmp_written_count += 1
            elif entry.sidecar_written is False:
                totals.xmp_failed_count += 1
        if triage is not None:
            totals.triage_unreadable_count = triage.unreadable_count
            totals.triage_black_frame_count = triage.black_frame_count
        return totals

    def to_dict(self) -> Dict[str, int]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


def compute_safe_to_format(totals: Totals, verify_mode: str) -> bool:
    """Return True only when nothing failed and every verified file matched."""
    if totals.fail_count != 0:
        return False
    return verify_mode == VERIFY_NONE or totals.verified_mismatch == 0


@dataclass
class IngestManifest:
    """Frozen record of a completed run."""

    source_path: str
    dest_root: str
    project_root: str
    project_name: str
    hash_algo: str
    verify_mode: str
    started_at: str
    finished_at: str
    files: List[FileEntry]
    totals: Totals
    safe_to_format: bool
    backup_dest: Optional[str] = None
    backup_root: Optional[str] = None
    template_id: Optional[str] = None
    template_warnings: List[str] = field(default_factory=list)
    triage: Optional[TriageResult] = None
    cancelled: bool = False
    manifest_path: Optional[str] = None
    report_path: Optional[str] = None
    triage_json_path: Optional[str] = None
    triage_export_path: Optional[str] = None
    tool_version: int = TOOL_VERSION
    app_version: str = APP_VERSION

    def to_dict(self) -> Dict[str, Any]:
        data = _compact(
            {
                "tool_version": self.tool_version,
                "app_version": self.app_version,
                "source_path": self.source_path,
                "dest_root": self.dest_root,
                "project_root": self.project_root,
                "project_name": self.project_name,
                "hash_algo": self.hash_algo,
                "verify_mode": self.verify_mode,
                "started_at": self.started_at,
                "finished_at": self.finished_at,
                "backup_dest": self.backup_dest,
                "backup_root": self.backup_root,
                "template_id": self.template_id,
                "manifest_path": self.manifest_path,
                "report_path": self.report_path,
                "triage_json_path": self.triage_json_path,
                "triage_export_path": self.triage_export_path,
            }
        )
        data["cancelled"] = self.cancelled
        data["safe_to_format"] = self.safe_to_format
        if self.template_warnings:
            data["template_warnings"] = list(self.template_warnings)
        if self.triage is not None:
            data["triage"] = self.triage.to_dict()
        data["totals"] = self.totals.to_dict()
        data["files"] = [entry.to_dict() for entry in self.files]
        return data


@dataclass
class IngestParams:
    """Inputs for a single ingest run."""

    source_path: Path
    dest_project_path: Path
    project_name: str
    verify_mode: str = VERIFY_SENTINEL
    hash_algo: str = "sha256"
    overwrite: bool = False
    dedupe: bool = False
    backup_dest: Optional[Path] = None
    folder_template: Optional[FolderTemplate] = None
    template_context: Dict[str, str] = field(default_factory=dict)
    xmp_patch: Optional[XmpPatch] = None

    @classmethod
    def from_config(cls, config: AppConfig, **overrides: Any) -> "IngestParams":
        """Build params from the ``ingest`` config section; keyword overrides win."""
        from templates.presets import resolve_template

        section: Mapping[str, Any] = config.section("ingest")
        values: Dict[str, Any] = {}
        for key in ("source_path", "dest_project_path", "backup_dest"):
            if section.get(key):
                values[key] = config.resolve_path("ingest", key)
        for key in ("project_name", "verify_mode", "hash_algo"):
            if section.get(key) is not None:
                values[key] = str(section[key])
        for key in ("overwrite", "dedupe"):
            if key in section:
                values[key] = config.get_bool("ingest", key, default=False)
        if section.get("template") is not None:
            values["folder_template"] = resolve_template(section["template"])
        context = section.get("template_context") or {}
        values["template_context"] = {str(key): str(value) for key, value in context.items()}
        if section.get("xmp"):
            values["xmp_patch"] = XmpPatch.from_mapping(section["xmp"])
        values.update(overrides)
        if "project_name" not in values and "source_path" in values:
            from discovery.scanner import suggest_project_name

            values["project_name"] = suggest_project_name(Path(values["source_path"]))
        missing = [key for key in ("source_path", "dest_project_path", "project_name") if key not in values]
        if missing:
            raise KeyError(f"Missing ingest settings: {', '.join(missing)}")
        return cls(**values)
