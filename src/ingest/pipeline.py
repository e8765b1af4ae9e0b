"""
Copy phase: route each scanned file, copy it with an in-flight digest and
optionally skip content duplicates.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import List, Mapping, Optional, Protocol, Tuple

from hashing.copier import copy_file_with_hash
from hashing.dedup import DedupIndex
from hashing.hasher import Hasher
from ingest.errors import PathSafetyError
from ingest.events import BackupCopyProgress, CopyProgress, DedupeHit, OnProgress, emit
from ingest.models import (
    STATUS_COPIED,
    STATUS_ERROR,
    STATUS_SKIPPED_DUPLICATE,
    STATUS_SKIPPED_EXISTS,
    FileDescriptor,
    FileEntry,
)
from metadata.extractor import CaptureMetadata
from templates.expand import expand_template
from templates.folder_template import FolderTemplate
from templates.tokens import build_token_context
from utils.resource_monitor import ResourceMonitor

LEGACY_RAW_DIR = "01_RAW"


class MetadataProvider(Protocol):
    def extract(self, path: Path) -> CaptureMetadata:
        ...


def join_rel(*parts: str) -> str:
    """Join relative path pieces with forward slashes, dropping empty pieces."""
    return PurePosixPath(*[part for part in parts if part]).as_posix()


class CopyPipeline:
    """Copy files into a project root and build their manifest entries."""

    def __init__(
        self,
        hasher: Hasher,
        metadata: Optional[MetadataProvider] = None,
        logger: Optional[logging.Logger] = None,
        movement_logger: Optional[logging.Logger] = None,
        monitor: Optional[ResourceMonitor] = None,
    ) -> None:
        self.hasher = hasher
        self.metadata = metadata
        self.logger = logger or logging.getLogger("ingest")
        self.movement_logger = movement_logger or logging.getLogger("ingest.movement")
        self.monitor = monitor

    def resolve_destination(
        self,
        descriptor: FileDescriptor,
        template: Optional[FolderTemplate],
        user_context: Mapping[str, str],
        import_date: datetime,
        job_root: str = "",
    ) -> Tuple[str, Optional[str]]:
        """Return ``(dst_rel, rule_label)`` for a file; raises PathSafetyError."""
        if template is None:
            return join_rel(LEGACY_RAW_DIR, descriptor.rel_path), None
        ext = descriptor.abs_path.suffix
        rule = template.find_rule(descriptor.media_type, ext)
        metadata = self.metadata.extract(descriptor.abs_path) if self.metadata is not None else None
        context = build_token_context(
            media_type=descriptor.media_type,
            source_path=descriptor.abs_path,
            metadata=metadata,
            user_context=user_context,
            defaults=template.token_defaults,
            import_date=import_date,
        )
        expanded = expand_template(rule.dest_pattern, context)
        return join_rel(job_root, expanded, descriptor.rel_path), rule.label

    def copy_all(
        self,
        descriptors: List[FileDescriptor],
        project_root: Path,
        template: Optional[FolderTemplate] = None,
        user_context: Optional[Mapping[str, str]] = None,
        import_date: Optional[datetime] = None,
        job_root: str = "",
        overwrite: bool = False,
        dedupe: bool = False,
        on_progress: Optional[OnProgress] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[FileEntry]:
        """Copy every descriptor in order; per-file failures become error entries."""
        user_context = user_context or {}
        import_date = import_date or datetime.now()
        index = DedupIndex() if dedupe else None
        entries: List[FileEntry] = []
        total = len(descriptors)
        total_bytes = 0

        for position, descriptor in enumerate(descriptors, start=1):
            if cancel_event is not None and cancel_event.is_set():
                self.logger.warning("Copy cancelled after %s/%s files", position - 1, total)
                break
            if self.monitor is not None:
                self.monitor.throttle()

            entry = self._copy_one(
                descriptor, project_root, template, user_context, import_date, job_root, overwrite, index
            )
            entries.append(entry)
            if entry.status == STATUS_COPIED:
                total_bytes += entry.bytes
            copied_now = entry.bytes if entry.status == STATUS_COPIED else 0
            emit(on_progress, CopyProgress(position, total, descriptor.rel_path, copied_now, total_bytes))
            if entry.status == STATUS_SKIPPED_DUPLICATE and index is not None:
                emit(
                    on_progress,
                    DedupeHit(descriptor.rel_path, entry.duplicate_of or "", index.bytes_saved, index.duplicate_count),
                )

        if index is not None and index.duplicate_count:
            self.logger.info(
                "Skipped %s duplicate files (%s bytes saved)", index.duplicate_count, index.bytes_saved
            )
        return entries

    def _copy_one(
        self,
        descriptor: FileDescriptor,
        project_root: Path,
        template: Optional[FolderTemplate],
        user_context: Mapping[str, str],
        import_date: datetime,
        job_root: str,
        overwrite: bool,
        index: Optional[DedupIndex],
    ) -> FileEntry:
        if descriptor.error is not None:
            self.logger.warning("Unreadable source %s: %s", descriptor.rel_path, descriptor.error)
            return FileEntry(
                src_rel=descriptor.rel_path,
                dst_rel="",
                bytes=0,
                hash="",
                status=STATUS_ERROR,
                media_type=descriptor.media_type,
                error=descriptor.error,
            )
        try:
            dst_rel, routed_by = self.resolve_destination(descriptor, template, user_context, import_date, job_root)
        except PathSafetyError as exc:
            self.logger.warning("Unsafe destination for %s: %s", descriptor.rel_path, exc)
            return FileEntry(
                src_rel=descriptor.rel_path,
                dst_rel="",
                bytes=descriptor.size,
                hash="",
                status=STATUS_ERROR,
                media_type=descriptor.media_type,
                error=str(exc),
            )

        entry = FileEntry(
            src_rel=descriptor.rel_path,
            dst_rel=dst_rel,
            bytes=0,
            hash="",
            status=STATUS_ERROR,
            media_type=descriptor.media_type,
            routed_by=routed_by,
        )
        destination = project_root / dst_rel

        if not overwrite and destination.exists():
            entry.status = STATUS_SKIPPED_EXISTS
            try:
                entry.bytes = destination.stat().st_size
            except OSError:
                entry.bytes = 0
            return entry

        pre_hash = None
        if index is not None:
            try:
                pre_hash = self.hasher.hash_file(descriptor.abs_path)
            except OSError as exc:
                self.logger.warning("Could not read %s: %s", descriptor.abs_path, exc)
                entry.error = str(exc)
                entry.bytes = descriptor.size
                return entry
            first = index.lookup(pre_hash)
            if first is not None:
                index.credit(descriptor.size)
                entry.status = STATUS_SKIPPED_DUPLICATE
                entry.hash = pre_hash
                entry.bytes = descriptor.size
                entry.duplicate_of = first
                return entry

        result = copy_file_with_hash(descriptor.abs_path, destination, self.hasher, overwrite=overwrite)
        entry.status, entry.hash, entry.bytes = result.status, result.hash, result.bytes
        if result.status == STATUS_ERROR:
            entry.error = result.error
            self.logger.warning("Copy failed for %s: %s", descriptor.rel_path, result.error)
            return entry
        if pre_hash is not None and result.hash != pre_hash:
            entry.status = STATUS_ERROR
            entry.error = "source changed during copy"
            self.logger.warning("Source changed during copy: %s", descriptor.abs_path)
            return entry
        if index is not None:
            index.record(result.hash, dst_rel)
        self.movement_logger.info("Copied: %s -> %s", descriptor.abs_path, destination)
        return entry

    def mirror(
        self,
        files: List[FileEntry],
        primary_root: Path,
        backup_root: Path,
        overwrite: bool = False,
        on_progress: Optional[OnProgress] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> int:
        """Copy primary outputs into ``backup_root``; returns the number of failures."""
        targets = [entry for entry in files if entry.status in (STATUS_COPIED, STATUS_SKIPPED_EXISTS)]
        total = len(targets)
        total_bytes = 0
        failures = 0
        for position, entry in enumerate(targets, start=1):
            if cancel_event is not None and cancel_event.is_set():
                self.logger.warning("Backup cancelled after %s/%s files", position - 1, total)
                break
            if self.monitor is not None:
                self.monitor.throttle()
            source = primary_root / entry.dst_rel
            destination = backup_root / entry.dst_rel
            result = copy_file_with_hash(source, destination, self.hasher, overwrite=overwrite)
            entry.backup_status = result.status
            entry.backup_hash = result.hash
            if result.error:
                entry.backup_error = result.error
                failures += 1
                self.logger.warning("Backup copy failed for %s: %s", entry.dst_rel, result.error)
            elif result.status == STATUS_COPIED:
                total_bytes += result.bytes
                self.movement_logger.info("Backed up: %s -> %s", source, destination)
            copied_now = result.bytes if result.status == STATUS_COPIED else 0
            emit(on_progress, BackupCopyProgress(position, total, entry.src_rel, copied_now, total_bytes))
        return failures
