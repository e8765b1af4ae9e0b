"""
Ingest orchestration: preconditions, phase sequencing and run artifacts.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from config import AppConfig, ensure_directories
from discovery.scanner import Scanner
from hashing.hasher import DEFAULT_CHUNK_BYTES, Hasher
from ingest.errors import FatalRunError, PathSafetyError, TemplateValidationError
from ingest.events import (
    BackupStarted,
    IngestDone,
    IngestStarted,
    OnProgress,
    ReportGenerated,
    ScanProgress,
    SidecarProgress,
    emit,
)
from ingest.models import (
    STATUS_COPIED,
    VERIFY_MODES,
    FileEntry,
    IngestManifest,
    IngestParams,
    Totals,
    TriageResult,
    compute_safe_to_format,
)
from ingest.pipeline import LEGACY_RAW_DIR, CopyPipeline, MetadataProvider
from metadata.extractor import ExifMetadataExtractor
from reporting.html_report import write_proof_report
from reporting.manifest import artifact_stamp, manifest_path_for, write_manifest
from sidecar.xmp import XmpPatch, write_xmp_sidecar
from templates.expand import expand_template
from templates.folder_template import FolderTemplate
from templates.tokens import build_run_context
from templates.validate import require_valid_template
from triage.engine import TriageEngine
from triage.providers import ContentSniffer, ImageDecoder
from triage.report import EXPORT_FORMATS, write_triage_artifacts
from utils.logging_setup import setup_logging
from utils.resource_monitor import ResourceMonitor
from verification.verifier import Verifier

LEGACY_SCAFFOLD_DIRS = (LEGACY_RAW_DIR, "02_EXPORTS", "03_DELIVERY")
INTERNAL_DIR = ".ingest"
SIDECAR_PROGRESS_INTERVAL = 10


@dataclass
class RunLayout:
    """Directories resolved for one run before any file is touched."""

    project_root: Path
    dest_root: Path
    manifests_dir: Path
    reports_dir: Path
    job_root: str = ""
    backup_project_root: Optional[Path] = None
    backup_root: Optional[Path] = None
    template_warnings: List[str] = field(default_factory=list)


@dataclass
class RunSettings:
    """Configuration-derived collaborators for one run, checked before any file is touched."""

    hasher: Hasher
    scanner: Scanner
    sentinel_count: int
    triage: Optional[TriageEngine]
    export_format: str


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class IngestOrchestrator:
    """Run scan, copy, verify, backup, sidecar, triage and report phases in order."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        logger: Optional[logging.Logger] = None,
        movement_logger: Optional[logging.Logger] = None,
        metadata_extractor: Optional[MetadataProvider] = None,
        sniffer: Optional[ContentSniffer] = None,
        decoder: Optional[ImageDecoder] = None,
        monitor: Optional[ResourceMonitor] = None,
    ) -> None:
        self.config = config or AppConfig.from_mapping({})
        self.logger = logger or logging.getLogger("ingest")
        self.movement_logger = movement_logger or logging.getLogger("ingest.movement")
        self.monitor = monitor or ResourceMonitor.from_config(self.config)
        self.metadata_extractor = metadata_extractor or ExifMetadataExtractor(
            timeout_seconds=self.config.get_float("metadata", "timeout_seconds", default=10),
            logger=self.logger,
        )
        self.sniffer = sniffer
        self.decoder = decoder

    def run(
        self,
        params: IngestParams,
        on_progress: Optional[OnProgress] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> IngestManifest:
        """Execute one ingest run and return its manifest.

        Raises FatalRunError before any file is processed when a precondition
        fails; per-file problems are recorded on the manifest entries instead.
        """
        start_time = time.monotonic()
        started_at = _utc_now()
        import_date = datetime.now()
        stamp = artifact_stamp()

        source = Path(params.source_path).expanduser()
        settings = self._resolve_settings(params)
        hasher = settings.hasher
        template = params.folder_template
        self._check_source(source)
        layout = self._prepare_layout(params, template, import_date)

        emit(on_progress, IngestStarted(source_path=str(source), project_root=str(layout.project_root)))
        self.logger.info("Ingest started: %s -> %s", source, layout.project_root)

        descriptors = settings.scanner.scan(source, on_progress)
        emit(on_progress, ScanProgress(discovered_count=len(descriptors)))
        self.logger.info("Discovered %s media files", len(descriptors))
        unreadable = sum(1 for descriptor in descriptors if descriptor.error is not None)
        if unreadable:
            self.logger.warning("%s source entries could not be read and will be reported as failures", unreadable)

        pipeline = CopyPipeline(
            hasher,
            metadata=self.metadata_extractor,
            logger=self.logger,
            movement_logger=self.movement_logger,
            monitor=self.monitor,
        )
        files = pipeline.copy_all(
            descriptors,
            layout.project_root,
            template=template,
            user_context=params.template_context,
            import_date=import_date,
            job_root=layout.job_root,
            overwrite=params.overwrite,
            dedupe=params.dedupe,
            on_progress=on_progress,
            cancel_event=cancel_event,
        )

        verifier = Verifier(
            hasher,
            sentinel_count=settings.sentinel_count,
            logger=self.logger,
            monitor=self.monitor,
        )
        verifier.verify(files, layout.project_root, params.verify_mode, on_progress, cancel_event=cancel_event)

        if layout.backup_project_root is not None:
            emit(on_progress, BackupStarted(backup_root=str(layout.backup_root)))
            pipeline.mirror(
                files,
                layout.project_root,
                layout.backup_project_root,
                overwrite=params.overwrite,
                on_progress=on_progress,
                cancel_event=cancel_event,
            )
            verifier.verify(
                files,
                layout.backup_project_root,
                params.verify_mode,
                on_progress,
                backup=True,
                cancel_event=cancel_event,
            )

        if params.xmp_patch is not None:
            self._write_sidecars(files, layout, params.xmp_patch, on_progress)

        triage: Optional[TriageResult] = None
        triage_paths: List[Path] = []
        if settings.triage is not None:
            triage = settings.triage.run(files, layout.project_root, on_progress, cancel_event=cancel_event)
            triage_paths = write_triage_artifacts(
                triage,
                layout.manifests_dir,
                layout.reports_dir,
                stamp,
                export_format=settings.export_format,
            )

        cancelled = cancel_event is not None and cancel_event.is_set()
        totals = Totals.from_entries(files, triage)
        safe_to_format = compute_safe_to_format(totals, params.verify_mode) and not cancelled
        manifest = IngestManifest(
            source_path=str(source),
            dest_root=str(layout.dest_root),
            project_root=str(layout.project_root),
            project_name=params.project_name,
            hash_algo=hasher.algorithm,
            verify_mode=params.verify_mode,
            started_at=started_at,
            finished_at=_utc_now(),
            files=files,
            totals=totals,
            safe_to_format=safe_to_format,
            backup_dest=str(params.backup_dest) if params.backup_dest else None,
            backup_root=str(layout.backup_root) if layout.backup_root else None,
            template_id=template.template_id if template else None,
            template_warnings=layout.template_warnings,
            triage=triage,
            cancelled=cancelled,
        )
        if triage_paths:
            manifest.triage_json_path = str(triage_paths[0])
            manifest.triage_export_path = str(triage_paths[1])

        manifest_path = write_manifest(manifest, manifest_path_for(layout.manifests_dir, stamp))
        manifest.manifest_path = str(manifest_path)
        report_path = write_proof_report(manifest, layout.reports_dir / f"{stamp}_proof.html")
        manifest.report_path = str(report_path)
        write_manifest(manifest, manifest_path)
        emit(on_progress, ReportGenerated(manifest_path=str(manifest_path), report_path=str(report_path)))

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        emit(
            on_progress,
            IngestDone(
                success_count=totals.success_count,
                fail_count=totals.fail_count,
                elapsed_ms=elapsed_ms,
                safe_to_format=safe_to_format,
            ),
        )
        self.logger.info(
            "Ingest finished: %s copied, %s failed, %s skipped, %s duplicates, safe_to_format=%s",
            totals.success_count,
            totals.fail_count,
            totals.skip_count,
            totals.duplicate_count,
            safe_to_format,
        )
        return manifest

    def _resolve_settings(self, params: IngestParams) -> RunSettings:
        """Read and check every run setting up front; a bad value is a FatalRunError."""
        if params.verify_mode not in VERIFY_MODES:
            self.logger.error("Unsupported verify mode: %s", params.verify_mode)
            raise FatalRunError(f"Unsupported verify mode: {params.verify_mode}")
        try:
            chunk_bytes = self.config.get_int("hashing", "chunk_bytes", default=DEFAULT_CHUNK_BYTES)
            hasher = Hasher(params.hash_algo, chunk_bytes=chunk_bytes)
            sentinel_count = self.config.get_int("verification", "sentinel_count", default=1)
            if sentinel_count < 1:
                raise ValueError(f"verification.sentinel_count must be at least 1, got {sentinel_count}")
            triage: Optional[TriageEngine] = None
            export_format = str(self.config.get("triage", "export_format", default="csv"))
            if self.config.get_bool("triage", "enabled", default=True):
                if export_format not in EXPORT_FORMATS:
                    raise ValueError(f"Unsupported triage export format: {export_format}")
                triage = TriageEngine.from_config(
                    self.config, sniffer=self.sniffer, decoder=self.decoder, logger=self.logger, monitor=self.monitor
                )
            scanner = Scanner(self.config)
        except (TypeError, ValueError) as exc:
            self.logger.error("Invalid run settings: %s", exc)
            raise FatalRunError(f"Invalid run settings: {exc}") from exc
        return RunSettings(
            hasher=hasher,
            scanner=scanner,
            sentinel_count=sentinel_count,
            triage=triage,
            export_format=export_format,
        )

    def _check_source(self, source: Path) -> None:
        if not source.exists():
            self.logger.error("Source does not exist: %s", source)
            raise FatalRunError(f"Source path does not exist: {source}")
        if not source.is_dir():
            self.logger.error("Source is not a directory: %s", source)
            raise FatalRunError(f"Source path is not a directory: {source}")
        if not os.access(source, os.R_OK | os.X_OK):
            self.logger.error("Source is not readable: %s", source)
            raise FatalRunError(f"Source path is not readable: {source}")
        try:
            with os.scandir(source) as entries:
                next(entries, None)
        except OSError as exc:
            self.logger.error("Source cannot be listed: %s (%s)", source, exc)
            raise FatalRunError(f"Source path cannot be listed: {source} ({exc.strerror or exc})") from exc

    def _prepare_layout(
        self, params: IngestParams, template: Optional[FolderTemplate], import_date: datetime
    ) -> RunLayout:
        """Validate the template and create project, scaffold and internal dirs."""
        warnings: List[str] = []
        job_root = ""
        if template is not None:
            try:
                warnings = require_valid_template(template)
            except TemplateValidationError as exc:
                self.logger.error("Invalid folder template %s: %s", template.template_id, "; ".join(exc.errors))
                raise FatalRunError(f"Invalid folder template: {'; '.join(exc.errors)}") from exc
            for warning in warnings:
                self.logger.warning("Template %s: %s", template.template_id, warning)
            if template.job_root_pattern:
                context = build_run_context(params.template_context, template.token_defaults, import_date)
                try:
                    job_root = expand_template(template.job_root_pattern, context)
                except PathSafetyError as exc:
                    raise FatalRunError(f"Job root cannot be expanded safely: {exc}") from exc
            scaffold = [str(Path(job_root) / item) if job_root else item for item in template.scaffold_dirs]
        else:
            scaffold = list(LEGACY_SCAFFOLD_DIRS)

        project_root = Path(params.dest_project_path).expanduser() / params.project_name
        if template is None:
            dest_root = project_root / LEGACY_RAW_DIR
        else:
            dest_root = project_root / job_root if job_root else project_root
        internal = project_root / INTERNAL_DIR
        layout = RunLayout(
            project_root=project_root,
            dest_root=dest_root,
            manifests_dir=internal / "manifests",
            reports_dir=internal / "reports",
            job_root=job_root,
            template_warnings=warnings,
        )
        self._create_dirs(project_root, scaffold + [f"{INTERNAL_DIR}/manifests", f"{INTERNAL_DIR}/reports"])

        if params.backup_dest:
            backup_project_root = Path(params.backup_dest).expanduser() / params.project_name
            layout.backup_project_root = backup_project_root
            layout.backup_root = (
                backup_project_root / LEGACY_RAW_DIR
                if template is None
                else (backup_project_root / job_root if job_root else backup_project_root)
            )
            self._create_dirs(backup_project_root, scaffold)
        return layout

    def _create_dirs(self, root: Path, subdirs: List[str]) -> None:
        try:
            ensure_directories([root] + [root / item for item in subdirs])
        except OSError as exc:
            self.logger.error("Cannot create destination %s: %s", root, exc)
            raise FatalRunError(f"Destination is not writable: {root} ({exc})") from exc
        if not os.access(root, os.W_OK):
            self.logger.error("Destination is not writable: %s", root)
            raise FatalRunError(f"Destination is not writable: {root}")

    def _write_sidecars(
        self,
        files: List[FileEntry],
        layout: RunLayout,
        patch: XmpPatch,
        on_progress: Optional[OnProgress],
    ) -> None:
        targets = [entry for entry in files if entry.status == STATUS_COPIED]
        total = len(targets)
        written = 0
        failed = 0
        for position, entry in enumerate(targets, start=1):
            outcome = write_xmp_sidecar(layout.project_root / entry.dst_rel, patch)
            entry.sidecar_written = outcome.written
            entry.sidecar_path = str(outcome.sidecar_path.relative_to(layout.project_root))
            if outcome.written:
                written += 1
            else:
                failed += 1
                entry.sidecar_error = outcome.error
            if layout.backup_project_root is not None and entry.backup_status == STATUS_COPIED:
                backup_outcome = write_xmp_sidecar(layout.backup_project_root / entry.dst_rel, patch)
                if not backup_outcome.written:
                    self.logger.warning(
                        "Backup sidecar not written for %s: %s", entry.dst_rel, backup_outcome.error
                    )
            if position % SIDECAR_PROGRESS_INTERVAL == 0:
                emit(on_progress, SidecarProgress(written_count=written, failed_count=failed, total=total))
        if total and total % SIDECAR_PROGRESS_INTERVAL != 0:
            emit(on_progress, SidecarProgress(written_count=written, failed_count=failed, total=total))
        self.logger.info("Sidecars: %s written, %s failed", written, failed)


def main(config: Optional[AppConfig] = None) -> None:
    """Run an ingest described by the ``ingest`` section of the config file."""
    from utils.progress_log import ProgressLogger

    config = config or AppConfig.load()
    loggers = setup_logging(
        config.resolve_path("paths", "logs", default="logs"),
        level=config.get("logging", "level", default="INFO"),
        console=config.get_bool("logging", "console", default=True),
    )
    params = IngestParams.from_config(config)
    orchestrator = IngestOrchestrator(
        config,
        logger=loggers["main"],
        movement_logger=loggers["movement"],
        monitor=ResourceMonitor.from_config(config, logger=loggers["performance"]),
    )
    try:
        manifest = orchestrator.run(params, on_progress=ProgressLogger(loggers["performance"]))
    except FatalRunError as exc:
        loggers["main"].error("Ingest aborted: %s", exc)
        raise SystemExit(2) from exc
    loggers["main"].info("Manifest written to %s", manifest.manifest_path)
    raise SystemExit(0 if manifest.safe_to_format else 1)


if __name__ == "__main__":
    main()
