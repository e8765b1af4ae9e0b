"""
Post-copy triage pass over the files written by an ingest run.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from config import AppConfig
from ingest.events import OnProgress, TriageDone, TriageProgress, emit
from ingest.models import STATUS_COPIED, FileEntry, TriageFileResult, TriageResult
from utils.resource_monitor import ResourceMonitor

from .checks import DEFAULT_HEADER_BYTES, BlackFrameCheck, CorruptionCheck
from .providers import ContentSniffer, ImageDecoder, MagicContentSniffer, PillowImageDecoder


class TriageEngine:
    """Flag unreadable and near-black files among successfully copied entries.

    The black-frame check only runs when the corruption check found nothing,
    so a single undecodable file is never reported twice.
    """

    def __init__(
        self,
        corruption: CorruptionCheck,
        black_frame: BlackFrameCheck,
        progress_interval: int = 10,
        logger: Optional[logging.Logger] = None,
        monitor: Optional[ResourceMonitor] = None,
    ) -> None:
        self.corruption = corruption
        self.black_frame = black_frame
        self.progress_interval = max(1, progress_interval)
        self.logger = logger or logging.getLogger("ingest")
        self.monitor = monitor

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        sniffer: Optional[ContentSniffer] = None,
        decoder: Optional[ImageDecoder] = None,
        logger: Optional[logging.Logger] = None,
        monitor: Optional[ResourceMonitor] = None,
    ) -> "TriageEngine":
        logger = logger or logging.getLogger("ingest")
        if sniffer is None:
            sniffer = MagicContentSniffer(logger=logger)
        if decoder is None:
            decoder = PillowImageDecoder(
                timeout_seconds=config.get_float("triage", "decode_timeout_seconds", default=15),
                logger=logger,
            )
        exemptions = config.get_list("triage", "generic_mime_exemptions", default=["application/octet-stream"])
        corruption = CorruptionCheck(
            sniffer,
            decoder,
            header_bytes=config.get_int("triage", "header_bytes", default=DEFAULT_HEADER_BYTES),
            generic_mime_exemptions=exemptions,
            logger=logger,
        )
        black_frame = BlackFrameCheck(
            decoder,
            black_threshold=config.get_float("triage", "black_threshold", default=5.0),
            dark_threshold=config.get_float("triage", "dark_threshold", default=15.0),
            grid_size=config.get_int("triage", "grid_size", default=64),
        )
        return cls(
            corruption,
            black_frame,
            progress_interval=config.get_int("triage", "progress_interval", default=10),
            logger=logger,
            monitor=monitor,
        )

    def run(
        self,
        files: List[FileEntry],
        project_root: Path,
        on_progress: Optional[OnProgress] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TriageResult:
        start_time = time.monotonic()
        targets = [entry for entry in files if entry.status == STATUS_COPIED]
        total = len(targets)
        flagged: List[TriageFileResult] = []
        unreadable = 0
        black_frames = 0
        analyzed = 0

        for entry in targets:
            if cancel_event is not None and cancel_event.is_set():
                self.logger.warning("Triage cancelled after %s/%s files", analyzed, total)
                break
            if self.monitor is not None:
                self.monitor.throttle()
            path = project_root / entry.dst_rel
            flags = []
            corruption_flag = self.corruption.check(path)
            if corruption_flag is not None:
                flags.append(corruption_flag)
                unreadable += 1
            else:
                black_flag = self.black_frame.check(path, entry.media_type)
                if black_flag is not None:
                    flags.append(black_flag)
                    black_frames += 1
            if flags:
                entry.triage_flags = flags
                flagged.append(TriageFileResult(src_rel=entry.src_rel, dst_rel=entry.dst_rel, flags=flags))
                self.logger.info("Triage flagged %s: %s", entry.dst_rel, flags[0].reason)
            analyzed += 1
            if analyzed % self.progress_interval == 0:
                emit(on_progress, TriageProgress(analyzed, total, len(flagged)))

        if analyzed > 0 and analyzed % self.progress_interval != 0:
            emit(on_progress, TriageProgress(analyzed, total, len(flagged)))

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        result = TriageResult(
            ran_at=datetime.now(timezone.utc).isoformat(),
            elapsed_ms=elapsed_ms,
            file_count=analyzed,
            unreadable_count=unreadable,
            black_frame_count=black_frames,
            flagged_files=flagged,
        )
        emit(on_progress, TriageDone(unreadable, black_frames, elapsed_ms))
        self.logger.info(
            "Triage analysed %s files: %s unreadable, %s black frames", analyzed, unreadable, black_frames
        )
        return result
