"""
Post-copy verification: re-read written bytes and compare digests.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import List, Optional

from hashing.hasher import Hasher
from ingest.events import BackupVerifyProgress, OnProgress, VerifyProgress, emit
from ingest.models import STATUS_COPIED, VERIFY_FULL, VERIFY_MODES, VERIFY_NONE, FileEntry
from utils.resource_monitor import ResourceMonitor

PROGRESS_INTERVAL = 10


def select_sentinel_files(candidates: List[FileEntry], count: int = 1) -> List[FileEntry]:
    """Pick the first, last and largest ``count`` entries, in scan order.

    Size ties are broken by the earliest position in ``candidates``.
    """
    if count <= 0 or not candidates:
        return []
    indexed = list(enumerate(candidates))
    chosen = {index for index, _ in indexed[:count]}
    chosen.update(index for index, _ in indexed[-count:])
    by_size = sorted(indexed, key=lambda item: (-item[1].bytes, item[0]))
    chosen.update(index for index, _ in by_size[:count])
    return [candidates[index] for index in sorted(chosen)]


class Verifier:
    """Recompute destination digests for a subset (or all) of copied files."""

    def __init__(
        self,
        hasher: Hasher,
        sentinel_count: int = 1,
        logger: Optional[logging.Logger] = None,
        monitor: Optional[ResourceMonitor] = None,
    ) -> None:
        self.hasher = hasher
        self.sentinel_count = sentinel_count
        self.logger = logger or logging.getLogger("ingest")
        self.monitor = monitor

    def select(self, files: List[FileEntry], mode: str, backup: bool = False) -> List[FileEntry]:
        if mode not in VERIFY_MODES:
            raise ValueError(f"Unsupported verify mode: {mode}")
        if mode == VERIFY_NONE:
            return []
        if backup:
            eligible = [entry for entry in files if entry.backup_status == STATUS_COPIED]
        else:
            eligible = [entry for entry in files if entry.status == STATUS_COPIED]
        if mode == VERIFY_FULL:
            return eligible
        return select_sentinel_files(eligible, self.sentinel_count)

    def verify(
        self,
        files: List[FileEntry],
        root: Path,
        mode: str,
        on_progress: Optional[OnProgress] = None,
        backup: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> int:
        """Verify entries in place and return the number of mismatches.

        A mismatch sets ``verified=False`` but never changes the entry status.
        """
        targets = self.select(files, mode, backup=backup)
        total = len(targets)
        event_type = BackupVerifyProgress if backup else VerifyProgress
        mismatches = 0
        done = 0
        for entry in targets:
            if cancel_event is not None and cancel_event.is_set():
                self.logger.warning("Verification cancelled after %s/%s files", done, total)
                break
            if self.monitor is not None:
                self.monitor.throttle()
            if not self._verify_entry(entry, root, backup):
                mismatches += 1
            done += 1
            if done % PROGRESS_INTERVAL == 0:
                emit(on_progress, event_type(mode=mode, verified_count=done, verified_total=total))
        if total > 0 and done % PROGRESS_INTERVAL != 0:
            emit(on_progress, event_type(mode=mode, verified_count=done, verified_total=total))
        label = "Backup verification" if backup else "Verification"
        self.logger.info("%s (%s) checked %s files, %s mismatches", label, mode, done, mismatches)
        return mismatches

    def _verify_entry(self, entry: FileEntry, root: Path, backup: bool) -> bool:
        destination = root / entry.dst_rel
        expected = entry.backup_hash if backup else entry.hash
        try:
            actual = self.hasher.hash_file(destination)
            error = None
        except OSError as exc:
            actual = ""
            error = f"verify failed: {exc}"
            self.logger.warning("Could not re-read %s: %s", destination, exc)
        matched = bool(actual) and actual == expected
        if backup:
            entry.backup_hash_dest = actual
            entry.backup_verified = matched
            if error:
                entry.backup_error = error
        else:
            entry.hash_dest = actual
            entry.verified = matched
            if error:
                entry.error = error
        if not matched and error is None:
            self.logger.warning("Digest mismatch for %s", destination)
        return matched

