"""
HTML proof report summarising an ingest run.
"""

from __future__ import annotations

import html
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ingest.models import (
    FLAG_BLACK_FRAME,
    FLAG_UNREADABLE,
    STATUS_COPIED,
    STATUS_ERROR,
    STATUS_SKIPPED_DUPLICATE,
    VERIFY_NONE,
    VERIFY_SENTINEL,
    FileEntry,
    IngestManifest,
    TriageFlag,
)

from .manifest import ARTIFACT_FILE_MODE

HASH_PREVIEW = 16

STYLE = (
    "    body { font-family: Arial, sans-serif; margin: 24px; color: #1a1a1a; }\n"
    "    table { border-collapse: collapse; width: 100%; margin-bottom: 20px; }\n"
    "    th, td { border: 1px solid #ccc; padding: 6px 8px; font-size: 12px; text-align: left; }\n"
    "    th { background: #f2f2f2; }\n"
    "    .banner { padding: 12px 16px; border-radius: 6px; margin-bottom: 16px; }\n"
    "    .banner-yes { background: #e8f5e9; border: 2px solid #2e7d32; }\n"
    "    .banner-no { background: #ffebee; border: 2px solid #c62828; }\n"
    "    .banner-warn { background: #fff3e0; border: 2px solid #f57c00; }\n"
    "    .banner-title { font-weight: bold; font-size: 16px; }\n"
    "    .summary dt { font-weight: bold; display: inline; }\n"
    "    .summary dd { display: inline; margin: 0 16px 0 4px; }\n"
    "    .note { background: #f0f4ff; border-left: 4px solid #4a7dff; padding: 8px 12px; margin-bottom: 16px; }\n"
    "    .mono { font-family: Consolas, monospace; }\n"
    "    tr.error { background: #fff0f0; }\n"
    "    tr.mismatch { background: #fff3e0; }\n"
)


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 ** 2:
        return f"{size / 1024:.1f} KB"
    if size < 1024 ** 3:
        return f"{size / 1024 ** 2:.1f} MB"
    return f"{size / 1024 ** 3:.2f} GB"


def format_elapsed(started_at: str, finished_at: str) -> str:
    try:
        delta = datetime.fromisoformat(finished_at) - datetime.fromisoformat(started_at)
    except ValueError:
        return "-"
    ms = int(delta.total_seconds() * 1000)
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60_000:
        return f"{ms / 1000:.1f}s"
    return f"{ms // 60_000}m {round((ms % 60_000) / 1000)}s"


def _esc(value: object) -> str:
    return html.escape(str(value if value is not None else ""))


def _short_hash(value: Optional[str]) -> str:
    return f"{_esc(value[:HASH_PREVIEW])}..." if value else "-"


def _first_flag(entry: FileEntry, kind: str) -> Optional[TriageFlag]:
    return next((flag for flag in entry.triage_flags if flag.kind == kind), None)


def unsafe_reasons(manifest: IngestManifest) -> List[str]:
    totals = manifest.totals
    reasons = []
    if totals.fail_count:
        reasons.append(f"{totals.fail_count} primary copy failure(s)")
    if totals.backup_fail_count:
        reasons.append(f"{totals.backup_fail_count} backup copy failure(s)")
    if totals.verified_mismatch:
        reasons.append(f"{totals.verified_mismatch} primary verification mismatch(es)")
    if totals.backup_verified_mismatch:
        reasons.append(f"{totals.backup_verified_mismatch} backup verification mismatch(es)")
    if totals.triage_unreadable_count:
        reasons.append(f"{totals.triage_unreadable_count} unreadable file(s), possible corruption")
    if manifest.cancelled:
        reasons.append("run was cancelled before all files were processed")
    return reasons


def _banner(manifest: IngestManifest) -> str:
    if not manifest.safe_to_format:
        reasons = unsafe_reasons(manifest)
        detail = "; ".join(reasons) if reasons else "Not all files were copied and verified."
        return (
            "  <div class=\"banner banner-no\">\n"
            "    <div class=\"banner-title\">Safe to Format Cards: NO</div>\n"
            f"    <div>{_esc(detail)}</div>\n"
            "  </div>\n"
        )
    if not manifest.backup_dest:
        return (
            "  <div class=\"banner banner-warn\">\n"
            "    <div class=\"banner-title\">No Backup Configured</div>\n"
            "    <div>Files were copied to one destination only. Keep the cards until a verified backup exists.</div>\n"
            "  </div>\n"
        )
    return (
        "  <div class=\"banner banner-yes\">\n"
        "    <div class=\"banner-title\">Safe to Format Cards: YES</div>\n"
        "    <div>All files copied and every verification passed.</div>\n"
        "  </div>\n"
    )


def _summary(manifest: IngestManifest) -> str:
    totals = manifest.totals
    items = [
        ("Project", _esc(manifest.project_name)),
        ("Source", _esc(manifest.source_path)),
        ("Primary", _esc(manifest.project_root)),
    ]
    if manifest.backup_root:
        items.append(("Backup", _esc(manifest.backup_root)))
    items.extend(
        [
            ("Files copied", str(totals.success_count)),
            ("Skipped", str(totals.skip_count)),
            ("Failures", str(totals.fail_count)),
            ("Total size", format_bytes(totals.total_bytes)),
        ]
    )
    if totals.duplicate_count:
        items.append(
            ("Duplicates skipped", f"{totals.duplicate_count} ({format_bytes(totals.bytes_saved)} saved)")
        )
    if manifest.backup_dest:
        items.append(("Backup copied", str(totals.backup_success_count)))
        items.append(("Backup failures", str(totals.backup_fail_count)))
    if totals.xmp_written_count or totals.xmp_failed_count:
        items.append(("Sidecars", f"{totals.xmp_written_count} written, {totals.xmp_failed_count} failed"))
    if manifest.triage is not None:
        items.append(
            (
                "Triage",
                f"{totals.triage_unreadable_count} unreadable, "
                f"{totals.triage_black_frame_count} possible junk frames",
            )
        )
    items.extend(
        [
            ("Hash algorithm", _esc(manifest.hash_algo)),
            ("Verify mode", _esc(manifest.verify_mode)),
            ("Elapsed", format_elapsed(manifest.started_at, manifest.finished_at)),
            ("Started", _esc(manifest.started_at)),
            ("Finished", _esc(manifest.finished_at)),
        ]
    )
    rows = "\n".join(f"      <dt>{label}:</dt><dd>{value}</dd>" for label, value in items)
    return f"  <div class=\"summary\">\n    <dl>\n{rows}\n    </dl>\n  </div>\n"


def _verify_note(manifest: IngestManifest) -> str:
    totals = manifest.totals
    if manifest.verify_mode == VERIFY_NONE:
        text = "No post-copy verification was performed. Digests were computed during the copy pass only."
    elif manifest.verify_mode == VERIFY_SENTINEL:
        text = (
            "Sentinel verification: a representative subset of files (first, last and largest) "
            "was re-read and re-hashed."
        )
    else:
        text = "Full verification: every copied file was re-read and re-hashed."
    lines = [f"<strong>Verification:</strong> {text}"]
    if totals.verified_count:
        lines.append(f"Primary: {totals.verified_ok}/{totals.verified_count} OK, {totals.verified_mismatch} mismatch")
    if totals.backup_verified_count:
        lines.append(
            f"Backup: {totals.backup_verified_ok}/{totals.backup_verified_count} OK, "
            f"{totals.backup_verified_mismatch} mismatch"
        )
    return "  <div class=\"note\">" + "<br>".join(lines) + "</div>\n"


def _table(
    title: str,
    headers: Sequence[str],
    entries: List[FileEntry],
    render: Callable[[FileEntry], Sequence[str]],
    row_class: str = "",
) -> str:
    if not entries:
        return ""
    head = "".join(f"<th>{_esc(item)}</th>" for item in headers)
    class_attr = f" class=\"{row_class}\"" if row_class else ""
    rows = "\n".join(
        f"      <tr{class_attr}>" + "".join(f"<td>{cell}</td>" for cell in render(entry)) + "</tr>"
        for entry in entries
    )
    return (
        f"  <h2>{_esc(title)} ({len(entries)})</h2>\n"
        "  <table>\n"
        f"    <thead><tr>{head}</tr></thead>\n"
        "    <tbody>\n"
        f"{rows}\n"
        "    </tbody>\n"
        "  </table>\n"
    )


def _all_files_row(entry: FileEntry) -> Sequence[str]:
    verified = {True: "ok", False: "MISMATCH", None: "-"}[entry.verified]
    return (
        f"<span class=\"mono\">{_esc(entry.dst_rel or entry.src_rel)}</span>",
        format_bytes(entry.bytes),
        _short_hash(entry.hash),
        _esc(entry.status),
        verified,
        _esc(entry.backup_status or "-"),
    )


def build_proof_report(manifest: IngestManifest) -> str:
    files = manifest.files
    unreadable = [entry for entry in files if _first_flag(entry, FLAG_UNREADABLE)]
    black_frames = [entry for entry in files if _first_flag(entry, FLAG_BLACK_FRAME)]
    failures = [entry for entry in files if entry.status == STATUS_ERROR]
    backup_failures = [entry for entry in files if entry.backup_status == STATUS_ERROR]
    mismatches = [entry for entry in files if entry.verified is False]
    backup_mismatches = [entry for entry in files if entry.backup_verified is False]
    duplicates = [entry for entry in files if entry.status == STATUS_SKIPPED_DUPLICATE]

    sections = [
        _table(
            "Unreadable Files",
            ("File", "Reason", "Confidence"),
            unreadable,
            lambda entry: (
                _esc(entry.src_rel),
                _esc(_first_flag(entry, FLAG_UNREADABLE).reason),
                f"{round(_first_flag(entry, FLAG_UNREADABLE).confidence * 100)}%",
            ),
            "error",
        ),
        _table(
            "Possible Junk Frames",
            ("File", "Reason", "Brightness"),
            black_frames,
            lambda entry: (
                _esc(entry.src_rel),
                _esc(_first_flag(entry, FLAG_BLACK_FRAME).reason),
                f"{_esc(_first_flag(entry, FLAG_BLACK_FRAME).metric)}/255",
            ),
        ),
        _table(
            "Primary Failures",
            ("File", "Error"),
            failures,
            lambda entry: (_esc(entry.src_rel), _esc(entry.error or "unknown")),
            "error",
        ),
        _table(
            "Backup Failures",
            ("File", "Error"),
            backup_failures,
            lambda entry: (_esc(entry.src_rel), _esc(entry.backup_error or "unknown")),
            "error",
        ),
        _table(
            "Primary Verification Mismatches",
            ("File", "Copy Hash", "Dest Hash"),
            mismatches,
            lambda entry: (_esc(entry.src_rel), _short_hash(entry.hash), _short_hash(entry.hash_dest)),
            "mismatch",
        ),
        _table(
            "Backup Verification Mismatches",
            ("File", "Copy Hash", "Backup Hash"),
            backup_mismatches,
            lambda entry: (_esc(entry.src_rel), _short_hash(entry.backup_hash), _short_hash(entry.backup_hash_dest)),
            "mismatch",
        ),
        _table(
            "Duplicates Skipped",
            ("Skipped File", "Size", "Hash", "Duplicate Of"),
            duplicates,
            lambda entry: (
                _esc(entry.src_rel),
                format_bytes(entry.bytes),
                _short_hash(entry.hash),
                _esc(entry.duplicate_of),
            ),
        ),
        _table(
            "All Files",
            ("Path", "Size", "Hash", "Status", "Verified", "Backup"),
            files,
            _all_files_row,
        ),
    ]
    copied = sum(1 for entry in files if entry.status == STATUS_COPIED)

    return (
        "<!DOCTYPE html>\n"
        "<html lang=\"en\">\n"
        "<head>\n"
        "  <meta charset=\"utf-8\" />\n"
        "  <title>Ingest Safety Report</title>\n"
        "  <style>\n"
        f"{STYLE}"
        "  </style>\n"
        "</head>\n"
        "<body>\n"
        "  <h1>Ingest Safety Report</h1>\n"
        f"{_banner(manifest)}"
        f"{_summary(manifest)}"
        f"{_verify_note(manifest)}"
        f"{''.join(sections)}"
        f"  <div class=\"note\">{copied} of {len(files)} files copied. "
        f"App version {_esc(manifest.app_version)}.</div>\n"
        "</body>\n"
        "</html>\n"
    )


def write_proof_report(manifest: IngestManifest, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
    path.write_text(build_proof_report(manifest), encoding="utf-8")
    path.chmod(ARTIFACT_FILE_MODE)
    return path
