"""
Triage artifacts: the JSON result and a tabular export (CSV or XLSX).
"""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Iterator, List, Tuple

from openpyxl import Workbook

from ingest.models import TriageResult
from reporting.manifest import ARTIFACT_FILE_MODE

EXPORT_COLUMNS = ("file", "flag", "confidence", "reason", "metric")
EXPORT_FORMATS = ("csv", "xlsx")


def iter_export_rows(result: TriageResult) -> Iterator[Tuple]:
    for item in result.flagged_files:
        for flag in item.flags:
            metric = "" if flag.metric is None else flag.metric
            yield (item.src_rel, flag.kind, flag.confidence, flag.reason, metric)


def write_triage_json(result: TriageResult, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
    path.chmod(ARTIFACT_FILE_MODE)
    return path


def write_triage_csv(result: TriageResult, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(EXPORT_COLUMNS)
        writer.writerows(iter_export_rows(result))
    path.chmod(ARTIFACT_FILE_MODE)
    return path


def write_triage_xlsx(result: TriageResult, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Triage"
    sheet.append(list(EXPORT_COLUMNS))
    for row in iter_export_rows(result):
        sheet.append(list(row))
    sheet.freeze_panes = "A2"
    workbook.save(path)
    path.chmod(ARTIFACT_FILE_MODE)
    return path


def write_triage_artifacts(
    result: TriageResult,
    manifests_dir: Path,
    reports_dir: Path,
    stamp: str,
    export_format: str = "csv",
) -> List[Path]:
    """Write ``<stamp>_triage.json`` and ``<stamp>_triage.<format>``; returns both paths."""
    if export_format not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported triage export format: {export_format}")
    json_path = write_triage_json(result, manifests_dir / f"{stamp}_triage.json")
    export_path = reports_dir / f"{stamp}_triage.{export_format}"
    if export_format == "xlsx":
        write_triage_xlsx(result, export_path)
    else:
        write_triage_csv(result, export_path)
    return [json_path, export_path]
