"""
JSON manifest persistence.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

from ingest.models import IngestManifest

ARTIFACT_FILE_MODE = 0o600


def artifact_stamp(now: Optional[datetime] = None) -> str:
    """Local-time stamp shared by every artifact of one run."""
    return (now or datetime.now()).strftime("%Y%m%d_%H%M%S")


def manifest_path_for(manifests_dir: Path, stamp: str) -> Path:
    return manifests_dir / f"{stamp}_ingest.json"


def write_manifest(manifest: IngestManifest, path: Path) -> Path:
    """Write the manifest as indented JSON, readable by the owner only."""
    path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
    path.write_text(json.dumps(manifest.to_dict(), indent=2), encoding="utf-8")
    path.chmod(ARTIFACT_FILE_MODE)
    return path


def load_manifest(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))
