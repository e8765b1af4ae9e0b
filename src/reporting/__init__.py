"""
Run artifacts: JSON manifest and HTML proof report.
"""

from .html_report import build_proof_report, write_proof_report
from .manifest import artifact_stamp, load_manifest, manifest_path_for, write_manifest

__all__ = [
    "artifact_stamp",
    "build_proof_report",
    "load_manifest",
    "manifest_path_for",
    "write_manifest",
    "write_proof_report",
]
