"""
Post-copy triage: corruption and black-frame detection.
"""

from .checks import BlackFrameCheck, CorruptionCheck
from .engine import TriageEngine
from .providers import MagicContentSniffer, PillowImageDecoder
from .report import write_triage_artifacts

__all__ = [
    "BlackFrameCheck",
    "CorruptionCheck",
    "MagicContentSniffer",
    "PillowImageDecoder",
    "TriageEngine",
    "write_triage_artifacts",
]
