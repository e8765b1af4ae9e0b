"""
Utility helpers for the ingest engine.
"""

from .logging_setup import setup_logging
from .progress_log import ProgressLogger
from .resource_monitor import ResourceMonitor
from .timeouts import call_with_timeout

__all__ = [
    "setup_logging",
    "ProgressLogger",
    "ResourceMonitor",
    "call_with_timeout",
]
