"""
Progress listener that mirrors ingest events into the performance log.
"""

from __future__ import annotations

import logging
from typing import Optional

from ingest.events import ProgressEvent


class ProgressLogger:
    """Callable progress listener writing one log line per event."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("ingest.performance")

    def __call__(self, event: ProgressEvent) -> None:
        payload = event.to_dict()
        kind = payload.pop("type")
        details = " ".join(f"{key}={value}" for key, value in payload.items())
        self.logger.info("%s %s", kind, details)
