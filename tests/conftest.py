from datetime import datetime
from pathlib import Path
from typing import Optional

import pytest

from config import AppConfig
from ingest.orchestrator import IngestOrchestrator
from metadata.extractor import EMPTY_METADATA, CaptureMetadata


class StubMetadata:
    def __init__(self, metadata: CaptureMetadata = EMPTY_METADATA) -> None:
        self.metadata = metadata
        self.calls = 0

    def extract(self, path: Path) -> CaptureMetadata:
        self.calls += 1
        return self.metadata


class PrefixSniffer:
    available = True

    def sniff(self, head: bytes) -> Optional[str]:
        if head.startswith(b"\xff\xd8\xff"):
            return "image/jpeg"
        if head.startswith(b"\x89PNG"):
            return "image/png"
        return "application/octet-stream"


@pytest.fixture
def make_orchestrator():
    def factory(config: Optional[dict] = None, metadata: Optional[CaptureMetadata] = None) -> IngestOrchestrator:
        return IngestOrchestrator(
            AppConfig.from_mapping(config or {}),
            metadata_extractor=StubMetadata(
                metadata or CaptureMetadata(capture_date=datetime(2025, 6, 7), camera_model=None, camera_serial=None)
            ),
            sniffer=PrefixSniffer(),
        )

    return factory
