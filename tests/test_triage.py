import csv
import json
from pathlib import Path
from typing import Optional

import pytest
from openpyxl import load_workbook
from PIL import Image

from config import AppConfig
from ingest.events import TriageDone, TriageProgress
from ingest.models import FileEntry
from triage.checks import BlackFrameCheck, CorruptionCheck
from triage.engine import TriageEngine
from triage.providers import PillowImageDecoder
from triage.report import write_triage_artifacts


class StubSniffer:
    def __init__(self, mime: Optional[str], available: bool = True) -> None:
        self.mime = mime
        self.available = available

    def sniff(self, head: bytes) -> Optional[str]:
        return self.mime


class ExtensionSniffer:
    """Sniff by magic prefix for the formats the tests generate."""

    available = True

    def sniff(self, head: bytes) -> Optional[str]:
        if head.startswith(b"\xff\xd8\xff"):
            return "image/jpeg"
        if head.startswith(b"\x89PNG"):
            return "image/png"
        return "application/octet-stream"


def _image(path: Path, value: int, fmt: str = "JPEG") -> Path:
    Image.new("RGB", (320, 240), (value, value, value)).save(path, fmt)
    return path


def _entry(path: Path, root: Path, media_type: str = "PHOTO", status: str = "copied") -> FileEntry:
    rel = path.relative_to(root).as_posix()
    return FileEntry(src_rel=rel, dst_rel=rel, bytes=path.stat().st_size, hash="x", status=status, media_type=media_type)


def test_black_frame_flagged_and_gray_frame_not(tmp_path: Path) -> None:
    check = BlackFrameCheck(PillowImageDecoder())
    black = _image(tmp_path / "black.jpg", 0)
    gray = _image(tmp_path / "gray.jpg", 128)

    flag = check.check(black, "PHOTO")

    assert flag is not None
    assert flag.kind == "black_frame"
    assert flag.confidence >= 0.9
    assert flag.metric is not None and flag.metric < 5
    assert check.check(gray, "PHOTO") is None


def test_dark_frame_gets_lower_confidence(tmp_path: Path) -> None:
    flag = BlackFrameCheck(PillowImageDecoder()).check(_image(tmp_path / "dark.png", 10, "PNG"), "PHOTO")

    assert flag is not None
    assert flag.confidence == pytest.approx(0.7)
    assert flag.metric == pytest.approx(10, abs=0.5)


def test_black_frame_skips_video_and_undecodable(tmp_path: Path) -> None:
    check = BlackFrameCheck(PillowImageDecoder())
    broken = tmp_path / "broken.jpg"
    broken.write_bytes(b"\xff\xd8\xff" + b"\x00" * 50)

    assert check.check(_image(tmp_path / "black.jpg", 0), "VIDEO") is None
    assert check.check(broken, "PHOTO") is None


def test_empty_file_is_unreadable(tmp_path: Path) -> None:
    empty = tmp_path / "empty.jpg"
    empty.write_bytes(b"")

    flag = CorruptionCheck(StubSniffer("image/jpeg"), PillowImageDecoder()).check(empty)

    assert flag is not None
    assert flag.kind == "unreadable"
    assert flag.confidence == 1.0


def test_unrecognised_content_is_unreadable(tmp_path: Path) -> None:
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"garbage" * 10)

    flag = CorruptionCheck(StubSniffer(None), PillowImageDecoder()).check(path)

    assert flag is not None
    assert flag.confidence == pytest.approx(0.9)


def test_renamed_file_is_flagged(tmp_path: Path) -> None:
    png_named_jpg = _image(tmp_path / "photo.jpg", 128, "PNG")

    flag = CorruptionCheck(ExtensionSniffer(), PillowImageDecoder()).check(png_named_jpg)

    assert flag is not None
    assert flag.confidence == pytest.approx(0.7)
    assert "image/png" in flag.reason


def test_generic_stream_exempt_for_raw_only(tmp_path: Path) -> None:
    raw = tmp_path / "IMG_0001.RAF"
    raw.write_bytes(b"FUJIFILMCCD-RAW " + b"\x00" * 100)
    video = tmp_path / "clip.mov"
    video.write_bytes(b"\x00" * 100)
    jpeg = tmp_path / "photo.jpg"
    jpeg.write_bytes(b"\x00" * 100)
    check = CorruptionCheck(StubSniffer("application/octet-stream"), PillowImageDecoder())

    assert check.check(raw) is None
    assert check.check(video) is not None
    assert check.check(jpeg).confidence == pytest.approx(0.7)


def test_truncated_image_fails_decode(tmp_path: Path) -> None:
    path = _image(tmp_path / "cut.jpg", 128)
    path.write_bytes(path.read_bytes()[:200])

    flag = CorruptionCheck(StubSniffer("image/jpeg"), PillowImageDecoder()).check(path)

    assert flag is not None
    assert flag.confidence == pytest.approx(0.95)


def test_unavailable_sniffer_skips_type_checks(tmp_path: Path) -> None:
    path = _image(tmp_path / "fine.jpg", 128)

    assert CorruptionCheck(StubSniffer(None, available=False), PillowImageDecoder()).check(path) is None


def test_engine_only_analyses_copied_files(tmp_path: Path) -> None:
    black = _image(tmp_path / "black.jpg", 0)
    gray = _image(tmp_path / "gray.jpg", 128)
    skipped = _image(tmp_path / "skipped.jpg", 0)
    empty = tmp_path / "empty.jpg"
    empty.write_bytes(b"")
    files = [
        _entry(black, tmp_path),
        _entry(gray, tmp_path),
        _entry(skipped, tmp_path, status="skipped_exists"),
        _entry(empty, tmp_path),
    ]
    engine = TriageEngine.from_config(AppConfig.from_mapping({}), sniffer=ExtensionSniffer())
    events = []

    result = engine.run(files, tmp_path, events.append)

    assert result.file_count == 3
    assert result.unreadable_count == 1
    assert result.black_frame_count == 1
    assert [item.src_rel for item in result.flagged_files] == ["black.jpg", "empty.jpg"]
    assert files[0].triage_flags[0].kind == "black_frame"
    assert files[1].triage_flags == []
    assert files[2].triage_flags == []
    assert files[3].triage_flags[0].kind == "unreadable"
    assert isinstance(events[0], TriageProgress)
    assert events[0].analyzed_count == 3
    assert isinstance(events[-1], TriageDone)


def test_triage_artifacts(tmp_path: Path) -> None:
    black = _image(tmp_path / "black.jpg", 0)
    files = [_entry(black, tmp_path)]
    result = TriageEngine.from_config(AppConfig.from_mapping({}), sniffer=ExtensionSniffer()).run(files, tmp_path)

    json_path, csv_path = write_triage_artifacts(result, tmp_path / "m", tmp_path / "r", "20260101_000000")
    _, xlsx_path = write_triage_artifacts(result, tmp_path / "m", tmp_path / "r", "20260101_000001", "xlsx")

    assert json.loads(json_path.read_text(encoding="utf-8"))["black_frame_count"] == 1
    with csv_path.open(encoding="utf-8", newline="") as handle:
        rows = list(csv.reader(handle))
    assert rows[0] == ["file", "flag", "confidence", "reason", "metric"]
    assert rows[1][:2] == ["black.jpg", "black_frame"]
    sheet = load_workbook(xlsx_path).active
    assert [cell.value for cell in sheet[1]] == ["file", "flag", "confidence", "reason", "metric"]
    assert sheet.cell(row=2, column=1).value == "black.jpg"
    for path in (json_path, csv_path, xlsx_path):
        assert path.stat().st_mode & 0o777 == 0o600
    with pytest.raises(ValueError):
        write_triage_artifacts(result, tmp_path / "m", tmp_path / "r", "x", "pdf")
