from pathlib import Path
from typing import List

from hashing.copier import copy_file_with_hash
from hashing.hasher import Hasher
from ingest.events import VerifyProgress
from ingest.models import FileEntry
from verification.verifier import Verifier, select_sentinel_files


def _copied_entries(tmp_path: Path, sizes: List[int]) -> List[FileEntry]:
    hasher = Hasher()
    entries = []
    for index, size in enumerate(sizes):
        source = tmp_path / "src" / f"IMG_{index:02d}.jpg"
        source.parent.mkdir(parents=True, exist_ok=True)
        source.write_bytes(bytes([index]) * size)
        dst_rel = f"RAW/IMG_{index:02d}.jpg"
        result = copy_file_with_hash(source, tmp_path / "project" / dst_rel, hasher)
        entries.append(FileEntry(src_rel=source.name, dst_rel=dst_rel, bytes=result.bytes, hash=result.hash, status=result.status))
    return entries


def test_sentinel_picks_first_last_and_largest(tmp_path: Path) -> None:
    sizes = [10, 20, 5, 70, 30, 70, 15, 25, 8, 12]
    entries = _copied_entries(tmp_path, sizes)
    events = []

    mismatches = Verifier(Hasher()).verify(entries, tmp_path / "project", "sentinel", events.append)

    verified = [index for index, entry in enumerate(entries) if entry.hash_dest is not None]
    assert verified == [0, 3, 9]
    assert all(entries[index].verified is True for index in verified)
    assert all(entry.verified is None for index, entry in enumerate(entries) if index not in verified)
    assert mismatches == 0
    assert events == [VerifyProgress(mode="sentinel", verified_count=3, verified_total=3)]


def test_select_sentinel_handles_small_runs(tmp_path: Path) -> None:
    entries = _copied_entries(tmp_path, [5])

    assert select_sentinel_files(entries) == entries
    assert select_sentinel_files([]) == []


def test_full_verify_detects_corruption_without_changing_status(tmp_path: Path) -> None:
    entries = _copied_entries(tmp_path, [100] * 12)
    (tmp_path / "project" / entries[4].dst_rel).write_bytes(b"flipped")
    events = []

    mismatches = Verifier(Hasher()).verify(entries, tmp_path / "project", "full", events.append)

    assert mismatches == 1
    assert entries[4].verified is False
    assert entries[4].status == "copied"
    assert all(entry.verified for index, entry in enumerate(entries) if index != 4)
    assert all(entry.hash_dest == entry.hash for index, entry in enumerate(entries) if index != 4)
    assert [event.verified_count for event in events] == [10, 12]


def test_verify_none_touches_nothing(tmp_path: Path) -> None:
    entries = _copied_entries(tmp_path, [1, 2, 3])

    assert Verifier(Hasher()).verify(entries, tmp_path / "project", "none") == 0
    assert all(entry.hash_dest is None and entry.verified is None for entry in entries)


def test_skipped_entries_are_never_verified(tmp_path: Path) -> None:
    entries = _copied_entries(tmp_path, [1, 2])
    entries[0].status = "skipped_exists"
    entries[0].hash = ""

    Verifier(Hasher()).verify(entries, tmp_path / "project", "full")

    assert entries[0].hash_dest is None
    assert entries[1].verified is True
