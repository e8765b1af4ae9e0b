from pathlib import Path
from typing import List

from hashing.hasher import Hasher
from ingest.events import CopyProgress
from ingest.models import FileDescriptor
from ingest.pipeline import CopyPipeline, join_rel


def _descriptors(root: Path, contents: List[bytes]) -> List[FileDescriptor]:
    descriptors = []
    for index, data in enumerate(contents):
        path = root / f"IMG_{index:03d}.jpg"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        descriptors.append(FileDescriptor(path.name, path, len(data), 0.0, "PHOTO"))
    return descriptors


def test_progress_is_monotonic_and_cumulative(tmp_path: Path) -> None:
    descriptors = _descriptors(tmp_path / "card", [b"a" * 10, b"b" * 20, b"c" * 30])
    events = []

    entries = CopyPipeline(Hasher()).copy_all(descriptors, tmp_path / "project", on_progress=events.append)

    assert [entry.status for entry in entries] == ["copied"] * 3
    assert [event.index for event in events] == [1, 2, 3]
    assert [event.total_bytes_copied for event in events] == [10, 30, 60]
    assert all(isinstance(event, CopyProgress) and event.total == 3 for event in events)


def test_duplicate_of_points_to_earlier_entry(tmp_path: Path) -> None:
    descriptors = _descriptors(tmp_path / "card", [b"same", b"other", b"same", b"same"])

    entries = CopyPipeline(Hasher()).copy_all(descriptors, tmp_path / "project", dedupe=True)

    assert [entry.status for entry in entries] == ["copied", "copied", "skipped_duplicate", "skipped_duplicate"]
    by_dst = {entry.dst_rel: position for position, entry in enumerate(entries)}
    for position, entry in enumerate(entries):
        if entry.status == "skipped_duplicate":
            original = entries[by_dst[entry.duplicate_of]]
            assert by_dst[entry.duplicate_of] < position
            assert original.hash == entry.hash


def test_source_change_during_copy_is_an_error(tmp_path: Path, monkeypatch) -> None:
    descriptors = _descriptors(tmp_path / "card", [b"original"])
    hasher = Hasher()
    monkeypatch.setattr(hasher, "hash_file", lambda path: "0" * 64)

    entries = CopyPipeline(hasher).copy_all(descriptors, tmp_path / "project", dedupe=True)

    assert entries[0].status == "error"
    assert entries[0].error == "source changed during copy"


def test_unreadable_source_does_not_stop_the_run(tmp_path: Path) -> None:
    descriptors = _descriptors(tmp_path / "card", [b"one", b"two"])
    descriptors[0].abs_path.unlink()

    entries = CopyPipeline(Hasher()).copy_all(descriptors, tmp_path / "project")

    assert [entry.status for entry in entries] == ["error", "copied"]
    assert entries[0].error


def test_mirror_copies_from_primary(tmp_path: Path) -> None:
    descriptors = _descriptors(tmp_path / "card", [b"one", b"two"])
    pipeline = CopyPipeline(Hasher())
    entries = pipeline.copy_all(descriptors, tmp_path / "project")
    events = []

    failures = pipeline.mirror(entries, tmp_path / "project", tmp_path / "backup", on_progress=events.append)

    assert failures == 0
    assert [entry.backup_status for entry in entries] == ["copied", "copied"]
    assert (tmp_path / "backup" / entries[1].dst_rel).read_bytes() == b"two"
    assert [event.type for event in events] == ["ingest.backup.copy.progress"] * 2


def test_join_rel_drops_empty_parts() -> None:
    assert join_rel("", "RAW", "DCIM/IMG.jpg") == "RAW/DCIM/IMG.jpg"
