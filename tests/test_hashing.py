import hashlib
from pathlib import Path

import pytest

from hashing.copier import PARTIAL_SUFFIX, copy_file_with_hash
from hashing.dedup import DedupIndex
from hashing.hasher import DIGEST_HEX_LENGTHS, Hasher


def test_full_hash_matches_sha256(tmp_path: Path) -> None:
    path = tmp_path / "small.bin"
    content = b"hash me"
    path.write_bytes(content)

    hasher = Hasher("sha256", chunk_bytes=4)

    assert hasher.hash_file(path) == hashlib.sha256(content).hexdigest()


@pytest.mark.parametrize("algorithm", ["sha256", "sha512", "blake3"])
def test_digest_length_and_determinism(tmp_path: Path, algorithm: str) -> None:
    path = tmp_path / "frame.cr3"
    path.write_bytes(b"\x00\x01raw bytes" * 1000)
    hasher = Hasher(algorithm, chunk_bytes=64)

    first = hasher.hash_file(path)

    assert len(first) == DIGEST_HEX_LENGTHS[algorithm]
    assert first == hasher.hash_file(path)
    assert first == hasher.hash_bytes(path.read_bytes())


def test_hash_changes_with_content(tmp_path: Path) -> None:
    path = tmp_path / "large.bin"
    content = bytearray(b"0123456789" * 5)
    path.write_bytes(content)
    hasher = Hasher("sha256", chunk_bytes=4)
    original = hasher.hash_file(path)

    content[25] ^= 0xFF
    path.write_bytes(content)

    assert hasher.hash_file(path) != original


def test_unknown_algorithm_rejected() -> None:
    with pytest.raises(ValueError):
        Hasher("md5")


def test_copy_with_hash_writes_destination(tmp_path: Path) -> None:
    source = tmp_path / "src.jpg"
    source.write_bytes(b"jpeg bytes" * 100)
    destination = tmp_path / "out" / "nested" / "src.jpg"
    hasher = Hasher("sha256", chunk_bytes=7)

    result = copy_file_with_hash(source, destination, hasher)

    assert result.status == "copied"
    assert result.bytes == 1000
    assert result.hash == hashlib.sha256(source.read_bytes()).hexdigest()
    assert destination.read_bytes() == source.read_bytes()
    assert not destination.with_name(destination.name + PARTIAL_SUFFIX).exists()


def test_copy_skips_existing_without_hashing(tmp_path: Path) -> None:
    source = tmp_path / "src.jpg"
    source.write_bytes(b"new content")
    destination = tmp_path / "dst.jpg"
    destination.write_bytes(b"old")

    result = copy_file_with_hash(source, destination, Hasher())

    assert result.status == "skipped_exists"
    assert result.hash == ""
    assert result.bytes == 3
    assert destination.read_bytes() == b"old"


def test_copy_overwrites_when_requested(tmp_path: Path) -> None:
    source = tmp_path / "src.jpg"
    source.write_bytes(b"new content")
    destination = tmp_path / "dst.jpg"
    destination.write_bytes(b"old")

    result = copy_file_with_hash(source, destination, Hasher(), overwrite=True)

    assert result.status == "copied"
    assert destination.read_bytes() == b"new content"


def test_copy_error_is_reported_not_raised(tmp_path: Path) -> None:
    result = copy_file_with_hash(tmp_path / "missing.jpg", tmp_path / "dst.jpg", Hasher())

    assert result.status == "error"
    assert result.error
    assert not (tmp_path / "dst.jpg").exists()
    assert not (tmp_path / f"dst.jpg{PARTIAL_SUFFIX}").exists()


def test_dedup_index_keeps_first_path() -> None:
    index = DedupIndex()
    index.record("abc", "A/one.jpg")
    index.record("abc", "B/two.jpg")
    index.credit(10)
    index.credit(5)

    assert index.lookup("abc") == "A/one.jpg"
    assert index.lookup("def") is None
    assert index.duplicate_count == 2
    assert index.bytes_saved == 15
