"""
Digest strategies and streaming file hashing.

The algorithm is chosen once per run; every component then receives the same
``Hasher`` and asks it for fresh digest objects.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Callable, Dict, Protocol

DEFAULT_CHUNK_BYTES = 4 * 1024 * 1024


class Digest(Protocol):
    def update(self, data: bytes) -> None: ...

    def hexdigest(self) -> str: ...


def _blake3_factory() -> Callable[[], Digest]:
    try:
        from blake3 import blake3
    except ImportError as exc:
        raise ValueError("blake3 hashing requires the 'blake3' package") from exc
    return blake3


ALGORITHMS: Dict[str, Callable[[], Callable[[], Digest]]] = {
    "sha256": lambda: hashlib.sha256,
    "sha512": lambda: hashlib.sha512,
    "blake3": _blake3_factory,
}

DIGEST_HEX_LENGTHS = {"sha256": 64, "sha512": 128, "blake3": 64}


class Hasher:
    """Digest factory bound to one algorithm plus streaming helpers."""

    def __init__(self, algorithm: str = "sha256", chunk_bytes: int = DEFAULT_CHUNK_BYTES) -> None:
        algorithm = algorithm.lower()
        if algorithm not in ALGORITHMS:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")
        self.algorithm = algorithm
        self.chunk_bytes = max(int(chunk_bytes), 1)
        self._factory = ALGORITHMS[algorithm]()

    @property
    def hex_length(self) -> int:
        return DIGEST_HEX_LENGTHS[self.algorithm]

    def new(self) -> Digest:
        return self._factory()

    def hash_bytes(self, data: bytes) -> str:
        digest = self.new()
        digest.update(data)
        return digest.hexdigest()

    def hash_file(self, path: Path) -> str:
        """Compute a full digest of a file in streaming mode."""
        digest = self.new()
        with path.open("rb") as handle:
            while True:
                data = handle.read(self.chunk_bytes)
                if not data:
                    break
                digest.update(data)
        return digest.hexdigest()
