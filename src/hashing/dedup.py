"""
Run-scoped content-addressed duplicate index.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class DedupIndex:
    """Map each digest to the first destination written with it."""

    _first_by_digest: Dict[str, str] = field(default_factory=dict, init=False, repr=False)
    duplicate_count: int = field(default=0, init=False)
    bytes_saved: int = field(default=0, init=False)

    def lookup(self, digest: str) -> Optional[str]:
        return self._first_by_digest.get(digest)

    def record(self, digest: str, dst_rel: str) -> None:
        """Remember ``dst_rel`` unless an earlier path already owns the digest."""
        if digest:
            self._first_by_digest.setdefault(digest, dst_rel)

    def credit(self, size: int) -> None:
        self.duplicate_count += 1
        self.bytes_saved += size

    def __len__(self) -> int:
        return len(self._first_by_digest)
