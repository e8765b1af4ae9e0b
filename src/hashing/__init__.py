"""
Hashing, copy-with-hash and duplicate tracking.
"""

from .copier import CopyResult, copy_file_with_hash
from .dedup import DedupIndex
from .hasher import DIGEST_HEX_LENGTHS, Hasher

__all__ = ["CopyResult", "DIGEST_HEX_LENGTHS", "DedupIndex", "Hasher", "copy_file_with_hash"]
