"""
Destination verification.
"""

from .verifier import Verifier, select_sentinel_files

__all__ = ["Verifier", "select_sentinel_files"]
