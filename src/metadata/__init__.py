"""
Capture metadata providers.
"""

from .extractor import EMPTY_METADATA, CaptureMetadata, ExifMetadataExtractor

__all__ = ["CaptureMetadata", "EMPTY_METADATA", "ExifMetadataExtractor"]
