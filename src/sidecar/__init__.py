"""
Sidecar metadata writers.
"""

from .xmp import SidecarOutcome, XmpPatch, build_xmp_xml, read_xmp_sidecar, write_xmp_sidecar

__all__ = ["SidecarOutcome", "XmpPatch", "build_xmp_xml", "read_xmp_sidecar", "write_xmp_sidecar"]
