"""
XMP sidecar writer for attribution metadata.

Original media bytes are never touched; attribution lives in ``<stem>.xmp``
next to the media file.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional
from xml.sax.saxutils import escape

SIDECAR_SUFFIX = ".xmp"

NS = {
    "x": "adobe:ns:meta/",
    "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "dc": "http://purl.org/dc/elements/1.1/",
    "xmpRights": "http://ns.adobe.com/xap/1.0/rights/",
    "photoshop": "http://ns.adobe.com/photoshop/1.0/",
}

_ATTR_ENTITIES = {'"': "&quot;", "'": "&apos;"}

logger = logging.getLogger("ingest")


@dataclass(frozen=True)
class XmpPatch:
    """Attribution fields; ``None`` leaves a field alone, ``""`` clears it."""

    creator: Optional[str] = None
    rights: Optional[str] = None
    web_statement: Optional[str] = None
    credit: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "XmpPatch":
        def pick(*keys: str) -> Optional[str]:
            for key in keys:
                if key in data and data[key] is not None:
                    return str(data[key])
            return None

        return cls(
            creator=pick("creator"),
            rights=pick("rights"),
            web_statement=pick("web_statement", "webStatement"),
            credit=pick("credit"),
        )

    def merged_over(self, existing: Optional["XmpPatch"]) -> "XmpPatch":
        """Overlay this patch on ``existing``; empty strings become cleared fields."""
        base = existing or XmpPatch()
        updates = {item.name: getattr(self, item.name) for item in fields(self) if getattr(self, item.name) is not None}
        merged = replace(base, **updates)
        cleared = {item.name: None for item in fields(merged) if getattr(merged, item.name) == ""}
        return replace(merged, **cleared) if cleared else merged


@dataclass(frozen=True)
class SidecarOutcome:
    written: bool
    sidecar_path: Path
    error: Optional[str] = None


def sidecar_path_for(media_path: Path) -> Path:
    return media_path.with_suffix(SIDECAR_SUFFIX)


def build_xmp_xml(patch: XmpPatch) -> str:
    attrs = []
    if patch.web_statement:
        attrs.append(f'   xmpRights:WebStatement="{escape(patch.web_statement, _ATTR_ENTITIES)}"')
    if patch.credit:
        attrs.append(f'   photoshop:Credit="{escape(patch.credit, _ATTR_ENTITIES)}"')

    elements = []
    if patch.rights:
        elements.append(
            "      <dc:rights>\n"
            "       <rdf:Alt>\n"
            f'        <rdf:li xml:lang="x-default">{escape(patch.rights)}</rdf:li>\n'
            "       </rdf:Alt>\n"
            "      </dc:rights>"
        )
    if patch.creator:
        elements.append(
            "      <dc:creator>\n"
            "       <rdf:Seq>\n"
            f"        <rdf:li>{escape(patch.creator)}</rdf:li>\n"
            "       </rdf:Seq>\n"
            "      </dc:creator>"
        )

    attr_block = ("\n" + "\n".join(attrs)) if attrs else ""
    element_block = ("\n" + "\n".join(elements) + "\n   ") if elements else ""
    return (
        '<?xpacket begin="\ufeff" id="W5M0MpCehiHzreSzNTczkc9d"?>\n'
        '<x:xmpmeta xmlns:x="adobe:ns:meta/">\n'
        ' <rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">\n'
        '  <rdf:Description rdf:about=""\n'
        '   xmlns:dc="http://purl.org/dc/elements/1.1/"\n'
        '   xmlns:xmpRights="http://ns.adobe.com/xap/1.0/rights/"\n'
        f'   xmlns:photoshop="http://ns.adobe.com/photoshop/1.0/"{attr_block}>{element_block}</rdf:Description>\n'
        " </rdf:RDF>\n"
        "</x:xmpmeta>\n"
        '<?xpacket end="w"?>\n'
    )


def _qualified(prefix: str, name: str) -> str:
    return f"{{{NS[prefix]}}}{name}"


def _attr_or_child(description: ET.Element, prefix: str, name: str) -> Optional[str]:
    value = description.get(_qualified(prefix, name))
    if value is None:
        child = description.find(f"{prefix}:{name}", NS)
        if child is not None and child.text:
            value = child.text.strip()
    return value or None


def read_xmp_sidecar(sidecar_path: Path) -> Optional[XmpPatch]:
    """Extract known fields from a sidecar; ``None`` if unreadable or unparseable."""
    try:
        root = ET.fromstring(sidecar_path.read_bytes())
    except (OSError, ET.ParseError):
        return None
    creator = rights = web_statement = credit = None
    for description in root.iter(_qualified("rdf", "Description")):
        item = description.find("dc:creator/rdf:Seq/rdf:li", NS)
        if item is not None and item.text and creator is None:
            creator = item.text.strip()
        item = description.find("dc:rights/rdf:Alt/rdf:li", NS)
        if item is not None and item.text and rights is None:
            rights = item.text.strip()
        web_statement = web_statement or _attr_or_child(description, "xmpRights", "WebStatement")
        credit = credit or _attr_or_child(description, "photoshop", "Credit")
    return XmpPatch(creator=creator, rights=rights, web_statement=web_statement, credit=credit)


def write_xmp_sidecar(media_path: Path, patch: XmpPatch) -> SidecarOutcome:
    """Write or merge the sidecar for ``media_path``. Never raises."""
    sidecar = sidecar_path_for(media_path)
    try:
        existing = read_xmp_sidecar(sidecar) if sidecar.exists() else None
        merged = patch.merged_over(existing)
        sidecar.write_text(build_xmp_xml(merged), encoding="utf-8")
        return SidecarOutcome(written=True, sidecar_path=sidecar)
    except (OSError, ValueError) as exc:
        logger.warning("Could not write sidecar %s: %s", sidecar, exc)
        return SidecarOutcome(written=False, sidecar_path=sidecar, error=str(exc))
