"""
Built-in folder template presets.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Union

from templates.folder_template import (
    MEDIA_PHOTO,
    MEDIA_RAW,
    MEDIA_VIDEO,
    FolderTemplate,
    RoutingMatch,
    RoutingRule,
)

DELIVERY_SCAFFOLD = ["EXPORTS", "DELIVERY"]

PRESET_CLASSIC = FolderTemplate(
    template_id="preset:classic",
    name="Classic",
    description="Simple RAW/Exports/Delivery structure",
    is_preset=True,
    routing_rules=[RoutingRule(label="All files", dest_pattern="RAW")],
    scaffold_dirs=list(DELIVERY_SCAFFOLD),
)

PRESET_DATE_ORGANIZED = FolderTemplate(
    template_id="preset:date-organized",
    name="Date Organized",
    description="Files sorted by capture date into year/month-day folders",
    is_preset=True,
    routing_rules=[RoutingRule(label="All by date", dest_pattern="{YYYY}/{MM}-{DD}")],
    scaffold_dirs=list(DELIVERY_SCAFFOLD),
)

PRESET_MEDIA_SPLIT = FolderTemplate(
    template_id="preset:media-split",
    name="Media Split",
    description="Separate folders for RAW, photo, and video files",
    is_preset=True,
    routing_rules=[
        RoutingRule(label="RAW files", dest_pattern="RAW", match=RoutingMatch(media_type=MEDIA_RAW)),
        RoutingRule(label="Photo files", dest_pattern="PHOTO", match=RoutingMatch(media_type=MEDIA_PHOTO)),
        RoutingRule(label="Video files", dest_pattern="VIDEO", match=RoutingMatch(media_type=MEDIA_VIDEO)),
        RoutingRule(label="Other files", dest_pattern="OTHER"),
    ],
    scaffold_dirs=list(DELIVERY_SCAFFOLD),
)

PRESET_CAMERA_DATE = FolderTemplate(
    template_id="preset:camera-date",
    name="Camera + Date",
    description="Files organized by camera body and capture date",
    is_preset=True,
    routing_rules=[RoutingRule(label="All by camera+date", dest_pattern="{CAMERA_LABEL}/{YYYY}-{MM}-{DD}")],
    scaffold_dirs=list(DELIVERY_SCAFFOLD),
)

PRESET_WEDDING = FolderTemplate(
    template_id="preset:wedding",
    name="Wedding Pro",
    description="RAW by camera, video, and delivery folders",
    is_preset=True,
    routing_rules=[
        RoutingRule(
            label="RAW by camera", dest_pattern="RAW/{CAMERA_LABEL}", match=RoutingMatch(media_type=MEDIA_RAW)
        ),
        RoutingRule(label="Video files", dest_pattern="VIDEO", match=RoutingMatch(media_type=MEDIA_VIDEO)),
        RoutingRule(label="Other photos", dest_pattern="PHOTO"),
    ],
    scaffold_dirs=["EXPORTS/web", "EXPORTS/print", "DELIVERY"],
)

ALL_PRESETS = [
    PRESET_CLASSIC,
    PRESET_DATE_ORGANIZED,
    PRESET_MEDIA_SPLIT,
    PRESET_CAMERA_DATE,
    PRESET_WEDDING,
]
PRESETS_BY_ID: Dict[str, FolderTemplate] = {preset.template_id: preset for preset in ALL_PRESETS}


def resolve_template(value: Union[str, Mapping[str, Any], FolderTemplate]) -> FolderTemplate:
    """Turn a preset id, a mapping, or a template into a FolderTemplate."""
    if isinstance(value, FolderTemplate):
        return value
    if isinstance(value, str):
        key = value if value.startswith("preset:") else f"preset:{value}"
        if key not in PRESETS_BY_ID:
            raise KeyError(f"Unknown template preset: {value}")
        return PRESETS_BY_ID[key]
    return FolderTemplate.from_mapping(value)
