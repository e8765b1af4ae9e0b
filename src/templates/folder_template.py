"""
Folder template model and routing-rule matching.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

MEDIA_RAW = "RAW"
MEDIA_PHOTO = "PHOTO"
MEDIA_VIDEO = "VIDEO"
MEDIA_TYPES = (MEDIA_RAW, MEDIA_PHOTO, MEDIA_VIDEO)


def normalize_extension(value: str) -> str:
    value = str(value).strip().lower()
    if value and not value.startswith("."):
        value = "." + value
    return value


@dataclass(frozen=True)
class RoutingMatch:
    """Predicate over a file's media type and/or extension."""

    media_type: Optional[str] = None
    extensions: FrozenSet[str] = frozenset()

    def accepts(self, media_type: str, ext: str) -> bool:
        if self.media_type is not None and self.media_type != media_type:
            return False
        if self.extensions and normalize_extension(ext) not in self.extensions:
            return False
        return self.media_type is not None or bool(self.extensions)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.media_type is not None:
            data["media_type"] = self.media_type
        if self.extensions:
            data["extensions"] = sorted(self.extensions)
        return data


@dataclass(frozen=True)
class RoutingRule:
    label: str
    dest_pattern: str
    match: Optional[RoutingMatch] = None

    @property
    def is_catch_all(self) -> bool:
        return self.match is None

    def matches(self, media_type: str, ext: str) -> bool:
        return self.match is None or self.match.accepts(media_type, ext)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"label": self.label, "dest_pattern": self.dest_pattern}
        if self.match is not None:
            data["match"] = self.match.to_dict()
        return data


@dataclass(frozen=True)
class FolderTemplate:
    """Ordered routing rules plus scaffold folders created for every run."""

    template_id: str
    name: str
    routing_rules: List[RoutingRule]
    description: str = ""
    is_preset: bool = False
    scaffold_dirs: List[str] = field(default_factory=list)
    token_defaults: Dict[str, str] = field(default_factory=dict)
    job_root_pattern: Optional[str] = None

    def find_rule(self, media_type: str, ext: str) -> RoutingRule:
        """Return the first rule accepting the file; falls back to the last rule."""
        for rule in self.routing_rules:
            if rule.matches(media_type, ext):
                return rule
        return self.routing_rules[-1]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "FolderTemplate":
        """Build a template from a plain mapping (YAML or JSON)."""
        rules = []
        for raw_rule in data.get("routing_rules") or []:
            match = None
            raw_match = raw_rule.get("match")
            if raw_match:
                media_type = raw_match.get("media_type")
                extensions = frozenset(
                    normalize_extension(ext) for ext in raw_match.get("extensions") or [] if str(ext).strip()
                )
                match = RoutingMatch(media_type=str(media_type) if media_type else None, extensions=extensions)
            rules.append(
                RoutingRule(
                    label=str(raw_rule.get("label", "")),
                    dest_pattern=str(raw_rule.get("dest_pattern", "")),
                    match=match,
                )
            )
        return cls(
            template_id=str(data.get("template_id", "")),
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            is_preset=bool(data.get("is_preset", False)),
            routing_rules=rules,
            scaffold_dirs=[str(item) for item in data.get("scaffold_dirs") or []],
            token_defaults={str(k): str(v) for k, v in (data.get("token_defaults") or {}).items()},
            job_root_pattern=data.get("job_root_pattern") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "template_id": self.template_id,
            "name": self.name,
            "description": self.description,
            "is_preset": self.is_preset,
            "routing_rules": [rule.to_dict() for rule in self.routing_rules],
            "scaffold_dirs": list(self.scaffold_dirs),
            "token_defaults": dict(self.token_defaults),
        }
        if self.job_root_pattern:
            data["job_root_pattern"] = self.job_root_pattern
        return data
