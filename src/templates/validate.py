"""
Authoring-time validation for folder templates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from ingest.errors import TemplateValidationError
from templates.expand import TOKEN_RE, validate_pattern
from templates.folder_template import MEDIA_TYPES, FolderTemplate

MAX_FOLDER_DEPTH = 10


@dataclass
class TemplateReport:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _depth(pattern: str) -> int:
    return len(pattern.replace("\\", "/").split("/"))


def _check_pattern(label: str, pattern: str, report: TemplateReport) -> None:
    for error in validate_pattern(pattern):
        report.errors.append(f"{label}: {error}")
    if pattern.startswith(("/", "\\")):
        report.errors.append(f"{label}: must not be an absolute path")
    if any(segment in (".", "..") for segment in pattern.replace("\\", "/").split("/")):
        report.errors.append(f"{label}: must not contain path traversal")
    if _depth(pattern) > MAX_FOLDER_DEPTH:
        report.errors.append(f"{label}: exceeds max folder depth of {MAX_FOLDER_DEPTH}")


def validate_folder_template(template: FolderTemplate) -> TemplateReport:
    """Collect errors and warnings for a template without raising."""
    report = TemplateReport()
    if not template.template_id:
        report.errors.append("template_id is required")
    if not template.name:
        report.errors.append("name is required")

    if not template.routing_rules:
        report.errors.append("At least one routing rule is required")
    else:
        for index, rule in enumerate(template.routing_rules):
            prefix = f"routing_rules[{index}]"
            if not rule.label:
                report.errors.append(f"{prefix}: label is required")
            if not rule.dest_pattern:
                report.errors.append(f"{prefix}: dest_pattern is required")
            else:
                _check_pattern(f"{prefix}.dest_pattern", rule.dest_pattern, report)
            if rule.match is not None:
                if rule.match.media_type is not None and rule.match.media_type not in MEDIA_TYPES:
                    report.errors.append(f"{prefix}.match: unknown media_type {rule.match.media_type}")
                if rule.match.media_type is None and not rule.match.extensions:
                    report.errors.append(f"{prefix}.match: must name a media_type or extensions")
        if not template.routing_rules[-1].is_catch_all:
            report.warnings.append("Last routing rule should be a catch-all (no match condition)")

    if template.job_root_pattern:
        _check_pattern("job_root_pattern", template.job_root_pattern, report)

    for index, directory in enumerate(template.scaffold_dirs):
        prefix = f"scaffold_dirs[{index}]"
        if TOKEN_RE.search(directory):
            report.errors.append(f"{prefix}: must not contain tokens")
        if directory.startswith(("/", "\\")):
            report.errors.append(f"{prefix}: must not be an absolute path")
        if ".." in directory:
            report.errors.append(f"{prefix}: must not contain path traversal")
        if _depth(directory) > MAX_FOLDER_DEPTH:
            report.errors.append(f"{prefix}: exceeds max folder depth of {MAX_FOLDER_DEPTH}")
    return report


def require_valid_template(template: FolderTemplate) -> List[str]:
    """Raise TemplateValidationError on errors; return warnings otherwise."""
    report = validate_folder_template(template)
    if not report.ok:
        raise TemplateValidationError(report.errors)
    return report.warnings
