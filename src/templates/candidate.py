"""
Validation of loosely-typed candidate templates from external generators.

A candidate is untrusted input; it is normalised here and must then pass the
same validation as any hand-written template.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Optional

from templates.folder_template import MEDIA_TYPES, FolderTemplate, RoutingMatch, RoutingRule, normalize_extension
from templates.validate import validate_folder_template

RETRY = "Please try again."


@dataclass(frozen=True)
class CandidateResult:
    template: Optional[FolderTemplate] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.template is not None


def _fail(message: str) -> CandidateResult:
    return CandidateResult(error=f"{message} {RETRY}")


def _unsafe(path: str) -> bool:
    return ".." in path or path.startswith(("/", "\\"))


def validate_candidate_template(value: Any) -> CandidateResult:
    """Check a generated layout and return a template or a user-facing error."""
    if not isinstance(value, dict):
        return _fail("The layout could not be understood.")
    name = value.get("name")
    if not isinstance(name, str) or not name.strip():
        return _fail("The generated layout is missing a name.")
    description = value.get("description")
    if not isinstance(description, str):
        return _fail("The generated layout is missing a description.")

    raw_rules = value.get("routing_rules")
    if not isinstance(raw_rules, list) or not raw_rules:
        return _fail("The layout needs at least one folder rule.")

    rules = []
    for index, raw_rule in enumerate(raw_rules, start=1):
        if not isinstance(raw_rule, dict):
            return _fail("One of the folder rules is not valid.")
        label = raw_rule.get("label")
        if not isinstance(label, str) or not label.strip():
            return _fail(f"Folder rule {index} is missing a name.")
        pattern = raw_rule.get("dest_pattern")
        if not isinstance(pattern, str) or not pattern.strip():
            return _fail(f'Folder rule "{label}" is missing a destination.')
        if _unsafe(pattern):
            return _fail("The layout contains unsafe folder paths.")

        match = None
        raw_match = raw_rule.get("match")
        if raw_match is not None:
            if not isinstance(raw_match, dict):
                return _fail(f'Folder rule "{label}" has an invalid filter.')
            media_type = raw_match.get("media_type")
            if media_type is not None and media_type not in MEDIA_TYPES:
                return _fail(f'Folder rule "{label}" has an unrecognized file type.')
            extensions = raw_match.get("extensions")
            if extensions is not None and (
                not isinstance(extensions, list) or any(not isinstance(ext, str) for ext in extensions)
            ):
                return _fail(f'Folder rule "{label}" has invalid file extensions.')
            if media_type is not None or extensions:
                match = RoutingMatch(
                    media_type=media_type,
                    extensions=frozenset(normalize_extension(ext) for ext in extensions or [] if ext.strip()),
                )
        rules.append(RoutingRule(label=label.strip(), dest_pattern=pattern.strip(), match=match))

    scaffold = value.get("scaffold_dirs")
    if not isinstance(scaffold, list):
        scaffold = []
    for directory in scaffold:
        if not isinstance(directory, str):
            return _fail("One of the extra folders is not valid.")
        if _unsafe(directory):
            return _fail("The layout contains unsafe folder paths.")

    defaults = value.get("token_defaults")
    if not isinstance(defaults, dict):
        defaults = {}
    job_root = value.get("job_root_pattern")

    template = FolderTemplate(
        template_id=f"custom:{uuid.uuid4()}",
        name=name.strip(),
        description=description.strip(),
        routing_rules=rules,
        scaffold_dirs=[directory.strip() for directory in scaffold if directory.strip()],
        token_defaults={str(k): str(v) for k, v in defaults.items() if isinstance(v, (str, int, float))},
        job_root_pattern=job_root.strip() if isinstance(job_root, str) and job_root.strip() else None,
    )
    report = validate_folder_template(template)
    if not report.ok:
        return _fail("The layout uses folder names that are not allowed.")
    return CandidateResult(template=template)
