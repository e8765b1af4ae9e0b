"""
Folder templates: routing rules, token expansion, and validation.
"""

from .candidate import CandidateResult, validate_candidate_template
from .expand import ALLOWED_TOKENS, expand_template, validate_pattern
from .folder_template import MEDIA_PHOTO, MEDIA_RAW, MEDIA_TYPES, MEDIA_VIDEO, FolderTemplate, RoutingMatch, RoutingRule
from .presets import ALL_PRESETS, resolve_template
from .tokens import build_token_context
from .validate import TemplateReport, require_valid_template, validate_folder_template

__all__ = [
    "ALLOWED_TOKENS",
    "ALL_PRESETS",
    "CandidateResult",
    "FolderTemplate",
    "MEDIA_PHOTO",
    "MEDIA_RAW",
    "MEDIA_TYPES",
    "MEDIA_VIDEO",
    "RoutingMatch",
    "RoutingRule",
    "TemplateReport",
    "build_token_context",
    "expand_template",
    "require_valid_template",
    "resolve_template",
    "validate_candidate_template",
    "validate_folder_template",
    "validate_pattern",
]
