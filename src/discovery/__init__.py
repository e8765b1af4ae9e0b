"""
Source file discovery.
"""

from .scanner import Scanner, suggest_project_name

__all__ = ["Scanner", "suggest_project_name"]
