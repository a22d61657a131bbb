"""
Changelog support: structural diffing and audit entries.
"""

from .builder import ChangelogBuilder, ChangelogEntry, RequestContext, create_changelog, utc_now
from .diff import ArrayChange, Deleted, Edit, Edited, New, apply_edits, diff, edit_from_dict

__all__ = [
    # Diff
    "Edit",
    "New",
    "Deleted",
    "Edited",
    "ArrayChange",
    "diff",
    "apply_edits",
    "edit_from_dict",
    # Changelog
    "RequestContext",
    "ChangelogEntry",
    "ChangelogBuilder",
    "create_changelog",
    "utc_now",
]
