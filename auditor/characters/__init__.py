"""Personas the audit agent can be started as."""

from auditor.characters.loader import load_characters
from auditor.characters.presets import (
    get_issue_comment_master,
    get_learning_audit_master,
    get_secure_audit_master,
)

__all__ = [
    "get_issue_comment_master",
    "get_learning_audit_master",
    "get_secure_audit_master",
    "load_characters",
]
