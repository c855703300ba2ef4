"""Built-in rule registry."""

from typing import List

from .base import Rule, RuleContext, applies_to_kinds
from .builtin import document_rules
from .governance import governance_rules
from .uniqueness import UNIQUE_APPLICATION_NAMES, unique_name_findings


def default_rules() -> List[Rule]:
    """Return the per-document built-in rules in ID order."""

    return sorted(document_rules() + governance_rules(), key=lambda rule: rule.metadata.id)


__all__ = [
    "Rule",
    "RuleContext",
    "UNIQUE_APPLICATION_NAMES",
    "applies_to_kinds",
    "default_rules",
    "unique_name_findings",
]
