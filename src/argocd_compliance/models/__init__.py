"""Data models for parsed manifests, rule metadata and findings."""

from .document import Document, ResourceKind
from .finding import (
    SEVERITY_ORDER,
    ConfiguredRule,
    Finding,
    FindingBuilder,
    RuleMetadata,
    Severity,
    Suggestion,
    higher_severity,
    sort_findings,
)

__all__ = [
    "SEVERITY_ORDER",
    "ConfiguredRule",
    "Document",
    "Finding",
    "FindingBuilder",
    "ResourceKind",
    "RuleMetadata",
    "Severity",
    "Suggestion",
    "higher_severity",
    "sort_findings",
]
