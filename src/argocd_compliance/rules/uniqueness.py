"""Cross-document name uniqueness."""

from __future__ import annotations

from typing import Dict, List

from ..models import Document, Finding, FindingBuilder, ResourceKind, RuleMetadata, Severity
from .base import RuleContext

UNIQUE_APPLICATION_NAMES = RuleMetadata(
    id="AR011",
    description="Application names must be unique across manifests",
    default_severity=Severity.ERROR,
    applies_to=(ResourceKind.APPLICATION,),
    category="consistency",
)


def unique_name_findings(context: RuleContext) -> List[Finding]:
    """Flag every Application whose name is declared by another Application in the run.

    Configuration is resolved per offending file, so disabling the rule for one
    path only drops that file's finding. Resolution errors propagate.
    """

    by_name: Dict[str, List[Document]] = {}
    for document in context.documents:
        if document.is_kind(ResourceKind.APPLICATION) and document.name:
            by_name.setdefault(document.name, []).append(document)

    findings: List[Finding] = []
    for name, documents in by_name.items():
        if len(documents) < 2:
            continue
        for document in documents:
            configured = context.config.resolve(UNIQUE_APPLICATION_NAMES, document.file_path)
            if not configured.enabled:
                continue
            builder = FindingBuilder.for_document(configured, document)
            findings.append(builder.new(f"Application name '{name}' is declared in multiple manifests"))
    return findings
