"""Finding and rule metadata models shared across rules, adapters and reporting."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from .document import Document, ResourceKind


class Severity(str, Enum):
    """Severity levels supported by the linter."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"


SEVERITY_ORDER = {
    Severity.INFO: 0,
    Severity.WARN: 1,
    Severity.ERROR: 2,
}


def higher_severity(a: Severity, b: Severity) -> Severity:
    """Return the more severe of ``a`` and ``b``."""

    return a if SEVERITY_ORDER[a] >= SEVERITY_ORDER[b] else b


@dataclass(slots=True, frozen=True)
class Suggestion:
    """Optional remediation attached to a finding."""

    title: str
    description: str = ""
    patch: str = ""
    path: str = ""


@dataclass(slots=True, frozen=True)
class Finding:
    """A single rule violation reported to users."""

    rule_id: str
    message: str
    severity: Severity
    file_path: str = ""
    line: int = 0
    column: int = 0
    resource_name: str = ""
    resource_kind: str = ""
    category: str = ""
    help_url: str = ""
    suggestions: Tuple[Suggestion, ...] = ()

    def sort_key(self) -> tuple[str, int, str, str]:
        return (self.file_path, self.line, self.rule_id, self.message)


def sort_findings(findings: Iterable[Finding]) -> List[Finding]:
    """Order findings by file, line, rule and message."""

    return sorted(findings, key=Finding.sort_key)


@dataclass(slots=True, frozen=True)
class RuleMetadata:
    """Static identity of a rule."""

    id: str
    description: str
    default_severity: Severity
    applies_to: Tuple["ResourceKind", ...] = ()
    category: str = ""
    help_url: str = ""
    enabled: bool = True


@dataclass(slots=True, frozen=True)
class ConfiguredRule:
    """Severity and enablement of a rule after configuration is applied to one file."""

    metadata: RuleMetadata
    severity: Severity
    enabled: bool

    @classmethod
    def from_defaults(cls, metadata: RuleMetadata) -> "ConfiguredRule":
        return cls(metadata=metadata, severity=metadata.default_severity, enabled=metadata.enabled)


@dataclass(slots=True)
class FindingBuilder:
    """Stamp findings with the rule and document they belong to."""

    rule: ConfiguredRule
    file_path: str
    line: int = 0
    column: int = 0
    resource_name: str = ""
    resource_kind: str = ""

    @classmethod
    def for_document(
        cls, rule: ConfiguredRule, document: "Document", *, line: Optional[int] = None
    ) -> "FindingBuilder":
        return cls(
            rule=rule,
            file_path=document.file_path,
            line=document.metadata_line if line is None else line,
            resource_name=document.name,
            resource_kind=document.kind,
        )

    def new(
        self,
        message: str,
        severity: Severity | None = None,
        *,
        suggestions: Iterable[Suggestion] = (),
    ) -> Finding:
        """Create a finding; ``severity`` defaults to the configured severity."""

        return Finding(
            rule_id=self.rule.metadata.id,
            message=message,
            severity=severity or self.rule.severity,
            file_path=self.file_path,
            line=self.line,
            column=self.column,
            resource_name=self.resource_name,
            resource_kind=self.resource_kind,
            category=self.rule.metadata.category,
            help_url=self.rule.metadata.help_url,
            suggestions=tuple(suggestions),
        )
