"""Rule definitions and helpers for walking decoded manifests."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Sequence

from ..config import LintConfig
from ..models import ConfiguredRule, Document, Finding, ResourceKind, RuleMetadata

CheckFn = Callable[[Document, "RuleContext", ConfiguredRule], List[Finding]]
AppliesFn = Callable[[Document], bool]


@dataclass(slots=True, frozen=True)
class RuleContext:
    """Run-wide data available to every check."""

    config: LintConfig
    documents: Sequence[Document] = field(default_factory=tuple)


@dataclass(slots=True, frozen=True)
class Rule:
    """A compiled rule: metadata, an applicability predicate and a pure check."""

    metadata: RuleMetadata
    check_fn: CheckFn
    applies_fn: AppliesFn | None = None

    def applies(self, document: Document) -> bool:
        if self.applies_fn is not None:
            return self.applies_fn(document)
        if self.metadata.applies_to:
            return document.is_kind(*self.metadata.applies_to)
        return True

    def check(self, document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]:
        return list(self.check_fn(document, context, rule))


def applies_to_kinds(*kinds: ResourceKind) -> AppliesFn:
    return lambda document: document.is_kind(*kinds)


# Accessors -------------------------------------------------------------------
def get_map(obj: Mapping[str, Any] | None, *path: str) -> Dict[str, Any]:
    """Follow ``path`` through nested mappings, returning ``{}`` when absent."""

    current: Any = obj
    for key in path:
        if not isinstance(current, Mapping):
            return {}
        current = current.get(key)
    if not isinstance(current, Mapping):
        return {}
    return dict(current)


def get_list(obj: Mapping[str, Any] | None, *path: str) -> List[Any]:
    if not path:
        return []
    parent = get_map(obj, *path[:-1])
    value = parent.get(path[-1])
    if isinstance(value, list):
        return value
    return []


def get_str(obj: Mapping[str, Any] | None, *path: str) -> str:
    if not path:
        return ""
    parent = get_map(obj, *path[:-1])
    value = parent.get(path[-1])
    if isinstance(value, str):
        return value
    return ""


def string_items(items: Sequence[Any]) -> List[str]:
    """Non-empty, stripped string entries of ``items``."""

    return [item.strip() for item in items if isinstance(item, str) and item.strip()]


def glob_match(pattern: str, value: str) -> bool:
    """Match ``value`` against a ``*``/``?`` wildcard pattern."""

    pattern = pattern.strip()
    if not pattern:
        return False
    if pattern == "*":
        return True
    translated = "".join(
        ".*" if char == "*" else "." if char == "?" else re.escape(char) for char in pattern
    )
    return re.fullmatch(translated, value) is not None


# Document shapes ------------------------------------------------------------
def application_sources(document: Document) -> List[Dict[str, Any]]:
    """Every source block declared by an Application or an ApplicationSet template."""

    if document.is_kind(ResourceKind.APPLICATION):
        spec = get_map(document.obj, "spec")
    elif document.is_kind(ResourceKind.APPLICATION_SET):
        spec = get_map(document.obj, "spec", "template", "spec")
    else:
        return []

    sources: List[Dict[str, Any]] = []
    source = get_map(spec, "source")
    if source:
        sources.append(source)
    sources.extend(dict(item) for item in get_list(spec, "sources") if isinstance(item, Mapping))
    return sources


def repo_urls(document: Document) -> List[str]:
    """Distinct repository URLs referenced by the document's sources, in declaration order."""

    seen: Dict[str, None] = {}
    for source in application_sources(document):
        url = get_str(source, "repoURL").strip()
        if url:
            seen.setdefault(url, None)
    return list(seen)


APPLICATION_SET_PROJECT_PATHS = (
    ("spec", "project"),
    ("spec", "template", "spec", "project"),
    ("spec", "applicationSpec", "project"),
    ("spec", "applicationCore", "project"),
)


def project_name(document: Document) -> str:
    """Project assigned to an Application or the first one found in an ApplicationSet."""

    if document.is_kind(ResourceKind.APPLICATION):
        return get_str(document.obj, "spec", "project").strip()
    if document.is_kind(ResourceKind.APPLICATION_SET):
        for path in APPLICATION_SET_PROJECT_PATHS:
            candidate = get_str(document.obj, *path).strip()
            if candidate:
                return candidate
    return ""
