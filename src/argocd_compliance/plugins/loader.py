"""Discover, load and evaluate Rego policy modules as lint rules."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Sequence, Tuple

from ..adapters.policy_engine import CompiledPolicy, OPAPolicyEngine, PolicyEngine, PolicyEvaluationError
from ..models import ConfiguredRule, Document, Finding, ResourceKind, RuleMetadata, Severity, Suggestion
from ..rules.base import RuleContext

logger = logging.getLogger(__name__)

POLICY_SUFFIX = ".rego"
DEFAULT_MESSAGE = "violation"


class PluginLoadError(RuntimeError):
    """Raised when policy modules cannot be discovered or their metadata is invalid."""


@dataclass(slots=True, frozen=True)
class MetadataRecord:
    """Metadata declared by one discovered policy module."""

    source: str
    metadata: RuleMetadata


@dataclass(slots=True, frozen=True)
class PolicyPlugin:
    """A loaded policy module usable wherever a built-in rule is."""

    policy: CompiledPolicy
    metadata: RuleMetadata
    engine: PolicyEngine = field(compare=False, repr=False)

    @property
    def source(self) -> str:
        return self.policy.source

    # ------------------------------------------------------------------
    def applies(self, document: Document) -> bool:
        if not self.metadata.applies_to:
            return True
        return document.is_kind(*self.metadata.applies_to)

    # ------------------------------------------------------------------
    def check(self, document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]:
        """Evaluate ``applies`` (when declared) and ``deny`` against ``document``."""

        input_data = document.to_input()
        if self.policy.defines("applies"):
            if self.engine.query(self.policy, "applies", input_data) is not True:
                return []
        raw = self.engine.query(self.policy, "deny", input_data)
        return [self._to_finding(entry, document, rule) for entry in violation_objects(raw, self.source)]

    # ------------------------------------------------------------------
    def _to_finding(self, entry: Mapping[str, Any], document: Document, rule: ConfiguredRule) -> Finding:
        severity = rule.severity
        raw_severity = _text(entry.get("severity"))
        if raw_severity:
            try:
                severity = Severity(raw_severity.lower())
            except ValueError as exc:
                raise PolicyEvaluationError(
                    f"{self.source}: unknown severity {raw_severity!r} in deny result"
                ) from exc

        return Finding(
            rule_id=_text(entry.get("rule_id")) or self.metadata.id,
            message=_text(entry.get("message")) or DEFAULT_MESSAGE,
            severity=severity,
            file_path=_text(entry.get("file")) or document.file_path,
            line=_number(entry.get("line"), document.line),
            column=_number(entry.get("column"), document.column),
            resource_name=_text(entry.get("resource_name")) or document.name,
            resource_kind=_text(entry.get("resource_kind")) or document.kind,
            category=_text(entry.get("category")) or self.metadata.category,
            help_url=_text(entry.get("help_url")) or self.metadata.help_url,
            suggestions=_suggestions(entry.get("suggestions"), self.source),
        )


def violation_objects(value: Any, source: str) -> List[Mapping[str, Any]]:
    """Normalise a ``deny`` result to a list of objects."""

    if value is None:
        return []
    if isinstance(value, Mapping):
        return [value]
    if isinstance(value, list):
        for item in value:
            if not isinstance(item, Mapping):
                raise PolicyEvaluationError(
                    f"{source}: finding must be object, got {type(item).__name__}"
                )
        return list(value)
    raise PolicyEvaluationError(
        f"{source}: deny must return objects or an array of objects, got {type(value).__name__}"
    )


class PolicyLoader:
    """Resolve policy paths to ``.rego`` files and instantiate plugins from them."""

    def __init__(self, paths: Iterable[str | os.PathLike[str]], engine: PolicyEngine | None = None) -> None:
        self.engine = engine or OPAPolicyEngine()
        self.files, self.missing = resolve_policy_files(paths)

    # ------------------------------------------------------------------
    def load(self) -> List[PolicyPlugin]:
        if self.missing:
            raise PluginLoadError(f"missing plugin paths: {', '.join(self.missing)}")
        plugins = [self.load_file(path) for path in self.files]
        logger.debug("loaded %d policy plugins", len(plugins))
        return plugins

    # ------------------------------------------------------------------
    def load_file(self, path: str) -> PolicyPlugin:
        try:
            policy = self.engine.compile(path)
            if not policy.defines("metadata"):
                raise PluginLoadError(f"load policy {path}: metadata rule is required")
            if not policy.defines("deny"):
                raise PluginLoadError(f"load policy {path}: deny rule is required")
            raw = self.engine.query(policy, "metadata")
        except PolicyEvaluationError as exc:
            raise PluginLoadError(f"load policy {path}: {exc}") from exc
        return PolicyPlugin(policy=policy, metadata=parse_metadata(raw, path), engine=self.engine)


def resolve_policy_files(paths: Iterable[str | os.PathLike[str]]) -> Tuple[List[str], List[str]]:
    """Return ``(files, missing)``: sorted unique ``.rego`` files and unresolvable paths."""

    files: set[str] = set()
    missing: set[str] = set()
    for raw in paths:
        if not str(raw).strip():
            continue
        path = Path(raw).resolve()
        if path.is_dir():
            files.update(str(candidate) for candidate in path.rglob(f"*{POLICY_SUFFIX}") if candidate.is_file())
        elif path.is_file():
            if path.suffix == POLICY_SUFFIX:
                files.add(str(path))
        else:
            missing.add(str(path))
    return sorted(files), sorted(missing)


def parse_metadata(raw: Any, source: str) -> RuleMetadata:
    """Validate the object returned by a module's ``metadata`` rule."""

    if raw is None:
        raise PluginLoadError(f"{source}: metadata query returned no results")
    if not isinstance(raw, Mapping):
        raise PluginLoadError(f"{source}: metadata must be an object")

    rule_id = _text(raw.get("id")).strip()
    if not rule_id:
        raise PluginLoadError(f"{source}: metadata.id is required")

    severity_value = _text(raw.get("severity")).strip()
    try:
        severity = Severity(severity_value.lower()) if severity_value else Severity.WARN
    except ValueError as exc:
        raise PluginLoadError(f"{source}: unknown severity {severity_value!r} for {rule_id}") from exc

    kinds: List[ResourceKind] = []
    for item in raw.get("applies_to") or []:
        try:
            kinds.append(ResourceKind(str(item)))
        except ValueError as exc:
            raise PluginLoadError(f"{source}: unknown kind {item!r} in applies_to") from exc

    enabled = raw.get("enabled")
    return RuleMetadata(
        id=rule_id,
        description=_text(raw.get("description")),
        default_severity=severity,
        applies_to=tuple(kinds),
        category=_text(raw.get("category")),
        help_url=_text(raw.get("help_url")),
        enabled=enabled if isinstance(enabled, bool) else True,
    )


def discover_metadata(
    paths: Sequence[str | os.PathLike[str]], engine: PolicyEngine | None = None
) -> Tuple[List[MetadataRecord], List[str]]:
    """Best-effort metadata listing: missing paths are returned instead of raised."""

    loader = PolicyLoader(paths, engine=engine)
    records = [
        MetadataRecord(source=plugin.source, metadata=plugin.metadata)
        for plugin in (loader.load_file(path) for path in loader.files)
    ]
    records.sort(key=lambda record: (record.metadata.id, record.source))
    return records, loader.missing


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _number(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(value)


def _suggestions(value: Any, source: str) -> Tuple[Suggestion, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise PolicyEvaluationError(f"{source}: suggestions must be an array of objects")
    suggestions = []
    for item in value:
        if not isinstance(item, Mapping):
            raise PolicyEvaluationError(f"{source}: suggestion must be object, got {type(item).__name__}")
        suggestions.append(
            Suggestion(
                title=_text(item.get("title")),
                description=_text(item.get("description")),
                patch=_text(item.get("patch")),
                path=_text(item.get("path")),
            )
        )
    return tuple(suggestions)


__all__ = [
    "MetadataRecord",
    "PluginLoadError",
    "PolicyLoader",
    "PolicyPlugin",
    "discover_metadata",
    "parse_metadata",
    "resolve_policy_files",
    "violation_objects",
]
