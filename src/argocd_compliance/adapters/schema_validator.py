"""Structural validation of Argo CD resources against embedded JSON schemas."""

from __future__ import annotations

import json
import logging
from importlib import resources
from typing import Any, Dict, List, Tuple

from jsonschema import Draft7Validator

from ..models import ConfiguredRule, Document, Finding, FindingBuilder, ResourceKind, RuleMetadata, Severity

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "v2.9"
SUPPORTED_VERSIONS = ("v2.8", "v2.9")

_SCHEMA_FILES = {
    ResourceKind.APPLICATION: "application.json",
    ResourceKind.APPLICATION_SET: "applicationset.json",
}


class SchemaError(RuntimeError):
    """Raised when a schema version is unsupported or a schema cannot be loaded."""


def resolve_version(version: str | None) -> str:
    """Normalise ``version`` (``2.8``, ``v2.8.4``, ``argocd-v2.8``) to a schema directory name."""

    value = (version or "").strip().lower()
    if value.startswith("argocd-"):
        value = value[len("argocd-") :]
    if not value:
        return DEFAULT_VERSION
    parts = value.lstrip("v").split(".")
    candidate = "v" + ".".join(parts[:2])
    if candidate not in SUPPORTED_VERSIONS:
        raise SchemaError(f"unsupported argocd version {version!r}")
    return candidate


class SchemaValidator:
    """Validate Application and ApplicationSet documents with ``jsonschema``."""

    def __init__(self, version: str | None = None) -> None:
        self.version = resolve_version(version)
        self._validators: Dict[ResourceKind, Draft7Validator] = {}
        self._rules: Dict[ResourceKind, ConfiguredRule] = {}
        for kind, filename in _SCHEMA_FILES.items():
            self._validators[kind] = Draft7Validator(self._load_schema(filename))
            self._rules[kind] = ConfiguredRule.from_defaults(self._metadata_for(kind))
        logger.debug("loaded Argo CD %s schemas", self.version)

    # ------------------------------------------------------------------
    def metadata(self) -> List[RuleMetadata]:
        return [rule.metadata for rule in self._rules.values()]

    # ------------------------------------------------------------------
    def validate(self, document: Document) -> List[Finding]:
        kind = _kind_of(document)
        if kind is None:
            return []
        validator = self._validators[kind]
        errors = sorted(validator.iter_errors(document.obj), key=_error_sort_key)
        if not errors:
            return []

        builder = FindingBuilder.for_document(self._rules[kind], document, line=document.line)
        return [builder.new(_describe(error), Severity.ERROR) for error in errors]

    # ------------------------------------------------------------------
    def _load_schema(self, filename: str) -> Dict[str, Any]:
        resource = resources.files("argocd_compliance.adapters") / "schemas" / self.version / filename
        try:
            return json.loads(resource.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise SchemaError(f"load {filename} schema for {self.version}: {exc}") from exc

    def _metadata_for(self, kind: ResourceKind) -> RuleMetadata:
        label = "Application" if kind is ResourceKind.APPLICATION else "ApplicationSet"
        return RuleMetadata(
            id=f"SCHEMA_{label.upper()}",
            description=f"{label} manifest must satisfy the Argo CD {label} CRD schema ({self.version})",
            default_severity=Severity.ERROR,
            applies_to=(kind,),
            category="schema",
        )


def _kind_of(document: Document) -> ResourceKind | None:
    for kind in _SCHEMA_FILES:
        if document.is_kind(kind):
            return kind
    return None


def _error_path(error: Any) -> str:
    return ".".join(str(part) for part in error.absolute_path) or "(root)"


def _error_sort_key(error: Any) -> Tuple[str, str]:
    return (_error_path(error), error.message)


def _describe(error: Any) -> str:
    return f"{_error_path(error)}: {error.message}"


__all__ = ["SchemaError", "SchemaValidator", "resolve_version"]
