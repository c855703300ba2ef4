"""Document model produced by the manifest parser."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class ResourceKind(str, Enum):
    """Argo CD resource kinds understood by the linter."""

    APPLICATION = "Application"
    APPLICATION_SET = "ApplicationSet"
    APP_PROJECT = "AppProject"


SUPPORTED_API_VERSION = "argoproj.io/v1alpha1"


@dataclass(slots=True, frozen=True)
class Document:
    """One parsed Argo CD resource and the source position it came from."""

    file_path: str
    kind: str
    name: str = ""
    namespace: str = ""
    api_version: str = SUPPORTED_API_VERSION
    document_index: int = 0
    line: int = 0
    column: int = 0
    metadata_line: int = 0
    obj: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def resource_kind(self) -> ResourceKind:
        return ResourceKind(self.kind)

    def is_kind(self, *kinds: ResourceKind) -> bool:
        """Return ``True`` when the document is one of ``kinds``."""

        return any(self.kind == kind.value for kind in kinds)

    def to_input(self) -> Dict[str, Any]:
        """Normalized view handed to policy modules."""

        return {
            "file": self.file_path,
            "document_index": self.document_index,
            "kind": self.kind,
            "api_version": self.api_version,
            "name": self.name,
            "namespace": self.namespace,
            "line": self.line,
            "column": self.column,
            "metadata_line": self.metadata_line,
            "object": self.obj,
        }
