"""Discover manifest files and parse them into :class:`Document` objects."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

import yaml

from ..models import Document, ResourceKind
from ..models.document import SUPPORTED_API_VERSION

logger = logging.getLogger(__name__)

MANIFEST_SUFFIXES = (".yaml", ".yml", ".json")
SUPPORTED_KINDS = frozenset(kind.value for kind in ResourceKind)


class ManifestError(RuntimeError):
    """Raised when manifests cannot be discovered, read or decoded."""


def is_manifest_file(path: str | os.PathLike[str]) -> bool:
    return str(path).lower().endswith(MANIFEST_SUFFIXES)


def discover_files(target: str | os.PathLike[str]) -> List[str]:
    """Return the manifest files under ``target`` in sorted order.

    Hidden sub-directories are skipped. A file target must itself look like a
    manifest.
    """

    root = Path(target)
    if not root.exists():
        raise ManifestError(f"Manifest target not found: {root}")
    if not root.is_dir():
        if is_manifest_file(root):
            return [str(root)]
        raise ManifestError(f"file {root} is not a YAML/JSON manifest")

    files: List[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if not name.startswith("."))
        for filename in sorted(filenames):
            if is_manifest_file(filename):
                files.append(os.path.join(dirpath, filename))
    files.sort()
    logger.debug("discovered %d manifest files under %s", len(files), root)
    return files


def is_supported(kind: str, api_version: str) -> bool:
    return kind in SUPPORTED_KINDS and api_version == SUPPORTED_API_VERSION


class ManifestParser:
    """Parse multi-document YAML (and JSON) files, keeping source positions."""

    def parse_file(self, path: str | os.PathLike[str]) -> List[Document]:
        file_path = str(path)
        try:
            text = Path(file_path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ManifestError(f"read manifest {file_path}: {exc}") from exc
        return self.parse_text(text, file_path)

    # ------------------------------------------------------------------
    def parse_text(self, text: str, file_path: str) -> List[Document]:
        documents: List[Document] = []
        loader = yaml.SafeLoader(text)
        try:
            index = 0
            while loader.check_node():
                node = loader.get_node()
                data = loader.construct_document(node)
                if data is None:
                    continue
                if not isinstance(data, Mapping):
                    raise ManifestError(
                        f"decode manifest {file_path}: document {index} is not a mapping"
                    )
                document = self._build_document(file_path, index, node, data)
                if document is not None:
                    documents.append(document)
                index += 1
        except yaml.YAMLError as exc:
            raise ManifestError(f"decode manifest {file_path}: {exc}") from exc
        finally:
            loader.dispose()
        return documents

    # ------------------------------------------------------------------
    def _build_document(
        self, file_path: str, index: int, node: yaml.Node, data: Mapping[str, Any]
    ) -> Optional[Document]:
        kind = _string(data.get("kind"))
        api_version = _string(data.get("apiVersion"))
        if not is_supported(kind, api_version):
            return None
        metadata = data.get("metadata")
        if not isinstance(metadata, Mapping):
            metadata = {}
        return Document(
            file_path=file_path,
            kind=kind,
            name=_string(metadata.get("name")),
            namespace=_string(metadata.get("namespace")),
            api_version=api_version,
            document_index=index,
            line=node.start_mark.line + 1,
            column=node.start_mark.column + 1,
            metadata_line=find_line(node, ("metadata", "name")),
            obj=dict(data),
        )


def find_line(node: yaml.Node, path: Sequence[str]) -> int:
    """1-based line of the value at ``path``, or of the deepest mapping reached."""

    current = node
    for key in path:
        if not isinstance(current, yaml.MappingNode):
            break
        for key_node, value_node in current.value:
            if isinstance(key_node, yaml.ScalarNode) and key_node.value == key:
                current = value_node
                break
        else:
            break
    return current.start_mark.line + 1


def _string(value: object) -> str:
    return value if isinstance(value, str) else ""


__all__ = ["ManifestError", "ManifestParser", "discover_files", "find_line", "is_manifest_file"]
