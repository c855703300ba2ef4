"""Render Helm charts and Kustomize overlays referenced by Argo CD sources."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..config import LintConfig
from ..models import Document, Finding, FindingBuilder, ResourceKind, RuleMetadata, Severity
from ..rules.base import application_sources, get_list, get_map, get_str

logger = logging.getLogger(__name__)

OUTPUT_LIMIT = 280
DEFAULT_RELEASE_NAME = "argocd-compliance-render"
KUSTOMIZATION_FILES = ("kustomization.yaml", "kustomization.yml", "Kustomization")

HELM_RULE = RuleMetadata(
    id="RENDER_HELM",
    description="Helm template must succeed for referenced charts",
    default_severity=Severity.ERROR,
    applies_to=(ResourceKind.APPLICATION, ResourceKind.APPLICATION_SET),
    category="render",
)

KUSTOMIZE_RULE = RuleMetadata(
    id="RENDER_KUSTOMIZE",
    description="Kustomize build must succeed for referenced overlays",
    default_severity=Severity.ERROR,
    applies_to=(ResourceKind.APPLICATION, ResourceKind.APPLICATION_SET),
    category="render",
)


@dataclass(slots=True)
class RenderOptions:
    helm_binary: str = "helm"
    kustomize_binary: str = "kustomize"
    repo_root: str = ""
    cache: bool = False


class Renderer:
    """Run ``helm template`` / ``kustomize build`` for local sources and report failures."""

    def __init__(self, config: LintConfig, options: RenderOptions | None = None) -> None:
        options = options or RenderOptions()
        self.config = config
        self.helm_binary = options.helm_binary.strip() or "helm"
        self.kustomize_binary = options.kustomize_binary.strip() or "kustomize"
        self.repo_root = Path(options.repo_root or os.getcwd())
        self.cache_enabled = options.cache
        self._cache: Dict[str, Optional[str]] = {}
        self._cache_lock = threading.Lock()

    def metadata(self) -> List[RuleMetadata]:
        return [HELM_RULE, KUSTOMIZE_RULE]

    # ------------------------------------------------------------------
    def render(self, document: Document) -> List[Finding]:
        findings: List[Finding] = []
        for source in application_sources(document):
            source_path = get_str(source, "path").strip()
            if not source_path:
                continue
            directory = Path(source_path)
            if not directory.is_absolute():
                directory = self.repo_root / directory
            directory = Path(os.path.normpath(directory))
            if not directory.is_dir():
                logger.debug("skipping render of unresolved source %s", directory)
                continue

            if (directory / "Chart.yaml").exists():
                findings.extend(self._render_helm(document, directory, source))
            if any((directory / name).exists() for name in KUSTOMIZATION_FILES):
                findings.extend(self._render_kustomize(document, directory, source))
        return findings

    # ------------------------------------------------------------------
    def _render_helm(self, document: Document, directory: Path, source: Mapping[str, Any]) -> List[Finding]:
        helm = get_map(source, "helm")
        release_name = get_str(helm, "releaseName").strip() or DEFAULT_RELEASE_NAME
        command = [self.helm_binary, "template", release_name, "."]
        for value_file in get_list(helm, "valueFiles"):
            if isinstance(value_file, str) and value_file:
                command.extend(["--values", str(directory / value_file)])
        for parameter in get_list(helm, "parameters"):
            if not isinstance(parameter, Mapping):
                continue
            name = get_str(parameter, "name").strip()
            if name:
                command.extend(["--set", f"{name}={get_str(parameter, 'value')}"])
        return self._run(document, HELM_RULE, "helm template", command, directory, source)

    def _render_kustomize(self, document: Document, directory: Path, source: Mapping[str, Any]) -> List[Finding]:
        command = [self.kustomize_binary, "build", str(directory)]
        return self._run(document, KUSTOMIZE_RULE, "kustomize build", command, directory, source)

    # ------------------------------------------------------------------
    def _run(
        self,
        document: Document,
        metadata: RuleMetadata,
        label: str,
        command: List[str],
        directory: Path,
        source: Mapping[str, Any],
    ) -> List[Finding]:
        configured = self.config.resolve(metadata, document.file_path)
        if not configured.enabled:
            return []

        key = cache_key(metadata.id, str(directory), source) if self.cache_enabled else ""
        if key:
            with self._cache_lock:
                hit = key in self._cache
                failure = self._cache.get(key)
        else:
            hit = False
            failure = None

        if not hit:
            failure = self._execute(label, command, directory)
            if key:
                with self._cache_lock:
                    self._cache[key] = failure

        if failure is None:
            return []
        builder = FindingBuilder.for_document(configured, document)
        return [builder.new(failure)]

    def _execute(self, label: str, command: List[str], directory: Path) -> Optional[str]:
        """Run ``command`` and return a failure description, or ``None`` on success."""

        logger.debug("running %s", " ".join(command))
        try:
            result = subprocess.run(  # noqa: S603 - deliberate invocation of external command
                command,
                cwd=directory,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            return f"{label} failed in {directory}: executable not found: {command[0]}"

        if result.returncode == 0:
            return None
        message = f"{label} failed in {directory}: exit status {result.returncode}"
        output = trim_output((result.stdout or "") + (result.stderr or ""))
        if output:
            message = f"{message}: {output}"
        return message


def trim_output(output: str) -> str:
    trimmed = output.strip()
    if len(trimmed) > OUTPUT_LIMIT:
        return trimmed[:OUTPUT_LIMIT] + "..."
    return trimmed


def cache_key(tool: str, path: str, source: Mapping[str, Any]) -> str:
    payload = json.dumps(source, sort_keys=True, default=str)
    return hashlib.sha256(f"{tool}|{path}|{payload}".encode("utf-8")).hexdigest()


__all__ = ["HELM_RULE", "KUSTOMIZE_RULE", "RenderOptions", "Renderer", "cache_key", "trim_output"]
