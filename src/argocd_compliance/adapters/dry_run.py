"""Optional dry-run validation through kubeconform or ``kubectl --dry-run=server``."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..config import LintConfig
from ..models import Document, Finding, FindingBuilder, ResourceKind, RuleMetadata, Severity

logger = logging.getLogger(__name__)

MODE_KUBECONFORM = "kubeconform"
MODE_SERVER = "server"
SUPPORTED_MODES = (MODE_KUBECONFORM, MODE_SERVER)

SERVER_RULE = RuleMetadata(
    id="DRYRUN_SERVER",
    description="kubectl --dry-run=server must succeed",
    default_severity=Severity.ERROR,
    applies_to=(ResourceKind.APPLICATION, ResourceKind.APPLICATION_SET),
    category="validation",
)

KUBECONFORM_RULE = RuleMetadata(
    id="DRYRUN_KUBECONFORM",
    description="kubeconform validation must succeed",
    default_severity=Severity.ERROR,
    applies_to=(ResourceKind.APPLICATION, ResourceKind.APPLICATION_SET),
    category="validation",
)


class DryRunError(RuntimeError):
    """Raised when dry-run validation is misconfigured."""


@dataclass(slots=True)
class DryRunOptions:
    mode: str = ""
    kubectl_binary: str = "kubectl"
    kubeconform_binary: str = "kubeconform"
    kubeconfig: str = ""
    kube_context: str = ""
    timeout: Optional[float] = None


class DryRunValidator:
    """Validate each manifest file once with the selected external tool."""

    def __init__(self, config: LintConfig, working_dir: str, options: DryRunOptions) -> None:
        self.config = config
        self.working_dir = working_dir
        self.options = options

    def metadata(self) -> List[RuleMetadata]:
        return [SERVER_RULE, KUBECONFORM_RULE]

    # ------------------------------------------------------------------
    def validate(self, documents: Sequence[Document]) -> List[Finding]:
        mode = self.options.mode.strip().lower()
        if not mode:
            return []
        if mode not in SUPPORTED_MODES:
            raise DryRunError(f"unsupported dry-run mode {self.options.mode!r}")

        metadata = SERVER_RULE if mode == MODE_SERVER else KUBECONFORM_RULE
        findings: List[Finding] = []
        for file_path, file_documents in sorted(group_by_file(documents).items()):
            configured = self.config.resolve(metadata, file_path)
            if not configured.enabled:
                continue
            failure = self._run(self._command(mode, file_path))
            if failure is None:
                continue
            for document in file_documents:
                findings.append(FindingBuilder.for_document(configured, document).new(failure))
        return findings

    # ------------------------------------------------------------------
    def _command(self, mode: str, file_path: str) -> List[str]:
        if mode == MODE_SERVER:
            command = [
                self.options.kubectl_binary.strip() or "kubectl",
                "apply",
                "--dry-run=server",
                "--filename",
                file_path,
                "--validate=true",
            ]
            if self.options.kubeconfig:
                command.extend(["--kubeconfig", self.options.kubeconfig])
            if self.options.kube_context:
                command.extend(["--context", self.options.kube_context])
            return command
        return [self.options.kubeconform_binary.strip() or "kubeconform", "--summary", file_path]

    def _run(self, command: List[str]) -> Optional[str]:
        """Run ``command`` and return its output when it fails."""

        logger.debug("running %s", " ".join(command))
        try:
            result = subprocess.run(  # noqa: S603 - deliberate invocation of external command
                command,
                cwd=self.working_dir or None,
                capture_output=True,
                text=True,
                timeout=self.options.timeout,
            )
        except FileNotFoundError:
            return f"executable not found: {command[0]}"
        except subprocess.TimeoutExpired:
            return f"{command[0]} timed out after {self.options.timeout}s"

        if result.returncode == 0:
            return None
        output = "\n".join([result.stdout or "", result.stderr or ""]).strip()
        return output or f"{command[0]} exited with status {result.returncode}"


def group_by_file(documents: Sequence[Document]) -> Dict[str, List[Document]]:
    files: Dict[str, List[Document]] = {}
    for document in documents:
        files.setdefault(document.file_path, []).append(document)
    return files


__all__ = ["DryRunError", "DryRunOptions", "DryRunValidator", "KUBECONFORM_RULE", "SERVER_RULE"]
