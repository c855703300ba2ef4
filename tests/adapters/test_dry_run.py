import subprocess
from types import SimpleNamespace

import pytest

from argocd_compliance.adapters import DryRunError, DryRunOptions, DryRunValidator
from argocd_compliance.config import LintConfig
from argocd_compliance.models import Document


def documents():
    return [
        Document(file_path="b.yaml", kind="Application", name="b"),
        Document(file_path="a.yaml", kind="Application", name="a1"),
        Document(file_path="a.yaml", kind="Application", name="a2", document_index=1),
    ]


def test_kubeconform_runs_once_per_file_in_sorted_order(monkeypatch):
    calls = []

    def fake_run(command, cwd, capture_output, text, timeout):
        calls.append(command)
        if command[-1] == "a.yaml":
            return SimpleNamespace(returncode=1, stdout="a.yaml - Application a1 is invalid", stderr="")
        return SimpleNamespace(returncode=0, stdout="", stderr="")

    monkeypatch.setattr("argocd_compliance.adapters.dry_run.subprocess.run", fake_run)
    validator = DryRunValidator(LintConfig(), "/repo", DryRunOptions(mode="kubeconform"))

    findings = validator.validate(documents())

    assert calls == [["kubeconform", "--summary", "a.yaml"], ["kubeconform", "--summary", "b.yaml"]]
    assert [(finding.rule_id, finding.resource_name) for finding in findings] == [
        ("DRYRUN_KUBECONFORM", "a1"),
        ("DRYRUN_KUBECONFORM", "a2"),
    ]
    assert findings[0].message == "a.yaml - Application a1 is invalid"


def test_server_mode_passes_kubeconfig_and_context(monkeypatch):
    calls = []

    def fake_run(command, cwd, capture_output, text, timeout):
        calls.append(command)
        return SimpleNamespace(returncode=1, stdout="", stderr="")

    monkeypatch.setattr("argocd_compliance.adapters.dry_run.subprocess.run", fake_run)
    options = DryRunOptions(mode="server", kubeconfig="/tmp/kube", kube_context="staging")

    findings = DryRunValidator(LintConfig(), "", options).validate(documents()[:1])

    assert calls[0] == [
        "kubectl",
        "apply",
        "--dry-run=server",
        "--filename",
        "b.yaml",
        "--validate=true",
        "--kubeconfig",
        "/tmp/kube",
        "--context",
        "staging",
    ]
    assert findings[0].rule_id == "DRYRUN_SERVER"
    assert findings[0].message == "kubectl exited with status 1"


def test_timeout_and_missing_binary_become_findings(monkeypatch):
    def timeout_run(command, cwd, capture_output, text, timeout):
        raise subprocess.TimeoutExpired(command, timeout)

    monkeypatch.setattr("argocd_compliance.adapters.dry_run.subprocess.run", timeout_run)
    options = DryRunOptions(mode="kubeconform", timeout=5)
    (timed_out,) = DryRunValidator(LintConfig(), "", options).validate(documents()[:1])

    def missing_run(command, cwd, capture_output, text, timeout):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr("argocd_compliance.adapters.dry_run.subprocess.run", missing_run)
    (missing,) = DryRunValidator(LintConfig(), "", DryRunOptions(mode="kubeconform")).validate(documents()[:1])

    assert timed_out.message == "kubeconform timed out after 5s"
    assert missing.message == "executable not found: kubeconform"


def test_unknown_mode_is_rejected():
    with pytest.raises(DryRunError, match="unsupported dry-run mode"):
        DryRunValidator(LintConfig(), "", DryRunOptions(mode="client")).validate(documents())


def test_empty_mode_does_nothing():
    assert DryRunValidator(LintConfig(), "", DryRunOptions()).validate(documents()) == []
