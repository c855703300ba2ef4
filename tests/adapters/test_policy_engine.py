import json
from types import SimpleNamespace

import pytest

from argocd_compliance.adapters import CompiledPolicy, OPAPolicyEngine, PolicyEvaluationError

PARSED_MODULE = {
    "package": {
        "path": [
            {"type": "var", "value": "data"},
            {"type": "string", "value": "argocd"},
            {"type": "string", "value": "labels"},
        ]
    },
    "rules": [
        {"head": {"name": "metadata"}},
        {"head": {"ref": [{"type": "var", "value": "deny"}, {"type": "var", "value": "msg"}]}},
        {"head": {"name": "deny"}},
    ],
}


def write_policy(tmp_path):
    path = tmp_path / "labels.rego"
    path.write_text("package argocd.labels\n", encoding="utf-8")
    return path


def test_compile_reads_package_and_rule_names(monkeypatch, tmp_path):
    path = write_policy(tmp_path)
    recorded = {}

    def fake_run(command, input, capture_output, text, timeout):
        recorded["command"] = command
        return SimpleNamespace(returncode=0, stdout=json.dumps(PARSED_MODULE), stderr="")

    monkeypatch.setattr("argocd_compliance.adapters.policy_engine.subprocess.run", fake_run)

    policy = OPAPolicyEngine(opa_executable="/usr/bin/opa").compile(str(path))

    assert recorded["command"] == ["/usr/bin/opa", "parse", "--format", "json", str(path)]
    assert policy.package == "argocd.labels"
    assert policy.rules == ("metadata", "deny")
    assert policy.defines("deny") and not policy.defines("applies")
    assert policy.ref("deny") == "data.argocd.labels.deny"


def test_query_passes_input_on_stdin(monkeypatch, tmp_path):
    policy = CompiledPolicy(source=str(write_policy(tmp_path)), package="argocd.labels", rules=("deny",))
    recorded = {}

    def fake_run(command, input, capture_output, text, timeout):
        recorded["command"] = command
        recorded["input"] = json.loads(input)
        payload = {"result": [{"expressions": [{"value": [{"message": "missing owner"}]}]}]}
        return SimpleNamespace(returncode=0, stdout=json.dumps(payload), stderr="")

    monkeypatch.setattr("argocd_compliance.adapters.policy_engine.subprocess.run", fake_run)

    value = OPAPolicyEngine().query(policy, "deny", {"kind": "Application"})

    assert value == [{"message": "missing owner"}]
    assert recorded["command"][-2:] == ["--stdin-input", "data.argocd.labels.deny"]
    assert recorded["input"] == {"kind": "Application"}


def test_query_of_undefined_rule_returns_none(monkeypatch, tmp_path):
    policy = CompiledPolicy(source=str(write_policy(tmp_path)), package="argocd.labels")

    def fake_run(command, input, capture_output, text, timeout):
        assert input is None
        return SimpleNamespace(returncode=0, stdout="{}", stderr="")

    monkeypatch.setattr("argocd_compliance.adapters.policy_engine.subprocess.run", fake_run)

    assert OPAPolicyEngine().query(policy, "metadata") is None


def test_failures_raise_policy_evaluation_error(monkeypatch, tmp_path):
    path = write_policy(tmp_path)

    def failing_run(command, input, capture_output, text, timeout):
        return SimpleNamespace(returncode=1, stdout="", stderr="1 error occurred: rego_parse_error")

    monkeypatch.setattr("argocd_compliance.adapters.policy_engine.subprocess.run", failing_run)
    with pytest.raises(PolicyEvaluationError, match="rego_parse_error"):
        OPAPolicyEngine().compile(str(path))

    def missing_run(command, input, capture_output, text, timeout):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr("argocd_compliance.adapters.policy_engine.subprocess.run", missing_run)
    with pytest.raises(PolicyEvaluationError, match="Executable not found"):
        OPAPolicyEngine().compile(str(path))

    with pytest.raises(PolicyEvaluationError, match="not found"):
        OPAPolicyEngine().compile(str(tmp_path / "absent.rego"))


def test_quoted_package_segments_build_valid_refs():
    assert CompiledPolicy(source="p.rego", package='["team-a"].rules').ref("deny") == 'data["team-a"].rules.deny'
