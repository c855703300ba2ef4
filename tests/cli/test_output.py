import json

import pytest

from argocd_compliance.cli import output
from argocd_compliance.models import Finding, RuleMetadata, Severity
from argocd_compliance.runner import LintReport

RULE = RuleMetadata(
    id="AR001",
    description="targetRevision must be pinned to an immutable value",
    default_severity=Severity.WARN,
    category="best-practice",
    help_url="https://argo-cd.readthedocs.io/",
)


def make_report(*findings):
    return LintReport(findings=list(findings), rule_index={"AR001": RULE})


def make_finding(severity=Severity.ERROR, line=7, rule_id="AR001"):
    return Finding(
        rule_id=rule_id,
        message="targetRevision 'HEAD' is not immutable",
        severity=severity,
        file_path="apps/demo.yaml",
        line=line,
        resource_name="demo",
        resource_kind="Application",
    )


def test_table_layout():
    table = output.render_table([make_finding(), make_finding(Severity.INFO, line=0)])

    header, separator, first, second = table.splitlines()
    assert header.split() == ["Severity", "Rule", "Resource", "File", "Message"]
    assert set(separator.replace(" ", "")) == {"="}
    assert "Application/demo" in first
    assert "apps/demo.yaml:7" in first
    assert "apps/demo.yaml:" not in second


def test_empty_table():
    assert output.render_table([]) == "No findings"


def test_summary_line_and_highest_severity():
    findings = [make_finding(), make_finding(Severity.INFO), make_finding(Severity.INFO)]

    assert output.summary_line(findings) == "3 findings (1 error, 2 info)"
    assert output.summary_line([]) == "0 findings"
    assert output.highest_severity(findings) is Severity.ERROR
    assert output.highest_severity([]) is None


def test_json_report():
    payload = json.loads(output.render(make_report(make_finding(Severity.WARN)), "json"))

    assert payload["findings"][0]["severity"] == "warn"
    assert payload["rules"]["AR001"]["category"] == "best-practice"
    assert payload["summary"] == {
        "total_findings": 1,
        "highest_severity": "warn",
        "counts": {"info": 0, "warn": 1, "error": 0},
        "suppressed": 0,
    }


def test_sarif_report():
    sarif = output.to_sarif(make_report(make_finding(Severity.WARN), make_finding(Severity.INFO, line=0)))

    assert sarif["$schema"] == output.SARIF_SCHEMA
    driver = sarif["runs"][0]["tool"]["driver"]
    assert driver["name"] == "argocd-compliance"
    assert driver["rules"][0]["helpUri"] == RULE.help_url
    assert driver["rules"][0]["name"] == "best-practice"
    warn, info = sarif["runs"][0]["results"]
    assert warn["level"] == "warning"
    assert warn["locations"][0]["physicalLocation"]["region"] == {"startLine": 7}
    assert info["level"] == "note"
    assert "region" not in info["locations"][0]["physicalLocation"]


def test_metrics():
    report = make_report(make_finding(), make_finding(Severity.WARN, rule_id="AR004"))

    data = output.metrics(report, 0.25)
    table = output.render_metrics(report, 0.25, "table")

    assert data["by_rule"] == {"AR001": 1, "AR004": 1}
    assert data["duration_ms"] == 250.0
    assert "total findings: 2" in table
    with pytest.raises(output.OutputError):
        output.render_metrics(report, 0.1, "xml")


def test_unknown_format_raises():
    with pytest.raises(output.OutputError, match="unsupported format"):
        output.render(make_report(), "yaml")


def test_plugin_table():
    rows = [
        {
            "bundle": "labels",
            "rule": "LAB001",
            "severity": "warn",
            "appliesTo": [],
            "category": "",
            "description": "owner label",
            "helpUrl": "",
            "source": "bundles/labels/lab001.rego",
        }
    ]

    table = output.render_plugin_table(rows)

    assert "WARN" in table
    assert table.endswith("Total: 1 rules")
    assert output.render_plugin_table([]) == "No plugins found."
