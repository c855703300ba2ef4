import textwrap

from argocd_compliance.adapters import ManifestParser
from argocd_compliance.config import LintConfig, PathOverride, RuleSetting
from argocd_compliance.models import Severity
from argocd_compliance.rules import RuleContext, unique_name_findings

MANIFEST = textwrap.dedent(
    """
    apiVersion: argoproj.io/v1alpha1
    kind: Application
    metadata:
      name: {name}
    spec:
      project: apps
    """
)


def documents(*pairs):
    parser = ManifestParser()
    parsed = []
    for file_path, name in pairs:
        parsed.extend(parser.parse_text(MANIFEST.format(name=name), file_path))
    return tuple(parsed)


def test_duplicate_names_flag_every_declaration():
    docs = documents(("a/app.yaml", "demo"), ("b/app.yaml", "demo"), ("c/app.yaml", "other"))

    findings = unique_name_findings(RuleContext(config=LintConfig(), documents=docs))

    assert sorted(finding.file_path for finding in findings) == ["a/app.yaml", "b/app.yaml"]
    assert all(finding.severity is Severity.ERROR for finding in findings)
    assert findings[0].message == "Application name 'demo' is declared in multiple manifests"


def test_path_override_disables_one_file_only():
    docs = documents(("a/app.yaml", "demo"), ("b/app.yaml", "demo"))
    config = LintConfig(overrides=(PathOverride(pattern="b/*", rules={"AR011": RuleSetting(enabled=False)}),))

    findings = unique_name_findings(RuleContext(config=config, documents=docs))

    assert [finding.file_path for finding in findings] == ["a/app.yaml"]


def test_configured_severity_applies():
    docs = documents(("a/app.yaml", "demo"), ("b/app.yaml", "demo"))
    config = LintConfig(rules={"AR011": RuleSetting(severity="warn")})

    findings = unique_name_findings(RuleContext(config=config, documents=docs))

    assert {finding.severity for finding in findings} == {Severity.WARN}


def test_unique_names_produce_nothing():
    docs = documents(("a/app.yaml", "one"), ("b/app.yaml", "two"))

    assert unique_name_findings(RuleContext(config=LintConfig(), documents=docs)) == []
