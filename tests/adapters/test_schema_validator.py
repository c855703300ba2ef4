import textwrap

import pytest

from argocd_compliance.adapters import ManifestParser, SchemaError, SchemaValidator
from argocd_compliance.adapters.schema_validator import resolve_version
from argocd_compliance.models import Severity

VALID_APP = """
apiVersion: argoproj.io/v1alpha1
kind: Application
metadata:
  name: demo
spec:
  project: apps
  destination:
    server: https://kubernetes.default.svc
    namespace: demo
  source:
    repoURL: https://github.com/org/repo.git
    path: deploy
    targetRevision: v1.0.0
"""

APPSET = """
apiVersion: argoproj.io/v1alpha1
kind: ApplicationSet
metadata:
  name: demo-set
spec:
  generators:
    - list:
        elements: []
  template:
    spec:
      project: apps
  ignoreApplicationDifferences:
    - jsonPointers: [/spec/source/targetRevision]
"""


def parse(text: str):
    (document,) = ManifestParser().parse_text(textwrap.dedent(text), "apps/demo.yaml")
    return document


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("", "v2.9"), (None, "v2.9"), ("2.8", "v2.8"), ("v2.9.3", "v2.9"), ("argocd-v2.8", "v2.8")],
)
def test_resolve_version(raw, expected):
    assert resolve_version(raw) == expected


def test_unsupported_version():
    with pytest.raises(SchemaError, match="unsupported argocd version"):
        SchemaValidator("1.0")


def test_valid_application_has_no_findings():
    validator = SchemaValidator()

    assert validator.version == "v2.9"
    assert validator.validate(parse(VALID_APP)) == []


def test_invalid_application_reports_sorted_errors_at_document_line():
    document = parse(
        """
        apiVersion: argoproj.io/v1alpha1
        kind: Application
        metadata:
          name: demo
        spec:
          source:
            targetRevision: 1
        """
    )

    findings = SchemaValidator().validate(document)

    assert [finding.message for finding in findings] == [
        "spec: 'destination' is a required property",
        "spec: 'project' is a required property",
        "spec.source: 'repoURL' is a required property",
        "spec.source.targetRevision: 1 is not of type 'string'",
    ]
    assert {finding.rule_id for finding in findings} == {"SCHEMA_APPLICATION"}
    assert all(finding.severity is Severity.ERROR for finding in findings)
    assert all(finding.line == document.line for finding in findings)


def test_ignore_application_differences_depends_on_version():
    document = parse(APPSET)

    assert SchemaValidator("v2.9").validate(document) == []
    (finding,) = SchemaValidator("v2.8").validate(document)
    assert finding.rule_id == "SCHEMA_APPLICATIONSET"
    assert "ignoreApplicationDifferences" in finding.message


def test_app_projects_are_not_schema_validated():
    document = parse(
        """
        apiVersion: argoproj.io/v1alpha1
        kind: AppProject
        metadata:
          name: apps
        """
    )

    assert SchemaValidator().validate(document) == []


def test_metadata_names_the_version():
    descriptions = {meta.id: meta.description for meta in SchemaValidator("2.8").metadata()}

    assert descriptions["SCHEMA_APPLICATION"].endswith("(v2.8)")
