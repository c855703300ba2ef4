from datetime import datetime, timezone

from argocd_compliance.config import Waiver
from argocd_compliance.models import Finding, Severity
from argocd_compliance.suppression import apply_waivers

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def finding(rule_id="AR001", file_path="apps/demo.yaml"):
    return Finding(rule_id=rule_id, message="m", severity=Severity.ERROR, file_path=file_path)


def test_active_waiver_suppresses_matching_findings():
    waiver = Waiver(rule="AR001", file="apps/*.yaml", reason="tag pending", expires="2026-12-31")
    findings = [finding(), finding(rule_id="AR002"), finding(file_path="other/demo.yaml")]

    result = apply_waivers([waiver], findings, now=NOW)

    assert result.waived == [findings[0]]
    assert result.findings == findings[1:]
    assert result.diagnostics == []


def test_expired_waiver_keeps_finding_and_reports_once():
    expired = [
        Waiver(rule="AR001", file="apps/*", reason="first", expires="2025-01-01"),
        Waiver(rule="AR001", file="apps/*.yaml", reason="second", expires="2025-06-01"),
    ]

    result = apply_waivers(expired, [finding()], now=NOW)

    assert result.findings == [finding()]
    (diagnostic,) = result.diagnostics
    assert diagnostic.rule_id == "WAIVER_EXPIRED"
    assert diagnostic.severity is Severity.WARN
    assert diagnostic.message == (
        "waiver for AR001 on apps/demo.yaml expired 2025-06-01T00:00:00+00:00 (second)"
    )


def test_active_waiver_wins_over_expired_one():
    waivers = [
        Waiver(rule="AR001", file="apps/*", reason="old", expires="2025-01-01"),
        Waiver(rule="AR001", file="apps/*", reason="renewed", expires="2027-01-01"),
    ]

    result = apply_waivers(waivers, [finding()], now=NOW)

    assert result.findings == []
    assert result.diagnostics == []


def test_invalid_waivers_suppress_nothing():
    waivers = [
        Waiver(rule="AR001", file="apps/*", expires="2027-01-01"),
        Waiver(rule="AR001", file="apps/*", reason="r", expires="soon"),
    ]

    result = apply_waivers(waivers, [finding()], now=NOW)

    assert result.findings == [finding()]
    assert [d.rule_id for d in result.diagnostics] == ["WAIVER_INVALID", "WAIVER_INVALID"]
    assert result.diagnostics[0].message == "waiver 0 invalid: reason is required"
    assert result.diagnostics[0].file_path == "apps/*"


def test_applying_waivers_twice_is_idempotent():
    waiver = Waiver(rule="AR001", file="apps/*", reason="r", expires="2027-01-01")
    findings = [finding(), finding(rule_id="AR004")]

    once = apply_waivers([waiver], findings, now=NOW)
    twice = apply_waivers([waiver], once.findings, now=NOW)

    assert twice.findings == once.findings


def test_waiver_expires_at_exact_instant():
    waiver = Waiver(rule="AR001", file="apps/*", reason="r", expires="2026-03-01")

    result = apply_waivers([waiver], [finding()], now=NOW)

    assert result.findings == [finding()]
    assert result.diagnostics[0].rule_id == "WAIVER_EXPIRED"


def test_no_waivers_returns_findings_unchanged():
    findings = [finding()]

    assert apply_waivers([], findings, now=NOW).findings == findings


def test_overlapping_active_waivers_suppress_once():
    waivers = [
        Waiver(rule="AR001", file="apps/*", reason="tag pending", expires="2027-01-01"),
        Waiver(rule="AR001", file="apps/*.yaml", reason="tracked", expires="2026-12-31"),
    ]
    target = finding()

    result = apply_waivers(waivers, [target], now=NOW)

    assert result.waived == [target]
    assert result.findings == []
    assert result.diagnostics == []


def test_waiver_does_not_cover_subdirectories():
    waiver = Waiver(rule="AR001", file="apps/*.yaml", reason="r", expires="2027-01-01")
    nested = finding(file_path="apps/team/app.yaml")

    result = apply_waivers([waiver], [nested], now=NOW)

    assert result.findings == [nested]
    assert result.waived == []


def test_naive_clock_is_treated_as_utc():
    waivers = [
        Waiver(rule="AR001", file="apps/*", reason="active", expires="2027-01-01"),
        Waiver(rule="AR004", file="apps/*", reason="lapsed", expires="2025-01-01"),
    ]
    findings = [finding(), finding(rule_id="AR004")]

    result = apply_waivers(waivers, findings, now=datetime(2026, 3, 1))

    assert result.waived == [findings[0]]
    assert result.findings == [findings[1]]
    assert [d.rule_id for d in result.diagnostics] == ["WAIVER_EXPIRED"]
