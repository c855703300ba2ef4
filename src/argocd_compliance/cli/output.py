"""Report writers: text table, JSON, SARIF and run metrics."""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import asdict
from typing import Any, Dict, List, Mapping, Sequence

from .. import __version__
from ..models import SEVERITY_ORDER, Finding, RuleMetadata, Severity, higher_severity
from ..runner import LintReport

FORMATS = ("table", "json", "sarif")
METRICS_FORMATS = ("table", "json")

SARIF_SCHEMA = "https://json.schemastore.org/sarif-2.1.0.json"
SARIF_VERSION = "2.1.0"
SARIF_LEVELS = {
    Severity.INFO: "note",
    Severity.WARN: "warning",
    Severity.ERROR: "error",
}


class OutputError(RuntimeError):
    """Raised when a report cannot be rendered in the requested format."""


def highest_severity(findings: Sequence[Finding]) -> Severity | None:
    if not findings:
        return None
    highest = Severity.INFO
    for finding in findings:
        highest = higher_severity(highest, finding.severity)
    return highest


def counts_by_severity(findings: Sequence[Finding]) -> Dict[str, int]:
    counts = Counter(finding.severity for finding in findings)
    return {severity.value: counts.get(severity, 0) for severity in Severity}


def summary_line(findings: Sequence[Finding]) -> str:
    if not findings:
        return "0 findings"
    counts = counts_by_severity(findings)
    parts = [
        f"{counts[severity.value]} {severity.value}"
        for severity in sorted(Severity, key=SEVERITY_ORDER.get, reverse=True)
        if counts[severity.value]
    ]
    return f"{len(findings)} findings ({', '.join(parts)})"


def render(report: LintReport, output_format: str) -> str:
    """Render ``report`` in ``output_format`` (``table``, ``json`` or ``sarif``)."""

    fmt = (output_format or "table").lower()
    if fmt == "table":
        return render_table(report.findings)
    if fmt == "json":
        return json.dumps(to_json(report), indent=2)
    if fmt == "sarif":
        return json.dumps(to_sarif(report), indent=2)
    raise OutputError(f"unsupported format {output_format!r}")


def render_table(findings: Sequence[Finding]) -> str:
    """Render findings as an aligned text table."""

    if not findings:
        return "No findings"

    headers = ("Severity", "Rule", "Resource", "File", "Message")
    rows = [headers]
    for finding in findings:
        location = f"{finding.file_path}:{finding.line}" if finding.line > 0 else finding.file_path
        rows.append(
            (
                finding.severity.value,
                finding.rule_id,
                f"{finding.resource_kind}/{finding.resource_name}",
                location,
                finding.message,
            )
        )

    widths = [max(len(row[idx]) for row in rows) for idx in range(len(headers))]

    def format_row(values: Sequence[str]) -> str:
        padded = [value.ljust(width) for value, width in zip(values, widths, strict=True)]
        # the message column is never padded
        return "  ".join([*padded[:-1], values[-1]])

    lines = [format_row(headers)]
    lines.append("  ".join("=" * width for width in widths))
    for row in rows[1:]:
        lines.append(format_row(row))
    return "\n".join(lines)


def serialize_finding(finding: Finding) -> Dict[str, Any]:
    payload = asdict(finding)
    payload["severity"] = finding.severity.value
    return payload


def serialize_rule(metadata: RuleMetadata) -> Dict[str, Any]:
    return {
        "id": metadata.id,
        "description": metadata.description,
        "default_severity": metadata.default_severity.value,
        "applies_to": [kind.value for kind in metadata.applies_to],
        "category": metadata.category,
        "help_url": metadata.help_url,
        "enabled": metadata.enabled,
    }


def to_json(report: LintReport) -> Dict[str, Any]:
    highest = highest_severity(report.findings)
    return {
        "findings": [serialize_finding(finding) for finding in report.findings],
        "rules": {rule_id: serialize_rule(report.rule_index[rule_id]) for rule_id in sorted(report.rule_index)},
        "suppressed": [serialize_finding(finding) for finding in report.suppressed],
        "summary": {
            "total_findings": len(report.findings),
            "highest_severity": highest.value if highest else None,
            "counts": counts_by_severity(report.findings),
            "suppressed": len(report.suppressed),
        },
    }


def to_sarif(report: LintReport) -> Dict[str, Any]:
    rules: List[Dict[str, Any]] = []
    for rule_id in sorted(report.rule_index):
        metadata = report.rule_index[rule_id]
        entry: Dict[str, Any] = {
            "id": metadata.id,
            "name": metadata.category or metadata.id,
            "shortDescription": {"text": metadata.description},
            "fullDescription": {"text": metadata.description},
            "defaultConfiguration": {"level": SARIF_LEVELS[metadata.default_severity]},
        }
        if metadata.help_url:
            entry["helpUri"] = metadata.help_url
        rules.append(entry)

    results = []
    for finding in report.findings:
        region: Dict[str, Any] = {}
        if finding.line > 0:
            region["startLine"] = finding.line
        if finding.column > 0:
            region["startColumn"] = finding.column
        location: Dict[str, Any] = {"artifactLocation": {"uri": finding.file_path}}
        if region:
            location["region"] = region
        results.append(
            {
                "ruleId": finding.rule_id,
                "level": SARIF_LEVELS[finding.severity],
                "message": {"text": finding.message},
                "locations": [{"physicalLocation": location}],
            }
        )

    return {
        "$schema": SARIF_SCHEMA,
        "version": SARIF_VERSION,
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": "argocd-compliance",
                        "version": __version__,
                        "rules": rules,
                    }
                },
                "results": results,
            }
        ],
    }


def metrics(report: LintReport, duration: float) -> Dict[str, Any]:
    by_rule = Counter(finding.rule_id for finding in report.findings)
    return {
        "total_findings": len(report.findings),
        "by_severity": counts_by_severity(report.findings),
        "by_rule": dict(sorted(by_rule.items())),
        "suppressed": len(report.suppressed),
        "duration_ms": round(duration * 1000, 3),
    }


def render_metrics(report: LintReport, duration: float, output_format: str) -> str:
    data = metrics(report, duration)
    fmt = (output_format or "table").lower()
    if fmt == "json":
        return json.dumps({"metrics": data}, indent=2)
    if fmt != "table":
        raise OutputError(f"unsupported metrics format {output_format!r}")

    lines = [
        "Metrics",
        f"  total findings: {data['total_findings']}",
        f"  suppressed:     {data['suppressed']}",
        f"  duration:       {data['duration_ms']:.1f}ms",
    ]
    for severity, count in data["by_severity"].items():
        lines.append(f"  {severity}: {count}")
    for rule_id, count in data["by_rule"].items():
        lines.append(f"  {rule_id}: {count}")
    return "\n".join(lines)


def render_plugin_table(rows: Sequence[Mapping[str, Any]]) -> str:
    """Render ``plugins list`` rows as an aligned text table."""

    if not rows:
        return "No plugins found."

    headers = ("Bundle", "Rule", "Severity", "Applies To", "Category", "Description", "Source")
    table = [headers]
    for row in rows:
        table.append(
            (
                row["bundle"],
                row["rule"],
                row["severity"].upper(),
                ",".join(row["appliesTo"]) or "-",
                row["category"] or "-",
                row["description"],
                row["source"],
            )
        )
    widths = [max(len(str(entry[idx])) for entry in table) for idx in range(len(headers))]

    def format_row(values: Sequence[str]) -> str:
        return "  ".join(str(value).ljust(width) for value, width in zip(values, widths, strict=True)).rstrip()

    lines = [format_row(headers), "  ".join("=" * width for width in widths)]
    lines.extend(format_row(entry) for entry in table[1:])
    lines.append("")
    lines.append(f"Total: {len(rows)} rules")
    return "\n".join(lines)
