"""Apply configured waivers to a run's findings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Sequence, Tuple

from ..config import Waiver, WaiverError
from ..models import Finding, RuleMetadata, Severity

WAIVER_EXPIRED = RuleMetadata(
    id="WAIVER_EXPIRED",
    description="Waiver has expired; finding is no longer suppressed",
    default_severity=Severity.WARN,
    category="waiver",
)

WAIVER_INVALID = RuleMetadata(
    id="WAIVER_INVALID",
    description="Waiver is invalid (missing rule, file, reason, or expiry)",
    default_severity=Severity.WARN,
    category="waiver",
)


@dataclass(slots=True)
class WaiverResult:
    findings: List[Finding] = field(default_factory=list)
    waived: List[Finding] = field(default_factory=list)
    diagnostics: List[Finding] = field(default_factory=list)


def apply_waivers(
    waivers: Sequence[Waiver], findings: Sequence[Finding], now: datetime | None = None
) -> WaiverResult:
    """Drop findings covered by an active waiver.

    Invalid waivers suppress nothing and produce one ``WAIVER_INVALID`` each.
    A finding matched only by expired waivers is kept and gets exactly one
    ``WAIVER_EXPIRED`` diagnostic.
    """

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    result = WaiverResult()
    if not waivers:
        result.findings = list(findings)
        return result

    valid: List[Tuple[Waiver, datetime]] = []
    for index, waiver in enumerate(waivers):
        try:
            valid.append((waiver, waiver.validate()))
        except WaiverError as exc:
            result.diagnostics.append(
                _diagnostic(WAIVER_INVALID, waiver.file.strip(), f"waiver {index} invalid: {exc}")
            )

    for finding in findings:
        matching = [(waiver, expires) for waiver, expires in valid if waiver.matches(finding.file_path, finding.rule_id)]
        if any(expires > now for _, expires in matching):
            result.waived.append(finding)
            continue
        result.findings.append(finding)
        if matching:
            waiver, expires = max(matching, key=lambda item: item[1])
            result.diagnostics.append(
                _diagnostic(
                    WAIVER_EXPIRED,
                    finding.file_path,
                    f"waiver for {finding.rule_id} on {finding.file_path} expired "
                    f"{expires.isoformat()} ({waiver.reason})",
                )
            )
    return result


def _diagnostic(metadata: RuleMetadata, file_path: str, message: str) -> Finding:
    return Finding(
        rule_id=metadata.id,
        message=message,
        severity=metadata.default_severity,
        file_path=file_path,
        category=metadata.category,
    )


__all__ = ["WAIVER_EXPIRED", "WAIVER_INVALID", "WaiverResult", "apply_waivers"]
