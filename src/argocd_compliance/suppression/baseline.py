"""Persisted baseline of accepted findings."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from ..models import Finding, RuleMetadata, Severity

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"

BASELINE_AGED = RuleMetadata(
    id="BASELINE_AGED",
    description="Baseline entry has been present longer than allowed",
    default_severity=Severity.INFO,
    category="baseline",
)

# Run diagnostics never belong in a baseline.
DIAGNOSTIC_RULES = frozenset({"WAIVER_EXPIRED", "WAIVER_INVALID", BASELINE_AGED.id})


class BaselineError(RuntimeError):
    """Raised when a baseline file cannot be read or written."""


def baseline_key(file_path: str, rule_id: str) -> str:
    return f"{file_path.strip().lower()}|{rule_id.strip().lower()}"


@dataclass(slots=True, frozen=True)
class BaselineEntry:
    rule: str
    file: str
    introduced: str = ""

    @property
    def key(self) -> str:
        return baseline_key(self.file, self.rule)

    def introduced_date(self) -> Optional[date]:
        try:
            return datetime.strptime(self.introduced.strip(), DATE_FORMAT).date()
        except ValueError:
            return None

    def to_dict(self) -> Dict[str, str]:
        return {"rule": self.rule, "file": self.file, "introduced": self.introduced}


@dataclass(slots=True)
class BaselineResult:
    findings: List[Finding] = field(default_factory=list)
    suppressed: List[Finding] = field(default_factory=list)
    aged: List[Finding] = field(default_factory=list)


@dataclass(slots=True)
class Baseline:
    """Accepted (file, rule) pairs keyed case-insensitively."""

    entries: List[BaselineEntry] = field(default_factory=list)
    _index: Dict[str, BaselineEntry] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self._index = {entry.key: entry for entry in self.entries}

    def __len__(self) -> int:
        return len(self._index)

    def get(self, finding: Finding) -> Optional[BaselineEntry]:
        return self._index.get(baseline_key(finding.file_path, finding.rule_id))

    # ------------------------------------------------------------------
    def filter(
        self, findings: Sequence[Finding], aging_days: int = 0, now: datetime | None = None
    ) -> BaselineResult:
        """Split ``findings`` into active and suppressed; flag entries older than ``aging_days``."""

        result = BaselineResult()
        if not self._index:
            result.findings = list(findings)
            return result

        cutoff: Optional[date] = None
        if aging_days > 0:
            now = now or datetime.now(timezone.utc)
            if now.tzinfo is None:
                now = now.replace(tzinfo=timezone.utc)
            cutoff = (now - timedelta(days=aging_days)).date()

        reported: set[str] = set()
        for finding in findings:
            entry = self.get(finding)
            if entry is None:
                result.findings.append(finding)
                continue
            result.suppressed.append(finding)
            if cutoff is None or entry.key in reported:
                continue
            introduced = entry.introduced_date()
            if introduced is not None and introduced < cutoff:
                reported.add(entry.key)
                result.aged.append(
                    Finding(
                        rule_id=BASELINE_AGED.id,
                        message=(
                            f"baseline entry for {finding.rule_id} ({finding.file_path}) "
                            f"older than {aging_days} days"
                        ),
                        severity=BASELINE_AGED.default_severity,
                        file_path=finding.file_path,
                        category=BASELINE_AGED.category,
                    )
                )
        return result


def load_baseline(path: str | os.PathLike[str]) -> Baseline:
    """Load a JSON baseline. Missing or empty files yield an empty baseline."""

    baseline_path = Path(path)
    if not baseline_path.exists():
        return Baseline()
    try:
        content = baseline_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise BaselineError(f"read baseline {baseline_path}: {exc}") from exc
    if not content.strip():
        return Baseline()

    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise BaselineError(f"parse baseline {baseline_path}: {exc}") from exc
    if not isinstance(data, list):
        raise BaselineError(f"parse baseline {baseline_path}: expected a JSON array")

    entries = []
    for item in data:
        if not isinstance(item, dict):
            raise BaselineError(f"parse baseline {baseline_path}: entries must be objects")
        entries.append(
            BaselineEntry(
                rule=str(item.get("rule") or ""),
                file=str(item.get("file") or ""),
                introduced=str(item.get("introduced") or ""),
            )
        )
    logger.debug("loaded %d baseline entries from %s", len(entries), baseline_path)
    return Baseline(entries)


def write_baseline(
    path: str | os.PathLike[str], findings: Iterable[Finding], today: date | None = None
) -> List[BaselineEntry]:
    """Persist one entry per (file, rule) pair, skipping run diagnostics."""

    if not str(path).strip():
        raise BaselineError("baseline path required")
    stamp = (today or date.today()).strftime(DATE_FORMAT)

    entries: List[BaselineEntry] = []
    seen: set[str] = set()
    for finding in findings:
        if finding.rule_id in DIAGNOSTIC_RULES:
            continue
        entry = BaselineEntry(rule=finding.rule_id, file=finding.file_path, introduced=stamp)
        if entry.key in seen:
            continue
        seen.add(entry.key)
        entries.append(entry)

    baseline_path = Path(path)
    try:
        baseline_path.parent.mkdir(parents=True, exist_ok=True)
        baseline_path.write_text(
            json.dumps([entry.to_dict() for entry in entries], indent=2) + "\n",
            encoding="utf-8",
        )
    except OSError as exc:
        raise BaselineError(f"write baseline {baseline_path}: {exc}") from exc
    return entries


__all__ = [
    "BASELINE_AGED",
    "Baseline",
    "BaselineEntry",
    "BaselineError",
    "BaselineResult",
    "baseline_key",
    "load_baseline",
    "write_baseline",
]
