"""Time-bounded waivers that suppress a rule for matching files."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Mapping

from .globs import match_path


class WaiverError(ValueError):
    """Raised when a waiver record is incomplete or its expiry cannot be parsed."""


@dataclass(slots=True, frozen=True)
class Waiver:
    """Suppression directive for one rule on files matching a glob."""

    rule: str = ""
    file: str = ""
    reason: str = ""
    expires: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Waiver":
        return cls(
            rule=_text(data.get("rule")),
            file=_text(data.get("file")),
            reason=_text(data.get("reason")),
            expires=_text(data.get("expires")),
        )

    # ------------------------------------------------------------------
    def validate(self) -> datetime:
        """Check required fields and return the parsed expiry."""

        if not self.rule.strip():
            raise WaiverError("rule is required")
        if not self.file.strip():
            raise WaiverError("file pattern is required")
        if not self.reason.strip():
            raise WaiverError("reason is required")
        return self.expiry_time()

    def expiry_time(self) -> datetime:
        """Parse ``expires`` as an RFC 3339 timestamp or a ``YYYY-MM-DD`` date."""

        value = self.expires.strip()
        if not value:
            raise WaiverError("expires is required")
        try:
            parsed_date = date.fromisoformat(value)
        except ValueError:
            pass
        else:
            return datetime(parsed_date.year, parsed_date.month, parsed_date.day, tzinfo=timezone.utc)
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError as exc:
            raise WaiverError(
                f"invalid expires format {value!r} (expected RFC3339 or YYYY-MM-DD)"
            ) from exc
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    # ------------------------------------------------------------------
    def matches(self, file_path: str, rule_id: str) -> bool:
        """Return ``True`` when the waiver covers ``rule_id`` findings in ``file_path``."""

        if rule_id.strip().lower() != self.rule.strip().lower():
            return False
        return match_path(self.file.strip(), file_path)


def _text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)
