"""Built-in rule profiles."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Mapping, Optional


@dataclass(slots=True, frozen=True)
class RuleSetting:
    """Severity and/or enablement override for a single rule."""

    enabled: Optional[bool] = None
    severity: Optional[str] = None


@dataclass(slots=True, frozen=True)
class Profile:
    """Named bundle of rule settings and an optional severity threshold."""

    name: str
    rules: Mapping[str, RuleSetting] = field(default_factory=dict)
    threshold: Optional[str] = None


BUILTIN_PROFILES: Mapping[str, Profile] = {
    "dev": Profile(
        name="dev",
        rules={
            "AR001": RuleSetting(severity="warn"),
            "AR005": RuleSetting(severity="info"),
            "AR013": RuleSetting(severity="warn"),
            "AR014": RuleSetting(severity="warn"),
        },
        threshold="warn",
    ),
    "prod": Profile(
        name="prod",
        rules={
            "AR001": RuleSetting(severity="error"),
            "AR007": RuleSetting(severity="error"),
            "AR013": RuleSetting(severity="error"),
            "AR014": RuleSetting(severity="error"),
        },
        threshold="error",
    ),
    "security": Profile(
        name="security",
        rules={
            "AR010": RuleSetting(severity="warn"),
            "AR013": RuleSetting(severity="error"),
            "AR014": RuleSetting(severity="error"),
        },
    ),
    "hardening": Profile(
        name="hardening",
        rules={
            "AR001": RuleSetting(severity="error"),
            "AR010": RuleSetting(severity="warn"),
            "AR013": RuleSetting(severity="error"),
            "AR014": RuleSetting(severity="error"),
        },
        threshold="error",
    ),
}


def available_profiles() -> List[str]:
    """Return the sorted names of built-in profiles."""

    return sorted(BUILTIN_PROFILES)
