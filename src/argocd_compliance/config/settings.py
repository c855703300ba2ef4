"""Rule configuration: loading, profiles and per-file resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import yaml

from ..models import ConfiguredRule, RuleMetadata, Severity
from .globs import match_path
from .profiles import BUILTIN_PROFILES, Profile, RuleSetting
from .waivers import Waiver

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when lint configuration cannot be loaded or applied."""


def parse_severity(value: object) -> Severity:
    """Convert a user supplied severity string into :class:`Severity`."""

    if isinstance(value, Severity):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ConfigError("empty severity")
    try:
        return Severity(value.strip().lower())
    except ValueError as exc:
        raise ConfigError(f"unknown severity: {value}") from exc


@dataclass(slots=True, frozen=True)
class PathOverride:
    """Rule settings applied to files matching ``pattern``."""

    pattern: str
    rules: Mapping[str, RuleSetting] = field(default_factory=dict)

    def matches(self, file_path: str) -> bool:
        return match_path(self.pattern, file_path)


@dataclass(slots=True, frozen=True)
class PolicySettings:
    """Organisation wide repository URL policy."""

    allowed_repo_url_protocols: Tuple[str, ...] = ()
    allowed_repo_url_domains: Tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class LintConfig:
    """Immutable lint configuration threaded through a run."""

    rules: Mapping[str, RuleSetting] = field(default_factory=dict)
    overrides: Tuple[PathOverride, ...] = ()
    profiles: Tuple[str, ...] = ()
    severity_threshold: Optional[str] = None
    policies: PolicySettings = field(default_factory=PolicySettings)
    waivers: Tuple[Waiver, ...] = ()

    # ------------------------------------------------------------------
    def resolve(self, metadata: RuleMetadata, file_path: str) -> ConfiguredRule:
        """Compute the effective severity and enablement of ``metadata`` for ``file_path``.

        Settings are folded in order: rule defaults, global rule settings,
        profiles in declaration order, then every matching path override in
        list order. Later steps win.
        """

        severity = metadata.default_severity
        enabled = metadata.enabled

        def apply(setting: RuleSetting | None) -> None:
            nonlocal severity, enabled
            if setting is None:
                return
            if setting.enabled is not None:
                enabled = setting.enabled
            if setting.severity:
                severity = parse_severity(setting.severity)

        apply(self.rules.get(metadata.id))
        for profile in self._profile_objects():
            apply(profile.rules.get(metadata.id))
        for override in self.overrides:
            if override.matches(file_path):
                apply(override.rules.get(metadata.id))

        return ConfiguredRule(metadata=metadata, severity=severity, enabled=enabled)

    # ------------------------------------------------------------------
    @property
    def effective_threshold(self) -> Optional[str]:
        """Severity threshold after profiles have been applied."""

        threshold = self.severity_threshold
        for profile in self._profile_objects():
            if profile.threshold:
                threshold = profile.threshold
        return threshold

    # ------------------------------------------------------------------
    def with_profiles(self, names: Sequence[str]) -> "LintConfig":
        """Return a copy with ``names`` appended to the active profiles."""

        extra = tuple(name for name in names if name)
        if not extra:
            return self
        _validate_profiles(extra)
        return replace(self, profiles=self.profiles + extra)

    # ------------------------------------------------------------------
    def _profile_objects(self) -> Tuple[Profile, ...]:
        return tuple(BUILTIN_PROFILES[name.lower()] for name in self.profiles)


def _validate_profiles(names: Sequence[str]) -> None:
    for name in names:
        if name.lower() not in BUILTIN_PROFILES:
            raise ConfigError(f"unknown profile {name!r}")


def load_config(path: Path | str | None) -> LintConfig:
    """Load a YAML rule configuration file. An empty path returns defaults."""

    if path is None or str(path).strip() == "":
        return LintConfig()

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Rule configuration not found: {config_path}")

    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as exc:  # pragma: no cover - filesystem errors surfaced to caller
        raise ConfigError(f"Failed to read rule configuration {config_path}") from exc

    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in rule configuration {config_path}") from exc

    if not isinstance(data, Mapping):
        raise ConfigError(f"Rule configuration must be a mapping: {config_path}")

    config = parse_config(data)
    logger.debug(
        "loaded configuration %s: %d rule settings, %d overrides, %d waivers",
        config_path,
        len(config.rules),
        len(config.overrides),
        len(config.waivers),
    )
    return config


def parse_config(data: Mapping[str, Any]) -> LintConfig:
    """Build a :class:`LintConfig` from an already decoded mapping."""

    rules = _parse_rule_settings(data.get("rules"), "rules")

    overrides = []
    raw_overrides = data.get("overrides") or []
    if not isinstance(raw_overrides, list):
        raise ConfigError("overrides must be a list")
    for index, entry in enumerate(raw_overrides):
        if not isinstance(entry, Mapping):
            raise ConfigError(f"overrides[{index}] must be a mapping")
        pattern = str(entry.get("pattern") or "").strip()
        overrides.append(
            PathOverride(
                pattern=pattern,
                rules=_parse_rule_settings(entry.get("rules"), f"overrides[{index}].rules"),
            )
        )

    raw_profiles = data.get("profiles") or []
    if isinstance(raw_profiles, str):
        raw_profiles = [raw_profiles]
    if not isinstance(raw_profiles, list):
        raise ConfigError("profiles must be a list of names")
    profiles = tuple(str(name).strip() for name in raw_profiles if str(name).strip())
    _validate_profiles(profiles)

    threshold = data.get("severityThreshold")
    if threshold is not None and str(threshold).strip():
        threshold = parse_severity(str(threshold)).value
    else:
        threshold = None

    policies_data = data.get("policies") or {}
    if not isinstance(policies_data, Mapping):
        raise ConfigError("policies must be a mapping")
    policies = PolicySettings(
        allowed_repo_url_protocols=_string_tuple(policies_data.get("allowedRepoURLProtocols")),
        allowed_repo_url_domains=_string_tuple(policies_data.get("allowedRepoURLDomains")),
    )

    raw_waivers = data.get("waivers") or []
    if not isinstance(raw_waivers, list):
        raise ConfigError("waivers must be a list")
    waivers = []
    for index, entry in enumerate(raw_waivers):
        if not isinstance(entry, Mapping):
            raise ConfigError(f"waivers[{index}] must be a mapping")
        waivers.append(Waiver.from_mapping(entry))

    return LintConfig(
        rules=rules,
        overrides=tuple(overrides),
        profiles=profiles,
        severity_threshold=threshold,
        policies=policies,
        waivers=tuple(waivers),
    )


def _parse_rule_settings(raw: object, location: str) -> Dict[str, RuleSetting]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ConfigError(f"{location} must be a mapping of rule IDs")

    settings: Dict[str, RuleSetting] = {}
    for rule_id, value in raw.items():
        if not isinstance(value, Mapping):
            raise ConfigError(f"{location}.{rule_id} must be a mapping")
        enabled = value.get("enabled")
        if enabled is not None and not isinstance(enabled, bool):
            raise ConfigError(f"{location}.{rule_id}.enabled must be a boolean")
        severity = value.get("severity")
        if severity is not None and str(severity).strip():
            severity = parse_severity(str(severity)).value
        else:
            severity = None
        settings[str(rule_id).strip()] = RuleSetting(enabled=enabled, severity=severity)
    return settings


def _string_tuple(raw: object) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        raise ConfigError("expected a list of strings")
    return tuple(str(item) for item in raw)
