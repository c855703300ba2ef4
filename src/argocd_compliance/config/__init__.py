"""Lint configuration: rule settings, path overrides, profiles and waivers."""

from .profiles import BUILTIN_PROFILES, Profile, RuleSetting, available_profiles
from .globs import match_path
from .settings import (
    ConfigError,
    LintConfig,
    PathOverride,
    PolicySettings,
    load_config,
    parse_config,
    parse_severity,
)
from .waivers import Waiver, WaiverError

__all__ = [
    "BUILTIN_PROFILES",
    "ConfigError",
    "LintConfig",
    "PathOverride",
    "PolicySettings",
    "Profile",
    "RuleSetting",
    "Waiver",
    "WaiverError",
    "available_profiles",
    "load_config",
    "match_path",
    "parse_config",
    "parse_severity",
]
