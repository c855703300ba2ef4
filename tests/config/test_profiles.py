from argocd_compliance.config import BUILTIN_PROFILES, LintConfig, available_profiles
from argocd_compliance.models import RuleMetadata, Severity


def test_available_profiles_are_sorted():
    assert available_profiles() == ["dev", "hardening", "prod", "security"]


def test_every_profile_setting_uses_a_known_severity():
    for profile in BUILTIN_PROFILES.values():
        for setting in profile.rules.values():
            assert setting.severity is None or Severity(setting.severity)


def test_profiles_apply_in_declaration_order():
    rule = RuleMetadata(id="AR001", description="pin", default_severity=Severity.WARN)

    dev_then_prod = LintConfig(profiles=("dev", "prod"))
    prod_then_dev = LintConfig(profiles=("prod", "dev"))

    assert dev_then_prod.resolve(rule, "a.yaml").severity is Severity.ERROR
    assert prod_then_dev.resolve(rule, "a.yaml").severity is Severity.WARN


def test_profile_names_are_case_insensitive():
    rule = RuleMetadata(id="AR010", description="labels", default_severity=Severity.INFO)

    config = LintConfig(profiles=("Security",))

    assert config.resolve(rule, "a.yaml").severity is Severity.WARN
