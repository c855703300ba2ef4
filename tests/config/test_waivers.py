from datetime import datetime, timezone

import pytest

from argocd_compliance.config import Waiver, WaiverError


def test_validate_returns_expiry_for_date_only_value():
    waiver = Waiver(rule="AR001", file="apps/*.yaml", reason="pending tag", expires="2030-06-01")

    assert waiver.validate() == datetime(2030, 6, 1, tzinfo=timezone.utc)


def test_validate_accepts_rfc3339_timestamp():
    waiver = Waiver(rule="AR001", file="a.yaml", reason="r", expires="2030-06-01T12:30:00+02:00")

    assert waiver.validate() == datetime(2030, 6, 1, 10, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("waiver", "message"),
    [
        (Waiver(file="a.yaml", reason="r", expires="2030-01-01"), "rule is required"),
        (Waiver(rule="AR001", reason="r", expires="2030-01-01"), "file pattern is required"),
        (Waiver(rule="AR001", file="a.yaml", expires="2030-01-01"), "reason is required"),
        (Waiver(rule="AR001", file="a.yaml", reason="r"), "expires is required"),
        (Waiver(rule="AR001", file="a.yaml", reason="r", expires="next week"), "invalid expires"),
    ],
)
def test_validate_rejects_incomplete_waivers(waiver, message):
    with pytest.raises(WaiverError, match=message):
        waiver.validate()


def test_matches_rule_case_insensitively_and_file_by_glob():
    waiver = Waiver(rule="ar002", file="apps/*.yaml", reason="r", expires="2030-01-01")

    assert waiver.matches("apps/demo.yaml", "AR002")
    assert not waiver.matches("apps/demo.yaml", "AR001")
    assert not waiver.matches("other/demo.yaml", "AR002")
    assert not waiver.matches("apps/team/demo.yaml", "AR002")


def test_from_mapping_keeps_yaml_dates_as_text():
    waiver = Waiver.from_mapping({"rule": "AR001", "file": "a.yaml", "reason": "r", "expires": None})

    assert waiver.expires == ""
