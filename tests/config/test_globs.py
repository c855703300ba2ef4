import pytest

from argocd_compliance.config import match_path


@pytest.mark.parametrize(
    ("pattern", "file_path", "expected"),
    [
        ("apps/*.yaml", "apps/demo.yaml", True),
        ("apps/*.yaml", "apps/team/app.yaml", False),
        ("*.yaml", "apps/demo.yaml", False),
        ("*/*.yaml", "apps/demo.yaml", True),
        ("apps/*", "apps/team/app.yaml", False),
        ("apps/demo-?.yaml", "apps/demo-1.yaml", True),
        ("apps?demo.yaml", "apps/demo.yaml", False),
        ("apps/demo-[0-9].yaml", "apps/demo-7.yaml", True),
        ("apps/demo-[!0-9].yaml", "apps/demo-7.yaml", False),
        ("apps/demo-[^0-9].yaml", "apps/demo-x.yaml", True),
        ("apps[!a]demo.yaml", "apps/demo.yaml", False),
        ("apps/demo\\*.yaml", "apps/demo*.yaml", True),
        ("apps/demo\\*.yaml", "apps/demo1.yaml", False),
        ("apps/[demo.yaml", "apps/[demo.yaml", True),
        ("apps/demo.yaml", "Apps/demo.yaml", False),
        ("", "apps/demo.yaml", False),
    ],
)
def test_match_path(pattern, file_path, expected):
    assert match_path(pattern, file_path) is expected
