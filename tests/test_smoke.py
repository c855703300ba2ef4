"""Minimal smoke tests for the linter package scaffolding."""


def test_package_importable() -> None:
    """Ensure the top-level package exposes the expected namespace."""
    import argocd_compliance  # noqa: F401  # Imported for side effects


def test_cli_entry_point_importable() -> None:
    from argocd_compliance.cli import main, run

    assert callable(main)
    assert callable(run)
