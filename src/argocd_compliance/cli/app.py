"""Command-line interface for the Argo CD manifest linter."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Sequence

from .. import __version__
from ..adapters import (
    DryRunError,
    DryRunOptions,
    ManifestError,
    OPAPolicyEngine,
    PolicyEvaluationError,
    RenderOptions,
    SchemaError,
    SchemaValidator,
)
from ..adapters.dry_run import SUPPORTED_MODES
from ..adapters.schema_validator import SUPPORTED_VERSIONS
from ..config import ConfigError, LintConfig, load_config, parse_severity
from ..models import SEVERITY_ORDER, Severity
from ..plugins import MetadataRecord, PluginLoadError, PolicyLoader, discover_metadata
from ..runner import LintError, LintOptions, LintReport, LintRunner
from ..suppression import BaselineError, load_baseline, write_baseline
from .output import (
    FORMATS,
    METRICS_FORMATS,
    OutputError,
    highest_severity,
    render,
    render_metrics,
    render_plugin_table,
    summary_line,
)

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = Severity.ERROR
DEFAULT_PLUGIN_DIR = "bundles"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_FATAL = 2


def print_error(stage: str, exc: BaseException | str) -> None:
    print(f"[ERROR] {stage.upper():<12} {exc}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    """Construct the CLI argument parser."""

    parser = argparse.ArgumentParser(
        prog="argocd-compliance",
        description="Static policy linter for Argo CD Applications, ApplicationSets and AppProjects",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="WARNING",
        type=str.upper,
        help="Logging verbosity written to stderr.",
    )
    subparsers = parser.add_subparsers(dest="command")

    lint_parser = subparsers.add_parser("lint", help="Lint Argo CD manifests under a file or directory.")
    lint_parser.add_argument("path", help="Manifest file or directory to lint.")
    lint_parser.add_argument("--config", default="", help="Path to a YAML rule configuration file.")
    lint_parser.add_argument(
        "--profile",
        dest="profiles",
        action="append",
        default=None,
        help="Built-in profile to apply (dev, prod, security, hardening). Repeatable.",
    )
    lint_parser.add_argument("--format", choices=FORMATS, default="table", help="Output format for findings.")
    lint_parser.add_argument(
        "--no-apps", dest="include_applications", action="store_false", help="Skip Application documents."
    )
    lint_parser.add_argument(
        "--no-appsets",
        dest="include_application_sets",
        action="store_false",
        help="Skip ApplicationSet documents.",
    )
    lint_parser.add_argument(
        "--no-projects", dest="include_projects", action="store_false", help="Skip AppProject documents."
    )
    lint_parser.add_argument(
        "--severity-threshold",
        default=None,
        help="Fail when findings at or above this severity remain (info, warn, error).",
    )
    lint_parser.add_argument(
        "--argocd-version",
        default="",
        help=f"Argo CD schema version to validate against ({', '.join(SUPPORTED_VERSIONS)}).",
    )
    lint_parser.add_argument(
        "--render", action="store_true", help="Render Helm charts and Kustomize overlays for local sources."
    )
    lint_parser.add_argument("--helm-binary", default="helm", help="Helm executable used for rendering.")
    lint_parser.add_argument(
        "--kustomize-binary", default="kustomize", help="Kustomize executable used for rendering."
    )
    lint_parser.add_argument(
        "--repo-root",
        default="",
        help="Directory local source paths are resolved against. Defaults to the lint target.",
    )
    lint_parser.add_argument(
        "--render-cache", action="store_true", help="Reuse render results for identical sources within a run."
    )
    lint_parser.add_argument(
        "--dry-run", choices=SUPPORTED_MODES, default=None, help="Validate manifest files with an external tool."
    )
    lint_parser.add_argument("--kubeconfig", default="", help="Kubeconfig used by --dry-run=server.")
    lint_parser.add_argument("--kube-context", default="", help="Kubernetes context used by --dry-run=server.")
    lint_parser.add_argument("--kubectl-binary", default="kubectl", help="kubectl executable.")
    lint_parser.add_argument("--kubeconform-binary", default="kubeconform", help="kubeconform executable.")
    lint_parser.add_argument(
        "--plugin",
        "--plugin-dir",
        dest="plugins",
        action="append",
        default=None,
        help="Rego policy file or directory to load. Repeatable.",
    )
    lint_parser.add_argument("--opa-binary", default="opa", help="OPA executable used to evaluate plugins.")
    lint_parser.add_argument(
        "--max-parallel",
        type=int,
        default=0,
        help="Maximum concurrent schema/render workers (0 uses the CPU count).",
    )
    lint_parser.add_argument(
        "--metrics", choices=METRICS_FORMATS, default=None, help="Print run metrics to stderr."
    )
    lint_parser.add_argument("--baseline", default="", help="Baseline file of accepted findings.")
    lint_parser.add_argument(
        "--write-baseline", default="", help="Write the current findings to this baseline file."
    )
    lint_parser.add_argument(
        "--baseline-aging",
        type=int,
        default=0,
        help="Report baseline entries older than this many days.",
    )

    plugins_parser = subparsers.add_parser("plugins", help="Inspect policy plugins.")
    plugin_commands = plugins_parser.add_subparsers(dest="plugins_command")
    list_parser = plugin_commands.add_parser("list", help="List metadata declared by policy plugins.")
    list_parser.add_argument(
        "--dir",
        dest="dirs",
        action="append",
        default=None,
        help=f"Policy directory to scan (default: {DEFAULT_PLUGIN_DIR}). Repeatable.",
    )
    list_parser.add_argument("--format", choices=("table", "json"), default="table", help="Output format.")
    list_parser.add_argument("--opa-binary", default="opa", help="OPA executable used to read metadata.")

    return parser


def default_repo_root(target: str) -> str:
    path = Path(target).resolve()
    return str(path if path.is_dir() else path.parent)


def resolve_threshold(flag: str | None, config: LintConfig) -> Severity:
    """The CLI flag wins over configuration and profiles."""

    if flag is not None and flag.strip():
        return parse_severity(flag)
    if config.effective_threshold:
        return parse_severity(config.effective_threshold)
    return DEFAULT_THRESHOLD


def exceeds_threshold(report: LintReport, threshold: Severity) -> bool:
    highest = highest_severity(report.findings)
    return highest is not None and SEVERITY_ORDER[highest] >= SEVERITY_ORDER[threshold]


# ----------------------------------------------------------------------
def _handle_lint(args: argparse.Namespace) -> int:
    started = time.perf_counter()

    if args.max_parallel < 0 or args.baseline_aging < 0:
        print_error("argument", "--max-parallel and --baseline-aging must not be negative")
        return EXIT_FATAL
    if not os.path.exists(args.path):
        print_error("target", f"{args.path} does not exist")
        return EXIT_FATAL

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print_error("config", exc)
        return EXIT_FATAL
    try:
        config = config.with_profiles(args.profiles or [])
    except ConfigError as exc:
        print_error("profile", exc)
        return EXIT_FATAL
    try:
        threshold = resolve_threshold(args.severity_threshold, config)
    except ConfigError as exc:
        print_error("threshold", exc)
        return EXIT_FATAL
    try:
        schema_validator = SchemaValidator(args.argocd_version)
    except SchemaError as exc:
        print_error("argument", exc)
        return EXIT_FATAL

    baseline = None
    if args.baseline:
        try:
            baseline = load_baseline(args.baseline)
        except BaselineError as exc:
            print_error("baseline", exc)
            return EXIT_FATAL

    plugins = []
    if args.plugins:
        loader = PolicyLoader(args.plugins, engine=OPAPolicyEngine(opa_executable=args.opa_binary))
        if loader.missing:
            print_error("plugin path", f"not found: {', '.join(loader.missing)}")
            return EXIT_FATAL
        try:
            plugins = loader.load()
        except PluginLoadError as exc:
            print_error("plugin load", exc)
            return EXIT_FATAL

    options = LintOptions(
        target=args.path,
        include_applications=args.include_applications,
        include_application_sets=args.include_application_sets,
        include_projects=args.include_projects,
        render=(
            RenderOptions(
                helm_binary=args.helm_binary,
                kustomize_binary=args.kustomize_binary,
                repo_root=args.repo_root or default_repo_root(args.path),
                cache=args.render_cache,
            )
            if args.render
            else None
        ),
        dry_run=(
            DryRunOptions(
                mode=args.dry_run,
                kubectl_binary=args.kubectl_binary,
                kubeconform_binary=args.kubeconform_binary,
                kubeconfig=args.kubeconfig,
                kube_context=args.kube_context,
            )
            if args.dry_run
            else None
        ),
        max_parallel=args.max_parallel,
        baseline=baseline,
        baseline_aging_days=args.baseline_aging,
    )

    runner = LintRunner(
        config,
        working_dir=os.getcwd(),
        schema_validator=schema_validator,
        plugins=plugins,
    )
    try:
        report = runner.run(options)
    except (
        LintError,
        ManifestError,
        SchemaError,
        DryRunError,
        PolicyEvaluationError,
        ConfigError,
        OSError,
    ) as exc:
        print_error("lint", exc)
        return EXIT_FATAL

    if args.write_baseline:
        try:
            entries = write_baseline(args.write_baseline, [*report.findings, *report.suppressed])
        except BaselineError as exc:
            print_error("baseline", exc)
            return EXIT_FATAL
        logger.info("wrote %d baseline entries to %s", len(entries), args.write_baseline)

    try:
        print(render(report, args.format))
    except OutputError as exc:
        print_error("output", exc)
        return EXIT_FATAL
    if args.format == "table" and report.findings:
        print()
        print(summary_line(report.findings))

    if args.metrics:
        try:
            print(render_metrics(report, time.perf_counter() - started, args.metrics), file=sys.stderr)
        except OutputError as exc:
            print_error("metrics", exc)
            return EXIT_FATAL

    return EXIT_FINDINGS if exceeds_threshold(report, threshold) else EXIT_OK


# ----------------------------------------------------------------------
def plugin_rows(records: Sequence[MetadataRecord], roots: Sequence[str]) -> List[Dict[str, Any]]:
    """Flatten discovered plugin metadata into rows sorted by bundle then rule."""

    rows = []
    for record in records:
        meta = record.metadata
        rows.append(
            {
                "bundle": bundle_name(record.source, roots),
                "rule": meta.id,
                "severity": meta.default_severity.value,
                "appliesTo": [kind.value for kind in meta.applies_to],
                "category": meta.category,
                "description": meta.description,
                "helpUrl": meta.help_url,
                "source": _display_path(record.source),
            }
        )
    rows.sort(key=lambda row: (row["bundle"], row["rule"]))
    return rows


def bundle_name(source: str, roots: Sequence[str]) -> str:
    """Name of the top-level directory under a scanned root that holds ``source``."""

    source_path = Path(source).resolve()
    for root in roots:
        root_path = Path(root).resolve()
        if root_path.is_file():
            if root_path == source_path:
                return root_path.parent.name
            continue
        try:
            relative = source_path.relative_to(root_path)
        except ValueError:
            continue
        return relative.parts[0] if len(relative.parts) > 1 else root_path.name
    return source_path.parent.name


def _display_path(path: str) -> str:
    try:
        return os.path.relpath(path, os.getcwd())
    except ValueError:
        return path


def _handle_plugins_list(args: argparse.Namespace) -> int:
    roots = args.dirs or [DEFAULT_PLUGIN_DIR]
    try:
        records, missing = discover_metadata(roots, engine=OPAPolicyEngine(opa_executable=args.opa_binary))
    except PluginLoadError as exc:
        print_error("plugin load", exc)
        return EXIT_FATAL
    for path in missing:
        print(f"[WARN] plugin path not found: {path}", file=sys.stderr)

    rows = plugin_rows(records, roots)
    if args.format == "json":
        print(json.dumps(rows, indent=2))
    else:
        print(render_plugin_table(rows))
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by tests and the ``python -m`` invocation."""

    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level, logging.WARNING),
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "lint":
        return _handle_lint(args)
    if args.command == "plugins" and args.plugins_command == "list":
        return _handle_plugins_list(args)

    parser.print_help()
    return EXIT_OK


def run() -> None:  # pragma: no cover - thin wrapper for module execution
    """Execute the CLI and exit with the produced status code."""

    raise SystemExit(main())


if __name__ == "__main__":  # pragma: no cover - module execution guard
    run()
