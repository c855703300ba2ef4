"""Per-document built-in rules."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping

from ..models import (
    ConfiguredRule,
    Document,
    Finding,
    FindingBuilder,
    ResourceKind,
    RuleMetadata,
    Severity,
    Suggestion,
)
from .base import (
    Rule,
    RuleContext,
    application_sources,
    applies_to_kinds,
    get_list,
    get_map,
    get_str,
    project_name,
)

APPS = (ResourceKind.APPLICATION, ResourceKind.APPLICATION_SET)
ALL_KINDS = (ResourceKind.APPLICATION, ResourceKind.APPLICATION_SET, ResourceKind.APP_PROJECT)

FLOATING_REVISION = re.compile(r"^(head|latest|tip|main|master|trunk)$", re.IGNORECASE)
SEMVER_WILDCARD = re.compile(r"^v?\d+\.[^\n]*\*", re.IGNORECASE)

FINALIZER = "resources-finalizer.argocd.argoproj.io"
IN_CLUSTER_SERVER = "https://kubernetes.default.svc"
MISSING_KEY_OPTION = "missingkey=error"


def _pin_suggestion(description: str, *, title: str) -> Suggestion:
    return Suggestion(
        title=title,
        description=description,
        patch="targetRevision: <tag-or-commit>",
        path="$.spec.source.targetRevision",
    )


# AR001 -------------------------------------------------------------------------
TARGET_REVISION_PINNED = RuleMetadata(
    id="AR001",
    description="targetRevision must be pinned to an immutable value",
    default_severity=Severity.WARN,
    applies_to=APPS,
    category="best-practice",
    help_url="https://argo-cd.readthedocs.io/en/stable/user-guide/application_sources/",
)


def check_target_revision(document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]:
    builder = FindingBuilder.for_document(rule, document)
    findings: List[Finding] = []
    for source in application_sources(document):
        findings.extend(_revision_findings(builder, get_str(source, "targetRevision").strip()))
    return findings


def _revision_findings(builder: FindingBuilder, revision: str) -> List[Finding]:
    if not revision:
        return [
            builder.new(
                "targetRevision is empty; pin to a tag or commit",
                Severity.WARN,
                suggestions=[
                    _pin_suggestion(
                        "Set targetRevision to a specific tag or commit to avoid drifting deployments.",
                        title="Pin targetRevision to an immutable reference",
                    )
                ],
            )
        ]
    if revision == "HEAD":
        return [
            builder.new(
                "targetRevision 'HEAD' is not immutable",
                Severity.ERROR,
                suggestions=[
                    _pin_suggestion(
                        "Pin targetRevision to a stable tag or commit instead of HEAD.",
                        title="Replace HEAD with immutable revision",
                    )
                ],
            )
        ]

    findings: List[Finding] = []
    if FLOATING_REVISION.match(revision):
        findings.append(
            builder.new(
                f"targetRevision '{revision}' refers to a mutable ref",
                Severity.ERROR,
                suggestions=[
                    _pin_suggestion(
                        "Use a specific tag or commit instead of a floating branch name.",
                        title="Pin targetRevision to an immutable reference",
                    )
                ],
            )
        )
    if "*" in revision or SEMVER_WILDCARD.match(revision):
        findings.append(
            builder.new(
                f"targetRevision '{revision}' contains wildcard; prefer exact tag",
                Severity.WARN,
                suggestions=[
                    _pin_suggestion(
                        "Set targetRevision to a precise tag or commit to ensure deterministic syncs.",
                        title="Replace wildcard with exact revision",
                    )
                ],
            )
        )
    return findings


# AR002 -------------------------------------------------------------------------
PROJECT_NOT_DEFAULT = RuleMetadata(
    id="AR002",
    description="Applications must target a non-default project",
    default_severity=Severity.ERROR,
    applies_to=APPS,
    category="security",
)


def check_project(document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]:
    builder = FindingBuilder.for_document(rule, document)
    project = project_name(document)
    if not project:
        if document.is_kind(ResourceKind.APPLICATION_SET):
            return [builder.new("ApplicationSet template lacks project assignment", Severity.ERROR)]
        return [builder.new("spec.project is empty; specify a project to scope access", Severity.ERROR)]
    if project == "default":
        return [builder.new("spec.project should not be 'default'", Severity.ERROR)]
    return []


# AR003 -------------------------------------------------------------------------
DESTINATION_NAMESPACE = RuleMetadata(
    id="AR003",
    description="Destination namespace must be declared for namespace-scoped applications",
    default_severity=Severity.ERROR,
    applies_to=(ResourceKind.APPLICATION,),
    category="safety",
)


def check_destination_namespace(document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]:
    destination = get_map(document.obj, "spec", "destination")
    namespace = get_str(destination, "namespace").strip()
    server = get_str(destination, "server").strip()
    cluster_name = get_str(destination, "name").strip()
    if not namespace and not cluster_name and server and server != IN_CLUSTER_SERVER:
        # explicit remote cluster without namespace targets cluster-scoped resources
        return []
    if not namespace:
        builder = FindingBuilder.for_document(rule, document)
        return [builder.new("spec.destination.namespace is required", Severity.ERROR)]
    return []


# AR004 -------------------------------------------------------------------------
SYNC_POLICY_EXPLICIT = RuleMetadata(
    id="AR004",
    description="Applications should declare syncPolicy automated or manual",
    default_severity=Severity.WARN,
    applies_to=(ResourceKind.APPLICATION,),
    category="operations",
)


def check_sync_policy(document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]:
    if get_map(document.obj, "spec", "syncPolicy"):
        return []
    builder = FindingBuilder.for_document(rule, document)
    return [builder.new("spec.syncPolicy not set; decide on automated or manual sync", Severity.WARN)]


# AR005 -------------------------------------------------------------------------
AUTOMATED_SYNC_SAFETY = RuleMetadata(
    id="AR005",
    description="Automated sync should enable prune and selfHeal when required",
    default_severity=Severity.WARN,
    applies_to=(ResourceKind.APPLICATION,),
    category="operations",
)


def check_automated_sync(document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]:
    automated = get_map(document.obj, "spec", "syncPolicy", "automated")
    if not automated:
        return []
    builder = FindingBuilder.for_document(rule, document)
    findings: List[Finding] = []
    if automated.get("prune") is not True:
        findings.append(builder.new("Automated sync without prune may leave orphaned resources", Severity.WARN))
    if automated.get("selfHeal") is not True:
        findings.append(builder.new("Automated sync without selfHeal may drift", Severity.WARN))
    return findings


# AR006 -------------------------------------------------------------------------
FINALIZER_AWARE = RuleMetadata(
    id="AR006",
    description="Applications should explicitly opt-in/out of finalizers",
    default_severity=Severity.INFO,
    applies_to=(ResourceKind.APPLICATION,),
    category="safety",
)


def check_finalizer(document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]:
    builder = FindingBuilder.for_document(rule, document)
    if FINALIZER in get_list(document.obj, "metadata", "finalizers"):
        return [builder.new(f"Finalizer {FINALIZER} enabled", Severity.INFO)]
    return [
        builder.new(
            f"Application deletes cascaded resources immediately; add {FINALIZER} if needed",
            Severity.WARN,
        )
    ]


# AR007 -------------------------------------------------------------------------
IGNORE_DIFFERENCES_SCOPED = RuleMetadata(
    id="AR007",
    description="ignoreDifferences entries must be tightly scoped",
    default_severity=Severity.WARN,
    applies_to=(ResourceKind.APPLICATION,),
    category="drift",
)


def check_ignore_differences(document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]:
    entries = get_list(document.obj, "spec", "ignoreDifferences")
    if not entries:
        return []
    builder = FindingBuilder.for_document(rule, document)
    findings: List[Finding] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            findings.append(builder.new("ignoreDifferences entry is not an object", Severity.WARN))
            continue
        if get_str(entry, "kind") == "*":
            findings.append(
                builder.new(
                    "ignoreDifferences with kind '*' disables drift detection for all kinds",
                    Severity.ERROR,
                )
            )
        if not get_list(entry, "jsonPointers") and not get_list(entry, "jqPathExpressions"):
            findings.append(
                builder.new("ignoreDifferences entry lacks jsonPointers or jqPathExpressions", Severity.WARN)
            )
    return findings


# AR008 -------------------------------------------------------------------------
GO_TEMPLATE_OPTIONS = RuleMetadata(
    id="AR008",
    description="ApplicationSets should enable missingkey=error to surface template issues",
    default_severity=Severity.WARN,
    applies_to=(ResourceKind.APPLICATION_SET,),
    category="best-practice",
)


def check_go_template_options(document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]:
    options = get_list(document.obj, "spec", "goTemplateOptions")
    builder = FindingBuilder.for_document(rule, document)
    if not options:
        return [
            builder.new(
                f"spec.goTemplateOptions missing; include '{MISSING_KEY_OPTION}'",
                Severity.WARN,
                suggestions=[
                    Suggestion(
                        title=f"Add {MISSING_KEY_OPTION} option",
                        description="Ensure template rendering fails fast when a variable is absent.",
                        patch=f"spec:\n  goTemplateOptions:\n    - {MISSING_KEY_OPTION}",
                        path="$.spec.goTemplateOptions",
                    )
                ],
            )
        ]
    if MISSING_KEY_OPTION in options:
        return []
    return [
        builder.new(
            f"Add '{MISSING_KEY_OPTION}' to spec.goTemplateOptions",
            Severity.WARN,
            suggestions=[
                Suggestion(
                    title=f"Append {MISSING_KEY_OPTION} to goTemplateOptions",
                    description=f"Include {MISSING_KEY_OPTION} so template issues surface during render.",
                    patch=f"- {MISSING_KEY_OPTION}",
                    path="$.spec.goTemplateOptions[]",
                )
            ],
        )
    ]


# AR009 -------------------------------------------------------------------------
SOURCE_CONSISTENCY = RuleMetadata(
    id="AR009",
    description="Application sources must be defined consistently",
    default_severity=Severity.ERROR,
    applies_to=(ResourceKind.APPLICATION,),
    category="configuration",
)

_CONFLICTING_STRATEGIES = (
    (
        "directory",
        "helm",
        "directory and helm options conflict in Application source",
        Suggestion(
            title="Remove mutually exclusive source sections",
            description="Use either the directory generator or Helm configuration for a source, not both.",
            patch="# remove either directory: or helm: block",
        ),
    ),
    (
        "directory",
        "kustomize",
        "directory and kustomize cannot be combined in one source",
        Suggestion(
            title="Split directory and kustomize sources",
            description="Define separate sources for raw directories and kustomize overlays.",
            patch="# move kustomize: block to a dedicated source entry",
        ),
    ),
    (
        "helm",
        "kustomize",
        "helm and kustomize options conflict; choose one renderer",
        Suggestion(
            title="Separate Helm and Kustomize configurations",
            description="Use distinct sources when mixing Helm charts and Kustomize overlays.",
            patch="# move helm: block to a dedicated source entry",
        ),
    ),
)


def check_source_consistency(document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]:
    builder = FindingBuilder.for_document(rule, document)
    findings: List[Finding] = []
    source = get_map(document.obj, "spec", "source")
    sources = get_list(document.obj, "spec", "sources")
    if source and sources:
        findings.append(builder.new("Use either spec.source or spec.sources, not both", Severity.ERROR))
    if source:
        findings.extend(_validate_source(builder, source, "$.spec.source"))
    for item in sources:
        if isinstance(item, Mapping):
            findings.extend(_validate_source(builder, item, "$.spec.sources[]"))
    return findings


def _validate_source(builder: FindingBuilder, source: Mapping[str, Any], source_path: str) -> List[Finding]:
    findings: List[Finding] = []
    if not get_str(source, "repoURL").strip():
        findings.append(builder.new("source.repoURL is required", Severity.ERROR))

    path_value = get_str(source, "path").strip()
    chart_value = get_str(source, "chart").strip()
    if path_value and chart_value:
        findings.append(builder.new("source.path and source.chart cannot both be set", Severity.ERROR))
    if not path_value and not chart_value:
        findings.append(builder.new("provide source.path for Git or source.chart for Helm", Severity.WARN))

    for first, second, message, suggestion in _CONFLICTING_STRATEGIES:
        if get_map(source, first) and get_map(source, second):
            findings.append(
                builder.new(
                    message,
                    Severity.ERROR,
                    suggestions=[
                        Suggestion(
                            title=suggestion.title,
                            description=suggestion.description,
                            patch=suggestion.patch,
                            path=source_path,
                        )
                    ],
                )
            )
    return findings


# AR010 -------------------------------------------------------------------------
RECOMMENDED_LABELS = RuleMetadata(
    id="AR010",
    description="Metadata should include recommended name, owner and managed-by labels",
    default_severity=Severity.INFO,
    applies_to=ALL_KINDS,
    category="advisory",
)

NAME_LABEL = "app.kubernetes.io/name"
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
OWNER_KEY = "argocd.argoproj.io/owner"


def check_recommended_labels(document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]:
    labels: Dict[str, Any] = get_map(document.obj, "metadata", "labels")
    annotations: Dict[str, Any] = get_map(document.obj, "metadata", "annotations")
    builder = FindingBuilder.for_document(rule, document)
    findings: List[Finding] = []

    if NAME_LABEL not in labels:
        findings.append(
            builder.new(
                f"Add {NAME_LABEL} label to metadata",
                Severity.INFO,
                suggestions=[
                    Suggestion(
                        title=f"Set {NAME_LABEL} label",
                        description="Use the canonical application name for consistent ownership.",
                        patch=f"metadata:\n  labels:\n    {NAME_LABEL}: <name>",
                        path="$.metadata.labels",
                    )
                ],
            )
        )
    if labels.get(MANAGED_BY_LABEL) != "argocd":
        findings.append(
            builder.new(
                f"Set {MANAGED_BY_LABEL}=argocd label",
                Severity.INFO,
                suggestions=[
                    Suggestion(
                        title="Label resources as managed by Argo CD",
                        description=f"Set {MANAGED_BY_LABEL} to 'argocd' for tooling consistency.",
                        patch=f"metadata:\n  labels:\n    {MANAGED_BY_LABEL}: argocd",
                        path="$.metadata.labels",
                    )
                ],
            )
        )
    if OWNER_KEY not in labels and OWNER_KEY not in annotations:
        findings.append(
            builder.new(
                f"Annotate owner via {OWNER_KEY}",
                Severity.INFO,
                suggestions=[
                    Suggestion(
                        title="Specify responsible team",
                        description=f"Add {OWNER_KEY} label or annotation to document ownership.",
                        patch=f"metadata:\n  annotations:\n    {OWNER_KEY}: <team>",
                        path="$.metadata.annotations",
                    )
                ],
            )
        )
    return findings


def document_rules() -> List[Rule]:
    return [
        Rule(TARGET_REVISION_PINNED, check_target_revision, applies_to_kinds(*APPS)),
        Rule(PROJECT_NOT_DEFAULT, check_project, applies_to_kinds(*APPS)),
        Rule(DESTINATION_NAMESPACE, check_destination_namespace, applies_to_kinds(ResourceKind.APPLICATION)),
        Rule(SYNC_POLICY_EXPLICIT, check_sync_policy, applies_to_kinds(ResourceKind.APPLICATION)),
        Rule(AUTOMATED_SYNC_SAFETY, check_automated_sync, applies_to_kinds(ResourceKind.APPLICATION)),
        Rule(FINALIZER_AWARE, check_finalizer, applies_to_kinds(ResourceKind.APPLICATION)),
        Rule(IGNORE_DIFFERENCES_SCOPED, check_ignore_differences, applies_to_kinds(ResourceKind.APPLICATION)),
        Rule(GO_TEMPLATE_OPTIONS, check_go_template_options, applies_to_kinds(ResourceKind.APPLICATION_SET)),
        Rule(SOURCE_CONSISTENCY, check_source_consistency, applies_to_kinds(ResourceKind.APPLICATION)),
        Rule(RECOMMENDED_LABELS, check_recommended_labels),
    ]
