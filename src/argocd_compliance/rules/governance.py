"""AppProject guardrails and access-policy rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlsplit

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
    applies_to_kinds,
    get_list,
    get_map,
    get_str,
    glob_match,
    project_name,
    repo_urls,
    string_items,
)

APPS = (ResourceKind.APPLICATION, ResourceKind.APPLICATION_SET)


# AR012 -------------------------------------------------------------------------
APP_PROJECT_GUARDRAILS = RuleMetadata(
    id="AR012",
    description="AppProjects should scope allowed sources and destinations",
    default_severity=Severity.WARN,
    applies_to=(ResourceKind.APP_PROJECT,),
    category="governance",
)


def check_app_project(document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]:
    builder = FindingBuilder.for_document(rule, document)
    findings: List[Finding] = []

    def warn(message: str, title: str, description: str, patch: str, path: str) -> None:
        findings.append(
            builder.new(
                message,
                Severity.WARN,
                suggestions=[Suggestion(title=title, description=description, patch=patch, path=path)],
            )
        )

    namespaces = get_list(document.obj, "spec", "sourceNamespaces")
    if not namespaces:
        warn(
            "spec.sourceNamespaces is empty; restrict allowed namespaces",
            "Define allowed source namespaces",
            "List namespaces that AppProject members may source from.",
            "spec:\n  sourceNamespaces:\n    - apps",
            "$.spec.sourceNamespaces",
        )
    for namespace in namespaces:
        if namespace == "*":
            warn(
                "spec.sourceNamespaces uses wildcard '*'; tighten namespace scope",
                "Replace wildcard namespace",
                "Set explicit namespace names in sourceNamespaces.",
                "- <namespace>",
                "$.spec.sourceNamespaces[]",
            )

    for repo in get_list(document.obj, "spec", "sourceRepos"):
        if isinstance(repo, str) and "*" in repo:
            warn(
                "spec.sourceRepos entry allows wildcard; pin repositories explicitly",
                "List exact repository URL",
                "Replace wildcard entries with explicit repository URLs.",
                "- https://git.example.com/org/repo.git",
                "$.spec.sourceRepos[]",
            )

    destinations = get_list(document.obj, "spec", "destinations")
    if not destinations:
        warn(
            "spec.destinations is empty; declare allowed target clusters/namespaces",
            "Add destination entries",
            "List the clusters and namespaces AppProject may deploy to.",
            "spec:\n  destinations:\n    - namespace: apps\n      server: https://kubernetes.default.svc",
            "$.spec.destinations",
        )
    for destination in destinations:
        if not isinstance(destination, Mapping):
            continue
        namespace = get_str(destination, "namespace").strip()
        if not namespace:
            warn(
                "Destination missing namespace; specify exact namespace or '*'",
                "Set destination namespace",
                "Declare the namespace this destination permits.",
                "namespace: <namespace>",
                "$.spec.destinations[]",
            )
        elif namespace == "*":
            warn(
                "Destination namespace is wildcard '*'; prefer explicit namespaces",
                "Replace wildcard namespace",
                "Restrict destinations to known namespaces.",
                "namespace: <namespace>",
                "$.spec.destinations[]",
            )
        server = get_str(destination, "server").strip()
        cluster_name = get_str(destination, "name").strip()
        if not server and not cluster_name:
            warn(
                "Destination missing cluster selector; set server or name",
                "Provide cluster identifier",
                "Specify destination.server URL or destination.name for cluster selection.",
                "server: https://kubernetes.default.svc",
                "$.spec.destinations[]",
            )
        elif server == "*":
            warn(
                "Destination server wildcard '*'; scope clusters explicitly",
                "Replace wildcard server",
                "Use explicit destination.name or destination.server entries.",
                "server: https://kubernetes.default.svc",
                "$.spec.destinations[]",
            )
    return findings


# AR013 -------------------------------------------------------------------------
REPO_URL_POLICY = RuleMetadata(
    id="AR013",
    description="source.repoURL must match approved protocols and domains",
    default_severity=Severity.ERROR,
    applies_to=APPS,
    category="security",
)


def normalize_policy_list(values: Sequence[str]) -> List[str]:
    """Lower-case entries with any trailing ``:`` or ``://`` removed."""

    normalized = []
    for value in values:
        value = value.strip()
        for suffix in ("://", ":"):
            if value.endswith(suffix):
                value = value[: -len(suffix)]
        value = value.strip().lower()
        if value:
            normalized.append(value)
    return normalized


def parse_repo_url(raw: str) -> Tuple[str, str]:
    """Return ``(scheme, host)`` for ``raw``; scp-style URLs have no scheme."""

    value = raw.strip()
    if not value:
        return "", ""
    if "://" in value:
        parts = urlsplit(value)
        if parts.hostname:
            return parts.scheme.lower(), parts.hostname.lower()
    remainder = value.rsplit("@", 1)[-1]
    if ":" in remainder:
        return "", remainder.split(":", 1)[0].lower()
    if remainder.startswith("//"):
        return "", remainder[2:].lower()
    return "", remainder.lower()


def check_repo_url_policy(document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]:
    policies = context.config.policies
    protocols = normalize_policy_list(policies.allowed_repo_url_protocols)
    domains = normalize_policy_list(policies.allowed_repo_url_domains)
    if not protocols and not domains:
        return []

    builder = FindingBuilder.for_document(rule, document)
    findings: List[Finding] = []
    allowed_protocols = ",".join(protocols)
    allowed_domains = ",".join(domains)
    for repo in repo_urls(document):
        scheme, host = parse_repo_url(repo)
        if protocols and "*" not in protocols:
            if scheme and scheme not in protocols:
                findings.append(
                    builder.new(f"source.repoURL '{repo}' uses protocol '{scheme}' (allowed: {allowed_protocols})")
                )
                continue
            if not scheme:
                findings.append(
                    builder.new(f"source.repoURL '{repo}' omits a protocol (allowed: {allowed_protocols})")
                )
        if domains:
            if not host:
                findings.append(
                    builder.new(
                        f"source.repoURL '{repo}' has no host; cannot validate against domains ({allowed_domains})"
                    )
                )
                continue
            if not any(glob_match(pattern, host) for pattern in domains):
                findings.append(
                    builder.new(f"source.repoURL '{repo}' resolves to '{host}' not allowed ({allowed_domains})")
                )
    return findings


# AR014 -------------------------------------------------------------------------
PROJECT_ACCESS = RuleMetadata(
    id="AR014",
    description="Applications must reference existing AppProjects and stay within declared access scopes",
    default_severity=Severity.ERROR,
    applies_to=APPS,
    category="governance",
)


@dataclass(slots=True, frozen=True)
class Destination:
    server: str = ""
    name: str = ""
    namespace: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Destination":
        return cls(
            server=get_str(data, "server").strip(),
            name=get_str(data, "name").strip(),
            namespace=get_str(data, "namespace").strip(),
        )


WILDCARD_DESTINATION = Destination(server="*", name="*", namespace="*")


@dataclass(slots=True, frozen=True)
class ProjectPolicy:
    """Allow-lists declared by one AppProject."""

    source_repos: Tuple[str, ...]
    destinations: Tuple[Destination, ...]

    def allows_repo(self, repo: str) -> bool:
        if not self.source_repos:
            return True
        repo = repo.lower()
        return any(glob_match(pattern.lower(), repo) for pattern in self.source_repos)

    def allows_destination(self, destination: Destination) -> bool:
        return any(
            _field_allowed(destination.namespace, candidate.namespace)
            and _field_allowed(destination.server, candidate.server)
            and _field_allowed(destination.name, candidate.name)
            for candidate in self.destinations
        )


def _field_allowed(value: str, pattern: str) -> bool:
    pattern = pattern.strip()
    if not pattern or pattern == "*":
        return True
    if not value.strip():
        return False
    return glob_match(pattern.lower(), value.strip().lower())


def collect_projects(documents: Sequence[Document]) -> Dict[str, ProjectPolicy]:
    """Index the AppProjects present in a run by name."""

    projects: Dict[str, ProjectPolicy] = {}
    for document in documents:
        if not document.is_kind(ResourceKind.APP_PROJECT):
            continue
        spec = get_map(document.obj, "spec")
        repos = tuple(string_items(get_list(spec, "sourceRepos"))) or ("*",)
        destinations = tuple(
            Destination.from_mapping(item) for item in get_list(spec, "destinations") if isinstance(item, Mapping)
        )
        projects[document.name] = ProjectPolicy(
            source_repos=repos,
            destinations=destinations or (WILDCARD_DESTINATION,),
        )
    return projects


def document_destination(document: Document) -> Optional[Destination]:
    if document.is_kind(ResourceKind.APPLICATION_SET):
        destination = get_map(document.obj, "spec", "template", "spec", "destination")
    else:
        destination = get_map(document.obj, "spec", "destination")
    if not destination:
        return None
    return Destination.from_mapping(destination)


def check_project_access(document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]:
    projects = collect_projects(context.documents)
    if not projects:
        return []
    name = project_name(document)
    if not name:
        return []

    builder = FindingBuilder.for_document(rule, document)
    policy = projects.get(name)
    if policy is None:
        return [builder.new(f"AppProject '{name}' not found; add manifest or adjust spec.project")]

    findings: List[Finding] = []
    for repo in repo_urls(document):
        if not policy.allows_repo(repo):
            findings.append(builder.new(f"source.repoURL '{repo}' is not permitted by AppProject '{name}'"))
    destination = document_destination(document)
    if destination is not None and not policy.allows_destination(destination):
        findings.append(builder.new(f"destination not permitted by AppProject '{name}'"))
    return findings


def governance_rules() -> List[Rule]:
    return [
        Rule(APP_PROJECT_GUARDRAILS, check_app_project, applies_to_kinds(ResourceKind.APP_PROJECT)),
        Rule(REPO_URL_POLICY, check_repo_url_policy, applies_to_kinds(*APPS)),
        Rule(PROJECT_ACCESS, check_project_access, applies_to_kinds(*APPS)),
    ]
