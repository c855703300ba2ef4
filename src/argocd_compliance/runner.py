"""Orchestration of a lint run: discovery, validation, rules and suppression."""

from __future__ import annotations

import dataclasses
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Sequence

from .adapters import (
    DryRunOptions,
    DryRunValidator,
    ManifestParser,
    RenderOptions,
    Renderer,
    SchemaValidator,
    discover_files,
)
from .config import LintConfig
from .models import ConfiguredRule, Document, Finding, ResourceKind, RuleMetadata, sort_findings
from .rules import UNIQUE_APPLICATION_NAMES, RuleContext, default_rules, unique_name_findings
from .suppression import BASELINE_AGED, WAIVER_EXPIRED, WAIVER_INVALID, Baseline, apply_waivers

logger = logging.getLogger(__name__)


class LintError(RuntimeError):
    """Raised when a lint run cannot start."""


class Checker(Protocol):
    """Anything evaluated per document: built-in rules and policy plugins."""

    metadata: RuleMetadata

    def applies(self, document: Document) -> bool: ...

    def check(self, document: Document, context: RuleContext, rule: ConfiguredRule) -> List[Finding]: ...


@dataclass(slots=True)
class LintOptions:
    """Per-run inputs for :meth:`LintRunner.run`."""

    target: str
    include_applications: bool = True
    include_application_sets: bool = True
    include_projects: bool = True
    render: Optional[RenderOptions] = None
    dry_run: Optional[DryRunOptions] = None
    max_parallel: int = 0
    baseline: Optional[Baseline] = None
    baseline_aging_days: int = 0
    now: Optional[datetime] = None


@dataclass(slots=True)
class LintReport:
    """Ordered findings, the metadata of every rule that could report, and baseline-suppressed findings."""

    findings: List[Finding] = field(default_factory=list)
    rule_index: Dict[str, RuleMetadata] = field(default_factory=dict)
    suppressed: List[Finding] = field(default_factory=list)


class LintRunner:
    """Run schema validation, rendering, dry-run, rules and plugins over a manifest tree."""

    def __init__(
        self,
        config: LintConfig | None = None,
        *,
        working_dir: str = "",
        schema_version: str = "",
        plugins: Sequence[Checker] = (),
        parser: ManifestParser | None = None,
        schema_validator: SchemaValidator | None = None,
    ) -> None:
        self.config = config or LintConfig()
        self.working_dir = working_dir
        self.parser = parser or ManifestParser()
        self.schema_validator = schema_validator or SchemaValidator(schema_version)
        self.rules: List[Checker] = list(default_rules())
        self.plugins: List[Checker] = list(plugins)

    def register_plugins(self, *plugins: Checker) -> None:
        self.plugins.extend(plugins)

    # ------------------------------------------------------------------
    def run(self, options: LintOptions) -> LintReport:
        if not options.target:
            raise LintError("no target specified")
        now = options.now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        documents = self._load_documents(options)
        rule_index = self._rule_index()

        renderer: Optional[Renderer] = None
        if options.render is not None:
            renderer = Renderer(self.config, options.render)
            rule_index.update((meta.id, meta) for meta in renderer.metadata())

        dry_run: Optional[DryRunValidator] = None
        if options.dry_run is not None and options.dry_run.mode:
            dry_run = DryRunValidator(self.config, self.working_dir, options.dry_run)
            rule_index.update((meta.id, meta) for meta in dry_run.metadata())

        findings = self._validate(documents, renderer, options.max_parallel)
        if dry_run is not None:
            findings.extend(dry_run.validate(documents))

        context = RuleContext(config=self.config, documents=tuple(documents))
        for document in documents:
            for checker in [*self.rules, *self.plugins]:
                if not checker.applies(document):
                    continue
                configured = self.config.resolve(checker.metadata, document.file_path)
                if not configured.enabled:
                    continue
                findings.extend(checker.check(document, context, configured))
        findings.extend(unique_name_findings(context))
        findings = sort_findings(findings)

        waived = apply_waivers(self.config.waivers, findings, now=now)
        findings = waived.findings + waived.diagnostics

        suppressed: List[Finding] = []
        if options.baseline is not None:
            filtered = options.baseline.filter(findings, options.baseline_aging_days, now=now)
            findings = filtered.findings + filtered.aged
            suppressed = filtered.suppressed

        logger.debug(
            "lint finished: %d documents, %d findings, %d waived, %d suppressed by baseline",
            len(documents),
            len(findings),
            len(waived.waived),
            len(suppressed),
        )
        return LintReport(findings=sort_findings(findings), rule_index=rule_index, suppressed=suppressed)

    # ------------------------------------------------------------------
    def _load_documents(self, options: LintOptions) -> List[Document]:
        include = {
            ResourceKind.APPLICATION.value: options.include_applications,
            ResourceKind.APPLICATION_SET.value: options.include_application_sets,
            ResourceKind.APP_PROJECT.value: options.include_projects,
        }
        if not any(include.values()):
            logger.warning("all resource kinds were excluded; linting every supported kind instead")
            include = dict.fromkeys(include, True)

        documents: List[Document] = []
        for file_path in discover_files(options.target):
            for document in self.parser.parse_file(file_path):
                if not include.get(document.kind, False):
                    continue
                documents.append(dataclasses.replace(document, file_path=self._relative(document.file_path)))
        logger.debug("parsed %d documents from %s", len(documents), options.target)
        return documents

    def _relative(self, file_path: str) -> str:
        if not self.working_dir:
            return file_path
        try:
            return os.path.relpath(file_path, self.working_dir)
        except ValueError:
            return file_path

    # ------------------------------------------------------------------
    def _rule_index(self) -> Dict[str, RuleMetadata]:
        index: Dict[str, RuleMetadata] = {}
        for meta in self.schema_validator.metadata():
            index[meta.id] = meta
        for checker in self.rules:
            index[checker.metadata.id] = checker.metadata
        index[UNIQUE_APPLICATION_NAMES.id] = UNIQUE_APPLICATION_NAMES
        for checker in self.plugins:
            index[checker.metadata.id] = checker.metadata
        for meta in (WAIVER_EXPIRED, WAIVER_INVALID, BASELINE_AGED):
            index[meta.id] = meta
        return index

    # ------------------------------------------------------------------
    def _validate(
        self, documents: Sequence[Document], renderer: Optional[Renderer], max_parallel: int
    ) -> List[Finding]:
        """Schema-validate and render every document on a bounded worker pool.

        The first error cancels queued work; documents already running finish
        and their results are discarded.
        """

        findings: List[Finding] = []
        if not documents:
            return findings
        lock = threading.Lock()
        failed = threading.Event()

        def validate(document: Document) -> None:
            if failed.is_set():
                return
            local = self.schema_validator.validate(document)
            if renderer is not None:
                local.extend(renderer.render(document))
            with lock:
                findings.extend(local)

        workers = max_parallel if max_parallel > 0 else max(os.cpu_count() or 1, 1)
        first_error: Optional[BaseException] = None
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(validate, document) for document in documents]
            for future in as_completed(futures):
                if future.cancelled():
                    continue
                error = future.exception()
                if error is not None and first_error is None:
                    first_error = error
                    failed.set()
                    for pending in futures:
                        pending.cancel()
        if first_error is not None:
            raise first_error
        return findings


__all__ = ["LintError", "LintOptions", "LintReport", "LintRunner"]
