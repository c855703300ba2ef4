"""Adapter layer package for parsing, validation, rendering and policy evaluation."""

from .dry_run import DryRunError, DryRunOptions, DryRunValidator
from .manifest_parser import ManifestError, ManifestParser, discover_files
from .policy_engine import CompiledPolicy, OPAPolicyEngine, PolicyEngine, PolicyEvaluationError
from .renderer import RenderOptions, Renderer
from .schema_validator import SchemaError, SchemaValidator

__all__ = [
    "CompiledPolicy",
    "DryRunError",
    "DryRunOptions",
    "DryRunValidator",
    "ManifestError",
    "ManifestParser",
    "OPAPolicyEngine",
    "PolicyEngine",
    "PolicyEvaluationError",
    "RenderOptions",
    "Renderer",
    "SchemaError",
    "SchemaValidator",
    "discover_files",
]
