"""Rego policy plugins."""

from .loader import (
    MetadataRecord,
    PluginLoadError,
    PolicyLoader,
    PolicyPlugin,
    discover_metadata,
)

__all__ = [
    "MetadataRecord",
    "PluginLoadError",
    "PolicyLoader",
    "PolicyPlugin",
    "discover_metadata",
]
