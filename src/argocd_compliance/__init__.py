"""Static policy linting for Argo CD deployment manifests."""

__version__ = "0.4.0"
