"""Waiver and baseline suppression."""

from .baseline import (
    BASELINE_AGED,
    Baseline,
    BaselineEntry,
    BaselineError,
    BaselineResult,
    load_baseline,
    write_baseline,
)
from .waiver_filter import WAIVER_EXPIRED, WAIVER_INVALID, WaiverResult, apply_waivers

__all__ = [
    "BASELINE_AGED",
    "Baseline",
    "BaselineEntry",
    "BaselineError",
    "BaselineResult",
    "WAIVER_EXPIRED",
    "WAIVER_INVALID",
    "WaiverResult",
    "apply_waivers",
    "load_baseline",
    "write_baseline",
]
