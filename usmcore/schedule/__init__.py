"""Phase resolution and script selection."""

from usmcore.schedule.phase import PHASE_ORDER, RunAt, applies_to_phase, normalize_run_at
from usmcore.schedule.selector import (
    ScriptSelector,
    SelectionVerdict,
    is_web_url,
    normalize_host,
)

__all__ = [
    "PHASE_ORDER",
    "RunAt",
    "applies_to_phase",
    "normalize_run_at",
    "ScriptSelector",
    "SelectionVerdict",
    "is_web_url",
    "normalize_host",
]
