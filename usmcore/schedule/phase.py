"""
Run-at phases and which scripts each phase admits.

    phase            admits run_at
    document-start   document-start
    document-end     document-end
    document-idle    document-idle, document-end

document-end scripts are admitted again at document-idle as a delivery
fallback, so during one page instance they are evaluated at BOTH the end and
the idle phase. That repeat is intended behaviour and is not deduplicated.
"""

from enum import Enum
from typing import Optional

from usmcore.catalog.models import DEFAULT_RUN_AT


class RunAt(str, Enum):
    DOCUMENT_START = "document-start"
    DOCUMENT_END = "document-end"
    DOCUMENT_IDLE = "document-idle"

    @classmethod
    def parse(cls, value: str) -> "RunAt":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(
                f"Unknown phase {value!r}; expected one of {[p.value for p in cls]}"
            ) from None


PHASE_ORDER = (RunAt.DOCUMENT_START, RunAt.DOCUMENT_END, RunAt.DOCUMENT_IDLE)

_ADMITS = {
    RunAt.DOCUMENT_START: {RunAt.DOCUMENT_START.value},
    RunAt.DOCUMENT_END: {RunAt.DOCUMENT_END.value},
    RunAt.DOCUMENT_IDLE: {RunAt.DOCUMENT_IDLE.value, RunAt.DOCUMENT_END.value},
}


def normalize_run_at(run_at: Optional[str]) -> str:
    """Absent run_at means document-end."""
    return run_at or DEFAULT_RUN_AT


def applies_to_phase(run_at: Optional[str], phase: str) -> bool:
    try:
        admitted = _ADMITS[RunAt(phase)]
    except ValueError:
        return False
    return normalize_run_at(run_at) in admitted
