"""
Unit tests for run-at phase admission.
"""
import pytest

from usmcore.schedule.phase import PHASE_ORDER, RunAt, applies_to_phase, normalize_run_at


class TestPhaseAdmission:

    @pytest.mark.parametrize("run_at,phase,expected", [
        ("document-start", "document-start", True),
        ("document-start", "document-end", False),
        ("document-start", "document-idle", False),
        ("document-end", "document-start", False),
        ("document-end", "document-end", True),
        ("document-end", "document-idle", True),
        ("document-idle", "document-start", False),
        ("document-idle", "document-end", False),
        ("document-idle", "document-idle", True),
    ])
    def test_admission_table(self, run_at, phase, expected):
        assert applies_to_phase(run_at, phase) is expected

    def test_absent_run_at_is_document_end(self):
        assert normalize_run_at(None) == "document-end"
        assert applies_to_phase(None, "document-end")
        assert applies_to_phase(None, "document-idle")
        assert not applies_to_phase(None, "document-start")

    def test_unknown_phase_admits_nothing(self):
        assert not applies_to_phase("document-end", "document-later")

    def test_unknown_run_at_never_runs(self):
        for phase in PHASE_ORDER:
            assert not applies_to_phase("whenever", phase.value)

    def test_parse(self):
        assert RunAt.parse("document-idle") is RunAt.DOCUMENT_IDLE
        with pytest.raises(ValueError, match="Unknown phase"):
            RunAt.parse("soon")
