"""Tests for pre-run input validation."""

from scheduling.models import Instrument
from validators import ValidationReport, validate_scheduling_inputs


class TestValidationReport:

    def test_empty_report_is_valid(self):
        report = ValidationReport()
        assert report.is_valid
        assert report.get_summary() == {'is_valid': True, 'errors': 0, 'warnings': 0, 'info': 0}

    def test_error_invalidates(self):
        report = ValidationReport()
        report.add_warning("careful")
        assert report.is_valid
        report.add_error("broken")
        assert not report.is_valid


class TestValidateSchedulingInputs:
    """Tests for validate_scheduling_inputs."""

    def test_clean_inputs(self, batch_factory, instruments):
        report = validate_scheduling_inputs([batch_factory()], instruments)
        assert report.is_valid
        assert report.warnings == []
        assert "1 inactive instruments excluded from scheduling" in report.info

    def test_duplicate_ids_are_errors(self, batch_factory, instruments):
        report = validate_scheduling_inputs([batch_factory('B1'), batch_factory('B1')],
                                            instruments + [instruments[0]])
        assert not report.is_valid
        assert len(report.errors) == 2

    def test_per_test_problems_are_warnings(self, batch_factory, spec_factory, instruments):
        batch = batch_factory(tests=[
            spec_factory(column_code=None),
            spec_factory(mobile_phase_codes=['A', 'B', 'C', 'D', 'E']),
            spec_factory(detector_type_id='FLD'),
            spec_factory(test_status='Completed', detector_type_id='FLD'),
        ])
        report = validate_scheduling_inputs([batch], instruments)
        assert report.is_valid
        assert len(report.warnings) == 3
        assert "BN-B1 / Assay: missing column" in report.warnings

    def test_instrument_warnings(self, batch_factory):
        report = validate_scheduling_inputs([batch_factory()], [Instrument('I1', 'HPLC-A', [])])
        assert any("no detectors" in w for w in report.warnings)

    def test_no_active_instruments(self, batch_factory):
        report = validate_scheduling_inputs([batch_factory()], [])
        assert any("No active instruments" in w for w in report.warnings)

    def test_parse_warnings_carried(self, batch_factory, instruments):
        report = validate_scheduling_inputs([batch_factory()], instruments, parse_warnings=['bad cell'])
        assert 'bad cell' in report.warnings
