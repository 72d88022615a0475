"""
Input Validators
Pre-run checks of batches and instruments before scheduling.

Nothing here blocks a test from being scheduled: per-test problems end up in the
Hold Pool with a reason. Errors are reserved for structural problems that would
make the run itself ambiguous (duplicate ids).
"""

from collections import Counter
from typing import Dict, List, Any, Optional

from scheduling.models import Batch, Instrument
from scheduling.config import SchedulerConfig


class ValidationReport:
    """Errors (blocking), warnings and info collected during validation."""

    def __init__(self):
        self.errors = []
        self.warnings = []
        self.info = []

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, message: str):
        self.errors.append(message)

    def add_warning(self, message: str):
        self.warnings.append(message)

    def add_info(self, message: str):
        self.info.append(message)

    def get_summary(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'errors': len(self.errors),
            'warnings': len(self.warnings),
            'info': len(self.info),
        }

    def _print_section(self, marker: str, title: str, messages: List[str], limit: int):
        if not messages:
            return
        print(f"\n{marker} {title} ({len(messages)}):")
        for i, message in enumerate(messages[:limit], 1):
            print(f"   {i}. {message}")
        if len(messages) > limit:
            print(f"   ... and {len(messages) - limit} more")

    def print_report(self):
        print("\n" + "=" * 70)
        print("SCHEDULING INPUT VALIDATION")
        print("=" * 70)
        print("\n[OK] VALIDATION PASSED" if self.is_valid else "\n[FAIL] VALIDATION FAILED")
        self._print_section('[ERROR]', 'ERRORS', self.errors, 10)
        self._print_section('[WARN]', 'WARNINGS', self.warnings, 10)
        self._print_section('[INFO]', 'INFO', self.info, 5)


def validate_scheduling_inputs(batches: List[Batch], instruments: List[Instrument],
                               config: Optional[SchedulerConfig] = None,
                               parse_warnings: Optional[List[str]] = None) -> ValidationReport:
    """
    Validate batches and instruments ahead of a scheduling run.

    Args:
        batches: Parsed batches
        instruments: Parsed instrument master
        config: Limits used for the mobile phase slot check
        parse_warnings: Coercion messages from the parsers, carried over as warnings

    Returns:
        ValidationReport
    """
    config = config or SchedulerConfig()
    report = ValidationReport()

    for message in parse_warnings or []:
        report.add_warning(message)

    _validate_instruments(instruments, report)
    _validate_batches(batches, instruments, config, report)

    print(f"[Validate] {len(report.errors)} errors, {len(report.warnings)} warnings")
    return report


def _validate_instruments(instruments: List[Instrument], report: ValidationReport):
    counts = Counter(i.instrument_id for i in instruments)
    for instrument_id, count in counts.items():
        if count > 1:
            report.add_error(f"Instrument id {instrument_id} appears {count} times")

    active = [i for i in instruments if i.is_active]
    inactive = len(instruments) - len(active)
    if not active:
        report.add_warning("No active instruments: every test will go to the Hold Pool")
    if inactive:
        report.add_info(f"{inactive} inactive instruments excluded from scheduling")

    for instrument in active:
        if not instrument.detector_ids:
            report.add_warning(f"{instrument.name} has no detectors and cannot take any test")


def _validate_batches(batches: List[Batch], instruments: List[Instrument],
                      config: SchedulerConfig, report: ValidationReport):
    counts = Counter(b.batch_id for b in batches)
    for batch_id, count in counts.items():
        if count > 1:
            report.add_error(f"Batch id {batch_id} appears {count} times")

    supported = set()
    for instrument in instruments:
        if instrument.is_active:
            supported.update(instrument.detector_ids)

    schedulable = 0
    for batch in batches:
        for test in batch.tests:
            if not test.is_schedulable:
                continue
            schedulable += 1
            label = f"{batch.batch_number} / {test.test_name}"

            if test.missing_fields:
                report.add_warning(f"{label}: missing {', '.join(test.missing_fields)}")
                continue
            codes = set(test.active_codes)
            if len(codes) > config.max_mobile_phase_slots:
                report.add_warning(f"{label}: uses {len(codes)} mobile phase/wash codes "
                                   f"(max {config.max_mobile_phase_slots})")
            if test.detector_type_id not in supported:
                report.add_warning(f"{label}: no active instrument supports detector "
                                   f"{test.detector_type_id}")

    report.add_info(f"{len(batches)} batches, {schedulable} not-started tests")
