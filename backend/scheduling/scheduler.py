"""
Daily Assignment Scheduler
First-fit bin-packing of pending HPLC tests onto instruments for the current moment.

Tests are flattened from batches, costed with every injection active, sorted by
priority (stable) and offered to instruments in master-data order. The first
instrument that accepts wins and earlier decisions are never revisited. Tests no
instrument accepts go to the Hold Pool with a reason.
"""

from collections import Counter
from typing import Dict, List, Any, Optional, Tuple

import pandas as pd

from scheduling.models import (
    Batch, Instrument, Lookups, ScheduledTest, InstrumentQueue, HoldEntry,
)
from scheduling.cost_model import compute_cost
from scheduling.api_resolver import resolve_origin_api, linked_component_keys, normalize_phases
from scheduling.grouping import group_queue
from scheduling.formatting import format_minutes
from scheduling.config import SchedulerConfig


# Hold reason codes
REASON_RUNTIME = 'runtime_limit'
REASON_MOBILE_PHASE = 'mobile_phase_limit'
REASON_NO_DETECTOR = 'no_compatible_detector'
REASON_NO_MATCH = 'no_matching_instrument'
REASON_MISSING_FIELDS = 'missing_fields'
REASON_INVALID_TIME = 'invalid_time'
REASON_MANUAL = 'manual'

# Held tests that no later placement can fix without new input data
UNPLACEABLE_REASONS = (REASON_MISSING_FIELDS, REASON_INVALID_TIME)


def distinct_codes(codes: List[str]) -> List[str]:
    """Non-empty mobile phase / wash codes, deduplicated, in first-seen order."""
    result = []
    for code in codes:
        if code and code not in result:
            result.append(code)
    return result


# =============================================================================
# PACKING RULE
# =============================================================================

class PackingSlot:
    """
    One instrument run being filled with tests.

    The first accepted test locks the slot's column and detector and seeds its
    mobile phase set. Later tests must match both locks, keep the union of
    mobile phase codes within the slot limit and keep the total under the
    runtime ceiling.
    """

    def __init__(self, allowed_detectors: List[str], config: SchedulerConfig):
        self.allowed_detectors = list(allowed_detectors)
        self.config = config
        self.tests: List[ScheduledTest] = []
        self.total_time = 0.0
        self.column: Optional[str] = None
        self.detector: Optional[str] = None
        self.mobile_phases: List[str] = []

    @property
    def is_empty(self) -> bool:
        return not self.tests

    def accepts(self, test: ScheduledTest) -> bool:
        codes = distinct_codes(test.mobile_phase_codes)
        limit = self.config.max_mobile_phase_slots

        if self.is_empty:
            return (test.detector_type_id in self.allowed_detectors
                    and len(codes) <= limit
                    and test.execution_time <= self.config.max_runtime_minutes)

        if test.column_code != self.column or test.detector_type_id != self.detector:
            return False
        if self.total_time + test.execution_time > self.config.max_runtime_minutes:
            return False
        combined = distinct_codes(self.mobile_phases + codes)
        return len(combined) <= limit

    def add(self, test: ScheduledTest):
        if self.is_empty:
            self.column = test.column_code
            self.detector = test.detector_type_id
        self.tests.append(test)
        self.total_time += test.execution_time
        self.mobile_phases = distinct_codes(self.mobile_phases + test.mobile_phase_codes)


def sort_by_priority(tests: List[ScheduledTest]) -> List[ScheduledTest]:
    """Highest priority tier first; ties keep their incoming order."""
    return sorted(tests, key=lambda t: -t.priority_value)


# =============================================================================
# RESULT
# =============================================================================

class ScheduleResult:
    """Queues for every active instrument (idle ones included) plus the Hold Pool."""

    def __init__(self, all_queues: List[InstrumentQueue], hold_pool: List[HoldEntry]):
        self.all_queues = all_queues
        self.hold_pool = hold_pool

    @property
    def queues(self) -> List[InstrumentQueue]:
        """The current view: instruments with at least one test."""
        return [q for q in self.all_queues if not q.is_idle]

    @property
    def idle_queues(self) -> List[InstrumentQueue]:
        return [q for q in self.all_queues if q.is_idle]

    @property
    def placed_count(self) -> int:
        return sum(len(q.tests) for q in self.all_queues)


# =============================================================================
# SCHEDULER
# =============================================================================

class HPLCScheduler:
    """
    Assigns every not-started test to an instrument queue or the Hold Pool.
    """

    def __init__(self, batches: List[Batch], instruments: List[Instrument],
                 config: SchedulerConfig = None, lookups: Lookups = None):
        self.config = (config or SchedulerConfig()).validate()
        self.batches = batches or []
        self.instruments = [i for i in (instruments or []) if i.is_active]
        self.lookups = lookups or Lookups()
        self.result: Optional[ScheduleResult] = None
        self._pending_holds: Dict[str, Tuple[str, str]] = {}

    def _flatten(self) -> List[ScheduledTest]:
        """Wrap every not-started test in a costed ScheduledTest, in batch order."""
        flattened = []
        self._pending_holds = {}

        for batch in self.batches:
            occurrences = Counter()
            for index, spec in enumerate(batch.tests):
                if not spec.is_schedulable:
                    continue

                signature = (spec.test_name, spec.column_code, spec.detector_type_id,
                             normalize_phases(spec.mobile_phase_codes), spec.run_time,
                             spec.sample_injection, spec.standard_injection)
                hint = occurrences[signature]
                occurrences[signature] += 1

                api = resolve_origin_api(batch, spec, hint, self.lookups.api_names)
                test_id = f"{batch.batch_id}-{index}"
                if api.api_id:
                    test_id = f"{test_id}-{api.api_id}"

                test = ScheduledTest(
                    id=test_id,
                    batch_id=batch.batch_id,
                    batch_number=batch.batch_number,
                    product_code=batch.product_code,
                    product_name=batch.product_name,
                    test=spec,
                    priority=batch.priority,
                    api_id=api.api_id,
                    api_label=api.label,
                    linked_keys=linked_component_keys(batch, spec),
                )
                flattened.append(test)

                missing = spec.missing_fields
                if missing:
                    self._pending_holds[test_id] = (
                        f"Missing required field(s): {', '.join(missing)}", REASON_MISSING_FIELDS)
                    continue

                breakdown = compute_cost(spec, self.config.wash_interval)
                test.calculation_breakdown = breakdown
                test.original_execution_time = breakdown.total_minutes
                test.execution_time = breakdown.total_minutes
                if breakdown.total_minutes <= 0:
                    self._pending_holds[test_id] = (
                        f"Invalid execution time ({format_minutes(breakdown.total_minutes)})",
                        REASON_INVALID_TIME)

        return flattened

    def hold_reason(self, test: ScheduledTest) -> Tuple[str, str]:
        """First applicable reason a test could not be placed, as (message, code)."""
        codes = distinct_codes(test.mobile_phase_codes)
        limit = self.config.max_mobile_phase_slots

        if test.execution_time > self.config.max_runtime_minutes:
            return (f"Exceeds {self.config.max_runtime_hours:g}-hour runtime limit "
                    f"({test.execution_time / 60:.1f} hours)", REASON_RUNTIME)
        if len(codes) > limit:
            return (f"Exceeds mobile phase/wash limit: requires {len(codes)} (max {limit})",
                    REASON_MOBILE_PHASE)
        if not any(inst.supports(test.detector_type_id) for inst in self.instruments):
            return (f"No instrument with compatible detector "
                    f"({self.lookups.detector_name(test.detector_type_id)})", REASON_NO_DETECTOR)
        return (f"No instrument available matching column "
                f"{self.lookups.column_display(test.column_code)}, detector "
                f"{self.lookups.detector_name(test.detector_type_id)} and mobile phase constraints",
                REASON_NO_MATCH)

    def schedule(self) -> ScheduleResult:
        """
        Run the placement.

        Returns:
            ScheduleResult with grouped queues and the Hold Pool
        """
        print(f"\n{'='*70}")
        print(f"HPLC SCHEDULER: {sum(len(b.tests) for b in self.batches)} TESTS, "
              f"{len(self.instruments)} INSTRUMENTS")
        print(f"{'='*70}")

        pool = sort_by_priority(self._flatten())
        tiers = Counter(t.priority_value for t in pool)
        print(f"   Schedulable tests: {len(pool)}")
        print(f"   Priority breakdown:")
        print(f"      Urgent: {tiers.get(3, 0)}")
        print(f"      High: {tiers.get(2, 0)}")
        print(f"      Normal: {tiers.get(1, 0)}")
        print(f"      Low/unknown: {tiers.get(0, 0)}")

        slots = [PackingSlot(inst.detector_ids, self.config) for inst in self.instruments]
        hold_pool = []

        for test in pool:
            if test.id in self._pending_holds:
                reason, code = self._pending_holds[test.id]
                hold_pool.append(HoldEntry(test, reason, code))
                print(f"[Schedule] Hold: {test.test_name} ({test.batch_number}) - {reason}")
                continue

            for slot in slots:
                if slot.accepts(test):
                    slot.add(test)
                    break
            else:
                reason, code = self.hold_reason(test)
                hold_pool.append(HoldEntry(test, reason, code))
                print(f"[Schedule] Hold: {test.test_name} ({test.batch_number}) - {reason}")

        queues = []
        for inst, slot in zip(self.instruments, slots):
            queue = InstrumentQueue(
                instrument_id=inst.instrument_id,
                instrument_name=inst.name,
                detector_ids=list(inst.detector_ids),
                current_column=slot.column,
                current_detector=slot.detector,
                mobile_phases=list(slot.mobile_phases),
            )
            grouping = group_queue(slot.tests, wash_interval=self.config.wash_interval,
                                   id_prefix=inst.instrument_id)
            queue.tests = grouping.tests
            queue.groups = grouping.groups
            for position, test in enumerate(queue.tests):
                test.sort_order = position
            queue.recompute_total()
            queues.append(queue)

        self.result = ScheduleResult(queues, hold_pool)

        print(f"\n[OK] Placed: {self.result.placed_count} tests on {len(self.result.queues)} instruments")
        print(f"[!!] Hold Pool: {len(hold_pool)} tests")
        return self.result

    # =========================================================================
    # SUMMARY
    # =========================================================================

    def get_summary(self) -> Dict:
        """Counts and per-instrument totals for the last run."""
        if not self.result:
            return {}

        per_instrument = []
        for q in self.result.all_queues:
            per_instrument.append({
                'instrument_id': q.instrument_id,
                'instrument_name': q.instrument_name,
                'tests': len(q.tests),
                'groups': len(q.groups),
                'total_time': q.total_time,
                'time_saved': sum(g.time_saved for g in q.groups),
                'column': q.current_column,
                'detector': q.current_detector,
            })

        return {
            'total_tests': self.result.placed_count + len(self.result.hold_pool),
            'placed': self.result.placed_count,
            'held': len(self.result.hold_pool),
            'instruments_used': len(self.result.queues),
            'idle_instruments': len(self.result.idle_queues),
            'total_time_saved': sum(i['time_saved'] for i in per_instrument),
            'per_instrument': per_instrument,
            'hold_reasons': dict(Counter(h.reason_code for h in self.result.hold_pool)),
        }

    def print_summary(self):
        summary = self.get_summary()
        if not summary:
            print("[Schedule] No run yet")
            return

        print(f"\n{'='*70}")
        print("HPLC SCHEDULING SUMMARY")
        print(f"{'='*70}")
        print(f"\nTESTS:")
        print(f"   Total: {summary['total_tests']}")
        print(f"   Placed: {summary['placed']}")
        print(f"   Held: {summary['held']}")
        print(f"   Time saved by grouping: {format_minutes(summary['total_time_saved'])}")

        print(f"\nINSTRUMENTS:")
        for row in summary['per_instrument']:
            if not row['tests']:
                print(f"   {row['instrument_name']}: idle")
                continue
            print(f"   {row['instrument_name']}: {row['tests']} tests, {row['groups']} groups, "
                  f"{format_minutes(row['total_time'])} "
                  f"[{self.lookups.column_display(row['column'])} / "
                  f"{self.lookups.detector_name(row['detector'])}]")

        if summary['hold_reasons']:
            print(f"\nHOLD REASONS:")
            for code, count in summary['hold_reasons'].items():
                print(f"   {code}: {count}")

    def summary_frame(self) -> pd.DataFrame:
        """One row per placed test, in queue order."""
        columns = ['instrument', 'position', 'test_id', 'batch_number', 'test_name', 'api',
                   'group_id', 'execution_time', 'original_execution_time', 'time_saved']
        if not self.result:
            return pd.DataFrame(columns=columns)

        rows = []
        for q in self.result.queues:
            for position, t in enumerate(q.tests):
                rows.append({
                    'instrument': q.instrument_name,
                    'position': position,
                    'test_id': t.id,
                    'batch_number': t.batch_number,
                    'test_name': t.test_name,
                    'api': t.api_label,
                    'group_id': t.group_id,
                    'execution_time': t.execution_time,
                    'original_execution_time': t.original_execution_time,
                    'time_saved': t.time_saved,
                })
        return pd.DataFrame(rows, columns=columns)


def schedule_now(batches: List[Batch], instruments: List[Instrument],
                 config: SchedulerConfig = None, lookups: Lookups = None) -> ScheduleResult:
    """Convenience wrapper: build an HPLCScheduler and run it."""
    return HPLCScheduler(batches, instruments, config, lookups).schedule()
