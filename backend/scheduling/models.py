"""
Scheduling Models
Entities shared by the cost model, grouping engine, scheduler and forecast planner.

Inputs (TestSpec, Batch, Instrument) are read-only to the engine. Everything
else is derived and rebuilt from scratch on every scheduling run.
"""

from datetime import datetime
from typing import Dict, List, Any, Optional, Tuple
from dataclasses import dataclass, field

from scheduling.formatting import describe_end_time, format_minutes


# Sentinel queue id for the Hold Pool in move requests
HOLD = 'HOLD'

NOT_STARTED = 'not started'

# Priority tiers - higher sorts first, unknown counts as Low
PRIORITY_VALUES = {
    'urgent': 3,
    'high': 2,
    'normal': 1,
    'low': 0,
}


def get_priority_value(priority: Optional[str]) -> int:
    """Map a batch priority label to its tier (Urgent=3 ... Low/unknown=0)."""
    if not priority:
        return 0
    return PRIORITY_VALUES.get(str(priority).strip().lower(), 0)


def clean_codes(codes: Optional[List[str]]) -> List[str]:
    """Return the non-empty, stripped mobile phase / wash codes in declared order."""
    if not codes:
        return []
    return [str(c).strip() for c in codes if c is not None and str(c).strip() != '']


# =============================================================================
# INPUT ENTITIES
# =============================================================================

@dataclass
class TestSpec:
    """
    One analytical procedure as declared on a batch.

    mobile_phase_codes holds up to six reagent channels (mp1-mp4 plus wash1-wash2);
    blank entries are allowed and ignored. Category runtimes of 0 fall back to
    the shared run_time.
    """
    __test__ = False  # not a pytest class

    test_type_id: str
    test_name: str
    column_code: Optional[str] = None
    detector_type_id: Optional[str] = None
    mobile_phase_codes: List[str] = field(default_factory=list)
    pharmacopoeial_ids: List[str] = field(default_factory=list)

    # Injection counts
    blank_injection: float = 0
    standard_injection: float = 0
    sample_injection: float = 0
    system_suitability: float = 0
    sensitivity: float = 0
    placebo: float = 0
    reference1: float = 0
    reference2: float = 0
    bracketing_frequency: float = 6

    # Runtimes (minutes)
    run_time: float = 1
    unique_runtimes: bool = False
    blank_run_time: float = 0
    standard_run_time: float = 0
    sample_run_time: float = 0
    system_suitability_run_time: float = 0
    sensitivity_run_time: float = 0
    placebo_run_time: float = 0
    reference1_run_time: float = 0
    reference2_run_time: float = 0
    wash_time: float = 0

    test_status: str = 'Not Started'
    is_linked: bool = False
    outsourced: bool = False

    @property
    def is_schedulable(self) -> bool:
        return str(self.test_status or '').strip().lower() == NOT_STARTED

    @property
    def active_codes(self) -> List[str]:
        return clean_codes(self.mobile_phase_codes)

    @property
    def missing_fields(self) -> List[str]:
        """Required method fields that are absent (detector, column)."""
        missing = []
        if not self.detector_type_id:
            missing.append('detector')
        if not self.column_code:
            missing.append('column')
        return missing


@dataclass
class FormulationComponent:
    """An API (active ingredient) inside a batch's generic, with the test types it produced."""
    api_id: str
    test_types: List[TestSpec] = field(default_factory=list)
    generic_name: str = ''


@dataclass
class Batch:
    """A production batch with its flattened test list and the original component tree."""
    batch_id: str
    batch_number: str
    product_code: str = ''
    product_name: str = ''
    priority: str = 'Normal'
    tests: List[TestSpec] = field(default_factory=list)
    components: List[FormulationComponent] = field(default_factory=list)
    generic_name: str = ''
    company_id: Optional[str] = None
    location_id: Optional[str] = None
    status: str = 'Not Started'


@dataclass
class Instrument:
    """An HPLC/UPLC machine. Detector ids are a compatibility constraint, not capacity."""
    instrument_id: str
    name: str
    detector_ids: List[str] = field(default_factory=list)
    is_active: bool = True
    model: str = ''

    def supports(self, detector_id: Optional[str]) -> bool:
        return detector_id is not None and detector_id in self.detector_ids


@dataclass
class Lookups:
    """Read-only label tables. Labels never influence scheduling decisions."""
    detector_names: Dict[str, str] = field(default_factory=dict)
    column_names: Dict[str, str] = field(default_factory=dict)
    api_names: Dict[str, str] = field(default_factory=dict)

    def detector_name(self, detector_id: Optional[str]) -> str:
        if not detector_id:
            return 'NA'
        return self.detector_names.get(detector_id, detector_id)

    def column_display(self, column_code: Optional[str]) -> str:
        if not column_code:
            return 'NA'
        return self.column_names.get(column_code, column_code)

    def api_name(self, api_id: Optional[str]) -> str:
        if not api_id:
            return 'NA'
        return self.api_names.get(api_id, api_id)


# =============================================================================
# DERIVED ENTITIES
# =============================================================================

@dataclass
class ScheduledTest:
    """
    A TestSpec wrapped for one scheduling run.

    execution_time is the current (possibly grouped) cost; original_execution_time
    is the cost with every injection category active.
    """
    __test__ = False

    id: str
    batch_id: str
    batch_number: str
    product_code: str
    product_name: str
    test: TestSpec
    priority: str = 'Normal'
    execution_time: float = 0
    original_execution_time: float = 0
    api_id: Optional[str] = None
    api_label: str = 'NA'
    linked_keys: Tuple[str, ...] = ()

    # Grouping state
    group_id: Optional[str] = None
    group_reason: Optional[str] = None
    is_grouped: bool = False
    time_saved: float = 0
    sort_order: Optional[int] = None
    calculation_breakdown: Any = None

    @property
    def test_name(self) -> str:
        return self.test.test_name

    @property
    def test_type_id(self) -> str:
        return self.test.test_type_id

    @property
    def column_code(self) -> Optional[str]:
        return self.test.column_code

    @property
    def detector_type_id(self) -> Optional[str]:
        return self.test.detector_type_id

    @property
    def mobile_phase_codes(self) -> List[str]:
        return self.test.active_codes

    @property
    def wash_time(self) -> float:
        return self.test.wash_time

    @property
    def priority_value(self) -> int:
        return get_priority_value(self.priority)

    def reset_grouping(self):
        """Drop any group membership and restore the un-grouped cost."""
        self.group_id = None
        self.group_reason = None
        self.is_grouped = False
        self.time_saved = 0
        self.execution_time = self.original_execution_time


@dataclass
class GroupInfo:
    """A contiguous run of tests sharing setup; first/last members get special injections."""
    id: str
    reason: str
    detector_id: Optional[str]
    column_code: Optional[str]
    mobile_phase_key: str
    tests: List[ScheduledTest] = field(default_factory=list)
    total_time: float = 0
    original_total_time: float = 0
    time_saved: float = 0
    kind: str = 'setup'  # 'setup' or 'linked'


@dataclass
class HoldEntry:
    """A test that could not be placed, with the reason shown to the planner."""
    test: ScheduledTest
    reason: str
    reason_code: str = 'no_matching_instrument'


@dataclass
class InstrumentQueue:
    """
    One instrument's ordered work list for the current moment.

    total_time always equals the sum of execution_time across tests; call
    recompute_total() after any change to the test list.
    """
    instrument_id: str
    instrument_name: str
    detector_ids: List[str] = field(default_factory=list)
    tests: List[ScheduledTest] = field(default_factory=list)
    groups: List[GroupInfo] = field(default_factory=list)
    total_time: float = 0

    # Setup lock-in from the first placed test
    current_column: Optional[str] = None
    current_detector: Optional[str] = None
    mobile_phases: List[str] = field(default_factory=list)

    @property
    def is_idle(self) -> bool:
        return len(self.tests) == 0

    def recompute_total(self) -> float:
        self.total_time = sum(t.execution_time for t in self.tests)
        return self.total_time

    def find_test(self, test_id: str) -> int:
        """Index of a test in this queue, or -1."""
        for i, t in enumerate(self.tests):
            if t.id == test_id:
                return i
        return -1


@dataclass
class ForecastSequence:
    """One instrument's planned work for one future day (named F-{day}-{letter})."""
    sequence_name: str
    instrument_id: str
    instrument_name: str
    day: int
    instrument_letter: str
    start_time: datetime
    end_time: datetime
    tests: List[ScheduledTest] = field(default_factory=list)
    groups: List[GroupInfo] = field(default_factory=list)
    total_time: float = 0
    detector_id: Optional[str] = None
    column_code: Optional[str] = None
    mobile_phase_codes: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return len(self.tests) == 0

    def describe(self, lookups: Optional[Lookups] = None) -> str:
        lookups = lookups or Lookups()
        return (
            f"{self.sequence_name} ({self.instrument_name}): {len(self.tests)} tests, "
            f"{format_minutes(self.total_time)}, "
            f"{lookups.column_display(self.column_code)} / {lookups.detector_name(self.detector_id)}, "
            f"starts {self.start_time.strftime('%b %d %I:%M %p')}, "
            f"ends {describe_end_time(self.start_time, self.total_time)}"
        )


@dataclass
class ScheduleSnapshot:
    """
    The mutable in-memory schedule a planner edits.

    queues holds every active instrument in master-data order, idle ones included.
    forecast maps instrument id -> its day-ordered sequences.
    """
    queues: List[InstrumentQueue] = field(default_factory=list)
    hold_pool: List[HoldEntry] = field(default_factory=list)
    forecast: Dict[str, List[ForecastSequence]] = field(default_factory=dict)
    generated_at: Optional[datetime] = None
    version: int = 0
    snapshot_id: Optional[str] = None

    @property
    def current_queues(self) -> List[InstrumentQueue]:
        return [q for q in self.queues if not q.is_idle]

    def get_queue(self, instrument_id: str) -> Optional[InstrumentQueue]:
        for q in self.queues:
            if q.instrument_id == instrument_id:
                return q
        return None

    def find_hold(self, test_id: str) -> int:
        for i, entry in enumerate(self.hold_pool):
            if entry.test.id == test_id:
                return i
        return -1

    def find_sequence(self, sequence_name: str) -> Optional[ForecastSequence]:
        for sequences in self.forecast.values():
            for seq in sequences:
                if seq.sequence_name == sequence_name:
                    return seq
        return None
