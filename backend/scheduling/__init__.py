"""
HPLC Scheduling Engine

Assigns pending laboratory tests to HPLC instruments, groups tests that share
setup to skip redundant injections, and forecasts held tests over future days.

Components:
- cost_model: execution time of a test for a given injection mask
- api_resolver: maps a flattened test back to its formulation component
- grouping: setup-sharing groups and position-based repricing
- HPLCScheduler: first-fit placement for the current moment
- ForecastPlanner: day-by-day projection of the Hold Pool
- reassignment: manual moves and forecast reorders
"""

from scheduling.models import (
    HOLD,
    TestSpec,
    FormulationComponent,
    Batch,
    Instrument,
    Lookups,
    ScheduledTest,
    GroupInfo,
    HoldEntry,
    InstrumentQueue,
    ForecastSequence,
    ScheduleSnapshot,
    get_priority_value,
)

from scheduling.config import SchedulerConfig

from scheduling.errors import (
    SchedulingError,
    ConfigurationError,
    InputDataError,
    ConcurrentMutationConflict,
    UnknownTestError,
    UnknownQueueError,
    UnknownSequenceError,
    UnknownSnapshotError,
    InvalidReorderError,
)

from scheduling.cost_model import (
    safe_number,
    InjectionMask,
    CostBreakdown,
    compute_cost,
    grouped_cost,
    injection_mask_for_position,
)

from scheduling.api_resolver import ApiResolution, resolve_origin_api, normalize_phases
from scheduling.grouping import GroupingResult, group_queue
from scheduling.scheduler import HPLCScheduler, ScheduleResult, schedule_now
from scheduling.forecast import ForecastPlanner, ForecastPlan, plan_forecast
from scheduling.reassignment import move_test, return_to_hold, reorder_forecast_sequence
from scheduling.visual_groups import build_visual_groups
from scheduling.formatting import format_minutes, describe_end_time

__all__ = [
    # Models
    'HOLD',
    'TestSpec',
    'FormulationComponent',
    'Batch',
    'Instrument',
    'Lookups',
    'ScheduledTest',
    'GroupInfo',
    'HoldEntry',
    'InstrumentQueue',
    'ForecastSequence',
    'ScheduleSnapshot',
    'get_priority_value',
    # Config and errors
    'SchedulerConfig',
    'SchedulingError',
    'ConfigurationError',
    'InputDataError',
    'ConcurrentMutationConflict',
    'UnknownTestError',
    'UnknownQueueError',
    'UnknownSequenceError',
    'UnknownSnapshotError',
    'InvalidReorderError',
    # Engine
    'safe_number',
    'InjectionMask',
    'CostBreakdown',
    'compute_cost',
    'grouped_cost',
    'injection_mask_for_position',
    'ApiResolution',
    'resolve_origin_api',
    'normalize_phases',
    'GroupingResult',
    'group_queue',
    'HPLCScheduler',
    'ScheduleResult',
    'schedule_now',
    'ForecastPlanner',
    'ForecastPlan',
    'plan_forecast',
    'move_test',
    'return_to_hold',
    'reorder_forecast_sequence',
    'build_visual_groups',
    'format_minutes',
    'describe_end_time',
]
