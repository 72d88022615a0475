"""
Schedule Service
Operations exposed to the UI/API layer: run the schedule, run the forecast,
and apply planner edits to stored snapshots.
"""

from datetime import datetime
from typing import Callable, List, Optional

from scheduling import reassignment
from scheduling.models import (
    Batch, Instrument, Lookups, InstrumentQueue, HoldEntry, ForecastSequence, ScheduleSnapshot,
)
from scheduling.config import SchedulerConfig
from scheduling.scheduler import HPLCScheduler, ScheduleResult
from scheduling.forecast import ForecastPlanner, ForecastPlan
from schedule_store import ScheduleStore


class FullRun:
    """Result of a schedule + forecast pass."""

    def __init__(self, snapshot: ScheduleSnapshot, schedule: ScheduleResult,
                 forecast: ForecastPlan, scheduler: HPLCScheduler):
        self.snapshot = snapshot
        self.schedule = schedule
        self.forecast = forecast
        self.scheduler = scheduler

    @property
    def remaining_hold(self) -> List[HoldEntry]:
        """Held tests the forecast could not place either."""
        return self.forecast.remaining


def run_schedule(batches: List[Batch], instruments: List[Instrument],
                 config: Optional[SchedulerConfig] = None,
                 lookups: Optional[Lookups] = None) -> ScheduleResult:
    """Current-moment assignment with grouping applied."""
    return HPLCScheduler(batches, instruments, config, lookups).schedule()


def run_forecast(queues: List[InstrumentQueue], hold_pool: List[HoldEntry], now: datetime,
                 horizon_days: Optional[int] = None,
                 config: Optional[SchedulerConfig] = None) -> ForecastPlan:
    """Forecast of the Hold Pool; queues must include idle instruments."""
    return ForecastPlanner(queues, hold_pool, now, horizon_days, config).plan()


def run_full(batches: List[Batch], instruments: List[Instrument], now: Optional[datetime] = None,
             clock: Callable[[], datetime] = datetime.now,
             config: Optional[SchedulerConfig] = None, lookups: Optional[Lookups] = None,
             store: Optional[ScheduleStore] = None) -> FullRun:
    """
    Schedule, forecast and package the result as an editable snapshot.

    Args:
        now: Anchor time; taken from `clock` when omitted
        clock: Injectable wall clock
        store: If given, the snapshot is saved there and carries its id

    Returns:
        FullRun whose snapshot holds every active instrument's queue, the
        forecast, and the Hold Pool minus tests the forecast placed
    """
    config = (config or SchedulerConfig()).validate()
    now = now or clock()

    scheduler = HPLCScheduler(batches, instruments, config, lookups)
    schedule = scheduler.schedule()
    forecast = ForecastPlanner(schedule.all_queues, schedule.hold_pool, now,
                               config.horizon_days, config).plan()

    snapshot = ScheduleSnapshot(
        queues=schedule.all_queues,
        hold_pool=list(forecast.remaining),
        forecast=forecast.sequences,
        generated_at=now,
    )
    if store is not None:
        snapshot = store.put(snapshot)

    print(f"[Service] Run complete: {schedule.placed_count} placed, "
          f"{len(forecast.scheduled_test_ids())} forecast, {len(forecast.remaining)} still held")
    return FullRun(snapshot, schedule, forecast, scheduler)


def move_test(store: ScheduleStore, snapshot_id: str, test_id: str, from_queue_id: str,
              to_queue_id: str, target_index: Optional[int], expected_version: int,
              config: Optional[SchedulerConfig] = None) -> ScheduleSnapshot:
    """Apply a manual move to a stored snapshot; rejects stale versions."""
    wash_interval = (config or SchedulerConfig()).validate().wash_interval
    snapshot, _ = store.apply(
        snapshot_id, expected_version,
        lambda s: reassignment.move_test(s, test_id, from_queue_id, to_queue_id,
                                         target_index, wash_interval=wash_interval))
    return snapshot


def return_to_hold(store: ScheduleStore, snapshot_id: str, test_id: str, from_queue_id: str,
                   expected_version: int, config: Optional[SchedulerConfig] = None) -> ScheduleSnapshot:
    wash_interval = (config or SchedulerConfig()).validate().wash_interval
    snapshot, _ = store.apply(
        snapshot_id, expected_version,
        lambda s: reassignment.return_to_hold(s, test_id, from_queue_id,
                                              wash_interval=wash_interval))
    return snapshot


def reorder_forecast_sequence(store: ScheduleStore, snapshot_id: str, sequence_name: str,
                              ordered_test_ids: List[str], expected_version: int,
                              config: Optional[SchedulerConfig] = None) -> ForecastSequence:
    """Reorder one forecast sequence of a stored snapshot and return the updated sequence."""
    wash_interval = (config or SchedulerConfig()).validate().wash_interval
    _, sequence = store.apply(
        snapshot_id, expected_version,
        lambda s: reassignment.reorder_forecast_sequence(s, sequence_name, ordered_test_ids,
                                                         wash_interval=wash_interval))
    return sequence


def refresh(store: ScheduleStore, snapshot_id: str, expected_version: int,
            batches: List[Batch], instruments: List[Instrument], now: Optional[datetime] = None,
            clock: Callable[[], datetime] = datetime.now, config: Optional[SchedulerConfig] = None,
            lookups: Optional[Lookups] = None) -> ScheduleSnapshot:
    """Re-run scheduling after a data refresh and replace a stored snapshot, version-checked."""
    run = run_full(batches, instruments, now, clock, config, lookups)
    return store.replace(snapshot_id, expected_version, run.snapshot)
