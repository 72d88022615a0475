"""
Multi-Day Forecast Planner
Projects the Hold Pool onto instruments day by day over a fixed horizon.

Days run midnight to midnight starting from the day of `now`. Within each day
instruments are visited in a fixed order and named by letter, so sequence
F-2-b is the second instrument's run on day 2. One shared priority-sorted pool
is consumed across the whole horizon.
"""

import copy
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from scheduling.models import InstrumentQueue, HoldEntry, ForecastSequence, ScheduledTest
from scheduling.scheduler import PackingSlot, UNPLACEABLE_REASONS
from scheduling.grouping import group_queue
from scheduling.errors import ConfigurationError
from scheduling.formatting import format_clock, format_minutes
from scheduling.config import SchedulerConfig


def instrument_letter(index: int) -> str:
    """0 -> 'a', 25 -> 'z', 26 -> 'aa', 27 -> 'ab' ..."""
    letters = ''
    index += 1
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord('a') + remainder) + letters
    return letters


class ForecastPlan:
    """Forecast sequences keyed by instrument id, plus the hold entries nothing could take."""

    def __init__(self, sequences: Dict[str, List[ForecastSequence]], remaining: List[HoldEntry],
                 days_planned: int = 0):
        self.sequences = sequences
        self.remaining = remaining
        self.days_planned = days_planned

    def all_sequences(self) -> List[ForecastSequence]:
        """Every sequence ordered by day, then instrument letter order."""
        flat = [s for seqs in self.sequences.values() for s in seqs]
        order = {iid: i for i, iid in enumerate(self.sequences)}
        return sorted(flat, key=lambda s: (s.day, order[s.instrument_id]))

    def for_day(self, day: int) -> List[ForecastSequence]:
        return [s for s in self.all_sequences() if s.day == day]

    def for_instrument(self, instrument_id: str) -> List[ForecastSequence]:
        return list(self.sequences.get(instrument_id, []))

    def scheduled_test_ids(self) -> List[str]:
        return [t.id for s in self.all_sequences() for t in s.tests]


class ForecastPlanner:
    """
    Day-by-day, instrument-by-instrument projection of held tests.

    An instrument's free-at time is now + its current queue on day 1, and the
    end of its previous sequence afterwards. An instrument still busy when a day
    ends is skipped for that day and stays busy into the next one.
    """

    def __init__(self, queues: List[InstrumentQueue], hold_pool: List[HoldEntry],
                 now: datetime, horizon_days: int = None, config: SchedulerConfig = None):
        self.config = (config or SchedulerConfig()).validate()
        self.horizon_days = self.config.horizon_days if horizon_days is None else horizon_days
        if self.horizon_days is None or self.horizon_days <= 0:
            raise ConfigurationError(f"horizon_days must be > 0, got {self.horizon_days}")
        if now is None:
            raise ConfigurationError("now is required for forecast planning")

        self.queues = queues or []
        self.hold_pool = hold_pool or []
        self.now = now

    def _day_bounds(self, day: int):
        midnight = self.now.replace(hour=0, minute=0, second=0, microsecond=0)
        start = midnight + timedelta(days=day - 1)
        return start, start + timedelta(days=1)

    def _pack(self, slot: PackingSlot, pool: List[HoldEntry]) -> List[ScheduledTest]:
        """Greedy first-fit over the pool; packed entries are removed from it immediately."""
        for entry in list(pool):
            if entry.test.detector_type_id not in slot.allowed_detectors:
                continue
            if slot.accepts(entry.test):
                slot.add(entry.test)
                pool.remove(entry)
        return slot.tests

    def plan(self) -> ForecastPlan:
        """
        Build the forecast.

        Returns:
            ForecastPlan; stops early once every placeable held test has a sequence
        """
        print(f"\n[Forecast] Planning {len(self.hold_pool)} held tests over "
              f"{self.horizon_days} days on {len(self.queues)} instruments")

        pool = []
        for entry in sorted(self.hold_pool, key=lambda h: -h.test.priority_value):
            if entry.reason_code in UNPLACEABLE_REASONS:
                continue
            # Forecast runs reprice and regroup their own copies
            working = copy.copy(entry.test)
            working.reset_grouping()
            pool.append(HoldEntry(working, entry.reason, entry.reason_code))

        plan: Dict[str, List[ForecastSequence]] = {q.instrument_id: [] for q in self.queues}
        queue_end: Dict[str, datetime] = {
            q.instrument_id: self.now + timedelta(minutes=q.total_time) for q in self.queues
        }
        days_planned = 0

        for day in range(1, self.horizon_days + 1):
            if not pool:
                break
            days_planned = day
            day_start, day_end = self._day_bounds(day)

            for index, queue in enumerate(self.queues):
                iid = queue.instrument_id
                if day == 1:
                    free_at = queue_end[iid]
                else:
                    previous = [s for s in plan[iid] if s.day == day - 1]
                    free_at = previous[-1].end_time if previous else day_start

                if free_at >= day_end:
                    print(f"[Forecast] {queue.instrument_name} busy until "
                          f"{free_at.strftime('%b %d')} {format_clock(free_at)}, skipping day {day}")
                    continue

                start = max(free_at, day_start)
                letter = instrument_letter(index)
                name = f"F-{day}-{letter}"

                if day == 1 and queue.tests:
                    allowed = [queue.current_detector or queue.tests[0].detector_type_id]
                else:
                    allowed = list(queue.detector_ids)

                slot = PackingSlot(allowed, self.config)
                packed = self._pack(slot, pool)

                grouping = group_queue(packed, wash_interval=self.config.wash_interval, id_prefix=name)
                for position, test in enumerate(grouping.tests):
                    test.sort_order = position
                total = grouping.total_time
                end = start + timedelta(minutes=total)

                sequence = ForecastSequence(
                    sequence_name=name,
                    instrument_id=iid,
                    instrument_name=queue.instrument_name,
                    day=day,
                    instrument_letter=letter,
                    start_time=start,
                    end_time=end,
                    tests=grouping.tests,
                    groups=grouping.groups,
                    total_time=total,
                    detector_id=slot.detector,
                    column_code=slot.column,
                    mobile_phase_codes=list(slot.mobile_phases),
                )
                plan[iid].append(sequence)

                print(f"[Forecast] {name} ({queue.instrument_name}): {len(sequence.tests)} tests, "
                      f"{format_minutes(total)}, starts {format_clock(start)}")

            if not pool:
                print(f"[Forecast] [OK] All placeable held tests scheduled by day {day}")

        placed = {t.id for seqs in plan.values() for s in seqs for t in s.tests}
        remaining = [h for h in self.hold_pool if h.test.id not in placed]
        if remaining:
            print(f"[Forecast] [WARN] {len(remaining)} tests remain unscheduled after {days_planned} days")

        return ForecastPlan(plan, remaining, days_planned)


def plan_forecast(queues: List[InstrumentQueue], hold_pool: List[HoldEntry], now: datetime,
                  horizon_days: int = 7, config: SchedulerConfig = None) -> ForecastPlan:
    """Convenience wrapper around ForecastPlanner.plan()."""
    return ForecastPlanner(queues, hold_pool, now, horizon_days, config).plan()
