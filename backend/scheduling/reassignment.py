"""
Interactive Reassignment
Manual moves of tests between instrument queues, the Hold Pool and forecast sequences.

Manual placement overrides the automatic compatibility rule: a move is never
rejected for detector, column or capacity reasons. Only structural problems
(unknown ids, stale snapshot version, a reorder that is not a permutation) are
errors. Every queue a move touches is regrouped and re-totalled; untouched
queues are left as they are.
"""

from datetime import timedelta
from typing import List, Optional

from scheduling.models import HOLD, ScheduleSnapshot, InstrumentQueue, HoldEntry, ForecastSequence
from scheduling.cost_model import DEFAULT_WASH_INTERVAL
from scheduling.grouping import group_queue
from scheduling.scheduler import REASON_MANUAL
from scheduling.errors import (
    ConcurrentMutationConflict, UnknownTestError, UnknownQueueError,
    UnknownSequenceError, InvalidReorderError,
)


MANUAL_HOLD_REASON = 'Manually moved to hold'


def check_version(snapshot: ScheduleSnapshot, expected_version: Optional[int]):
    """Fail closed when the caller edited an older version of the snapshot."""
    if expected_version is not None and expected_version != snapshot.version:
        raise ConcurrentMutationConflict(snapshot.snapshot_id, expected_version, snapshot.version)


def regroup_queue(queue: InstrumentQueue, wash_interval: int = DEFAULT_WASH_INTERVAL) -> InstrumentQueue:
    """Re-run grouping on a queue in its current order and refresh its aggregates."""
    grouping = group_queue(queue.tests, wash_interval=wash_interval, id_prefix=queue.instrument_id)
    queue.tests = grouping.tests
    queue.groups = grouping.groups
    for position, test in enumerate(queue.tests):
        test.sort_order = position

    if queue.tests:
        lead = queue.tests[0]
        queue.current_column = lead.column_code
        queue.current_detector = lead.detector_type_id
        codes = []
        for test in queue.tests:
            for code in test.mobile_phase_codes:
                if code not in codes:
                    codes.append(code)
        queue.mobile_phases = codes
    else:
        queue.current_column = None
        queue.current_detector = None
        queue.mobile_phases = []

    queue.recompute_total()
    return queue


def _require_queue(snapshot: ScheduleSnapshot, queue_id: str) -> InstrumentQueue:
    queue = snapshot.get_queue(queue_id)
    if queue is None:
        raise UnknownQueueError(f"No instrument queue '{queue_id}' in snapshot")
    return queue


def _clamp(index: Optional[int], length: int) -> int:
    if index is None or index > length:
        return length
    return max(0, index)


def move_test(snapshot: ScheduleSnapshot, test_id: str, from_queue_id: str, to_queue_id: str,
              target_index: Optional[int] = None, expected_version: Optional[int] = None,
              wash_interval: int = DEFAULT_WASH_INTERVAL) -> ScheduleSnapshot:
    """
    Move one test and regroup the affected queues.

    Args:
        snapshot: Schedule to edit in place
        test_id: ScheduledTest id
        from_queue_id: Source instrument id, or HOLD
        to_queue_id: Destination instrument id, or HOLD
        target_index: Position in the destination list after the test is removed
            from its source; None appends
        expected_version: Snapshot version the caller last saw
        wash_interval: Injections per bracketing cycle for repricing

    Returns:
        The same snapshot with its version bumped

    Raises:
        ConcurrentMutationConflict, UnknownQueueError, UnknownTestError
    """
    check_version(snapshot, expected_version)

    # Resolve both ends before mutating anything
    source = None if from_queue_id == HOLD else _require_queue(snapshot, from_queue_id)
    destination = None if to_queue_id == HOLD else _require_queue(snapshot, to_queue_id)

    if source is None:
        index = snapshot.find_hold(test_id)
        if index < 0:
            raise UnknownTestError(f"Test '{test_id}' is not in the Hold Pool")
        entry = snapshot.hold_pool.pop(index)
        test = entry.test
    else:
        index = source.find_test(test_id)
        if index < 0:
            raise UnknownTestError(f"Test '{test_id}' is not on instrument '{from_queue_id}'")
        test = source.tests.pop(index)
        entry = None

    test.reset_grouping()

    if destination is None:
        if entry is None:
            entry = HoldEntry(test, MANUAL_HOLD_REASON, REASON_MANUAL)
        test.sort_order = None
        snapshot.hold_pool.insert(_clamp(target_index, len(snapshot.hold_pool)), entry)
    else:
        destination.tests.insert(_clamp(target_index, len(destination.tests)), test)

    for queue in (source, destination):
        if queue is not None:
            regroup_queue(queue, wash_interval)
        if source is destination:
            break

    snapshot.version += 1
    print(f"[Reassign] {test.test_name} ({test_id}): {from_queue_id} -> {to_queue_id}"
          f" (snapshot v{snapshot.version})")
    return snapshot


def return_to_hold(snapshot: ScheduleSnapshot, test_id: str, from_queue_id: str,
                   expected_version: Optional[int] = None,
                   wash_interval: int = DEFAULT_WASH_INTERVAL) -> ScheduleSnapshot:
    """Take a test off an instrument and append it to the Hold Pool."""
    return move_test(snapshot, test_id, from_queue_id, HOLD, None, expected_version, wash_interval)


def reorder_forecast_sequence(snapshot: ScheduleSnapshot, sequence_name: str,
                              ordered_test_ids: List[str], expected_version: Optional[int] = None,
                              wash_interval: int = DEFAULT_WASH_INTERVAL) -> ForecastSequence:
    """
    Put a forecast sequence's tests in a new order and regroup it.

    The new order must name exactly the sequence's current tests.

    Returns:
        The updated ForecastSequence (end time moves with the new total)
    """
    check_version(snapshot, expected_version)

    sequence = snapshot.find_sequence(sequence_name)
    if sequence is None:
        raise UnknownSequenceError(f"No forecast sequence '{sequence_name}' in snapshot")

    by_id = {t.id: t for t in sequence.tests}
    if len(ordered_test_ids) != len(by_id) or set(ordered_test_ids) != set(by_id):
        raise InvalidReorderError(
            f"Reorder of {sequence_name} must list each of its {len(by_id)} tests exactly once")

    grouping = group_queue([by_id[tid] for tid in ordered_test_ids],
                           wash_interval=wash_interval, id_prefix=sequence_name)
    sequence.tests = grouping.tests
    sequence.groups = grouping.groups
    for position, test in enumerate(sequence.tests):
        test.sort_order = position
    sequence.total_time = grouping.total_time
    sequence.end_time = sequence.start_time + timedelta(minutes=sequence.total_time)

    snapshot.version += 1
    print(f"[Reassign] Reordered {sequence_name}: {len(sequence.tests)} tests, "
          f"{sequence.total_time:.1f} min (snapshot v{snapshot.version})")
    return sequence
