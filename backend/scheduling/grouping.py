"""
Compatibility & Grouping Engine
Partitions one instrument's tests into setup-sharing groups and reprices them by position.

Two passes, linked tests first:
1. Linked pass: tests of the same batch whose formulation component marks them
   as linked are merged into one group regardless of setup.
2. Setup pass: the remaining tests are bucketed by
   (column, mobile phase + wash key, detector, test type). Buckets of two or
   more become groups.

Within a group the first member pays full injections, middle members only
samples, and the last adds closing bracketing and the single wash.
"""

from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass, field

from scheduling.models import ScheduledTest, GroupInfo
from scheduling.cost_model import DEFAULT_WASH_INTERVAL, grouped_cost
from scheduling.api_resolver import normalize_phases


@dataclass
class GroupingConflict:
    """A test eligible for more than one linked group. It stays in the first one."""
    test_id: str
    kept_group_id: str
    ignored_link_key: str


@dataclass
class GroupingResult:
    tests: List[ScheduledTest] = field(default_factory=list)
    groups: List[GroupInfo] = field(default_factory=list)
    conflicts: List[GroupingConflict] = field(default_factory=list)

    @property
    def total_time(self) -> float:
        return sum(t.execution_time for t in self.tests)

    @property
    def time_saved(self) -> float:
        return sum(g.time_saved for g in self.groups)


def mobile_phase_key(codes: List[str], wash_time: float = 0) -> str:
    """Setup key for a mobile phase set plus its wash time, e.g. 'MP01-MP02-W10'."""
    return f"{normalize_phases(codes)}-W{(wash_time or 0):g}"


def setup_key(test: ScheduledTest) -> Tuple:
    return (
        test.column_code,
        mobile_phase_key(test.mobile_phase_codes, test.wash_time),
        test.detector_type_id,
        test.test_type_id or 'UNKNOWN',
    )


def _group_id(prefix: str, kind: str, number: int) -> str:
    base = f"linked-group-{number}" if kind == 'linked' else f"group-{number}"
    return f"{prefix}-{base}" if prefix else base


def _apply_group(members: List[ScheduledTest], group_id: str, kind: str,
                 wash_interval: int) -> GroupInfo:
    """Reprice members by position and stamp their group annotations."""
    pricing = grouped_cost([t.test for t in members], wash_interval)
    n = len(members)

    for i, test in enumerate(members):
        test.execution_time = pricing.member_costs[i]
        test.time_saved = pricing.full_costs[i] - pricing.member_costs[i]
        test.group_id = group_id
        test.is_grouped = True
        if kind == 'linked':
            test.group_reason = f"Linked test {i + 1} of {n}"
        elif i == 0:
            test.group_reason = f"Lead test in group of {n} (full injections)"
        else:
            test.group_reason = (f"Grouped test (only samples + selective bracketing, "
                                 f"saved {test.time_saved:.1f} min)")

    saved = pricing.time_saved
    if kind == 'linked':
        reason = f"Linked tests group ({n} tests explicitly linked)"
    else:
        pct = (saved / pricing.original_total_time * 100) if pricing.original_total_time > 0 else 0
        reason = f"Saved {saved:.1f} min ({pct:.1f}%) by grouping {n} tests"

    lead = members[0]
    return GroupInfo(
        id=group_id,
        reason=reason,
        detector_id=lead.detector_type_id,
        column_code=lead.column_code,
        mobile_phase_key=mobile_phase_key(lead.mobile_phase_codes, lead.wash_time),
        tests=list(members),
        total_time=pricing.total_time,
        original_total_time=pricing.original_total_time,
        time_saved=saved,
        kind=kind,
    )


def group_queue(tests: List[ScheduledTest], existing_tests: Optional[List[ScheduledTest]] = None,
                wash_interval: int = DEFAULT_WASH_INTERVAL, id_prefix: str = '') -> GroupingResult:
    """
    Group an instrument's tests and recompute their execution times.

    Every test's previous group state is cleared first, so running this on its
    own output gives the same groups and total.

    Args:
        tests: Newly placed tests, in placement order
        existing_tests: Tests already on the instrument (ordered before the new ones)
        wash_interval: Injections per bracketing cycle
        id_prefix: Prefix for group ids, usually the instrument id

    Returns:
        GroupingResult with the reordered tests (linked groups, setup groups,
        then ungrouped tests in input order), the groups, and any linked conflicts
    """
    pool = list(existing_tests or []) + list(tests)
    for test in pool:
        test.reset_grouping()

    if len(pool) <= 1:
        return GroupingResult(tests=pool)

    groups: List[GroupInfo] = []
    conflicts: List[GroupingConflict] = []
    assigned: Dict[str, str] = {}  # test id -> group id

    # Pass 1: linked tests
    link_buckets: Dict[str, List[ScheduledTest]] = {}
    for test in pool:
        for key in test.linked_keys:
            link_buckets.setdefault(key, []).append(test)

    for key, bucket in link_buckets.items():
        members = []
        for test in bucket:
            if test.id in assigned:
                conflicts.append(GroupingConflict(test.id, assigned[test.id], key))
            else:
                members.append(test)
        if len(members) < 2:
            continue
        group_id = _group_id(id_prefix, 'linked', len(groups) + 1)
        groups.append(_apply_group(members, group_id, 'linked', wash_interval))
        for test in members:
            assigned[test.id] = group_id

    for conflict in conflicts:
        print(f"[Grouping] [WARN] Test {conflict.test_id} is linked under {conflict.ignored_link_key} "
              f"but already belongs to {conflict.kept_group_id}; keeping the first group")

    # Pass 2: shared column / mobile phase / detector / test type
    setup_buckets: Dict[Tuple, List[ScheduledTest]] = {}
    for test in pool:
        if test.id not in assigned:
            setup_buckets.setdefault(setup_key(test), []).append(test)

    for bucket in setup_buckets.values():
        if len(bucket) < 2:
            continue
        group_id = _group_id(id_prefix, 'setup', len(groups) + 1)
        groups.append(_apply_group(bucket, group_id, 'setup', wash_interval))
        for test in bucket:
            assigned[test.id] = group_id

    ordered = [t for g in groups for t in g.tests]
    ordered.extend(t for t in pool if t.id not in assigned)

    return GroupingResult(tests=ordered, groups=groups, conflicts=conflicts)
