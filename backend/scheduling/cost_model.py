"""
Time/Cost Model
Execution-time cost of one HPLC test given which injection categories are active.

Only blank, standard, sample and bracketing can be suppressed (by position in a
group). System suitability, sensitivity, placebo and the two reference injections
are always counted when declared. Wash time is charged once per run, appended
at the end, never per injection.
"""

import math
from typing import Dict, List, Any, Optional, Tuple
from dataclasses import dataclass, field

from scheduling.errors import ConfigurationError


DEFAULT_WASH_INTERVAL = 6

# Categories in the order they are reported in a breakdown
INJECTION_CATEGORIES = [
    'sample', 'standard', 'blank', 'sensitivity', 'system_suitability',
    'placebo', 'reference1', 'reference2',
]

# Categories a group position may switch off
MASKABLE_CATEGORIES = ('blank', 'standard', 'sample')

# TestSpec attribute names per category
COUNT_FIELDS = {
    'sample': 'sample_injection',
    'standard': 'standard_injection',
    'blank': 'blank_injection',
    'sensitivity': 'sensitivity',
    'system_suitability': 'system_suitability',
    'placebo': 'placebo',
    'reference1': 'reference1',
    'reference2': 'reference2',
}

RUNTIME_FIELDS = {
    'sample': 'sample_run_time',
    'standard': 'standard_run_time',
    'blank': 'blank_run_time',
    'sensitivity': 'sensitivity_run_time',
    'system_suitability': 'system_suitability_run_time',
    'placebo': 'placebo_run_time',
    'reference1': 'reference1_run_time',
    'reference2': 'reference2_run_time',
}


def safe_number(value: Any, default: float = 0) -> float:
    """
    Coerce a raw value to a non-negative number.

    None, empty strings, NaN and anything non-numeric become the default.
    Negative values clamp to 0.
    """
    if value is None:
        return default
    if isinstance(value, str):
        value = value.strip()
        if value == '':
            return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return max(0.0, number)


# =============================================================================
# INJECTION MASKS
# =============================================================================

@dataclass(frozen=True)
class InjectionMask:
    """Which suppressible categories are charged. wash=False defers wash to a later group member."""
    blank: bool = True
    standard: bool = True
    sample: bool = True
    bracketing: bool = True
    wash: bool = True

    def is_active(self, category: str) -> bool:
        if category in MASKABLE_CATEGORIES:
            return getattr(self, category)
        return True


ALL_ACTIVE = InjectionMask()


def injection_mask_for_position(index: int, count: int) -> InjectionMask:
    """
    Active-injection mask for the member at `index` in a group of `count` tests.

    The first member pays blank/standard/sample; middle members only samples;
    the last member adds closing bracketing. Wash is charged on the last member only.
    """
    if count <= 1:
        return ALL_ACTIVE

    is_last = index == count - 1
    if index == 0:
        return InjectionMask(blank=True, standard=True, sample=True,
                             bracketing=False, wash=False)
    return InjectionMask(blank=False, standard=False, sample=True,
                         bracketing=is_last, wash=is_last)


# =============================================================================
# COST
# =============================================================================

@dataclass
class CostBreakdown:
    """Structured result of a cost calculation, including a human-readable trace."""
    injection_counts: Dict[str, float] = field(default_factory=dict)
    runtimes: Dict[str, float] = field(default_factory=dict)
    total_counted_injections: float = 0
    bracketing_injections: float = 0
    wash_cycles: int = 0
    runtime_minutes: float = 0
    wash_minutes: float = 0
    total_minutes: float = 0
    has_unique_runtimes: bool = False
    wash_interval: int = DEFAULT_WASH_INTERVAL
    formula: str = ''
    steps: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'injection_counts': dict(self.injection_counts),
            'runtimes': dict(self.runtimes),
            'total_counted_injections': self.total_counted_injections,
            'bracketing_injections': self.bracketing_injections,
            'wash_cycles': self.wash_cycles,
            'runtime_minutes': self.runtime_minutes,
            'wash_minutes': self.wash_minutes,
            'total_minutes': self.total_minutes,
            'has_unique_runtimes': self.has_unique_runtimes,
            'wash_interval': self.wash_interval,
            'formula': self.formula,
            'steps': list(self.steps),
        }


def _fmt(value: float) -> str:
    return f"{value:g}"


def uses_unique_runtimes(test) -> bool:
    """Per-category runtimes apply only when the test is flagged for them."""
    return bool(test.unique_runtimes)


def compute_cost(test, wash_interval: int = DEFAULT_WASH_INTERVAL,
                 active: InjectionMask = ALL_ACTIVE) -> CostBreakdown:
    """
    Compute the execution time of one test.

    Args:
        test: TestSpec to price
        wash_interval: Injections per bracketing/wash cycle (must be > 0)
        active: Which suppressible categories to charge

    Returns:
        CostBreakdown with total_minutes as the test's cost
    """
    if wash_interval is None or wash_interval <= 0:
        raise ConfigurationError(f"wash_interval must be > 0, got {wash_interval}")

    counts = {}
    for category in INJECTION_CATEGORIES:
        declared = safe_number(getattr(test, COUNT_FIELDS[category]))
        counts[category] = declared if active.is_active(category) else 0

    shared_runtime = safe_number(test.run_time, 1)
    unique = uses_unique_runtimes(test)

    base = sum(counts.values())
    bracketing = math.ceil(base / wash_interval) if active.bracketing else 0
    counts['bracketing'] = bracketing
    total_injections = base + bracketing
    wash_cycles = math.ceil(total_injections / wash_interval)

    steps = []
    if unique:
        runtimes = {}
        for category in INJECTION_CATEGORIES:
            # 0 or missing means "same as the shared runtime"
            runtimes[category] = safe_number(getattr(test, RUNTIME_FIELDS[category])) or shared_runtime
        runtimes['bracketing'] = runtimes['sample']

        runtime_minutes = 0.0
        for category, count in counts.items():
            contribution = count * runtimes[category]
            if count > 0:
                steps.append(f"{category}: {_fmt(count)} x {_fmt(runtimes[category])} min "
                             f"= {_fmt(contribution)} min")
            runtime_minutes += contribution
    else:
        runtimes = {'default': shared_runtime}
        runtime_minutes = total_injections * shared_runtime
        steps.append(f"Base injections: {_fmt(base)}")
        steps.append(f"Bracketing injections: {_fmt(bracketing)} (every {wash_interval})")
        steps.append(f"Total injections: {_fmt(base)} + {_fmt(bracketing)} = {_fmt(total_injections)}")
        steps.append(f"Runtime per injection: {_fmt(shared_runtime)} min")
        steps.append(f"Runtime total: {_fmt(total_injections)} x {_fmt(shared_runtime)} "
                     f"= {_fmt(runtime_minutes)} min")

    wash_minutes = safe_number(test.wash_time) if active.wash else 0
    total_minutes = runtime_minutes + wash_minutes
    steps.append(f"Wash time: {_fmt(wash_minutes)} min (once per run)")
    steps.append(f"Total time: {_fmt(runtime_minutes)} + {_fmt(wash_minutes)} = {_fmt(total_minutes)} min")

    if unique:
        formula = (f"Time = sum(Ni x RTi) + WT = {runtime_minutes:.1f} + "
                   f"{wash_minutes:.1f} = {total_minutes:.1f} min")
    else:
        formula = (f"Time = (sum(Ni) + Bracketing) x RT + WT = {_fmt(total_injections)} x "
                   f"{_fmt(shared_runtime)} + {_fmt(wash_minutes)} = {total_minutes:.1f} min")

    return CostBreakdown(
        injection_counts=counts,
        runtimes=runtimes,
        total_counted_injections=total_injections,
        bracketing_injections=bracketing,
        wash_cycles=wash_cycles,
        runtime_minutes=runtime_minutes,
        wash_minutes=wash_minutes,
        total_minutes=total_minutes,
        has_unique_runtimes=unique,
        wash_interval=wash_interval,
        formula=formula,
        steps=steps,
    )


def execution_time(test, wash_interval: int = DEFAULT_WASH_INTERVAL,
                   active: InjectionMask = ALL_ACTIVE) -> float:
    """Shorthand for compute_cost(...).total_minutes."""
    return compute_cost(test, wash_interval, active).total_minutes


@dataclass
class GroupedCost:
    """Per-position costs for a sequence of grouped tests."""
    masks: List[InjectionMask] = field(default_factory=list)
    member_costs: List[float] = field(default_factory=list)
    full_costs: List[float] = field(default_factory=list)
    total_time: float = 0
    original_total_time: float = 0

    @property
    def time_saved(self) -> float:
        return self.original_total_time - self.total_time


def grouped_cost(tests: List, wash_interval: int = DEFAULT_WASH_INTERVAL) -> GroupedCost:
    """
    Price a sequence of grouped TestSpecs by position.

    Returns:
        GroupedCost with the masked total, the all-active total and per-member values
    """
    n = len(tests)
    result = GroupedCost()
    for i, test in enumerate(tests):
        mask = injection_mask_for_position(i, n)
        masked = compute_cost(test, wash_interval, mask).total_minutes
        full = compute_cost(test, wash_interval, ALL_ACTIVE).total_minutes
        result.masks.append(mask)
        result.member_costs.append(masked)
        result.full_costs.append(full)
    result.total_time = sum(result.member_costs)
    result.original_total_time = sum(result.full_costs)
    return result
