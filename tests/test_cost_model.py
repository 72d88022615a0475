"""Tests for the execution-time cost model."""

import math
import pytest

from scheduling.cost_model import (
    safe_number, compute_cost, execution_time, grouped_cost, uses_unique_runtimes,
    injection_mask_for_position, InjectionMask, ALL_ACTIVE,
)
from scheduling.errors import ConfigurationError


class TestSafeNumber:
    """Tests for raw value coercion."""

    def test_numeric_string(self):
        assert safe_number('7') == 7.0

    def test_missing_values_use_default(self):
        assert safe_number(None) == 0
        assert safe_number('') == 0
        assert safe_number('   ', 1) == 1

    def test_garbage_uses_default(self):
        assert safe_number('six', 6) == 6
        assert safe_number(float('nan'), 1) == 1
        assert safe_number(math.inf) == 0

    def test_negative_clamps_to_zero(self):
        assert safe_number(-5) == 0


class TestInjectionMasks:
    """Tests for position-based masks."""

    def test_single_member_pays_everything(self):
        assert injection_mask_for_position(0, 1) == ALL_ACTIVE

    def test_first_member(self):
        mask = injection_mask_for_position(0, 3)
        assert mask.blank and mask.standard and mask.sample
        assert mask.bracketing is False
        assert mask.wash is False

    def test_middle_member(self):
        mask = injection_mask_for_position(1, 3)
        assert mask.sample is True
        assert not (mask.blank or mask.standard or mask.bracketing or mask.wash)

    def test_last_member(self):
        mask = injection_mask_for_position(2, 3)
        assert mask.sample and mask.bracketing and mask.wash
        assert not (mask.blank or mask.standard)

    def test_unmaskable_categories_always_active(self):
        mask = InjectionMask(blank=False, standard=False, sample=False)
        assert mask.is_active('system_suitability') is True
        assert mask.is_active('placebo') is True


class TestComputeCost:
    """Tests for single-test cost calculation."""

    def test_shared_runtime(self, spec_factory):
        # 1 blank + 2 standards + 3 samples = 6, plus ceil(6/6) = 1 bracketing
        breakdown = compute_cost(spec_factory())
        assert breakdown.bracketing_injections == 1
        assert breakdown.total_counted_injections == 7
        assert breakdown.total_minutes == 70
        assert breakdown.has_unique_runtimes is False
        assert breakdown.formula.endswith("= 70.0 min")

    def test_wash_added_once(self, spec_factory):
        breakdown = compute_cost(spec_factory(wash_time=5))
        assert breakdown.wash_minutes == 5
        assert breakdown.total_minutes == 75

    def test_bracketing_rounds_up(self, spec_factory):
        spec = spec_factory(sample_injection=10)  # 13 injections -> 3 bracketing
        assert compute_cost(spec).bracketing_injections == 3
        assert execution_time(spec) == 160

    def test_wash_interval_changes_bracketing(self, spec_factory):
        assert compute_cost(spec_factory(), wash_interval=3).bracketing_injections == 2

    def test_always_on_categories_counted(self, spec_factory):
        spec = spec_factory(system_suitability=5, sensitivity=1)
        breakdown = compute_cost(spec, active=InjectionMask(blank=False, standard=False, sample=False))
        assert breakdown.injection_counts['system_suitability'] == 5
        assert breakdown.injection_counts['sensitivity'] == 1
        assert breakdown.injection_counts['sample'] == 0

    def test_unique_runtimes_fall_back_to_shared(self, spec_factory):
        # sample 3x20 + standard 2x10 + blank 1x10 + bracketing 1x20
        spec = spec_factory(unique_runtimes=True, sample_run_time=20)
        assert uses_unique_runtimes(spec) is True
        breakdown = compute_cost(spec)
        assert breakdown.runtimes['standard'] == 10
        assert breakdown.runtimes['bracketing'] == 20
        assert breakdown.total_minutes == 110

    def test_category_runtimes_ignored_without_flag(self, spec_factory):
        spec = spec_factory(sample_run_time=20)
        assert uses_unique_runtimes(spec) is False
        breakdown = compute_cost(spec)
        assert breakdown.runtimes == {'default': 10}
        assert breakdown.total_minutes == 70

    def test_unique_flag_with_no_category_runtimes(self, spec_factory):
        spec = spec_factory(unique_runtimes=True)
        assert compute_cost(spec).total_minutes == 70

    def test_bad_numbers_do_not_raise(self, spec_factory):
        spec = spec_factory(sample_injection=None, run_time='abc')
        breakdown = compute_cost(spec)
        # 1 blank + 2 standards, 1 bracketing, runtime falls back to 1 minute
        assert breakdown.total_minutes == 4

    def test_zero_wash_interval_rejected(self, spec_factory):
        with pytest.raises(ConfigurationError):
            compute_cost(spec_factory(), wash_interval=0)

    def test_breakdown_to_dict(self, spec_factory):
        data = compute_cost(spec_factory()).to_dict()
        assert data['total_minutes'] == 70
        assert data['wash_cycles'] == 2
        assert data['steps']


class TestGroupedCost:
    """Tests for position-priced groups."""

    def test_three_identical_tests(self, spec_factory):
        specs = [spec_factory(wash_time=5) for _ in range(3)]
        pricing = grouped_cost(specs)
        # first: 6 inj, middle: 3 samples, last: 3 samples + 1 bracketing + wash
        assert pricing.member_costs == [60, 30, 45]
        assert pricing.original_total_time == 225
        assert pricing.total_time == 135
        assert pricing.time_saved == 90

    def test_group_never_costs_more(self, spec_factory):
        specs = [spec_factory(sample_injection=n) for n in (1, 5, 12)]
        pricing = grouped_cost(specs)
        assert pricing.total_time <= pricing.original_total_time

    def test_single_member_group_is_full_price(self, spec_factory):
        pricing = grouped_cost([spec_factory()])
        assert pricing.total_time == 70
        assert pricing.time_saved == 0
