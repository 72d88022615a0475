"""
API Resolver
Maps a flattened batch test back to the formulation component (API) that produced it.

Batches keep the nested generic -> API -> test-type tree alongside the flat test
list. Two APIs in one batch can produce textually identical tests, so the
flattened test needs its origin re-attached before grouping and labelling.
"""

from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass

from scheduling.models import Batch, TestSpec


NA_LABEL = 'NA'


@dataclass(frozen=True)
class ApiResolution:
    api_id: Optional[str]
    label: str = NA_LABEL


UNRESOLVED = ApiResolution(None, NA_LABEL)


def normalize_phases(codes: Optional[List[str]]) -> str:
    """Order-, case- and duplicate-insensitive key for a mobile phase set."""
    if not codes:
        return ''
    seen = []
    for code in codes:
        if code is None:
            continue
        value = str(code).strip().upper()
        if value and value not in seen:
            seen.append(value)
    return '-'.join(sorted(seen))


def _shares_pharmacopoeia(a: TestSpec, b: TestSpec) -> bool:
    return bool(set(a.pharmacopoeial_ids or []) & set(b.pharmacopoeial_ids or []))


def is_structural_match(candidate: TestSpec, test: TestSpec) -> bool:
    """Same name, column, detector, mobile phases, runtime and sample/standard counts."""
    return (
        candidate.test_name == test.test_name
        and candidate.column_code == test.column_code
        and candidate.detector_type_id == test.detector_type_id
        and normalize_phases(candidate.mobile_phase_codes) == normalize_phases(test.mobile_phase_codes)
        and candidate.run_time == test.run_time
        and candidate.sample_injection == test.sample_injection
        and candidate.standard_injection == test.standard_injection
    )


def score_candidate(candidate: TestSpec, test: TestSpec) -> int:
    score = 0
    if is_structural_match(candidate, test):
        score += 10
    if normalize_phases(candidate.mobile_phase_codes) == normalize_phases(test.mobile_phase_codes):
        score += 5
    if _shares_pharmacopoeia(candidate, test):
        score += 1
    if abs((candidate.run_time or 0) - (test.run_time or 0)) <= 1:
        score += 1
    return score


def _component_tests(batch: Batch) -> List[Tuple[str, TestSpec]]:
    """Every (api_id, test type) pair in component order, skipping unnamed APIs."""
    pairs = []
    for component in batch.components:
        if not component.api_id:
            continue
        for test_type in component.test_types:
            pairs.append((component.api_id, test_type))
    return pairs


def _label(api_id: str, api_names: Optional[Dict[str, str]]) -> str:
    if api_names and api_id in api_names:
        return api_names[api_id]
    return api_id


def resolve_origin_api(batch: Batch, test: TestSpec, position_hint: Optional[int] = None,
                       api_names: Optional[Dict[str, str]] = None) -> ApiResolution:
    """
    Find the API a flattened test came from.

    Args:
        batch: Batch owning the test, with its component tree
        test: The flattened test
        position_hint: Occurrence index of this test among structurally identical
            tests in the batch's flat list
        api_names: Optional id -> display label table

    Returns:
        ApiResolution; (None, 'NA') when nothing matches
    """
    if batch is None or test is None:
        return UNRESOLVED

    pairs = _component_tests(batch)
    if not pairs:
        return UNRESOLVED

    # Duplicates from several components: the hint indexes into them directly
    if position_hint is not None and position_hint >= 0:
        same_slot = [(api_id, tt) for api_id, tt in pairs
                     if tt.test_name == test.test_name and tt.column_code == test.column_code]
        if len(same_slot) > 1:
            identical = [(api_id, tt) for api_id, tt in same_slot if is_structural_match(tt, test)]
            if position_hint < len(identical):
                api_id = identical[position_hint][0]
                return ApiResolution(api_id, _label(api_id, api_names))

    best = UNRESOLVED
    best_score = None
    for api_id, candidate in pairs:
        if candidate.test_name != test.test_name:
            continue
        score = score_candidate(candidate, test)
        if score > 0 and (best_score is None or score > best_score):
            best_score = score
            best = ApiResolution(api_id, _label(api_id, api_names))
    return best


def linked_component_keys(batch: Batch, test: TestSpec) -> Tuple[str, ...]:
    """
    Linked-group keys for a test: one per component whose linked test types
    include this test's name and column.
    """
    keys = []
    for index, component in enumerate(batch.components):
        for test_type in component.test_types:
            if (test_type.is_linked
                    and test_type.test_name == test.test_name
                    and test_type.column_code == test.column_code):
                keys.append(f"{batch.batch_id}:{index}")
                break
    return tuple(keys)
