"""
Visual Groups
Colour bands for displaying a queue (or the Hold Pool) by API, mobile phases,
detector and column. Display only; never used for scheduling decisions.
"""

from typing import Dict, List
from dataclasses import dataclass, field

from scheduling.models import ScheduledTest, Lookups, clean_codes


COLOR_PALETTE = [
    'Light Blue', 'Light Yellow', 'Light Green', 'Light Purple',
    'Light Pink', 'Light Indigo', 'Light Orange', 'Light Teal',
    'Light Cyan', 'Light Rose', 'Light Lime', 'Light Amber',
]


@dataclass
class VisualGroup:
    key: str
    api_name: str
    mobile_phases: str
    detector: str
    column: str
    color_index: int
    tests: List[ScheduledTest] = field(default_factory=list)

    @property
    def color(self) -> str:
        return COLOR_PALETTE[self.color_index]


def visual_group_key(test: ScheduledTest, lookups: Lookups) -> Dict[str, str]:
    # Only the four mobile phase slots count here, washes are ignored
    phases = ', '.join(sorted(clean_codes(test.test.mobile_phase_codes[:4])))
    api_name = lookups.api_name(test.api_id) if test.api_id else (test.api_label or 'NA')
    return {
        'api_name': api_name,
        'mobile_phases': phases,
        'detector': lookups.detector_name(test.detector_type_id),
        'column': lookups.column_display(test.column_code),
    }


def build_visual_groups(tests: List[ScheduledTest], lookups: Lookups = None) -> Dict[str, VisualGroup]:
    """
    Band tests by (api, mobile phases, detector, column) in first-appearance order.

    Returns:
        Dict of key -> VisualGroup; colours cycle through COLOR_PALETTE
    """
    lookups = lookups or Lookups()
    groups: Dict[str, VisualGroup] = {}

    for test in tests:
        parts = visual_group_key(test, lookups)
        key = '|'.join([parts['api_name'], parts['mobile_phases'], parts['detector'], parts['column']])
        if key not in groups:
            groups[key] = VisualGroup(key=key, color_index=len(groups) % len(COLOR_PALETTE), **parts)
        groups[key].tests.append(test)

    return groups
