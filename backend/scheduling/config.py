"""
Scheduler limits shared by the placement, forecast and grouping passes.
"""

from typing import Optional
from dataclasses import dataclass

from scheduling.errors import ConfigurationError


@dataclass
class SchedulerConfig:
    """
    Scheduling limits.

    - wash_interval: injections per bracketing cycle
    - max_runtime_minutes: ceiling for one instrument run (72h)
    - max_mobile_phase_slots: concurrent mobile phase + wash channels per instrument
    - horizon_days: forecast length
    """
    wash_interval: int = 6
    max_runtime_minutes: float = 4320
    max_mobile_phase_slots: int = 4
    horizon_days: int = 7
    data_dir: Optional[str] = None
    company_id: Optional[str] = None
    location_id: Optional[str] = None

    @property
    def max_runtime_hours(self) -> float:
        return self.max_runtime_minutes / 60

    @classmethod
    def create(cls, wash_interval: int = 6, max_runtime_minutes: float = 4320,
               max_mobile_phase_slots: int = 4, horizon_days: int = 7,
               **kwargs) -> 'SchedulerConfig':
        """
        Factory method that builds and validates a config.

        Raises:
            ConfigurationError: if any limit is not positive
        """
        config = cls(
            wash_interval=wash_interval,
            max_runtime_minutes=max_runtime_minutes,
            max_mobile_phase_slots=max_mobile_phase_slots,
            horizon_days=horizon_days,
            **kwargs,
        )
        return config.validate()

    def validate(self) -> 'SchedulerConfig':
        """Reject non-positive limits before any computation starts."""
        checks = [
            ('wash_interval', self.wash_interval),
            ('max_runtime_minutes', self.max_runtime_minutes),
            ('max_mobile_phase_slots', self.max_mobile_phase_slots),
            ('horizon_days', self.horizon_days),
        ]
        for name, value in checks:
            if value is None or value <= 0:
                raise ConfigurationError(f"{name} must be > 0, got {value}")
        return self
