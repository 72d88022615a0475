"""
Application settings
Reads HPLC_* variables (and the project .env) into a SchedulerConfig.
"""

import os
from typing import Optional

from dotenv import load_dotenv

from scheduling.config import SchedulerConfig
from scheduling.errors import ConfigurationError


BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_DATA_DIR = os.path.join(BACKEND_DIR, '..', 'data')
DEFAULT_ENV_FILE = os.path.join(BACKEND_DIR, '..', '.env')


def _env_number(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be numeric, got {raw!r}")


def load_settings(env_file: Optional[str] = None) -> SchedulerConfig:
    """
    Build a validated SchedulerConfig from the environment, loading .env first.

    Variables: HPLC_WASH_INTERVAL, HPLC_MAX_RUNTIME_MINUTES, HPLC_MAX_MOBILE_PHASE_SLOTS,
    HPLC_HORIZON_DAYS, HPLC_DATA_DIR, HPLC_COMPANY_ID, HPLC_LOCATION_ID.

    Raises:
        ConfigurationError: if a variable is not numeric or a limit is not positive
    """
    load_dotenv(env_file or DEFAULT_ENV_FILE)

    return SchedulerConfig.create(
        wash_interval=int(_env_number('HPLC_WASH_INTERVAL', 6)),
        max_runtime_minutes=_env_number('HPLC_MAX_RUNTIME_MINUTES', 4320),
        max_mobile_phase_slots=int(_env_number('HPLC_MAX_MOBILE_PHASE_SLOTS', 4)),
        horizon_days=int(_env_number('HPLC_HORIZON_DAYS', 7)),
        data_dir=os.environ.get('HPLC_DATA_DIR', DEFAULT_DATA_DIR),
        company_id=os.environ.get('HPLC_COMPANY_ID') or None,
        location_id=os.environ.get('HPLC_LOCATION_ID') or None,
    )
