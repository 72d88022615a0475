"""
Instrument Parser
Parses the HPLC master list into Instrument entities.

Two shapes are supported:
- JSON records as exported by the instrument master ({_id, hplcName, internalCode,
  isActive, detector: [{_id, detectorType}]})
- A sheet (xlsx/csv) with one row per instrument and a comma-separated Detectors column
"""

import json
from pathlib import Path
from typing import Dict, List, Any, Optional, Tuple, Union

import pandas as pd

from scheduling.models import Instrument
from scheduling.errors import InputDataError


SHEET_COLUMNS = {
    'id': 'Instrument ID',
    'name': 'Name',
    'internal_code': 'Internal Code',
    'model': 'Model',
    'active': 'Active',
    'detectors': 'Detectors',
}

TRUE_VALUES = {'true', 'yes', 'y', '1', 'active'}


def display_name(instrument_id: str, name: Optional[str] = None,
                 internal_code: Optional[str] = None) -> str:
    """Instrument label: its name, else its internal code, else HPLC-<last 4 of id>."""
    if name:
        return name
    if internal_code:
        return internal_code
    return f"HPLC-{instrument_id[-4:]}"


def _as_bool(value: Any, default: bool = True) -> bool:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


def _clean(value: Any) -> Optional[str]:
    if value is None or (not isinstance(value, (list, dict)) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


def parse_instrument_records(records: List[Dict[str, Any]],
                             detector_names: Optional[Dict[str, str]] = None) -> List[Instrument]:
    """
    Parse instrument-master JSON records.

    Args:
        records: Raw instrument dicts
        detector_names: Optional dict filled with detector id -> detectorType found inline

    Returns:
        List of Instrument in source order (inactive ones included, flagged)
    """
    instruments = []
    for index, record in enumerate(records):
        instrument_id = _clean(record.get('_id') or record.get('id'))
        if not instrument_id:
            raise InputDataError(f"Instrument record {index} has no _id")

        detector_ids = []
        for detector in record.get('detector') or []:
            if isinstance(detector, dict):
                detector_id = _clean(detector.get('_id'))
                if detector_id and detector_names is not None and detector.get('detectorType'):
                    detector_names.setdefault(detector_id, str(detector['detectorType']))
            else:
                detector_id = _clean(detector)
            if detector_id and detector_id not in detector_ids:
                detector_ids.append(detector_id)

        instruments.append(Instrument(
            instrument_id=instrument_id,
            name=display_name(instrument_id, _clean(record.get('hplcName')),
                              _clean(record.get('internalCode'))),
            detector_ids=detector_ids,
            is_active=_as_bool(record.get('isActive'), True),
            model=_clean(record.get('hplcModel')) or '',
        ))
    return instruments


def parse_instrument_sheet(filepath: str) -> List[Instrument]:
    """
    Parse an instrument sheet (xlsx or csv).

    Returns:
        List of Instrument; rows without an id are skipped
    """
    path = Path(filepath)
    if path.suffix.lower() == '.csv':
        df = pd.read_csv(filepath, dtype=str)
    else:
        df = pd.read_excel(filepath, dtype=str)

    print(f"  Loaded {len(df)} rows from instrument sheet")

    instruments = []
    skipped = 0
    for _, row in df.iterrows():
        instrument_id = _clean(row.get(SHEET_COLUMNS['id']))
        if not instrument_id:
            skipped += 1
            continue

        raw_detectors = _clean(row.get(SHEET_COLUMNS['detectors'])) or ''
        detector_ids = []
        for part in raw_detectors.split(','):
            part = part.strip()
            if part and part not in detector_ids:
                detector_ids.append(part)

        instruments.append(Instrument(
            instrument_id=instrument_id,
            name=display_name(instrument_id, _clean(row.get(SHEET_COLUMNS['name'])),
                              _clean(row.get(SHEET_COLUMNS['internal_code']))),
            detector_ids=detector_ids,
            is_active=_as_bool(row.get(SHEET_COLUMNS['active']), True),
            model=_clean(row.get(SHEET_COLUMNS['model'])) or '',
        ))

    if skipped:
        print(f"  [WARN] Skipped {skipped} instrument rows without an id")
    return instruments


def parse_instruments(filepath: str) -> Tuple[List[Instrument], Dict[str, str]]:
    """
    Parse an instrument file by extension (.json, .csv, .xlsx).

    Returns:
        Tuple of (instruments, detector id -> name found inline)
    """
    detector_names: Dict[str, str] = {}
    if Path(filepath).suffix.lower() == '.json':
        with open(filepath, 'r', encoding='utf-8') as f:
            records = json.load(f)
        if isinstance(records, dict):
            records = records.get('data') or []
        instruments = parse_instrument_records(records, detector_names)
    else:
        instruments = parse_instrument_sheet(filepath)

    active = sum(1 for i in instruments if i.is_active)
    print(f"  [Loader] Parsed {len(instruments)} instruments ({active} active)")
    return instruments, detector_names
