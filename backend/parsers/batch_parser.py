"""
Batch Parser
Parses batch records (JSON export of the batch intake system) into Batch / TestSpec entities.

Each record carries a flat `tests` list plus the nested `generics -> apis -> testTypes`
tree the tests were generated from. Numeric fields are coerced with safe_number;
in strict mode unusable records raise InputDataError instead.
"""

import json
import math
from typing import Dict, List, Any, Optional, Union

from scheduling.models import Batch, FormulationComponent, TestSpec
from scheduling.cost_model import safe_number
from scheduling.errors import InputDataError


# camelCase source field -> (TestSpec attribute, default)
NUMERIC_FIELDS = {
    'blankInjection': ('blank_injection', 0),
    'standardInjection': ('standard_injection', 0),
    'sampleInjection': ('sample_injection', 0),
    'systemSuitability': ('system_suitability', 0),
    'sensitivity': ('sensitivity', 0),
    'placebo': ('placebo', 0),
    'reference1': ('reference1', 0),
    'reference2': ('reference2', 0),
    'bracketingFrequency': ('bracketing_frequency', 6),
    'runTime': ('run_time', 1),
    'washTime': ('wash_time', 0),
    'blankRunTime': ('blank_run_time', 0),
    'standardRunTime': ('standard_run_time', 0),
    'sampleRunTime': ('sample_run_time', 0),
    'systemSuitabilityRunTime': ('system_suitability_run_time', 0),
    'sensitivityRunTime': ('sensitivity_run_time', 0),
    'placeboRunTime': ('placebo_run_time', 0),
    'reference1RunTime': ('reference1_run_time', 0),
    'reference2RunTime': ('reference2_run_time', 0),
}

# Individual slot keys used by older exports instead of mobilePhaseCodes
MOBILE_PHASE_SLOTS = ['mp1', 'mp2', 'mp3', 'mp4', 'wash1', 'wash2']
MAX_CODES = 6


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    text = str(value).strip()
    return text or None


def _id(value: Any) -> Optional[str]:
    """Reference fields may be plain ids or populated {'_id': ...} objects."""
    if isinstance(value, dict):
        value = value.get('_id') or value.get('id')
    return _text(value)


def _is_numeric(value: Any) -> bool:
    if value is None or value == '':
        return True
    try:
        float(value)
        return True
    except (TypeError, ValueError):
        return False


def extract_mobile_phase_codes(record: Dict[str, Any]) -> List[str]:
    """
    Mobile phase + wash codes in slot order, blanks kept as ''.

    Accepts either a `mobilePhaseCodes` list or individual mp1..mp4 / wash1..wash2 keys.
    """
    raw = record.get('mobilePhaseCodes')
    if raw is None:
        raw = [record.get(slot) for slot in MOBILE_PHASE_SLOTS]
    elif isinstance(raw, str):
        raw = [part for part in raw.split(',')]

    codes = [_id(code) or '' for code in raw][:MAX_CODES]
    return codes


def parse_test(record: Dict[str, Any], strict: bool = False,
               warnings: Optional[List[str]] = None, context: str = '') -> TestSpec:
    """
    Parse one test record.

    Args:
        record: camelCase test dict
        strict: Raise InputDataError instead of coercing bad values
        warnings: Optional list that receives one message per coerced field
        context: Label used in messages (e.g. batch number)

    Returns:
        TestSpec
    """
    if warnings is None:
        warnings = []
    label = f"{context} / {record.get('testName') or record.get('testTypeId') or '?'}"

    missing = [name for name, key in (('detector', 'detectorTypeId'), ('column', 'columnCode'))
               if not _id(record.get(key))]
    if missing and strict:
        raise InputDataError(f"{label}: missing required field(s) {', '.join(missing)}")

    values = {}
    for source, (attr, default) in NUMERIC_FIELDS.items():
        raw = record.get(source)
        if not _is_numeric(raw):
            if strict:
                raise InputDataError(f"{label}: {source} is not numeric ({raw!r})")
            warnings.append(f"{label}: {source}={raw!r} is not numeric, using {default}")
        values[attr] = safe_number(raw, default)

    pharmacopoeia = record.get('pharmacopoeialId') or []
    if not isinstance(pharmacopoeia, list):
        pharmacopoeia = [pharmacopoeia]

    return TestSpec(
        test_type_id=_id(record.get('testTypeId')) or 'UNKNOWN',
        test_name=_text(record.get('testName')) or '',
        column_code=_id(record.get('columnCode')),
        detector_type_id=_id(record.get('detectorTypeId')),
        mobile_phase_codes=extract_mobile_phase_codes(record),
        pharmacopoeial_ids=[p for p in (_id(x) for x in pharmacopoeia) if p],
        unique_runtimes=bool(record.get('uniqueRuntimes', False)),
        test_status=_text(record.get('testStatus')) or 'Not Started',
        is_linked=bool(record.get('isLinked', False)),
        outsourced=bool(record.get('outsourced', False)),
        **values,
    )


def parse_batch(record: Dict[str, Any], strict: bool = False,
                warnings: Optional[List[str]] = None) -> Batch:
    """
    Parse one batch record, including its generics/apis component tree.

    Raises:
        InputDataError: if the record has no id (always), or on bad test fields (strict)
    """
    if warnings is None:
        warnings = []

    batch_id = _id(record.get('_id') or record.get('batchId'))
    if not batch_id:
        raise InputDataError(f"Batch record has no _id: {record.get('batchNumber')!r}")
    batch_number = _text(record.get('batchNumber')) or batch_id

    tests = [parse_test(t, strict, warnings, batch_number) for t in record.get('tests') or []]

    components = []
    for generic in record.get('generics') or []:
        generic_name = _text(generic.get('genericName')) or ''
        for api in generic.get('apis') or []:
            components.append(FormulationComponent(
                api_id=_id(api.get('apiName')) or '',
                generic_name=generic_name,
                test_types=[parse_test(t, False, None, batch_number) for t in api.get('testTypes') or []],
            ))

    return Batch(
        batch_id=batch_id,
        batch_number=batch_number,
        product_code=_text(record.get('productCode')) or '',
        product_name=_text(record.get('productName')) or '',
        priority=_text(record.get('priority')) or 'Normal',
        tests=tests,
        components=components,
        generic_name=_text(record.get('genericName')) or '',
        company_id=_id(record.get('companyId')),
        location_id=_id(record.get('locationId')),
        status=_text(record.get('batchStatus')) or 'Not Started',
    )


def parse_batches(source: Union[str, List[Dict[str, Any]]], strict: bool = False,
                  warnings: Optional[List[str]] = None) -> List[Batch]:
    """
    Parse a batch export.

    Args:
        source: Path to a JSON file (a list, or {"data": [...]}) or already-loaded records
        strict: Raise on the first unusable record
        warnings: Optional list collecting coercion and skip messages

    Returns:
        List of Batch in file order
    """
    if warnings is None:
        warnings = []

    if isinstance(source, str):
        with open(source, 'r', encoding='utf-8') as f:
            records = json.load(f)
    else:
        records = source

    if isinstance(records, dict):
        records = records.get('data') or records.get('batches') or []

    batches = []
    for index, record in enumerate(records):
        try:
            batches.append(parse_batch(record, strict, warnings))
        except InputDataError as e:
            if strict:
                raise
            warnings.append(f"Record {index} skipped: {e}")

    print(f"  [Loader] Parsed {len(batches)} batches "
          f"({sum(len(b.tests) for b in batches)} tests, {len(warnings)} warnings)")
    return batches
