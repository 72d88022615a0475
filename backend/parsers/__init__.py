"""
Data parsers package initialization.
"""

from .batch_parser import parse_batches, parse_batch, parse_test, extract_mobile_phase_codes
from .instrument_parser import (
    parse_instruments, parse_instrument_records, parse_instrument_sheet, display_name,
)
from .lookup_parser import parse_lookup_table

__all__ = [
    'parse_batches',
    'parse_batch',
    'parse_test',
    'extract_mobile_phase_codes',
    'parse_instruments',
    'parse_instrument_records',
    'parse_instrument_sheet',
    'display_name',
    'parse_lookup_table',
]
