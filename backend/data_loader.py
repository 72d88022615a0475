"""
Data Loader
File-backed source of batches, instruments and label tables for the scheduler.

Files are picked from the data directory by pattern, newest first:
- Batches*.json
- Instruments*.json / .xlsx / .csv
- Detectors*, Columns*, APIs* (.xlsx / .csv / .json) label tables (optional)
"""

import os
import glob
from pathlib import Path
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Any, Optional

from parsers import parse_batches, parse_instruments, parse_lookup_table
from scheduling.models import Batch, Instrument, Lookups
from scheduling.config import SchedulerConfig
from scheduling.errors import SchedulingError
from validators import ValidationReport, validate_scheduling_inputs


BATCH_PATTERNS = ['Batches*.json']
INSTRUMENT_PATTERNS = ['Instruments*.json', 'Instruments*.xlsx', 'Instruments*.csv']
LOOKUP_PATTERNS = {
    'detectors': ['Detectors*.xlsx', 'Detectors*.csv', 'Detectors*.json'],
    'columns': ['Columns*.xlsx', 'Columns*.csv', 'Columns*.json'],
    'apis': ['APIs*.xlsx', 'APIs*.csv', 'APIs*.json'],
}


class DataLoader:
    """Loads scheduling inputs and answers the engine's read queries."""

    def __init__(self, data_dir: str = "../data", config: Optional[SchedulerConfig] = None):
        self.data_dir = Path(data_dir)
        self.config = config or SchedulerConfig()
        self.batches: List[Batch] = []
        self.instruments: List[Instrument] = []
        self.lookups = Lookups()
        self.parse_warnings: List[str] = []
        self.validation: Optional[ValidationReport] = None

    def _find_most_recent_file(self, patterns: List[str]) -> Optional[Path]:
        """
        Find the most recently modified file matching any of the glob patterns.

        Returns:
            Path to the newest match, or None
        """
        matches = []
        for pattern in patterns:
            matches.extend(glob.glob(str(self.data_dir / pattern)))
            if '_' in pattern:
                matches.extend(glob.glob(str(self.data_dir / pattern.replace('_', ' '))))

        if not matches:
            return None

        matches.sort(key=lambda x: os.path.getmtime(x), reverse=True)
        return Path(matches[0])

    # =========================================================================
    # LOADERS
    # =========================================================================

    def load_batches(self, filepath: Optional[str] = None) -> List[Batch]:
        batch_file = Path(filepath) if filepath else self._find_most_recent_file(BATCH_PATTERNS)
        if not batch_file:
            raise FileNotFoundError(f"No batch file (Batches*.json) in {self.data_dir}")

        print(f"  Loading: {batch_file.name}")
        warnings: List[str] = []
        batches = parse_batches(str(batch_file), warnings=warnings)
        self.parse_warnings.extend(warnings)
        return batches

    def load_instruments(self, filepath: Optional[str] = None) -> Dict[str, Any]:
        instrument_file = Path(filepath) if filepath else self._find_most_recent_file(INSTRUMENT_PATTERNS)
        if not instrument_file:
            raise FileNotFoundError(f"No instrument file (Instruments*) in {self.data_dir}")

        print(f"  Loading: {instrument_file.name}")
        instruments, detector_names = parse_instruments(str(instrument_file))
        return {'instruments': instruments, 'detector_names': detector_names}

    def load_lookup(self, kind: str) -> Dict[str, str]:
        """Label table for 'detectors', 'columns' or 'apis'; empty when the file is absent."""
        lookup_file = self._find_most_recent_file(LOOKUP_PATTERNS[kind])
        if not lookup_file:
            print(f"  No {kind} label file found (optional)")
            return {}
        table = parse_lookup_table(str(lookup_file))
        print(f"  [OK] Loaded {len(table)} {kind} labels from {lookup_file.name}")
        return table

    def fetch_all(self, max_workers: int = 5) -> bool:
        """
        Fetch batches, instruments and the three label tables concurrently.

        Results are applied only after every fetch has finished.

        Returns:
            True if batches and instruments loaded
        """
        print("=" * 70)
        print("LOADING SCHEDULING DATA")
        print("=" * 70)

        tasks = {
            'batches': self.load_batches,
            'instruments': self.load_instruments,
            'detectors': lambda: self.load_lookup('detectors'),
            'columns': lambda: self.load_lookup('columns'),
            'apis': lambda: self.load_lookup('apis'),
        }
        results = {}
        failures = []

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_map = {executor.submit(fn): name for name, fn in tasks.items()}
            for future in as_completed(future_map):
                name = future_map[future]
                try:
                    results[name] = future.result()
                except (OSError, ValueError, SchedulingError) as e:
                    failures.append(name)
                    print(f"[ERROR] Failed to load {name}: {e}")

        if 'batches' in failures or 'instruments' in failures:
            return False

        self.batches = results['batches']
        self.instruments = results['instruments']['instruments']

        detector_names = dict(results['instruments']['detector_names'])
        detector_names.update(results.get('detectors') or {})
        self.lookups = Lookups(
            detector_names=detector_names,
            column_names=results.get('columns') or {},
            api_names=results.get('apis') or {},
        )

        self.validation = validate_scheduling_inputs(
            self.batches, self.instruments, self.config, self.parse_warnings)

        print(f"\n[OK] {len(self.batches)} batches, {len(self.instruments)} instruments")
        return True

    def load_all(self) -> bool:
        """Alias used by the launcher, matching the other loaders."""
        return self.fetch_all()

    # =========================================================================
    # READ INTERFACE
    # =========================================================================

    def list_schedulable_batches(self, company_id: Optional[str] = None,
                                 location_id: Optional[str] = None) -> List[Batch]:
        """Batches for the company/location that still have at least one not-started test."""
        batches = []
        for batch in self.batches:
            if company_id and batch.company_id and batch.company_id != company_id:
                continue
            if location_id and batch.location_id and batch.location_id != location_id:
                continue
            if any(t.is_schedulable for t in batch.tests):
                batches.append(batch)
        return batches

    def list_instruments(self, company_id: Optional[str] = None,
                         location_id: Optional[str] = None) -> List[Instrument]:
        # Instrument files are already per site
        return list(self.instruments)

    def lookup_detector_name(self, detector_id: str) -> str:
        return self.lookups.detector_name(detector_id)

    def lookup_column_display(self, column_code: str) -> str:
        return self.lookups.column_display(column_code)

    def lookup_api_name(self, api_id: str) -> str:
        return self.lookups.api_name(api_id)

    # =========================================================================
    # SUMMARY
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        tests = [t for b in self.batches for t in b.tests]
        return {
            'batches': len(self.batches),
            'tests': len(tests),
            'not_started': sum(1 for t in tests if t.is_schedulable),
            'instruments': len(self.instruments),
            'active_instruments': sum(1 for i in self.instruments if i.is_active),
            'detector_labels': len(self.lookups.detector_names),
            'column_labels': len(self.lookups.column_names),
            'api_labels': len(self.lookups.api_names),
            'parse_warnings': len(self.parse_warnings),
        }

    def print_summary(self):
        summary = self.get_summary()
        print("\n" + "=" * 70)
        print("DATA SUMMARY")
        print("=" * 70)
        print(f"Batches: {summary['batches']}")
        print(f"Tests: {summary['tests']} ({summary['not_started']} not started)")
        print(f"Instruments: {summary['instruments']} ({summary['active_instruments']} active)")
        print(f"Labels: {summary['detector_labels']} detectors, {summary['column_labels']} columns, "
              f"{summary['api_labels']} APIs")
        if summary['parse_warnings']:
            print(f"[WARN] {summary['parse_warnings']} parse warnings")
