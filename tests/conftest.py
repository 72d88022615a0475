"""Shared test fixtures for the HPLC scheduler tests."""

import os
import sys
import pytest
from datetime import datetime

# Add backend to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

from scheduling.models import (
    TestSpec, Batch, FormulationComponent, Instrument, Lookups, ScheduledTest,
)
from scheduling.config import SchedulerConfig


def make_spec(**overrides):
    """A simple assay: 1 blank, 2 standards, 3 samples at 10 min, no wash."""
    values = dict(
        test_type_id='TT-ASSAY',
        test_name='Assay',
        column_code='C18',
        detector_type_id='UV',
        mobile_phase_codes=['MP01', 'MP02'],
        blank_injection=1,
        standard_injection=2,
        sample_injection=3,
        run_time=10,
    )
    values.update(overrides)
    return TestSpec(**values)


def make_batch(batch_id='B1', tests=None, priority='Normal', components=None, **overrides):
    return Batch(
        batch_id=batch_id,
        batch_number=overrides.pop('batch_number', f"BN-{batch_id}"),
        product_code=overrides.pop('product_code', 'P-100'),
        product_name=overrides.pop('product_name', 'Paracetamol 500mg'),
        priority=priority,
        tests=tests if tests is not None else [make_spec()],
        components=components or [],
        **overrides,
    )


def make_scheduled(test_id, spec=None, batch_id='B1', priority='Normal', linked_keys=(), cost=None):
    """ScheduledTest with its un-grouped cost filled in."""
    from scheduling.cost_model import execution_time
    spec = spec or make_spec()
    minutes = execution_time(spec) if cost is None else cost
    return ScheduledTest(
        id=test_id,
        batch_id=batch_id,
        batch_number=f"BN-{batch_id}",
        product_code='P-100',
        product_name='Paracetamol 500mg',
        test=spec,
        priority=priority,
        execution_time=minutes,
        original_execution_time=minutes,
        linked_keys=tuple(linked_keys),
    )


@pytest.fixture
def spec_factory():
    return make_spec


@pytest.fixture
def batch_factory():
    return make_batch


@pytest.fixture
def scheduled_factory():
    return make_scheduled


@pytest.fixture
def now():
    """Fixed anchor: Monday 2 March 2026, 08:00."""
    return datetime(2026, 3, 2, 8, 0)


@pytest.fixture
def config():
    return SchedulerConfig()


@pytest.fixture
def lookups():
    return Lookups(
        detector_names={'UV': 'UV-Vis', 'PDA': 'Photodiode Array', 'RI': 'Refractive Index'},
        column_names={'C18': 'C18 250x4.6mm', 'C8': 'C8 150x4.6mm'},
        api_names={'API-PARA': 'Paracetamol', 'API-CAFF': 'Caffeine'},
    )


@pytest.fixture
def instruments():
    """Two active instruments and one inactive one."""
    return [
        Instrument(instrument_id='INST-0001', name='HPLC-A', detector_ids=['UV', 'PDA']),
        Instrument(instrument_id='INST-0002', name='HPLC-B', detector_ids=['RI']),
        Instrument(instrument_id='INST-0003', name='HPLC-C', detector_ids=['UV'], is_active=False),
    ]


@pytest.fixture
def two_api_batch():
    """A batch whose two APIs each produced an identical Assay on the same column."""
    assay = make_spec()
    components = [
        FormulationComponent(api_id='API-PARA', test_types=[make_spec()], generic_name='Combo'),
        FormulationComponent(api_id='API-CAFF', test_types=[make_spec()], generic_name='Combo'),
    ]
    return make_batch('B2', tests=[assay, make_spec()], components=components)


@pytest.fixture
def batch_records():
    """Raw batch export records in the intake system's camelCase shape."""
    return [
        {
            '_id': 'B100',
            'batchNumber': 'LOT-100',
            'productCode': 'P-100',
            'productName': 'Paracetamol 500mg',
            'priority': 'High',
            'companyId': {'_id': 'CO1'},
            'locationId': 'LOC1',
            'tests': [
                {
                    'testTypeId': 'TT-ASSAY',
                    'testName': 'Assay',
                    'columnCode': 'C18',
                    'detectorTypeId': 'UV',
                    'mobilePhaseCodes': ['MP01', 'MP02', '', '', 'W01', ''],
                    'blankInjection': 1,
                    'standardInjection': '2',
                    'sampleInjection': 3,
                    'runTime': 10,
                    'washTime': 5,
                    'testStatus': 'Not Started',
                },
                {
                    'testTypeId': 'TT-DISS',
                    'testName': 'Dissolution',
                    'columnCode': 'C8',
                    'detectorTypeId': 'UV',
                    'mp1': 'MP03',
                    'mp2': 'MP04',
                    'sampleInjection': 'six',
                    'runTime': 8,
                    'testStatus': 'Completed',
                },
            ],
            'generics': [
                {
                    'genericName': 'Paracetamol',
                    'apis': [
                        {
                            'apiName': {'_id': 'API-PARA'},
                            'testTypes': [
                                {'testName': 'Assay', 'columnCode': 'C18', 'detectorTypeId': 'UV',
                                 'isLinked': True},
                            ],
                        },
                    ],
                },
            ],
        },
        {
            'batchNumber': 'LOT-NO-ID',
            'tests': [],
        },
    ]
