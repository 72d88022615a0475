"""Tests for batch, instrument and lookup parsers."""

import json
import pytest
import pandas as pd

from parsers import (
    parse_batches, parse_test, extract_mobile_phase_codes,
    parse_instruments, parse_instrument_records, parse_instrument_sheet, display_name,
    parse_lookup_table,
)
from scheduling.errors import InputDataError


class TestBatchParser:
    """Tests for parse_batches / parse_test."""

    def test_parse_records(self, batch_records):
        warnings = []
        batches = parse_batches(batch_records, warnings=warnings)
        assert len(batches) == 1

        batch = batches[0]
        assert batch.batch_id == 'B100'
        assert batch.batch_number == 'LOT-100'
        assert batch.priority == 'High'
        assert batch.company_id == 'CO1'
        assert batch.location_id == 'LOC1'
        assert len(batch.tests) == 2
        assert any("Record 1 skipped" in w for w in warnings)

    def test_numeric_coercion(self, batch_records):
        warnings = []
        assay, dissolution = parse_batches(batch_records, warnings=warnings)[0].tests
        assert assay.standard_injection == 2.0
        assert assay.wash_time == 5
        assert assay.bracketing_frequency == 6
        assert dissolution.sample_injection == 0
        assert any("sampleInjection='six'" in w for w in warnings)

    def test_mobile_phase_codes(self, batch_records):
        assay, dissolution = parse_batches(batch_records)[0].tests
        assert assay.mobile_phase_codes == ['MP01', 'MP02', '', '', 'W01', '']
        assert assay.active_codes == ['MP01', 'MP02', 'W01']
        assert dissolution.active_codes == ['MP03', 'MP04']

    def test_status(self, batch_records):
        assay, dissolution = parse_batches(batch_records)[0].tests
        assert assay.is_schedulable is True
        assert dissolution.is_schedulable is False

    def test_components(self, batch_records):
        batch = parse_batches(batch_records)[0]
        assert len(batch.components) == 1
        component = batch.components[0]
        assert component.api_id == 'API-PARA'
        assert component.generic_name == 'Paracetamol'
        assert component.test_types[0].is_linked is True

    def test_strict_mode_raises(self, batch_records):
        with pytest.raises(InputDataError):
            parse_batches(batch_records, strict=True)

    def test_strict_missing_detector(self):
        with pytest.raises(InputDataError):
            parse_test({'testName': 'Assay', 'columnCode': 'C18'}, strict=True)

    def test_lenient_missing_detector(self):
        spec = parse_test({'testName': 'Assay', 'columnCode': 'C18'})
        assert spec.missing_fields == ['detector']
        assert spec.test_type_id == 'UNKNOWN'

    def test_comma_separated_codes(self):
        assert extract_mobile_phase_codes({'mobilePhaseCodes': 'MP01, MP02'}) == ['MP01', 'MP02']

    def test_parse_file_with_data_envelope(self, tmp_path, batch_records):
        path = tmp_path / 'Batches_2026-03-02.json'
        path.write_text(json.dumps({'data': batch_records}), encoding='utf-8')
        assert [b.batch_id for b in parse_batches(str(path))] == ['B100']


class TestInstrumentParser:
    """Tests for instrument master parsing."""

    def test_display_name_fallbacks(self):
        assert display_name('abcdef1234', 'HPLC-07') == 'HPLC-07'
        assert display_name('abcdef1234', None, 'IC-7') == 'IC-7'
        assert display_name('abcdef1234') == 'HPLC-1234'

    def test_parse_records(self):
        names = {}
        records = [{
            '_id': 'abcdef1234',
            'internalCode': 'IC-7',
            'isActive': True,
            'detector': [{'_id': 'UV', 'detectorType': 'UV-Vis'}, 'PDA', 'UV'],
        }]
        instrument = parse_instrument_records(records, names)[0]
        assert instrument.name == 'IC-7'
        assert instrument.detector_ids == ['UV', 'PDA']
        assert instrument.is_active is True
        assert names == {'UV': 'UV-Vis'}

    def test_record_without_id(self):
        with pytest.raises(InputDataError):
            parse_instrument_records([{'hplcName': 'HPLC-01'}])

    def test_parse_csv_sheet(self, tmp_path):
        path = tmp_path / 'Instruments.csv'
        pd.DataFrame([
            {'Instrument ID': 'I1', 'Name': 'HPLC-A', 'Active': 'Yes', 'Detectors': 'UV, PDA'},
            {'Instrument ID': 'I2', 'Name': '', 'Active': 'no', 'Detectors': 'RI'},
            {'Instrument ID': '', 'Name': 'orphan', 'Active': 'yes', 'Detectors': 'UV'},
        ]).to_csv(path, index=False)

        instruments = parse_instrument_sheet(str(path))
        assert [i.instrument_id for i in instruments] == ['I1', 'I2']
        assert instruments[0].detector_ids == ['UV', 'PDA']
        assert instruments[1].name == 'HPLC-I2'
        assert instruments[1].is_active is False

    def test_parse_xlsx_sheet(self, tmp_path):
        path = tmp_path / 'Instruments.xlsx'
        pd.DataFrame([{'Instrument ID': 'I1', 'Name': 'HPLC-A', 'Detectors': 'UV'}]).to_excel(path, index=False)
        instruments, names = parse_instruments(str(path))
        assert instruments[0].name == 'HPLC-A'
        assert instruments[0].is_active is True
        assert names == {}

    def test_parse_json_file(self, tmp_path):
        path = tmp_path / 'Instruments.json'
        path.write_text(json.dumps({'data': [
            {'_id': 'I1', 'hplcName': 'HPLC-A', 'detector': [{'_id': 'UV', 'detectorType': 'UV-Vis'}]},
        ]}), encoding='utf-8')
        instruments, names = parse_instruments(str(path))
        assert instruments[0].detector_ids == ['UV']
        assert names == {'UV': 'UV-Vis'}


class TestLookupParser:

    def test_csv(self, tmp_path):
        path = tmp_path / 'Columns.csv'
        pd.DataFrame([{'id': 'C18', 'name': 'C18 250x4.6mm'}, {'id': 'C8', 'name': None}]).to_csv(path, index=False)
        assert parse_lookup_table(str(path)) == {'C18': 'C18 250x4.6mm'}

    def test_json(self, tmp_path):
        path = tmp_path / 'Detectors.json'
        path.write_text(json.dumps([{'_id': 'UV', 'detectorType': 'UV-Vis'}]), encoding='utf-8')
        assert parse_lookup_table(str(path)) == {'UV': 'UV-Vis'}

    def test_unrecognized_columns(self, tmp_path):
        path = tmp_path / 'APIs.csv'
        pd.DataFrame([{'foo': 1, 'bar': 2}]).to_csv(path, index=False)
        with pytest.raises(ValueError):
            parse_lookup_table(str(path))
