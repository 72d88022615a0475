"""
Lookup Parser
Parses id -> display label tables (detectors, columns, APIs).
"""

from pathlib import Path
from typing import Dict

import pandas as pd


# Accepted header names for the id and label columns, first match wins
ID_COLUMNS = ['_id', 'id', 'ID', 'Id', 'Code', 'code']
LABEL_COLUMNS = ['name', 'Name', 'label', 'Label', 'detectorType', 'columnCode',
                 'apiName', 'Display', 'display']


def _pick(columns, candidates):
    for candidate in candidates:
        if candidate in columns:
            return candidate
    return None


def parse_lookup_table(filepath: str) -> Dict[str, str]:
    """
    Parse a two-column label table from xlsx, csv or json.

    Returns:
        Dictionary mapping id to label; rows missing either side are skipped
    """
    suffix = Path(filepath).suffix.lower()
    if suffix == '.csv':
        df = pd.read_csv(filepath, dtype=str)
    elif suffix == '.json':
        df = pd.read_json(filepath, dtype=False)
    else:
        df = pd.read_excel(filepath, dtype=str)

    id_col = _pick(df.columns, ID_COLUMNS)
    label_col = _pick(df.columns, LABEL_COLUMNS)
    if id_col is None or label_col is None:
        raise ValueError(f"{Path(filepath).name}: expected id and label columns, got {list(df.columns)}")

    table = {}
    for _, row in df.iterrows():
        key, label = row.get(id_col), row.get(label_col)
        if pd.isna(key) or pd.isna(label):
            continue
        table[str(key).strip()] = str(label).strip()
    return table
