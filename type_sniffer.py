import re
from typing import List, Optional

import numpy as np
import pandas as pd

from table import ColType

SAMPLE_SIZE = 10_000

# optional sign, digits with optional fraction (or a bare fraction), optional exponent
NUMERIC_PATTERN = r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?"
_NUMERIC_RE = re.compile(NUMERIC_PATTERN)


def is_numeric_literal(text) -> bool:
    if text is None:
        return False
    return _NUMERIC_RE.fullmatch(str(text).strip()) is not None


def numeric_mask(values) -> np.ndarray:
    stripped = pd.Series(values, dtype=object).str.strip()
    return stripped.str.fullmatch(NUMERIC_PATTERN).fillna(False).to_numpy(dtype=bool)


def parse_numeric(values) -> np.ndarray:
    """Parse cells to float64; anything that is not a decimal literal becomes NaN."""
    stripped = pd.Series(values, dtype=object).str.strip()
    mask = stripped.str.fullmatch(NUMERIC_PATTERN).fillna(False).to_numpy(dtype=bool)
    out = np.full(len(stripped), np.nan, dtype=np.float64)
    if mask.any():
        out[mask] = stripped[mask].astype(np.float64).to_numpy()
    return out


def sniff_column(values) -> ColType:
    stripped = pd.Series(values, dtype=object).str.strip()
    filled = stripped[stripped != ""]
    if filled.empty:
        return ColType.NUMBER
    if filled.str.fullmatch(NUMERIC_PATTERN).fillna(False).all():
        return ColType.NUMBER
    return ColType.TEXT


def sniff_column_types(table, sample_size: Optional[int] = None) -> List[ColType]:
    limit = SAMPLE_SIZE if sample_size is None else max(0, sample_size)
    rows = min(table.row_count, limit)
    return [
        sniff_column(table.column_values(col)[:rows])
        for col in range(table.column_count)
    ]
