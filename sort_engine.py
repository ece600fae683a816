import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from table import ColType
from type_sniffer import parse_numeric

logger = logging.getLogger(__name__)

PARALLEL_THRESHOLD = 50_000
DEFAULT_WORKERS = min(8, os.cpu_count() or 1)


class SortDirection(Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"

    @classmethod
    def parse(cls, text: str) -> "SortDirection":
        lowered = (text or "").strip().lower()
        if lowered in {"asc", "ascending", "a", "up"}:
            return cls.ASCENDING
        if lowered in {"desc", "descending", "d", "down"}:
            return cls.DESCENDING
        raise ValueError(f"Unknown sort direction '{text}'")

    def flipped(self) -> "SortDirection":
        if self is SortDirection.ASCENDING:
            return SortDirection.DESCENDING
        return SortDirection.ASCENDING


@dataclass(frozen=True)
class SortState:
    column: int
    direction: SortDirection = SortDirection.ASCENDING

    def toggled(self) -> "SortState":
        return SortState(self.column, self.direction.flipped())


def identity_order(row_count: int) -> np.ndarray:
    return np.arange(row_count, dtype=np.int64)


def partition_bounds(total: int, parts: int) -> List[Tuple[int, int]]:
    parts = max(1, min(parts, total)) if total else 1
    step, extra = divmod(total, parts)
    bounds = []
    start = 0
    for i in range(parts):
        stop = start + step + (1 if i < extra else 0)
        bounds.append((start, stop))
        start = stop
    return bounds


def sort_keys(values, col_type: ColType) -> np.ndarray:
    """Comparable keys for one column.

    Number columns compare as float64. Cells that are not decimal literals
    (empty cells included) take -inf so they sort before every number.
    Text columns compare by code point.
    """
    if col_type is ColType.NUMBER:
        keys = parse_numeric(values)
        keys[np.isnan(keys)] = -np.inf
        return keys
    return np.asarray(values, dtype=object)


def _keyed_run(values, col_type: ColType, offset: int):
    keys = sort_keys(values, col_type)
    local = np.argsort(keys, kind="stable")
    return keys[local], offset + local


def merge_sorted_runs(left, right):
    """Stable merge of two sorted ``(keys, indices)`` runs; ``left`` wins ties."""
    left_keys, left_idx = left
    right_keys, right_idx = right
    left_pos = np.arange(len(left_keys)) + np.searchsorted(right_keys, left_keys, side="left")
    right_pos = np.arange(len(right_keys)) + np.searchsorted(left_keys, right_keys, side="right")

    total = len(left_keys) + len(right_keys)
    keys = np.empty(total, dtype=left_keys.dtype)
    indices = np.empty(total, dtype=np.int64)
    keys[left_pos] = left_keys
    keys[right_pos] = right_keys
    indices[left_pos] = left_idx
    indices[right_pos] = right_idx
    return keys, indices


def stable_argsort(values, col_type: ColType, parallel_threshold=PARALLEL_THRESHOLD, workers=DEFAULT_WORKERS) -> np.ndarray:
    """Stable ascending argsort of ``values`` under the column comparator.

    Large inputs are split into contiguous partitions; each worker builds keys
    and a sorted run for its partition. Adjacent runs are then merged pairwise
    until one remains. Ties always resolve to the earlier partition, so the
    result matches the single-threaded one.
    """
    total = len(values)
    if total < parallel_threshold or workers <= 1:
        keys = sort_keys(values, col_type)
        return np.argsort(keys, kind="stable").astype(np.int64, copy=False)

    bounds = partition_bounds(total, workers)
    with ThreadPoolExecutor(max_workers=len(bounds)) as pool:
        runs = list(
            pool.map(lambda b: _keyed_run(values[b[0]:b[1]], col_type, b[0]), bounds)
        )
        while len(runs) > 1:
            pairs = [runs[i:i + 2] for i in range(0, len(runs), 2)]
            runs = list(
                pool.map(lambda p: merge_sorted_runs(*p) if len(p) == 2 else p[0], pairs)
            )
    logger.debug("Merged %d sorted runs over %d rows", len(bounds), total)
    return runs[0][1]


def compute_row_order(
    source,
    state: SortState,
    base_order: Optional[np.ndarray] = None,
    parallel_threshold: int = PARALLEL_THRESHOLD,
    workers: int = DEFAULT_WORKERS,
) -> np.ndarray:
    """Permutation of row indices sorted by ``state``.

    ``source`` is a Table or TableSnapshot. Ties keep their relative position
    in ``base_order`` (identity when omitted), for both directions.
    """
    column = source.check_column(state.column)
    row_count = source.row_count
    if base_order is None:
        base = identity_order(row_count)
    else:
        base = np.asarray(base_order, dtype=np.int64)
        if len(base) != row_count:
            raise ValueError(
                f"Base order has {len(base)} entries, table has {row_count} rows"
            )
    if row_count == 0:
        return base

    col_type = source.column_types[column]
    if state.direction is SortDirection.DESCENDING:
        base = base[::-1]
    values = source.column_values(column)[base]
    order = base[stable_argsort(values, col_type, parallel_threshold, workers)]
    if state.direction is SortDirection.DESCENDING:
        order = order[::-1]
    return np.ascontiguousarray(order)
