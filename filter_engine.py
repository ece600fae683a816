import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from errors import InvalidFilterValueError, UnsupportedOperatorError
from sort_engine import DEFAULT_WORKERS, PARALLEL_THRESHOLD, identity_order, partition_bounds
from table import ColType
from type_sniffer import is_numeric_literal, parse_numeric

logger = logging.getLogger(__name__)


class FilterOperator(Enum):
    EQUALS = "=="
    NOT_EQUALS = "!="
    CONTAINS = "contains"
    NOT_CONTAINS = "!contains"
    STARTS_WITH = "startswith"
    ENDS_WITH = "endswith"
    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_OR_EQUAL = ">="
    LESS_OR_EQUAL = "<="
    IS_EMPTY = "empty"
    IS_NOT_EMPTY = "!empty"

    @classmethod
    def parse(cls, text: str) -> "FilterOperator":
        key = (text or "").strip().lower()
        key = _ALIASES.get(key, key)
        for op in cls:
            if op.value == key or op.name.lower() == key:
                return op
        raise ValueError(f"Unknown filter operator '{text}'")

    @property
    def requires_number(self) -> bool:
        return self in _ORDERING

    @property
    def takes_value(self) -> bool:
        return self not in (FilterOperator.IS_EMPTY, FilterOperator.IS_NOT_EMPTY)

    def __str__(self):
        return self.value


_ALIASES = {
    "=": "==",
    "eq": "==",
    "ne": "!=",
    "<>": "!=",
    "gt": ">",
    "lt": "<",
    "ge": ">=",
    "le": "<=",
    "in": "contains",
    "is_empty": "empty",
    "not_empty": "!empty",
}

_ORDERING = {
    FilterOperator.GREATER_THAN,
    FilterOperator.LESS_THAN,
    FilterOperator.GREATER_OR_EQUAL,
    FilterOperator.LESS_OR_EQUAL,
}


class Combinator(Enum):
    AND = "and"
    OR = "or"


@dataclass(frozen=True)
class FilterCondition:
    column: int
    operator: FilterOperator
    value: str = ""


@dataclass(frozen=True)
class FilterSet:
    conditions: Tuple[FilterCondition, ...] = field(default_factory=tuple)
    combinator: Combinator = Combinator.AND

    def __post_init__(self):
        object.__setattr__(self, "conditions", tuple(self.conditions))

    def __bool__(self):
        return bool(self.conditions)

    def __len__(self):
        return len(self.conditions)

    @property
    def columns(self) -> set:
        return {c.column for c in self.conditions}

    def with_condition(self, condition: FilterCondition) -> "FilterSet":
        return FilterSet(self.conditions + (condition,), self.combinator)

    def with_combinator(self, combinator: Combinator) -> "FilterSet":
        return FilterSet(self.conditions, combinator)


def validate_filter_set(source, filter_set: FilterSet):
    for condition in filter_set.conditions:
        column = source.check_column(condition.column)
        col_type = source.column_types[column]
        op = condition.operator
        if not op.requires_number:
            continue
        if col_type is not ColType.NUMBER:
            raise UnsupportedOperatorError(op, column, col_type)
        if not is_numeric_literal(condition.value):
            raise InvalidFilterValueError(
                f"Operator '{op}' needs a numeric value, got {condition.value!r}"
            )


def condition_mask(values, col_type: ColType, condition: FilterCondition) -> np.ndarray:
    """Boolean mask of the cells in ``values`` satisfying ``condition``."""
    op = condition.operator
    cells = pd.Series(values, dtype=object)

    if op in (FilterOperator.IS_EMPTY, FilterOperator.IS_NOT_EMPTY):
        empty = (cells.str.strip() == "").to_numpy(dtype=bool)
        return empty if op is FilterOperator.IS_EMPTY else ~empty

    if op.requires_number or (
        col_type is ColType.NUMBER
        and op in (FilterOperator.EQUALS, FilterOperator.NOT_EQUALS)
    ):
        numbers = parse_numeric(values)
        if not is_numeric_literal(condition.value):
            # a non-numeric target never equals a numeric cell
            hit = np.zeros(len(numbers), dtype=bool)
            return ~hit if op is FilterOperator.NOT_EQUALS else hit
        target = float(condition.value.strip())
        if op is FilterOperator.EQUALS:
            return numbers == target
        if op is FilterOperator.NOT_EQUALS:
            return ~(numbers == target)
        if op is FilterOperator.GREATER_THAN:
            return numbers > target
        if op is FilterOperator.LESS_THAN:
            return numbers < target
        if op is FilterOperator.GREATER_OR_EQUAL:
            return numbers >= target
        return numbers <= target

    lowered = cells.str.lower()
    needle = (condition.value or "").lower()
    if op is FilterOperator.EQUALS:
        hit = lowered == needle
    elif op is FilterOperator.NOT_EQUALS:
        hit = lowered != needle
    elif op is FilterOperator.CONTAINS:
        hit = lowered.str.contains(needle, regex=False)
    elif op is FilterOperator.NOT_CONTAINS:
        hit = ~lowered.str.contains(needle, regex=False).astype(bool)
    elif op is FilterOperator.STARTS_WITH:
        hit = lowered.str.startswith(needle)
    else:
        hit = lowered.str.endswith(needle)
    return hit.to_numpy(dtype=bool)


def filter_mask(source, filter_set: FilterSet, start: int = 0, stop: Optional[int] = None) -> np.ndarray:
    """Combined mask for rows ``start:stop`` in original row order."""
    stop = source.row_count if stop is None else stop
    masks = []
    for condition in filter_set.conditions:
        column = source.check_column(condition.column)
        values = source.column_values(column)[start:stop]
        masks.append(condition_mask(values, source.column_types[column], condition))
    if filter_set.combinator is Combinator.AND:
        return np.logical_and.reduce(masks)
    return np.logical_or.reduce(masks)


def compute_filtered_indices(
    source,
    filter_set: Optional[FilterSet],
    row_order: Optional[np.ndarray] = None,
    parallel_threshold: int = PARALLEL_THRESHOLD,
    workers: int = DEFAULT_WORKERS,
) -> Optional[np.ndarray]:
    """Row indices satisfying ``filter_set``, in ``row_order`` order.

    Returns None for an empty filter set, meaning every row is visible.
    """
    if not filter_set:
        return None
    validate_filter_set(source, filter_set)

    row_count = source.row_count
    if row_count < parallel_threshold or workers <= 1:
        mask = filter_mask(source, filter_set)
    else:
        bounds = partition_bounds(row_count, workers)
        with ThreadPoolExecutor(max_workers=len(bounds)) as pool:
            parts = list(
                pool.map(lambda b: filter_mask(source, filter_set, b[0], b[1]), bounds)
            )
        mask = np.concatenate(parts)
        logger.debug("Evaluated filter over %d partitions", len(bounds))

    order = identity_order(row_count) if row_order is None else np.asarray(row_order, dtype=np.int64)
    return np.ascontiguousarray(order[mask[order]])
