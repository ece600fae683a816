from enum import Enum
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from errors import InvalidColumnError, InvalidRowError


class ColType(Enum):
    TEXT = "Text"
    NUMBER = "Number"

    def __str__(self):
        return self.value


def synthesize_headers(count: int) -> List[str]:
    return [f"Column{i + 1}" for i in range(count)]


class Table:
    """Loaded rows plus per-column type tags.

    Cells are always ``str``. Rows live in an object-dtype DataFrame whose
    columns are labelled ``0..n-1``; header names are kept beside it so that
    headerless and duplicate-named files behave the same way.
    """

    def __init__(
        self,
        headers: Optional[Sequence[str]] = None,
        records: Optional[Iterable[Sequence[str]]] = None,
        column_count: Optional[int] = None,
    ):
        self.headers: list[str] | None = list(headers) if headers is not None else None
        rows = [list(r) for r in records] if records is not None else []

        if self.headers is not None:
            width = len(self.headers)
        elif rows:
            width = len(rows[0])
        else:
            width = column_count or 0

        if rows:
            self._frame = pd.DataFrame(rows, dtype=object)
        else:
            self._frame = pd.DataFrame(columns=range(width), dtype=object)
        self._frame.columns = range(width)
        self.column_types: list[ColType] = [ColType.TEXT] * width

    # ---------- shape ----------
    @property
    def row_count(self) -> int:
        return len(self._frame)

    @property
    def column_count(self) -> int:
        return self._frame.shape[1]

    def __len__(self):
        return self.row_count

    def display_headers(self) -> List[str]:
        if self.headers is not None:
            return list(self.headers)
        return synthesize_headers(self.column_count)

    # ---------- bounds ----------
    def check_column(self, column: int) -> int:
        if isinstance(column, bool) or not isinstance(column, (int, np.integer)):
            raise InvalidColumnError(column, self.column_count)
        if column < 0 or column >= self.column_count:
            raise InvalidColumnError(column, self.column_count)
        return int(column)

    def check_row(self, row: int) -> int:
        if isinstance(row, bool) or not isinstance(row, (int, np.integer)):
            raise InvalidRowError(row, self.row_count)
        if row < 0 or row >= self.row_count:
            raise InvalidRowError(row, self.row_count)
        return int(row)

    def check_cell(self, row: int, column: int):
        return self.check_row(row), self.check_column(column)

    # ---------- reads ----------
    def cell(self, row: int, column: int) -> str:
        row, column = self.check_cell(row, column)
        return self._frame.iat[row, column]

    def row(self, index: int) -> List[str]:
        index = self.check_row(index)
        return self._frame.iloc[index].tolist()

    def rows(self, indices=None):
        """Yield rows as lists, optionally in the order given by ``indices``."""
        columns = [self._frame[c].to_numpy(dtype=object) for c in self._frame.columns]
        if indices is None:
            indices = range(self.row_count)
        for idx in indices:
            yield [col[idx] for col in columns]

    def column_values(self, column: int) -> np.ndarray:
        column = self.check_column(column)
        return self._frame[column].to_numpy(dtype=object)

    def column_type(self, column: int) -> ColType:
        column = self.check_column(column)
        return self.column_types[column]

    def to_frame(self) -> pd.DataFrame:
        frame = self._frame.copy()
        frame.columns = self.display_headers()
        return frame

    def snapshot(self, columns: Optional[Iterable[int]] = None) -> "TableSnapshot":
        wanted = range(self.column_count) if columns is None else columns
        data = {}
        for column in wanted:
            column = self.check_column(column)
            data[column] = self.column_values(column).copy()
        return TableSnapshot(
            data, tuple(self.column_types), self.row_count, self.column_count
        )

    # ---------- writes (edit history only) ----------
    def _write_cell(self, row: int, column: int, value: str):
        self._frame.iat[row, column] = value

    def __eq__(self, other):
        if not isinstance(other, Table):
            return NotImplemented
        return (
            self.headers == other.headers
            and self.column_types == other.column_types
            and self.column_count == other.column_count
            and list(self.rows()) == list(other.rows())
        )

    def __repr__(self):
        return (
            f"Table(rows={self.row_count}, columns={self.column_count}, "
            f"headers={self.headers!r})"
        )


class TableSnapshot:
    """Read-only copy of selected columns handed to worker threads."""

    def __init__(self, data: dict, column_types: tuple, row_count: int, column_count: int):
        self._data = data
        self.column_types = column_types
        self.row_count = row_count
        self.column_count = column_count

    def check_column(self, column: int) -> int:
        if isinstance(column, bool) or not isinstance(column, (int, np.integer)):
            raise InvalidColumnError(column, self.column_count)
        if column < 0 or column >= self.column_count:
            raise InvalidColumnError(column, self.column_count)
        return int(column)

    def column_values(self, column: int) -> np.ndarray:
        column = self.check_column(column)
        if column not in self._data:
            raise KeyError(f"Column {column} was not captured in this snapshot")
        return self._data[column]

    def column_type(self, column: int) -> ColType:
        column = self.check_column(column)
        return self.column_types[column]
