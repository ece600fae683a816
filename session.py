import logging
from typing import Iterable, Iterator, List, Optional, Tuple

import numpy as np

from edit_history import DEFAULT_MAX_DEPTH, EditAction, EditHistory, touched_columns
from errors import StaleResultError
from filter_engine import (
    Combinator,
    FilterCondition,
    FilterOperator,
    FilterSet,
    compute_filtered_indices,
)
from loader import LoadConfig, load_path, load_table
from sort_engine import (
    DEFAULT_WORKERS,
    PARALLEL_THRESHOLD,
    SortDirection,
    SortState,
    compute_row_order,
    identity_order,
)
from table import ColType, Table
from type_sniffer import sniff_column_types
from view_worker import PendingResult, ViewWorker

logger = logging.getLogger(__name__)


def csv_config(cfg: dict) -> LoadConfig:
    return LoadConfig(
        delimiter=cfg.get("DELIMITER", ","),
        quote=cfg.get("QUOTE", '"'),
        has_header=cfg.get("HAS_HEADER", "infer"),
        trim=cfg.get("TRIM", True),
        sample_size=cfg.get("SAMPLE_SIZE"),
    )


def _sort_job(snapshot, state, base, data_version, order_version, threshold, workers):
    order = compute_row_order(snapshot, state, base, threshold, workers)
    return state, base, order, data_version, order_version


def _filter_job(snapshot, filter_set, order, versions, threshold, workers):
    indices = compute_filtered_indices(snapshot, filter_set, order, threshold, workers)
    return filter_set, indices, versions


class Session:
    """Single owner of a Table, its edit history and its sort/filter views.

    Views are recomputed lazily: an edit that touches the sorted or filtered
    columns marks the view stale and the next read rebuilds it.
    """

    def __init__(
        self,
        table: Optional[Table] = None,
        max_history: int = DEFAULT_MAX_DEPTH,
        sample_size: Optional[int] = None,
        parallel_threshold: int = PARALLEL_THRESHOLD,
        workers: int = DEFAULT_WORKERS,
        worker: Optional[ViewWorker] = None,
    ):
        self.table = table if table is not None else Table()
        self.history = EditHistory(max_history)
        self.sample_size = sample_size
        self.parallel_threshold = parallel_threshold
        self.workers = workers
        self._worker = worker

        self.sort_state: SortState | None = None
        self.filter_set: FilterSet = FilterSet()
        self._sort_base: np.ndarray | None = None
        self._row_order: np.ndarray | None = None
        self._filtered: np.ndarray | None = None
        self._sort_stale = False
        self._filter_stale = False
        self._data_version = 0
        self._order_version = 0
        self._filter_version = 0

    @classmethod
    def from_config(cls, cfg: dict, table: Optional[Table] = None) -> "Session":
        return cls(
            table=table,
            max_history=cfg.get("MAX_HISTORY", DEFAULT_MAX_DEPTH),
            sample_size=cfg.get("SAMPLE_SIZE"),
            parallel_threshold=cfg.get("PARALLEL_THRESHOLD", PARALLEL_THRESHOLD),
            workers=cfg.get("WORKERS", DEFAULT_WORKERS),
        )

    @property
    def worker(self) -> ViewWorker:
        if self._worker is None:
            self._worker = ViewWorker()
        return self._worker

    def close(self):
        if self._worker is not None:
            self._worker.shutdown(wait=False)
            self._worker = None

    # ---------- loading ----------
    def _load_config(self, config: Optional[LoadConfig]) -> LoadConfig:
        if config is not None:
            return config
        return LoadConfig(sample_size=self.sample_size)

    def load(self, source, config: Optional[LoadConfig] = None) -> Table:
        table = load_table(source, self._load_config(config))
        self.install_table(table)
        return table

    def load_path(self, path, config: Optional[LoadConfig] = None) -> Table:
        table = load_path(path, self._load_config(config))
        self.install_table(table)
        return table

    def load_async(self, source, config: Optional[LoadConfig] = None) -> PendingResult:
        return self.worker.submit("load", load_table, source, self._load_config(config))

    def install_table(self, table: Table):
        """Replace the table; history and views start over."""
        self.table = table
        self.history.clear()
        self.sort_state = None
        self.filter_set = FilterSet()
        self._sort_base = None
        self._row_order = None
        self._filtered = None
        self._sort_stale = False
        self._filter_stale = False
        self._data_version += 1
        self._order_version += 1
        self._filter_version += 1

    def resniff(self, sample_size: Optional[int] = None) -> List[ColType]:
        """Re-run type inference on demand; it never runs after edits by itself."""
        size = self.sample_size if sample_size is None else sample_size
        types = sniff_column_types(self.table, size)
        if types != self.table.column_types:
            logger.info("Column types changed after re-sniff: %s", ", ".join(map(str, types)))
            self.table.column_types = types
            self._data_version += 1
            self._sort_stale = self.sort_state is not None
            self._filter_stale = bool(self.filter_set)
        return types

    # ---------- views ----------
    def _refresh(self):
        if self._sort_stale:
            self._sort_stale = False
            self._row_order = compute_row_order(
                self.table, self.sort_state, self._sort_base, self.parallel_threshold, self.workers
            )
            self._order_version += 1
            self._filter_stale = bool(self.filter_set)
        if self._filter_stale:
            self._filter_stale = False
            self._filtered = compute_filtered_indices(
                self.table, self.filter_set, self._row_order, self.parallel_threshold, self.workers
            )

    @property
    def row_order(self) -> Optional[np.ndarray]:
        """Active sort permutation, or None for file order."""
        self._refresh()
        return self._row_order

    @property
    def filtered_indices(self) -> Optional[np.ndarray]:
        """Visible row indices under the active filter, or None for all rows."""
        self._refresh()
        return self._filtered

    def visible_indices(self) -> np.ndarray:
        self._refresh()
        if self._filtered is not None:
            return self._filtered
        if self._row_order is not None:
            return self._row_order
        return identity_order(self.table.row_count)

    @property
    def visible_row_count(self) -> int:
        return len(self.visible_indices())

    def source_row(self, visible_index: int) -> int:
        indices = self.visible_indices()
        if visible_index < 0 or visible_index >= len(indices):
            raise IndexError(f"Visible row {visible_index} out of range ({len(indices)} visible)")
        return int(indices[visible_index])

    # ---------- sort ----------
    def _install_sort(self, state: SortState, base, order: np.ndarray):
        self.sort_state = state
        self._sort_base = base
        self._row_order = order
        self._sort_stale = False
        self._order_version += 1
        self._filter_stale = bool(self.filter_set)

    def sort(self, column: int, direction: SortDirection = SortDirection.ASCENDING) -> np.ndarray:
        """Sort by ``column``; ties keep the current order."""
        state = SortState(column, direction)
        base = self.row_order
        order = compute_row_order(self.table, state, base, self.parallel_threshold, self.workers)
        self._install_sort(state, base, order)
        logger.debug("Sorted by column %d %s", column, direction.value)
        return order

    def sort_async(self, column: int, direction: SortDirection = SortDirection.ASCENDING) -> PendingResult:
        state = SortState(column, direction)
        snapshot = self.table.snapshot([column])
        base = self.row_order
        return self.worker.submit(
            "sort",
            _sort_job,
            snapshot,
            state,
            None if base is None else base.copy(),
            self._data_version,
            self._order_version,
            self.parallel_threshold,
            self.workers,
        )

    def clear_sort(self):
        self.sort_state = None
        self._sort_base = None
        self._row_order = None
        self._sort_stale = False
        self._order_version += 1
        self._filter_stale = bool(self.filter_set)

    # ---------- filter ----------
    def filter(self, filter_set: FilterSet) -> Optional[np.ndarray]:
        """Apply ``filter_set``; an empty set clears the filter."""
        indices = compute_filtered_indices(
            self.table, filter_set, self.row_order, self.parallel_threshold, self.workers
        )
        self.filter_set = filter_set
        self._filtered = indices
        self._filter_stale = False
        self._filter_version += 1
        return indices

    def add_filter(
        self,
        column: int,
        operator: FilterOperator,
        value: str = "",
        combinator: Optional[Combinator] = None,
    ) -> Optional[np.ndarray]:
        current = self.filter_set
        if combinator is not None:
            current = current.with_combinator(combinator)
        return self.filter(current.with_condition(FilterCondition(column, operator, value)))

    def clear_filter(self):
        self.filter(FilterSet())

    def filter_async(self, filter_set: FilterSet) -> PendingResult:
        columns = [self.table.check_column(c.column) for c in filter_set.conditions]
        snapshot = self.table.snapshot(columns)
        order = self.row_order
        return self.worker.submit(
            "filter",
            _filter_job,
            snapshot,
            filter_set,
            None if order is None else order.copy(),
            (self._data_version, self._order_version, self._filter_version),
            self.parallel_threshold,
            self.workers,
        )

    # ---------- background results ----------
    def install(self, pending: PendingResult, timeout=None) -> bool:
        """Install a background result; False when it was superseded or outdated."""
        try:
            value = pending.result(timeout)
        except StaleResultError as exc:
            logger.debug("Discarding result: %s", exc)
            return False

        if pending.kind == "load":
            self.install_table(value)
            return True

        if pending.kind == "sort":
            state, base, order, data_version, order_version = value
            if order_version != self._order_version:
                logger.debug("Discarding sort #%d computed on an outdated order", pending.seq)
                return False
            self._install_sort(state, base, order)
            if data_version != self._data_version:
                # rows were edited meanwhile; rebuild from the same base on next read
                self._sort_stale = True
            return True

        if pending.kind == "filter":
            filter_set, indices, (data_version, order_version, filter_version) = value
            if filter_version != self._filter_version:
                # a direct filter or a new table replaced the requested one
                logger.debug("Discarding filter #%d issued before a newer filter", pending.seq)
                return False
            self.filter_set = filter_set
            self._filtered = indices
            self._filter_version += 1
            self._filter_stale = (
                data_version != self._data_version or order_version != self._order_version
            )
            return True

        raise ValueError(f"Unknown request kind '{pending.kind}'")

    # ---------- edits ----------
    def _after_edit(self, action: EditAction):
        self._data_version += 1
        columns = touched_columns(action)
        if self.sort_state is not None and self.sort_state.column in columns:
            self._sort_stale = True
        if self.filter_set.columns & columns:
            self._filter_stale = True

    def cell(self, row: int, column: int) -> str:
        return self.table.cell(row, column)

    def apply(self, action: EditAction) -> EditAction:
        self.history.apply(self.table, action)
        self._after_edit(action)
        return action

    def set_cell(self, row: int, column: int, value: str) -> EditAction:
        action = self.history.set_cell(self.table, row, column, value)
        self._after_edit(action)
        return action

    def set_cells(self, changes: Iterable[Tuple[int, int, str]]) -> EditAction:
        action = self.history.set_cells(self.table, changes)
        self._after_edit(action)
        return action

    def undo(self) -> EditAction:
        action = self.history.undo(self.table)
        self._after_edit(action)
        return action

    def redo(self) -> EditAction:
        action = self.history.redo(self.table)
        self._after_edit(action)
        return action

    # ---------- export ----------
    def headers(self) -> List[str]:
        return self.table.display_headers()

    def visible_rows(self) -> Iterator[List[str]]:
        """Lazily yield visible rows in view order."""
        return self.table.rows(self.visible_indices())
