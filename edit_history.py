import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Tuple, Union

from errors import NothingToRedoError, NothingToUndoError, StaleEditError

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 100


@dataclass(frozen=True)
class SetCell:
    row: int
    column: int
    old_value: str
    new_value: str

    def inverse(self) -> "SetCell":
        return SetCell(self.row, self.column, self.new_value, self.old_value)


@dataclass(frozen=True)
class GroupedSet:
    """Several cell writes applied and reverted as one history entry."""

    cells: Tuple[SetCell, ...]

    def __post_init__(self):
        object.__setattr__(self, "cells", tuple(self.cells))

    def inverse(self) -> "GroupedSet":
        return GroupedSet(tuple(c.inverse() for c in reversed(self.cells)))


EditAction = Union[SetCell, GroupedSet]


def action_cells(action: EditAction) -> Tuple[SetCell, ...]:
    if isinstance(action, GroupedSet):
        return action.cells
    if isinstance(action, SetCell):
        return (action,)
    raise TypeError(f"Not an edit action: {action!r}")


def touched_columns(action: EditAction) -> set:
    return {c.column for c in action_cells(action)}


def _write(table, action: EditAction):
    """Check every cell against its expected value, then write them all.

    Cells are checked in order against the state the earlier writes of the
    same action would leave behind, so nothing is written unless all match.
    """
    cells = action_cells(action)
    pending = {}
    for c in cells:
        row, column = table.check_cell(c.row, c.column)
        current = pending.get((row, column), table.cell(row, column))
        if current != c.old_value:
            raise StaleEditError(row, column, c.old_value, current)
        pending[(row, column)] = c.new_value
    for c in cells:
        table._write_cell(c.row, c.column, c.new_value)


class EditHistory:
    """Undo/redo stacks of cell edits; the only writer of a loaded Table."""

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        self.max_depth = max_depth
        self.undo_stack: deque = deque(maxlen=max_depth)
        self.redo_stack: deque = deque(maxlen=max_depth)

    # ---------- state ----------
    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    @property
    def undo_depth(self) -> int:
        return len(self.undo_stack)

    @property
    def redo_depth(self) -> int:
        return len(self.redo_stack)

    def clear(self):
        self.undo_stack.clear()
        self.redo_stack.clear()

    # ---------- mutation ----------
    def apply(self, table, action: EditAction) -> EditAction:
        if not action_cells(action):
            raise ValueError("Cannot apply an edit with no cells")
        _write(table, action)
        if len(self.undo_stack) == self.max_depth:
            logger.debug("History full (%d); evicting oldest edit", self.max_depth)
        self.undo_stack.append(action)
        self.redo_stack.clear()
        return action

    def set_cell(self, table, row: int, column: int, value: str) -> EditAction:
        old = table.cell(row, column)
        return self.apply(table, SetCell(row, column, old, str(value)))

    def set_cells(self, table, changes: Iterable[Tuple[int, int, str]]) -> EditAction:
        """Write ``(row, column, value)`` triples as a single undoable step."""
        cells = []
        pending = {}
        for row, column, value in changes:
            old = pending.get((row, column))
            if old is None:
                old = table.cell(row, column)
            cells.append(SetCell(row, column, old, str(value)))
            pending[(row, column)] = str(value)
        if not cells:
            raise ValueError("set_cells needs at least one change")
        return self.apply(table, GroupedSet(tuple(cells)))

    def undo(self, table) -> EditAction:
        if not self.undo_stack:
            raise NothingToUndoError()
        action = self.undo_stack[-1]
        _write(table, action.inverse())
        self.undo_stack.pop()
        self.redo_stack.append(action)
        return action

    def redo(self, table) -> EditAction:
        if not self.redo_stack:
            raise NothingToRedoError()
        action = self.redo_stack[-1]
        _write(table, action)
        self.redo_stack.pop()
        self.undo_stack.append(action)
        return action
