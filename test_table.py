import pytest

from errors import InvalidColumnError, InvalidRowError
from table import ColType, Table


def _table():
    return Table(["a", "b"], [["1", "x"], ["2", "y"], ["3", "z"]])


def test_shape_and_reads():
    table = _table()
    assert table.row_count == 3
    assert len(table) == 3
    assert table.column_count == 2
    assert table.cell(1, 1) == "y"
    assert table.row(2) == ["3", "z"]
    assert list(table.rows()) == [["1", "x"], ["2", "y"], ["3", "z"]]
    assert list(table.rows([2, 0])) == [["3", "z"], ["1", "x"]]
    assert table.column_values(0).tolist() == ["1", "2", "3"]


def test_default_column_types_are_text():
    assert _table().column_types == [ColType.TEXT, ColType.TEXT]


def test_headerless_display_names():
    table = Table(None, [["1", "2", "3"]])
    assert table.headers is None
    assert table.display_headers() == ["Column1", "Column2", "Column3"]


def test_empty_table_with_width():
    table = Table(["a", "b"])
    assert table.row_count == 0
    assert table.column_count == 2
    assert list(table.rows()) == []


@pytest.mark.parametrize("column", [-1, 2, "a", 1.0, True])
def test_check_column(column):
    with pytest.raises(InvalidColumnError):
        _table().check_column(column)


@pytest.mark.parametrize("row", [-1, 3])
def test_check_row(row):
    with pytest.raises(InvalidRowError):
        _table().cell(row, 0)


def test_snapshot_is_detached_from_later_writes():
    table = _table()
    snap = table.snapshot([0])
    table._write_cell(0, 0, "changed")
    assert snap.column_values(0).tolist() == ["1", "2", "3"]
    assert snap.row_count == 3
    with pytest.raises(KeyError):
        snap.column_values(1)
    with pytest.raises(InvalidColumnError):
        snap.column_values(7)


def test_to_frame_uses_display_headers():
    frame = Table(None, [["1", "2"]]).to_frame()
    assert list(frame.columns) == ["Column1", "Column2"]


def test_equality():
    assert _table() == _table()
    other = _table()
    other._write_cell(0, 0, "9")
    assert other != _table()
