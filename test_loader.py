import io

import pytest

from errors import MalformedRowError
from loader import LoadConfig, load_path, load_table, table_from_records
from table import ColType


def test_load_with_headers_infers_types():
    table = load_table(b"name,age\nAlice,30\nBob,25\n")
    assert table.headers == ["name", "age"]
    assert table.row_count == 2
    assert table.column_types == [ColType.TEXT, ColType.NUMBER]
    assert table.row(0) == ["Alice", "30"]
    assert table.row(1) == ["Bob", "25"]


def test_quoted_fields_keep_delimiters_and_escaped_quotes():
    data = 'Name,Description\n"Smith, John","A person named ""John"""\n"Doe, Jane",Another\n'
    table = load_table(data)
    assert table.cell(0, 0) == "Smith, John"
    assert table.cell(0, 1) == 'A person named "John"'
    assert table.cell(1, 0) == "Doe, Jane"


def test_quoted_field_may_span_lines():
    table = load_table('id,note\n1,"line one\nline two"\n2,plain\n')
    assert table.row_count == 2
    assert table.cell(0, 1) == "line one\nline two"


def test_crlf_line_endings():
    table = load_table(b"Name,Age\r\nAlice,30\r\nBob,25\r\n")
    assert table.row_count == 2
    assert table.cell(1, 0) == "Bob"
    assert table.cell(1, 1) == "25"


def test_fields_are_trimmed_by_default():
    table = load_table("Name,  Age  \n  Alice  ,  30  \n")
    assert table.headers == ["Name", "Age"]
    assert table.row(0) == ["Alice", "30"]


def test_trim_can_be_disabled():
    table = load_table("a,b\n x , y\n", LoadConfig(trim=False))
    assert table.row(0) == [" x ", " y"]


def test_blank_lines_are_skipped():
    table = load_table("a,b\n\n1,2\n\n3,4\n")
    assert table.row_count == 2


@pytest.mark.parametrize(
    "data, has_header, row_number, expected, actual",
    [
        ("name,age\nAlice,30\nBob,25,Extra\n", "infer", 3, 2, 3),
        ("a,b,c\n1,2\n", True, 2, 3, 2),
        ("1,2\n3,4\n5\n", False, 3, 2, 1),
    ],
)
def test_width_mismatch_is_fatal(data, has_header, row_number, expected, actual):
    with pytest.raises(MalformedRowError) as info:
        load_table(data, LoadConfig(has_header=has_header))
    err = info.value
    assert (err.row_number, err.expected, err.actual) == (row_number, expected, actual)
    assert f"Row {row_number}" in str(err)


def test_explicit_no_header():
    table = load_table("Alice,30\nBob,25\n", LoadConfig(has_header=False))
    assert table.headers is None
    assert table.row_count == 2
    assert table.display_headers() == ["Column1", "Column2"]
    assert table.column_types == [ColType.TEXT, ColType.NUMBER]


def test_infer_with_blank_first_record_synthesizes_names():
    table = load_table(",\n1,2\n")
    assert table.headers is None
    assert table.display_headers() == ["Column1", "Column2"]
    assert table.row(0) == ["", ""]
    assert table.row(1) == ["1", "2"]


def test_explicit_header_flag():
    table = load_table(",\n1,2\n", LoadConfig(has_header=True))
    assert table.headers == ["", ""]
    assert table.row_count == 1


def test_empty_input():
    table = load_table(b"")
    assert table.row_count == 0
    assert table.column_count == 0
    assert table.headers is None


def test_headers_only():
    table = load_table("Name,Age,City")
    assert table.headers == ["Name", "Age", "City"]
    assert table.row_count == 0
    assert table.column_count == 3
    assert len(table.column_types) == 3


def test_custom_delimiter_and_quote():
    data = "name;note\n'Smith; John';'it''s'\n"
    table = load_table(data, LoadConfig(delimiter=";", quote="'"))
    assert table.row(0) == ["Smith; John", "it's"]


def test_bom_is_stripped_from_bytes():
    table = load_table(b"\xef\xbb\xbfname,age\nA,1\n")
    assert table.headers == ["name", "age"]


def test_binary_and_text_streams():
    from_bytes = load_table(io.BytesIO(b"a,b\n1,2\n"))
    from_text = load_table(io.StringIO("a,b\n1,2\n", newline=""))
    assert from_bytes == from_text


def test_load_path(tmp_path):
    path = tmp_path / "people.csv"
    path.write_bytes(b"name,age\nAlice,30\n")
    table = load_path(str(path))
    assert table.headers == ["name", "age"]
    assert table.cell(0, 1) == "30"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"delimiter": ",,"},
        {"delimiter": ""},
        {"quote": "ab"},
        {"delimiter": '"'},
        {"has_header": "maybe"},
    ],
)
def test_invalid_config(kwargs):
    with pytest.raises(ValueError):
        LoadConfig(**kwargs)


def test_table_from_records_matches_csv_path():
    from_csv = load_table("name,age\nAlice,30\nBob,25\n")
    from_sheet = table_from_records(["name", "age"], [["Alice", "30"], ["Bob", 25]])
    assert from_sheet == from_csv


def test_table_from_records_rejects_ragged_rows():
    with pytest.raises(MalformedRowError) as info:
        table_from_records(["a", "b"], [["1", "2"], ["3"]])
    assert info.value.row_number == 3


def test_table_from_records_blank_cells():
    table = table_from_records(None, [[None, "x"]])
    assert table.row(0) == ["", "x"]
