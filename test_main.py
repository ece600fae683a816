import json

import pytest

import config_paths
from errors import InvalidColumnError
from filter_engine import FilterCondition, FilterOperator
from main import main, parse_filter_arg, parse_sort_arg, resolve_column
from sort_engine import SortDirection

HEADERS = ["name", "age", "a:b"]


@pytest.fixture(autouse=True)
def no_user_config(tmp_path, monkeypatch):
    monkeypatch.setattr(config_paths, "CONFIG_JSON", str(tmp_path / "absent.json"))


@pytest.fixture
def people_csv(tmp_path):
    path = tmp_path / "people.csv"
    path.write_bytes(b"name,age\nAlice,30\nBob,25\nCara,41\n")
    return path


@pytest.mark.parametrize(
    "token, expected",
    [("name", 0), ("age", 1), ("2", 2), ("a:b", 2)],
)
def test_resolve_column(token, expected):
    assert resolve_column(token, HEADERS) == expected


@pytest.mark.parametrize("token", ["missing", "3", "-1"])
def test_resolve_column_rejects_unknown(token):
    with pytest.raises(InvalidColumnError):
        resolve_column(token, HEADERS)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("age", (1, SortDirection.ASCENDING)),
        ("age:desc", (1, SortDirection.DESCENDING)),
        ("0:asc", (0, SortDirection.ASCENDING)),
        ("a:b", (2, SortDirection.ASCENDING)),
    ],
)
def test_parse_sort_arg(text, expected):
    assert parse_sort_arg(text, HEADERS) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("age > 26", FilterCondition(1, FilterOperator.GREATER_THAN, "26")),
        ("name contains 'van der'", FilterCondition(0, FilterOperator.CONTAINS, "van der")),
        ("name empty", FilterCondition(0, FilterOperator.IS_EMPTY, "")),
    ],
)
def test_parse_filter_arg(text, expected):
    assert parse_filter_arg(text, HEADERS) == expected


@pytest.mark.parametrize("text", ["age", "age >"])
def test_parse_filter_arg_rejects_incomplete(text):
    with pytest.raises(ValueError):
        parse_filter_arg(text, HEADERS)


def test_main_prints_summary(people_csv, capsys):
    assert main([str(people_csv), "--sort", "age:desc", "--head", "2"]) == 0
    out = capsys.readouterr().out
    assert "3 rows, 2 columns, 3 visible" in out
    assert "age (Number)" in out
    assert out.index("Cara") < out.index("Alice")
    assert "Bob" not in out


def test_main_exports_filtered_rows(people_csv, tmp_path, capsys):
    out_path = tmp_path / "out.json"
    code = main([str(people_csv), "--filter", "age > 26", "--filter", "name == bob", "--any", "-o", str(out_path)])
    assert code == 0
    assert "Wrote 3 rows" in capsys.readouterr().out
    assert [r["name"] for r in json.loads(out_path.read_text())] == ["Alice", "Bob", "Cara"]


def test_main_reports_malformed_file(tmp_path, capsys):
    bad = tmp_path / "bad.csv"
    bad.write_bytes(b"name,age\nAlice,30\nBob,25,Extra\n")
    assert main([str(bad)]) == 1
    assert "Row 3" in capsys.readouterr().err


def test_main_reports_unknown_column(people_csv, capsys):
    assert main([str(people_csv), "--sort", "height"]) == 1
    assert "Error:" in capsys.readouterr().err


def test_main_without_path_prints_usage(capsys):
    assert main([]) == 2
    assert "usage" in capsys.readouterr().err


def test_main_version(capsys):
    assert main(["-v"]) == 0
    assert capsys.readouterr().out.strip()
