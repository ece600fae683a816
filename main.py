import argparse
import logging
import shlex
import sys
from importlib.metadata import PackageNotFoundError, version

import pandas as pd

from config_paths import load_config
from errors import CsvNavError, InvalidColumnError
from file_type_handler import FileTypeHandler
from filter_engine import Combinator, FilterCondition, FilterOperator, FilterSet
from session import Session, csv_config
from sort_engine import SortDirection

try:
    __version__ = version("csvnav")
except PackageNotFoundError:
    __version__ = "0.0.0"

logger = logging.getLogger("csvnav")


def resolve_column(token: str, headers) -> int:
    """Column by exact header name, then by zero-based index."""
    if token in headers:
        return headers.index(token)
    try:
        index = int(token)
    except ValueError:
        raise InvalidColumnError(token, len(headers)) from None
    if index < 0 or index >= len(headers):
        raise InvalidColumnError(index, len(headers))
    return index


def parse_sort_arg(text: str, headers):
    column, sep, direction = text.rpartition(":")
    if not sep:
        return resolve_column(text, headers), SortDirection.ASCENDING
    try:
        parsed = SortDirection.parse(direction)
    except ValueError:
        # a header that itself contains ':'
        return resolve_column(text, headers), SortDirection.ASCENDING
    return resolve_column(column, headers), parsed


def parse_filter_arg(text: str, headers) -> FilterCondition:
    parts = shlex.split(text)
    if len(parts) < 2:
        raise ValueError(f"Filter '{text}' must look like: COLUMN OPERATOR [VALUE]")
    column = resolve_column(parts[0], headers)
    operator = FilterOperator.parse(parts[1])
    value = " ".join(parts[2:])
    if operator.takes_value and not parts[2:]:
        raise ValueError(f"Filter '{text}' is missing a value")
    return FilterCondition(column, operator, value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="csvnav",
        description="csvnav - load, sort, filter and export delimited tables",
    )
    parser.add_argument("path", nargs="?", help="file to open (.csv, .tsv, .xlsx)")
    parser.add_argument("-v", "--version", action="store_true", help="print version")
    parser.add_argument("--sort", metavar="COL[:desc]", help="sort by a column")
    parser.add_argument(
        "--filter",
        action="append",
        default=[],
        metavar='"COL OP VALUE"',
        help="filter condition, repeatable (e.g. \"age > 26\")",
    )
    parser.add_argument("--any", action="store_true", help="combine filters with OR")
    parser.add_argument("--head", type=int, default=10, help="rows to print (default 10)")
    parser.add_argument("-o", "--output", help="export visible rows (.csv, .tsv, .json, .xlsx)")
    parser.add_argument("--debug", action="store_true", help="verbose logging")
    return parser


def print_summary(session: Session, head: int):
    table = session.table
    print(f"{table.row_count} rows, {table.column_count} columns, {session.visible_row_count} visible")
    for name, col_type in zip(session.headers(), table.column_types):
        print(f"  {name} ({col_type})")
    if head <= 0 or session.visible_row_count == 0:
        return
    rows = []
    for row in session.visible_rows():
        rows.append(row)
        if len(rows) >= head:
            break
    print(pd.DataFrame(rows, columns=session.headers(), dtype=object).to_string(index=False))


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return 0
    if not args.path:
        parser.print_usage(sys.stderr)
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    cfg = load_config()
    session = Session.from_config(cfg)
    try:
        session.install_table(FileTypeHandler(args.path, csv_config(cfg)).load())
        headers = session.headers()

        if args.sort:
            column, direction = parse_sort_arg(args.sort, headers)
            session.sort(column, direction)

        if args.filter:
            combinator = Combinator.OR if args.any else Combinator.AND
            conditions = [parse_filter_arg(f, headers) for f in args.filter]
            session.filter(FilterSet(conditions, combinator))

        if args.output:
            FileTypeHandler(args.output, csv_config(cfg)).save(session)
            print(f"Wrote {session.visible_row_count} rows to {args.output}")
        else:
            print_summary(session, args.head)
    except (CsvNavError, OSError, ValueError) as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        session.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
