import csv
import io
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

from errors import MalformedRowError
from table import Table
from type_sniffer import sniff_column_types

logger = logging.getLogger(__name__)

HeaderFlag = Union[bool, str]


@dataclass(frozen=True)
class LoadConfig:
    delimiter: str = ","
    quote: str = '"'
    has_header: HeaderFlag = "infer"  # True | False | "infer"
    encoding: str = "utf-8-sig"
    trim: bool = True
    sample_size: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.delimiter, str) or len(self.delimiter) != 1:
            raise ValueError(f"Delimiter must be a single character, got {self.delimiter!r}")
        if not isinstance(self.quote, str) or len(self.quote) != 1:
            raise ValueError(f"Quote must be a single character, got {self.quote!r}")
        if self.delimiter == self.quote:
            raise ValueError("Delimiter and quote character must differ")
        if self.has_header not in (True, False, "infer"):
            raise ValueError(
                f"has_header must be True, False or 'infer', got {self.has_header!r}"
            )


def _text_stream(source, encoding: str):
    if isinstance(source, bytes):
        return io.StringIO(source.decode(encoding), newline=""), False
    if isinstance(source, str):
        return io.StringIO(source, newline=""), False
    if isinstance(source, io.TextIOBase):
        return source, False
    return io.TextIOWrapper(source, encoding=encoding, newline=""), True


def _is_blank(record: Sequence[str]) -> bool:
    return all(not field.strip() for field in record)


def _records(stream, config: LoadConfig):
    reader = csv.reader(
        stream,
        delimiter=config.delimiter,
        quotechar=config.quote,
        doublequote=True,
        strict=False,
    )
    for record in reader:
        if not record:
            continue
        if config.trim:
            record = [field.strip() for field in record]
        yield record


def build_table(
    headers: Optional[Sequence[str]],
    records: Iterable[Sequence[str]],
    sample_size: Optional[int] = None,
    first_row_number: int = 1,
) -> Table:
    """Validate widths, build the Table and sniff its column types."""
    expected = len(headers) if headers is not None else None
    rows = []
    for offset, record in enumerate(records):
        record = list(record)
        if expected is None:
            expected = len(record)
        elif len(record) != expected:
            raise MalformedRowError(first_row_number + offset, expected, len(record))
        rows.append(record)

    table = Table(headers=headers, records=rows, column_count=expected)
    table.column_types = sniff_column_types(table, sample_size)
    logger.debug(
        "Built table with %d rows x %d columns (types: %s)",
        table.row_count,
        table.column_count,
        ", ".join(str(t) for t in table.column_types),
    )
    return table


def load_table(source, config: Optional[LoadConfig] = None) -> Table:
    """Parse delimited text from bytes, str, or a binary/text file object."""
    config = config or LoadConfig()
    stream, wrapped = _text_stream(source, config.encoding)
    try:
        records = _records(stream, config)
        first = next(records, None)
        if first is None:
            logger.debug("Loaded empty input")
            return Table()

        if config.has_header == "infer":
            use_header = not _is_blank(first)
        else:
            use_header = bool(config.has_header)

        if use_header:
            headers = first
            body = records
            first_row_number = 2
        else:
            headers = None
            body = _chain(first, records)
            first_row_number = 1

        return build_table(
            headers,
            body,
            sample_size=config.sample_size,
            first_row_number=first_row_number,
        )
    finally:
        if wrapped:
            stream.detach()


def load_path(path, config: Optional[LoadConfig] = None) -> Table:
    with open(path, "rb") as fh:
        table = load_table(fh, config)
    logger.info("Loaded %s: %d rows, %d columns", path, table.row_count, table.column_count)
    return table


def table_from_records(
    headers: Optional[Sequence[str]],
    records: Iterable[Sequence[str]],
    sample_size: Optional[int] = None,
) -> Table:
    """Build a Table from an already-parsed header row and record set."""
    headers = [str(h) for h in headers] if headers is not None else None
    cleaned = ([("" if cell is None else str(cell)) for cell in record] for record in records)
    return build_table(
        headers,
        cleaned,
        sample_size=sample_size,
        first_row_number=2 if headers is not None else 1,
    )


def _chain(first, rest):
    yield first
    yield from rest
