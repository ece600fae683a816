import logging
import math
import os
from dataclasses import replace
from typing import Optional

import pandas as pd

from errors import UnsupportedFileTypeError
from loader import LoadConfig, load_path, table_from_records
from table import Table

logger = logging.getLogger(__name__)

UNSUPPORTED_MESSAGE = "Unsupported file type (use .csv, .tsv, .json, or .xlsx)"


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value)


class FileTypeHandler:
    DEFAULT_SHEET_NAME = "Sheet1"
    READABLE = {".csv", ".tsv", ".xlsx"}
    WRITABLE = {".csv", ".tsv", ".json", ".xlsx"}

    def __init__(self, path: str, config: Optional[LoadConfig] = None):
        self.path = path
        _, ext = os.path.splitext(path)
        self.ext = ext.lower()
        self.config = config or LoadConfig()
        if self.ext == ".tsv":
            self.config = replace(self.config, delimiter="\t")

        if self.ext not in self.WRITABLE:
            raise UnsupportedFileTypeError(UNSUPPORTED_MESSAGE)

    # ---------- import ----------
    def load(self) -> Table:
        if self.ext not in self.READABLE:
            raise UnsupportedFileTypeError(f"Cannot import {self.ext} files")
        if not os.path.exists(self.path):
            raise FileNotFoundError(self.path)
        if self.ext == ".xlsx":
            return self._load_excel()
        return load_path(self.path, self.config)

    def _load_excel(self) -> Table:
        self._ensure_excel_engine()
        frame = pd.read_excel(self.path, sheet_name=0, header=None, dtype=object)
        records = [[_cell_text(v) for v in row] for row in frame.itertuples(index=False, name=None)]
        if not records:
            return Table()

        first = records[0]
        if self.config.has_header == "infer":
            use_header = any(cell.strip() for cell in first)
        else:
            use_header = bool(self.config.has_header)
        headers = first if use_header else None
        body = records[1:] if use_header else records
        table = table_from_records(headers, body, sample_size=self.config.sample_size)
        logger.info("Imported first sheet of %s: %d rows", self.path, table.row_count)
        return table

    # ---------- export ----------
    def save(self, session) -> None:
        frame = pd.DataFrame(
            list(session.visible_rows()),
            columns=session.headers(),
            dtype=object,
        )
        has_headers = session.table.headers is not None
        if self.ext in {".csv", ".tsv"}:
            frame.to_csv(
                self.path,
                index=False,
                header=has_headers,
                sep=self.config.delimiter,
                quotechar=self.config.quote,
                lineterminator="\n",
            )
        elif self.ext == ".json":
            # keys are the header names, or Column<N> for headerless tables
            frame.to_json(self.path, orient="records", force_ascii=False, indent=2)
        elif self.ext == ".xlsx":
            self._ensure_excel_engine()
            with pd.ExcelWriter(self.path) as writer:
                frame.to_excel(
                    writer, index=False, header=has_headers, sheet_name=self.DEFAULT_SHEET_NAME
                )
        logger.info("Wrote %d rows to %s", len(frame), self.path)

    def _ensure_excel_engine(self):
        try:
            import openpyxl  # noqa: F401
        except ImportError as exc:
            raise UnsupportedFileTypeError(
                "XLSX support requires openpyxl. Install via: pip install openpyxl"
            ) from exc
