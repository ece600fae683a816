class CsvNavError(Exception):
    """Base class for every error raised by the table engine."""


class MalformedRowError(CsvNavError):
    def __init__(self, row_number: int, expected: int, actual: int):
        self.row_number = row_number
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Row {row_number}: expected {expected} fields, found {actual}"
        )


class InvalidColumnError(CsvNavError, IndexError):
    def __init__(self, column, column_count: int):
        self.column = column
        self.column_count = column_count
        super().__init__(
            f"Column index {column} out of bounds (table has {column_count} columns)"
        )


class InvalidRowError(CsvNavError, IndexError):
    def __init__(self, row, row_count: int):
        self.row = row
        self.row_count = row_count
        super().__init__(f"Row index {row} out of bounds (table has {row_count} rows)")


class UnsupportedOperatorError(CsvNavError):
    def __init__(self, operator, column: int, col_type):
        self.operator = operator
        self.column = column
        self.col_type = col_type
        super().__init__(
            f"Operator '{operator}' is not supported on {col_type} column {column}"
        )


class InvalidFilterValueError(CsvNavError, ValueError):
    pass


class StaleEditError(CsvNavError):
    def __init__(self, row: int, column: int, expected: str, actual: str):
        self.row = row
        self.column = column
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Cell ({row}, {column}) holds {actual!r}, edit expected {expected!r}"
        )


class NothingToUndoError(CsvNavError):
    def __init__(self):
        super().__init__("Nothing to undo")


class NothingToRedoError(CsvNavError):
    def __init__(self):
        super().__init__("Nothing to redo")


class StaleResultError(CsvNavError):
    def __init__(self, kind: str, seq: int, latest: int):
        self.kind = kind
        self.seq = seq
        self.latest = latest
        super().__init__(f"{kind} request #{seq} superseded by #{latest}")


class UnsupportedFileTypeError(CsvNavError):
    pass
