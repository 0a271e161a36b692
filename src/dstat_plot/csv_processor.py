#!/usr/bin/env python3
"""
dstat CSV reader
Reads the two-tier header (category row + field row) of dstat CSV logs, resolves
column selectors against it and extracts zero-based time series with comprehensive
error handling.
"""

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Marker cell identifying the metadata block dstat writes before the header rows.
PREAMBLE_MARKER = "Host:"
# Number of metadata rows preceding the two header rows when the marker is present.
PREAMBLE_ROWS = 5
HEADER_ROWS = 2

# Positions inside the preamble rows (dstat 0.7.x layout).
_HOST_ROW = 2
_CMDLINE_ROW = 3
_HOST_COL = 1
_USER_COL = 6
_CMDLINE_COL = 1


class CSVProcessingError(Exception):
    """Base exception for CSV processing errors."""

    pass


class FileAccessError(CSVProcessingError):
    """Raised when file cannot be accessed or read."""

    pass


class MalformedCsvError(CSVProcessingError):
    """Raised when the data block cannot be turned into columns."""

    pass


class ColumnNotFoundError(CSVProcessingError):
    """
    Raised when a category/field selector does not match the header.

    Attributes:
        kind: "category" or "field"
        plural: plural of kind, used when listing the allowed values
        requested: the selector that was asked for
        allowed: the valid alternatives, in column order
        source: name of the file whose header was searched, if known
    """

    kind = "column"
    plural = "columns"

    def __init__(
        self, requested: str, allowed: Sequence[str], source: Optional[str] = None
    ) -> None:
        self.requested = requested
        self.allowed = list(allowed)
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(
            f"'{requested}' is not a valid parameter for '{self.kind}'{where}. "
            f"Allowed {self.plural}: {self.allowed}"
        )


class UnknownCategoryError(ColumnNotFoundError):
    kind = "category"
    plural = "categories"


class UnknownFieldError(ColumnNotFoundError):
    kind = "field"
    plural = "fields"


@dataclass(frozen=True)
class ColumnRef:
    """
    Column selector: either a (category, field) pair or a raw zero-based index.

    Use ColumnRef.by_name() / ColumnRef.by_index() rather than the constructor.
    """

    category: Optional[str] = None
    field: Optional[str] = None
    index: Optional[int] = None

    def __post_init__(self) -> None:
        named = self.category is not None or self.field is not None
        if named and self.index is not None:
            raise ValueError("ColumnRef takes either category/field or index, not both")
        if named and (self.category is None or self.field is None):
            raise ValueError("ColumnRef requires both category and field")
        if not named and self.index is None:
            raise ValueError("ColumnRef requires category/field or index")
        if self.index is not None and self.index < 0:
            raise ValueError(f"Column index must be non-negative, got: {self.index}")

    @classmethod
    def by_name(cls, category: str, field: str) -> "ColumnRef":
        return cls(category=category, field=field)

    @classmethod
    def by_index(cls, index: int) -> "ColumnRef":
        return cls(index=index)

    @property
    def is_index(self) -> bool:
        return self.index is not None

    def prefix(self) -> str:
        """Label used at the start of plot titles and in log messages."""
        if self.is_index:
            return f"dstat-column {self.index}"
        return f"{self.category}-{self.field}"

    def axis_label(self) -> str:
        if self.is_index:
            return f"column {self.index}"
        return f"{self.category}: {self.field}"


@dataclass(frozen=True)
class CsvSchema:
    """
    Two-level header of a dstat CSV: categories[i] applies to fields[i].

    Categories are only written on the first column of their group, the
    remaining slots of the group are empty strings.
    """

    categories: Tuple[str, ...]
    fields: Tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.categories) != len(self.fields):
            raise ValueError(
                f"Schema rows differ in length: {len(self.categories)} categories "
                f"vs {len(self.fields)} fields"
            )

    @classmethod
    def from_header_rows(
        cls, category_row: Sequence[str], field_row: Sequence[str]
    ) -> "CsvSchema":
        """Build a schema from raw header rows, padding the shorter row with ''."""
        width = max(len(category_row), len(field_row))
        categories = [c.strip() for c in category_row] + [""] * (width - len(category_row))
        fields = [f.strip() for f in field_row] + [""] * (width - len(field_row))
        return cls(categories=tuple(categories), fields=tuple(fields))

    def __len__(self) -> int:
        return len(self.fields)

    def distinct_categories(self) -> List[str]:
        """Non-empty categories in column order, duplicates removed."""
        return list(dict.fromkeys(c for c in self.categories if c))

    def non_empty_fields(self) -> List[str]:
        return [f for f in self.fields if f]

    def resolve(self, ref: ColumnRef) -> int:
        return resolve_column(self, ref)


def resolve_column(schema: CsvSchema, ref: ColumnRef) -> int:
    """
    Translate a ColumnRef to a zero-based column position.

    Explicit indices are returned unchanged. For a (category, field) pair the
    first column carrying the category is located, then the first column at or
    after it carrying the field. First match wins in both searches.

    Raises:
        UnknownCategoryError: category absent from the header
        UnknownFieldError: field absent at or after the category's column
    """
    if ref.is_index:
        return int(ref.index)

    try:
        category_index = schema.categories.index(ref.category)
    except ValueError:
        raise UnknownCategoryError(ref.category, schema.distinct_categories()) from None

    try:
        field_offset = schema.fields[category_index:].index(ref.field)
    except ValueError:
        raise UnknownFieldError(ref.field, schema.non_empty_fields()) from None

    column = category_index + field_offset
    logger.debug(f"'{ref.prefix()}' was translated to {column}.")
    return column


@dataclass(frozen=True)
class FileMetadata:
    """Host/user/date/command line captured from the dstat preamble, if any."""

    host: Optional[str] = None
    user: Optional[str] = None
    date: Optional[str] = None
    cmdline: Optional[str] = None

    @property
    def captured(self) -> bool:
        return any(v is not None for v in (self.host, self.user, self.date))


@dataclass(frozen=True, eq=False)
class RawSeries:
    """
    One file's time series.

    Attributes:
        timestamps: seconds since the first sample of the file
        values: sample values (NaN where a cell was not numeric)
        source_label: file basename, used as legend label
        metadata: preamble metadata of the source file
    """

    timestamps: np.ndarray
    values: np.ndarray
    source_label: str
    metadata: FileMetadata = field(default_factory=FileMetadata)

    def __post_init__(self) -> None:
        if len(self.timestamps) != len(self.values):
            raise ValueError(
                f"Series '{self.source_label}' has {len(self.timestamps)} timestamps "
                f"but {len(self.values)} values"
            )

    def __len__(self) -> int:
        return len(self.values)


def _cell(row: Sequence[str], idx: int) -> Optional[str]:
    if idx < len(row):
        value = row[idx].strip()
        return value or None
    return None


class DstatCsvReader:
    """
    Reader for a single dstat CSV log.

    The file is read once on first access. Rows in the preamble have varying
    widths, so lines are tokenized with the csv module and only the data block,
    once checked for consistent widths, is loaded into a pandas DataFrame.
    """

    def __init__(self, file_path: Union[str, Path]) -> None:
        """
        Initialize the reader with a file path.

        Raises:
            FileNotFoundError: If the specified file does not exist
            FileAccessError: If the path is not a regular file
        """
        self.file_path = Path(file_path)
        if not self.file_path.exists():
            raise FileNotFoundError(f"CSV file not found: {self.file_path}")
        if not self.file_path.is_file():
            raise FileAccessError(f"Path is not a file: {self.file_path}")
        if not self.file_path.suffix.lower() == ".csv":
            logger.warning(f"File does not have .csv extension: {self.file_path}")
        self._lines: Optional[List[str]] = None
        self._data: Optional[pd.DataFrame] = None

    @property
    def name(self) -> str:
        return self.file_path.name

    def _read_lines(self) -> List[str]:
        if self._lines is None:
            try:
                text = self.file_path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                raise FileAccessError(f"Error reading CSV file {self.file_path}: {e}")
            # Trailing blank lines are not rows
            self._lines = text.rstrip("\r\n").splitlines() if text.strip() else []
        return self._lines

    def _tokenize(self, lines: List[str]) -> List[List[str]]:
        return list(csv.reader(lines))

    def has_preamble(self) -> bool:
        """True if a 'Host:' cell appears in the metadata block."""
        rows = self._tokenize(self._read_lines()[:PREAMBLE_ROWS])
        return any(cell.strip() == PREAMBLE_MARKER for row in rows for cell in row)

    @property
    def header_start(self) -> int:
        return PREAMBLE_ROWS if self.has_preamble() else 0

    @property
    def data_start(self) -> int:
        return self.header_start + HEADER_ROWS

    def read_schema(self) -> CsvSchema:
        """
        Parse the category and field header rows.

        Raises:
            MalformedCsvError: If the file is too short to contain both header rows
        """
        lines = self._read_lines()
        start = self.header_start
        if len(lines) < start + HEADER_ROWS:
            raise MalformedCsvError(
                f"{self.name}: expected header rows at lines {start + 1}-{start + HEADER_ROWS}, "
                f"file has {len(lines)} line(s)"
            )
        category_row, field_row = self._tokenize(lines[start : start + HEADER_ROWS])
        return CsvSchema.from_header_rows(category_row, field_row)

    def read_metadata(self) -> FileMetadata:
        """Host/user/date/cmdline from the preamble; all None when there is none."""
        if not self.has_preamble():
            return FileMetadata()
        rows = self._tokenize(self._read_lines()[:PREAMBLE_ROWS])
        host_row = next(
            (r for r in rows if PREAMBLE_MARKER in (c.strip() for c in r)),
            rows[_HOST_ROW] if len(rows) > _HOST_ROW else [],
        )
        cmd_row = rows[_CMDLINE_ROW] if len(rows) > _CMDLINE_ROW else []
        non_empty = [c.strip() for c in cmd_row if c.strip()]
        return FileMetadata(
            host=_cell(host_row, _HOST_COL),
            user=_cell(host_row, _USER_COL),
            date=non_empty[-1] if non_empty else None,
            cmdline=_cell(cmd_row, _CMDLINE_COL),
        )

    def read_data(self) -> pd.DataFrame:
        """
        Parse the data block into a string-typed DataFrame with integer column labels.

        Raises:
            MalformedCsvError: If rows are ragged/blank or no data rows exist
        """
        if self._data is not None:
            return self._data

        lines = self._read_lines()[self.data_start :]
        if not lines:
            raise MalformedCsvError(f"{self.name}: no data rows after the header")

        rows = self._tokenize(lines)
        width = len(rows[0])
        for pos, row in enumerate(rows):
            if len(row) != width:
                line_no = self.data_start + pos + 1
                raise MalformedCsvError(
                    f"{self.name}: it appears that your csv file is malformed. "
                    f"Line {line_no} has {len(row)} field(s), expected {width}. "
                    "Check for incomplete lines, empty lines etc."
                )

        df = pd.DataFrame.from_records(rows, columns=range(width)).astype(str)
        self._data = df
        return df

    def extract(self, column_index: int) -> RawSeries:
        """
        Extract the (elapsed time, value) series for one column.

        Column 0 is the time basis; elapsed time is relative to the first row.

        Raises:
            MalformedCsvError: out-of-range column or non-numeric time column
        """
        df = self.read_data()
        ncols = df.shape[1]
        if column_index < 0 or column_index >= ncols:
            raise MalformedCsvError(
                f"{self.name}: column index {column_index} out of range for CSV with {ncols} columns"
            )

        time_raw = pd.to_numeric(df[0], errors="coerce")
        invalid = time_raw.isna()
        if invalid.any():
            pos = int(np.flatnonzero(invalid.to_numpy())[0])
            raise MalformedCsvError(
                f"{self.name}: time value {df[0].iloc[pos]!r} at line "
                f"{self.data_start + pos + 1} is not numeric"
            )

        time_values = time_raw.to_numpy(dtype=float)
        timestamps = time_values - time_values[0]
        values = pd.to_numeric(df[column_index], errors="coerce").to_numpy(dtype=float)

        nonnumeric = int(np.isnan(values).sum())
        if nonnumeric:
            logger.warning(
                f"{self.name}: {nonnumeric} non-numeric value(s) in column {column_index} treated as gaps"
            )

        return RawSeries(
            timestamps=timestamps,
            values=values,
            source_label=self.name,
            metadata=self.read_metadata(),
        )

    def get_file_info(self) -> Dict[str, Any]:
        """
        Get information about the CSV file.

        Raises:
            MalformedCsvError: If header or data rows cannot be parsed
        """
        schema = self.read_schema()
        df = self.read_data()
        return {
            "file_path": str(self.file_path),
            "file_size": self.file_path.stat().st_size,
            "has_preamble": self.has_preamble(),
            "total_rows": len(df),
            "column_count": df.shape[1],
            "categories": schema.distinct_categories(),
        }

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit: drop cached file contents."""
        self._lines = None
        self._data = None
