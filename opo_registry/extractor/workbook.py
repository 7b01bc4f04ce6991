"""Spreadsheet model used by the table locator and extractors.

A workbook is read once into plain Python structures: an ordered list of
named :class:`Table` grids whose cells are ``None`` for blanks. Extractors
never touch pandas or openpyxl objects directly, which keeps them pure
functions of their input and easy to exercise with synthetic grids.
"""

from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from opo_registry.config import setup_logging
from opo_registry.utils.parsing import coerce_text, is_blank

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

logger = setup_logging(__name__)


class WorkbookFormatError(ValueError):
    """Content is not a readable XLSX workbook."""


@dataclass(frozen=True)
class Table:
    """One named 2-D cell grid (a worksheet).

    Attributes
    ----------
    name : str
        Sheet name as published.
    rows : list[list[Any]]
        Ordered rows of ordered cells; ``None`` marks a blank cell. Rows may
        have different lengths.
    """

    name: str
    rows: list[list[Any]] = field(default_factory=list)

    @property
    def n_rows(self) -> int:
        """Number of rows in the grid."""
        return len(self.rows)

    def row(self, index: int) -> list[Any]:
        """Return a row, or an empty list when ``index`` is out of range."""
        if 0 <= index < len(self.rows):
            return self.rows[index]
        return []

    def cell(self, row: int, column: int) -> Any:
        """Return one cell, or ``None`` when the coordinates are out of range."""
        cells = self.row(row)
        if 0 <= column < len(cells):
            return cells[column]
        return None

    def headers(self, header_row: int = 0) -> list[str | None]:
        """Return the stripped header labels of ``header_row``."""
        return [coerce_text(value) for value in self.row(header_row)]

    def records(self, header_row: int = 0) -> Iterator[dict[str, Any]]:
        """Yield each row below ``header_row`` as a header → value mapping.

        Columns without a header label are skipped and fully blank rows are
        not yielded.
        """
        headers = self.headers(header_row)
        for cells in self.rows[header_row + 1 :]:
            if all(is_blank(value) for value in cells):
                continue
            record: dict[str, Any] = {}
            for column, header in enumerate(headers):
                if header is None:
                    continue
                record[header] = cells[column] if column < len(cells) else None
            yield record


@dataclass(frozen=True)
class Workbook:
    """Ordered collection of named tables."""

    tables: list[Table] = field(default_factory=list)

    @property
    def sheet_names(self) -> list[str]:
        """Sheet names in workbook order."""
        return [table.name for table in self.tables]

    def __iter__(self) -> Iterator[Table]:
        return iter(self.tables)

    def __len__(self) -> int:
        return len(self.tables)

    @classmethod
    def from_rows(cls, sheets: Mapping[str, Sequence[Sequence[Any]]]) -> Workbook:
        """Build a workbook from ``{sheet_name: rows}`` (insertion order kept)."""
        return cls(tables=[Table(name=name, rows=[list(r) for r in rows]) for name, rows in sheets.items()])


def _frame_to_rows(frame: pd.DataFrame) -> list[list[Any]]:
    """Convert a header-less sheet DataFrame into rows with ``None`` blanks."""
    if frame.empty:
        return []
    cleaned = frame.astype(object).where(frame.notna(), None)
    return [list(row) for row in cleaned.itertuples(index=False, name=None)]


def read_workbook(data: bytes) -> Workbook:
    """Parse XLSX bytes into a :class:`Workbook`.

    Parameters
    ----------
    data : bytes
        Raw workbook content as downloaded.

    Returns
    -------
    Workbook
        Every sheet in workbook order, read without a header row so that the
        locator sees the published layout as-is.

    Raises
    ------
    WorkbookFormatError
        If ``data`` is not an XLSX archive (HTML error pages, truncated downloads).
    """
    try:
        frames = pd.read_excel(io.BytesIO(data), sheet_name=None, header=None, engine="openpyxl", dtype=object)
    except (zipfile.BadZipFile, InvalidFileException, KeyError, ValueError) as e:
        msg = f"Not an XLSX workbook ({len(data)} bytes): {e}"
        raise WorkbookFormatError(msg) from e
    tables = [Table(name=str(name), rows=_frame_to_rows(frame)) for name, frame in frames.items()]
    logger.debug("Read workbook with %d sheets: %s", len(tables), ", ".join(t.name for t in tables))
    return Workbook(tables=tables)
