"""Table locator: find the sheet, row, and column a data product lives in.

Publications move their tables around between releases. Sheet names gain a
year, header rows shift down, and columns are inserted. Instead of fixed
coordinates, each extractor describes what it is looking for with one of
three rule variants:

ByNamePattern
    Sheet whose name matches a regex (first match, or lexicographically last
    when names embed a year and the most recent is wanted).
ByContentProbe
    First string cell in a bounded window of leading rows that matches a
    regex: a header phrase, or the 4-letter uppercase identifier shape.
ByFixedOffset
    Another rule's location shifted by fixed row/column offsets.

:func:`locate` never raises. ``None`` means the table is not in this
workbook, and callers treat the enrichment as unavailable.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from opo_registry.config import setup_logging

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from opo_registry.extractor.workbook import Table, Workbook

logger = setup_logging(__name__)

__all__ = [
    "DSA_CODE_PATTERN",
    "ByContentProbe",
    "ByFixedOffset",
    "ByNamePattern",
    "HeaderLayout",
    "Location",
    "LocatorRule",
    "column_blocks",
    "locate",
    "locate_all",
    "stitch_header",
]

# Shape of a DSA code cell ("ALOB", "NYRT", ...)
DSA_CODE_PATTERN = r"[A-Z]{4}"

DEFAULT_PROBE_ROWS = 20


@dataclass(frozen=True)
class Location:
    """Coordinates of a located table anchor."""

    table: Table
    row: int
    column: int

    @property
    def sheet_name(self) -> str:
        """Name of the sheet the anchor sits in."""
        return self.table.name


@dataclass(frozen=True)
class ByNamePattern:
    """Select a sheet by a regex over its name (case-insensitive).

    Attributes
    ----------
    pattern : str
        Regular expression searched in each sheet name.
    pick : str
        ``"first"`` for the first match in workbook order, ``"last"`` for the
        lexicographically last matching name.
    """

    pattern: str
    pick: str = "first"


@dataclass(frozen=True)
class ByContentProbe:
    """Select the first cell matching a regex within a window of rows.

    Attributes
    ----------
    pattern : str
        Regular expression tested against string cells.
    ignore_case : bool
        Compile the pattern case-insensitively.
    full_match : bool
        Require the stripped cell to match entirely (identifier shapes)
        rather than contain a match (header phrases).
    first_row : int
        First row of the scan window.
    max_rows : int
        Height of the scan window; every column of each row is scanned.
    sheet_pattern : str | None
        Restrict the probe to sheets whose name matches this regex.
    """

    pattern: str
    ignore_case: bool = False
    full_match: bool = False
    first_row: int = 0
    max_rows: int = DEFAULT_PROBE_ROWS
    sheet_pattern: str | None = None


@dataclass(frozen=True)
class ByFixedOffset:
    """Shift another rule's location by fixed offsets."""

    anchor: ByNamePattern | ByContentProbe | ByFixedOffset
    row_offset: int = 0
    column_offset: int = 0


LocatorRule = ByNamePattern | ByContentProbe | ByFixedOffset


# =============================================================================
# Rule evaluation
# =============================================================================


def _matching_sheets(workbook: Workbook, pattern: str) -> list[Table]:
    regex = re.compile(pattern, re.IGNORECASE)
    return [table for table in workbook if regex.search(table.name)]


def _probe_table(table: Table, rule: ByContentProbe) -> Location | None:
    """Scan one table row-major, left to right, for the first matching cell."""
    regex = re.compile(rule.pattern, re.IGNORECASE if rule.ignore_case else 0)
    last_row = min(table.n_rows, rule.first_row + rule.max_rows)

    for row_idx in range(max(rule.first_row, 0), last_row):
        for col_idx, value in enumerate(table.row(row_idx)):
            if not isinstance(value, str):
                continue
            text = value.strip()
            matched = regex.fullmatch(text) if rule.full_match else regex.search(text)
            if matched:
                return Location(table=table, row=row_idx, column=col_idx)
    return None


def _candidate_tables(workbook: Workbook, rule: ByContentProbe) -> list[Table]:
    if rule.sheet_pattern is None:
        return list(workbook)
    return _matching_sheets(workbook, rule.sheet_pattern)


def _locate_by_name(workbook: Workbook, rule: ByNamePattern) -> Location | None:
    matches = _matching_sheets(workbook, rule.pattern)
    if not matches:
        return None
    if rule.pick == "last":
        table = max(matches, key=lambda t: t.name)
    else:
        table = matches[0]
    return Location(table=table, row=0, column=0)


def _shift(location: Location, rule: ByFixedOffset) -> Location:
    return Location(
        table=location.table,
        row=location.row + rule.row_offset,
        column=location.column + rule.column_offset,
    )


def locate(workbook: Workbook, rule: LocatorRule) -> Location | None:
    """Resolve a locator rule against a workbook.

    Parameters
    ----------
    workbook : Workbook
        Parsed workbook.
    rule : LocatorRule
        One of :class:`ByNamePattern`, :class:`ByContentProbe`,
        :class:`ByFixedOffset`.

    Returns
    -------
    Location | None
        Matched sheet/row/column, or ``None`` when nothing matches.
    """
    if isinstance(rule, ByNamePattern):
        return _locate_by_name(workbook, rule)

    if isinstance(rule, ByContentProbe):
        for table in _candidate_tables(workbook, rule):
            location = _probe_table(table, rule)
            if location is not None:
                return location
        return None

    if isinstance(rule, ByFixedOffset):
        anchor = locate(workbook, rule.anchor)
        return _shift(anchor, rule) if anchor is not None else None

    msg = f"Unsupported locator rule: {rule!r}"
    raise TypeError(msg)


def locate_all(workbook: Workbook, rule: LocatorRule) -> list[Location]:
    """Resolve a rule independently in every sheet, one location per hit.

    For :class:`ByNamePattern` every matching sheet is returned (in workbook
    order); for the other variants each sheet is probed separately.
    """
    if isinstance(rule, ByNamePattern):
        return [Location(table=t, row=0, column=0) for t in _matching_sheets(workbook, rule.pattern)]

    if isinstance(rule, ByContentProbe):
        hits = (_probe_table(table, rule) for table in _candidate_tables(workbook, rule))
        return [hit for hit in hits if hit is not None]

    if isinstance(rule, ByFixedOffset):
        return [_shift(anchor, rule) for anchor in locate_all(workbook, rule.anchor)]

    msg = f"Unsupported locator rule: {rule!r}"
    raise TypeError(msg)


# =============================================================================
# Multi-row header stitching
# =============================================================================


@dataclass(frozen=True)
class HeaderLayout:
    """Result of stitching an identifier header row to a year header row.

    Attributes
    ----------
    label_row : int
        Row holding the identifier-label header (e.g. ``"OPO Code"``).
    id_column : int
        Column of the identifier label.
    year_row : int | None
        Row holding the per-year axis, if one was found.
    data_start : int
        First data row: immediately after the later of the two header rows.
    """

    label_row: int
    id_column: int
    year_row: int | None
    data_start: int


def _is_year_literal(value: Any, years: Iterable[int]) -> bool:
    """Return True when a cell holds one of ``years`` as int, float, or string."""
    if isinstance(value, bool) or value is None:
        return False
    if isinstance(value, int):
        return value in years
    if isinstance(value, float):
        return value.is_integer() and int(value) in years
    if isinstance(value, str):
        text = value.strip()
        return text.isdigit() and int(text) in years
    return False


def stitch_header(
    table: Table,
    label_pattern: str,
    years: Sequence[int],
    max_rows: int = DEFAULT_PROBE_ROWS,
    year_window: int = 4,
) -> HeaderLayout | None:
    """Locate a two-row header: identifier labels above a year axis.

    Parameters
    ----------
    table : Table
        Sheet to inspect.
    label_pattern : str
        Case-insensitive regex for the identifier-label header cell.
    years : Sequence[int]
        Year literals that identify the year-axis row.
    max_rows : int, optional
        Rows scanned for the label header.
    year_window : int, optional
        Rows scanned below the label header for the year axis.

    Returns
    -------
    HeaderLayout | None
        Stitched layout, or ``None`` when the label header is missing.
    """
    probe = ByContentProbe(pattern=label_pattern, ignore_case=True, max_rows=max_rows)
    anchor = _probe_table(table, probe)
    if anchor is None:
        return None

    year_set = set(years)
    year_row: int | None = None
    for row_idx in range(anchor.row + 1, anchor.row + 1 + year_window):
        if any(_is_year_literal(value, year_set) for value in table.row(row_idx)):
            year_row = row_idx
            break

    data_start = (year_row if year_row is not None else anchor.row) + 1
    return HeaderLayout(label_row=anchor.row, id_column=anchor.column, year_row=year_row, data_start=data_start)


def column_blocks(id_column: int, families: Sequence[str], width: int) -> dict[str, list[int]]:
    """Compute contiguous per-family column blocks to the right of an identifier.

    Family ``i`` occupies ``width`` columns starting at
    ``id_column + 1 + i * width``.

    Examples
    --------
    >>> column_blocks(1, ["tier", "donation"], 5)
    {'tier': [2, 3, 4, 5, 6], 'donation': [7, 8, 9, 10, 11]}
    """
    blocks: dict[str, list[int]] = {}
    start = id_column + 1
    for family in families:
        blocks[family] = list(range(start, start + width))
        start += width
    return blocks
