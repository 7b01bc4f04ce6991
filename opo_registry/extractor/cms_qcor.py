"""CMS QCOR OPO Performance Report extractor.

The report workbook carries two useful tables:

Summary sheet
    Multi-year tier history. Two stacked header rows: the first holds the
    identifier labels (``OPO Name``, ``OPO Code``) and the metric family
    titles, the second holds the year axis (2019..2023) repeated once per
    family::

        row 7: OPO Name | OPO Code | Tier | ... | Donation Rate ... | Transplant Rate ...
        row 9:          |          | 2019 | 2020 | ... | 2023 | 2019 | ... | 2023 | 2019 | ...

    Families sit in contiguous 5-column blocks to the right of the code
    column, in the fixed order tier, donation rate category, transplant
    rate category.

Assessment sheets
    One per assessment year (``2025 Assessment``...). Only the most recent
    is read. Its headers change wording between releases, so values are
    taken at fixed offsets from the identifier column rather than by header
    name. The offsets match the 2025 release.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from opo_registry.config import setup_logging
from opo_registry.extractor.locator import (
    ByFixedOffset,
    ByNamePattern,
    column_blocks,
    locate,
    locate_all,
    stitch_header,
)
from opo_registry.transformer.identity import is_dsa_code
from opo_registry.utils.parsing import coerce_number, coerce_text

if TYPE_CHECKING:
    from collections.abc import Sequence

    from opo_registry.extractor.workbook import Table, Workbook

logger = setup_logging(__name__)

__all__ = [
    "ASSESSMENT_COLUMNS",
    "YEARS",
    "extract_cms_qcor",
    "latest_known_tier",
    "parse_assessment_row",
    "parse_assessment_sheet",
    "parse_summary_sheet",
    "parse_summary_table",
]

YEARS = (2019, 2020, 2021, 2022, 2023)

SUMMARY_SHEET = ByNamePattern(r"summary")
ASSESSMENT_SHEET = ByNamePattern(r"\d{4}\s*assessment", pick="last")
# Identifier column of the assessment sheet: column 1 (column 0 holds the name)
ASSESSMENT_ID_COLUMN = ByFixedOffset(ASSESSMENT_SHEET, column_offset=1)

CODE_HEADER_PATTERN = r"opo.*code"
NAME_HEADER_PATTERN = r"organ.*procurement|opo"

SUMMARY_FAMILIES = ("tier_history", "donation_rate_categories", "transplant_rate_categories")

# How many of the most recent years latest_tier may fall back through
LATEST_TIER_LOOKBACK = 2

# (field, offset from identifier column, kind)
ASSESSMENT_COLUMNS: tuple[tuple[str, int, str], ...] = (
    ("donation_rate", 1, "number"),
    ("donation_rate_upper_ci", 2, "number"),
    ("donation_rate_category", 5, "text"),
    ("expected_transplant_rate", 6, "number"),
    ("observed_transplant_rate", 7, "number"),
    ("age_adjusted_transplant_rate", 8, "number"),
    ("transplant_rate_upper_ci", 9, "number"),
    ("transplant_rate_category", 12, "text"),
    ("tier_2019", 13, "number"),
    ("tier_2020", 14, "number"),
    ("tier_2021", 15, "number"),
    ("tier_2022", 16, "number"),
    ("tier_2023", 17, "number"),
)


def _row_code(table: Table, row: int, column: int) -> str | None:
    value = table.cell(row, column)
    return value.strip() if is_dsa_code(value) else None


def latest_known_tier(
    tier_history: dict[int, float | None],
    years: Sequence[int] = YEARS,
    lookback: int = LATEST_TIER_LOOKBACK,
) -> tuple[float | None, int | None]:
    """Return the most recent known tier and its year, scanning right to left.

    Only the last ``lookback`` years are consulted: an OPO whose last two
    cycles are blank has no current tier, whatever older cycles say.
    """
    for year in list(reversed(years))[:lookback]:
        tier = tier_history.get(year)
        if tier is not None:
            return tier, year
    return None, None


def _find_name_column(table: Table, header_row: int, code_column: int) -> int | None:
    regex = re.compile(NAME_HEADER_PATTERN, re.IGNORECASE)
    for column, header in enumerate(table.headers(header_row)):
        if column != code_column and header is not None and regex.search(header):
            return column
    return None


def parse_summary_table(table: Table, years: Sequence[int] = YEARS) -> list[dict[str, Any]]:
    """Extract per-OPO tier history and rate categories from a summary sheet.

    Parameters
    ----------
    table : Table
        The summary sheet.
    years : Sequence[int], optional
        Year axis; also the width of each family block.

    Returns
    -------
    list[dict[str, Any]]
        One record per data row with a valid DSA code, in sheet order.
    """
    layout = stitch_header(table, CODE_HEADER_PATTERN, years)
    if layout is None:
        logger.warning("No OPO Code header in sheet %r", table.name)
        return []
    if layout.year_row is None:
        logger.warning("No year header below row %d in sheet %r", layout.label_row, table.name)

    code_col = layout.id_column
    name_col = _find_name_column(table, layout.label_row, code_col)
    blocks = column_blocks(code_col, SUMMARY_FAMILIES, len(years))

    opos = []
    for row in range(layout.data_start, table.n_rows):
        code = _row_code(table, row, code_col)
        if code is None:
            continue

        tier_history = {year: coerce_number(table.cell(row, col)) for year, col in zip(years, blocks["tier_history"])}
        donation = {
            year: coerce_text(table.cell(row, col)) for year, col in zip(years, blocks["donation_rate_categories"])
        }
        transplant = {
            year: coerce_text(table.cell(row, col)) for year, col in zip(years, blocks["transplant_rate_categories"])
        }
        latest_tier, latest_year = latest_known_tier(tier_history, years)

        opos.append(
            {
                "dsa_code": code,
                "name": coerce_text(table.cell(row, name_col)) if name_col is not None else None,
                "tier_history": tier_history,
                "latest_tier": latest_tier,
                "latest_tier_year": latest_year,
                "donation_rate_categories": donation,
                "transplant_rate_categories": transplant,
            },
        )

    return opos


def parse_summary_sheet(workbook: Workbook, years: Sequence[int] = YEARS) -> list[dict[str, Any]]:
    """Locate the summary sheet and extract it; empty when there is none."""
    location = locate(workbook, SUMMARY_SHEET)
    if location is None:
        logger.warning("No Summary sheet found")
        return []
    return parse_summary_table(location.table, years)


def parse_assessment_row(table: Table, row: int, id_column: int) -> dict[str, Any]:
    """Read one assessment row at the fixed offsets of :data:`ASSESSMENT_COLUMNS`."""
    record: dict[str, Any] = {}
    for field_name, offset, kind in ASSESSMENT_COLUMNS:
        value = table.cell(row, id_column + offset)
        record[field_name] = coerce_number(value) if kind == "number" else coerce_text(value)
    return record


def parse_assessment_sheet(workbook: Workbook) -> dict[str, dict[str, Any]]:
    """Extract the most recent single-year assessment sheet.

    Returns
    -------
    dict[str, dict[str, Any]]
        Assessment record per DSA code; empty when no assessment sheet exists.
    """
    location = locate(workbook, ASSESSMENT_ID_COLUMN)
    if location is None:
        logger.warning("No assessment sheet found")
        return {}

    table = location.table
    candidates = [loc.sheet_name for loc in locate_all(workbook, ASSESSMENT_SHEET)]
    logger.info("Parsing latest assessment: %s (of %s)", table.name, ", ".join(candidates))

    assessments: dict[str, dict[str, Any]] = {}
    for row in range(table.n_rows):
        code = _row_code(table, row, location.column)
        if code is None:
            continue
        assessments[code] = parse_assessment_row(table, row, location.column)

    return assessments


def extract_cms_qcor(workbook: Workbook, years: Sequence[int] = YEARS) -> list[dict[str, Any]]:
    """Combine summary and latest-assessment records per OPO.

    Every summary record carries an ``assessment`` mapping, empty when the
    OPO is missing from the assessment sheet.
    """
    logger.info("Workbook sheets: %s", ", ".join(workbook.sheet_names))

    summary = parse_summary_sheet(workbook, years)
    logger.info("Summary: %d OPOs", len(summary))

    assessments = parse_assessment_sheet(workbook)
    logger.info("Assessment: %d OPOs", len(assessments))

    return [{**opo, "assessment": assessments.get(opo["dsa_code"], {})} for opo in summary]

