"""SRTR OPO-Specific Report extractor.

The final-tables workbook holds one sheet per report table (``Table C1``,
``Table C2``, ``Figure C5``...). Sheets differ in where the OPO code column
sits, so every sheet is scanned. The header row is row 0; the code column is
the header cell mentioning ``code`` or, failing that, the first cell in rows
1-9 shaped like a DSA code.

Extraction is two-phase:

1. :func:`parse_utilization_data` builds ``code -> {sheet -> [row dicts]}``.
2. :func:`extract_metrics` looks up (sheet pattern, column name) pairs in
   that structure and derives rates.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from opo_registry.config import setup_logging
from opo_registry.extractor.locator import DSA_CODE_PATTERN, ByContentProbe, locate
from opo_registry.extractor.workbook import Workbook
from opo_registry.transformer.identity import is_dsa_code
from opo_registry.utils.parsing import coerce_number, coerce_text, round_half_up

if TYPE_CHECKING:
    from opo_registry.extractor.workbook import Table

logger = setup_logging(__name__)

SheetData = dict[str, list[dict[str, Any]]]

CODE_HEADER_PROBE = ByContentProbe(pattern=r"code", ignore_case=True, max_rows=1)
CODE_CELL_PROBE = ByContentProbe(pattern=DSA_CODE_PATTERN, full_match=True, first_row=1, max_rows=9)

ORGAN_ABBREVIATIONS = {"kidney": "KI", "liver": "LI", "heart": "HR", "lung": "LU"}

TABLE_C1 = re.compile(r"Table C1", re.IGNORECASE)
TABLE_C2 = re.compile(r"Table C2", re.IGNORECASE)
FIGURE_C5 = re.compile(r"Figure C5", re.IGNORECASE)


def find_code_column(table: Table) -> int | None:
    """Return the OPO code column of a sheet, or ``None`` if it has none."""
    single = Workbook(tables=[table])
    header_hit = locate(single, CODE_HEADER_PROBE)
    if header_hit is not None:
        logger.debug("Sheet %r has OPO code column at index %d", table.name, header_hit.column)
        return header_hit.column

    cell_hit = locate(single, CODE_CELL_PROBE)
    if cell_hit is not None:
        logger.info("Found OPO data in sheet %r at column %d", table.name, cell_hit.column)
        return cell_hit.column
    return None


def parse_sheet_rows(table: Table, code_column: int, opo_data: dict[str, SheetData]) -> None:
    """Append each coded row of ``table`` to ``opo_data`` as a header → value dict."""
    headers = table.headers(0)
    for row in range(1, table.n_rows):
        code = table.cell(row, code_column)
        if not is_dsa_code(code) or code != code.strip():
            continue

        entry = {
            header: table.cell(row, column)
            for column, header in enumerate(headers)
            if header is not None and column != code_column
        }
        opo_data.setdefault(code, {}).setdefault(table.name, []).append(entry)


def parse_utilization_data(workbook: Workbook) -> dict[str, SheetData]:
    """Collect every coded row of every sheet, keyed by DSA code then sheet name."""
    logger.info("Available sheets: %s", ", ".join(workbook.sheet_names))

    opo_data: dict[str, SheetData] = {}
    for table in workbook:
        if table.n_rows < 2:
            continue
        code_column = find_code_column(table)
        if code_column is None:
            continue
        parse_sheet_rows(table, code_column, opo_data)

    return opo_data


def get_value(sheets: SheetData, sheet_pattern: re.Pattern[str], column: str) -> Any:
    """Return the first value of ``column`` in sheets whose name matches.

    A row that has the column counts as a hit even when the value is blank.
    """
    for name, rows in sheets.items():
        if not sheet_pattern.search(name):
            continue
        for row in rows:
            if column in row:
                return row[column]
    return None


def discard_rate(not_transplanted: float | None, transplanted: float | None) -> float | None:
    """Share of organs recovered for transplant that were not transplanted.

    Parameters
    ----------
    not_transplanted : float | None
        Organs recovered for transplant but not transplanted.
    transplanted : float | None
        Organs recovered for transplant and transplanted.

    Returns
    -------
    float | None
        Percentage rounded to 2 decimals; ``None`` if either count is
        unknown; ``0.0`` when nothing was recovered.
    """
    if not_transplanted is None or transplanted is None:
        return None
    total = not_transplanted + transplanted
    if total == 0:
        return 0.0
    return round_half_up(not_transplanted / total * 100, 2)


def organ_discard_rate(sheets: SheetData, organ: str) -> float | None:
    """Discard rate of one organ from Table C1."""
    abbrev = ORGAN_ABBREVIATIONS.get(organ)
    if abbrev is None:
        return None
    not_transplanted = coerce_number(
        get_value(sheets, TABLE_C1, f"{abbrev}s recovered for transplant, not transplanted"),
    )
    transplanted = coerce_number(get_value(sheets, TABLE_C1, f"{abbrev}s recovered for transplant, transplanted"))
    return discard_rate(not_transplanted, transplanted)


def empty_metrics() -> dict[str, Any]:
    """Metrics skeleton with every field unknown."""
    return {
        "conversion_rate": None,
        "donation_rate": None,
        "transplantation_rate": None,
        "organs_transplanted_per_donor": None,
        "observed_expected_ratio": None,
        "observed_expected_by_organ": {"heart": None, "kidney": None, "liver": None, "lung": None},
        "total_donors": None,
        "total_referrals": None,
        "discard_rates": {"kidney": None, "liver": None, "heart": None, "lung": None},
    }


def extract_metrics(sheets: SheetData | None) -> dict[str, Any]:
    """Derive SRTR metrics for one OPO from its per-sheet rows."""
    metrics = empty_metrics()
    if not sheets:
        return metrics

    metrics["organs_transplanted_per_donor"] = coerce_number(
        get_value(sheets, FIGURE_C5, "All organs transplanted per donor"),
    )
    metrics["observed_expected_ratio"] = coerce_number(
        get_value(sheets, TABLE_C2, "Observed to expected ratio - aggregate"),
    )
    for organ in metrics["observed_expected_by_organ"]:
        metrics["observed_expected_by_organ"][organ] = coerce_number(
            get_value(sheets, TABLE_C2, f"Observed to expected ratio - {organ}"),
        )
    metrics["total_donors"] = coerce_number(get_value(sheets, TABLE_C2, "Number of donors"))

    for organ in metrics["discard_rates"]:
        metrics["discard_rates"][organ] = organ_discard_rate(sheets, organ)

    return metrics


def extract_srtr(workbook: Workbook) -> list[dict[str, Any]]:
    """Build one metrics record per OPO code found anywhere in the workbook."""
    opo_data = parse_utilization_data(workbook)
    logger.info("Found data for %d OPOs", len(opo_data))
    return [{"dsa_code": code, **extract_metrics(opo_data[code])} for code in sorted(opo_data)]


def period_label(period_code: str) -> str | None:
    """Render a ``YYMM`` release code as ``YYYY-MM``."""
    text = coerce_text(period_code)
    if text is None or not re.fullmatch(r"\d{4}", text):
        return None
    return f"20{text[:2]}-{text[2:]}"
