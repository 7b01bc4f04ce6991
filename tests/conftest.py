"""Pytest configuration for opo_registry tests.

This module provides:
- Synthetic workbooks laid out like the CMS, SRTR, and HRSA publications
- opodata.org nodes and base records
- A raw-document directory under ``tmp_path``
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
from dotenv import load_dotenv

from opo_registry.extractor.workbook import Workbook

if TYPE_CHECKING:
    from collections.abc import Callable

PROJECT_ROOT = Path(__file__).parent.parent
load_dotenv(PROJECT_ROOT / ".env")

YEARS = [2019, 2020, 2021, 2022, 2023]


# =============================================================================
# opodata.org
# =============================================================================


def make_opodata_node(abbreviation: str, name: str, tier: str = "1 - Tier 1", **extra: Any) -> dict[str, Any]:
    """Build one opodata.org node with plausible field values."""
    node = {
        "abbreviation": abbreviation,
        "name": name,
        "tier": tier,
        "states": "AL - Statewide",
        "nhw_donors": "100",
        "nhb_donors": "40",
        "h_donors": "",
        "a_donors": "5",
        "nhw_recovery": "0.5",
        "nhb_recovery": "0.3",
        "h_recovery": None,
        "a_recovery": "0.2",
        "nhw_death": "1000",
        "nhb_death": "400",
        "h_death": "20",
        "a_death": "10",
        "nhw_rank": "3",
        "nhb_rank": "8",
        "h_rank": "N/A",
        "a_rank": "12",
        "shadows": "85",
        "rank": "14",
        "ceo": "Jane Doe",
        "compensation": "450000",
        "board": "Yes",
        "investigation": "checked",
        "investigation_url": "https://oversight.house.gov/example",
        "investigation_senate": "",
        "investigation_senate_url": "",
    }
    node.update(extra)
    return node


@pytest.fixture
def node_factory() -> Callable[..., dict[str, Any]]:
    """Expose :func:`make_opodata_node` to tests."""
    return make_opodata_node


@pytest.fixture
def opodata_nodes() -> list[dict[str, Any]]:
    """Three nodes, deliberately out of code order, plus one without a code."""
    return [
        make_opodata_node("NYRT", "LiveOnNY", tier="3 - Tier 3", states="NY - Metro; NJ - North; NY - Long Island"),
        make_opodata_node("ALOB", "Legacy of Hope", tier="1 - Tier 1"),
        make_opodata_node("CADN", "Donor Network West", tier="2 - Tier 2", states="CA - Northern; NV"),
        make_opodata_node("", "Broken Row"),
    ]


@pytest.fixture
def base_opos(opodata_nodes: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Base directory records built from :func:`opodata_nodes`."""
    from opo_registry.extractor.opodata import extract_opodata

    return extract_opodata(opodata_nodes)


# =============================================================================
# CMS QCOR
# =============================================================================


def _summary_rows() -> list[list[Any]]:
    """Summary sheet: labels at row 7, years at row 9, data from row 10."""
    width = 2 + 3 * len(YEARS)
    rows: list[list[Any]] = [[None] * width for _ in range(10)]
    rows[0][0] = "OPO Performance Report"
    rows[7][0] = "Organ Procurement Organization"
    rows[7][1] = "OPO Code"
    rows[7][2] = "Tier"
    rows[7][7] = "Donation Rate Category"
    rows[7][12] = "Transplant Rate Category"
    rows[9][2:] = YEARS * 3

    rows.append(["Legacy of Hope", "ALOB", 1, 1, 2, 1, 1, *["Tier 1"] * 5, *["Tier 1"] * 4, "Tier 2"])
    rows.append(["LiveOnNY", "NYRT", 3, 3, 3, 2.0, None, *["Tier 3"] * 5, *["Tier 3"] * 5])
    rows.append(["Donor Network West", "CADN", 2, 2, 2, None, None, *[None] * 10])
    rows.append(["National Total", None, *[None] * 15])
    return rows


ASSESSMENT_HEADER = [
    "OPO Name",
    "OPO Code",
    "Donation Rate",
    "Upper CI",
    "Threshold 1",
    "Threshold 2",
    "Donation Category",
    "Expected Tx Rate",
    "Observed Tx Rate",
    "Age-Adjusted Tx Rate",
    "Upper CI",
    "Threshold 1",
    "Threshold 2",
    "Transplant Category",
    "Tier 2019",
    "Tier 2020",
    "Tier 2021",
    "Tier 2022",
    "Tier 2023",
]

# Known-good row of the 2025 release layout
ALOB_ASSESSMENT_ROW = [
    "Legacy of Hope",
    "ALOB",
    12.34,
    14.2,
    10.1,
    8.7,
    "Tier 1",
    1.02,
    1.25,
    1.19,
    1.4,
    0.9,
    0.8,
    "Tier 1",
    1,
    1,
    2,
    1,
    1,
]


@pytest.fixture
def cms_workbook() -> Workbook:
    """CMS QCOR workbook with a summary sheet and two assessment sheets."""
    older = [ASSESSMENT_HEADER, ["Legacy of Hope", "ALOB", 99.0, *[None] * 16]]
    latest = [
        ASSESSMENT_HEADER,
        ALOB_ASSESSMENT_ROW,
        ["LiveOnNY", "NYRT", "N/A", "-", None, None, "Tier 3", *[None] * 12],
    ]
    return Workbook.from_rows(
        {
            "Notes": [["About this report"]],
            "2024 Assessment": older,
            "Summary": _summary_rows(),
            "2025 Assessment": latest,
        },
    )


# =============================================================================
# SRTR
# =============================================================================


@pytest.fixture
def srtr_workbook() -> Workbook:
    """SRTR final tables: code column named in one sheet, implicit in another."""
    table_c1 = [
        [
            "OPO code",
            "KIs recovered for transplant, not transplanted",
            "KIs recovered for transplant, transplanted",
            "LIs recovered for transplant, not transplanted",
            "LIs recovered for transplant, transplanted",
            "HRs recovered for transplant, not transplanted",
            "HRs recovered for transplant, transplanted",
        ],
        ["ALOB", 1, 3, 0, 0, None, 10],
        ["NYRT", "25", "75", 5, 15, 2, 18],
    ]
    table_c2 = [
        [
            "Region",
            "OPO",
            "Number of donors",
            "Observed to expected ratio - aggregate",
            "Observed to expected ratio - kidney",
            "Observed to expected ratio - heart",
        ],
        ["Region 3", "ALOB", 150, 1.05, 0.98, 1.2],
        ["Region 9", "NYRT", 300, 0.91, 0.88, "-"],
    ]
    figure_c5 = [
        ["OPO Code", "All organs transplanted per donor"],
        ["ALOB", 3.1],
        ["ZZZZ", 2.0],
    ]
    return Workbook.from_rows(
        {
            "Contents": [["SRTR OPO-Specific Report"], ["Table C1: Utilization"]],
            "Table C1": table_c1,
            "Table C2": table_c2,
            "Figure C5": figure_c5,
        },
    )


# =============================================================================
# HRSA
# =============================================================================

HRSA_HEADER = [
    "OPO Provider #",
    "OPO Name",
    "Address",
    "City",
    "State",
    "ZIP",
    "OPO Telephone #",
    "OTC Name",
    "OTC Code",
    "Organ Transplantation Center Service Type Description",
]


@pytest.fixture
def hrsa_workbook() -> Workbook:
    """HRSA directory: two mapped providers and one unmapped provider."""
    rows = [
        HRSA_HEADER,
        ["01P001", "Legacy of Hope", "500 22nd St S", "Birmingham", "AL", 35233, "205-555-0100",
         "UAB Hospital", "ALUA", "Kidney"],
        ["01P001", "Legacy of Hope", "500 22nd St S", "Birmingham", "AL", 35233, "205-555-0100",
         "UAB Hospital", "ALUA", "Liver"],
        ["01P001", "Legacy of Hope", "500 22nd St S", "Birmingham", "AL", 35233, "205-555-0100",
         "UAB Hospital", "ALUA", "Kidney"],
        ["01P001", "Legacy of Hope", "500 22nd St S", "Birmingham", "AL", 35233, "205-555-0100",
         "Children's of Alabama", "ALCH", "Heart"],
        ["22P001", "New England Donor Services", "60 First Ave", "Waltham", "MA", 2451, "781-555-0100",
         None, None, None],
        ["07P001", "LifeChoice Donor Services", "2 Main St", "Windsor", "CT", 6095, "860-555-0100",
         "Hartford Hospital", "CTHH", "Kidney"],
        [None] * 10,
    ]
    return Workbook.from_rows({"ORG_OTC_FCT_DET": rows, "Notes": [["Generated by HRSA"]]})


@pytest.fixture
def provider_map() -> dict[str, str]:
    """Provider number → DSA code table covering two of three providers."""
    return {"01P001": "ALOB", "22P001": "MAOB"}


# =============================================================================
# Persistence
# =============================================================================


@pytest.fixture
def raw_dir(tmp_path: Path) -> Path:
    """Empty directory for per-source documents."""
    target = tmp_path / "raw"
    target.mkdir()
    return target
