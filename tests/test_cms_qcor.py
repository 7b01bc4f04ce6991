"""Tests for the CMS QCOR extractor.

Tests cover:
1. Summary sheet: stitched header, family column blocks, latest tier
2. Latest-assessment sheet selection and fixed-offset fields
3. Combined extraction and missing-table tolerance
"""

from __future__ import annotations

import logging

import pytest

from opo_registry.extractor.cms_qcor import (
    extract_cms_qcor,
    latest_known_tier,
    parse_assessment_sheet,
    parse_summary_sheet,
)
from opo_registry.extractor.workbook import Workbook

YEARS = (2019, 2020, 2021, 2022, 2023)


class TestLatestKnownTier:
    """Tests for the right-to-left latest tier lookup."""

    def test_last_year_wins(self) -> None:
        """The most recent year is preferred."""
        assert latest_known_tier({2022: 1.0, 2023: 2.0}, YEARS) == (2.0, 2023)

    def test_falls_back_one_year(self) -> None:
        """A blank last year falls back to the previous one."""
        assert latest_known_tier({2022: 3.0, 2023: None}, YEARS) == (3.0, 2022)

    def test_never_scans_older_years(self) -> None:
        """Only the last two years are consulted."""
        assert latest_known_tier({2019: 1.0, 2021: 2.0, 2022: None, 2023: None}, YEARS) == (None, None)


class TestSummarySheet:
    """Tests for the multi-year summary table."""

    def test_rows_from_stitched_header(self, cms_workbook: Workbook) -> None:
        """Data rows start after the year row; non-code rows are skipped."""
        opos = parse_summary_sheet(cms_workbook, YEARS)
        assert [opo["dsa_code"] for opo in opos] == ["ALOB", "NYRT", "CADN"]

    def test_name_column(self, cms_workbook: Workbook) -> None:
        """The name comes from the organ procurement header column."""
        opos = parse_summary_sheet(cms_workbook, YEARS)
        assert opos[0]["name"] == "Legacy of Hope"

    def test_family_blocks_at_fixed_offsets(self, cms_workbook: Workbook) -> None:
        """Tier, donation, and transplant blocks follow the code column."""
        alob = parse_summary_sheet(cms_workbook, YEARS)[0]
        assert alob["tier_history"] == {2019: 1.0, 2020: 1.0, 2021: 2.0, 2022: 1.0, 2023: 1.0}
        assert alob["donation_rate_categories"] == dict.fromkeys(YEARS, "Tier 1")
        assert alob["transplant_rate_categories"][2023] == "Tier 2"
        assert alob["transplant_rate_categories"][2022] == "Tier 1"

    def test_latest_tier(self, cms_workbook: Workbook) -> None:
        """Latest tier uses the two-year lookback."""
        by_code = {opo["dsa_code"]: opo for opo in parse_summary_sheet(cms_workbook, YEARS)}
        assert (by_code["ALOB"]["latest_tier"], by_code["ALOB"]["latest_tier_year"]) == (1.0, 2023)
        assert (by_code["NYRT"]["latest_tier"], by_code["NYRT"]["latest_tier_year"]) == (2.0, 2022)
        assert by_code["CADN"]["latest_tier"] is None

    def test_missing_summary_sheet(self) -> None:
        """No summary sheet is an empty result, not an error."""
        assert parse_summary_sheet(Workbook.from_rows({"Other": [["x"]]}), YEARS) == []

    def test_missing_code_header(self) -> None:
        """A summary sheet without an OPO Code header yields nothing."""
        workbook = Workbook.from_rows({"Summary": [["Name", "Tier"], ["Legacy", 1]]})
        assert parse_summary_sheet(workbook, YEARS) == []


class TestAssessmentSheet:
    """Tests for the latest single-year assessment."""

    def test_known_good_row(self, cms_workbook: Workbook) -> None:
        """Fields are read at the offsets of the 2025 release."""
        alob = parse_assessment_sheet(cms_workbook)["ALOB"]
        assert alob == {
            "donation_rate": 12.34,
            "donation_rate_upper_ci": 14.2,
            "donation_rate_category": "Tier 1",
            "expected_transplant_rate": 1.02,
            "observed_transplant_rate": 1.25,
            "age_adjusted_transplant_rate": 1.19,
            "transplant_rate_upper_ci": 1.4,
            "transplant_rate_category": "Tier 1",
            "tier_2019": 1.0,
            "tier_2020": 1.0,
            "tier_2021": 2.0,
            "tier_2022": 1.0,
            "tier_2023": 1.0,
        }

    def test_uses_latest_sheet(self, cms_workbook: Workbook) -> None:
        """The 2024 sheet (donation rate 99) is ignored."""
        assert parse_assessment_sheet(cms_workbook)["ALOB"]["donation_rate"] == 12.34

    def test_candidate_sheets_logged(self, cms_workbook: Workbook, caplog: pytest.LogCaptureFixture) -> None:
        """Every assessment sheet is listed when the latest one is picked."""
        with caplog.at_level(logging.INFO, logger="opo_registry.extractor.cms_qcor"):
            parse_assessment_sheet(cms_workbook)
        assert "2025 Assessment (of 2024 Assessment, 2025 Assessment)" in caplog.text

    def test_sentinels_coerced(self, cms_workbook: Workbook) -> None:
        """``N/A`` and ``-`` become null."""
        nyrt = parse_assessment_sheet(cms_workbook)["NYRT"]
        assert nyrt["donation_rate"] is None
        assert nyrt["donation_rate_upper_ci"] is None
        assert nyrt["donation_rate_category"] == "Tier 3"

    def test_no_assessment_sheet(self) -> None:
        """A workbook without assessment sheets yields an empty mapping."""
        assert parse_assessment_sheet(Workbook.from_rows({"Summary": []})) == {}


class TestExtractCmsQcor:
    """Tests for the combined extraction."""

    def test_summary_records_carry_assessment(self, cms_workbook: Workbook) -> None:
        """Each summary record gets its assessment, or an empty mapping."""
        by_code = {opo["dsa_code"]: opo for opo in extract_cms_qcor(cms_workbook, YEARS)}
        assert by_code["ALOB"]["assessment"]["observed_transplant_rate"] == 1.25
        assert by_code["CADN"]["assessment"] == {}

    @pytest.mark.parametrize("sheets", [{}, {"Readme": [["nothing here"]]}])
    def test_empty_workbooks(self, sheets: dict) -> None:
        """Missing tables degrade to an empty result."""
        assert extract_cms_qcor(Workbook.from_rows(sheets), YEARS) == []
