"""Tests for the HRSA directory extractor."""

from __future__ import annotations

from opo_registry.extractor.hrsa import (
    add_transplant_center,
    count_transplant_centers,
    extract_hrsa,
    group_by_provider,
)
from opo_registry.extractor.workbook import Workbook


def _svc(service: str) -> dict[str, str]:
    return {"Organ Transplantation Center Service Type Description": service}


class TestTransplantCenters:
    """Tests for center grouping within one provider."""

    def test_services_merged_by_code(self) -> None:
        """Repeated center codes merge services without duplicates."""
        centers: list = []
        for service in ("Kidney", "Liver", "Kidney"):
            add_transplant_center(centers, {"OTC Name": "UAB", "OTC Code": "ALUA", "City": "B", **_svc(service)})
        assert centers == [{"name": "UAB", "code": "ALUA", "city": "B", "services": ["Kidney", "Liver"]}]

    def test_row_without_center_name(self) -> None:
        """OPO-only rows add no center."""
        centers: list = []
        add_transplant_center(centers, {"OTC Name": None, "OTC Code": "ALUA"})
        assert centers == []


class TestExtractHrsa:
    """Tests for DSA-keyed directory records."""

    def test_mapped_providers_sorted(self, hrsa_workbook: Workbook, provider_map: dict[str, str]) -> None:
        """Unmapped providers are dropped; output is sorted by code."""
        opos = extract_hrsa(hrsa_workbook, provider_map)
        assert [opo["dsa_code"] for opo in opos] == ["ALOB", "MAOB"]

    def test_opo_fields_from_first_row(self, hrsa_workbook: Workbook, provider_map: dict[str, str]) -> None:
        """Address, city, phone, and a five-digit ZIP."""
        alob = extract_hrsa(hrsa_workbook, provider_map)[0]
        assert alob["provider_number"] == "01P001"
        assert alob["address"] == "500 22nd St S"
        assert alob["city"] == "Birmingham"
        assert alob["phone"] == "205-555-0100"
        assert alob["zip"] == "35233"

    def test_leading_zero_zip_restored(self, hrsa_workbook: Workbook, provider_map: dict[str, str]) -> None:
        """Numeric ZIPs below five digits are zero-filled."""
        maob = extract_hrsa(hrsa_workbook, provider_map)[1]
        assert maob["zip"] == "02451"
        assert maob["transplant_centers"] == []

    def test_centers(self, hrsa_workbook: Workbook, provider_map: dict[str, str]) -> None:
        """Two centers for ALOB with merged services."""
        alob = extract_hrsa(hrsa_workbook, provider_map)[0]
        assert [(c["code"], c["services"]) for c in alob["transplant_centers"]] == [
            ("ALUA", ["Kidney", "Liver"]),
            ("ALCH", ["Heart"]),
        ]

    def test_count_transplant_centers(self, hrsa_workbook: Workbook, provider_map: dict[str, str]) -> None:
        """Centers are counted across OPOs."""
        assert count_transplant_centers(extract_hrsa(hrsa_workbook, provider_map)) == 2

    def test_empty_workbook(self) -> None:
        """No sheets, no records."""
        assert extract_hrsa(Workbook(tables=[]), {"01P001": "ALOB"}) == []


def test_group_by_provider_skips_rows_without_provider() -> None:
    """Rows need a provider number to be grouped."""
    rows = [{"OPO Provider #": None, "OPO Name": "x"}, {"OPO Provider Number": "05P001", "OPO Name": "y"}]
    assert list(group_by_provider(rows)) == ["05P001"]
