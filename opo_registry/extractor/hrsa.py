"""HRSA OPO / transplant-center directory extractor.

The directory is a flat sheet with one row per (OPO, transplant center,
service type). Rows are grouped by OPO provider number (CMS style,
``##P###``) and mapped to DSA codes through the curated provider table.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from opo_registry.config import setup_logging
from opo_registry.utils.parsing import coerce_text

if TYPE_CHECKING:
    from collections.abc import Mapping

    from opo_registry.extractor.workbook import Workbook

logger = setup_logging(__name__)

PROVIDER_COLUMNS = ("OPO Provider #", "OPO Provider Number")
PHONE_COLUMNS = ("OPO Telephone #", "Telephone")
SERVICE_COLUMN = "Organ Transplantation Center Service Type Description"


def _first_text(row: Mapping[str, Any], columns: tuple[str, ...]) -> str | None:
    for column in columns:
        value = coerce_text(row.get(column))
        if value is not None:
            return value
    return None


def _zip_code(value: Any) -> str | None:
    """ZIP codes lose their leading zeros when stored as numbers."""
    text = coerce_text(value)
    if text is None:
        return None
    return text.zfill(5) if text.isdigit() and len(text) < 5 else text


def add_transplant_center(centers: list[dict[str, Any]], row: Mapping[str, Any]) -> None:
    """Add the center named in ``row``, merging services into an existing entry.

    Centers are keyed by OTC code; services keep first-seen order without
    duplicates. Rows without a center name are ignored.
    """
    name = coerce_text(row.get("OTC Name"))
    if name is None:
        return
    code = coerce_text(row.get("OTC Code"))
    service = coerce_text(row.get(SERVICE_COLUMN))

    for center in centers:
        if center["code"] == code:
            if service is not None and service not in center["services"]:
                center["services"].append(service)
            return

    centers.append(
        {
            "name": name,
            "code": code,
            "city": coerce_text(row.get("City")),
            "services": [service] if service is not None else [],
        },
    )


def group_by_provider(rows: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Group directory rows into one OPO entry per provider number.

    OPO-level fields come from the first row of each provider.
    """
    groups: dict[str, dict[str, Any]] = {}
    for row in rows:
        provider = _first_text(row, PROVIDER_COLUMNS)
        if provider is None:
            continue

        if provider not in groups:
            groups[provider] = {
                "provider_number": provider,
                "name": coerce_text(row.get("OPO Name")),
                "address": coerce_text(row.get("Address")),
                "city": coerce_text(row.get("City")),
                "state": coerce_text(row.get("State")),
                "zip": _zip_code(row.get("ZIP")),
                "phone": _first_text(row, PHONE_COLUMNS),
                "transplant_centers": [],
            }
        add_transplant_center(groups[provider]["transplant_centers"], row)

    return groups


def extract_hrsa(workbook: Workbook, provider_map: Mapping[str, str]) -> list[dict[str, Any]]:
    """Extract DSA-keyed OPO directory records from the first sheet.

    Parameters
    ----------
    workbook : Workbook
        Parsed directory workbook.
    provider_map : Mapping[str, str]
        Provider number → DSA code.

    Returns
    -------
    list[dict[str, Any]]
        One record per mapped provider, sorted by DSA code. Providers absent
        from ``provider_map`` are logged and dropped.
    """
    if len(workbook) == 0:
        logger.warning("HRSA workbook has no sheets")
        return []

    table = workbook.tables[0]
    rows = list(table.records(0))
    logger.info("Parsed %d rows from sheet %r", len(rows), table.name)

    groups = group_by_provider(rows)
    logger.info("Found %d unique OPOs", len(groups))

    opos = []
    unmapped = []
    for provider, entry in groups.items():
        dsa_code = provider_map.get(provider)
        if dsa_code is None:
            unmapped.append(f"{provider}: {entry['name']}")
            continue
        opos.append({"dsa_code": dsa_code, **entry})

    if unmapped:
        logger.warning("Unmapped provider numbers: %s", ", ".join(unmapped))

    opos.sort(key=lambda opo: opo["dsa_code"])
    return opos


def count_transplant_centers(opos: list[dict[str, Any]]) -> int:
    """Total transplant centers across directory records."""
    return sum(len(opo["transplant_centers"]) for opo in opos)
