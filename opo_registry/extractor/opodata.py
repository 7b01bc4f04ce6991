"""Base directory extractor for opodata.org.

opodata.org is a Gatsby site: the OPO table lives in one of the static
GraphQL query documents referenced by the index page-data. This module turns
that document into base OPO records, the source of truth for the universe of
DSA codes.
"""

from __future__ import annotations

import re
from typing import Any

from opo_registry.config import setup_logging
from opo_registry.transformer.identity import derive_opo_id, is_dsa_code
from opo_registry.utils.parsing import coerce_number, coerce_text

logger = setup_logging(__name__)

DEFAULT_CYCLE_YEAR = 2023

# Demographic group suffixes used by the source field names
GROUPS = {"nhw": "nhw", "nhb": "nhb", "hispanic": "h", "asian": "a"}


def find_opo_nodes(payload: Any) -> list[dict[str, Any]] | None:
    """Return ``data.opoData.nodes`` from a static query document, if present."""
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if not isinstance(data, dict):
        return None
    opo_data = data.get("opoData")
    if not isinstance(opo_data, dict):
        return None
    nodes = opo_data.get("nodes")
    return nodes if isinstance(nodes, list) else None


def parse_tier(tier_label: Any) -> int | None:
    """Read the tier from the leading digit of a label such as ``"2 - Tier 2"``."""
    text = coerce_text(tier_label)
    if text is None:
        return None
    match = re.match(r"(\d)", text)
    return int(match.group(1)) if match else None


def derive_at_risk(tier: int | None) -> bool | None:
    """Tiers 2 and 3 are at risk of decertification; unknown tier stays unknown."""
    return tier >= 2 if tier is not None else None


def parse_states(states_field: Any) -> tuple[list[str], list[str]]:
    """Split a ``"ST - Region; ST - Region"`` field into states and regions.

    Parameters
    ----------
    states_field
        Semicolon-delimited compound field. Segments without ``" - "`` are
        taken as a bare state.

    Returns
    -------
    tuple[list[str], list[str]]
        Deduplicated states in first-seen order, and one region label per
        segment (``"ST: Region"``) in segment order.
    """
    text = coerce_text(states_field)
    if text is None:
        return [], []

    states: list[str] = []
    regions: list[str] = []
    for part in text.split(";"):
        segment = part.strip()
        state, sep, region = segment.partition(" - ")
        if sep:
            state = state.strip()
            states.append(state)
            regions.append(f"{state}: {region.strip()}")
        else:
            states.append(segment)
            regions.append(segment)

    return list(dict.fromkeys(states)), regions


def _parse_board(value: Any) -> bool | None:
    if value == "Yes":
        return True
    if value == "No":
        return False
    return None


def _group_values(raw: dict[str, Any], template: str) -> dict[str, float | None]:
    return {name: coerce_number(raw.get(template.format(prefix))) for name, prefix in GROUPS.items()}


def _donors_recovered(raw: dict[str, Any]) -> float | None:
    donors = _group_values(raw, "{}_donors")
    if donors["nhw"] is None and donors["nhb"] is None:
        return None
    return sum(value or 0.0 for value in donors.values())


def transform_opo(raw: dict[str, Any], cycle_year: int = DEFAULT_CYCLE_YEAR) -> dict[str, Any]:
    """Turn one opodata.org node into a base OPO record."""
    dsa_code = str(raw["abbreviation"]).strip()
    states, regions = parse_states(raw.get("states"))
    tier = parse_tier(raw.get("tier"))

    return {
        "opo_id": derive_opo_id(dsa_code),
        "name": coerce_text(raw.get("name")),
        "dsa_code": dsa_code,
        "location": {
            "state": states[0] if states else None,
            "city": None,
            "region": "; ".join(regions) or None,
        },
        "cms_status": {
            "tier": tier,
            "cycle_year": cycle_year,
            "at_risk": derive_at_risk(tier),
        },
        "metrics": {
            "donation_rate": None,
            "transplantation_rate": None,
            "conversion_rate": None,
            "donors_recovered": _donors_recovered(raw),
            "recovery_rate": _group_values(raw, "{}_recovery"),
            "shadow_deaths": coerce_number(raw.get("shadows")),
            "rank": coerce_number(raw.get("rank")),
            "discard_rates": {"kidney": None, "liver": None, "heart": None, "lung": None},
        },
        "financials": {
            "revenue": None,
            "expenses": None,
            "oac_per_organ": None,
            "ceo_compensation": coerce_number(raw.get("compensation")),
        },
        "leadership": {
            "ceo": coerce_text(raw.get("ceo")),
            "board_independence_disclosed": _parse_board(raw.get("board")),
        },
        "demographics": {
            "eligible_deaths": _group_values(raw, "{}_death"),
            "demographic_rank": _group_values(raw, "{}_rank"),
        },
        "states_served": states,
        "investigations": {
            "house": raw.get("investigation") == "checked",
            "house_url": coerce_text(raw.get("investigation_url")),
            "senate": raw.get("investigation_senate") == "checked",
            "senate_url": coerce_text(raw.get("investigation_senate_url")),
        },
        "relationships": {"transplant_centers": []},
    }


def extract_opodata(nodes: list[dict[str, Any]], cycle_year: int = DEFAULT_CYCLE_YEAR) -> list[dict[str, Any]]:
    """Build base records from opodata.org nodes, sorted by DSA code.

    Nodes without a valid 4-letter abbreviation are skipped with a warning.
    """
    opos = []
    for raw in nodes:
        code = coerce_text(raw.get("abbreviation"))
        if not is_dsa_code(code):
            logger.warning("Skipping opodata node without a DSA code: %r", raw.get("name"))
            continue
        opos.append(transform_opo(raw, cycle_year=cycle_year))

    opos.sort(key=lambda opo: opo["dsa_code"])
    return opos


def tier_breakdown(opos: list[dict[str, Any]]) -> dict[int, int]:
    """Count base records per CMS tier."""
    tiers = {1: 0, 2: 0, 3: 0}
    for opo in opos:
        tier = opo["cms_status"]["tier"]
        if tier in tiers:
            tiers[tier] += 1
    return tiers
