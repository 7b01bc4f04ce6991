"""Excel export of the normalized dataset.

Nested records are flattened with ``pandas.json_normalize`` into dotted
columns (``location.city``, ``metrics.discard_rates.kidney``...). List
fields are rendered as text: states joined with ``", "``, transplant
centers as ``"Name (CODE)"`` joined with ``"; "``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pandas as pd

from opo_registry.config import setup_logging

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

logger = setup_logging(__name__)

OPOS_SHEET = "OPOs"
COVERAGE_SHEET = "Coverage"


def _center_label(center: Mapping[str, Any]) -> str:
    name = center.get("name") or ""
    code = center.get("code")
    return f"{name} ({code})" if code else name


def flatten_opos(opos: Sequence[Mapping[str, Any]]) -> pd.DataFrame:
    """Flatten normalized records into one row per OPO."""
    rows = []
    for opo in opos:
        row = dict(opo)
        row["states_served"] = ", ".join(opo.get("states_served") or [])
        relationships = dict(opo.get("relationships") or {})
        centers = relationships.get("transplant_centers") or []
        relationships["transplant_centers"] = "; ".join(_center_label(c) for c in centers)
        row["relationships"] = relationships
        rows.append(row)

    if not rows:
        return pd.DataFrame()
    return pd.json_normalize(rows, sep=".")


def coverage_frame(metadata: Mapping[str, Any]) -> pd.DataFrame:
    """One row per source with its coverage count and percentage."""
    sources = metadata.get("sources") or {}
    return pd.DataFrame(
        [{"source": name, "count": info.get("count"), "pct": info.get("pct")} for name, info in sources.items()],
        columns=["source", "count", "pct"],
    )


def write_normalized_workbook(document: Mapping[str, Any], output_path: Path) -> Path:
    """Write the normalized document to an XLSX workbook.

    Parameters
    ----------
    document
        Merged ``{metadata, opos}`` document.
    output_path
        Target ``.xlsx`` path.

    Returns
    -------
    Path
        ``output_path``.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    opos_df = flatten_opos(document["opos"])

    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        opos_df.to_excel(writer, sheet_name=OPOS_SHEET, index=False)
        coverage_frame(document["metadata"]).to_excel(writer, sheet_name=COVERAGE_SHEET, index=False)

    logger.info("Workbook created: %s (%d rows)", output_path, len(opos_df))
    return output_path
