"""JSON persistence for per-source and normalized documents.

Layout:
- data/raw/<source>.json: ``{metadata, opos}`` per scraped source
- data/normalized/opos.json: merged document
- data/normalized/metadata.json: the merged document's metadata alone

Year-keyed mappings (CMS tier history) are written with string keys, as JSON
requires.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from opo_registry.config import get_normalized_dir, get_raw_path, setup_logging, utc_timestamp

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

logger = setup_logging(__name__)


def write_json(data: Any, filepath: Path) -> Path:
    """Write ``data`` as indented UTF-8 JSON, creating parent directories."""
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with filepath.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
    return filepath


def save_source_document(
    source: str,
    opos: Sequence[Mapping[str, Any]],
    metadata: Mapping[str, Any] | None = None,
    raw_dir: Path | None = None,
) -> Path:
    """Save one source's records as ``<raw_dir>/<source>.json``.

    Parameters
    ----------
    source
        Source key (``"opodata"``, ``"hrsa"``...).
    opos
        Extracted records.
    metadata
        Source-specific metadata; ``fetched_at`` and ``total_opos`` are added.
    raw_dir
        Target directory; defaults to ``data/raw``.

    Returns
    -------
    Path
        Location of the written document.
    """
    document = {
        "metadata": {
            **(metadata or {}),
            "fetched_at": utc_timestamp(),
            "total_opos": len(opos),
        },
        "opos": list(opos),
    }
    filepath = write_json(document, get_raw_path(source, raw_dir))
    logger.info("Wrote %d OPOs to %s", len(opos), filepath)
    return filepath


def load_source_document(source: str, raw_dir: Path | None = None) -> dict[str, Any] | None:
    """Load ``<raw_dir>/<source>.json``; ``None`` when it was never scraped."""
    filepath = get_raw_path(source, raw_dir)
    if not filepath.exists():
        logger.debug("No document for %s at %s", source, filepath)
        return None

    with filepath.open(encoding="utf-8") as f:
        return json.load(f)  # type: ignore[no-any-return]


def save_normalized(document: Mapping[str, Any], output_dir: Path | None = None) -> Path:
    """Write the merged document as ``opos.json`` plus a standalone ``metadata.json``.

    Returns
    -------
    Path
        Location of ``opos.json``.
    """
    out_dir = get_normalized_dir(output_dir)
    opos_path = write_json(document, out_dir / "opos.json")
    write_json(document["metadata"], out_dir / "metadata.json")
    logger.info("Wrote %d normalized OPOs to %s", len(document["opos"]), opos_path)
    return opos_path
