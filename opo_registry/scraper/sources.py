"""Per-source runners: fetch, extract, and save one source document each.

Every runner takes the shared :class:`httpx.Client` and the raw-document
directory, and returns the saved document. A source whose publication cannot
be fetched raises :class:`SourceUnavailableError`; the CLI logs it and moves
on to the next source.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from opo_registry.config import (
    get_ein_map,
    get_provider_dsa_map,
    get_raw_path,
    get_source_config,
    setup_logging,
)
from opo_registry.extractor.cms_qcor import extract_cms_qcor
from opo_registry.extractor.hrsa import count_transplant_centers, extract_hrsa
from opo_registry.extractor.opodata import extract_opodata, find_opo_nodes, tier_breakdown
from opo_registry.extractor.propublica import extract_propublica, make_ein_search
from opo_registry.extractor.srtr import extract_srtr, period_label
from opo_registry.extractor.workbook import read_workbook
from opo_registry.scraper.downloader import SourceUnavailableError, fetch_first_available, fetch_json
from opo_registry.writer.json_writer import load_source_document, save_source_document, write_json

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

logger = setup_logging(__name__)


# =============================================================================
# opodata.org (base directory)
# =============================================================================


def find_opodata_nodes(client: httpx.Client, source_config: dict[str, Any]) -> tuple[str, list[dict[str, Any]]]:
    """Probe the static query documents of the index page for the OPO table.

    Returns
    -------
    tuple[str, list[dict[str, Any]]]
        Hash of the matching document and its OPO nodes.

    Raises
    ------
    SourceUnavailableError
        If the index is unreachable or no document holds OPO data.
    """
    timeout = source_config.get("timeout")
    index_url = source_config["index_page_data"]
    try:
        index = fetch_json(client, index_url, timeout=timeout)
    except (httpx.HTTPError, ValueError) as e:
        logger.error("Could not fetch opodata.org index: %s", e)
        raise SourceUnavailableError("opodata", [index_url]) from e

    hashes = index.get("staticQueryHashes") or []
    logger.info("Found %d static query hashes", len(hashes))

    attempted = [index_url]
    for query_hash in hashes:
        url = source_config["static_query_template"].format(hash=query_hash)
        attempted.append(url)
        try:
            payload = fetch_json(client, url, timeout=timeout)
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("Skipping hash %s: %s", query_hash, e)
            continue
        nodes = find_opo_nodes(payload)
        if nodes is not None:
            logger.info("Found OPO data in hash %s", query_hash)
            return query_hash, nodes

    raise SourceUnavailableError("opodata", attempted)


def scrape_opodata(
    client: httpx.Client,
    raw_dir: Path | None = None,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Scrape the base directory from opodata.org."""
    source_config = get_source_config("opodata", config)
    data_year = source_config.get("data_year", 2023)

    query_hash, nodes = find_opodata_nodes(client, source_config)
    logger.info("Raw OPOs: %d", len(nodes))

    opos = extract_opodata(nodes, cycle_year=data_year)
    tiers = tier_breakdown(opos)
    logger.info("Tier breakdown: T1=%d, T2=%d, T3=%d", tiers[1], tiers[2], tiers[3])

    metadata = {"source": source_config.get("name", "opodata.org"), "data_year": data_year, "query_hash": query_hash}
    save_source_document("opodata", opos, metadata, raw_dir)
    return {"metadata": metadata, "opos": opos}


# =============================================================================
# Workbook sources
# =============================================================================


def scrape_cms_qcor(
    client: httpx.Client,
    raw_dir: Path | None = None,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Scrape CMS QCOR tier history and latest assessment."""
    source_config = get_source_config("cms_qcor", config)
    url, workbook = fetch_first_available(
        client,
        source_config["urls"],
        "cms_qcor",
        source_config.get("timeout"),
        parse=read_workbook,
    )
    opos = extract_cms_qcor(workbook, tuple(source_config.get("years", (2019, 2020, 2021, 2022, 2023))))

    metadata = {"source": source_config.get("name", "CMS QCOR"), "url": url, "sheets_parsed": len(workbook)}
    save_source_document("cms_qcor", opos, metadata, raw_dir)
    return {"metadata": metadata, "opos": opos}


def scrape_srtr(
    client: httpx.Client,
    raw_dir: Path | None = None,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Scrape SRTR final tables, trying the most recent release first."""
    source_config = get_source_config("srtr", config)
    urls = {source_config["url_template"].format(period=code): code for code in source_config["period_codes"]}
    url, workbook = fetch_first_available(client, urls, "srtr", source_config.get("timeout"), parse=read_workbook)
    period = urls[url]
    logger.info("Using SRTR release %s (%s)", period, period_label(period))

    opos = extract_srtr(workbook)

    metadata = {
        "source": source_config.get("name", "SRTR"),
        "period_code": period,
        "period": period_label(period),
        "sheets_parsed": len(workbook),
    }
    save_source_document("srtr", opos, metadata, raw_dir)
    return {"metadata": metadata, "opos": opos}


def scrape_hrsa(
    client: httpx.Client,
    raw_dir: Path | None = None,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Scrape the HRSA OPO / transplant-center directory."""
    source_config = get_source_config("hrsa", config)
    url, workbook = fetch_first_available(
        client,
        source_config["urls"],
        "hrsa",
        source_config.get("timeout"),
        parse=read_workbook,
    )
    opos = extract_hrsa(workbook, get_provider_dsa_map())

    metadata = {
        "source": source_config.get("name", "HRSA"),
        "url": url,
        "total_transplant_centers": count_transplant_centers(opos),
    }
    save_source_document("hrsa", opos, metadata, raw_dir)
    return {"metadata": metadata, "opos": opos}


# =============================================================================
# ProPublica
# =============================================================================


def _require_base(raw_dir: Path | None) -> list[dict[str, Any]]:
    base = load_source_document("opodata", raw_dir)
    if base is None:
        msg = "No opodata.json found. Run the opodata source first."
        raise FileNotFoundError(msg)
    return base["opos"]


def _propublica_search(client: httpx.Client, source_config: dict[str, Any]) -> Callable[[str], Any]:
    def search(name: str) -> list[dict[str, Any]]:
        payload = fetch_json(
            client,
            source_config["search_url"],
            params={"q": name},
            timeout=source_config.get("timeout"),
        )
        return payload.get("organizations") or []

    return make_ein_search(search, delay=source_config.get("delay_seconds", 0.0))


def scrape_propublica(
    client: httpx.Client,
    raw_dir: Path | None = None,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Scrape Form 990 financials for every base OPO.

    Raises
    ------
    FileNotFoundError
        If the base directory has not been scraped yet.
    """
    source_config = get_source_config("propublica", config)
    base_opos = _require_base(raw_dir)
    timeout = source_config.get("timeout")

    def fetch(ein: Any) -> Any:
        return fetch_json(client, source_config["organization_template"].format(ein=ein), timeout=timeout)

    opos = extract_propublica(
        base_opos,
        get_ein_map(),
        fetch,
        search_ein=_propublica_search(client, source_config),
        delay=source_config.get("delay_seconds", 0.0),
    )

    metadata = {
        "source": source_config.get("name", "ProPublica"),
        "total_matched": len(opos),
        "total_searched": len(base_opos),
    }
    save_source_document("propublica", opos, metadata, raw_dir)
    return {"metadata": metadata, "opos": opos}


def discover_eins(
    client: httpx.Client,
    raw_dir: Path | None = None,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Search ProPublica for every base OPO and save the hits for review.

    The result is written to ``ein_discoveries.json`` next to the source
    documents; it is meant for curating ``config/ein_map.json`` by hand.
    """
    source_config = get_source_config("propublica", config)
    base_opos = _require_base(raw_dir)
    search_ein = _propublica_search(client, source_config)

    logger.info("Searching ProPublica for %d OPOs...", len(base_opos))
    results = {}
    for opo in base_opos:
        ein = search_ein(opo["name"]) if opo.get("name") else None
        results[opo["dsa_code"]] = ein
        logger.info("%s (%s): EIN=%s", opo["dsa_code"], opo.get("name"), ein or "NOT FOUND")

    filepath = write_json(results, get_raw_path("ein_discoveries", raw_dir))
    logger.info("EIN map written to %s", filepath)
    return results


SOURCE_RUNNERS: dict[str, Callable[..., dict[str, Any]]] = {
    "opodata": scrape_opodata,
    "propublica": scrape_propublica,
    "hrsa": scrape_hrsa,
    "srtr": scrape_srtr,
    "cms_qcor": scrape_cms_qcor,
}
