#!/usr/bin/env python3
"""Build the normalized OPO registry: scrape sources, then merge.

Each requested source is fetched, extracted, and saved to
``data/raw/<source>.json``. A failing source is logged and skipped. The
normalization step always runs afterwards and merges whatever source
documents exist onto the opodata.org base directory.

Usage:
    python -m opo_registry.main                          # Default sources
    python -m opo_registry.main --source srtr --source cms_qcor
    python -m opo_registry.main --skip propublica
    python -m opo_registry.main --normalize-only --xlsx
"""

from __future__ import annotations

import argparse
import sys
import time
from typing import TYPE_CHECKING, Any

import httpx

from opo_registry.config import (
    get_config,
    get_default_sources,
    get_normalized_dir,
    get_source_config,
    get_user_agent,
    setup_logging,
)
from opo_registry.scraper.downloader import SourceUnavailableError, create_client
from opo_registry.scraper.sources import SOURCE_RUNNERS, discover_eins
from opo_registry.transformer.merge import ENRICHMENT_SOURCES, merge_sources
from opo_registry.writer.json_writer import load_source_document, save_normalized
from opo_registry.writer.workbook_writer import write_normalized_workbook

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

logger = setup_logging(__name__)

# Spellings accepted on the command line
SOURCE_ALIASES = {"cms-qcor": "cms_qcor", "cms": "cms_qcor"}


def canonical_source(name: str) -> str:
    """Map a command-line source name to its source key."""
    key = name.strip().lower()
    return SOURCE_ALIASES.get(key, key)


def select_sources(requested: Sequence[str], skipped: Sequence[str], defaults: Sequence[str]) -> list[str]:
    """Resolve the ordered list of sources to run.

    ``requested`` keeps its order and drops repeats; ``defaults`` are used
    when nothing is requested. Anything in ``skipped`` is removed.
    """
    chosen = [canonical_source(s) for s in requested] or list(defaults)
    skip = {canonical_source(s) for s in skipped}
    return [source for source in dict.fromkeys(chosen) if source not in skip]


def run_sources(
    sources: Sequence[str],
    client: httpx.Client,
    raw_dir: Path | None = None,
    config: dict[str, Any] | None = None,
) -> dict[str, bool]:
    """Run each source in order; return success per source.

    A failing source is logged and the next one still runs.
    """
    results: dict[str, bool] = {}
    for source in sources:
        runner = SOURCE_RUNNERS.get(source)
        if runner is None:
            logger.error("Unknown source: %s", source)
            results[source] = False
            continue

        logger.info("--- Running %s scraper ---", source)
        try:
            runner(client, raw_dir=raw_dir, config=config)
        except SourceUnavailableError as e:
            logger.error("%s unavailable: %s", source, e)
            results[source] = False
        except (httpx.HTTPError, FileNotFoundError, ValueError, KeyError) as e:
            logger.exception("%s scraper failed: %s", source, e)
            results[source] = False
        except Exception as e:
            logger.exception("Unexpected error in %s scraper: %s", source, e)
            results[source] = False
        else:
            logger.info("--- %s complete ---", source)
            results[source] = True

    return results


def normalize(
    raw_dir: Path | None = None,
    output_dir: Path | None = None,
    write_xlsx: bool = False,
) -> dict[str, Any]:
    """Merge the saved source documents into the normalized dataset.

    Raises
    ------
    FileNotFoundError
        If the base directory document is missing.
    """
    base = load_source_document("opodata", raw_dir)
    if base is None:
        msg = "No opodata.json found. Run the opodata source first."
        raise FileNotFoundError(msg)
    logger.info("Base: %d OPOs from opodata.org", len(base["opos"]))

    enrichments = {}
    for source in ENRICHMENT_SOURCES:
        document = load_source_document(source, raw_dir)
        enrichments[source] = document["opos"] if document else None
        if document is None:
            logger.info("No %s document, its fields stay null", source)

    document = merge_sources(base["opos"], enrichments)
    save_normalized(document, output_dir)

    if write_xlsx:
        write_normalized_workbook(document, get_normalized_dir(output_dir) / "opos.xlsx")

    return document


def print_coverage(document: dict[str, Any]) -> None:
    """Print the per-source coverage table."""
    metadata = document["metadata"]
    print(f"\nNormalized OPOs: {metadata['total_opos']}")
    for source, info in metadata["sources"].items():
        print(f"  {source:<12} {info['count']:>4}  {info['pct']:>5}")


def main(argv: Sequence[str] | None = None) -> int:
    """Parse CLI flags, run sources, and normalize.

    Returns
    -------
    int
        ``0`` when normalization succeeded; ``1`` otherwise.
    """
    parser = argparse.ArgumentParser(
        description="Scrape OPO publications and build the normalized registry.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m opo_registry.main                                  # opodata, propublica, hrsa
  python -m opo_registry.main --source srtr --source cms_qcor  # Stretch sources
  python -m opo_registry.main --skip propublica
  python -m opo_registry.main --normalize-only --xlsx
  python -m opo_registry.main --discover-eins                  # Review EIN matches
        """,
    )
    parser.add_argument(
        "--source",
        action="append",
        default=[],
        metavar="NAME",
        help="Source to run (repeatable): opodata, propublica, hrsa, srtr, cms_qcor",
    )
    parser.add_argument("--skip", action="append", default=[], metavar="NAME", help="Source to skip (repeatable)")
    parser.add_argument("--normalize-only", action="store_true", help="Skip scraping, merge existing documents")
    parser.add_argument("--xlsx", action="store_true", help="Also write data/normalized/opos.xlsx")
    parser.add_argument("--discover-eins", action="store_true", help="Search EINs for every base OPO and exit")
    parser.add_argument("--quiet", action="store_true", help="Don't print coverage report")

    args = parser.parse_args(argv)
    start = time.monotonic()
    logger.info("OPO registry starting")

    config = get_config()

    if args.discover_eins:
        timeout = get_source_config("propublica", config).get("timeout", 30)
        with create_client(get_user_agent(config), timeout=timeout) as client:
            try:
                discover_eins(client, config=config)
            except FileNotFoundError as e:
                logger.error("%s", e)
                return 1
        return 0

    if not args.normalize_only:
        sources = select_sources(args.source, args.skip, get_default_sources(config))
        logger.info("Sources: %s", ", ".join(sources))
        with create_client(get_user_agent(config)) as client:
            run_sources(sources, client, config=config)

    logger.info("--- Running normalization ---")
    try:
        document = normalize(write_xlsx=args.xlsx)
    except FileNotFoundError as e:
        logger.error("Normalization failed: %s", e)
        return 1
    logger.info("--- Normalization complete ---")

    if not args.quiet:
        print_coverage(document)

    logger.info("Done in %.1fs", time.monotonic() - start)
    return 0


if __name__ == "__main__":
    sys.exit(main())
