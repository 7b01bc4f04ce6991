"""Scraper module for fetching OPO publications and saving per-source documents.

Source runners:
- scrape_opodata: opodata.org base directory (must run before propublica)
- scrape_propublica: Form 990 financials via the Nonprofit Explorer API
- scrape_hrsa: HRSA OPO / transplant-center directory
- scrape_srtr: SRTR OPO-specific report final tables
- scrape_cms_qcor: CMS QCOR tier history and latest assessment

Documents are saved to data/raw/<source>.json.
"""

from opo_registry.scraper.downloader import (
    SourceUnavailableError,
    create_client,
    fetch_bytes,
    fetch_first_available,
    fetch_json,
)
from opo_registry.scraper.sources import (
    SOURCE_RUNNERS,
    discover_eins,
    scrape_cms_qcor,
    scrape_hrsa,
    scrape_opodata,
    scrape_propublica,
    scrape_srtr,
)

__all__ = [
    "SOURCE_RUNNERS",
    # Errors
    "SourceUnavailableError",
    # HTTP
    "create_client",
    "discover_eins",
    "fetch_bytes",
    "fetch_first_available",
    "fetch_json",
    # Runners
    "scrape_cms_qcor",
    "scrape_hrsa",
    "scrape_opodata",
    "scrape_propublica",
    "scrape_srtr",
]
