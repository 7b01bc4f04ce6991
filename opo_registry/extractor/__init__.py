"""Extractors turning raw source bytes into DSA-keyed partial records.

Key exports:
    Table, Workbook, read_workbook: spreadsheet model
    ByNamePattern, ByContentProbe, ByFixedOffset, locate: table locator
    extract_opodata: base directory (source of the universe of DSA codes)
    extract_cms_qcor: CMS tier history plus latest assessment
    extract_srtr: SRTR utilization metrics and discard rates
    extract_hrsa: HRSA directory and transplant centers
    extract_propublica: Form 990 financials by EIN
"""

from opo_registry.extractor.cms_qcor import extract_cms_qcor, latest_known_tier
from opo_registry.extractor.hrsa import count_transplant_centers, extract_hrsa
from opo_registry.extractor.locator import (
    ByContentProbe,
    ByFixedOffset,
    ByNamePattern,
    HeaderLayout,
    Location,
    LocatorRule,
    column_blocks,
    locate,
    locate_all,
    stitch_header,
)
from opo_registry.extractor.opodata import extract_opodata, find_opo_nodes, tier_breakdown
from opo_registry.extractor.propublica import extract_propublica, make_ein_search, parse_filing
from opo_registry.extractor.srtr import discard_rate, extract_srtr, period_label
from opo_registry.extractor.workbook import Table, Workbook, WorkbookFormatError, read_workbook

__all__ = [
    # Locator
    "ByContentProbe",
    "ByFixedOffset",
    "ByNamePattern",
    "HeaderLayout",
    "Location",
    "LocatorRule",
    # Spreadsheet model
    "Table",
    "Workbook",
    "WorkbookFormatError",
    "column_blocks",
    "count_transplant_centers",
    "discard_rate",
    # Source extractors
    "extract_cms_qcor",
    "extract_hrsa",
    "extract_opodata",
    "extract_propublica",
    "extract_srtr",
    "find_opo_nodes",
    "latest_known_tier",
    "locate",
    "locate_all",
    "make_ein_search",
    "parse_filing",
    "period_label",
    "read_workbook",
    "stitch_header",
    "tier_breakdown",
]
