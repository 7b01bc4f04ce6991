"""opo-registry: a normalized dataset of US organ procurement organizations.

The package pulls public records about OPOs from five publications, extracts
per-source records keyed by DSA code, and merges them onto the opodata.org
base directory.

Architecture
------------
* ``scraper``: httpx fetch layer and per-source runners.
* ``extractor``: spreadsheet model, table locator, and one extractor per source.
* ``transformer``: identity resolution (``opo_id``, EIN) and the precedence merge.
* ``writer``: per-source JSON documents, normalized JSON, and XLSX export.

Configuration
-------------
Paths default to the ``data/`` and ``logs/`` trees but respect ``DATA_DIR``
and ``LOGS_DIR`` overrides. Source URLs and curated tables live in
``config/*.json``.

Examples
--------
Run the default sources and normalize:

    >>> python -m opo_registry.main

Re-merge existing documents and export a workbook:

    >>> python -m opo_registry.main --normalize-only --xlsx
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
