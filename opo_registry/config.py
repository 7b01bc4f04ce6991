"""Configuration management for opo-registry.

This module centralizes file-system paths, environment variables, and the
JSON configuration loaders used by the scraping and normalization pipeline.

Configuration files
-------------------
* ``config.json``: per-source URLs, candidate URL lists, timeouts, delays
* ``ein_map.json``: curated DSA code → EIN table for ProPublica lookups
* ``provider_dsa_map.json``: HRSA OPO provider number → DSA code

Environment variables
---------------------
``DATA_DIR`` and ``LOGS_DIR`` override default directories. ``DEBUG`` lowers
the console log level to DEBUG. Directories are created eagerly on import so
downstream callers can rely on their existence.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, cast

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
DATA_DIR = Path(os.getenv("DATA_DIR", PROJECT_ROOT / "data"))
LOGS_DIR = Path(os.getenv("LOGS_DIR", PROJECT_ROOT / "logs"))
RAW_DIR = DATA_DIR / "raw"
NORMALIZED_DIR = DATA_DIR / "normalized"

# Ensure directories exist
RAW_DIR.mkdir(parents=True, exist_ok=True)
NORMALIZED_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

DEBUG = bool(os.getenv("DEBUG"))


def _load_config_file(filename: str) -> dict[str, Any]:
    """Load a JSON file from ``CONFIG_DIR``.

    Raises
    ------
    FileNotFoundError
        If the file is missing.
    json.JSONDecodeError
        If the file exists but is not valid JSON.
    """
    config_path = CONFIG_DIR / filename
    if not config_path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    with config_path.open(encoding="utf-8") as f:
        return json.load(f)  # type: ignore[no-any-return]


def get_config() -> dict[str, Any]:
    """Load the primary project configuration.

    Returns
    -------
    dict[str, Any]
        Parsed contents of ``config/config.json`` including the user agent,
        default source list, and per-source settings.
    """
    return _load_config_file("config.json")


def get_source_config(source: str, config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return the settings block for one source.

    Parameters
    ----------
    source : str
        Source key such as ``"opodata"`` or ``"cms_qcor"``.
    config : dict[str, Any], optional
        Already-loaded configuration; loaded from disk when omitted.

    Returns
    -------
    dict[str, Any]
        The ``sources.<source>`` mapping.

    Raises
    ------
    ValueError
        If the source is not configured.
    """
    cfg = config if config is not None else get_config()
    sources = cfg.get("sources", {})
    if source not in sources:
        msg = f"Unknown source: {source}. Configured: {', '.join(sorted(sources))}"
        raise ValueError(msg)
    return cast("dict[str, Any]", sources[source])


def get_user_agent(config: dict[str, Any] | None = None) -> str:
    """Return the User-Agent header sent with every request."""
    cfg = config if config is not None else get_config()
    return cast("str", cfg.get("user_agent", "opo-registry/1.0"))


def get_default_sources(config: dict[str, Any] | None = None) -> list[str]:
    """Return the sources run when the CLI is given no ``--source`` flag."""
    cfg = config if config is not None else get_config()
    return cast("list[str]", cfg.get("default_sources", ["opodata", "propublica", "hrsa"]))


def get_ein_map() -> dict[str, int | None]:
    """Load the curated DSA code → EIN table.

    Returns
    -------
    dict[str, int | None]
        EIN per DSA code. ``None`` marks OPOs without a curated EIN; they are
        resolved by name search.
    """
    data = _load_config_file("ein_map.json")
    return cast("dict[str, int | None]", data.get("eins", {}))


def get_provider_dsa_map() -> dict[str, str]:
    """Load the HRSA provider number → DSA code table."""
    data = _load_config_file("provider_dsa_map.json")
    return cast("dict[str, str]", data.get("providers", {}))


def get_raw_path(source: str, raw_dir: Path | None = None) -> Path:
    """Return the path of a per-source JSON document (``data/raw/<source>.json``)."""
    base_dir = raw_dir if raw_dir is not None else RAW_DIR
    return base_dir / f"{source}.json"


def get_normalized_dir(output_dir: Path | None = None) -> Path:
    """Return the directory receiving ``opos.json`` and ``metadata.json``."""
    return output_dir if output_dir is not None else NORMALIZED_DIR


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO 8601 string."""
    return datetime.now(UTC).isoformat()


def setup_logging(name: str = "opo_registry") -> logging.Logger:
    """Configure a console+file logger if not already present.

    Parameters
    ----------
    name : str, optional
        Logger namespace; reused to avoid duplicate handlers.

    Returns
    -------
    logging.Logger
        Logger with an INFO-level console handler (DEBUG when ``DEBUG`` is
        set) and a DEBUG-level file handler under ``LOGS_DIR``.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(logging.DEBUG)

        # Console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if DEBUG else logging.INFO)
        console_format = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
        console_handler.setFormatter(console_format)
        logger.addHandler(console_handler)

        # File handler
        log_filename = f"{datetime.now(UTC).strftime('%Y-%m-%d')}_run.log"
        file_handler = logging.FileHandler(LOGS_DIR / log_filename)
        file_handler.setLevel(logging.DEBUG)
        file_format = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)

    return logger
