"""Writer module for per-source JSON documents, normalized output, and XLSX export."""

from opo_registry.writer.json_writer import (
    load_source_document,
    save_normalized,
    save_source_document,
    write_json,
)
from opo_registry.writer.workbook_writer import flatten_opos, write_normalized_workbook

__all__ = [
    "flatten_opos",
    "load_source_document",
    "save_normalized",
    "save_source_document",
    "write_json",
    "write_normalized_workbook",
]
