"""Transformer module for identity resolution and multi-source reconciliation.

Submodules
----------
identity
    Stable ``opo_id`` derivation from DSA codes and EIN resolution.
merge
    Declarative field-precedence merge of enrichment sources onto the base
    directory.
coverage
    Per-source coverage counts reported in the normalized metadata.

Notes
-----
Nothing here imports :mod:`opo_registry.extractor`; extractors depend on
:mod:`identity`, not the other way round.
"""

from opo_registry.transformer.coverage import CoverageTracker
from opo_registry.transformer.identity import (
    derive_opo_id,
    is_dsa_code,
    match_organization,
    normalize_org_name,
    resolve_ein,
)
from opo_registry.transformer.merge import (
    CANONICAL_SKELETON,
    ENRICHMENT_SOURCES,
    FIELD_RULES,
    FieldRule,
    merge_record,
    merge_sources,
)

__all__ = [
    "CANONICAL_SKELETON",
    "ENRICHMENT_SOURCES",
    "FIELD_RULES",
    # Coverage
    "CoverageTracker",
    # Merge
    "FieldRule",
    # Identity
    "derive_opo_id",
    "is_dsa_code",
    "match_organization",
    "merge_record",
    "merge_sources",
    "normalize_org_name",
    "resolve_ein",
]
