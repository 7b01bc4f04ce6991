"""Merge enrichment sources onto the base OPO directory.

The base directory (opodata.org) defines the universe of DSA codes.
Enrichment records attach to a base record by ``dsa_code``; codes missing
from the base are dropped without error.

Precedence is declared in :data:`FIELD_RULES`: each canonical leaf lists the
(source, path) pairs consulted in order. The first non-null enrichment value
wins; when every candidate is null or absent the base value is kept. Rules
apply per leaf, never as whole-record replacement.

Two fields are handled outside the rules:

* ``relationships.transplant_centers``: the HRSA list replaces the base list
  wholesale when it is non-empty;
* ``cms_status.at_risk``: re-derived from the merged tier.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from opo_registry.config import setup_logging, utc_timestamp
from opo_registry.transformer.coverage import CoverageTracker

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

logger = setup_logging(__name__)

ENRICHMENT_SOURCES = ("propublica", "hrsa", "srtr", "cms_qcor")

ORGANS = ("heart", "kidney", "liver", "lung")


def _as_tier(value: Any) -> Any:
    """Published tiers may arrive as floats (``2.0``)."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


@dataclass(frozen=True)
class FieldRule:
    """Precedence rule for one canonical leaf field.

    Attributes
    ----------
    path : tuple[str, ...]
        Location of the leaf in the canonical record.
    candidates : tuple[tuple[str, tuple[str, ...]], ...]
        ``(source, path)`` pairs consulted in order.
    convert : Callable | None
        Applied to the winning enrichment value.
    """

    path: tuple[str, ...]
    candidates: tuple[tuple[str, tuple[str, ...]], ...]
    convert: Callable[[Any], Any] | None = None

    def resolve(self, matched: Mapping[str, Mapping[str, Any]]) -> Any:
        """Return the first non-null candidate value, or ``None``."""
        for source, path in self.candidates:
            record = matched.get(source)
            if record is None:
                continue
            value = get_path(record, path)
            if value is not None:
                return self.convert(value) if self.convert else value
        return None


def _rule(path: str, *candidates: str, convert: Callable[[Any], Any] | None = None) -> FieldRule:
    """Build a rule from dotted paths; candidates read ``source:dotted.path``."""
    parsed = []
    for candidate in candidates:
        source, _, source_path = candidate.partition(":")
        parsed.append((source, tuple(source_path.split("."))))
    return FieldRule(path=tuple(path.split(".")), candidates=tuple(parsed), convert=convert)


FIELD_RULES: tuple[FieldRule, ...] = (
    # Location (HRSA directory)
    _rule("location.city", "hrsa:city"),
    _rule("location.address", "hrsa:address"),
    _rule("location.phone", "hrsa:phone"),
    _rule("location.zip", "hrsa:zip"),
    # CMS tier
    _rule("cms_status.tier", "cms_qcor:latest_tier", convert=_as_tier),
    _rule("cms_status.cycle_year", "cms_qcor:latest_tier_year", convert=_as_tier),
    # Metrics (SRTR first, CMS assessment as fallback)
    _rule("metrics.conversion_rate", "srtr:conversion_rate"),
    _rule("metrics.donation_rate", "srtr:donation_rate", "cms_qcor:assessment.donation_rate"),
    _rule(
        "metrics.transplantation_rate",
        "srtr:transplantation_rate",
        "cms_qcor:assessment.observed_transplant_rate",
    ),
    _rule("metrics.organs_transplanted_per_donor", "srtr:organs_transplanted_per_donor"),
    _rule("metrics.observed_expected_ratio", "srtr:observed_expected_ratio"),
    *(_rule(f"metrics.observed_expected_by_organ.{o}", f"srtr:observed_expected_by_organ.{o}") for o in ORGANS),
    _rule("metrics.total_donors_srtr", "srtr:total_donors"),
    *(_rule(f"metrics.discard_rates.{o}", f"srtr:discard_rates.{o}") for o in ORGANS),
    # Financials (ProPublica)
    _rule("financials.revenue", "propublica:revenue"),
    _rule("financials.expenses", "propublica:expenses"),
    _rule("financials.assets", "propublica:assets"),
    _rule("financials.ceo_compensation", "propublica:ceo_compensation"),
    _rule("financials.oac_per_organ", "propublica:oac_per_organ"),
    _rule("financials.tax_year", "propublica:tax_year"),
    _rule("ein", "propublica:ein"),
)

# Every canonical field; ``None`` leaves are filled in when the base lacks them
CANONICAL_SKELETON: dict[str, Any] = {
    "opo_id": None,
    "name": None,
    "dsa_code": None,
    "ein": None,
    "location": {"state": None, "city": None, "address": None, "phone": None, "zip": None, "region": None},
    "cms_status": {"tier": None, "cycle_year": None, "at_risk": None},
    "metrics": {
        "donation_rate": None,
        "transplantation_rate": None,
        "conversion_rate": None,
        "donors_recovered": None,
        "organs_transplanted_per_donor": None,
        "observed_expected_ratio": None,
        "observed_expected_by_organ": dict.fromkeys(ORGANS),
        "total_donors_srtr": None,
        "discard_rates": {"kidney": None, "liver": None, "heart": None, "lung": None},
        "recovery_rate": {"nhw": None, "nhb": None, "hispanic": None, "asian": None},
        "shadow_deaths": None,
        "rank": None,
    },
    "financials": {
        "revenue": None,
        "expenses": None,
        "assets": None,
        "ceo_compensation": None,
        "oac_per_organ": None,
        "tax_year": None,
    },
    "leadership": {"ceo": None, "board_independence_disclosed": None},
    "demographics": {
        "eligible_deaths": {"nhw": None, "nhb": None, "hispanic": None, "asian": None},
        "demographic_rank": {"nhw": None, "nhb": None, "hispanic": None, "asian": None},
    },
    "investigations": {"house": None, "house_url": None, "senate": None, "senate_url": None},
    "states_served": [],
    "relationships": {"transplant_centers": []},
}


def get_path(record: Mapping[str, Any], path: Sequence[str]) -> Any:
    """Read a nested value; ``None`` when any step is missing or not a mapping."""
    current: Any = record
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def set_path(record: dict[str, Any], path: Sequence[str], value: Any) -> None:
    """Write a nested value, creating intermediate mappings as needed."""
    current = record
    for key in path[:-1]:
        nested = current.get(key)
        if not isinstance(nested, dict):
            nested = {}
            current[key] = nested
        current = nested
    current[path[-1]] = value


def fill_skeleton(record: dict[str, Any], skeleton: Mapping[str, Any] = CANONICAL_SKELETON) -> dict[str, Any]:
    """Add every canonical field missing from ``record`` with its empty value."""
    for key, default in skeleton.items():
        if key not in record or (isinstance(default, dict) and not isinstance(record[key], dict)):
            record[key] = copy.deepcopy(default)
        elif isinstance(default, dict):
            fill_skeleton(record[key], default)
    return record


def build_index(records: Iterable[Mapping[str, Any]]) -> dict[str, Mapping[str, Any]]:
    """Index records by ``dsa_code``; the last record wins on duplicates."""
    index: dict[str, Mapping[str, Any]] = {}
    for record in records:
        code = record.get("dsa_code")
        if code is None:
            continue
        if code in index:
            logger.debug("Duplicate enrichment record for %s, keeping the last", code)
        index[code] = record
    return index


def merge_record(
    base: Mapping[str, Any],
    matched: Mapping[str, Mapping[str, Any]],
    rules: Sequence[FieldRule] = FIELD_RULES,
) -> dict[str, Any]:
    """Merge the enrichment records matched for one OPO onto its base record.

    Parameters
    ----------
    base : Mapping[str, Any]
        Base directory record.
    matched : Mapping[str, Mapping[str, Any]]
        Source name → enrichment record for this OPO (absent sources omitted).
    rules : Sequence[FieldRule], optional
        Precedence rules.

    Returns
    -------
    dict[str, Any]
        New record with every canonical field present.
    """
    merged = fill_skeleton(copy.deepcopy(dict(base)))

    for rule in rules:
        value = rule.resolve(matched)
        if value is not None:
            set_path(merged, rule.path, value)

    hrsa = matched.get("hrsa")
    if hrsa and hrsa.get("transplant_centers"):
        merged["relationships"]["transplant_centers"] = copy.deepcopy(hrsa["transplant_centers"])

    tier = merged["cms_status"]["tier"]
    merged["cms_status"]["at_risk"] = tier >= 2 if tier is not None else None

    return merged


def merge_sources(
    base_opos: Sequence[Mapping[str, Any]],
    enrichments: Mapping[str, Sequence[Mapping[str, Any]] | None],
    rules: Sequence[FieldRule] = FIELD_RULES,
    sources: Sequence[str] = ENRICHMENT_SOURCES,
) -> dict[str, Any]:
    """Merge enrichment record sets onto the base directory.

    Parameters
    ----------
    base_opos : Sequence[Mapping[str, Any]]
        Base records; define the output universe.
    enrichments : Mapping[str, Sequence[Mapping[str, Any]] | None]
        Source name → record list. Missing or ``None`` sources contribute
        nothing.
    rules : Sequence[FieldRule], optional
        Precedence rules.
    sources : Sequence[str], optional
        Enrichment sources reported in coverage, in order.

    Returns
    -------
    dict[str, Any]
        ``{"metadata": {generated_at, total_opos, sources}, "opos": [...]}``
        with records sorted by ``dsa_code``.
    """
    indexes = {source: build_index(enrichments.get(source) or []) for source in sources}
    tracker = CoverageTracker(sources=list(sources))

    merged = []
    seen: set[str] = set()
    for base in base_opos:
        code = base["dsa_code"]
        if code in seen:
            logger.warning("Duplicate base record for %s, keeping the first", code)
            continue
        seen.add(code)
        tracker.add_base()

        matched = {}
        for source, index in indexes.items():
            record = index.get(code)
            if record is not None:
                matched[source] = record
                tracker.record_match(source, code)

        merged.append(merge_record(base, matched, rules))

    base_codes = [opo["dsa_code"] for opo in merged]
    for source in sources:
        unmatched = tracker.missing(source, base_codes)
        if unmatched and len(unmatched) < len(base_codes):
            logger.debug("%s: no record for %d base OPOs: %s", source, len(unmatched), ", ".join(unmatched))

    merged.sort(key=lambda opo: opo["dsa_code"])

    dropped = {source: sorted(set(index) - seen) for source, index in indexes.items()}
    for source, codes in dropped.items():
        if codes:
            logger.debug("%s: %d codes not in base: %s", source, len(codes), ", ".join(codes))

    tracker.log_summary()
    return {
        "metadata": {
            "generated_at": utc_timestamp(),
            "total_opos": len(merged),
            "sources": tracker.to_metadata(),
        },
        "opos": merged,
    }
