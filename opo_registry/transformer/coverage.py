"""Coverage tracking for the merge pass.

Records, per enrichment source, which base OPOs found a matching record, so
the normalized document can report how much of the universe each source
covers.

Classes
-------
CoverageTracker
    Accumulates matched DSA codes per source during one merge pass.

Notes
-----
Percentages are whole numbers rounded half up. The base source always
covers every record (``"100%"``, or ``"0%"`` for an empty base).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from opo_registry.config import setup_logging
from opo_registry.utils.parsing import format_percentage

logger = setup_logging(__name__)

BASE_SOURCE = "opodata"


@dataclass
class CoverageTracker:
    """Track which base records each source matched.

    Attributes
    ----------
    sources : list[str]
        Enrichment source names, in reporting order.
    total : int
        Number of base records seen.
    matches : dict[str, list[str]]
        Source name to matched DSA codes, in base order.
    """

    sources: list[str]
    total: int = 0
    matches: dict[str, list[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for source in self.sources:
            self.matches.setdefault(source, [])

    def add_base(self) -> None:
        """Count one base record."""
        self.total += 1

    def record_match(self, source: str, dsa_code: str) -> None:
        """Record that ``source`` had a record for ``dsa_code``."""
        self.matches.setdefault(source, []).append(dsa_code)
        logger.debug("Coverage: %s matched %s", source, dsa_code)

    def count(self, source: str) -> int:
        """Number of base records matched by ``source``."""
        return len(self.matches.get(source, []))

    def missing(self, source: str, codes: list[str]) -> list[str]:
        """Return the codes in ``codes`` that ``source`` did not match."""
        matched = set(self.matches.get(source, []))
        return [code for code in codes if code not in matched]

    def to_metadata(self) -> dict[str, dict[str, Any]]:
        """Return the ``metadata.sources`` coverage breakdown."""
        summary: dict[str, dict[str, Any]] = {
            BASE_SOURCE: {"count": self.total, "pct": "100%" if self.total else "0%"},
        }
        for source in self.sources:
            count = self.count(source)
            summary[source] = {"count": count, "pct": format_percentage(count, self.total)}
        return summary

    def log_summary(self) -> None:
        """Log one line with the count of every source."""
        parts = [f"{BASE_SOURCE}={self.total}"] + [f"{s}={self.count(s)}" for s in self.sources]
        logger.info("Coverage: %s", ", ".join(parts))
