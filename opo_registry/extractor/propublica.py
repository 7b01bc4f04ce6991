"""ProPublica Nonprofit Explorer financial extractor.

Financials are keyed by EIN. Each base OPO is resolved to an EIN (curated
table first, then name search) and the newest filing of that organization
becomes its financial record. HTTP access is injected as two callables so
this module never owns a client:

``search(name) -> organizations``
    Search results, in API order.
``fetch(ein) -> payload``
    The organization document (``organization`` plus
    ``filings_with_data``, newest first).
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from opo_registry.config import setup_logging
from opo_registry.transformer.identity import match_organization, resolve_ein

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

logger = setup_logging(__name__)

# Filing field → record field
FILING_FIELDS = {
    "tax_prd_yr": "tax_year",
    "totrevenue": "total_revenue",
    "totfuncexpns": "total_expenses",
    "totassetsend": "total_assets",
    "totliabend": "total_liabilities",
    "totnetassetend": "net_assets",
    "compnsatncurrofcr": "officer_compensation",
    "totprgmrevnue": "program_revenue",
    "totcntrbgfts": "contributions",
    "invstmntinc": "investment_income",
    "othrsalwages": "other_salaries",
}


def parse_filing(payload: Mapping[str, Any] | None) -> dict[str, Any] | None:
    """Return the newest filing of an organization document, renamed.

    ``None`` when the organization has no filing with data.
    """
    if not payload:
        return None
    filings = payload.get("filings_with_data") or []
    if not filings:
        return None
    newest = filings[0]
    return {target: newest.get(source) for source, target in FILING_FIELDS.items()}


def build_financial_record(opo: Mapping[str, Any], ein: Any, filing: Mapping[str, Any]) -> dict[str, Any]:
    """Assemble the per-OPO financial record from a parsed filing."""
    return {
        "dsa_code": opo["dsa_code"],
        "name": opo.get("name"),
        "ein": ein,
        "revenue": filing["total_revenue"],
        "expenses": filing["total_expenses"],
        "assets": filing["total_assets"],
        "ceo_compensation": filing["officer_compensation"],
        # Not published in Form 990 data
        "oac_per_organ": None,
        "tax_year": filing["tax_year"],
        "program_revenue": filing["program_revenue"],
        "contributions": filing["contributions"],
        "investment_income": filing["investment_income"],
    }


def make_ein_search(
    search: Callable[[str], Sequence[Mapping[str, Any]]],
    delay: float = 0.0,
) -> Callable[[str], Any]:
    """Wrap an organization search into an OPO name → EIN lookup.

    Search failures are logged and resolve to ``None``; ``delay`` seconds are
    slept after every request.
    """

    def search_ein(name: str) -> Any:
        try:
            organizations = search(name)
        except Exception as e:
            logger.warning("Search failed for %r: %s", name, e)
            return None
        finally:
            if delay:
                time.sleep(delay)
        return match_organization(name, organizations)

    return search_ein


def resolve_eins(
    opos: Sequence[Mapping[str, Any]],
    ein_table: Mapping[str, int | None],
    search_ein: Callable[[str], Any] | None = None,
) -> dict[str, Any]:
    """Resolve the EIN of every base OPO; unresolved codes map to ``None``."""
    static_count = sum(1 for opo in opos if ein_table.get(opo["dsa_code"]))
    search_count = len(opos) - static_count
    logger.info("Static EINs: %d, need search: %d", static_count, search_count)

    return {opo["dsa_code"]: resolve_ein(opo["dsa_code"], opo.get("name"), ein_table, search_ein) for opo in opos}


def extract_propublica(
    opos: Sequence[Mapping[str, Any]],
    ein_table: Mapping[str, int | None],
    fetch: Callable[[Any], Mapping[str, Any] | None],
    search_ein: Callable[[str], Any] | None = None,
    delay: float = 0.0,
) -> list[dict[str, Any]]:
    """Build financial records for base OPOs.

    Parameters
    ----------
    opos : Sequence[Mapping[str, Any]]
        Base records (``dsa_code`` and ``name`` are used).
    ein_table : Mapping[str, int | None]
        Curated DSA code → EIN table.
    fetch : Callable
        EIN → organization document. Exceptions are logged and the OPO is
        skipped.
    search_ein : Callable | None, optional
        OPO name → EIN fallback for codes missing from ``ein_table`` or mapped to ``None``.
    delay : float, optional
        Seconds slept after each organization fetch.

    Returns
    -------
    list[dict[str, Any]]
        One record per OPO with a resolved EIN and at least one filing, in
        base order.
    """
    eins = resolve_eins(opos, ein_table, search_ein)
    logger.info("Fetching financials for %d OPOs...", sum(1 for ein in eins.values() if ein))

    results = []
    for opo in opos:
        code = opo["dsa_code"]
        ein = eins.get(code)
        if not ein:
            logger.warning("No EIN for %s, skipping", code)
            continue

        try:
            payload = fetch(ein)
        except Exception as e:
            logger.warning("Fetch failed for EIN %s: %s", ein, e)
            payload = None
        finally:
            if delay:
                time.sleep(delay)

        filing = parse_filing(payload)
        if filing is None:
            logger.warning("No filing data for %s (EIN %s)", code, ein)
            continue

        results.append(build_financial_record(opo, ein, filing))
        logger.debug("%s: revenue=%s, expenses=%s", code, filing["total_revenue"], filing["total_expenses"])

    return results
