"""Identity resolution across sources.

Two keys join the sources together:

* the DSA code, shared by opodata.org, SRTR, CMS and (via the provider table)
  HRSA, from which a stable ``opo_id`` is derived;
* the EIN, the nonprofit tax identifier ProPublica files are keyed by,
  resolved from a curated table or by fuzzy name search.
"""

from __future__ import annotations

import hashlib
import re
from typing import TYPE_CHECKING, Any

from opo_registry.config import setup_logging

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

logger = setup_logging(__name__)

_DSA_CODE_RE = re.compile(r"[A-Z]{4}")


def is_dsa_code(value: Any) -> bool:
    """Return True when ``value`` is a 4-letter uppercase DSA code."""
    return isinstance(value, str) and _DSA_CODE_RE.fullmatch(value.strip()) is not None


def derive_opo_id(dsa_code: str) -> str:
    """Derive a deterministic UUID-shaped identifier from a DSA code.

    The SHA-256 digest of ``"opo:<code>"`` is laid out as 8-4-4-4-12 hex
    groups with the version nibble set to ``4`` and the variant bits set to
    ``10``, so the result looks like a random UUID but is fully reproducible.

    Parameters
    ----------
    dsa_code : str
        4-letter DSA code.

    Returns
    -------
    str
        Identifier such as ``"3f1c2a9b-77d0-4e21-9a0c-5b8e2f6d1c44"``.
    """
    digest = hashlib.sha256(f"opo:{dsa_code}".encode()).hexdigest()
    variant = (int(digest[16:18], 16) & 0x3F) | 0x80
    return "-".join(
        [
            digest[0:8],
            digest[8:12],
            "4" + digest[13:16],
            f"{variant:02x}" + digest[18:20],
            digest[20:32],
        ],
    )


def normalize_org_name(name: str | None) -> str:
    """Lowercase and strip everything but ``a-z0-9`` for name comparison."""
    return re.sub(r"[^a-z0-9]", "", (name or "").lower())


def match_organization(query: str, organizations: Sequence[Mapping[str, Any]]) -> Any:
    """Pick the EIN of the search result that best matches an OPO name.

    A candidate matches when its normalized name or sub-name contains the
    normalized query, or the query contains its normalized name. Without a
    match, the first result is taken unconditionally.

    Parameters
    ----------
    query : str
        OPO name used for the search.
    organizations : Sequence[Mapping[str, Any]]
        Search results in API order, each with ``name``, ``sub_name``, ``ein``.

    Returns
    -------
    Any
        EIN of the chosen organization, or ``None`` when there are no results.
    """
    if not organizations:
        return None

    query_norm = normalize_org_name(query)
    if query_norm:
        for org in organizations:
            org_name = normalize_org_name(org.get("name"))
            sub_name = normalize_org_name(org.get("sub_name"))
            if (
                (org_name and query_norm in org_name)
                or (sub_name and query_norm in sub_name)
                or (org_name and org_name in query_norm)
            ):
                return org.get("ein")

    return organizations[0].get("ein")


def resolve_ein(
    dsa_code: str,
    name: str | None,
    ein_table: Mapping[str, int | None],
    search: Callable[[str], Any] | None = None,
) -> Any:
    """Resolve the EIN of one OPO.

    Resolution order:

    1. curated table by DSA code;
    2. name search through ``search`` when the code is absent or its entry
       is ``None`` (OPOs whose EIN has not been curated yet).

    Returns
    -------
    Any
        EIN, or ``None`` when unresolved.
    """
    static_ein = ein_table.get(dsa_code)
    if static_ein:
        return static_ein

    if search is None or not name:
        return None

    ein = search(name)
    logger.info("%s: EIN=%s", dsa_code, ein or "NOT FOUND")
    return ein
