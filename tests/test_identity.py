"""Tests for identity resolution: opo_id derivation and EIN lookup.

Tests cover:
1. Deterministic, UUID-shaped identifiers without collisions
2. Fuzzy organization matching of search results
3. Curated-table precedence over name search
"""

from __future__ import annotations

import re
import uuid

import pytest

from opo_registry.config import get_ein_map
from opo_registry.transformer.identity import (
    derive_opo_id,
    is_dsa_code,
    match_organization,
    normalize_org_name,
    resolve_ein,
)

UUID_SHAPE = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}")


class TestDeriveOpoId:
    """Tests for the deterministic identifier."""

    def test_deterministic(self) -> None:
        """The same code always gives the same identifier."""
        assert derive_opo_id("ALOB") == derive_opo_id("ALOB")

    def test_uuid_shape(self) -> None:
        """Version nibble 4 and RFC 4122 variant bits."""
        opo_id = derive_opo_id("NYRT")
        assert UUID_SHAPE.fullmatch(opo_id)
        parsed = uuid.UUID(opo_id)
        assert parsed.version == 4
        assert parsed.variant == uuid.RFC_4122

    def test_no_collisions_across_known_codes(self) -> None:
        """Every curated DSA code gets a distinct identifier."""
        codes = list(get_ein_map())
        assert len({derive_opo_id(code) for code in codes}) == len(codes)


@pytest.mark.parametrize(
    ("value", "expected"),
    [("ALOB", True), (" NYRT ", True), ("alob", False), ("ALOBX", False), ("", False), (None, False)],
)
def test_is_dsa_code(value: object, expected: bool) -> None:
    """Codes are four uppercase letters."""
    assert is_dsa_code(value) is expected


class TestMatchOrganization:
    """Tests for picking a search result."""

    def test_normalization(self) -> None:
        """Case and punctuation are ignored."""
        assert normalize_org_name("Gift of Life, Inc.") == "giftoflifeinc"
        assert normalize_org_name(None) == ""

    def test_query_contained_in_name(self) -> None:
        """A result whose name contains the query wins over the first result."""
        orgs = [{"name": "Unrelated Trust", "ein": 1}, {"name": "LiveOnNY Foundation Inc", "ein": 2}]
        assert match_organization("LiveOnNY", orgs) == 2

    def test_query_contained_in_sub_name(self) -> None:
        """Sub-names are also searched."""
        orgs = [{"name": "Other", "ein": 1}, {"name": "Holding Co", "sub_name": "Legacy of Hope", "ein": 3}]
        assert match_organization("Legacy of Hope", orgs) == 3

    def test_name_contained_in_query(self) -> None:
        """A short registered name inside a longer OPO name matches."""
        orgs = [{"name": "Other", "ein": 1}, {"name": "Gift of Life", "ein": 4}]
        assert match_organization("Gift of Life Donor Program", orgs) == 4

    def test_first_result_fallback(self) -> None:
        """Without a match, the first result is taken."""
        orgs = [{"name": "Alpha", "ein": 5}, {"name": "Beta", "ein": 6}]
        assert match_organization("Gamma", orgs) == 5

    def test_empty_query_never_matches(self) -> None:
        """An empty normalized query falls through to the first result."""
        orgs = [{"name": "Alpha", "ein": 5}, {"name": "Beta", "ein": 6}]
        assert match_organization("!!!", orgs) == 5

    def test_no_results(self) -> None:
        """No results, no EIN."""
        assert match_organization("Anything", []) is None


class TestResolveEin:
    """Tests for table-then-search resolution."""

    def test_table_hit_skips_search(self) -> None:
        """A curated EIN is returned without searching."""
        calls: list[str] = []
        ein = resolve_ein("CADN", "DNW", {"CADN": 943062436}, search=lambda n: calls.append(n) or 1)
        assert ein == 943062436
        assert calls == []

    def test_null_entry_searches_by_name(self) -> None:
        """A null table entry is not curated yet and falls back to search."""
        calls: list[str] = []

        def search(name: str) -> int:
            calls.append(name)
            return 555

        assert resolve_ein("ALOB", "Legacy", {"ALOB": None}, search=search) == 555
        assert calls == ["Legacy"]

    def test_missing_code_searches_by_name(self) -> None:
        """Codes absent from the table fall back to search."""
        assert resolve_ein("ZZZZ", "New OPO", {}, search=lambda name: 123) == 123

    def test_missing_code_without_search(self) -> None:
        """No table entry and no search leaves the EIN unresolved."""
        assert resolve_ein("ZZZZ", "New OPO", {}) is None
