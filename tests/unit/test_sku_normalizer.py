"""
Tests for sku_normalizer — canonical keys and per-source indexes.
"""

import pytest

from exceptions import SkuCollisionError
from models.reconciliation import MatchType
from models.run_config import CollisionPolicy
from services.sku_normalizer import build_index, normalize_loose, normalize_strict
from tests.factories import SnapshotFactory


class TestNormalizeStrict:
    """Tests for strict normalization."""

    def test_case_insensitive(self):
        assert normalize_strict("ABC-1") == normalize_strict("abc-1")

    def test_trims_whitespace(self):
        assert normalize_strict("  SKU1 \t") == "sku1"

    def test_keeps_separators(self):
        assert normalize_strict("2XL-407") == "2xl-407"

    def test_idempotent(self):
        once = normalize_strict(" Mixed-Case_SKU ")
        assert normalize_strict(once) == once

    def test_non_string_is_empty(self):
        assert normalize_strict(None) == ""
        assert normalize_strict(123) == ""


class TestNormalizeLoose:
    """Tests for loose normalization."""

    def test_separator_insensitive(self):
        assert normalize_loose("QB-TOWELS") == normalize_loose("QBTowels") == "qbtowels"

    def test_removes_every_non_alphanumeric(self):
        assert normalize_loose("a.b c/d_e-f#1") == "abcdef1"

    def test_all_separators_is_empty(self):
        assert normalize_loose("--//") == ""


class TestBuildIndex:
    """Tests for index construction."""

    def test_strict_map_keyed_by_strict_key(self):
        index = build_index(SnapshotFactory.brightpearl({"SKU1": 10}))

        assert "sku1" in index.strict
        assert index.strict["sku1"].original_sku == "SKU1"
        assert index.strict["sku1"].quantity == 10

    def test_loose_entry_only_when_key_differs(self):
        index = build_index(SnapshotFactory.brightpearl({"QB-TOWELS": 5, "PLAIN": 1}))

        assert "qbtowels" in index.loose
        assert "plain" not in index.loose

    def test_loose_lookup_falls_back_to_separator_free_strict_key(self):
        index = build_index(SnapshotFactory.infoplus({"QBTowels": 3}))

        entry = index.loose_lookup("qbtowels")
        assert entry is not None
        assert entry.original_sku == "QBTowels"

    def test_loose_lookup_misses_strict_key_with_separators(self):
        index = build_index(SnapshotFactory.infoplus({"A-1": 3}))

        assert index.loose_lookup("a-1") is None
        assert index.loose_lookup("a1").original_sku == "A-1"

    def test_first_wins_keeps_first_seen(self):
        index = build_index(SnapshotFactory.brightpearl({"ABC": 1, "abc": 2}))

        assert index.strict["abc"].original_sku == "ABC"
        assert index.strict["abc"].quantity == 1
        assert len(index.collisions) == 1
        assert index.collisions[0].colliding_skus == ["abc"]
        assert index.collisions[0].key_type == MatchType.STRICT

    def test_first_wins_loose_collision_recorded(self):
        index = build_index(SnapshotFactory.brightpearl({"A-1": 1, "A_1": 2}))

        assert index.loose["a1"].original_sku == "A-1"
        assert index.collisions[0].key_type == MatchType.LOOSE
        assert index.collisions[0].kept_sku == "A-1"

    def test_strict_loser_not_loose_indexed(self):
        index = build_index(SnapshotFactory.brightpearl({"A-1": 1, "a-1": 2}))

        assert index.loose["a1"].original_sku == "A-1"
        assert index.loose["a1"].skus == ("A-1",)

    def test_merge_sums_quantities(self):
        index = build_index(
            SnapshotFactory.brightpearl({"ABC": 1, "abc": 2}),
            CollisionPolicy.MERGE,
        )

        entry = index.strict["abc"]
        assert entry.quantity == 3
        assert entry.skus == ("ABC", "abc")

    def test_reject_raises(self):
        with pytest.raises(SkuCollisionError) as exc_info:
            build_index(
                SnapshotFactory.brightpearl({"ABC": 1, "abc": 2}),
                CollisionPolicy.REJECT,
            )

        assert exc_info.value.details["skus"] == ["ABC", "abc"]
        assert exc_info.value.status_code == 422

    def test_no_collisions_for_distinct_skus(self):
        index = build_index(SnapshotFactory.brightpearl({"A": 1, "B": 2}))

        assert index.collisions == ()
