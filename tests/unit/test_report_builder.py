"""
Tests for report_builder — ranking and report assembly.
"""

from datetime import date

from models.reconciliation import MatchType
from models.run_config import CollisionPolicy
from services.matcher import match_inventories
from services.report_builder import build_report, rank_discrepancies
from services.sku_normalizer import build_index
from tests.factories import DiscrepancyFactory, SnapshotFactory


def build(a: dict, b: dict, ignored=(), policy=CollisionPolicy.FIRST_WINS):
    snapshot_a = SnapshotFactory.brightpearl(a)
    snapshot_b = SnapshotFactory.infoplus(b)
    index_a = build_index(snapshot_a, policy)
    index_b = build_index(snapshot_b, policy)
    outcome = match_inventories(snapshot_a, snapshot_b, index_a, index_b, frozenset(ignored))
    return build_report(
        outcome,
        snapshot_a,
        snapshot_b,
        collisions=index_a.collisions + index_b.collisions,
        report_date=date(2025, 6, 1),
    )


class TestRankDiscrepancies:
    """Tests for discrepancy ranking."""

    def test_sorts_by_absolute_difference_descending(self):
        small = DiscrepancyFactory.create(sku="SMALL", brightpearl_stock=6, infoplus_stock=5)
        negative = DiscrepancyFactory.create(sku="NEG", brightpearl_stock=0, infoplus_stock=20)
        medium = DiscrepancyFactory.create(sku="MED", brightpearl_stock=15, infoplus_stock=5)

        ranked = rank_discrepancies([small, negative, medium])

        assert [d.sku for d in ranked] == ["NEG", "MED", "SMALL"]

    def test_ties_keep_original_order(self):
        first = DiscrepancyFactory.create(sku="FIRST", brightpearl_stock=8, infoplus_stock=5)
        second = DiscrepancyFactory.create(sku="SECOND", brightpearl_stock=2, infoplus_stock=5)
        third = DiscrepancyFactory.create(sku="THIRD", brightpearl_stock=5, infoplus_stock=8)

        ranked = rank_discrepancies([first, second, third])

        assert [d.sku for d in ranked] == ["FIRST", "SECOND", "THIRD"]

    def test_empty(self):
        assert rank_discrepancies([]) == []


class TestBuildReport:
    """Tests for report assembly."""

    def test_counts_and_stats(self):
        report = build(
            {"SKU1": 10, "QB-TOWELS": 5, "X": 4, "M": 1},
            {"sku1": 10, "QBTowels": 3, "m": 9},
        )

        assert report.date == date(2025, 6, 1)
        assert report.total_discrepancies == 2
        assert report.source_item_counts.brightpearl == 4
        assert report.source_item_counts.infoplus == 3
        assert report.match_stats.exact_matches == 1
        assert report.match_stats.strict_matches == 2
        assert report.match_stats.loose_matches == 1

    def test_discrepancies_ranked(self):
        report = build({"A": 1, "B": 50, "C": 10}, {"a": 2, "b": 10, "c": 5})

        assert [d.sku for d in report.discrepancies] == ["B", "C", "A"]

    def test_full_list_kept(self):
        a = {f"S{i}": i + 1 for i in range(60)}
        b = {f"s{i}": 0 for i in range(60)}

        report = build(a, b)

        assert report.total_discrepancies == 60
        assert len(report.discrepancies) == 60

    def test_truncated_keeps_total(self):
        a = {f"S{i}": i + 1 for i in range(30)}
        b = {f"s{i}": 0 for i in range(30)}

        truncated = build(a, b).truncated(25)

        assert len(truncated.discrepancies) == 25
        assert truncated.total_discrepancies == 30

    def test_ignored_recorded(self):
        report = build({"Y": 1, "K": 2}, {"k": 3}, ignored=["Y"])

        assert report.ignored_skus == ["Y"]
        assert [d.sku for d in report.discrepancies] == ["K"]

    def test_collisions_recorded(self):
        report = build({"ABC": 1, "abc": 2}, {"abc": 1})

        assert len(report.collisions) == 1
        assert report.collisions[0].kept_sku == "ABC"
        assert report.collisions[0].key_type == MatchType.STRICT

    def test_identical_inputs_identical_reports(self):
        a = {"A": 1, "B-1": 5, "C": 7}
        b = {"a": 3, "b1": 2, "c": 7}

        assert build(a, b).discrepancies == build(a, b).discrepancies
