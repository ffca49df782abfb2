"""
Discrepancy ranking and report assembly.
"""

from datetime import date, datetime, timezone
from typing import Iterable, Optional

import structlog

from models.inventory import InventorySnapshot
from models.reconciliation import (
    Discrepancy,
    DiscrepancyReport,
    MatchStats,
    SkuCollision,
    SourceItemCounts,
)
from services.matcher import MatchOutcome

logger = structlog.get_logger(__name__)


def rank_discrepancies(discrepancies: Iterable[Discrepancy]) -> list[Discrepancy]:
    """Largest absolute difference first; ties keep their original order."""
    return sorted(discrepancies, key=lambda d: abs(d.difference), reverse=True)


def build_report(
    outcome: MatchOutcome,
    snapshot_a: InventorySnapshot,
    snapshot_b: InventorySnapshot,
    collisions: Iterable[SkuCollision] = (),
    report_date: Optional[date] = None,
) -> DiscrepancyReport:
    """
    Assemble the full ranked report for a run.

    Args:
        outcome: Matcher output
        snapshot_a: Brightpearl snapshot (for item counts)
        snapshot_b: Infoplus snapshot (for item counts)
        collisions: Collisions found while indexing either source
        report_date: Defaults to today (UTC)

    Returns:
        DiscrepancyReport holding every discrepancy, never truncated
    """
    now = datetime.now(timezone.utc)
    ranked = rank_discrepancies(outcome.discrepancies)

    report = DiscrepancyReport(
        date=report_date or now.date(),
        total_discrepancies=len(ranked),
        discrepancies=ranked,
        source_item_counts=SourceItemCounts(
            brightpearl=snapshot_a.item_count,
            infoplus=snapshot_b.item_count,
        ),
        match_stats=MatchStats(
            exact_matches=len(outcome.exact_matches),
            strict_matches=outcome.strict.pairs,
            loose_matches=outcome.loose.pairs,
        ),
        ignored_skus=sorted(outcome.ignored),
        collisions=list(collisions),
        generated_at=now,
    )

    logger.info(
        "report_built",
        date=report.date.isoformat(),
        total_discrepancies=report.total_discrepancies,
        largest_difference=abs(ranked[0].difference) if ranked else 0,
        collisions=len(report.collisions)
    )
    return report
