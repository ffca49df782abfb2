"""
Two-phase SKU matching across sources.

Phases run in order and each returns an immutable PhaseResult:
1. strict: pairs sharing a strict key
2. loose: pairs sharing a loose key where no SKU was settled by phase 1
3. residual: every raw SKU never settled becomes SourceOnly

Ignored SKUs are dropped while pairing, so the counterpart of an ignored
display SKU is consumed too and never resurfaces as source-only.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

import structlog

from models.inventory import InventorySnapshot, UNKNOWN_PRODUCT
from models.reconciliation import (
    Discrepancy,
    ExactMatch,
    MatchType,
    SourceOnly,
)
from services.sku_normalizer import NormalizedEntry, NormalizedIndex

logger = structlog.get_logger(__name__)


def percentage_difference(quantity_a: int, quantity_b: int) -> float:
    """|a - b| / b as a percentage, one decimal, half-up. 100 when b is 0."""
    if quantity_b <= 0:
        return 100.0
    pct = Decimal(abs(quantity_a - quantity_b)) * 100 / Decimal(quantity_b)
    return float(pct.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class PhaseResult:
    """Output of one matching phase."""

    exact: tuple[ExactMatch, ...] = ()
    discrepancies: tuple[Discrepancy, ...] = ()
    settled_a: frozenset[str] = frozenset()
    settled_b: frozenset[str] = frozenset()
    ignored_a: frozenset[str] = frozenset()
    ignored_b: frozenset[str] = frozenset()
    pairs: int = 0

    @property
    def consumed_a(self) -> frozenset[str]:
        return self.settled_a | self.ignored_a

    @property
    def consumed_b(self) -> frozenset[str]:
        return self.settled_b | self.ignored_b


@dataclass(frozen=True)
class MatchOutcome:
    """Combined output of all three phases."""

    strict: PhaseResult
    loose: PhaseResult
    brightpearl_only: tuple[SourceOnly, ...] = ()
    infoplus_only: tuple[SourceOnly, ...] = ()
    ignored: frozenset[str] = field(default_factory=frozenset)

    @property
    def exact_matches(self) -> list[ExactMatch]:
        return list(self.strict.exact) + list(self.loose.exact)

    @property
    def discrepancies(self) -> list[Discrepancy]:
        return list(self.strict.discrepancies) + list(self.loose.discrepancies)


def classify_pair(
    entry_a: NormalizedEntry,
    entry_b: NormalizedEntry,
    match_type: MatchType,
    normalized_sku: str,
) -> ExactMatch | Discrepancy:
    """Equal quantities are an exact match; anything else is a discrepancy."""
    display_sku = entry_a.original_sku or entry_b.original_sku or normalized_sku
    quantity_a = entry_a.quantity
    quantity_b = entry_b.quantity

    if quantity_a == quantity_b:
        return ExactMatch(
            sku=display_sku,
            quantity=quantity_a,
            match_type=match_type,
            normalized_sku=normalized_sku,
            brightpearl_sku=entry_a.original_sku,
            infoplus_sku=entry_b.original_sku,
        )

    product_name = _first_known(entry_a.product_name, entry_b.product_name)
    return Discrepancy(
        sku=display_sku,
        product_name=product_name,
        brightpearl_stock=quantity_a,
        infoplus_stock=quantity_b,
        difference=quantity_a - quantity_b,
        percentage_diff=percentage_difference(quantity_a, quantity_b),
        match_type=match_type,
        normalized_sku=normalized_sku,
        brightpearl_sku=entry_a.original_sku,
        infoplus_sku=entry_b.original_sku,
        brand=entry_a.item.brand or entry_b.item.brand,
    )


def _first_known(*names: Optional[str]) -> str:
    for name in names:
        if name and name != UNKNOWN_PRODUCT:
            return name
    return UNKNOWN_PRODUCT


def _ordered_union(first: Iterable[str], second: Iterable[str]) -> list[str]:
    keys = dict.fromkeys(first)
    keys.update(dict.fromkeys(second))
    return list(keys)


def _pair_phase(
    pairs: Iterable[tuple[str, NormalizedEntry, NormalizedEntry]],
    match_type: MatchType,
    ignored_skus: frozenset[str],
) -> PhaseResult:
    exact: list[ExactMatch] = []
    discrepancies: list[Discrepancy] = []
    settled_a: set[str] = set()
    settled_b: set[str] = set()
    ignored_a: set[str] = set()
    ignored_b: set[str] = set()
    count = 0

    for key, entry_a, entry_b in pairs:
        display_sku = entry_a.original_sku or entry_b.original_sku
        if display_sku in ignored_skus:
            logger.debug("ignored_sku_skipped", sku=display_sku, match_type=match_type.value)
            ignored_a.update(entry_a.skus)
            ignored_b.update(entry_b.skus)
            continue

        record = classify_pair(entry_a, entry_b, match_type, key)
        if isinstance(record, ExactMatch):
            exact.append(record)
        else:
            discrepancies.append(record)
        settled_a.update(entry_a.skus)
        settled_b.update(entry_b.skus)
        count += 1

    return PhaseResult(
        exact=tuple(exact),
        discrepancies=tuple(discrepancies),
        settled_a=frozenset(settled_a),
        settled_b=frozenset(settled_b),
        ignored_a=frozenset(ignored_a),
        ignored_b=frozenset(ignored_b),
        pairs=count,
    )


def strict_phase(
    index_a: NormalizedIndex,
    index_b: NormalizedIndex,
    ignored_skus: frozenset[str] = frozenset(),
) -> PhaseResult:
    """Pair every strict key present in both sources."""
    keys = _ordered_union(index_a.strict, index_b.strict)
    pairs = (
        (key, index_a.strict[key], index_b.strict[key])
        for key in keys
        if key in index_a.strict and key in index_b.strict
    )
    return _pair_phase(pairs, MatchType.STRICT, ignored_skus)


def loose_phase(
    index_a: NormalizedIndex,
    index_b: NormalizedIndex,
    consumed_a: frozenset[str],
    consumed_b: frozenset[str],
    ignored_skus: frozenset[str] = frozenset(),
) -> PhaseResult:
    """
    Pair loose keys across sources where neither side is already settled.

    consumed_* are the raw SKUs settled or ignored by the strict phase.
    """
    def pairs():
        for key in _ordered_union(index_a.loose, index_b.loose):
            entry_a = index_a.loose_lookup(key)
            entry_b = index_b.loose_lookup(key)
            if entry_a is None or entry_b is None:
                continue
            if consumed_a.intersection(entry_a.skus) or consumed_b.intersection(entry_b.skus):
                continue
            yield key, entry_a, entry_b

    return _pair_phase(pairs(), MatchType.LOOSE, ignored_skus)


def residual_phase(
    snapshot: InventorySnapshot,
    consumed: frozenset[str],
    ignored_skus: frozenset[str] = frozenset(),
) -> tuple[SourceOnly, ...]:
    """Every raw SKU not consumed by a pairing phase, minus ignored ones."""
    return tuple(
        SourceOnly(
            sku=sku,
            quantity=item.quantity,
            source=snapshot.source,
            product_name=item.product_name,
        )
        for sku, item in snapshot.items.items()
        if sku not in consumed and sku not in ignored_skus
    )


def match_inventories(
    snapshot_a: InventorySnapshot,
    snapshot_b: InventorySnapshot,
    index_a: NormalizedIndex,
    index_b: NormalizedIndex,
    ignored_skus: frozenset[str] = frozenset(),
) -> MatchOutcome:
    """
    Run strict, loose and residual phases.

    Source A is Brightpearl and source B is Infoplus; display SKUs and
    the sign of `difference` follow that orientation.
    """
    strict = strict_phase(index_a, index_b, ignored_skus)
    loose = loose_phase(index_a, index_b, strict.consumed_a, strict.consumed_b, ignored_skus)

    consumed_a = strict.consumed_a | loose.consumed_a
    consumed_b = strict.consumed_b | loose.consumed_b

    outcome = MatchOutcome(
        strict=strict,
        loose=loose,
        brightpearl_only=residual_phase(snapshot_a, consumed_a, ignored_skus),
        infoplus_only=residual_phase(snapshot_b, consumed_b, ignored_skus),
        ignored=(
            strict.ignored_a | strict.ignored_b | loose.ignored_a | loose.ignored_b
            | (ignored_skus & (set(snapshot_a.items) | set(snapshot_b.items)))
        ),
    )

    logger.info(
        "matching_complete",
        strict_matches=strict.pairs,
        loose_matches=loose.pairs,
        exact_matches=len(outcome.exact_matches),
        discrepancies=len(outcome.discrepancies),
        brightpearl_only=len(outcome.brightpearl_only),
        infoplus_only=len(outcome.infoplus_only),
        ignored=len(outcome.ignored)
    )
    return outcome