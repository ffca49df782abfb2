"""
SKU normalization and per-source lookup indexes.

Two canonical keys per raw SKU:
- strict: trimmed and lower-cased, separators kept ("2XL-407" -> "2xl-407")
- loose: strict with everything outside [a-z0-9] removed ("QB-TOWELS" -> "qbtowels")

A loose entry is only indexed when it differs from the strict key; a
separator-free SKU is already in loose form and is found through the
strict map (see NormalizedIndex.loose_lookup).
"""

import re
from dataclasses import dataclass, field
from typing import Optional

import structlog

from exceptions import SkuCollisionError
from models.inventory import InventoryItem, InventorySnapshot, InventorySource
from models.reconciliation import MatchType, SkuCollision
from models.run_config import CollisionPolicy

logger = structlog.get_logger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_strict(sku: Optional[str]) -> str:
    """Case-insensitive key; separators preserved."""
    if not isinstance(sku, str):
        return ""
    return sku.strip().lower()


def normalize_loose(sku: Optional[str]) -> str:
    """Case- and separator-insensitive key."""
    return _NON_ALNUM.sub("", normalize_strict(sku))


@dataclass(frozen=True)
class NormalizedEntry:
    """
    One indexed SKU.

    merged_skus lists raw SKUs folded into this entry under the merge
    policy; quantity already includes theirs.
    """

    key: str
    original_sku: str
    item: InventoryItem
    quantity: int
    merged_skus: tuple[str, ...] = ()

    @property
    def skus(self) -> tuple[str, ...]:
        """Every raw SKU this entry stands for."""
        return (self.original_sku,) + self.merged_skus

    @property
    def product_name(self) -> str:
        return self.item.product_name

    def absorb(self, other: InventoryItem) -> "NormalizedEntry":
        return NormalizedEntry(
            key=self.key,
            original_sku=self.original_sku,
            item=self.item,
            quantity=self.quantity + other.quantity,
            merged_skus=self.merged_skus + (other.sku,),
        )


@dataclass(frozen=True)
class NormalizedIndex:
    """Strict and loose lookup maps for one source's snapshot."""

    source: InventorySource
    strict: dict[str, NormalizedEntry] = field(default_factory=dict)
    loose: dict[str, NormalizedEntry] = field(default_factory=dict)
    collisions: tuple[SkuCollision, ...] = ()

    def loose_lookup(self, key: str) -> Optional[NormalizedEntry]:
        """
        Entry whose loose key is `key`.

        Loose-only entries first; otherwise a strict entry whose key is
        already separator-free, since its loose key equals its strict key.
        """
        entry = self.loose.get(key)
        if entry is not None:
            return entry
        entry = self.strict.get(key)
        if entry is not None and normalize_loose(entry.key) == key:
            return entry
        return None


def build_index(
    snapshot: InventorySnapshot,
    policy: CollisionPolicy = CollisionPolicy.FIRST_WINS,
) -> NormalizedIndex:
    """
    Index a snapshot by strict and loose keys, in snapshot order.

    Collisions inside one source:
    - FIRST_WINS: first-seen SKU keeps the key; later ones are left out
      of matching (a SKU that lost its strict key is not loose-indexed
      either) and surface as source-only.
    - MERGE: later quantities are added to the first-seen entry.
    - REJECT: SkuCollisionError.

    Raises:
        SkuCollisionError: Collision under the reject policy
    """
    strict: dict[str, NormalizedEntry] = {}
    loose: dict[str, NormalizedEntry] = {}
    strict_losers: dict[str, list[str]] = {}
    loose_losers: dict[str, list[str]] = {}

    for raw_sku, item in snapshot.items.items():
        strict_key = normalize_strict(raw_sku)
        if not strict_key:
            continue
        loose_key = normalize_loose(raw_sku)

        if strict_key in strict:
            _collide(snapshot.source, policy, strict, strict_key, item, strict_losers)
            continue
        strict[strict_key] = NormalizedEntry(strict_key, raw_sku, item, item.quantity)

        if not loose_key or loose_key == strict_key:
            continue
        if loose_key in loose:
            _collide(snapshot.source, policy, loose, loose_key, item, loose_losers)
            continue
        loose[loose_key] = NormalizedEntry(loose_key, raw_sku, item, item.quantity)

    collisions = tuple(
        SkuCollision(
            source=snapshot.source,
            key=key,
            kept_sku=index[key].original_sku,
            colliding_skus=losers,
            key_type=key_type,
        )
        for key_type, index, by_key in (
            (MatchType.STRICT, strict, strict_losers),
            (MatchType.LOOSE, loose, loose_losers),
        )
        for key, losers in by_key.items()
    )

    if collisions:
        logger.warning(
            "sku_collisions_detected",
            source=snapshot.source.value,
            policy=policy.value,
            count=len(collisions),
            sample=[c.key for c in collisions[:5]]
        )

    logger.info(
        "sku_index_built",
        source=snapshot.source.value,
        original=snapshot.item_count,
        strict=len(strict),
        loose=len(loose)
    )

    return NormalizedIndex(
        source=snapshot.source,
        strict=strict,
        loose=loose,
        collisions=collisions,
    )


def _collide(
    source: InventorySource,
    policy: CollisionPolicy,
    index: dict[str, NormalizedEntry],
    key: str,
    item: InventoryItem,
    losers: dict[str, list[str]],
) -> None:
    kept = index[key]
    if policy == CollisionPolicy.REJECT:
        raise SkuCollisionError(source.value, key, [kept.original_sku, item.sku])
    if policy == CollisionPolicy.MERGE:
        index[key] = kept.absorb(item)
    losers.setdefault(key, []).append(item.sku)
