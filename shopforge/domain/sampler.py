"""Randomized assortment generation by rarity tier."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from random import Random
from typing import Iterable, Mapping, Protocol, Sequence

from ..config import DEFAULT_TIER_THRESHOLDS
from ..enums import Rarity
from .catalog import CatalogEntity
from .exceptions import ValidationError
from .pricing import RarityPriceTable

logger = logging.getLogger(__name__)


class RandomSource(Protocol):
    def random(self) -> float:
        """Return a uniform float in [0, 1)."""


@dataclass(slots=True)
class ItemDraft:
    """Unpersisted item bound to a banner."""

    banner_id: int
    catalog_id: int
    price: int
    purchase_limit: int | None = None
    is_active: bool = True
    rarity: Rarity | None = None


def build_tiers(thresholds: Mapping[Rarity, float]) -> list[tuple[Rarity, float]]:
    """Validate cumulative thresholds and return them ordered by rarity."""
    expected = set(Rarity.randomizable())
    if set(thresholds) != expected:
        missing = sorted(r.value for r in expected - set(thresholds))
        extra = sorted(r.value for r in set(thresholds) - expected)
        raise ValueError(
            "Tier thresholds must cover exactly the randomizable tiers "
            f"(missing: {missing}, unexpected: {extra})"
        )
    tiers = sorted(thresholds.items(), key=lambda pair: pair[0].rank)
    previous = 0.0
    for rarity, upper in tiers:
        if not previous < upper <= 1.0:
            raise ValueError(f"Threshold for {rarity.value} must increase within (0, 1], got {upper}")
        previous = upper
    if tiers[-1][1] != 1.0:
        raise ValueError("The highest tier threshold must be 1.0")
    return tiers


class WeightedRaritySampler:
    """Draw catalog entities under fixed per-tier probabilities.

    Each draw rolls a tier from the cumulative thresholds (by default
    COMMON 40%, UNCOMMON 30%, RARE 20%, EPIC 10%). Only one entity of the
    highest randomizable tier may appear per batch; a repeat roll of that
    tier is downgraded one step for that draw. An empty tier bucket falls
    back to the lowest tier, and when that is empty too the draw yields
    nothing, so a batch can come back shorter than requested. Entities are
    drawn without replacement.

    Every successful draw consumes two values from the random source: one
    for the tier and one for the position inside the chosen bucket. A draw
    that finds no entity consumes only the tier roll.
    """

    def __init__(
        self,
        price_table: RarityPriceTable,
        *,
        rng: RandomSource | None = None,
        thresholds: Mapping[Rarity, float] | None = None,
        default_purchase_limit: int | None = 1,
    ) -> None:
        self._prices = price_table
        self._rng = rng or Random()
        self._tiers = build_tiers(thresholds or DEFAULT_TIER_THRESHOLDS)
        self._default_purchase_limit = default_purchase_limit

        ordered = [rarity for rarity, _ in self._tiers]
        self._fallback_tier = ordered[0]
        self._exclusive_tier = ordered[-1]
        self._downgrade_tier = ordered[-2] if len(ordered) > 1 else ordered[0]

    @property
    def exclusive_tier(self) -> Rarity:
        return self._exclusive_tier

    def pick_tier(self, roll: float) -> Rarity:
        for rarity, upper in self._tiers:
            if roll < upper:
                return rarity
        return self._tiers[-1][0]

    def draw(self, pool: Iterable[CatalogEntity], amount: int) -> list[CatalogEntity]:
        if amount < 0:
            raise ValidationError(f"Amount must not be negative, got {amount}")

        buckets: dict[Rarity, list[CatalogEntity]] = {rarity: [] for rarity, _ in self._tiers}
        for entity in pool:
            bucket = buckets.get(entity.rarity)
            if bucket is not None:
                bucket.append(entity)

        picked: list[CatalogEntity] = []
        exclusive_taken = False
        for _ in range(amount):
            tier = self.pick_tier(self._rng.random())
            if tier is self._exclusive_tier and exclusive_taken:
                tier = self._downgrade_tier

            bucket = buckets[tier] or buckets[self._fallback_tier]
            if not bucket:
                continue

            index = min(int(self._rng.random() * len(bucket)), len(bucket) - 1)
            entity = bucket.pop(index)
            if entity.rarity is self._exclusive_tier:
                exclusive_taken = True
            picked.append(entity)

        if len(picked) < amount:
            logger.debug("Pool exhausted: drew %s of %s requested entities", len(picked), amount)
        return picked

    async def sample(
        self, banner_id: int, pool: Sequence[CatalogEntity], amount: int
    ) -> list[ItemDraft]:
        entities = self.draw(pool, amount)
        prices = await self._prices.resolve_prices(entity.rarity for entity in entities)
        return [
            ItemDraft(
                banner_id=banner_id,
                catalog_id=entity.entity_id,
                price=prices[entity.rarity],
                purchase_limit=self._default_purchase_limit,
                is_active=True,
                rarity=entity.rarity,
            )
            for entity in entities
        ]
