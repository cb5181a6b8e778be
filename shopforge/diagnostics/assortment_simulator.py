"""Assortment simulation helpers."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from random import Random
from typing import Dict

from ..app import ShopApp
from ..domain.exceptions import ValidationError
from ..domain.sampler import RandomSource, WeightedRaritySampler
from ..enums import Rarity


@dataclass(slots=True)
class SimulationResult:
    batches: int
    amount: int
    tiers: Dict[Rarity, int] = field(default_factory=dict)
    short_batches: int = 0
    drawn: int = 0

    def share(self, rarity: Rarity) -> float:
        return self.tiers.get(rarity, 0) / self.drawn if self.drawn else 0.0


class AssortmentSimulator:
    """Monte-Carlo run of the sampler over the app's random-eligible catalog."""

    def __init__(self, app: ShopApp, *, rng: RandomSource | None = None) -> None:
        self._app = app
        self._sampler = WeightedRaritySampler(
            app.price_table,
            rng=rng or Random(),
            thresholds=app.config.assortment.tier_thresholds,
        )

    async def simulate(self, *, amount: int | None = None, batches: int = 1000) -> SimulationResult:
        if batches <= 0:
            raise ValidationError("batches must be positive")
        amount = amount if amount is not None else self._app.config.banners.default_max_items
        pool = list(await self._app.catalog.list_random_eligible_entities())

        counts: Counter[Rarity] = Counter()
        result = SimulationResult(batches=batches, amount=amount)
        for _ in range(batches):
            picked = self._sampler.draw(pool, amount)
            if len(picked) < amount:
                result.short_batches += 1
            counts.update(entity.rarity for entity in picked)
            result.drawn += len(picked)
        result.tiers = {rarity: counts.get(rarity, 0) for rarity in Rarity.randomizable()}
        return result
