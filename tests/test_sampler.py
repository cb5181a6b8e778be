from random import Random

import pytest

from shopforge.domain.catalog import CatalogEntity
from shopforge.domain.exceptions import ValidationError
from shopforge.domain.pricing import RarityPriceTable
from shopforge.domain.sampler import WeightedRaritySampler, build_tiers
from shopforge.enums import Rarity
from shopforge.storage.memory import InMemoryRarityPriceStore
from shopforge.testing import CatalogEntityFactory, ScriptedRandom


def _entity(entity_id: int, rarity: Rarity) -> CatalogEntity:
    return CatalogEntity(entity_id=entity_id, name=f"entity-{entity_id}", rarity=rarity)


def _sampler(values=None, *, rng=None) -> WeightedRaritySampler:
    table = RarityPriceTable(InMemoryRarityPriceStore())
    return WeightedRaritySampler(table, rng=rng or ScriptedRandom(values or []))


@pytest.mark.parametrize(
    ("roll", "expected"),
    [
        (0.0, Rarity.COMMON),
        (0.3999, Rarity.COMMON),
        (0.40, Rarity.UNCOMMON),
        (0.6999, Rarity.UNCOMMON),
        (0.70, Rarity.RARE),
        (0.8999, Rarity.RARE),
        (0.90, Rarity.EPIC),
        (0.9999, Rarity.EPIC),
    ],
)
def test_pick_tier_uses_cumulative_thresholds(roll, expected):
    assert _sampler().pick_tier(roll) is expected


def test_second_epic_roll_is_downgraded_to_rare():
    pool = [_entity(1, Rarity.EPIC), _entity(2, Rarity.RARE)]
    sampler = _sampler([0.95, 0.0, 0.95, 0.0])

    picked = sampler.draw(pool, 2)

    assert [entity.entity_id for entity in picked] == [1, 2]
    assert sum(1 for entity in picked if entity.rarity is Rarity.EPIC) == 1


def test_downgraded_draw_falls_back_to_common_when_rare_is_empty():
    pool = [_entity(1, Rarity.EPIC), _entity(2, Rarity.EPIC), _entity(3, Rarity.COMMON)]
    sampler = _sampler([0.95, 0.0, 0.95, 0.0])

    picked = sampler.draw(pool, 2)

    assert [entity.entity_id for entity in picked] == [1, 3]


def test_empty_epic_bucket_falls_back_to_common():
    pool = [_entity(1, Rarity.COMMON), _entity(2, Rarity.COMMON)]
    sampler = _sampler([0.95, 0.0, 0.1, 0.0])

    picked = sampler.draw(pool, 2)

    assert [entity.entity_id for entity in picked] == [1, 2]


def test_exhausted_buckets_shorten_the_batch():
    pool = [_entity(1, Rarity.RARE)]
    rng = ScriptedRandom([0.8, 0.0, 0.8, 0.1])
    sampler = _sampler(rng=rng)

    picked = sampler.draw(pool, 3)

    assert [entity.entity_id for entity in picked] == [1]
    assert rng.consumed == 4


def test_draw_is_without_replacement():
    pool = [_entity(idx, Rarity.COMMON) for idx in range(1, 6)]
    sampler = _sampler(rng=Random(3))

    picked = sampler.draw(pool, 5)

    assert sorted(entity.entity_id for entity in picked) == [1, 2, 3, 4, 5]


def test_top_tier_entities_are_never_drawn():
    pool = [_entity(1, Rarity.LEGENDARY), _entity(2, Rarity.LEGENDARY)]
    sampler = _sampler(rng=Random(1))

    assert sampler.draw(pool, 2) == []


def test_zero_amount_yields_nothing_and_negative_is_rejected():
    sampler = _sampler()
    assert sampler.draw([_entity(1, Rarity.COMMON)], 0) == []
    with pytest.raises(ValidationError):
        sampler.draw([_entity(1, Rarity.COMMON)], -1)


def test_batches_hold_unique_entities_and_at_most_one_epic():
    factory = CatalogEntityFactory(rng=Random(0))
    pool = factory.pool(
        {Rarity.COMMON: 4, Rarity.UNCOMMON: 4, Rarity.RARE: 4, Rarity.EPIC: 4}
    )
    for seed in range(200):
        sampler = _sampler(rng=Random(seed))
        picked = sampler.draw(pool, 8)
        ids = [entity.entity_id for entity in picked]
        assert len(ids) == len(set(ids))
        assert sum(1 for entity in picked if entity.rarity is Rarity.EPIC) <= 1


def test_batch_size_matches_request_while_common_bucket_lasts():
    factory = CatalogEntityFactory(rng=Random(0))
    pool = factory.pool({Rarity.COMMON: 10, Rarity.EPIC: 1})
    for seed in range(50):
        picked = _sampler(rng=Random(seed)).draw(pool, 6)
        assert len(picked) == 6


@pytest.mark.asyncio()
async def test_sample_prices_drafts_from_configured_and_default_prices():
    table = RarityPriceTable(InMemoryRarityPriceStore())
    await table.set_price(Rarity.COMMON, 150)
    sampler = WeightedRaritySampler(table, rng=ScriptedRandom([0.1, 0.0, 0.5, 0.0]))
    pool = [_entity(1, Rarity.COMMON), _entity(2, Rarity.UNCOMMON)]

    drafts = await sampler.sample(10, pool, 2)

    assert [(d.catalog_id, d.price) for d in drafts] == [(1, 150), (2, 250)]
    assert all(d.banner_id == 10 for d in drafts)
    assert all(d.purchase_limit == 1 and d.is_active for d in drafts)


def test_custom_thresholds_shift_tier_boundaries():
    table = RarityPriceTable(InMemoryRarityPriceStore())
    sampler = WeightedRaritySampler(
        table,
        rng=ScriptedRandom([]),
        thresholds={
            Rarity.COMMON: 0.25,
            Rarity.UNCOMMON: 0.5,
            Rarity.RARE: 0.75,
            Rarity.EPIC: 1.0,
        },
    )
    assert sampler.pick_tier(0.3) is Rarity.UNCOMMON
    assert sampler.pick_tier(0.8) is Rarity.EPIC


@pytest.mark.parametrize(
    "thresholds",
    [
        {Rarity.COMMON: 0.4, Rarity.UNCOMMON: 0.7, Rarity.RARE: 1.0},
        {Rarity.COMMON: 0.4, Rarity.UNCOMMON: 0.3, Rarity.RARE: 0.9, Rarity.EPIC: 1.0},
        {Rarity.COMMON: 0.4, Rarity.UNCOMMON: 0.7, Rarity.RARE: 0.8, Rarity.EPIC: 0.9},
        {
            Rarity.COMMON: 0.2,
            Rarity.UNCOMMON: 0.4,
            Rarity.RARE: 0.6,
            Rarity.EPIC: 0.8,
            Rarity.LEGENDARY: 1.0,
        },
    ],
)
def test_build_tiers_rejects_malformed_thresholds(thresholds):
    with pytest.raises(ValueError):
        build_tiers(thresholds)
