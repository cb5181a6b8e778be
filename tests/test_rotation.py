from datetime import datetime, timedelta, timezone

import pytest

from shopforge.app import ShopApp
from shopforge.config import ShopForgeConfig
from shopforge.domain import events
from shopforge.domain.catalog import InMemoryCatalog
from shopforge.domain.sampler import ItemDraft
from shopforge.enums import BannerStatus, Rarity
from shopforge.storage.base import BannerRecord
from shopforge.testing import CatalogEntityFactory

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
TODAY = datetime(2026, 3, 10, tzinfo=timezone.utc)


@pytest.fixture()
def app() -> ShopApp:
    catalog = InMemoryCatalog(
        CatalogEntityFactory().pool({Rarity.COMMON: 6, Rarity.UNCOMMON: 3, Rarity.RARE: 2})
    )
    return ShopApp(ShopForgeConfig(rng_seed=5), catalog=catalog, clock=lambda: NOW)


async def _banner(app: ShopApp, status: BannerStatus, start_offset: int, end_offset: int, **extra):
    return await app.banner_store.add(
        BannerRecord(
            status=status,
            start_date=TODAY + timedelta(days=start_offset),
            end_date=TODAY + timedelta(days=end_offset),
            min_items=extra.pop("min_items", 1),
            max_items=extra.pop("max_items", 4),
            **extra,
        )
    )


async def _stock(app: ShopApp, banner_id: int, catalog_ids) -> None:
    await app.shop_items.create_batch(
        banner_id,
        [ItemDraft(banner_id=banner_id, catalog_id=cid, price=100) for cid in catalog_ids],
        enforce_window=False,
    )


@pytest.mark.asyncio()
async def test_active_banner_past_its_end_expires():
    app = ShopApp(ShopForgeConfig(), clock=lambda: NOW)
    ended = await _banner(app, BannerStatus.ACTIVE, -8, -1)
    ending_today = await _banner(app, BannerStatus.ACTIVE, -6, 0)

    result = await app.rotation.refresh_statuses()

    assert result.expired == [ended.banner_id]
    assert (await app.banner_store.get(ended.banner_id)).status is BannerStatus.EXPIRED
    assert (await app.banner_store.get(ending_today.banner_id)).status is BannerStatus.ACTIVE
    assert result.activated is None


@pytest.mark.asyncio()
async def test_earliest_eligible_preview_is_activated_when_nothing_is_on_sale(app):
    await _banner(app, BannerStatus.ACTIVE, -8, -1)
    later = await _banner(app, BannerStatus.PREVIEW, -1, 6)
    earlier = await _banner(app, BannerStatus.PREVIEW, -2, 5)
    future = await _banner(app, BannerStatus.PREVIEW, 2, 9)
    for banner in (later, earlier, future):
        await _stock(app, banner.banner_id, [1])
    activated = []

    async def listener(payload):
        activated.append(payload["banner_id"])

    app.event_bus.subscribe(events.BANNER_ACTIVATED, listener)
    result = await app.rotation.refresh_statuses()

    assert result.activated == earlier.banner_id
    assert activated == [earlier.banner_id]
    assert (await app.banner_store.get(later.banner_id)).status is BannerStatus.PREVIEW
    assert await app.banner_store.count_by_status(BannerStatus.ACTIVE) == 1


@pytest.mark.asyncio()
async def test_preview_below_its_minimum_is_not_activated(app):
    thin = await _banner(app, BannerStatus.PREVIEW, -1, 6, min_items=2)
    await _stock(app, thin.banner_id, [1])

    result = await app.rotation.refresh_statuses()

    assert result.activated is None
    assert (await app.banner_store.get(thin.banner_id)).status is BannerStatus.PREVIEW


@pytest.mark.asyncio()
async def test_activation_is_skipped_while_a_banner_is_on_sale(app):
    await _banner(app, BannerStatus.ACTIVE, -1, 6)
    waiting = await _banner(app, BannerStatus.PREVIEW, -1, 6)
    await _stock(app, waiting.banner_id, [1])

    result = await app.rotation.refresh_statuses()

    assert result.activated is None


@pytest.mark.asyncio()
async def test_precreate_copies_items_into_a_preview_successor(app):
    source = await _banner(
        app,
        BannerStatus.ACTIVE,
        -5,
        2,
        enable_precreate=True,
        precreate_before_end_days=2,
        created_by=8,
    )
    await _stock(app, source.banner_id, [1, 2, 3])

    report = await app.rotation.precreate_successors()

    successor_id = report.created[source.banner_id]
    successor = await app.banner_store.get(successor_id)
    assert successor.status is BannerStatus.PREVIEW
    assert successor.start_date == TODAY + timedelta(days=2)
    assert successor.end_date == TODAY + timedelta(days=9)
    assert successor.predecessor_id == source.banner_id
    assert successor.max_items == source.max_items
    copied = await app.item_store.list_for_banner(successor_id)
    assert sorted(item.catalog_id for item in copied) == [1, 2, 3]
    assert all(item.created_by == 8 for item in copied)
    assert not (await app.banner_store.get(source.banner_id)).enable_precreate


@pytest.mark.asyncio()
async def test_precreate_can_regenerate_items(app):
    source = await _banner(
        app,
        BannerStatus.ACTIVE,
        -5,
        1,
        enable_precreate=True,
        random_items_again=True,
        max_items=4,
    )

    report = await app.rotation.precreate_successors()

    items = await app.item_store.list_for_banner(report.created[source.banner_id])
    assert len(items) == 4
    assert len({item.catalog_id for item in items}) == 4


@pytest.mark.asyncio()
async def test_precreate_waits_for_its_trigger_date(app):
    await _banner(
        app, BannerStatus.ACTIVE, -1, 6, enable_precreate=True, precreate_before_end_days=2
    )
    report = await app.rotation.precreate_successors()
    assert report.created == {}


@pytest.mark.asyncio()
async def test_precreate_does_not_duplicate_an_existing_successor(app):
    source = await _banner(app, BannerStatus.ACTIVE, -5, 1, enable_precreate=True)
    first = await app.rotation.precreate_successors()

    banner = await app.banner_store.get(source.banner_id)
    banner.enable_precreate = True
    await app.banner_store.save(banner)
    second = await app.rotation.precreate_successors()

    assert len(first.created) == 1
    assert second.created == {}
    assert second.skipped == [source.banner_id]


@pytest.mark.asyncio()
async def test_precreate_failure_is_isolated_per_banner(app, monkeypatch):
    broken = await _banner(app, BannerStatus.ACTIVE, -5, 1, enable_precreate=True)
    healthy = await _banner(app, BannerStatus.ACTIVE, -4, 1, enable_precreate=True)
    original = app.shop_items.create_batch

    async def create_batch(banner_id, drafts, **kwargs):
        successor = await app.banner_store.get(banner_id)
        if successor.predecessor_id == broken.banner_id:
            raise RuntimeError("database went away")
        return await original(banner_id, drafts, **kwargs)

    monkeypatch.setattr(app.shop_items, "create_batch", create_batch)
    report = await app.rotation.precreate_successors()

    assert report.failed == [broken.banner_id]
    assert healthy.banner_id in report.created
    assert (await app.banner_store.get(broken.banner_id)).enable_precreate
