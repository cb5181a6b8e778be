import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from shopforge.app import ShopApp
from shopforge.config import ShopForgeConfig, StorageConfig
from shopforge.domain.catalog import CatalogEntity, InMemoryCatalog
from shopforge.domain.exceptions import DuplicateItem, RarityPriceConflict
from shopforge.domain.sampler import ItemDraft
from shopforge.enums import BannerStatus, Rarity
from shopforge.storage.base import BannerRecord, ItemRecord, RarityPriceRecord, UniqueViolation

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

CATALOG = [
    CatalogEntity(entity_id=1, name="Sproutling", rarity=Rarity.COMMON),
    CatalogEntity(entity_id=2, name="Tidefin", rarity=Rarity.UNCOMMON),
    CatalogEntity(entity_id=3, name="Emberpup", rarity=Rarity.RARE),
    CatalogEntity(entity_id=4, name="Voltmoth", rarity=Rarity.RARE),
]


@pytest.fixture()
def sql_app(tmp_path) -> ShopApp:
    dsn = f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}"
    config = ShopForgeConfig(storage=StorageConfig(backend="sqlalchemy", dsn=dsn), rng_seed=3)
    return ShopApp(config, catalog=InMemoryCatalog(CATALOG), clock=lambda: NOW)


async def _banner(app: ShopApp, *, status=BannerStatus.ACTIVE, start_offset: int = -1) -> BannerRecord:
    return await app.banner_store.add(
        BannerRecord(
            status=status,
            start_date=NOW + timedelta(days=start_offset),
            end_date=NOW + timedelta(days=6),
            min_items=1,
            max_items=5,
        )
    )


@pytest.mark.asyncio()
async def test_concurrent_purchases_accumulate_in_the_database(sql_app):
    await sql_app.init_backend()
    try:
        banner = await _banner(sql_app)
        [item] = await sql_app.create_items(
            banner.banner_id, [ItemDraft(banner_id=banner.banner_id, catalog_id=1, price=100)]
        )

        await asyncio.gather(
            sql_app.increment_purchased(item.item_id, 1),
            sql_app.increment_purchased(item.item_id, 1),
        )

        stored = await sql_app.item_store.get(item.item_id)
        assert stored.purchased_count == 2
    finally:
        await sql_app.close()


@pytest.mark.asyncio()
async def test_add_many_is_all_or_nothing(sql_app):
    await sql_app.init_backend()
    try:
        banner = await _banner(sql_app)
        store = sql_app.item_store
        await store.add_many([ItemRecord(banner_id=banner.banner_id, catalog_id=1, price=100)])

        with pytest.raises(UniqueViolation):
            await store.add_many(
                [
                    ItemRecord(banner_id=banner.banner_id, catalog_id=2, price=100),
                    ItemRecord(banner_id=banner.banner_id, catalog_id=1, price=100),
                ]
            )
        assert await store.live_catalog_ids(banner.banner_id) == {1}
    finally:
        await sql_app.close()


@pytest.mark.asyncio()
async def test_duplicate_batch_surfaces_as_domain_error(sql_app):
    await sql_app.init_backend()
    try:
        banner = await _banner(sql_app)
        drafts = [ItemDraft(banner_id=banner.banner_id, catalog_id=3, price=500)]
        await sql_app.create_items(banner.banner_id, drafts)
        with pytest.raises(DuplicateItem):
            await sql_app.create_items(banner.banner_id, drafts)
    finally:
        await sql_app.close()


@pytest.mark.asyncio()
async def test_soft_deleted_item_frees_the_unique_slot(sql_app):
    await sql_app.init_backend()
    try:
        banner = await _banner(sql_app)
        store = sql_app.item_store
        [first] = await store.add_many(
            [ItemRecord(banner_id=banner.banner_id, catalog_id=1, price=100)]
        )
        assert await store.soft_delete(first.item_id, deleted_by=4)
        assert not await store.soft_delete(first.item_id)

        [second] = await store.add_many(
            [ItemRecord(banner_id=banner.banner_id, catalog_id=1, price=120)]
        )
        assert second.item_id != first.item_id
        assert await store.get(first.item_id) is None
        assert await store.count_live(banner.banner_id) == 1
    finally:
        await sql_app.close()


@pytest.mark.asyncio()
async def test_one_live_price_entry_per_rarity(sql_app):
    await sql_app.init_backend()
    try:
        store = sql_app.price_store
        entry = await store.add(RarityPriceRecord(rarity=Rarity.EPIC, price=900))
        with pytest.raises(UniqueViolation):
            await store.add(RarityPriceRecord(rarity=Rarity.EPIC, price=950))
        with pytest.raises(RarityPriceConflict):
            await sql_app.price_table.create_entry(Rarity.EPIC, 990)

        await store.soft_delete(entry.entry_id)
        await store.add(RarityPriceRecord(rarity=Rarity.EPIC, price=950))
        assert await sql_app.get_rarity_price(Rarity.EPIC) == 950
    finally:
        await sql_app.close()


@pytest.mark.asyncio()
async def test_list_by_status_orders_by_start_and_pages(sql_app):
    await sql_app.init_backend()
    try:
        late = await _banner(sql_app, status=BannerStatus.PREVIEW, start_offset=2)
        early = await _banner(sql_app, status=BannerStatus.PREVIEW, start_offset=-3)
        middle = await _banner(sql_app, status=BannerStatus.PREVIEW, start_offset=0)
        await _banner(sql_app, status=BannerStatus.ACTIVE)
        store = sql_app.banner_store

        first_page = await store.list_by_status(BannerStatus.PREVIEW, offset=0, limit=2)
        second_page = await store.list_by_status(BannerStatus.PREVIEW, offset=2, limit=2)

        assert [b.banner_id for b in first_page] == [early.banner_id, middle.banner_id]
        assert [b.banner_id for b in second_page] == [late.banner_id]
        assert await store.count_by_status(BannerStatus.PREVIEW) == 3
        assert first_page[0].start_date.tzinfo is not None
    finally:
        await sql_app.close()


@pytest.mark.asyncio()
async def test_set_prices_reports_changed_rows(sql_app):
    await sql_app.init_backend()
    try:
        banner = await _banner(sql_app)
        other = await _banner(sql_app)
        store = sql_app.item_store
        items = await store.add_many(
            [ItemRecord(banner_id=banner.banner_id, catalog_id=cid, price=100) for cid in (1, 2)]
        )
        [foreign] = await store.add_many(
            [ItemRecord(banner_id=other.banner_id, catalog_id=1, price=100)]
        )

        changed = await store.set_prices(
            banner.banner_id, [items[0].item_id, foreign.item_id], 333, updated_by=2
        )

        assert changed == 1
        assert (await store.get(items[0].item_id)).price == 333
        assert (await store.get(foreign.item_id)).price == 100
        assert await store.set_prices(banner.banner_id, [], 1) == 0
    finally:
        await sql_app.close()


@pytest.mark.asyncio()
async def test_price_cascade_reaches_preview_items_in_the_database(sql_app):
    await sql_app.init_backend()
    try:
        preview = await _banner(sql_app, status=BannerStatus.PREVIEW)
        await sql_app.shop_items.create_batch(
            preview.banner_id,
            [
                ItemDraft(banner_id=preview.banner_id, catalog_id=3, price=500),
                ItemDraft(banner_id=preview.banner_id, catalog_id=4, price=480),
                ItemDraft(banner_id=preview.banner_id, catalog_id=1, price=100),
            ],
            enforce_window=False,
        )

        update = await sql_app.set_rarity_price(Rarity.RARE, 700, cascade=True, actor_id=1)

        assert update.cascade.updated_items == 2
        prices = {
            item.catalog_id: item.price
            for item in await sql_app.item_store.list_for_banner(preview.banner_id)
        }
        assert prices == {1: 100, 3: 700, 4: 700}
    finally:
        await sql_app.close()
