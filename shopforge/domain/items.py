"""Item creation, editing and purchase accounting for shop banners."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from ..config import MAX_RARITY_PRICE
from ..storage.base import AuditStore, BannerRecord, ItemRecord, ItemStore, UniqueViolation
from . import events
from .banner_window import BannerWindowValidator
from .capacity import ItemCapacityGuard
from .catalog import CatalogProvider
from .events import EventBus
from .exceptions import CatalogEntityNotFound, DuplicateItem, ItemNotFound, ValidationError
from .pricing import RarityPriceTable, validate_price
from .sampler import ItemDraft, WeightedRaritySampler
from .storage_errors import storage_errors

logger = logging.getLogger(__name__)

_DEFAULT_LIMIT: Any = object()


@dataclass(slots=True)
class ItemUpdate:
    """Fields an administrator may change on an existing item.

    ``None`` leaves a field untouched; use ``clear_purchase_limit`` to make an
    item unlimited. ``purchased_count`` is deliberately absent.
    """

    price: int | None = None
    purchase_limit: int | None = None
    clear_purchase_limit: bool = False
    is_active: bool | None = None
    catalog_id: int | None = None


def validate_purchase_limit(value: object) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Purchase limit must be an integer, got {value!r}")
    if value < 0:
        raise ValidationError(f"Purchase limit must not be negative, got {value}")
    return value


class ShopItemStore:
    """Orchestrate validated item writes for a banner.

    Creation always runs the window check, then the capacity and duplicate
    checks, then a single atomic storage write. A uniqueness violation raised
    by storage (a concurrent writer got there first) is reported as
    ``DuplicateItem`` and nothing from the batch is persisted.
    """

    def __init__(
        self,
        item_store: ItemStore,
        validator: BannerWindowValidator,
        capacity_guard: ItemCapacityGuard,
        sampler: WeightedRaritySampler,
        price_table: RarityPriceTable,
        catalog: CatalogProvider,
        *,
        default_purchase_limit: int | None = 1,
        max_price: int = MAX_RARITY_PRICE,
        audit_store: AuditStore | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._items = item_store
        self._validator = validator
        self._guard = capacity_guard
        self._sampler = sampler
        self._prices = price_table
        self._catalog = catalog
        self._default_purchase_limit = default_purchase_limit
        self._max_price = max_price
        self._audit = audit_store
        self._events = event_bus or EventBus()

    async def generate_assortment(
        self,
        banner_id: int,
        amount: int | None = None,
        *,
        enforce_window: bool = True,
    ) -> list[ItemDraft]:
        """Sample unpersisted drafts for the banner; ``amount`` defaults to the free slots."""
        banner = await self._banner(banner_id, enforce_window)
        async with storage_errors("generate assortment"):
            if amount is None:
                current = await self._items.count_live(banner_id)
                amount = max(banner.max_items - current, 0)
            elif amount < 0:
                raise ValidationError(f"Amount must not be negative, got {amount}")
            else:
                await self._guard.check_capacity(banner, amount)

            present = await self._items.live_catalog_ids(banner_id)
            pool = [
                entity
                for entity in await self._catalog.list_random_eligible_entities()
                if entity.entity_id not in present and entity.is_randomizable
            ]
            drafts = await self._sampler.sample(banner_id, pool, amount)

        logger.info(
            "Generated %s of %s requested drafts for banner %s", len(drafts), amount, banner_id
        )
        return drafts

    async def create_one(
        self,
        banner_id: int,
        catalog_id: int,
        *,
        price: int | None = None,
        purchase_limit: int | None = _DEFAULT_LIMIT,
        is_active: bool = True,
        actor_id: int | None = None,
        enforce_window: bool = True,
    ) -> ItemRecord:
        entity = await self._catalog.get_entity_by_id(catalog_id)
        if entity is None:
            raise CatalogEntityNotFound(catalog_id)
        if price is None:
            price = await self._prices.resolve_price(entity.rarity)
        if purchase_limit is _DEFAULT_LIMIT:
            purchase_limit = self._default_purchase_limit
        draft = ItemDraft(
            banner_id=banner_id,
            catalog_id=catalog_id,
            price=price,
            purchase_limit=purchase_limit,
            is_active=is_active,
            rarity=entity.rarity,
        )
        created = await self.create_batch(
            banner_id, [draft], actor_id=actor_id, enforce_window=enforce_window
        )
        return created[0]

    async def create_batch(
        self,
        banner_id: int,
        drafts: Sequence[ItemDraft],
        *,
        actor_id: int | None = None,
        enforce_window: bool = True,
    ) -> list[ItemRecord]:
        """Persist every draft or none of them."""
        banner = await self._banner(banner_id, enforce_window)
        records = [self._to_record(banner_id, draft, actor_id) for draft in drafts]
        if not records:
            return []

        catalog_ids = [record.catalog_id for record in records]
        async with storage_errors("create items"):
            await self._guard.check_add(banner, catalog_ids)
            try:
                created = await self._items.add_many(records)
            except UniqueViolation as exc:
                raise DuplicateItem(banner_id, tuple(sorted(set(catalog_ids)))) from exc

        logger.info("Created %s items in banner %s", len(created), banner_id)
        payload = {
            "banner_id": banner_id,
            "item_ids": [item.item_id for item in created],
            "catalog_ids": catalog_ids,
            "actor_id": actor_id,
        }
        if self._audit:
            await self._audit.add_entry("items.create", payload)
        await self._events.publish(events.ITEMS_CREATED, payload)
        return created

    async def update_item(
        self, item_id: int, changes: ItemUpdate, *, actor_id: int | None = None
    ) -> ItemRecord:
        async with storage_errors("update item"):
            item = await self._items.get(item_id)
            if item is None:
                raise ItemNotFound(item_id)
            await self._validator.require(item.banner_id)

            if changes.price is not None:
                item.price = validate_price(changes.price, maximum=self._max_price)
            if changes.clear_purchase_limit:
                item.purchase_limit = None
            elif changes.purchase_limit is not None:
                item.purchase_limit = validate_purchase_limit(changes.purchase_limit)
            if changes.is_active is not None:
                item.is_active = changes.is_active
            if changes.catalog_id is not None and changes.catalog_id != item.catalog_id:
                if await self._catalog.get_entity_by_id(changes.catalog_id) is None:
                    raise CatalogEntityNotFound(changes.catalog_id)
                if changes.catalog_id in await self._items.live_catalog_ids(item.banner_id):
                    raise DuplicateItem(item.banner_id, (changes.catalog_id,))
                item.catalog_id = changes.catalog_id
            item.updated_by = actor_id

            try:
                item = await self._items.save(item)
            except UniqueViolation as exc:
                raise DuplicateItem(item.banner_id, (item.catalog_id,)) from exc

        payload = {
            "item_id": item.item_id,
            "banner_id": item.banner_id,
            "catalog_id": item.catalog_id,
            "price": item.price,
            "purchase_limit": item.purchase_limit,
            "is_active": item.is_active,
            "actor_id": actor_id,
        }
        if self._audit:
            await self._audit.add_entry("item.update", payload)
        await self._events.publish(events.ITEM_UPDATED, payload)
        return item

    async def increment_purchased(self, item_id: int, qty: int) -> ItemRecord:
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise ValidationError(f"Quantity must be a positive integer, got {qty!r}")
        async with storage_errors("increment purchased count"):
            item = await self._items.increment_purchased(item_id, qty)
        if item is None:
            raise ItemNotFound(item_id)

        logger.debug("Item %s purchased count now %s", item_id, item.purchased_count)
        await self._events.publish(
            events.ITEM_PURCHASED,
            {"item_id": item_id, "quantity": qty, "purchased_count": item.purchased_count},
        )
        return item

    async def delete_item(self, item_id: int, *, actor_id: int | None = None) -> None:
        async with storage_errors("delete item"):
            deleted = await self._items.soft_delete(item_id, deleted_by=actor_id)
        if not deleted:
            raise ItemNotFound(item_id)
        if self._audit:
            await self._audit.add_entry("item.delete", {"item_id": item_id, "actor_id": actor_id})

    async def list_items(self, banner_id: int) -> Sequence[ItemRecord]:
        await self._validator.require(banner_id)
        async with storage_errors("list items"):
            return await self._items.list_for_banner(banner_id)

    async def _banner(self, banner_id: int, enforce_window: bool) -> BannerRecord:
        if enforce_window:
            return await self._validator.validate(banner_id)
        return await self._validator.require(banner_id)

    def _to_record(self, banner_id: int, draft: ItemDraft, actor_id: int | None) -> ItemRecord:
        if draft.banner_id != banner_id:
            raise ValidationError(
                f"Draft for catalog entity {draft.catalog_id} targets banner "
                f"{draft.banner_id}, not {banner_id}"
            )
        return ItemRecord(
            banner_id=banner_id,
            catalog_id=draft.catalog_id,
            price=validate_price(draft.price, maximum=self._max_price),
            purchase_limit=validate_purchase_limit(draft.purchase_limit),
            is_active=draft.is_active,
            created_by=actor_id,
            updated_by=actor_id,
        )
