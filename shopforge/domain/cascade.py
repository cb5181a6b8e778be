"""Propagate rarity price changes to draft banners."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..enums import BannerStatus, Rarity
from ..storage.base import BannerRecord, BannerStore, ItemStore
from . import events
from .catalog import CatalogProvider
from .events import EventBus

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CascadeResult:
    updated_banners: int = 0
    updated_items: int = 0
    failed_banners: list[int] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed_banners


class PriceCascadeUpdater:
    """Rewrite item prices of one rarity across every preview banner.

    Each banner is its own unit of work: a failure on one banner is logged
    and recorded, and the walk continues with the next one. Banners already
    updated stay updated. Items already at the target price are skipped, so
    repeating a cascade with the same price leaves state unchanged.
    """

    def __init__(
        self,
        banner_store: BannerStore,
        item_store: ItemStore,
        catalog: CatalogProvider,
        *,
        page_size: int = 50,
        event_bus: EventBus | None = None,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._banners = banner_store
        self._items = item_store
        self._catalog = catalog
        self._page_size = page_size
        self._events = event_bus or EventBus()

    async def cascade(
        self, rarity: Rarity, new_price: int, *, actor_id: int | None = None
    ) -> CascadeResult:
        result = CascadeResult()
        rarity_cache: dict[int, Rarity | None] = {}
        offset = 0
        while True:
            page = await self._banners.list_by_status(
                BannerStatus.PREVIEW, offset=offset, limit=self._page_size
            )
            for banner in page:
                try:
                    changed = await self._update_banner(
                        banner, rarity, new_price, rarity_cache, actor_id
                    )
                except Exception:
                    logger.exception(
                        "Price cascade failed for banner %s (rarity %s)", banner.banner_id, rarity.value
                    )
                    result.failed_banners.append(banner.banner_id)
                    continue
                if changed:
                    result.updated_banners += 1
                    result.updated_items += changed
            if len(page) < self._page_size:
                break
            offset += self._page_size

        logger.info(
            "Cascaded %s price %s: %s items in %s banners, %s failed",
            rarity.value,
            new_price,
            result.updated_items,
            result.updated_banners,
            len(result.failed_banners),
        )
        await self._events.publish(
            events.CASCADE_COMPLETED,
            {
                "rarity": rarity.value,
                "price": new_price,
                "updated_banners": result.updated_banners,
                "updated_items": result.updated_items,
                "failed_banners": list(result.failed_banners),
            },
        )
        return result

    async def _update_banner(
        self,
        banner: BannerRecord,
        rarity: Rarity,
        new_price: int,
        rarity_cache: dict[int, Rarity | None],
        actor_id: int | None,
    ) -> int:
        targets: list[int] = []
        for item in await self._items.list_for_banner(banner.banner_id):
            if item.price == new_price:
                continue
            item_rarity = await self._rarity_of(item.catalog_id, rarity_cache)
            if item_rarity is rarity:
                targets.append(item.item_id)
        if not targets:
            return 0
        return await self._items.set_prices(
            banner.banner_id, targets, new_price, updated_by=actor_id
        )

    async def _rarity_of(self, catalog_id: int, cache: dict[int, Rarity | None]) -> Rarity | None:
        if catalog_id not in cache:
            entity = await self._catalog.get_entity_by_id(catalog_id)
            if entity is None:
                logger.warning("Catalog entity %s not found; item price left as is", catalog_id)
            cache[catalog_id] = entity.rarity if entity else None
        return cache[catalog_id]
