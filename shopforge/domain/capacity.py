"""Per-banner item count bounds and catalog uniqueness."""

from __future__ import annotations

from collections import Counter
from typing import Sequence

from ..storage.base import BannerRecord, ItemStore
from .exceptions import CapacityExceeded, DuplicateItem


class ItemCapacityGuard:
    """Fast-fail checks run before items are written.

    These checks race with concurrent writers; the storage uniqueness index
    on (banner, catalog entity) is what actually keeps duplicates out.
    """

    def __init__(self, item_store: ItemStore) -> None:
        self._items = item_store

    async def check_capacity(self, banner: BannerRecord, amount: int) -> int:
        """Return the live item count, raising when ``amount`` more would not fit."""
        current = await self._items.count_live(banner.banner_id)
        if current + amount > banner.max_items:
            raise CapacityExceeded(banner.banner_id, current, amount, banner.max_items)
        return current

    async def check_add(self, banner: BannerRecord, incoming_catalog_ids: Sequence[int]) -> None:
        await self.check_capacity(banner, len(incoming_catalog_ids))

        repeated = sorted(cid for cid, seen in Counter(incoming_catalog_ids).items() if seen > 1)
        if repeated:
            raise DuplicateItem(banner.banner_id, tuple(repeated))

        existing = await self._items.live_catalog_ids(banner.banner_id)
        clashing = sorted(set(incoming_catalog_ids) & existing)
        if clashing:
            raise DuplicateItem(banner.banner_id, tuple(clashing))

    async def meets_minimum(self, banner: BannerRecord) -> bool:
        return await self._items.count_live(banner.banner_id) >= banner.min_items
