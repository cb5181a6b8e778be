"""Storage abstractions used by the ShopForge services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Protocol, Sequence

from ..enums import BannerStatus, Rarity


class UniqueViolation(RuntimeError):
    """Raised by stores when a write breaks a uniqueness constraint."""


@dataclass(slots=True)
class BannerRecord:
    banner_id: int | None = None
    name_key: str = ""
    start_date: datetime | None = None
    end_date: datetime | None = None
    status: BannerStatus = BannerStatus.PREVIEW
    min_items: int = 4
    max_items: int = 8
    enable_precreate: bool = False
    precreate_before_end_days: int = 2
    random_items_again: bool = False
    predecessor_id: int | None = None
    created_by: int | None = None
    updated_by: int | None = None
    deleted_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(slots=True)
class ItemRecord:
    banner_id: int
    catalog_id: int
    price: int
    item_id: int | None = None
    purchase_limit: int | None = None
    purchased_count: int = 0
    is_active: bool = True
    created_by: int | None = None
    updated_by: int | None = None
    deleted_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(slots=True)
class RarityPriceRecord:
    rarity: Rarity
    price: int
    entry_id: int | None = None
    created_by: int | None = None
    updated_by: int | None = None
    deleted_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None


class BannerStore(Protocol):
    async def get(self, banner_id: int) -> BannerRecord | None:
        """Return the live banner or None when absent or soft-deleted."""

    async def add(self, record: BannerRecord) -> BannerRecord:
        ...

    async def save(self, record: BannerRecord) -> BannerRecord:
        ...

    async def soft_delete(self, banner_id: int, *, deleted_by: int | None = None) -> bool:
        ...

    async def list_by_status(
        self, status: BannerStatus, *, offset: int = 0, limit: int = 50
    ) -> Sequence[BannerRecord]:
        """Live banners in ``status`` ordered by start date, then id."""

    async def count_by_status(self, status: BannerStatus) -> int:
        ...

    async def get_successor(self, banner_id: int) -> BannerRecord | None:
        ...


class ItemStore(Protocol):
    async def get(self, item_id: int) -> ItemRecord | None:
        ...

    async def count_live(self, banner_id: int) -> int:
        ...

    async def live_catalog_ids(self, banner_id: int) -> set[int]:
        ...

    async def list_for_banner(self, banner_id: int) -> Sequence[ItemRecord]:
        ...

    async def add_many(self, records: Sequence[ItemRecord]) -> list[ItemRecord]:
        """Persist every record or none of them.

        Raises ``UniqueViolation`` when a (banner, catalog entity) pair is
        already live.
        """

    async def save(self, record: ItemRecord) -> ItemRecord:
        ...

    async def set_prices(
        self, banner_id: int, item_ids: Iterable[int], price: int, *, updated_by: int | None = None
    ) -> int:
        """Update the price of the given live items of one banner in one unit of work."""

    async def increment_purchased(self, item_id: int, quantity: int) -> ItemRecord | None:
        """Atomically add ``quantity`` to the purchased count."""

    async def soft_delete(self, item_id: int, *, deleted_by: int | None = None) -> bool:
        ...


class RarityPriceStore(Protocol):
    async def get(self, entry_id: int) -> RarityPriceRecord | None:
        ...

    async def get_by_rarity(self, rarity: Rarity) -> RarityPriceRecord | None:
        ...

    async def add(self, record: RarityPriceRecord) -> RarityPriceRecord:
        """Raises ``UniqueViolation`` when the rarity already has a live entry."""

    async def save(self, record: RarityPriceRecord) -> RarityPriceRecord:
        ...

    async def soft_delete(self, entry_id: int, *, deleted_by: int | None = None) -> bool:
        ...

    async def list_live(self) -> Sequence[RarityPriceRecord]:
        ...


class AuditStore(Protocol):
    async def add_entry(self, action: str, payload: dict) -> None:
        ...
