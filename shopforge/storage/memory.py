"""In-memory storage backend for ShopForge.

Records are copied on the way in and out so callers never hold live
references to stored state, which mirrors how the SQL backend behaves.
"""

from __future__ import annotations

from collections import deque
from dataclasses import replace
from datetime import datetime, timezone
from itertools import count
from typing import Deque, Iterable, Sequence

from ..enums import BannerStatus, Rarity
from .base import (
    AuditStore,
    BannerRecord,
    BannerStore,
    ItemRecord,
    ItemStore,
    RarityPriceRecord,
    RarityPriceStore,
    UniqueViolation,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _start_key(record: BannerRecord) -> tuple:
    start = record.start_date
    if start is not None and start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    # Banners without a start bound sort first.
    return (start is not None, start or datetime.min.replace(tzinfo=timezone.utc), record.banner_id)


class InMemoryBannerStore(BannerStore):
    def __init__(self) -> None:
        self._records: dict[int, BannerRecord] = {}
        self._ids = count(1)

    async def get(self, banner_id: int) -> BannerRecord | None:
        record = self._records.get(banner_id)
        if record is None or record.is_deleted:
            return None
        return replace(record)

    async def add(self, record: BannerRecord) -> BannerRecord:
        now = _utcnow()
        stored = replace(record, banner_id=next(self._ids), created_at=now, updated_at=now)
        self._records[stored.banner_id] = stored
        return replace(stored)

    async def save(self, record: BannerRecord) -> BannerRecord:
        if record.banner_id not in self._records:
            raise KeyError(f"Banner {record.banner_id} not found")
        stored = replace(record, updated_at=_utcnow())
        self._records[stored.banner_id] = stored
        return replace(stored)

    async def soft_delete(self, banner_id: int, *, deleted_by: int | None = None) -> bool:
        record = self._records.get(banner_id)
        if record is None or record.is_deleted:
            return False
        record.deleted_at = _utcnow()
        record.deleted_by = deleted_by
        return True

    async def list_by_status(
        self, status: BannerStatus, *, offset: int = 0, limit: int = 50
    ) -> Sequence[BannerRecord]:
        matching = sorted(
            (rec for rec in self._records.values() if rec.status == status and not rec.is_deleted),
            key=_start_key,
        )
        return [replace(rec) for rec in matching[offset : offset + limit]]

    async def count_by_status(self, status: BannerStatus) -> int:
        return sum(
            1 for rec in self._records.values() if rec.status == status and not rec.is_deleted
        )

    async def get_successor(self, banner_id: int) -> BannerRecord | None:
        for record in self._records.values():
            if record.predecessor_id == banner_id and not record.is_deleted:
                return replace(record)
        return None


class InMemoryItemStore(ItemStore):
    def __init__(self) -> None:
        self._records: dict[int, ItemRecord] = {}
        self._ids = count(1)

    async def get(self, item_id: int) -> ItemRecord | None:
        record = self._records.get(item_id)
        if record is None or record.is_deleted:
            return None
        return replace(record)

    async def count_live(self, banner_id: int) -> int:
        return sum(1 for _ in self._live(banner_id))

    async def live_catalog_ids(self, banner_id: int) -> set[int]:
        return {rec.catalog_id for rec in self._live(banner_id)}

    async def list_for_banner(self, banner_id: int) -> Sequence[ItemRecord]:
        return [replace(rec) for rec in sorted(self._live(banner_id), key=lambda r: r.item_id)]

    async def add_many(self, records: Sequence[ItemRecord]) -> list[ItemRecord]:
        taken = {(rec.banner_id, rec.catalog_id) for rec in self._records.values() if not rec.is_deleted}
        for record in records:
            key = (record.banner_id, record.catalog_id)
            if key in taken:
                raise UniqueViolation(
                    f"Catalog entity {record.catalog_id} already in banner {record.banner_id}"
                )
            taken.add(key)

        now = _utcnow()
        stored: list[ItemRecord] = []
        for record in records:
            item = replace(record, item_id=next(self._ids), created_at=now, updated_at=now)
            self._records[item.item_id] = item
            stored.append(replace(item))
        return stored

    async def save(self, record: ItemRecord) -> ItemRecord:
        if record.item_id not in self._records:
            raise KeyError(f"Item {record.item_id} not found")
        for other in self._live(record.banner_id):
            if other.item_id != record.item_id and other.catalog_id == record.catalog_id:
                raise UniqueViolation(
                    f"Catalog entity {record.catalog_id} already in banner {record.banner_id}"
                )
        stored = replace(record, updated_at=_utcnow())
        self._records[stored.item_id] = stored
        return replace(stored)

    async def set_prices(
        self, banner_id: int, item_ids: Iterable[int], price: int, *, updated_by: int | None = None
    ) -> int:
        wanted = set(item_ids)
        now = _utcnow()
        updated = 0
        for record in self._live(banner_id):
            if record.item_id in wanted:
                record.price = price
                record.updated_by = updated_by
                record.updated_at = now
                updated += 1
        return updated

    async def increment_purchased(self, item_id: int, quantity: int) -> ItemRecord | None:
        record = self._records.get(item_id)
        if record is None or record.is_deleted:
            return None
        record.purchased_count += quantity
        record.updated_at = _utcnow()
        return replace(record)

    async def soft_delete(self, item_id: int, *, deleted_by: int | None = None) -> bool:
        record = self._records.get(item_id)
        if record is None or record.is_deleted:
            return False
        record.deleted_at = _utcnow()
        record.deleted_by = deleted_by
        return True

    def _live(self, banner_id: int) -> Iterable[ItemRecord]:
        return (
            rec
            for rec in self._records.values()
            if rec.banner_id == banner_id and not rec.is_deleted
        )


class InMemoryRarityPriceStore(RarityPriceStore):
    def __init__(self) -> None:
        self._records: dict[int, RarityPriceRecord] = {}
        self._ids = count(1)

    async def get(self, entry_id: int) -> RarityPriceRecord | None:
        record = self._records.get(entry_id)
        if record is None or record.deleted_at is not None:
            return None
        return replace(record)

    async def get_by_rarity(self, rarity: Rarity) -> RarityPriceRecord | None:
        for record in self._records.values():
            if record.rarity == rarity and record.deleted_at is None:
                return replace(record)
        return None

    async def add(self, record: RarityPriceRecord) -> RarityPriceRecord:
        if await self.get_by_rarity(record.rarity) is not None:
            raise UniqueViolation(f"Rarity {record.rarity.value} already has a price entry")
        now = _utcnow()
        stored = replace(record, entry_id=next(self._ids), created_at=now, updated_at=now)
        self._records[stored.entry_id] = stored
        return replace(stored)

    async def save(self, record: RarityPriceRecord) -> RarityPriceRecord:
        if record.entry_id not in self._records:
            raise KeyError(f"Rarity price {record.entry_id} not found")
        owner = await self.get_by_rarity(record.rarity)
        if owner is not None and owner.entry_id != record.entry_id:
            raise UniqueViolation(f"Rarity {record.rarity.value} already has a price entry")
        stored = replace(record, updated_at=_utcnow())
        self._records[stored.entry_id] = stored
        return replace(stored)

    async def soft_delete(self, entry_id: int, *, deleted_by: int | None = None) -> bool:
        record = self._records.get(entry_id)
        if record is None or record.deleted_at is not None:
            return False
        record.deleted_at = _utcnow()
        record.deleted_by = deleted_by
        return True

    async def list_live(self) -> Sequence[RarityPriceRecord]:
        live = [rec for rec in self._records.values() if rec.deleted_at is None]
        return [replace(rec) for rec in sorted(live, key=lambda r: r.rarity.rank)]


class InMemoryAuditStore(AuditStore):
    def __init__(self, *, maxlen: int = 1000) -> None:
        self._entries: Deque[tuple[datetime, str, dict]] = deque(maxlen=maxlen)

    async def add_entry(self, action: str, payload: dict) -> None:
        self._entries.append((_utcnow(), action, payload))

    def dump(self) -> list[tuple[datetime, str, dict]]:
        return list(self._entries)
