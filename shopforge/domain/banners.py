"""Administrative banner lifecycle: creation, edits and the public listing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Sequence

from ..config import BannerConfig
from ..enums import BannerStatus
from ..storage.base import AuditStore, BannerRecord, BannerStore, ItemRecord, ItemStore
from . import events
from .banner_window import OFFERING_STATUS, Clock, is_within_window, start_of_day, utcnow
from .events import EventBus
from .exceptions import BannerNotFound, ValidationError
from .storage_errors import storage_errors

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BannerUpdate:
    name_key: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    clear_start_date: bool = False
    clear_end_date: bool = False
    status: BannerStatus | None = None
    min_items: int | None = None
    max_items: int | None = None
    enable_precreate: bool | None = None
    precreate_before_end_days: int | None = None
    random_items_again: bool | None = None


@dataclass(slots=True)
class BannerOffering:
    banner: BannerRecord
    items: Sequence[ItemRecord] = field(default_factory=list)


def _check_bounds(min_items: int, max_items: int) -> None:
    for name, value in (("min_items", min_items), ("max_items", max_items)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{name} must be an integer, got {value!r}")
    if min_items < 1:
        raise ValidationError(f"min_items must be at least 1, got {min_items}")
    if min_items > max_items:
        raise ValidationError(f"min_items {min_items} exceeds max_items {max_items}")


def _check_range(start: datetime | None, end: datetime | None) -> None:
    if start is not None and end is not None and start > end:
        raise ValidationError("Banner start date must not be after its end date")


class BannerService:
    """Create and maintain banners.

    Dates are stored at 00:00 UTC. A banner created without dates starts
    today and runs for ``BannerConfig.default_window_days``.
    """

    def __init__(
        self,
        banner_store: BannerStore,
        item_store: ItemStore,
        *,
        config: BannerConfig | None = None,
        clock: Clock | None = None,
        audit_store: AuditStore | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._banners = banner_store
        self._items = item_store
        self._config = config or BannerConfig()
        self._clock = clock or utcnow
        self._audit = audit_store
        self._events = event_bus or EventBus()

    async def create_banner(
        self,
        *,
        name_key: str = "",
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        status: BannerStatus = BannerStatus.PREVIEW,
        min_items: int | None = None,
        max_items: int | None = None,
        enable_precreate: bool = False,
        precreate_before_end_days: int | None = None,
        random_items_again: bool = False,
        predecessor_id: int | None = None,
        actor_id: int | None = None,
    ) -> BannerRecord:
        start = start_of_day(start_date if start_date is not None else self._clock())
        end = (
            start_of_day(end_date)
            if end_date is not None
            else start + timedelta(days=self._config.default_window_days)
        )
        _check_range(start, end)

        min_items = self._config.default_min_items if min_items is None else min_items
        max_items = self._config.default_max_items if max_items is None else max_items
        _check_bounds(min_items, max_items)

        if precreate_before_end_days is None:
            precreate_before_end_days = self._config.default_precreate_before_end_days
        if precreate_before_end_days < 0:
            raise ValidationError("precreate_before_end_days must not be negative")

        record = BannerRecord(
            name_key=name_key,
            start_date=start,
            end_date=end,
            status=status,
            min_items=min_items,
            max_items=max_items,
            enable_precreate=enable_precreate,
            precreate_before_end_days=precreate_before_end_days,
            random_items_again=random_items_again,
            predecessor_id=predecessor_id,
            created_by=actor_id,
            updated_by=actor_id,
        )
        async with storage_errors("create banner"):
            banner = await self._banners.add(record)
            if not banner.name_key:
                banner.name_key = f"shopBanner.name.{banner.banner_id}"
                banner = await self._banners.save(banner)

        logger.info(
            "Created %s banner %s (%s .. %s)",
            banner.status.value,
            banner.banner_id,
            banner.start_date,
            banner.end_date,
        )
        payload = {"banner_id": banner.banner_id, "status": banner.status.value, "actor_id": actor_id}
        if self._audit:
            await self._audit.add_entry("banner.create", payload)
        await self._events.publish(events.BANNER_CREATED, payload)
        return banner

    async def get_banner(self, banner_id: int) -> BannerRecord:
        async with storage_errors("get banner"):
            banner = await self._banners.get(banner_id)
        if banner is None:
            raise BannerNotFound(banner_id)
        return banner

    async def update_banner(
        self, banner_id: int, changes: BannerUpdate, *, actor_id: int | None = None
    ) -> BannerRecord:
        banner = await self.get_banner(banner_id)

        start = banner.start_date
        end = banner.end_date
        if changes.clear_start_date:
            start = None
        elif changes.start_date is not None:
            start = start_of_day(changes.start_date)
        if changes.clear_end_date:
            end = None
        elif changes.end_date is not None:
            end = start_of_day(changes.end_date)
        _check_range(start, end)

        min_items = banner.min_items if changes.min_items is None else changes.min_items
        max_items = banner.max_items if changes.max_items is None else changes.max_items
        _check_bounds(min_items, max_items)

        async with storage_errors("update banner"):
            if max_items < banner.max_items:
                current = await self._items.count_live(banner_id)
                if current > max_items:
                    raise ValidationError(
                        f"Banner {banner_id} already holds {current} items, more than {max_items}"
                    )

            banner.start_date = start
            banner.end_date = end
            banner.min_items = min_items
            banner.max_items = max_items
            if changes.name_key is not None:
                banner.name_key = changes.name_key
            if changes.status is not None:
                banner.status = changes.status
            if changes.enable_precreate is not None:
                banner.enable_precreate = changes.enable_precreate
            if changes.precreate_before_end_days is not None:
                if changes.precreate_before_end_days < 0:
                    raise ValidationError("precreate_before_end_days must not be negative")
                banner.precreate_before_end_days = changes.precreate_before_end_days
            if changes.random_items_again is not None:
                banner.random_items_again = changes.random_items_again
            banner.updated_by = actor_id
            banner = await self._banners.save(banner)

        if self._audit:
            await self._audit.add_entry(
                "banner.update",
                {"banner_id": banner_id, "status": banner.status.value, "actor_id": actor_id},
            )
        return banner

    async def delete_banner(self, banner_id: int, *, actor_id: int | None = None) -> None:
        async with storage_errors("delete banner"):
            deleted = await self._banners.soft_delete(banner_id, deleted_by=actor_id)
        if not deleted:
            raise BannerNotFound(banner_id)
        logger.info("Deleted banner %s", banner_id)
        if self._audit:
            await self._audit.add_entry("banner.delete", {"banner_id": banner_id, "actor_id": actor_id})

    async def list_offering(self, now: datetime | None = None) -> list[BannerOffering]:
        """Live banners currently on sale, with their active items."""
        now = now or self._clock()
        offerings: list[BannerOffering] = []
        offset = 0
        page_size = 50
        async with storage_errors("list offering"):
            while True:
                page = await self._banners.list_by_status(
                    OFFERING_STATUS, offset=offset, limit=page_size
                )
                for banner in page:
                    if not is_within_window(banner, now):
                        continue
                    items = [
                        item
                        for item in await self._items.list_for_banner(banner.banner_id)
                        if item.is_active
                    ]
                    offerings.append(BannerOffering(banner=banner, items=items))
                if len(page) < page_size:
                    break
                offset += page_size
        return offerings
