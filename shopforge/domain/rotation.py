"""Scheduled banner rotation: expiry, activation and successor pre-creation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ..config import BannerConfig
from ..enums import BannerStatus
from ..storage.base import BannerRecord, BannerStore, ItemStore
from . import events
from .banner_window import Clock, as_utc, is_within_window, start_of_day, utcnow
from .banners import BannerService
from .capacity import ItemCapacityGuard
from .events import EventBus
from .items import ShopItemStore
from .sampler import ItemDraft

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StatusRefresh:
    expired: list[int] = field(default_factory=list)
    activated: int | None = None


@dataclass(slots=True)
class PrecreateReport:
    created: dict[int, int] = field(default_factory=dict)
    skipped: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


class BannerRotation:
    """Periodic job keeping exactly one banner on sale.

    ``refresh_statuses`` expires active banners whose end date has passed and,
    when nothing is active, activates the earliest eligible preview banner.
    ``precreate_successors`` stages the next preview banner for active banners
    that asked for it. Both compare against 00:00 UTC of the current day.
    """

    def __init__(
        self,
        banner_store: BannerStore,
        item_store: ItemStore,
        banner_service: BannerService,
        shop_items: ShopItemStore,
        capacity_guard: ItemCapacityGuard,
        *,
        config: BannerConfig | None = None,
        clock: Clock | None = None,
        event_bus: EventBus | None = None,
        page_size: int = 50,
    ) -> None:
        self._banners = banner_store
        self._items = item_store
        self._banner_service = banner_service
        self._shop_items = shop_items
        self._guard = capacity_guard
        self._config = config or BannerConfig()
        self._clock = clock or utcnow
        self._events = event_bus or EventBus()
        self._page_size = page_size

    async def refresh_statuses(self, now: datetime | None = None) -> StatusRefresh:
        today = start_of_day(now or self._clock())
        result = StatusRefresh()

        for banner in await self._all(BannerStatus.ACTIVE):
            if banner.end_date is not None and as_utc(banner.end_date) < today:
                banner.status = BannerStatus.EXPIRED
                await self._banners.save(banner)
                result.expired.append(banner.banner_id)
                await self._events.publish(
                    events.BANNER_EXPIRED, {"banner_id": banner.banner_id}
                )
        logger.info("Expired %s active banners", len(result.expired))

        active = await self._banners.count_by_status(BannerStatus.ACTIVE)
        if active:
            logger.info("Skipped activation: %s banner(s) already active", active)
            return result

        for banner in await self._all(BannerStatus.PREVIEW):
            if not is_within_window(banner, today):
                continue
            if not await self._guard.meets_minimum(banner):
                logger.warning(
                    "Preview banner %s is below its minimum of %s items", banner.banner_id, banner.min_items
                )
                continue
            banner.status = BannerStatus.ACTIVE
            await self._banners.save(banner)
            result.activated = banner.banner_id
            logger.info("Activated preview banner %s (%s)", banner.banner_id, banner.name_key)
            await self._events.publish(
                events.BANNER_ACTIVATED, {"banner_id": banner.banner_id}
            )
            break
        else:
            logger.info("No eligible preview banner to activate")
        return result

    async def precreate_successors(self, now: datetime | None = None) -> PrecreateReport:
        today = start_of_day(now or self._clock())
        report = PrecreateReport()

        for banner in await self._all(BannerStatus.ACTIVE):
            if not banner.enable_precreate:
                continue
            if banner.end_date is None:
                logger.warning("Banner %s has no end date, skipping precreate", banner.banner_id)
                report.skipped.append(banner.banner_id)
                continue
            trigger = start_of_day(banner.end_date) - timedelta(days=banner.precreate_before_end_days)
            if today < trigger:
                continue
            successor = await self._banners.get_successor(banner.banner_id)
            if successor is not None:
                logger.info(
                    "Banner %s already has successor %s", banner.banner_id, successor.banner_id
                )
                report.skipped.append(banner.banner_id)
                continue

            try:
                created = await self._precreate(banner)
            except Exception:
                logger.exception("Failed to precreate successor for banner %s", banner.banner_id)
                report.failed.append(banner.banner_id)
                continue
            report.created[banner.banner_id] = created.banner_id

        logger.info(
            "Precreate run: %s created, %s skipped, %s failed",
            len(report.created),
            len(report.skipped),
            len(report.failed),
        )
        return report

    async def _precreate(self, banner: BannerRecord) -> BannerRecord:
        start = start_of_day(banner.end_date)
        successor = await self._banner_service.create_banner(
            start_date=start,
            end_date=start + timedelta(days=self._config.default_window_days),
            status=BannerStatus.PREVIEW,
            min_items=banner.min_items,
            max_items=banner.max_items,
            enable_precreate=banner.enable_precreate,
            precreate_before_end_days=banner.precreate_before_end_days,
            random_items_again=banner.random_items_again,
            predecessor_id=banner.banner_id,
            actor_id=banner.created_by,
        )

        if banner.random_items_again:
            drafts = await self._shop_items.generate_assortment(
                successor.banner_id, successor.max_items, enforce_window=False
            )
        else:
            drafts = [
                ItemDraft(
                    banner_id=successor.banner_id,
                    catalog_id=item.catalog_id,
                    price=item.price,
                    purchase_limit=item.purchase_limit,
                    is_active=item.is_active,
                )
                for item in await self._items.list_for_banner(banner.banner_id)
            ]
        await self._shop_items.create_batch(
            successor.banner_id, drafts, actor_id=banner.created_by, enforce_window=False
        )

        banner.enable_precreate = False
        await self._banners.save(banner)

        logger.info(
            "Precreated banner %s after %s with %s items",
            successor.banner_id,
            banner.banner_id,
            len(drafts),
        )
        await self._events.publish(
            events.BANNER_PRECREATED,
            {
                "banner_id": successor.banner_id,
                "predecessor_id": banner.banner_id,
                "items": len(drafts),
                "randomized": banner.random_items_again,
            },
        )
        return successor

    async def _all(self, status: BannerStatus) -> list[BannerRecord]:
        banners: list[BannerRecord] = []
        offset = 0
        while True:
            page = await self._banners.list_by_status(status, offset=offset, limit=self._page_size)
            banners.extend(page)
            if len(page) < self._page_size:
                return banners
            offset += self._page_size
