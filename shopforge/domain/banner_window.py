"""Eligibility checks for banner item operations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from ..enums import BannerStatus
from ..storage.base import BannerRecord, BannerStore
from .exceptions import BannerInactive, BannerNotFound, BannerOutOfWindow

Clock = Callable[[], datetime]

OFFERING_STATUS = BannerStatus.ACTIVE


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(value: datetime) -> datetime:
    """Truncate to 00:00 UTC of the same UTC day."""
    return as_utc(value).replace(hour=0, minute=0, second=0, microsecond=0)


def is_within_window(banner: BannerRecord, now: datetime) -> bool:
    """Compare by UTC calendar day: the start and end days count in full.

    Missing bounds leave that side of the window open.
    """
    today = start_of_day(now)
    if banner.start_date is not None and today < start_of_day(banner.start_date):
        return False
    if banner.end_date is not None and today > start_of_day(banner.end_date):
        return False
    return True


class BannerWindowValidator:
    """Decide whether a banner currently accepts item operations."""

    def __init__(self, banner_store: BannerStore, *, clock: Clock | None = None) -> None:
        self._banners = banner_store
        self._clock = clock or utcnow

    async def validate(self, banner_id: int) -> BannerRecord:
        banner = await self._banners.get(banner_id)
        if banner is None or banner.is_deleted:
            raise BannerNotFound(banner_id)
        if banner.status != OFFERING_STATUS:
            raise BannerInactive(
                f"Banner {banner_id} is {banner.status.value}, expected {OFFERING_STATUS.value}"
            )
        if not is_within_window(banner, self._clock()):
            raise BannerOutOfWindow(f"Banner {banner_id} is outside its date window")
        return banner

    async def require(self, banner_id: int) -> BannerRecord:
        """Existence-only check used when staging items on preview banners."""
        banner = await self._banners.get(banner_id)
        if banner is None or banner.is_deleted:
            raise BannerNotFound(banner_id)
        return banner
