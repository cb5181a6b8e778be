"""Closed enumerations shared by storage and domain layers."""

from __future__ import annotations

from enum import Enum


class Rarity(str, Enum):
    COMMON = "COMMON"
    UNCOMMON = "UNCOMMON"
    RARE = "RARE"
    EPIC = "EPIC"
    LEGENDARY = "LEGENDARY"

    @property
    def rank(self) -> int:
        return _RARITY_ORDER.index(self)

    @property
    def is_randomizable(self) -> bool:
        """The top tier never enters randomized assortments."""
        return self is not Rarity.LEGENDARY

    @classmethod
    def randomizable(cls) -> tuple["Rarity", ...]:
        return tuple(rarity for rarity in _RARITY_ORDER if rarity.is_randomizable)


_RARITY_ORDER: tuple[Rarity, ...] = tuple(Rarity)


class BannerStatus(str, Enum):
    PREVIEW = "PREVIEW"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    EXPIRED = "EXPIRED"


__all__ = ["BannerStatus", "Rarity"]
