"""Domain models and services."""

from .banner_window import BannerWindowValidator, is_within_window
from .banners import BannerOffering, BannerService, BannerUpdate
from .capacity import ItemCapacityGuard
from .cascade import CascadeResult, PriceCascadeUpdater
from .catalog import CatalogEntity, CatalogProvider, InMemoryCatalog
from .events import EventBus
from .exceptions import (
    BannerInactive,
    BannerNotFound,
    BannerOutOfWindow,
    CapacityExceeded,
    CatalogEntityNotFound,
    DuplicateItem,
    ItemNotFound,
    NotFound,
    RarityPriceConflict,
    RarityPriceNotFound,
    ShopForgeError,
    StorageFailure,
    ValidationError,
)
from .items import ItemUpdate, ShopItemStore
from .pricing import PriceUpdate, RarityPriceTable
from .rotation import BannerRotation, PrecreateReport, StatusRefresh
from .sampler import ItemDraft, WeightedRaritySampler

__all__ = [
    "BannerWindowValidator",
    "is_within_window",
    "BannerOffering",
    "BannerService",
    "BannerUpdate",
    "ItemCapacityGuard",
    "CascadeResult",
    "PriceCascadeUpdater",
    "CatalogEntity",
    "CatalogProvider",
    "InMemoryCatalog",
    "EventBus",
    "BannerInactive",
    "BannerNotFound",
    "BannerOutOfWindow",
    "CapacityExceeded",
    "CatalogEntityNotFound",
    "DuplicateItem",
    "ItemNotFound",
    "NotFound",
    "RarityPriceConflict",
    "RarityPriceNotFound",
    "ShopForgeError",
    "StorageFailure",
    "ValidationError",
    "ItemUpdate",
    "ShopItemStore",
    "PriceUpdate",
    "RarityPriceTable",
    "BannerRotation",
    "PrecreateReport",
    "StatusRefresh",
    "ItemDraft",
    "WeightedRaritySampler",
]
