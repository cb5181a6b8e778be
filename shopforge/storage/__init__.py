"""Storage backends for ShopForge."""

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
from .memory import (
    InMemoryAuditStore,
    InMemoryBannerStore,
    InMemoryItemStore,
    InMemoryRarityPriceStore,
)
from .sqlalchemy import AsyncSQLAlchemyStorage

__all__ = [
    "AuditStore",
    "BannerRecord",
    "BannerStore",
    "ItemRecord",
    "ItemStore",
    "RarityPriceRecord",
    "RarityPriceStore",
    "UniqueViolation",
    "InMemoryAuditStore",
    "InMemoryBannerStore",
    "InMemoryItemStore",
    "InMemoryRarityPriceStore",
    "AsyncSQLAlchemyStorage",
]
