"""Top level application object for ShopForge services."""

from __future__ import annotations

from random import Random
from typing import Any, Sequence

from .config import ShopForgeConfig
from .domain.banner_window import BannerWindowValidator, Clock, utcnow
from .domain.banners import BannerService
from .domain.capacity import ItemCapacityGuard
from .domain.cascade import PriceCascadeUpdater
from .domain.catalog import CatalogProvider, InMemoryCatalog
from .domain.events import EventBus
from .domain.items import ItemUpdate, ShopItemStore
from .domain.pricing import PriceUpdate, RarityPriceTable
from .domain.rotation import BannerRotation
from .domain.sampler import ItemDraft, RandomSource, WeightedRaritySampler
from .enums import Rarity
from .storage.base import (
    AuditStore,
    BannerRecord,
    BannerStore,
    ItemRecord,
    ItemStore,
    RarityPriceStore,
)
from .storage.memory import (
    InMemoryAuditStore,
    InMemoryBannerStore,
    InMemoryItemStore,
    InMemoryRarityPriceStore,
)
from .storage.sqlalchemy import AsyncSQLAlchemyStorage


class ShopApp:
    """Central dependency container wiring stores and shop services."""

    def __init__(
        self,
        config: ShopForgeConfig,
        *,
        catalog: CatalogProvider | None = None,
        banner_store: BannerStore | None = None,
        item_store: ItemStore | None = None,
        price_store: RarityPriceStore | None = None,
        audit_store: AuditStore | None = None,
        event_bus: EventBus | None = None,
        rng: RandomSource | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config
        self.event_bus = event_bus or EventBus()
        self.catalog = catalog if catalog is not None else InMemoryCatalog()
        self.clock = clock or utcnow

        self._rng = rng or (Random(config.rng_seed) if config.rng_seed is not None else Random())

        self._sqlalchemy_storage: AsyncSQLAlchemyStorage | None = None
        (
            self.banner_store,
            self.item_store,
            self.price_store,
            self.audit_store,
        ) = self._wire_storage(banner_store, item_store, price_store, audit_store)

        self.cascade = PriceCascadeUpdater(
            self.banner_store,
            self.item_store,
            self.catalog,
            page_size=config.cascade.page_size,
            event_bus=self.event_bus,
        )
        self.price_table = RarityPriceTable(
            self.price_store,
            defaults=config.pricing.default_prices,
            max_price=config.pricing.max_price,
            cascade=self.cascade,
            audit_store=self.audit_store,
            event_bus=self.event_bus,
        )
        self.validator = BannerWindowValidator(self.banner_store, clock=self.clock)
        self.capacity_guard = ItemCapacityGuard(self.item_store)
        self.sampler = WeightedRaritySampler(
            self.price_table,
            rng=self._rng,
            thresholds=config.assortment.tier_thresholds,
            default_purchase_limit=config.assortment.default_purchase_limit,
        )
        self.shop_items = ShopItemStore(
            self.item_store,
            self.validator,
            self.capacity_guard,
            self.sampler,
            self.price_table,
            self.catalog,
            default_purchase_limit=config.assortment.default_purchase_limit,
            max_price=config.pricing.max_price,
            audit_store=self.audit_store,
            event_bus=self.event_bus,
        )
        self.banners = BannerService(
            self.banner_store,
            self.item_store,
            config=config.banners,
            clock=self.clock,
            audit_store=self.audit_store,
            event_bus=self.event_bus,
        )
        self.rotation = BannerRotation(
            self.banner_store,
            self.item_store,
            self.banners,
            self.shop_items,
            self.capacity_guard,
            config=config.banners,
            clock=self.clock,
            event_bus=self.event_bus,
        )

    def _wire_storage(
        self,
        banner_store: BannerStore | None,
        item_store: ItemStore | None,
        price_store: RarityPriceStore | None,
        audit_store: AuditStore | None,
    ) -> tuple[BannerStore, ItemStore, RarityPriceStore, AuditStore]:
        if banner_store and item_store and price_store and audit_store:
            return banner_store, item_store, price_store, audit_store

        backend = self.config.storage.backend
        if backend == "memory":
            return (
                banner_store or InMemoryBannerStore(),
                item_store or InMemoryItemStore(),
                price_store or InMemoryRarityPriceStore(),
                audit_store or InMemoryAuditStore(),
            )
        if backend == "sqlalchemy":
            dsn = self.config.storage.resolve_dsn()
            if not dsn:
                raise ValueError("SQLAlchemy backend requires a DSN")
            storage = AsyncSQLAlchemyStorage(dsn, echo=self.config.storage.echo_sql)
            self._sqlalchemy_storage = storage
            return (
                banner_store or storage.banner_store(),
                item_store or storage.item_store(),
                price_store or storage.rarity_price_store(),
                audit_store or storage.audit_store(),
            )
        raise ValueError(f"Unsupported storage backend {backend}")

    def snapshot(self) -> dict[str, Any]:
        """Export current configuration for debugging."""
        return {
            "storage": self.config.storage.backend,
            "tier_thresholds": {
                rarity.value: upper for rarity, upper in self.config.assortment.tier_thresholds.items()
            },
            "default_prices": {
                rarity.value: price for rarity, price in self.config.pricing.default_prices.items()
            },
            "default_purchase_limit": self.config.assortment.default_purchase_limit,
            "cascade_page_size": self.config.cascade.page_size,
        }

    async def init_backend(self) -> None:
        """Initialize storage backend resources (e.g., database tables)."""
        if self._sqlalchemy_storage:
            await self._sqlalchemy_storage.init_models()

    async def close(self) -> None:
        if self._sqlalchemy_storage:
            await self._sqlalchemy_storage.dispose()

    async def validate_banner_window(self, banner_id: int) -> BannerRecord:
        return await self.validator.validate(banner_id)

    async def get_rarity_price(self, rarity: Rarity | str) -> int | None:
        return await self.price_table.get_price(rarity)

    async def set_rarity_price(
        self,
        rarity: Rarity | str,
        price: int,
        cascade: bool = False,
        *,
        actor_id: int | None = None,
    ) -> PriceUpdate:
        return await self.price_table.set_price(rarity, price, cascade, actor_id=actor_id)

    async def generate_assortment(
        self, banner_id: int, amount: int | None = None
    ) -> list[ItemDraft]:
        return await self.shop_items.generate_assortment(banner_id, amount)

    async def create_items(
        self, banner_id: int, drafts: Sequence[ItemDraft], *, actor_id: int | None = None
    ) -> list[ItemRecord]:
        return await self.shop_items.create_batch(banner_id, drafts, actor_id=actor_id)

    async def update_item(
        self, item_id: int, changes: ItemUpdate, *, actor_id: int | None = None
    ) -> ItemRecord:
        return await self.shop_items.update_item(item_id, changes, actor_id=actor_id)

    async def increment_purchased(self, item_id: int, qty: int) -> ItemRecord:
        return await self.shop_items.increment_purchased(item_id, qty)
