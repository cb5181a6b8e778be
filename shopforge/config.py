"""Configuration models for ShopForge."""

from __future__ import annotations

import os
import json
from dataclasses import dataclass, field
from typing import Literal, Mapping

from .enums import Rarity


StorageBackend = Literal["memory", "sqlalchemy"]

MAX_RARITY_PRICE = 1_000_000

# Fallback price per tier when no rarity price entry is configured.
DEFAULT_RARITY_PRICES: Mapping[Rarity, int] = {
    Rarity.COMMON: 100,
    Rarity.UNCOMMON: 250,
    Rarity.RARE: 500,
    Rarity.EPIC: 1000,
    Rarity.LEGENDARY: 2500,
}

# Upper bound (exclusive) of each tier's slice of [0, 1).
DEFAULT_TIER_THRESHOLDS: Mapping[Rarity, float] = {
    Rarity.COMMON: 0.40,
    Rarity.UNCOMMON: 0.70,
    Rarity.RARE: 0.90,
    Rarity.EPIC: 1.00,
}


@dataclass(slots=True)
class StorageConfig:
    """Configure how banners, items and prices are persisted."""

    backend: StorageBackend = "memory"
    dsn: str | None = None
    echo_sql: bool = False

    def resolve_dsn(self) -> str | None:
        if self.dsn:
            return self.dsn
        if self.backend == "sqlalchemy":
            return "sqlite+aiosqlite:///./shopforge.db"
        return None


@dataclass(slots=True)
class BannerConfig:
    """Defaults applied when banners are created."""

    default_min_items: int = 4
    default_max_items: int = 8
    default_window_days: int = 7
    default_precreate_before_end_days: int = 2


@dataclass(slots=True)
class AssortmentConfig:
    """Rules for randomized assortment generation."""

    tier_thresholds: Mapping[Rarity, float] = field(
        default_factory=lambda: dict(DEFAULT_TIER_THRESHOLDS)
    )
    default_purchase_limit: int | None = 1


@dataclass(slots=True)
class PricingConfig:
    default_prices: Mapping[Rarity, int] = field(
        default_factory=lambda: dict(DEFAULT_RARITY_PRICES)
    )
    max_price: int = MAX_RARITY_PRICE


@dataclass(slots=True)
class CascadeConfig:
    page_size: int = 50


@dataclass(slots=True)
class ShopForgeConfig:
    """Top-level configuration container."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    banners: BannerConfig = field(default_factory=BannerConfig)
    assortment: AssortmentConfig = field(default_factory=AssortmentConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    cascade: CascadeConfig = field(default_factory=CascadeConfig)
    rng_seed: int | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ShopForgeConfig":
        """Create config from environment variables prefixed with SHOPFORGE_."""
        prefix = "SHOPFORGE_"
        storage_backend = os.getenv(f"{prefix}STORAGE_BACKEND", "memory")
        dsn = os.getenv(f"{prefix}STORAGE_DSN")
        echo_sql = os.getenv(f"{prefix}STORAGE_ECHO_SQL", "false").lower() in {"1", "true", "yes"}

        banners = BannerConfig(
            default_min_items=int(os.getenv(f"{prefix}BANNER_MIN_ITEMS", "4")),
            default_max_items=int(os.getenv(f"{prefix}BANNER_MAX_ITEMS", "8")),
            default_window_days=int(os.getenv(f"{prefix}BANNER_WINDOW_DAYS", "7")),
            default_precreate_before_end_days=int(
                os.getenv(f"{prefix}BANNER_PRECREATE_DAYS", "2")
            ),
        )

        raw_limit = os.getenv(f"{prefix}DEFAULT_PURCHASE_LIMIT", "1").strip()
        assortment = AssortmentConfig(
            tier_thresholds=_parse_rarity_mapping(
                os.getenv(f"{prefix}TIER_THRESHOLDS"),
                f"{prefix}TIER_THRESHOLDS",
                float,
                DEFAULT_TIER_THRESHOLDS,
            ),
            default_purchase_limit=int(raw_limit) if raw_limit else None,
        )

        pricing = PricingConfig(
            default_prices=_parse_rarity_mapping(
                os.getenv(f"{prefix}DEFAULT_PRICES"),
                f"{prefix}DEFAULT_PRICES",
                int,
                DEFAULT_RARITY_PRICES,
            ),
        )

        return cls(
            storage=StorageConfig(backend=storage_backend, dsn=dsn, echo_sql=echo_sql),
            banners=banners,
            assortment=assortment,
            pricing=pricing,
            cascade=CascadeConfig(page_size=int(os.getenv(f"{prefix}CASCADE_PAGE_SIZE", "50"))),
            rng_seed=(
                int(os.getenv(f"{prefix}RNG_SEED")) if os.getenv(f"{prefix}RNG_SEED") else None
            ),
            log_level=os.getenv(f"{prefix}LOG_LEVEL", "INFO").upper(),
        )


def _parse_rarity_mapping(raw, name, cast, defaults):
    """Overlay a JSON object keyed by rarity name on top of ``defaults``."""
    merged = dict(defaults)
    if not raw:
        return merged
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON for {name}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"{name} must be a JSON object")
    for key, value in data.items():
        try:
            rarity = Rarity(str(key).upper())
        except ValueError as exc:
            raise ValueError(f"{name} references unknown rarity '{key}'") from exc
        merged[rarity] = cast(value)
    return merged
