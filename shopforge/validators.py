"""Validation utilities for ShopForge configuration."""

from __future__ import annotations

from .config import ShopForgeConfig
from .domain.sampler import build_tiers
from .enums import Rarity


def validate_config(config: ShopForgeConfig) -> list[str]:
    """Return list of validation errors discovered in ``config``."""
    errors: list[str] = []

    if config.storage.backend not in ("memory", "sqlalchemy"):
        errors.append(f"Unsupported storage backend '{config.storage.backend}'.")

    banners = config.banners
    if banners.default_min_items < 1:
        errors.append("Banner configuration 'default_min_items' must be at least 1.")
    if banners.default_min_items > banners.default_max_items:
        errors.append(
            f"Banner configuration 'default_min_items' ({banners.default_min_items}) exceeds "
            f"'default_max_items' ({banners.default_max_items})."
        )
    if banners.default_window_days <= 0:
        errors.append("Banner configuration 'default_window_days' must be positive.")
    if banners.default_precreate_before_end_days < 0:
        errors.append("Banner configuration 'default_precreate_before_end_days' cannot be negative.")

    try:
        build_tiers(config.assortment.tier_thresholds)
    except ValueError as exc:
        errors.append(f"Assortment tier thresholds are invalid: {exc}.")
    limit = config.assortment.default_purchase_limit
    if limit is not None and limit < 0:
        errors.append("Assortment 'default_purchase_limit' cannot be negative.")

    pricing = config.pricing
    if pricing.max_price <= 0:
        errors.append("Pricing 'max_price' must be positive.")
    for rarity in Rarity:
        price = pricing.default_prices.get(rarity)
        if price is None:
            errors.append(f"Pricing has no default price for rarity '{rarity.value}'.")
        elif price < 0 or price > pricing.max_price:
            errors.append(
                f"Default price {price} for rarity '{rarity.value}' must be between 0 and {pricing.max_price}."
            )

    if config.cascade.page_size <= 0:
        errors.append("Cascade 'page_size' must be positive.")

    return errors


__all__ = ["validate_config"]
