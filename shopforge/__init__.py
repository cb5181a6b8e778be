"""ShopForge public API."""

from .app import ShopApp
from .config import ShopForgeConfig
from .enums import BannerStatus, Rarity

__all__ = [
    "ShopApp",
    "ShopForgeConfig",
    "BannerStatus",
    "Rarity",
]
