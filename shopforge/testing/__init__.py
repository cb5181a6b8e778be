"""Testing utilities for ShopForge."""

from .factory import BannerFactory, CatalogEntityFactory
from .fixtures import memory_app
from .scripted import ScriptedRandom

__all__ = [
    "BannerFactory",
    "CatalogEntityFactory",
    "memory_app",
    "ScriptedRandom",
]
