"""Pytest fixtures for ShopForge."""

from __future__ import annotations

import pytest

from ..app import ShopApp
from ..config import ShopForgeConfig, StorageConfig


@pytest.fixture()
def memory_app() -> ShopApp:
    config = ShopForgeConfig(storage=StorageConfig(backend="memory"), rng_seed=7)
    return ShopApp(config)

