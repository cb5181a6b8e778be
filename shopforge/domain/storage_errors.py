"""Translate unexpected storage errors into a generic domain failure."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from .exceptions import ShopForgeError, StorageFailure

logger = logging.getLogger(__name__)


@asynccontextmanager
async def storage_errors(action: str) -> AsyncIterator[None]:
    try:
        yield
    except ShopForgeError:
        raise
    except Exception as exc:
        logger.exception("Storage failure during %s", action)
        raise StorageFailure(f"internal storage failure during {action}") from exc
