"""Domain event dispatch for shop changes."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Awaitable, Callable, DefaultDict, Mapping

EventPayload = Mapping[str, Any]
EventListener = Callable[[EventPayload], Awaitable[None]]

ITEMS_CREATED = "shop.items.created"
ITEM_UPDATED = "shop.item.updated"
ITEM_PURCHASED = "shop.item.purchased"
RARITY_PRICE_UPDATED = "shop.rarity_price.updated"
CASCADE_COMPLETED = "shop.cascade.completed"
BANNER_CREATED = "shop.banner.created"
BANNER_ACTIVATED = "shop.banner.activated"
BANNER_EXPIRED = "shop.banner.expired"
BANNER_PRECREATED = "shop.banner.precreated"


class EventBus:
    """Async pub-sub used to notify listeners about shop changes."""

    def __init__(self) -> None:
        self._listeners: DefaultDict[str, list[EventListener]] = defaultdict(list)

    def subscribe(self, event_name: str, listener: EventListener) -> None:
        self._listeners[event_name].append(listener)

    async def publish(self, event_name: str, payload: EventPayload) -> None:
        for listener in list(self._listeners.get(event_name, ())):
            await listener(payload)
