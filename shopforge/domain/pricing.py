"""Per-rarity pricing: the single source of truth for item prices."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Mapping, Sequence

from ..config import DEFAULT_RARITY_PRICES, MAX_RARITY_PRICE
from ..enums import Rarity
from ..storage.base import AuditStore, RarityPriceRecord, RarityPriceStore, UniqueViolation
from . import events
from .events import EventBus
from .exceptions import RarityPriceConflict, RarityPriceNotFound, ShopForgeError, ValidationError
from .storage_errors import storage_errors

if TYPE_CHECKING:
    from .cascade import CascadeResult, PriceCascadeUpdater

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PriceUpdate:
    entry: RarityPriceRecord
    previous_price: int | None
    cascade: "CascadeResult | None" = None


def coerce_rarity(value: Rarity | str) -> Rarity:
    if isinstance(value, Rarity):
        return value
    try:
        return Rarity(str(value).upper())
    except ValueError as exc:
        raise ValidationError(f"Unknown rarity '{value}'") from exc


def validate_price(value: object, *, maximum: int = MAX_RARITY_PRICE) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Price must be an integer, got {value!r}")
    if value < 0 or value > maximum:
        raise ValidationError(f"Price {value} must be between 0 and {maximum}")
    return value


class RarityPriceTable:
    """Map each rarity tier to its current price.

    A tier has at most one live entry. Tiers without an entry fall back to
    the static default table (``DEFAULT_RARITY_PRICES`` unless overridden),
    so an unconfigured tier is never priced at zero by accident.
    """

    def __init__(
        self,
        store: RarityPriceStore,
        *,
        defaults: Mapping[Rarity, int] | None = None,
        max_price: int = MAX_RARITY_PRICE,
        cascade: "PriceCascadeUpdater | None" = None,
        audit_store: AuditStore | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._store = store
        self._defaults = dict(defaults or DEFAULT_RARITY_PRICES)
        self._max_price = max_price
        self._cascade = cascade
        self._audit = audit_store
        self._events = event_bus or EventBus()

    def default_price(self, rarity: Rarity) -> int:
        return self._defaults[rarity]

    async def get_price(self, rarity: Rarity | str) -> int | None:
        entry = await self._store.get_by_rarity(coerce_rarity(rarity))
        return entry.price if entry else None

    async def resolve_price(self, rarity: Rarity | str) -> int:
        rarity = coerce_rarity(rarity)
        configured = await self.get_price(rarity)
        return configured if configured is not None else self.default_price(rarity)

    async def resolve_prices(self, rarities: Iterable[Rarity]) -> dict[Rarity, int]:
        return {rarity: await self.resolve_price(rarity) for rarity in set(rarities)}

    async def list_entries(self) -> Sequence[RarityPriceRecord]:
        return await self._store.list_live()

    async def create_entry(
        self, rarity: Rarity | str, price: int, *, actor_id: int | None = None
    ) -> RarityPriceRecord:
        rarity = coerce_rarity(rarity)
        price = validate_price(price, maximum=self._max_price)
        async with storage_errors("create rarity price"):
            if await self._store.get_by_rarity(rarity) is not None:
                raise RarityPriceConflict(f"Rarity {rarity.value} already has a price entry")
            entry = await self._add(rarity, price, actor_id)
        await self._record_change("rarity_price.create", entry, None, actor_id)
        return entry

    async def set_price(
        self,
        rarity: Rarity | str,
        new_price: int,
        cascade: bool = False,
        *,
        actor_id: int | None = None,
    ) -> PriceUpdate:
        """Update the tier's entry in place, creating it when absent."""
        rarity = coerce_rarity(rarity)
        price = validate_price(new_price, maximum=self._max_price)
        self._ensure_cascade(cascade)
        async with storage_errors("set rarity price"):
            entry = await self._store.get_by_rarity(rarity)
            previous = entry.price if entry else None
            if entry is None:
                entry = await self._add(rarity, price, actor_id)
            else:
                entry.price = price
                entry.updated_by = actor_id
                entry = await self._store.save(entry)
        await self._record_change("rarity_price.set", entry, previous, actor_id)

        update = PriceUpdate(entry=entry, previous_price=previous)
        if cascade:
            update.cascade = await self._run_cascade(rarity, price, actor_id)
        return update

    async def update_entry(
        self,
        entry_id: int,
        *,
        rarity: Rarity | str | None = None,
        price: int | None = None,
        cascade: bool = False,
        actor_id: int | None = None,
    ) -> PriceUpdate:
        self._ensure_cascade(cascade)
        async with storage_errors("update rarity price"):
            entry = await self._store.get(entry_id)
            if entry is None:
                raise RarityPriceNotFound(f"Rarity price {entry_id} not found")
            previous = entry.price
            if rarity is not None:
                target = coerce_rarity(rarity)
                owner = await self._store.get_by_rarity(target)
                if owner is not None and owner.entry_id != entry_id:
                    raise RarityPriceConflict(f"Rarity {target.value} already has a price entry")
                entry.rarity = target
            if price is not None:
                entry.price = validate_price(price, maximum=self._max_price)
            entry.updated_by = actor_id
            try:
                entry = await self._store.save(entry)
            except UniqueViolation as exc:
                raise RarityPriceConflict(
                    f"Rarity {entry.rarity.value} already has a price entry"
                ) from exc
        await self._record_change("rarity_price.update", entry, previous, actor_id)

        update = PriceUpdate(entry=entry, previous_price=previous)
        if cascade:
            update.cascade = await self._run_cascade(entry.rarity, entry.price, actor_id)
        return update

    async def delete_entry(self, entry_id: int, *, actor_id: int | None = None) -> None:
        async with storage_errors("delete rarity price"):
            deleted = await self._store.soft_delete(entry_id, deleted_by=actor_id)
        if not deleted:
            raise RarityPriceNotFound(f"Rarity price {entry_id} not found")
        if self._audit:
            await self._audit.add_entry(
                "rarity_price.delete", {"entry_id": entry_id, "actor_id": actor_id}
            )

    async def _add(self, rarity: Rarity, price: int, actor_id: int | None) -> RarityPriceRecord:
        try:
            return await self._store.add(
                RarityPriceRecord(rarity=rarity, price=price, created_by=actor_id, updated_by=actor_id)
            )
        except UniqueViolation as exc:
            raise RarityPriceConflict(f"Rarity {rarity.value} already has a price entry") from exc

    def _ensure_cascade(self, cascade: bool) -> None:
        if cascade and self._cascade is None:
            raise ShopForgeError("Price cascade requested but no cascade updater is configured")

    async def _run_cascade(
        self, rarity: Rarity, price: int, actor_id: int | None
    ) -> "CascadeResult":
        return await self._cascade.cascade(rarity, price, actor_id=actor_id)

    async def _record_change(
        self, action: str, entry: RarityPriceRecord, previous: int | None, actor_id: int | None
    ) -> None:
        logger.info(
            "Rarity %s price set to %s (was %s)", entry.rarity.value, entry.price, previous
        )
        payload = {
            "entry_id": entry.entry_id,
            "rarity": entry.rarity.value,
            "price": entry.price,
            "previous_price": previous,
            "actor_id": actor_id,
        }
        if self._audit:
            await self._audit.add_entry(action, payload)
        await self._events.publish(events.RARITY_PRICE_UPDATED, payload)
