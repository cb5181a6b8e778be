"""Catalog entities consumed by the shop and the provider contract."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

from ..enums import Rarity


@dataclass(frozen=True, slots=True)
class CatalogEntity:
    """Read-only view of a collectible offered through the shop."""

    entity_id: int
    name: str
    rarity: Rarity

    @property
    def is_randomizable(self) -> bool:
        return self.rarity.is_randomizable


class CatalogProvider(Protocol):
    async def list_random_eligible_entities(self) -> Sequence[CatalogEntity]:
        """Entities that may enter random assortments (top tier excluded)."""

    async def get_entity_by_id(self, entity_id: int) -> CatalogEntity | None:
        ...


class InMemoryCatalog(CatalogProvider):
    """Registry of catalog entities kept in process memory."""

    def __init__(self, entities: Iterable[CatalogEntity] = ()) -> None:
        self._entities: dict[int, CatalogEntity] = {}
        self.register_entities(entities)

    def register_entity(self, entity: CatalogEntity) -> None:
        if entity.entity_id in self._entities:
            raise ValueError(f"Catalog entity {entity.entity_id} already registered")
        self._entities[entity.entity_id] = entity

    def register_entities(self, entities: Iterable[CatalogEntity]) -> None:
        for entity in entities:
            self.register_entity(entity)

    def iter_entities(self) -> Iterable[CatalogEntity]:
        return self._entities.values()

    async def list_random_eligible_entities(self) -> Sequence[CatalogEntity]:
        return [entity for entity in self._entities.values() if entity.is_randomizable]

    async def get_entity_by_id(self, entity_id: int) -> CatalogEntity | None:
        return self._entities.get(entity_id)
