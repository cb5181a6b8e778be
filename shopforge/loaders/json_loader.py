"""Load catalog entities from JSON definitions."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Sequence

from ..domain.catalog import CatalogEntity, InMemoryCatalog
from ..enums import Rarity


def load_catalog_from_json(catalog: InMemoryCatalog, path: str | Path) -> Sequence[CatalogEntity]:
    """Load entities from a JSON file and register them on ``catalog``."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    entities = parse_catalog_dict(data)
    catalog.register_entities(entities)
    return entities


def parse_catalog_dict(data: dict[str, Any]) -> Sequence[CatalogEntity]:
    """Parse a JSON dict (already decoded) into catalog entities."""
    errors = validate_catalog_dict(data)
    if errors:
        raise ValueError(_format_errors("Catalog validation failed", errors))
    return tuple(parse_entity(entry) for entry in data["entities"])


def parse_entity(entry: dict[str, Any]) -> CatalogEntity:
    return CatalogEntity(
        entity_id=int(entry["id"]),
        name=entry.get("name", str(entry["id"])),
        rarity=Rarity(str(entry["rarity"]).upper()),
    )


def validate_catalog_file(path: str | Path) -> list[str]:
    """Validate catalog JSON file and return a list of errors."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return validate_catalog_dict(data)


def validate_catalog_dict(data: Any) -> list[str]:
    errors: list[str] = []
    if not isinstance(data, dict):
        return ["Catalog must be a JSON object."]

    entities_raw = data.get("entities")
    if not isinstance(entities_raw, list) or not entities_raw:
        errors.append("Catalog must contain non-empty 'entities' array.")
        return errors

    seen: set[int] = set()
    for idx, entry in enumerate(entities_raw, start=1):
        if not isinstance(entry, dict):
            errors.append(f"Entity #{idx} must be an object.")
            continue
        entity_id = entry.get("id")
        if isinstance(entity_id, bool) or not isinstance(entity_id, int) or entity_id <= 0:
            errors.append(f"Entity #{idx} must define a positive integer 'id'.")
            continue
        if entity_id in seen:
            errors.append(f"Entity id '{entity_id}' defined multiple times.")
        seen.add(entity_id)

        name = entry.get("name")
        if name is not None and (not isinstance(name, str) or not name.strip()):
            errors.append(f"Entity '{entity_id}' has an empty 'name'.")

        rarity_value = entry.get("rarity")
        try:
            Rarity(str(rarity_value).upper())
        except ValueError:
            errors.append(f"Entity '{entity_id}' has invalid rarity '{rarity_value}'.")

    if seen and not errors and not any(
        Rarity(str(entry["rarity"]).upper()).is_randomizable for entry in entities_raw
    ):
        errors.append("Catalog has no entities eligible for random assortments.")
    return errors


def _format_errors(prefix: str, errors: Iterable[str]) -> str:
    formatted = "\n".join(f"- {err}" for err in errors)
    return f"{prefix}:\n{formatted}"
