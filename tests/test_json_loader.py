import json
from pathlib import Path

import pytest

from shopforge.domain.catalog import InMemoryCatalog
from shopforge.enums import Rarity
from shopforge.loaders import (
    load_catalog_from_json,
    parse_catalog_dict,
    validate_catalog_dict,
    validate_catalog_file,
)


def test_parse_catalog_dict_reads_rarity_case_insensitively():
    data = {
        "entities": [
            {"id": 1, "name": "Sproutling", "rarity": "common"},
            {"id": 2, "rarity": "Epic"},
        ]
    }
    first, second = parse_catalog_dict(data)
    assert first.rarity is Rarity.COMMON
    assert second.rarity is Rarity.EPIC
    assert second.name == "2"


def test_parse_catalog_dict_invalid_rarity_raises():
    data = {"entities": [{"id": 1, "name": "Faulty", "rarity": "mythic"}]}
    with pytest.raises(ValueError) as excinfo:
        parse_catalog_dict(data)
    assert "invalid rarity 'mythic'" in str(excinfo.value)


def test_validate_catalog_dict_reports_structure_problems():
    assert validate_catalog_dict({"entities": []}) == [
        "Catalog must contain non-empty 'entities' array."
    ]
    errors = validate_catalog_dict(
        {
            "entities": [
                {"id": 1, "rarity": "common"},
                {"id": 1, "rarity": "rare"},
                {"id": 0, "rarity": "rare"},
                "oops",
            ]
        }
    )
    assert "Entity id '1' defined multiple times." in errors
    assert "Entity #3 must define a positive integer 'id'." in errors
    assert "Entity #4 must be an object." in errors


def test_validate_catalog_dict_needs_randomizable_entities():
    errors = validate_catalog_dict({"entities": [{"id": 9, "rarity": "legendary"}]})
    assert errors == ["Catalog has no entities eligible for random assortments."]


@pytest.mark.asyncio()
async def test_load_catalog_from_json_registers_entities(tmp_path: Path):
    payload = {
        "entities": [
            {"id": 10, "name": "Emberpup", "rarity": "uncommon"},
            {"id": 11, "name": "Sunwyrm", "rarity": "legendary"},
        ]
    }
    json_path = tmp_path / "catalog.json"
    json_path.write_text(json.dumps(payload), encoding="utf-8")

    catalog = InMemoryCatalog()
    load_catalog_from_json(catalog, json_path)

    assert validate_catalog_file(json_path) == []
    assert {entity.entity_id for entity in catalog.iter_entities()} == {10, 11}
    assert (await catalog.get_entity_by_id(10)).name == "Emberpup"
    eligible = await catalog.list_random_eligible_entities()
    assert [entity.entity_id for entity in eligible] == [10]
