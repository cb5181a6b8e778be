import json
import sys

import pytest

from shopforge import cli


def _write_catalog(path, entities):
    path.write_text(json.dumps({"entities": entities}), encoding="utf-8")
    return path


def test_run_validate_accepts_good_catalog(tmp_path, monkeypatch, capsys):
    catalog = _write_catalog(tmp_path / "catalog.json", [{"id": 1, "rarity": "common"}])
    monkeypatch.delenv("SHOPFORGE_DEFAULT_PRICES", raising=False)
    monkeypatch.setattr(sys, "argv", ["shopforge-validate", "--catalog", str(catalog)])

    cli.run_validate()

    out = capsys.readouterr().out
    assert "Catalog is valid" in out
    assert "Configuration is valid" in out


def test_run_validate_exits_on_catalog_errors(tmp_path, monkeypatch):
    catalog = _write_catalog(tmp_path / "catalog.json", [{"id": 1, "rarity": "mythic"}])
    monkeypatch.setattr(sys, "argv", ["shopforge-validate", "--catalog", str(catalog)])

    with pytest.raises(SystemExit) as excinfo:
        cli.run_validate()
    assert excinfo.value.code == 1


def test_run_simulator_prints_tier_table(tmp_path, monkeypatch, capsys):
    catalog = _write_catalog(
        tmp_path / "catalog.json",
        [{"id": idx, "rarity": "common"} for idx in range(1, 5)],
    )
    monkeypatch.setattr(
        sys,
        "argv",
        ["shopforge-simulate", str(catalog), "--amount", "2", "--batches", "10", "--seed", "1"],
    )

    cli.run_simulator()

    out = capsys.readouterr().out
    assert "Simulated 10 batches of 2 items" in out
    assert "COMMON" in out
