"""Command line helpers for ShopForge."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from random import Random

from rich.console import Console
from rich.table import Table

from .app import ShopApp
from .config import ShopForgeConfig
from .diagnostics.assortment_simulator import AssortmentSimulator
from .domain.catalog import InMemoryCatalog
from .loaders import load_catalog_from_json, validate_catalog_file
from .validators import validate_config

console = Console()


def run_simulator() -> None:
    parser = argparse.ArgumentParser(description="ShopForge assortment simulator")
    parser.add_argument("catalog", help="Path to catalog JSON file")
    parser.add_argument("--amount", type=int, default=None, help="Items per generated batch")
    parser.add_argument("--batches", type=int, default=1000, help="Number of batches to simulate")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible runs")
    args = parser.parse_args()

    app = _build_app(args.catalog)
    simulator = AssortmentSimulator(app, rng=Random(args.seed) if args.seed is not None else None)
    result = asyncio.run(simulator.simulate(amount=args.amount, batches=args.batches))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Rarity")
    table.add_column("Drawn", justify="right")
    table.add_column("Share", justify="right")
    for rarity, drawn in result.tiers.items():
        table.add_row(rarity.value, str(drawn), f"{result.share(rarity):.1%}")
    console.print(f"[bold]Simulated {result.batches} batches of {result.amount} items[/bold]")
    console.print(table)
    if result.short_batches:
        console.print(
            f"{result.short_batches} batches came back short: the pool ran out of entities.",
            style="yellow",
        )


def run_rotation() -> None:
    parser = argparse.ArgumentParser(description="ShopForge banner rotation job")
    parser.add_argument("--catalog", help="Path to catalog JSON file used for regenerated items")
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="Run as of this ISO timestamp instead of the current time",
    )
    args = parser.parse_args()

    app = _build_app(args.catalog)
    refresh, precreate = asyncio.run(_rotate(app, args.now))

    console.print(f"Expired banners: {', '.join(map(str, refresh.expired)) or 'none'}")
    console.print(f"Activated banner: {refresh.activated if refresh.activated else 'none'}")
    for source, created in precreate.created.items():
        console.print(f"Precreated banner {created} after {source}", style="green")
    if precreate.failed:
        console.print(
            f"Precreate failed for banners: {', '.join(map(str, precreate.failed))}", style="red"
        )
        sys.exit(1)


def run_validate() -> None:
    parser = argparse.ArgumentParser(description="ShopForge validator")
    parser.add_argument("--catalog", help="Path to catalog JSON file for validation")
    args = parser.parse_args()

    failed = False
    if args.catalog:
        errors = validate_catalog_file(Path(args.catalog))
        if errors:
            console.print("Catalog errors:", style="red")
            for err in errors:
                console.print(f"- {err}")
            failed = True
        else:
            console.print("Catalog is valid ✅")

    try:
        config = ShopForgeConfig.from_env()
    except ValueError as exc:
        console.print(f"Configuration could not be read: {exc}", style="red")
        sys.exit(1)
    issues = validate_config(config)
    if issues:
        console.print("Configuration errors:", style="red")
        for issue in issues:
            console.print(f"- {issue}")
        failed = True
    else:
        console.print("Configuration is valid ✅")

    if failed:
        sys.exit(1)


async def _rotate(app: ShopApp, now: datetime | None):
    await app.init_backend()
    try:
        refresh = await app.rotation.refresh_statuses(now)
        precreate = await app.rotation.precreate_successors(now)
    finally:
        await app.close()
    return refresh, precreate


def _build_app(catalog_path: str | None) -> ShopApp:
    config = ShopForgeConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    catalog = InMemoryCatalog()
    if catalog_path:
        load_catalog_from_json(catalog, catalog_path)
    return ShopApp(config, catalog=catalog)
