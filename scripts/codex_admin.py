#!/usr/bin/env python3
"""
Codex Admin CLI

Runs the seed pipeline and reconciliation jobs once, in-process, against the
store configured in the environment (.env or variables).

Usage:
    # Fetch missing envelopes from IPFS into SEED_DIR
    python scripts/codex_admin.py generate-seed

    # Load envelopes into the store (and repair character thumbnails)
    python scripts/codex_admin.py seed --no-generate

    # One-off reconciliation runs
    python scripts/codex_admin.py sync-owners
    python scripts/codex_admin.py sync-prices

    # Create the codex/folders tables (SQL backend only)
    python scripts/codex_admin.py init-schema

    # Check price formatting
    python scripts/codex_admin.py format-price 1337200000000000000 18 ETH
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict

from codex_api.adapters.factory import build_stores
from codex_api.core.config import Settings, settings as default_settings
from codex_api.jobs.owner_sync import run_owner_sync_job
from codex_api.jobs.price_sync import run_price_sync_job
from codex_api.jobs.seed import run_asset_repair_job, run_seed_job
from codex_api.services.pricing import format_price
from codex_api.services.progress import LoggingProgressObserver
from codex_api.services.seed_generator import generate_seed_data

logger = logging.getLogger("codex_admin")


def _settings_for(args) -> Settings:
    overrides = {}
    if getattr(args, "seed_dir", None):
        overrides["SEED_DIR"] = args.seed_dir
    if not overrides:
        return default_settings
    return default_settings.model_copy(update=overrides)


def _print_result(result: Dict[str, Any]) -> int:
    print(json.dumps(result, indent=2, default=str))
    return 0 if result.get("status") in ("completed", "skipped") else 1


# =============================================================================
# COMMANDS
# =============================================================================

async def cmd_generate_seed(args) -> int:
    stats = await generate_seed_data(_settings_for(args))
    return _print_result({"status": "completed", "stats": stats.to_dict()})


async def cmd_seed(args) -> int:
    settings = _settings_for(args)
    async with build_stores(settings) as stores:
        result = await run_seed_job(
            stores,
            settings,
            generate=not args.no_generate,
            observer=LoggingProgressObserver(file_interval=args.progress_every),
        )
    return _print_result(result)


async def cmd_repair_assets(args) -> int:
    settings = _settings_for(args)
    async with build_stores(settings) as stores:
        result = await run_asset_repair_job(stores, settings)
    return _print_result(result)


async def cmd_sync_owners(args) -> int:
    settings = _settings_for(args)
    async with build_stores(settings) as stores:
        result = await run_owner_sync_job(stores, settings)
    return _print_result(result)


async def cmd_sync_prices(args) -> int:
    settings = _settings_for(args)
    async with build_stores(settings) as stores:
        result = await run_price_sync_job(stores, settings)
    return _print_result(result)


async def cmd_init_schema(args) -> int:
    settings = _settings_for(args)
    if settings.STORE_BACKEND != "sql":
        print("init-schema only applies to STORE_BACKEND=sql", file=sys.stderr)
        return 1

    from codex_api.core.database import create_engine
    from codex_api.models import create_schema

    engine = create_engine(settings)
    try:
        await create_schema(engine)
    finally:
        await engine.dispose()
    print(f"Schema ready ({settings.CODEX_COLLECTION}, folders)")
    return 0


async def cmd_format_price(args) -> int:
    print(format_price(args.value, args.decimals, args.currency, args.max_digits))
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Codex Admin CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s generate-seed                    # Fetch missing envelopes from IPFS
  %(prog)s seed --no-generate               # Load existing envelopes only
  %(prog)s sync-prices                      # One price reconciliation run
  %(prog)s format-price 2000000000000000000 18 ETH
        """,
    )
    parser.add_argument("--log-level", default=default_settings.LOG_LEVEL, help="Logging level")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    generate = subparsers.add_parser("generate-seed", help="Generate seed envelopes from IPFS")
    generate.add_argument("--seed-dir", help="Output directory (default: SEED_DIR)")
    generate.set_defaults(func=cmd_generate_seed)

    seed = subparsers.add_parser("seed", help="Run the seed pipeline")
    seed.add_argument("--seed-dir", help="Envelope directory (default: SEED_DIR)")
    seed.add_argument("--no-generate", action="store_true", help="Skip the IPFS generator step")
    seed.add_argument("--progress-every", type=int, default=100, help="Log progress every N files")
    seed.set_defaults(func=cmd_seed)

    repair = subparsers.add_parser("repair-assets", help="Retry missing character thumbnails")
    repair.set_defaults(func=cmd_repair_assets)

    owners = subparsers.add_parser("sync-owners", help="Run the owner sync job once")
    owners.set_defaults(func=cmd_sync_owners)

    prices = subparsers.add_parser("sync-prices", help="Run the price sync job once")
    prices.set_defaults(func=cmd_sync_prices)

    init_schema = subparsers.add_parser("init-schema", help="Create tables for the SQL backend")
    init_schema.set_defaults(func=cmd_init_schema)

    fmt = subparsers.add_parser("format-price", help="Format a fixed-point price")
    fmt.add_argument("value", help="Integer value, e.g. wei")
    fmt.add_argument("decimals", type=int, help="Decimal places of the value")
    fmt.add_argument("currency", help="Currency code, e.g. ETH")
    fmt.add_argument("--max-digits", type=int, default=default_settings.PRICE_MAX_FRACTION_DIGITS)
    fmt.set_defaults(func=cmd_format_price)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return asyncio.run(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
