"""
Seed Jobs

run_seed_job chains the seed pipeline:
    generator (optional) -> loader -> character thumbnail repair
Each step logs its own totals. The repair pass only runs when the loader
was not aborted.

run_asset_repair_job runs the repair pass on its own.
"""
import logging
from typing import Any, Dict, Optional

from codex_api.adapters.base import StoreBundle
from codex_api.core.config import Settings
from codex_api.core.exceptions import CollectionNotFoundError, FieldNotFoundError, StoreError
from codex_api.services.asset_migration import AssetMigrator, repair_missing_character_thumbnails
from codex_api.services.progress import LoggingProgressObserver, SeedProgressObserver
from codex_api.services.seed_generator import generate_seed_data
from codex_api.services.seed_loader import SeedLoader

logger = logging.getLogger(__name__)


def build_migrator(stores: StoreBundle, settings: Settings) -> AssetMigrator:
    return AssetMigrator(
        stores.files,
        stores.folders,
        ipfs_gateway=settings.IPFS_GATEWAY,
        folder_id=settings.asset_folder_id,
        folder_name=settings.ASSET_FOLDER_NAME,
        storage=stores.storage,
        fetch_timeout=settings.ASSET_FETCH_TIMEOUT_SECONDS,
        fetch_max_retries=settings.ASSET_FETCH_MAX_RETRIES,
    )


async def _repair(stores: StoreBundle, settings: Settings, migrator: AssetMigrator) -> Dict[str, Any]:
    try:
        stats = await repair_missing_character_thumbnails(
            stores.items, migrator, limit=settings.ASSET_REPAIR_LIMIT
        )
    except (CollectionNotFoundError, FieldNotFoundError) as e:
        logger.warning(f"[asset_repair] Schema not ready, skipping repair: {e.message}")
        return {"status": "skipped", "reason": "schema_not_ready"}
    return {"status": "completed", "stats": stats.to_dict()}


async def run_seed_job(
    stores: StoreBundle,
    settings: Settings,
    generate: bool = True,
    observer: Optional[SeedProgressObserver] = None,
) -> Dict[str, Any]:
    """
    Generate missing envelopes, load them, then repair character thumbnails.

    Args:
        generate: Run the IPFS generator before loading
        observer: Progress observer for the loader (defaults to logging)
    """
    result: Dict[str, Any] = {"status": "completed"}

    if generate:
        generation = await generate_seed_data(settings)
        result["generation"] = generation.to_dict()

    async with build_migrator(stores, settings) as migrator:
        loader = SeedLoader(
            stores.items,
            migrator,
            settings.SEED_DIR,
            universe_size=settings.CODEX_UNIVERSE_SIZE,
            observer=observer or LoggingProgressObserver(),
        )
        try:
            load_stats = await loader.run()
        except StoreError as e:
            logger.error(f"[codex_seed] Seed initialization failed, skipping seed: {e.message}")
            result.update({"status": "failed", "reason": "store_unavailable"})
            return result

        result["stats"] = load_stats.to_dict()
        if load_stats.aborted:
            result.update({"status": "aborted", "reason": "seed_file_error"})
            return result
        if load_stats.skip_reason == "collection_missing":
            result.update({"status": "skipped", "reason": load_stats.skip_reason})
            return result

        result["repair"] = await _repair(stores, settings, migrator)

    return result


async def run_asset_repair_job(stores: StoreBundle, settings: Settings) -> Dict[str, Any]:
    """Retry character thumbnails for items that are still missing one."""
    async with build_migrator(stores, settings) as migrator:
        try:
            return await _repair(stores, settings, migrator)
        except StoreError as e:
            logger.error(f"[asset_repair] Store unavailable: {e.message}")
            return {"status": "failed", "reason": "store_unavailable"}
