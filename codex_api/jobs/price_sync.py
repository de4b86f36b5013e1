"""
Price Sync Job

Per-minute reconciliation of `codex.price` against the MOCA adoption feed.

Steps:
1. Clear: every item with a non-null price is set back to null
   (per-item failures are logged and the pass continues)
2. Fetch the adoption listings (empty feed = zero updates, not an error)
3. Keep the lowest listing per tokenId (integer comparison)
4. Format each price from its fixed-point value and decimals
5. Write the formatted price to the matching item; FieldNotFoundError stops
   the write loop since every remaining item would fail the same way
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from codex_api.adapters.base import StoreBundle
from codex_api.adapters.moca import MocaClient
from codex_api.core.config import Settings
from codex_api.core.exceptions import FieldNotFoundError, StoreError, UpstreamError
from codex_api.services.pricing import format_price, lowest_prices_by_token

logger = logging.getLogger(__name__)

JOB_NAME = "price_sync"


@dataclass
class PriceSyncStats:
    cleared: int = 0
    clear_errors: int = 0
    fetched: int = 0
    invalid_listings: int = 0
    duplicates_removed: int = 0
    updated: int = 0
    not_found: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cleared": self.cleared,
            "clear_errors": self.clear_errors,
            "fetched": self.fetched,
            "invalid_listings": self.invalid_listings,
            "duplicates_removed": self.duplicates_removed,
            "updated": self.updated,
            "not_found": self.not_found,
            "errors": self.errors,
        }


async def clear_prices(stores: StoreBundle, stats: PriceSyncStats) -> None:
    """Null out every recorded price. Best effort, never raises StoreError."""
    logger.info(f"[{JOB_NAME}] Clearing all existing prices from codex items...")
    try:
        priced = await stores.items.read_by_query({
            "filter": {"price": {"_nnull": True}},
            "fields": ["id"],
            "limit": -1,
        })
    except StoreError as e:
        stats.clear_errors += 1
        logger.warning(f"[{JOB_NAME}] Error clearing prices (continuing with updates): {e.message}")
        return

    for item in priced:
        try:
            await stores.items.update_one(item["id"], {"price": None})
            stats.cleared += 1
        except StoreError as e:
            stats.clear_errors += 1
            logger.warning(f"[{JOB_NAME}] Error clearing price for codex item {item['id']}: {e.message}")

    logger.info(f"[{JOB_NAME}] Cleared prices from {stats.cleared} codex items")


async def run_price_sync_job(
    stores: StoreBundle,
    settings: Settings,
    moca_client: Optional[MocaClient] = None,
) -> Dict[str, Any]:
    """Refresh prices from the adoption feed."""
    stats = PriceSyncStats()

    if not settings.MOCA_API_BASE_URL:
        logger.error(f"[{JOB_NAME}] MOCA_API_BASE_URL is not configured, skipping price update")
        return {"status": "skipped", "reason": "missing_base_url", "stats": stats.to_dict()}

    logger.info(f"[{JOB_NAME}] Starting codex prices update")

    try:
        if not await stores.items.collection_exists():
            logger.warning(f"[{JOB_NAME}] Collection '{stores.items.collection}' not found, skipping price update")
            return {"status": "skipped", "reason": "collection_missing", "stats": stats.to_dict()}
    except StoreError as e:
        logger.error(f"[{JOB_NAME}] Store unavailable: {e.message}")
        return {"status": "failed", "reason": "store_unavailable", "stats": stats.to_dict()}

    await clear_prices(stores, stats)

    client = moca_client or MocaClient(settings.MOCA_API_BASE_URL)
    try:
        listings, invalid = await client.fetch_adoption_details()
    except UpstreamError as e:
        logger.error(f"[{JOB_NAME}] Failed to fetch adoption details: {e.message}")
        return {"status": "failed", "reason": "upstream_error", "stats": stats.to_dict()}
    finally:
        if moca_client is None:
            await client.close()

    stats.fetched = len(listings)
    stats.invalid_listings = invalid
    stats.errors += invalid
    logger.info(f"[{JOB_NAME}] Fetched {stats.fetched} adoption price entries")

    lowest = lowest_prices_by_token(listings)
    stats.duplicates_removed = len(listings) - len(lowest)
    if stats.duplicates_removed:
        logger.info(
            f"[{JOB_NAME}] Found {stats.duplicates_removed} duplicate listings, "
            f"keeping lowest prices for {len(lowest)} unique tokenIds"
        )

    result: Dict[str, Any] = {"status": "completed"}

    for listing in lowest.values():
        try:
            token_id = int(listing.tokenId)
        except ValueError:
            logger.warning(f"[{JOB_NAME}] Invalid tokenId: {listing.tokenId!r}")
            stats.errors += 1
            continue

        formatted = format_price(
            listing.price.value,
            listing.price.decimals,
            listing.price.currency,
            settings.PRICE_MAX_FRACTION_DIGITS,
        )

        try:
            existing = await stores.items.read_by_query({
                "filter": {"id": {"_eq": token_id}},
                "fields": ["id", "price"],
                "limit": 1,
            })
            if not existing:
                stats.not_found += 1
                logger.debug(f"[{JOB_NAME}] Codex item {token_id} not found, skipping")
                continue

            await stores.items.update_one(token_id, {"price": formatted})
            stats.updated += 1

        except FieldNotFoundError as e:
            logger.warning(
                f"[{JOB_NAME}] Field '{e.field or 'price'}' not found in codex collection. "
                f"Add it to the schema first. Stopping updates."
            )
            result = {"status": "aborted", "reason": "field_missing"}
            break
        except StoreError as e:
            stats.errors += 1
            logger.error(f"[{JOB_NAME}] Error updating codex item {token_id}: {e.message}")

    logger.info(
        f"[{JOB_NAME}] Complete: fetched={stats.fetched} updated={stats.updated} "
        f"not_found={stats.not_found} errors={stats.errors}"
    )
    result["stats"] = stats.to_dict()
    return result
