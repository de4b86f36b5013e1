"""
Owner Sync Job

Hourly reconciliation of `codex.owner` against the ownership subgraph.

Flow:
- No THE_GRAPH_API_KEY -> skipped (logged as error, not retried)
- Collection missing -> skipped until the schema is provisioned
- Page through revealed tokens by ascending tokenId (tokenId_gt cursor)
- For each token, update `owner` only when it differs from the stored value
- An empty page, or one shorter than the page size, is the last page
- A failed page waits, moves the cursor forward one page and continues
- FieldNotFoundError on the owner update stops the whole job
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from codex_api.adapters.base import StoreBundle
from codex_api.adapters.the_graph import TheGraphClient
from codex_api.core.config import Settings
from codex_api.core.exceptions import FieldNotFoundError, StoreError, UpstreamError
from codex_api.schemas.upstream import GraphToken

logger = logging.getLogger(__name__)

JOB_NAME = "owner_sync"


@dataclass
class OwnerSyncStats:
    fetched: int = 0
    updated: int = 0
    unchanged: int = 0
    not_found: int = 0
    errors: int = 0
    pages: int = 0
    page_errors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fetched": self.fetched,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "not_found": self.not_found,
            "errors": self.errors,
            "pages": self.pages,
            "page_errors": self.page_errors,
        }


async def _sync_token(stores: StoreBundle, token: GraphToken, stats: OwnerSyncStats) -> None:
    """Reconcile one token. FieldNotFoundError propagates to stop the job."""
    try:
        token_id = int(token.tokenId)
    except ValueError:
        logger.warning(f"[{JOB_NAME}] Invalid tokenId: {token.tokenId!r}")
        stats.errors += 1
        return

    try:
        existing = await stores.items.read_by_query({
            "filter": {"id": {"_eq": token_id}},
            "fields": ["id", "owner"],
            "limit": 1,
        })
        if not existing:
            stats.not_found += 1
            logger.debug(f"[{JOB_NAME}] Codex item {token_id} not found, skipping")
            return

        if existing[0].get("owner") == token.owner:
            stats.unchanged += 1
            return

        await stores.items.update_one(token_id, {"owner": token.owner})
        stats.updated += 1

    except FieldNotFoundError:
        raise
    except StoreError as e:
        stats.errors += 1
        logger.error(f"[{JOB_NAME}] Error updating codex item {token_id}: {e.message}")


async def run_owner_sync_job(
    stores: StoreBundle,
    settings: Settings,
    graph_client: Optional[TheGraphClient] = None,
) -> Dict[str, Any]:
    """
    Sync owners from The Graph into the codex collection.

    Returns:
        {"status": ..., "stats": {...}} plus "reason" when skipped or aborted.
    """
    stats = OwnerSyncStats()

    if not settings.THE_GRAPH_API_KEY:
        logger.error(f"[{JOB_NAME}] THE_GRAPH_API_KEY is not set, skipping owner update")
        return {"status": "skipped", "reason": "missing_api_key", "stats": stats.to_dict()}

    logger.info(f"[{JOB_NAME}] Starting codex owners update")

    try:
        if not await stores.items.collection_exists():
            logger.warning(f"[{JOB_NAME}] Collection '{stores.items.collection}' not found, skipping owner update")
            return {"status": "skipped", "reason": "collection_missing", "stats": stats.to_dict()}
    except StoreError as e:
        logger.error(f"[{JOB_NAME}] Store unavailable: {e.message}")
        return {"status": "failed", "reason": "store_unavailable", "stats": stats.to_dict()}

    client = graph_client or TheGraphClient(
        settings.THE_GRAPH_API_KEY,
        settings.THE_GRAPH_SUBGRAPH_ID,
        gateway=settings.THE_GRAPH_GATEWAY,
    )
    page_size = settings.OWNER_SYNC_PAGE_SIZE
    last_token_id = 0
    result: Dict[str, Any] = {"status": "completed"}

    try:
        while True:
            try:
                tokens, next_cursor = await client.fetch_tokens(last_token_id, first=page_size)
            except UpstreamError as e:
                stats.page_errors += 1
                stats.errors += 1
                logger.error(f"[{JOB_NAME}] Error fetching page after tokenId {last_token_id}: {e.message}")
                await asyncio.sleep(settings.OWNER_SYNC_ERROR_DELAY_SECONDS)
                last_token_id += page_size
                if last_token_id >= settings.CODEX_UNIVERSE_SIZE:
                    logger.warning(f"[{JOB_NAME}] Cursor passed the collection size, stopping")
                    break
                continue

            stats.pages += 1
            stats.fetched += len(tokens)
            if not tokens:
                break

            try:
                for token in tokens:
                    await _sync_token(stores, token, stats)
            except FieldNotFoundError as e:
                logger.warning(
                    f"[{JOB_NAME}] Field '{e.field or 'owner'}' not found in codex collection. "
                    f"Add it to the schema first. Stopping."
                )
                result = {"status": "aborted", "reason": "field_missing"}
                break

            if len(tokens) < page_size:
                break
            if next_cursor <= last_token_id:
                logger.warning(f"[{JOB_NAME}] Cursor did not advance past {last_token_id}, stopping")
                break

            last_token_id = next_cursor
            await asyncio.sleep(settings.OWNER_SYNC_PAGE_DELAY_SECONDS)
    finally:
        if graph_client is None:
            await client.close()

    logger.info(
        f"[{JOB_NAME}] Complete: fetched={stats.fetched} updated={stats.updated} "
        f"errors={stats.errors}"
    )
    result["stats"] = stats.to_dict()
    return result
