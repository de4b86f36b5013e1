"""
Seed Loader / Upsert Engine

Reads every envelope file in the seed directory and inserts the items the
store does not have yet. Existing ids are never touched, so the loader is
safe to re-run until the collection converges.

Run sequence:
1. Preconditions (each one ends the run quietly):
   - collection missing from the schema -> "collection_missing"
   - count query returns >= universe size -> "already_seeded"
   - seed directory missing or holding no .json files -> "no_seed_files"
2. For each file, in sorted order:
   - `data` missing or not a list -> counted as an error, next file
   - each item: drop envelope-only keys, normalize `timestamp_created`,
     skip if the id exists, else migrate assets and create
3. Any unexpected failure while processing a file stops the whole run.
   Items inserted before it stay in the store; the next run resumes through
   the existence check.

Per-item FieldNotFoundError / StoreNotConnectedError from the existence check
or the create are counted in `item_errors` and do not stop the run.
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

from codex_api.adapters.base import ItemStore, Record
from codex_api.core.exceptions import (
    FieldNotFoundError,
    SeedFileError,
    StoreNotConnectedError,
)
from codex_api.core.utils import utcnow
from codex_api.services.asset_migration import AssetMigrator
from codex_api.services.progress import (
    NullProgressObserver,
    SeedLoadStats,
    SeedProgressObserver,
)

logger = logging.getLogger(__name__)

ENVELOPE_ONLY_FIELDS = ("_sync_id", "agent_profiles")
SOURCE_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def normalize_timestamp(value: Any) -> Optional[str]:
    """
    Convert a source timestamp such as "2025-10-11 16:46:41 EDT" to ISO 8601.

    The trailing zone abbreviation is dropped. Returns None for anything that
    does not parse, so the field is left out instead of being defaulted.
    """
    if not isinstance(value, str):
        return None

    parts = value.strip().split()
    if len(parts) == 3 and parts[2].isalpha():
        parts = parts[:2]
    text = " ".join(parts)

    try:
        return datetime.strptime(text, SOURCE_TIMESTAMP_FORMAT).isoformat()
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).isoformat()
    except ValueError:
        return None


def prepare_item(raw: Record) -> Record:
    """Strip envelope-only keys and normalize the creation timestamp."""
    item = {k: v for k, v in raw.items() if k not in ENVELOPE_ONLY_FIELDS}

    raw_timestamp = item.pop("timestamp_created", None)
    if raw_timestamp:
        normalized = normalize_timestamp(raw_timestamp)
        if normalized:
            item["timestamp_created"] = normalized
        else:
            logger.debug(f"[codex_seed] Unparseable timestamp_created {raw_timestamp!r}, leaving it unset")

    return item


class SeedLoader:
    """
    Idempotent bulk loader for the codex collection.

    Usage:
        loader = SeedLoader(stores.items, migrator, settings.SEED_DIR)
        stats = await loader.run()
    """

    def __init__(
        self,
        items: ItemStore,
        migrator: Optional[AssetMigrator],
        seed_dir: str,
        universe_size: int = 10000,
        observer: Optional[SeedProgressObserver] = None,
    ):
        self.items = items
        self.migrator = migrator
        self.seed_dir = Path(seed_dir)
        self.universe_size = universe_size
        self.observer = observer or NullProgressObserver()

    def _format_count(self, count: int) -> str:
        if count > self.universe_size:
            return f"{self.universe_size:,}+"
        return f"{count:,}"

    def _seed_files(self) -> List[Path]:
        if not self.seed_dir.is_dir():
            return []
        return sorted(p for p in self.seed_dir.glob("*.json") if p.is_file())

    async def _check_preconditions(self, stats: SeedLoadStats) -> Optional[List[Path]]:
        if not await self.items.collection_exists():
            logger.warning(
                f"[codex_seed] Collection '{self.items.collection}' not found; "
                f"skipping seed until the schema is provisioned"
            )
            stats.skip_reason = "collection_missing"
            return None

        existing = await self.items.read_by_query({"fields": ["id"], "limit": self.universe_size + 1})
        count = len(existing)
        logger.info(f"[codex_seed] Current codex items count: {self._format_count(count)}")
        if count >= self.universe_size:
            logger.info(f"[codex_seed] Collection already holds {self.universe_size:,}+ items, skipping seed")
            stats.skip_reason = "already_seeded"
            return None

        files = self._seed_files()
        if not files:
            logger.info(f"[codex_seed] No seed files found in {self.seed_dir}, nothing to do")
            stats.skip_reason = "no_seed_files"
            return None

        logger.info(f"[codex_seed] Found {len(files)} seed files")
        return files

    async def _item_exists(self, item_id: Any) -> bool:
        found = await self.items.read_by_query({
            "filter": {"id": {"_eq": item_id}},
            "fields": ["id"],
            "limit": 1,
        })
        return bool(found)

    async def _process_item(self, raw: Record, stats: SeedLoadStats) -> None:
        item = prepare_item(raw)
        item_id = item.get("id")

        if item_id:
            try:
                exists = await self._item_exists(item_id)
            except (FieldNotFoundError, StoreNotConnectedError) as e:
                stats.item_errors += 1
                logger.error(f"[codex_seed] Item {item_id} not checked: {e.message}")
                return
            if exists:
                stats.skipped += 1
                logger.debug(f"[codex_seed] Item {item_id} already exists, skipping")
                return

        if self.migrator is not None:
            stats.asset_failures += await self.migrator.migrate_item(item)

        try:
            await self.items.create_one(item)
            stats.inserted += 1
        except (FieldNotFoundError, StoreNotConnectedError) as e:
            stats.item_errors += 1
            logger.error(f"[codex_seed] Item {item_id} not inserted: {e.message}")

    async def _process_file(self, path: Path, stats: SeedLoadStats) -> None:
        try:
            envelope = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise SeedFileError(str(path), f"Could not read {path.name}: {e}") from e

        data = envelope.get("data") if isinstance(envelope, dict) else None
        if not isinstance(data, list):
            logger.warning(f"[codex_seed] Invalid seed file format: {path.name}")
            stats.record_error(f"{path.name}: invalid format")
            return

        total = len(data)
        stats.items_total += total
        for done, raw in enumerate(data, start=1):
            if isinstance(raw, dict):
                await self._process_item(raw, stats)
            else:
                stats.item_errors += 1
                logger.warning(f"[codex_seed] {path.name}: item {done} is not an object, skipping")
            stats.items_done += 1
            self.observer.on_item_progress(done, total, path.name)

    async def run(self) -> SeedLoadStats:
        stats = SeedLoadStats(started_at=utcnow())
        logger.info("[codex_seed] Checking for data to seed...")

        files = await self._check_preconditions(stats)
        if files is None:
            stats.completed_at = utcnow()
            return stats

        stats.files_total = len(files)
        for path in files:
            try:
                await self._process_file(path, stats)
            except Exception as e:
                stats.record_error(f"{path.name}: {e}")
                stats.aborted = True
                stats.completed_at = utcnow()
                logger.error(f"[codex_seed] Error processing {path.name}: {e}", exc_info=True)
                logger.error(
                    f"[codex_seed] Stopping seed run: inserted={stats.inserted} "
                    f"skipped={stats.skipped} errors={stats.errors}"
                )
                self.observer.on_complete(stats)
                return stats

            stats.files_done += 1
            self.observer.on_file_progress(stats.files_done, stats.files_total, path.name)

        stats.completed_at = utcnow()
        logger.info(
            f"[codex_seed] Completed: inserted={stats.inserted} skipped={stats.skipped} "
            f"errors={stats.errors} item_errors={stats.item_errors} "
            f"asset_failures={stats.asset_failures}"
        )
        self.observer.on_complete(stats)
        return stats
