"""
Seed Data Generator

Pulls one codex document per token from the IPFS gateway and writes it to
the seed directory wrapped in a sync envelope:

    <gateway>/ipfs/<hash>/Art_DeCC0_00001.codex.json  ->  <seed_dir>/codex-00001.json

Features:
- Deterministic addressing from the numeric id (zero-padded token)
- Resumable: an index whose output file exists is skipped with no request
- Bounded fan-out: fixed batches fetched with asyncio.gather, each batch
  fully awaited before the next one starts
- Per-file failures (HTTP status, bad JSON, write errors) are counted and
  never abort the batch
"""
import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from codex_api.core.config import Settings
from codex_api.core.utils import pad_token_id, utcnow

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_PREFIX = "Art_DeCC0_"
DEFAULT_COLLECTION = "codex"

# Upsert policy carried in every envelope; honored by the sync tooling, not here
ENVELOPE_META = {
    "insert_order": 1,
    "create": True,
    "update": True,
    "delete": True,
    "preserve_ids": True,
    "ignore_on_update": [],
}


@dataclass
class SeedGenerationStats:
    """Running totals for one generator run."""
    total: int = 0
    processed: int = 0
    created: int = 0
    skipped: int = 0
    failed: int = 0
    failures: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        duration = 0.0
        if self.started_at and self.completed_at:
            duration = (self.completed_at - self.started_at).total_seconds()
        return {
            "total": self.total,
            "processed": self.processed,
            "created": self.created,
            "skipped": self.skipped,
            "failed": self.failed,
            "failures": self.failures[:10],
            "duration_seconds": round(duration, 2),
        }


def source_filename(index: int, prefix: str = DEFAULT_SOURCE_PREFIX, width: int = 5) -> str:
    return f"{prefix}{pad_token_id(index, width)}.codex.json"


def seed_filename(index: int, width: int = 5) -> str:
    return f"codex-{pad_token_id(index, width)}.json"


def build_envelope(document: Dict[str, Any], index: int, collection: str = DEFAULT_COLLECTION) -> Dict[str, Any]:
    """
    Wrap a source document in a seed envelope.

    The sync id is `codex-<id>` from the document, or `codex-<index>` when the
    document carries no id.
    """
    sync_id = f"codex-{document['id']}" if document.get("id") else f"codex-{index}"
    return {
        "collection": collection,
        "meta": dict(ENVELOPE_META, ignore_on_update=[]),
        "data": [{"_sync_id": sync_id, **document}],
    }


class SeedGenerator:
    """
    Generates envelope files for ids 1..universe_size.

    Usage:
        async with SeedGenerator(gateway, ipfs_hash, seed_dir) as generator:
            stats = await generator.run()
    """

    def __init__(
        self,
        gateway: str,
        ipfs_hash: str,
        seed_dir: str,
        universe_size: int = 10000,
        batch_size: int = 50,
        pad_width: int = 5,
        source_prefix: str = DEFAULT_SOURCE_PREFIX,
        collection: str = DEFAULT_COLLECTION,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.gateway = gateway.rstrip("/")
        self.ipfs_hash = ipfs_hash
        self.seed_dir = Path(seed_dir)
        self.universe_size = universe_size
        self.batch_size = max(1, batch_size)
        self.pad_width = pad_width
        self.source_prefix = source_prefix
        self.collection = collection
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self):
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def init(self):
        """Initialize client without context manager. Must call close() when done."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
            self._owns_client = True
        return self

    async def close(self):
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    def source_url(self, index: int) -> str:
        filename = source_filename(index, self.source_prefix, self.pad_width)
        return f"{self.gateway}/ipfs/{self.ipfs_hash}/{filename}"

    def seed_path(self, index: int) -> Path:
        return self.seed_dir / seed_filename(index, self.pad_width)

    async def _generate_one(self, index: int, stats: SeedGenerationStats) -> None:
        output_path = self.seed_path(index)
        if output_path.exists():
            stats.skipped += 1
            return

        url = self.source_url(index)
        try:
            response = await self._client.get(url)
            if not response.is_success:
                raise ValueError(f"HTTP {response.status_code}")
            document = response.json()
            if not isinstance(document, dict):
                raise ValueError("document is not a JSON object")

            envelope = build_envelope(document, index, self.collection)
            output_path.write_text(json.dumps(envelope, indent=2), encoding="utf-8")
            stats.created += 1

        except (httpx.HTTPError, ValueError, OSError) as e:
            stats.failed += 1
            filename = source_filename(index, self.source_prefix, self.pad_width)
            if len(stats.failures) < 10:
                stats.failures.append(f"{filename}: {e}")
            logger.error(f"[seed_generator] Failed to fetch {filename}: {e}")

    async def run(self) -> SeedGenerationStats:
        """Generate every missing envelope file and return the totals."""
        if self._client is None:
            await self.init()

        stats = SeedGenerationStats(total=self.universe_size, started_at=utcnow())
        self.seed_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"[seed_generator] Starting seed data generation into {self.seed_dir}")

        for batch_start in range(1, self.universe_size + 1, self.batch_size):
            batch_end = min(batch_start + self.batch_size - 1, self.universe_size)
            await asyncio.gather(*(
                self._generate_one(index, stats)
                for index in range(batch_start, batch_end + 1)
            ))
            stats.processed = batch_end

            logger.info(
                f"[seed_generator] Processed {batch_end}/{self.universe_size} files "
                f"({stats.created} created, {stats.skipped} skipped, {stats.failed} failed)"
            )

        stats.completed_at = utcnow()
        logger.info(
            f"[seed_generator] Complete: created={stats.created} skipped={stats.skipped} "
            f"failed={stats.failed} output={self.seed_dir}"
        )
        return stats


async def generate_seed_data(settings: Settings, client: Optional[httpx.AsyncClient] = None) -> SeedGenerationStats:
    """Run the generator with values from `settings`."""
    async with SeedGenerator(
        gateway=settings.IPFS_GATEWAY,
        ipfs_hash=settings.IPFS_CODEX_HASH,
        seed_dir=settings.SEED_DIR,
        universe_size=settings.CODEX_UNIVERSE_SIZE,
        batch_size=settings.SEED_BATCH_SIZE,
        pad_width=settings.CODEX_ID_PAD_WIDTH,
        source_prefix=settings.CODEX_SOURCE_PREFIX,
        collection=settings.CODEX_COLLECTION,
        timeout=settings.SEED_REQUEST_TIMEOUT_SECONDS,
        client=client,
    ) as generator:
        return await generator.run()
