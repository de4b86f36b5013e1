"""
Asset Migration

Moves the three image assets of a codex item into the file store and
rewrites the item fields to the issued file ids:

- thumbnail / thumbnail_background: inline `data:<mime>;base64,...` URIs,
  decoded and uploaded with the declared MIME type
- thumbnail_character: fetched from `<gateway>/ipfs/<ipfs_character>` with
  the retrying fetcher and uploaded as image/jpeg

Asset failures never fail the item. A broken inline image is cleared to
None; a character image that cannot be fetched stays unset and is picked up
later by the repair pass.

All uploads share one folder, resolved once per migrator (configured id,
else lookup by name at the root, else created).
"""
import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from codex_api.adapters.base import FileStore, FolderStore, ItemStore, Record
from codex_api.core.exceptions import AssetError, StoreError
from codex_api.core.http_client import RetryConfig, RetryingFetcher

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:"
CHARACTER_MIME_TYPE = "image/jpeg"

# (item field, filename suffix)
INLINE_ASSET_FIELDS = (
    ("thumbnail", "thumbnail"),
    ("thumbnail_background", "background"),
)


def decode_data_uri(value: str) -> Tuple[str, bytes]:
    """
    Split a base64 data URI into (mime_type, bytes).

    Raises:
        AssetError: not a base64 data URI, or the payload does not decode
    """
    if not isinstance(value, str) or not value.startswith(DATA_URI_PREFIX):
        raise AssetError("value is not a data URI")

    header, sep, payload = value.partition(",")
    if not sep:
        raise AssetError("data URI has no payload")

    params = header[len(DATA_URI_PREFIX):].split(";")
    if "base64" not in params[1:]:
        raise AssetError("data URI is not base64 encoded")

    mime_type = params[0] or "application/octet-stream"
    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AssetError(f"invalid base64 payload: {e}") from e

    if not content:
        raise AssetError("data URI payload is empty")
    return mime_type, content


@dataclass
class AssetRepairStats:
    scanned: int = 0
    repaired: int = 0
    failed: int = 0
    failures: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scanned": self.scanned,
            "repaired": self.repaired,
            "failed": self.failed,
            "failures": self.failures[:10],
        }


class AssetMigrator:
    """
    Uploads item assets to the file store.

    Usage:
        async with AssetMigrator(files, folders, ipfs_gateway=gateway) as migrator:
            failures = await migrator.migrate_item(item)
    """

    def __init__(
        self,
        files: FileStore,
        folders: FolderStore,
        *,
        ipfs_gateway: str,
        folder_id: Optional[str] = None,
        folder_name: str = "codex",
        storage: Optional[str] = None,
        fetch_timeout: float = 10.0,
        fetch_max_retries: int = 3,
        fetcher: Optional[RetryingFetcher] = None,
    ):
        self.files = files
        self.folders = folders
        self.ipfs_gateway = ipfs_gateway.rstrip("/")
        self.folder_name = folder_name
        self.storage = storage
        self.fetch_timeout = fetch_timeout
        self.fetch_max_retries = fetch_max_retries
        self._configured_folder_id = folder_id
        self._folder_id: Optional[str] = None
        self._folder_resolved = False
        self._fetcher = fetcher or RetryingFetcher(
            retry_config=RetryConfig(max_retries=fetch_max_retries, timeout=fetch_timeout)
        )
        self._owns_fetcher = fetcher is None

    async def __aenter__(self):
        await self._fetcher.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self._owns_fetcher:
            await self._fetcher.close()

    async def resolve_folder(self) -> Optional[str]:
        """Return the shared asset folder id, resolving it on first use only."""
        if self._folder_resolved:
            return self._folder_id

        self._folder_resolved = True
        if self._configured_folder_id:
            self._folder_id = self._configured_folder_id
            return self._folder_id

        try:
            existing = await self.folders.read_by_query({
                "filter": {"name": {"_eq": self.folder_name}, "parent": {"_null": True}},
                "limit": 1,
            })
            if existing:
                self._folder_id = str(existing[0]["id"])
            else:
                self._folder_id = str(await self.folders.create_one({"name": self.folder_name}))
                logger.info(f"[assets] Created folder '{self.folder_name}' ({self._folder_id})")
        except StoreError as e:
            logger.error(f"[assets] Could not resolve folder '{self.folder_name}', uploading unfiled: {e}")
            self._folder_id = None

        return self._folder_id

    async def _upload(self, content: bytes, filename: str, mime_type: str) -> str:
        folder = await self.resolve_folder()
        try:
            return await self.files.upload_one(
                content,
                filename_download=filename,
                type=mime_type,
                folder=folder,
                storage=self.storage,
            )
        except StoreError as e:
            raise AssetError(f"upload of {filename} failed: {e.message}") from e

    async def upload_inline(self, item_id: Any, value: str, suffix: str) -> str:
        """Decode an inline data URI and upload it. Raises AssetError."""
        mime_type, content = decode_data_uri(value)
        return await self._upload(content, f"codex-{item_id}-{suffix}.jpg", mime_type)

    async def fetch_character(self, item_id: Any, ipfs_hash: str) -> Optional[str]:
        """Fetch a character image from IPFS and upload it; None when unavailable."""
        url = f"{self.ipfs_gateway}/ipfs/{ipfs_hash}"
        response = await self._fetcher.fetch(
            url, timeout=self.fetch_timeout, max_retries=self.fetch_max_retries
        )
        if response is None or not response.is_success or not response.content:
            status = response.status_code if response is not None else "no response"
            logger.warning(f"[assets] Character image for item {item_id} unavailable ({status})")
            return None

        try:
            return await self._upload(response.content, f"codex-{item_id}-character.jpg", CHARACTER_MIME_TYPE)
        except AssetError as e:
            logger.warning(f"[assets] Character image for item {item_id}: {e.message}")
            return None

    async def migrate_item(self, item: Record) -> int:
        """
        Migrate the assets of `item` in place.

        Returns:
            Number of assets that could not be migrated.
        """
        item_id = item.get("id", "unknown")
        failures = 0

        for field_name, suffix in INLINE_ASSET_FIELDS:
            value = item.get(field_name)
            if not isinstance(value, str) or not value.startswith(DATA_URI_PREFIX):
                continue
            try:
                item[field_name] = await self.upload_inline(item_id, value, suffix)
            except AssetError as e:
                failures += 1
                item[field_name] = None
                logger.warning(f"[assets] Item {item_id}: cleared {field_name}: {e.message}")

        ipfs_hash = item.get("ipfs_character")
        if ipfs_hash and not item.get("thumbnail_character"):
            file_id = await self.fetch_character(item_id, ipfs_hash)
            if file_id:
                item["thumbnail_character"] = file_id
            else:
                failures += 1

        return failures


async def repair_missing_character_thumbnails(
    items: ItemStore,
    migrator: AssetMigrator,
    limit: int = 1000,
) -> AssetRepairStats:
    """
    Retry the character image for items that have an IPFS hash but no file.

    Each item is updated on its own; failures are counted and the pass goes on.
    CollectionNotFoundError/FieldNotFoundError from the initial query propagate.
    """
    stats = AssetRepairStats()
    records = await items.read_by_query({
        "filter": {
            "_and": [
                {"ipfs_character": {"_nnull": True}},
                {"thumbnail_character": {"_null": True}},
            ]
        },
        "fields": ["id", "ipfs_character"],
        "limit": limit,
    })
    stats.scanned = len(records)
    logger.info(f"[asset_repair] {stats.scanned} items missing character thumbnails")

    for record in records:
        item_id = record.get("id")
        try:
            file_id = await migrator.fetch_character(item_id, record["ipfs_character"])
            if not file_id:
                stats.failed += 1
                continue
            await items.update_one(item_id, {"thumbnail_character": file_id})
            stats.repaired += 1
        except StoreError as e:
            stats.failed += 1
            if len(stats.failures) < 10:
                stats.failures.append(f"{item_id}: {e.message}")
            logger.error(f"[asset_repair] Item {item_id}: {e.message}")

    logger.info(f"[asset_repair] Repaired {stats.repaired}/{stats.scanned} ({stats.failed} failed)")
    return stats
