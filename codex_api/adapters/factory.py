"""
Store factory

Builds the StoreBundle for the configured STORE_BACKEND. Callers own the
bundle and must `await bundle.aclose()` (or use it as an async context
manager) when done.
"""
import logging

from codex_api.adapters.base import StoreBundle
from codex_api.core.config import Settings

logger = logging.getLogger(__name__)


def build_stores(settings: Settings) -> StoreBundle:
    """Return item/file/folder stores for `settings.STORE_BACKEND`."""
    if settings.STORE_BACKEND == "sql":
        from codex_api.adapters.sql_store import SqlFolderStore, SqlItemStore
        from codex_api.core.database import create_engine
        from codex_api.services.storage import S3FileStore

        engine = create_engine(settings)
        logger.info(f"Using SQL store backend (collection={settings.CODEX_COLLECTION})")
        return StoreBundle(
            items=SqlItemStore(engine, settings.CODEX_COLLECTION),
            files=S3FileStore(settings),
            folders=SqlFolderStore(engine),
            storage=None,
            closer=engine.dispose,
        )

    from codex_api.adapters.directus import (
        DirectusClient,
        DirectusFileStore,
        DirectusFolderStore,
        DirectusItemStore,
    )

    client = DirectusClient(
        settings.DIRECTUS_URL,
        token=settings.DIRECTUS_TOKEN,
        timeout=settings.DIRECTUS_TIMEOUT_SECONDS,
    )
    logger.info(f"Using Directus store backend at {settings.DIRECTUS_URL}")
    return StoreBundle(
        items=DirectusItemStore(client, settings.CODEX_COLLECTION),
        files=DirectusFileStore(client, storage=settings.DIRECTUS_STORAGE),
        folders=DirectusFolderStore(client),
        storage=settings.DIRECTUS_STORAGE,
        closer=client.close,
    )
