"""
Store and upstream adapters

Store backends (implement the protocols in adapters.base):
- Directus REST: DirectusItemStore, DirectusFileStore, DirectusFolderStore
- SQLAlchemy: SqlItemStore, SqlFolderStore (files go to services.storage.S3FileStore)

Upstream producers:
- TheGraphClient: token ownership subgraph
- MocaClient: adoption listings feed
"""
from codex_api.adapters.base import FileStore, FolderStore, ItemStore, StoreBundle
from codex_api.adapters.directus import (
    DirectusClient,
    DirectusFileStore,
    DirectusFolderStore,
    DirectusItemStore,
)
from codex_api.adapters.factory import build_stores
from codex_api.adapters.moca import MocaClient
from codex_api.adapters.sql_store import SqlFolderStore, SqlItemStore
from codex_api.adapters.the_graph import TheGraphClient

__all__ = [
    "ItemStore",
    "FileStore",
    "FolderStore",
    "StoreBundle",
    "build_stores",
    "DirectusClient",
    "DirectusItemStore",
    "DirectusFileStore",
    "DirectusFolderStore",
    "SqlItemStore",
    "SqlFolderStore",
    "TheGraphClient",
    "MocaClient",
]
