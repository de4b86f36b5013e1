"""
Store Interfaces

The seed pipeline and reconciliation jobs only talk to these protocols.
Concrete adapters (Directus REST, SQLAlchemy + S3) implement them and
translate backend failures into codex_api.core.exceptions types:

- CollectionNotFoundError: collection missing from the schema
- FieldNotFoundError: a write/query names a field the schema lacks
- StoreNotConnectedError: backend unreachable

Query shape (Directus-compatible):
    {
        "filter": {"id": {"_eq": 7}},        # _eq _neq _null _nnull _gt _lt _and _or
        "fields": ["id", "owner"],           # optional projection
        "limit": 1,                          # -1 means no cap
        "offset": 0,                         # optional
        "sort": ["id"],                      # optional
    }
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, runtime_checkable

Query = Dict[str, Any]
Record = Dict[str, Any]


@runtime_checkable
class ItemStore(Protocol):
    """Collection of records keyed by id."""

    collection: str

    async def create_one(self, fields: Record) -> Any:
        """Insert a record and return its id."""
        ...

    async def update_one(self, item_id: Any, fields: Record) -> None:
        """Apply a partial update to one record."""
        ...

    async def read_by_query(self, query: Query) -> List[Record]:
        """Return the records matching `query`."""
        ...

    async def collection_exists(self) -> bool:
        """True when the collection is present in the current schema."""
        ...


@runtime_checkable
class FileStore(Protocol):
    """Binary asset storage."""

    async def upload_one(
        self,
        content: bytes,
        *,
        filename_download: str,
        type: str,
        folder: Optional[str] = None,
        storage: Optional[str] = None,
    ) -> str:
        """Store `content` and return the issued file id."""
        ...


@runtime_checkable
class FolderStore(Protocol):
    """Logical folders that group uploaded files."""

    async def read_by_query(self, query: Query) -> List[Record]:
        ...

    async def create_one(self, fields: Record) -> Any:
        ...


@dataclass
class StoreBundle:
    """The three store handles a job needs, plus their shared cleanup."""
    items: ItemStore
    files: FileStore
    folders: FolderStore
    storage: Optional[str] = None
    closer: Optional[Callable[[], Awaitable[None]]] = None

    async def aclose(self) -> None:
        if self.closer is not None:
            await self.closer()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
