"""
Tests for the SQLAlchemy store adapter, run against SQLite (aiosqlite).

Covers:
- Missing table reported as CollectionNotFoundError
- Unknown update fields reported as FieldNotFoundError
- Columns added after the first reflection are seen without a restart
- Filter grammar used by the jobs (_eq, _null, _nnull, _and)
- Descriptive fields folded into the attributes JSON column
"""
import pytest
import pytest_asyncio
from sqlalchemy import text

from codex_api.adapters.sql_store import SqlFolderStore, SqlItemStore
from codex_api.core.database import create_engine
from codex_api.core.exceptions import CollectionNotFoundError, FieldNotFoundError
from codex_api.models import create_schema


@pytest_asyncio.fixture
async def engine(tmp_path, test_settings):
    settings = test_settings.model_copy(update={
        "STORE_BACKEND": "sql",
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'codex.db'}",
    })
    engine = create_engine(settings)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def items(engine):
    await create_schema(engine)
    return SqlItemStore(engine, "codex")


class TestSqlItemStore:
    """SqlItemStore implements the ItemStore protocol."""

    @pytest.mark.asyncio
    async def test_missing_table(self, engine):
        store = SqlItemStore(engine, "codex")

        assert await store.collection_exists() is False
        with pytest.raises(CollectionNotFoundError):
            await store.read_by_query({"limit": 1})

    @pytest.mark.asyncio
    async def test_create_and_read_back(self, items):
        assert await items.collection_exists() is True

        item_id = await items.create_one({
            "id": 7,
            "name": "Seven",
            "biography": "Born in the archive",
            "timestamp_created": "2025-10-11T16:46:41",
        })
        records = await items.read_by_query({"filter": {"id": {"_eq": 7}}, "limit": 1})

        assert item_id == 7
        assert records[0]["name"] == "Seven"
        assert records[0]["biography"] == "Born in the archive"
        assert records[0]["timestamp_created"].year == 2025
        assert "attributes" not in records[0]

    @pytest.mark.asyncio
    async def test_projection_and_filters(self, items):
        await items.create_one({"id": 1, "price": "1 ETH", "ipfs_character": "QmA"})
        await items.create_one({"id": 2, "price": None, "ipfs_character": "QmB", "thumbnail_character": "f-2"})
        await items.create_one({"id": 3, "price": "3 ETH"})

        priced = await items.read_by_query({"filter": {"price": {"_nnull": True}}, "fields": ["id"], "limit": -1})
        assert sorted(r["id"] for r in priced) == [1, 3]

        missing = await items.read_by_query({
            "filter": {"_and": [
                {"ipfs_character": {"_nnull": True}},
                {"thumbnail_character": {"_null": True}},
            ]},
            "fields": ["id", "ipfs_character"],
        })
        assert missing == [{"id": 1, "ipfs_character": "QmA"}]

        page = await items.read_by_query({"sort": ["-id"], "limit": 2, "fields": ["id"]})
        assert [r["id"] for r in page] == [3, 2]

    @pytest.mark.asyncio
    async def test_update(self, items):
        await items.create_one({"id": 4, "owner": None})
        await items.update_one(4, {"owner": "0xabc"})

        records = await items.read_by_query({"filter": {"id": {"_eq": 4}}, "fields": ["owner"]})
        assert records == [{"owner": "0xabc"}]

    @pytest.mark.asyncio
    async def test_update_unknown_field(self, items):
        await items.create_one({"id": 5})
        with pytest.raises(FieldNotFoundError) as exc_info:
            await items.update_one(5, {"rarity": "rare"})

        assert exc_info.value.field == "rarity"

    @pytest.mark.asyncio
    async def test_unknown_filter_field(self, items):
        with pytest.raises(FieldNotFoundError):
            await items.read_by_query({"filter": {"rarity": {"_eq": "rare"}}})

    @pytest.mark.asyncio
    async def test_column_added_later_is_picked_up(self, engine):
        async with engine.begin() as conn:
            await conn.execute(text("CREATE TABLE codex (id INTEGER PRIMARY KEY, owner TEXT)"))
            await conn.execute(text("INSERT INTO codex (id, owner) VALUES (1, '0x1')"))
        store = SqlItemStore(engine, "codex")

        with pytest.raises(FieldNotFoundError):
            await store.update_one(1, {"price": "1 ETH"})

        async with engine.begin() as conn:
            await conn.execute(text("ALTER TABLE codex ADD COLUMN price TEXT"))

        await store.update_one(1, {"price": "1 ETH"})
        records = await store.read_by_query({"filter": {"id": {"_eq": 1}}, "fields": ["price"]})
        assert records == [{"price": "1 ETH"}]


class TestSqlFolderStore:
    @pytest.mark.asyncio
    async def test_create_and_lookup(self, engine, items):
        folders = SqlFolderStore(engine)

        folder_id = await folders.create_one({"name": "codex"})
        found = await folders.read_by_query({
            "filter": {"name": {"_eq": "codex"}, "parent": {"_null": True}},
            "limit": 1,
        })

        assert found[0]["id"] == folder_id
        assert len(folder_id) == 36
