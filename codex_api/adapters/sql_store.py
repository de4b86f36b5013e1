"""
SQLAlchemy Store Adapter

ItemStore / FolderStore over a relational database. Tables are reflected
from the live schema (not taken from the models) so a column that has not
been provisioned yet surfaces as FieldNotFoundError, the same way the
Directus adapter reports it.

Filter grammar supported: _eq _neq _gt _gte _lt _lte _in _null _nnull,
combined with _and / _or.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import DateTime, MetaData, Table, and_, exc, inspect, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncEngine

from codex_api.adapters.base import Query, Record
from codex_api.core.exceptions import (
    CollectionNotFoundError,
    FieldNotFoundError,
    StoreError,
    StoreNotConnectedError,
)

logger = logging.getLogger(__name__)

ATTRIBUTES_COLUMN = "attributes"


def _column(table: Table, name: str):
    column = table.c.get(name)
    if column is None:
        raise FieldNotFoundError(name, f"Field '{name}' not found in table '{table.name}'")
    return column


def build_filter(table: Table, node: Optional[Dict[str, Any]]):
    """Compile a Directus-style filter dict into a SQLAlchemy clause (or None)."""
    if not node:
        return None

    clauses = []
    for key, value in node.items():
        if key == "_and":
            clauses.append(and_(*[c for c in (build_filter(table, child) for child in value) if c is not None]))
        elif key == "_or":
            clauses.append(or_(*[c for c in (build_filter(table, child) for child in value) if c is not None]))
        else:
            column = _column(table, key)
            for op, operand in value.items():
                if op == "_eq":
                    clauses.append(column.is_(None) if operand is None else column == operand)
                elif op == "_neq":
                    clauses.append(column.isnot(None) if operand is None else column != operand)
                elif op == "_gt":
                    clauses.append(column > operand)
                elif op == "_gte":
                    clauses.append(column >= operand)
                elif op == "_lt":
                    clauses.append(column < operand)
                elif op == "_lte":
                    clauses.append(column <= operand)
                elif op == "_in":
                    clauses.append(column.in_(list(operand)))
                elif op == "_null":
                    clauses.append(column.is_(None) if operand else column.isnot(None))
                elif op == "_nnull":
                    clauses.append(column.isnot(None) if operand else column.is_(None))
                else:
                    raise StoreError(f"Unsupported filter operator: {op}")

    if len(clauses) == 1:
        return clauses[0]
    return and_(*clauses)


def _coerce(table: Table, row: Record) -> Record:
    """Parse ISO strings for DateTime columns; drivers only accept datetime objects."""
    coerced = {}
    for key, value in row.items():
        column = table.c.get(key)
        if column is not None and isinstance(column.type, DateTime) and isinstance(value, str):
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        coerced[key] = value
    return coerced


class SqlTableStore:
    """Shared reflection, query and error handling for one table."""

    def __init__(self, engine: AsyncEngine, table_name: str):
        self.engine = engine
        self.table_name = table_name
        self._table: Optional[Table] = None

    async def _has_table(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                return await conn.run_sync(lambda sync_conn: inspect(sync_conn).has_table(self.table_name))
        except (OSError, exc.InterfaceError) as e:
            raise StoreNotConnectedError(f"Database unreachable: {e}") from e

    async def table(self) -> Table:
        """Reflect the table once; raises CollectionNotFoundError if it is absent."""
        if self._table is not None:
            return self._table
        if not await self._has_table():
            raise CollectionNotFoundError(self.table_name)
        async with self.engine.connect() as conn:
            self._table = await conn.run_sync(
                lambda sync_conn: Table(self.table_name, MetaData(), autoload_with=sync_conn)
            )
        return self._table

    async def _with_table(self, operation):
        """
        Run `operation(table)` against the reflected table.

        The reflection is cached, so a column added after it was taken would
        keep looking missing. On FieldNotFoundError the table is reflected
        again and the operation retried once; operations raise it before
        executing anything.
        """
        table = await self.table()
        try:
            return await operation(table)
        except FieldNotFoundError as e:
            logger.info(f"[sql] {self.table_name}: {e.message}, reflecting schema again")
            self._table = None
            return await operation(await self.table())

    async def _execute(self, statement):
        try:
            async with self.engine.begin() as conn:
                return await conn.execute(statement)
        except (OSError, exc.InterfaceError) as e:
            raise StoreNotConnectedError(f"Database unreachable: {e}") from e
        except exc.DBAPIError as e:
            if e.connection_invalidated:
                raise StoreNotConnectedError(f"Database connection lost: {e}") from e
            raise StoreError(f"{self.table_name}: {e.orig}") from e

    def _to_record(self, table: Table, mapping) -> Record:
        record = dict(mapping)
        if ATTRIBUTES_COLUMN in record and ATTRIBUTES_COLUMN in table.c:
            extra = record.pop(ATTRIBUTES_COLUMN) or {}
            record = {**extra, **record}
        return record

    async def read_by_query(self, query: Query) -> List[Record]:
        return await self._with_table(lambda table: self._read(table, query))

    async def _read(self, table: Table, query: Query) -> List[Record]:
        fields = query.get("fields") or ["*"]

        if "*" in fields:
            statement = select(table)
        else:
            statement = select(*[_column(table, name) for name in fields])

        clause = build_filter(table, query.get("filter"))
        if clause is not None:
            statement = statement.where(clause)

        for name in query.get("sort") or []:
            descending = name.startswith("-")
            column = _column(table, name.lstrip("-"))
            statement = statement.order_by(column.desc() if descending else column.asc())

        limit = query.get("limit")
        if limit is not None and limit >= 0:
            statement = statement.limit(limit)
        if query.get("offset"):
            statement = statement.offset(query["offset"])

        result = await self._execute(statement)
        return [self._to_record(table, row._mapping) for row in result]

    async def create_one(self, fields: Record) -> Any:
        return await self._with_table(lambda table: self._create(table, fields))

    async def _create(self, table: Table, fields: Record) -> Any:
        row = {k: v for k, v in fields.items() if k in table.c}
        extra = {k: v for k, v in fields.items() if k not in table.c}

        if extra:
            if ATTRIBUTES_COLUMN not in table.c:
                raise FieldNotFoundError(next(iter(extra)))
            row[ATTRIBUTES_COLUMN] = {**(fields.get(ATTRIBUTES_COLUMN) or {}), **extra}

        result = await self._execute(insert(table).values(**_coerce(table, row)))
        if "id" in row:
            return row["id"]
        return result.inserted_primary_key[0] if result.inserted_primary_key else None

    async def update_one(self, item_id: Any, fields: Record) -> None:
        await self._with_table(lambda table: self._update(table, item_id, fields))

    async def _update(self, table: Table, item_id: Any, fields: Record) -> None:
        for name in fields:
            _column(table, name)
        statement = update(table).where(_column(table, "id") == item_id).values(**_coerce(table, fields))
        await self._execute(statement)


class SqlItemStore(SqlTableStore):
    """ItemStore for the codex collection."""

    def __init__(self, engine: AsyncEngine, collection: str = "codex"):
        super().__init__(engine, collection)
        self.collection = collection

    async def collection_exists(self) -> bool:
        return await self._has_table()


class SqlFolderStore(SqlTableStore):
    """FolderStore backed by the folders table."""

    def __init__(self, engine: AsyncEngine, table_name: str = "folders"):
        super().__init__(engine, table_name)

    async def create_one(self, fields: Record) -> Any:
        fields = {"id": str(uuid4()), "parent": None, **fields}
        return await super().create_one(fields)
