"""
Database operations for the Data Grid API.

This module provides the record store used by the HTTP layer:
1. Building the items table from the column registry
2. Executing compiled filters, search and pagination queries
3. Create, update and delete by id (or by a list of ids)
"""
import random
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import sqlalchemy as sa
from sqlalchemy.engine.row import Row
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from datagrid.config import DATABASE_URL, TABLE_NAME
from datagrid.errors import DuplicateItem, ItemNotFound, StorageError
from datagrid.registry import ColumnRegistry

SQL_COLUMN_TYPES = {
    "float": sa.Float,
    "integer": sa.Integer,
    "string": sa.String,
}


def build_table(registry: ColumnRegistry, table_name: str = TABLE_NAME,
                metadata: Optional[sa.MetaData] = None) -> sa.Table:
    """Table definition derived from the registry, plus the integer id key."""
    metadata = metadata if metadata is not None else sa.MetaData()
    columns = [sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=False)]
    for column in registry.columns:
        columns.append(sa.Column(column.name, SQL_COLUMN_TYPES[column.sql_type](), nullable=True))
    return sa.Table(table_name, metadata, *columns)


def _row_to_dict(row: Union[Row, tuple, dict]) -> Dict[str, Any]:
    """Convert any type of row to dict."""
    if isinstance(row, dict):
        return row
    if hasattr(row, '_mapping'):  # SQLAlchemy Row
        return dict(row._mapping)
    if hasattr(row, '_fields'):  # namedtuple
        return row._asdict()
    return {str(i): v for i, v in enumerate(row)}


def generate_item_id() -> int:
    """Millisecond timestamp plus a small random offset."""
    return int(time.time() * 1000) + random.randint(0, 999)


class ItemStore:
    """Async record store over a single table."""

    def __init__(self, engine: AsyncEngine, registry: ColumnRegistry, table_name: str = TABLE_NAME):
        self.engine = engine
        self.registry = registry
        self.table = build_table(registry, table_name)

    @classmethod
    def from_url(cls, registry: ColumnRegistry, database_url: str = DATABASE_URL, **engine_kwargs) -> "ItemStore":
        return cls(create_async_engine(database_url, **engine_kwargs), registry)

    @property
    def order_by(self):
        return self.table.c.id.desc()

    async def create_schema(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(self.table.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"Could not create schema: {str(e)}") from e

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def _fetch(self, statement) -> List[Dict[str, Any]]:
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(statement)
                return [_row_to_dict(row) for row in result]
        except (SQLAlchemyError, OSError) as e:
            print(f"[store] Query execution error: {str(e)}")
            raise StorageError(f"Query execution failed: {str(e)}") from e

    async def _scalar(self, statement) -> Any:
        try:
            async with self.engine.connect() as conn:
                return (await conn.execute(statement)).scalar_one()
        except (SQLAlchemyError, OSError) as e:
            print(f"[store] Query execution error: {str(e)}")
            raise StorageError(f"Query execution failed: {str(e)}") from e

    async def select(self, query_filter) -> List[Dict[str, Any]]:
        """Execute a compiled filter (see services.compiler.QueryFilter)."""
        return await self._fetch(query_filter.to_select())

    async def count(self, where=None) -> int:
        statement = sa.select(sa.func.count()).select_from(self.table)
        if where is not None:
            statement = statement.where(where)
        return await self._scalar(statement)

    async def page(self, page: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        """Return one page of rows (1-based) and the exact total row count."""
        offset = (page - 1) * limit
        statement = sa.select(self.table).order_by(self.order_by).offset(offset).limit(limit)
        rows = await self._fetch(statement)
        total = await self.count()
        return rows, total

    async def get(self, item_id: int) -> Dict[str, Any]:
        rows = await self._fetch(sa.select(self.table).where(self.table.c.id == item_id))
        if not rows:
            raise ItemNotFound(item_id)
        return rows[0]

    async def get_many(self, item_ids: Sequence[int]) -> List[Dict[str, Any]]:
        statement = (
            sa.select(self.table)
            .where(self.table.c.id.in_(list(item_ids)))
            .order_by(self.order_by)
        )
        return await self._fetch(statement)

    async def search(self, term: str) -> List[Dict[str, Any]]:
        """Case-insensitive substring match across the searchable columns."""
        conditions = [
            self.table.c[name].icontains(term, autoescape=True)
            for name in self.registry.searchable_columns
        ]
        statement = sa.select(self.table).where(sa.or_(*conditions)).order_by(self.order_by)
        return await self._fetch(statement)

    async def insert(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        values = dict(payload)
        item_id = values.pop("id", None)
        if item_id is None:
            item_id = generate_item_id()
        values["id"] = item_id
        try:
            async with self.engine.begin() as conn:
                await conn.execute(sa.insert(self.table).values(**values))
                result = await conn.execute(sa.select(self.table).where(self.table.c.id == item_id))
                return _row_to_dict(result.one())
        except IntegrityError as e:
            raise DuplicateItem(item_id) from e
        except (SQLAlchemyError, OSError) as e:
            print(f"[store] Insert failed: {str(e)}")
            raise StorageError(f"Insert failed: {str(e)}") from e

    async def update(self, item_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        if not changes:
            return await self.get(item_id)
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(
                    sa.update(self.table).where(self.table.c.id == item_id).values(**changes)
                )
                if result.rowcount == 0:
                    raise ItemNotFound(item_id)
                result = await conn.execute(sa.select(self.table).where(self.table.c.id == item_id))
                return _row_to_dict(result.one())
        except (SQLAlchemyError, OSError) as e:
            print(f"[store] Update failed: {str(e)}")
            raise StorageError(f"Update failed: {str(e)}") from e

    async def delete(self, item_id: int) -> None:
        await self.delete_many([item_id])

    async def delete_many(self, item_ids: Sequence[int]) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.execute(sa.delete(self.table).where(self.table.c.id.in_(list(item_ids))))
        except (SQLAlchemyError, OSError) as e:
            print(f"[store] Delete failed: {str(e)}")
            raise StorageError(f"Delete failed: {str(e)}") from e
