"""Supabase-backed category store.

The Supabase client is synchronous, so every query runs in a worker thread.
Reads are bounded by the configured timeout; writes by the client's own
PostgREST timeout (see ``get_supabase_client``).
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, List

from supabase import Client

from app.config import Settings
from app.exceptions import NotFoundError, RepositoryError
from app.models.category import Category
from app.repositories.base import CategoryRepository

logger = logging.getLogger(__name__)


class SupabaseCategoryRepository(CategoryRepository):
    """Categories table in Supabase.

    ``resource_count`` comes from an embedded ``resources(count)`` aggregate,
    which PostgREST resolves as a left join, so categories without resources
    are still listed. Deleting relies on the ``resources.category_id`` foreign
    key being ``ON DELETE SET NULL`` to detach resources in the same statement.
    """

    def __init__(self, client: Client, settings: Settings):
        self.client = client
        self.table_name = settings.categories_table
        self.resources_table = settings.resources_table
        self.timeout = settings.repository_timeout

    @property
    def _select(self) -> str:
        return f"*, {self.resources_table}(count)"

    def _table(self):
        return self.client.table(self.table_name)

    async def _execute(self, action: str, build: Callable[[], Any], write: bool = False):
        """Run a query builder's ``execute`` off the event loop.

        Reads are cut off after ``repository_timeout``. Writes are left to
        finish in their thread and rely on the client's own PostgREST timeout,
        so an error is only raised once the store has answered or given up.
        """
        call = asyncio.to_thread(lambda: build().execute())
        try:
            if write:
                return await call
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Supabase timed out while trying to {action}")
            raise RepositoryError(f"Timed out trying to {action}") from e
        except Exception as e:
            logger.error(f"Supabase failed to {action}: {e}")
            raise RepositoryError(f"Failed to {action}: {e}") from e

    def _to_category(self, row: dict[str, Any]) -> Category:
        data = dict(row)
        embedded = data.pop(self.resources_table, None)
        data.pop("resource_count", None)

        count = 0
        if isinstance(embedded, list) and embedded:
            count = embedded[0].get("count") or 0

        return Category(**data, resource_count=count)

    @staticmethod
    def _serialize(fields: dict[str, Any]) -> dict[str, Any]:
        return {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in fields.items()
        }

    async def _fetch_one(self, category_id: str) -> Category:
        result = await self._execute(
            f"fetch category {category_id}",
            lambda: self._table().select(self._select).eq("id", category_id),
        )
        if not result.data:
            raise NotFoundError(category_id)
        return self._to_category(result.data[0])

    async def fetch_all(self) -> List[Category]:
        result = await self._execute(
            "fetch categories",
            lambda: self._table().select(self._select),
        )
        return [self._to_category(row) for row in result.data or []]

    async def insert(self, fields: dict[str, Any]) -> Category:
        data = self._serialize(fields)
        result = await self._execute(
            "insert category",
            lambda: self._table().insert(data),
            write=True,
        )
        if not result.data:
            raise RepositoryError("Insert returned no data")

        return self._to_category(result.data[0])

    async def update(self, category_id: str, fields: dict[str, Any]) -> Category:
        data = self._serialize(fields)
        result = await self._execute(
            f"update category {category_id}",
            lambda: self._table().update(data).eq("id", category_id),
            write=True,
        )
        if not result.data:
            raise NotFoundError(category_id)

        # Fetch with resource count
        return await self._fetch_one(category_id)

    async def delete(self, category_id: str) -> None:
        result = await self._execute(
            f"delete category {category_id}",
            lambda: self._table().delete().eq("id", category_id),
            write=True,
        )
        if not result.data:
            raise NotFoundError(category_id)

    async def delete_many(self, category_ids: List[str]) -> int:
        if not category_ids:
            return 0

        result = await self._execute(
            f"delete {len(category_ids)} categories",
            lambda: self._table().delete().in_("id", category_ids),
            write=True,
        )
        return len(result.data or [])

    async def update_many(self, category_ids: List[str], fields: dict[str, Any]) -> List[Category]:
        if not category_ids:
            return []

        data = self._serialize(fields)
        result = await self._execute(
            f"update {len(category_ids)} categories",
            lambda: self._table().update(data).in_("id", category_ids),
            write=True,
        )
        return [self._to_category(row) for row in result.data or []]
