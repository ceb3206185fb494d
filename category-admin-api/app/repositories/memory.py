"""In-process category store for local development and tests."""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from app.exceptions import NotFoundError
from app.models.category import Category
from app.repositories.base import CategoryRepository

logger = logging.getLogger(__name__)


class InMemoryCategoryRepository(CategoryRepository):
    """Keeps categories, and which resources point at them, in dicts.

    Args:
        categories: Records to start with.
        resources: Optional mapping of resource id to category id.
    """

    def __init__(
        self,
        categories: Optional[Iterable[Category]] = None,
        resources: Optional[dict[str, Optional[str]]] = None,
    ):
        self._categories: dict[str, Category] = {}
        for category in categories or []:
            self._categories[category.id] = category.model_copy()
        self.resources: dict[str, Optional[str]] = dict(resources or {})

    def _with_count(self, category: Category) -> Category:
        count = sum(1 for cat_id in self.resources.values() if cat_id == category.id)
        return category.model_copy(update={"resource_count": count})

    async def fetch_all(self) -> List[Category]:
        return [self._with_count(c) for c in self._categories.values()]

    async def insert(self, fields: dict[str, Any]) -> Category:
        now = datetime.now(timezone.utc)
        data = {"created_at": now, "updated_at": now, **fields}
        data.setdefault("id", str(uuid.uuid4()))
        data.pop("resource_count", None)

        category = Category(**data)
        self._categories[category.id] = category
        return self._with_count(category)

    async def update(self, category_id: str, fields: dict[str, Any]) -> Category:
        existing = self._categories.get(category_id)
        if existing is None:
            raise NotFoundError(category_id)

        updated = existing.model_copy(update=fields)
        self._categories[category_id] = updated
        return self._with_count(updated)

    async def delete(self, category_id: str) -> None:
        if category_id not in self._categories:
            raise NotFoundError(category_id)
        await self.delete_many([category_id])

    async def delete_many(self, category_ids: List[str]) -> int:
        doomed = {cat_id for cat_id in category_ids if cat_id in self._categories}

        for resource_id, cat_id in self.resources.items():
            if cat_id in doomed:
                self.resources[resource_id] = None
        for cat_id in doomed:
            del self._categories[cat_id]

        logger.debug(f"Deleted {len(doomed)} categories")
        return len(doomed)

    async def update_many(self, category_ids: List[str], fields: dict[str, Any]) -> List[Category]:
        missing = [cat_id for cat_id in category_ids if cat_id not in self._categories]
        if missing:
            raise NotFoundError(missing[0])

        return [await self.update(cat_id, fields) for cat_id in category_ids]
