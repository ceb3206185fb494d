"""Storage boundary for categories."""
from abc import ABC, abstractmethod
from typing import Any, List

from app.models.category import Category


class CategoryRepository(ABC):
    """Record store the category service reads from and writes to.

    Implementations raise ``RepositoryError`` when the store fails and
    ``NotFoundError`` when a single-record call names a missing id.
    """

    @abstractmethod
    async def fetch_all(self) -> List[Category]:
        """Every category, with ``resource_count`` filled in."""

    @abstractmethod
    async def insert(self, fields: dict[str, Any]) -> Category:
        """Insert a record and return it with its assigned id."""

    @abstractmethod
    async def update(self, category_id: str, fields: dict[str, Any]) -> Category:
        """Write ``fields`` onto one record."""

    @abstractmethod
    async def delete(self, category_id: str) -> None:
        """Remove one record."""

    @abstractmethod
    async def delete_many(self, category_ids: List[str]) -> int:
        """Remove all given records in one atomic step.

        Resources pointing at any of them lose their category.
        Returns the number of records removed.
        """

    @abstractmethod
    async def update_many(self, category_ids: List[str], fields: dict[str, Any]) -> List[Category]:
        """Write the same ``fields`` onto several records in one step."""
