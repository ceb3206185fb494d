"""Category service: validated mutations and the read path over the tree."""
import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Any, List, Optional

from app.exceptions import (
    CycleError,
    NotFoundError,
    RepositoryError,
    SlugConflictError,
    ValidationError,
)
from app.models.category import (
    Category,
    CategoryCreate,
    CategoryNode,
    CategoryStats,
    CategoryUpdate,
    DeleteResult,
    DeleteStrategy,
    RenderedTree,
    RenderFilters,
    SortDirection,
    SortField,
)
from app.repositories.base import CategoryRepository
from app.services import projection
from app.services.tree import build_tree, descendant_ids, find_node

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("app.audit")

_SLUG_SEPARATORS = re.compile(r"[^a-z0-9]+")
_SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def slugify(name: str) -> str:
    """Lowercase, turn each run of non-alphanumerics into one ``-``, trim."""
    return _SLUG_SEPARATORS.sub("-", name.lower()).strip("-")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CategoryService:
    """Mutation engine and read path for the category hierarchy.

    Every mutation validates against a fresh snapshot from the repository and
    writes nothing when validation fails. Mutations run one at a time.

    Args:
        repository: Store holding the category records.
        default_delete_strategy: Strategy used when ``delete`` is called without one.
    """

    def __init__(
        self,
        repository: CategoryRepository,
        default_delete_strategy: DeleteStrategy = DeleteStrategy.cascade,
    ):
        self.repository = repository
        self.default_delete_strategy = default_delete_strategy
        self._lock = asyncio.Lock()

    # ----- Read -----
    async def list_categories(
        self,
        sort_field: SortField = SortField.sort_order,
        sort_direction: SortDirection = SortDirection.asc,
    ) -> List[Category]:
        """All categories as a flat, sorted list."""
        categories = await self.repository.fetch_all()
        return projection.sort_categories(categories, sort_field, sort_direction)

    async def get(self, category_id: str) -> Category:
        categories = await self.repository.fetch_all()
        return self._require(categories, category_id)

    async def get_tree(
        self,
        sort_field: SortField = SortField.sort_order,
        sort_direction: SortDirection = SortDirection.asc,
    ) -> List[CategoryNode]:
        """The full forest, inactive nodes included."""
        return build_tree(await self.list_categories(sort_field, sort_direction))

    async def render(self, filters: RenderFilters) -> RenderedTree:
        categories = await self.repository.fetch_all()
        return projection.render(categories, filters)

    async def stats(self) -> CategoryStats:
        categories = await self.repository.fetch_all()
        return projection.category_stats(categories)

    # ----- Create -----
    async def create(self, data: CategoryCreate) -> Category:
        """Create a category.

        Raises:
            ValidationError: Blank name or unusable slug.
            SlugConflictError: Slug already taken.
            NotFoundError: ``parent_id`` does not exist.
        """
        async with self._lock:
            categories = await self.repository.fetch_all()

            name = self._clean_name(data.name)
            slug = self._clean_slug(data.slug) if data.slug else slugify(name)
            if not slug:
                raise ValidationError(f"Cannot derive a slug from name '{name}'")
            self._check_slug_free(categories, slug)

            if data.parent_id:
                self._require(categories, data.parent_id)

            now = _now()
            fields = {
                "name": name,
                "slug": slug,
                "description": data.description or None,
                "parent_id": data.parent_id or None,
                "sort_order": data.sort_order,
                "is_active": data.is_active,
                "created_at": now,
                "updated_at": now,
            }
            category = await self.repository.insert(fields)

            logger.info(f"Created category '{category.name}' ({category.id})")
            self._audit("category_create", category.id, new_values=fields)
            return category

    # ----- Update -----
    async def update(self, category_id: str, data: CategoryUpdate) -> Category:
        """Write the fields the caller set.

        Raises:
            ValidationError: Nothing to update, blank name or bad slug.
            SlugConflictError: Slug taken by another category.
            CycleError: New parent is the category or one of its descendants.
            NotFoundError: Category or new parent does not exist.
        """
        fields = data.model_dump(exclude_unset=True)
        if not fields:
            raise ValidationError("No fields to update")

        async with self._lock:
            categories = await self.repository.fetch_all()
            existing = self._require(categories, category_id)

            if "name" in fields:
                fields["name"] = self._clean_name(fields["name"])
            if "slug" in fields:
                fields["slug"] = self._clean_slug(fields["slug"])
                self._check_slug_free(categories, fields["slug"], exclude_id=category_id)
            if "description" in fields:
                fields["description"] = fields["description"] or None
            if "parent_id" in fields:
                fields["parent_id"] = fields["parent_id"] or None
                self._check_parent(categories, category_id, fields["parent_id"])
            if "sort_order" in fields and fields["sort_order"] is None:
                raise ValidationError("sort_order cannot be null")
            if "is_active" in fields and fields["is_active"] is None:
                raise ValidationError("is_active cannot be null")

            return await self._write(existing, fields, "category_update")

    async def reparent(self, category_id: str, new_parent_id: Optional[str]) -> Category:
        """Move a category under ``new_parent_id``; ``None`` makes it a root.

        Raises:
            CycleError: ``new_parent_id`` is the category or one of its descendants.
            NotFoundError: Either id does not exist.
        """
        async with self._lock:
            categories = await self.repository.fetch_all()
            existing = self._require(categories, category_id)
            new_parent_id = new_parent_id or None
            self._check_parent(categories, category_id, new_parent_id)

            return await self._write(
                existing, {"parent_id": new_parent_id}, "category_reparent"
            )

    async def reorder(self, category_id: str, sort_order: int) -> Category:
        async with self._lock:
            categories = await self.repository.fetch_all()
            existing = self._require(categories, category_id)

            return await self._write(
                existing, {"sort_order": sort_order}, "category_reorder"
            )

    async def toggle_active(self, category_id: str) -> Category:
        """Flip ``is_active``. Descendants keep their own flag."""
        async with self._lock:
            categories = await self.repository.fetch_all()
            existing = self._require(categories, category_id)

            return await self._write(
                existing, {"is_active": not existing.is_active}, "category_toggle_active"
            )

    # ----- Delete -----
    async def delete(
        self,
        category_id: str,
        strategy: Optional[DeleteStrategy] = None,
    ) -> DeleteResult:
        """Delete a category.

        ``cascade`` removes the category and all of its descendants in one
        repository call. ``reparent_children`` hands the direct children to
        the deleted category's parent first, and hands them back if the
        delete itself fails.

        Raises:
            NotFoundError: Category does not exist.
        """
        strategy = strategy or self.default_delete_strategy

        async with self._lock:
            categories = await self.repository.fetch_all()
            existing = self._require(categories, category_id)
            node = find_node(build_tree(categories), category_id)

            if strategy == DeleteStrategy.cascade:
                doomed = [category_id] + descendant_ids(node)
                await self._delete_checked(doomed)
                result = DeleteResult(deleted_ids=doomed, strategy=strategy)
            else:
                result = await self._delete_reparenting_children(existing, node)

            logger.info(
                f"Deleted category '{existing.name}' ({category_id}) with "
                f"{strategy.value}: {len(result.deleted_ids)} removed, "
                f"{len(result.reparented_ids)} reparented"
            )
            self._audit(
                "category_delete",
                category_id,
                old_values=existing.model_dump(mode="json"),
                new_values=result.model_dump(mode="json"),
            )
            return result

    async def _delete_reparenting_children(
        self, existing: Category, node: CategoryNode
    ) -> DeleteResult:
        child_ids = [child.id for child in node.children]
        # A dangling parent_id is not a real grandparent
        grandparent_id = None if node.level == 0 else existing.parent_id

        if child_ids:
            await self.repository.update_many(
                child_ids, {"parent_id": grandparent_id, "updated_at": _now()}
            )

        try:
            await self._delete_checked([existing.id])
        except Exception:
            if child_ids:
                logger.warning(
                    f"Delete of {existing.id} failed, moving {len(child_ids)} children back"
                )
                await self.repository.update_many(child_ids, {"parent_id": existing.id})
            raise

        return DeleteResult(
            deleted_ids=[existing.id],
            reparented_ids=child_ids,
            strategy=DeleteStrategy.reparent_children,
        )

    async def _delete_checked(self, category_ids: List[str]) -> None:
        """Delete ``category_ids``, re-reading the store if it reports a failure.

        A store error does not prove the delete was not applied. If none of
        the ids are left afterwards the delete is treated as done.

        Raises:
            RepositoryError: The delete failed and the records are still there.
        """
        try:
            await self.repository.delete_many(category_ids)
        except RepositoryError as e:
            remaining = {c.id for c in await self.repository.fetch_all()}
            if remaining.intersection(category_ids):
                raise
            logger.warning(
                f"Delete of {len(category_ids)} categories reported '{e.message}' "
                f"but the records are gone"
            )

    # ----- Helpers -----
    async def _write(self, existing: Category, fields: dict[str, Any], action: str) -> Category:
        fields = {**fields, "updated_at": _now()}
        category = await self.repository.update(existing.id, fields)

        old_values = {
            key: getattr(existing, key) for key in fields if hasattr(existing, key)
        }
        logger.info(f"Updated category {existing.id}: {sorted(fields)}")
        self._audit(action, existing.id, old_values=old_values, new_values=fields)
        return category

    @staticmethod
    def _require(categories: List[Category], category_id: str) -> Category:
        for category in categories:
            if category.id == category_id:
                return category
        raise NotFoundError(category_id)

    @staticmethod
    def _clean_name(name: Optional[str]) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name cannot be empty")
        return name

    @staticmethod
    def _clean_slug(slug: Optional[str]) -> str:
        slug = (slug or "").strip()
        if not _SLUG_PATTERN.match(slug):
            raise ValidationError(
                f"Slug '{slug}' must be lowercase letters and digits separated by single hyphens"
            )
        return slug

    @staticmethod
    def _check_slug_free(
        categories: List[Category], slug: str, exclude_id: Optional[str] = None
    ) -> None:
        for category in categories:
            if category.slug == slug and category.id != exclude_id:
                raise SlugConflictError(slug)

    def _check_parent(
        self, categories: List[Category], category_id: str, new_parent_id: Optional[str]
    ) -> None:
        """Reject a parent that is missing, the category itself, or below it."""
        if new_parent_id is None:
            return
        if new_parent_id == category_id:
            raise CycleError(category_id, new_parent_id)

        self._require(categories, new_parent_id)

        node = find_node(build_tree(categories), category_id)
        if node is not None and new_parent_id in descendant_ids(node):
            raise CycleError(category_id, new_parent_id)

    def _audit(
        self,
        action: str,
        record_id: str,
        old_values: Optional[dict[str, Any]] = None,
        new_values: Optional[dict[str, Any]] = None,
    ) -> None:
        audit_logger.info(
            f"{action} record_id={record_id}",
            extra={
                "action": action,
                "table_name": "categories",
                "record_id": record_id,
                "old_values": old_values,
                "new_values": new_values,
            },
        )
