from __future__ import annotations

from pydantic import BaseModel, Field
from typing import Optional, Iterator
from datetime import datetime
from enum import Enum


class SortField(str, Enum):
    """Fields the flat category list can be ordered by."""
    name = "name"
    sort_order = "sort_order"
    created_at = "created_at"


class SortDirection(str, Enum):
    asc = "asc"
    desc = "desc"


class DeleteStrategy(str, Enum):
    """What happens to the descendants of a deleted category."""
    cascade = "cascade"
    reparent_children = "reparent_children"


class Category(BaseModel):
    """Category record as stored in the repository."""
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    parent_id: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
    resource_count: int = 0

    class Config:
        from_attributes = True


class CategoryNode(Category):
    """Category placed in a built tree. Derived, never persisted."""
    level: int = 0
    children: list[CategoryNode] = []


class RenderedNode(CategoryNode):
    """Tree node as handed to the console for display."""
    children: list[RenderedNode] = []
    has_children: bool = False
    is_expanded: bool = False


# Request Models
class CategoryCreate(BaseModel):
    """Schema for creating a new category."""
    name: str = Field(..., max_length=200)
    slug: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    parent_id: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True


class CategoryUpdate(BaseModel):
    """Schema for updating an existing category.

    Only fields the caller actually sends are written.
    """
    name: Optional[str] = Field(None, max_length=200)
    slug: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    parent_id: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class ReparentRequest(BaseModel):
    """Move a category under a new parent (None makes it a root)."""
    parent_id: Optional[str] = None


class ReorderRequest(BaseModel):
    sort_order: int


# Projection Models
class RenderFilters(BaseModel):
    """Caller-held view state for rendering the tree."""
    query: str = ""
    show_inactive: bool = False
    expanded: set[str] = Field(default_factory=set)
    sort_field: SortField = SortField.sort_order
    sort_direction: SortDirection = SortDirection.asc


class RenderedRow(BaseModel):
    """Flattened row for table-style rendering."""
    category: Category
    level: int
    has_children: bool
    is_expanded: bool


class RenderedTree(BaseModel):
    """Filtered, sorted and expanded forest ready for display."""
    roots: list[RenderedNode]
    query: str = ""

    def iter_nodes(self) -> Iterator[RenderedNode]:
        """Yield visible nodes depth-first."""
        stack = list(reversed(self.roots))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def rows(self) -> list[RenderedRow]:
        return [
            RenderedRow(
                category=Category.model_validate(
                    node.model_dump(include=set(Category.model_fields))
                ),
                level=node.level,
                has_children=node.has_children,
                is_expanded=node.is_expanded,
            )
            for node in self.iter_nodes()
        ]


# Response Models
class CategoryStats(BaseModel):
    """Counters shown above the category table."""
    total: int
    active: int
    inactive: int
    top_level: int
    with_resources: int


class CategoryListResponse(BaseModel):
    """Simple list of categories."""
    categories: list[Category]


class CategoryTreeResponse(BaseModel):
    """Rendered category forest."""
    roots: list[RenderedNode]
    rows: list[RenderedRow]


class DeleteResult(BaseModel):
    """Outcome of a delete."""
    deleted_ids: list[str]
    reparented_ids: list[str] = []
    strategy: DeleteStrategy
