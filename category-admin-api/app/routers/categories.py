import logging
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from app.dependencies import get_category_service
from app.exceptions import CategoryError
from app.models.category import (
    Category,
    CategoryCreate,
    CategoryUpdate,
    CategoryListResponse,
    CategoryStats,
    CategoryTreeResponse,
    DeleteResult,
    DeleteStrategy,
    RenderFilters,
    ReorderRequest,
    ReparentRequest,
    SortDirection,
    SortField,
)
from app.services.categories import CategoryService

logger = logging.getLogger(__name__)

router = APIRouter()


def _http_error(e: Exception) -> HTTPException:
    """Map a service failure onto an HTTP error."""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, CategoryError):
        return HTTPException(status_code=e.status_code, detail=e.message)
    logger.exception("Unexpected error in category router")
    return HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=CategoryListResponse)
async def list_categories(
    sort: SortField = Query(SortField.sort_order, description="Sort field"),
    direction: SortDirection = Query(SortDirection.asc, description="Sort direction"),
    service: CategoryService = Depends(get_category_service),
):
    """
    List all categories as a flat, sorted list.
    """
    try:
        categories = await service.list_categories(sort, direction)
        return CategoryListResponse(categories=categories)

    except Exception as e:
        raise _http_error(e)


@router.get("/tree", response_model=CategoryTreeResponse)
async def get_category_tree(
    q: str = Query("", description="Search name, slug and description"),
    show_inactive: bool = Query(False, description="Include inactive categories"),
    expanded: list[str] = Query([], description="IDs of expanded categories"),
    sort: SortField = Query(SortField.sort_order, description="Sibling sort field"),
    direction: SortDirection = Query(SortDirection.asc, description="Sort direction"),
    service: CategoryService = Depends(get_category_service),
):
    """
    Get the category tree filtered, searched and expanded for display.
    """
    try:
        filters = RenderFilters(
            query=q,
            show_inactive=show_inactive,
            expanded=set(expanded),
            sort_field=sort,
            sort_direction=direction,
        )
        tree = await service.render(filters)
        return CategoryTreeResponse(roots=tree.roots, rows=tree.rows())

    except Exception as e:
        raise _http_error(e)


@router.get("/stats", response_model=CategoryStats)
async def get_category_stats(
    service: CategoryService = Depends(get_category_service),
):
    """
    Get category counters (total, active, inactive, top level, with resources).
    """
    try:
        return await service.stats()

    except Exception as e:
        raise _http_error(e)


@router.get("/{category_id}", response_model=Category)
async def get_category(
    category_id: str,
    service: CategoryService = Depends(get_category_service),
):
    """
    Get a single category by ID.
    """
    try:
        return await service.get(category_id)

    except Exception as e:
        raise _http_error(e)


@router.post("", response_model=Category, status_code=201)
async def create_category(
    category: CategoryCreate,
    service: CategoryService = Depends(get_category_service),
):
    """
    Create a new category. The slug is derived from the name when omitted.
    """
    try:
        return await service.create(category)

    except Exception as e:
        raise _http_error(e)


@router.put("/{category_id}", response_model=Category)
async def update_category(
    category_id: str,
    category: CategoryUpdate,
    service: CategoryService = Depends(get_category_service),
):
    """
    Update an existing category.
    """
    try:
        return await service.update(category_id, category)

    except Exception as e:
        raise _http_error(e)


@router.patch("/{category_id}/parent", response_model=Category)
async def reparent_category(
    category_id: str,
    request: ReparentRequest,
    service: CategoryService = Depends(get_category_service),
):
    """
    Move a category under a new parent (drag and drop).
    """
    try:
        return await service.reparent(category_id, request.parent_id)

    except Exception as e:
        raise _http_error(e)


@router.patch("/{category_id}/sort-order", response_model=Category)
async def reorder_category(
    category_id: str,
    request: ReorderRequest,
    service: CategoryService = Depends(get_category_service),
):
    """
    Change a category's sort order.
    """
    try:
        return await service.reorder(category_id, request.sort_order)

    except Exception as e:
        raise _http_error(e)


@router.post("/{category_id}/toggle-active", response_model=Category)
async def toggle_category_active(
    category_id: str,
    service: CategoryService = Depends(get_category_service),
):
    """
    Activate or deactivate a category.
    """
    try:
        return await service.toggle_active(category_id)

    except Exception as e:
        raise _http_error(e)


@router.delete("/{category_id}", response_model=DeleteResult)
async def delete_category(
    category_id: str,
    strategy: Optional[DeleteStrategy] = Query(
        None, description="cascade or reparent_children (default from settings)"
    ),
    service: CategoryService = Depends(get_category_service),
):
    """
    Delete a category and handle its subcategories per the chosen strategy.
    """
    try:
        return await service.delete(category_id, strategy)

    except Exception as e:
        raise _http_error(e)
